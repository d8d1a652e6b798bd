"""Integration tests for the operator endpoints."""

from fastapi.testclient import TestClient


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Correlation-ID" in response.headers


def test_reindex_dry_run_lists_candidates(client: TestClient, discogs) -> None:
    discogs.add_release("1", "Kind of Blue", "Miles Davis")
    album = client.get("/api/albums/discogs/1").json()

    response = client.post("/api/admin/reindex", json={"target": "albums", "dry_run": True})

    assert response.status_code == 200
    report = response.json()
    assert report["dry_run"] is True
    assert report["candidates"] == 1
    assert report["entity_ids"] == [album["id"]]


def test_reindex_run_records_failure(client: TestClient, discogs) -> None:
    discogs.add_release("1", "Kind of Blue", "Miles Davis")
    client.get("/api/albums/discogs/1")

    report = client.post("/api/admin/reindex", json={"target": "albums"}).json()

    assert report["failed"] == 1
    assert report["succeeded"] == 0


def test_reindex_rejects_unknown_target(client: TestClient) -> None:
    response = client.post("/api/admin/reindex", json={"target": "playlists"})

    assert response.status_code == 422


def test_reindex_tracks_target(client: TestClient) -> None:
    response = client.post("/api/admin/reindex", json={"target": "tracks"})

    assert response.status_code == 200
    assert response.json()["updated"] == 0


def test_reindex_artist_names_target(client: TestClient, discogs) -> None:
    discogs.add_artist("7", "Nirvana (2)", image_url="http://img/nirvana.jpg")
    artist = client.get("/api/artists/discogs/7").json()

    report = client.post("/api/admin/reindex", json={"target": "artist_names"}).json()

    assert report["succeeded"] == 1
    assert client.get(f"/api/artists/{artist['id']}").json()["name"] == "Nirvana"


def test_dedupe_albums_dry_run(client: TestClient, discogs, spotify) -> None:
    discogs.add_release("1", "Kind of Blue", "Miles Davis", [("So What", "A1")])
    spotify.add_release("sp-kob", "Kind Of Blue (Legacy Edition)", "Miles Davis")
    client.get("/api/albums/discogs/1")
    client.get("/api/albums/spotify/sp-kob")

    response = client.post("/api/admin/dedupe-albums", params={"dry_run": True})

    assert response.status_code == 200
    report = response.json()
    assert report["dry_run"] is True
    assert report["albums_merged"] == 0


def test_reindex_status_without_worker(client: TestClient) -> None:
    response = client.get("/api/admin/reindex/status")

    assert response.status_code == 200
    assert response.json() == {"running": False, "enabled": False}
