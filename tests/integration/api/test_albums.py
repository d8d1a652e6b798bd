"""Integration tests for the canonical album endpoints."""

from fastapi.testclient import TestClient


def _index_kind_of_blue(client: TestClient, discogs) -> dict:
    discogs.add_release(
        "1",
        "Kind of Blue",
        "Miles Davis",
        [("So What", "A1"), ("Freddie Freeloader", "A2"), ("Blue in Green", "A3")],
        release_date="1959",
    )
    response = client.get("/api/albums/discogs/1")
    assert response.status_code == 200
    return response.json()


def test_get_by_source_id_indexes_album(client: TestClient, discogs) -> None:
    album = _index_kind_of_blue(client, discogs)

    assert album["title"] == "Kind of Blue"
    assert album["discogs_id"] == "1"
    assert album["total_tracks"] == 3
    assert album["metadata_available"] is True
    assert [(t["track_number"], t["position"]) for t in album["tracks"]] == [
        (1, "A1"),
        (2, "A2"),
        (3, "A3"),
    ]


def test_repeat_request_returns_same_album(client: TestClient, discogs) -> None:
    first = _index_kind_of_blue(client, discogs)
    second = client.get("/api/albums/discogs/1").json()

    assert second["id"] == first["id"]
    # Complete albums are served from the store
    assert discogs.release_calls == ["1"]


def test_get_by_id_and_resolve(client: TestClient, discogs) -> None:
    album = _index_kind_of_blue(client, discogs)

    response = client.get(f"/api/albums/{album['id']}")
    assert response.status_code == 200
    assert response.json()["title"] == "Kind of Blue"

    resolved = client.get("/api/albums/resolve/1", params={"source": "discogs"})
    assert resolved.status_code == 200
    assert resolved.json() == {"external_id": "1", "source": "discogs", "album_id": album["id"]}


def test_unknown_ids_are_404(client: TestClient) -> None:
    assert client.get("/api/albums/resolve/nope").status_code == 404
    assert client.get("/api/albums/2b9e3c1a-0000-4000-8000-000000000000").status_code == 404
    assert client.get("/api/albums/discogs/999").status_code == 404


def test_unknown_source_is_rejected(client: TestClient) -> None:
    assert client.get("/api/albums/tidal/1").status_code == 422


def test_unreachable_source_without_stored_album_is_502(client: TestClient, discogs) -> None:
    discogs.unavailable = True

    response = client.get("/api/albums/discogs/1")

    assert response.status_code == 502
    assert "discogs" in response.json()["detail"]


def test_stored_album_served_when_source_down(client: TestClient, discogs) -> None:
    # Stored without tracks, so the next request goes back to the source
    discogs.add_release("1", "Kind of Blue", "Miles Davis")
    stored = client.get("/api/albums/discogs/1").json()
    discogs.unavailable = True

    response = client.get("/api/albums/discogs/1")

    assert response.status_code == 200
    payload = response.json()
    assert payload["id"] == stored["id"]
    assert payload["metadata_available"] is False


def test_post_get_or_create(client: TestClient, discogs, spotify) -> None:
    spotify.add_release("sp-1", "Blue Train", "John Coltrane", [("Blue Train", "1", "t-1")])

    response = client.post("/api/albums", json={"discogs_id": "5", "spotify_id": "sp-1"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["spotify_id"] == "sp-1"
    assert payload["tracks"][0]["spotify_id"] == "t-1"

    again = client.post("/api/albums", json={"external_id": "sp-1"})
    assert again.json()["id"] == payload["id"]


def test_post_without_ids_is_400(client: TestClient) -> None:
    response = client.post("/api/albums", json={})

    assert response.status_code == 400
