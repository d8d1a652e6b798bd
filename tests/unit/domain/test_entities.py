"""Tests for catalog domain entities."""

from datetime import UTC, datetime, timedelta

from recordhub.domain.entities import ExternalIds, RetryState, Source, Track, ensure_utc_aware

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class TestSource:
    def test_priority_order(self) -> None:
        assert Source.in_priority_order() == [Source.MUSICBRAINZ, Source.DISCOGS, Source.SPOTIFY]

    def test_id_field(self) -> None:
        assert Source.DISCOGS.id_field == "discogs_id"


class TestExternalIds:
    def test_present_and_priority_score(self) -> None:
        ids = ExternalIds(musicbrainz_id="mb-1", spotify_id="sp-1")

        assert ids.present() == {Source.MUSICBRAINZ: "mb-1", Source.SPOTIFY: "sp-1"}
        assert ids.priority_score() == 5

    def test_set_and_get(self) -> None:
        ids = ExternalIds()
        ids.set(Source.DISCOGS, "123")
        assert ids.get(Source.DISCOGS) == "123"
        assert ids.priority_score() == 2


class TestRetryState:
    """Bounded retry bookkeeping."""

    def test_fresh_state_is_eligible(self) -> None:
        assert RetryState().is_eligible(max_retries=3, now=NOW)

    def test_failure_schedules_next_attempt(self) -> None:
        state = RetryState()
        state.record_failure(max_retries=3, interval=timedelta(minutes=3), now=NOW)

        assert state.retry_count == 1
        assert state.next_attempt == NOW + timedelta(minutes=3)
        assert not state.is_eligible(max_retries=3, now=NOW)
        assert state.is_eligible(max_retries=3, now=NOW + timedelta(minutes=3))

    def test_count_never_exceeds_max(self) -> None:
        state = RetryState()
        for _ in range(5):
            state.record_failure(max_retries=3, interval=timedelta(0), now=NOW)

        assert state.retry_count == 3
        assert state.is_exhausted(max_retries=3)
        assert not state.is_eligible(max_retries=3, now=NOW + timedelta(days=365))

    def test_success_resets(self) -> None:
        state = RetryState(retry_count=2, next_attempt=NOW)
        state.record_success()

        assert state.retry_count == 0
        assert state.next_attempt is None

    def test_naive_next_attempt_is_treated_as_utc(self) -> None:
        state = RetryState(retry_count=1, next_attempt=NOW.replace(tzinfo=None))
        assert state.is_eligible(max_retries=3, now=NOW)
        assert ensure_utc_aware(NOW.replace(tzinfo=None)) == NOW


class TestTrack:
    def test_external_id_score(self) -> None:
        track = Track(id="t", album_id="a", title="x", track_number=1)
        assert track.external_id_score == 0

        track.musicbrainz_id = "mb"
        track.spotify_id = "sp"
        assert track.external_id_score == 5
