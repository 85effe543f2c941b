"""Tests for phish.in duration parsing and the phish.in client."""

import pytest

from phishstats.cache import TTLCache
from phishstats.errors import DataInconsistency
from phishstats.phishin import PhishInClient, normalize_set_label, parse_durations


def _track(title, set_name="Set 1", duration=300000, position=1, song_id=None):
    track = {"title": title, "set_name": set_name, "duration": duration,
             "position": position}
    if song_id is not None:
        track["songs"] = [{"id": song_id, "title": title}]
    return track


def _show(*tracks, date="2025-07-25"):
    return {"date": date, "venue_name": "Madison Square Garden", "tracks": list(tracks)}


class TestNormalizeSetLabel:

    @pytest.mark.parametrize("name,expected", [
        ("Set 1", "1"),
        ("SET  2", "2"),
        ("Encore", "e"),
        ("Encore 2", "e2"),
        ("Soundcheck", "s"),
        (None, "1"),
        ("", "1"),
        ("Set 5", "set 5"),
    ])
    def test_labels(self, name, expected):
        assert normalize_set_label(name) == expected


class TestParseDurations:
    """Test track filtering and per-set renumbering."""

    def test_basic(self):
        data = _show(
            _track("Tweezer", duration=1203456, position=1, song_id=7),
            _track("Sand", duration=601000, position=2),
            _track("Tweezer Reprise", set_name="Encore", duration=300499, position=3),
        )
        durations = parse_durations(data, "2025-07-25")
        assert [(d.set_label, d.position, d.song, d.duration_seconds) for d in durations] == [
            ("1", 1, "Tweezer", 1203),
            ("1", 2, "Sand", 601),
            ("e", 1, "Tweezer Reprise", 300),
        ]
        assert durations[0].song_id == 7
        assert durations[1].song_id is None

    def test_drops_non_songs_and_renumbers(self):
        data = _show(
            _track("Tuning", position=1),
            _track("Tweezer", position=2),
            _track("Banter", position=3),
            _track("Sand", position=4),
        )
        durations = parse_durations(data, "2025-07-25")
        assert [(d.position, d.song) for d in durations] == [(1, "Tweezer"), (2, "Sand")]

    def test_drops_missing_duration(self):
        data = _show(_track("Tweezer", duration=None), _track("Sand", position=2))
        assert [d.song for d in parse_durations(data, "2025-07-25")] == ["Sand"]

    def test_track_order_follows_position(self):
        data = _show(_track("Sand", position=2), _track("Tweezer", position=1))
        assert [d.song for d in parse_durations(data, "2025-07-25")] == ["Tweezer", "Sand"]

    def test_strips_segue_marks(self):
        data = _show(_track("Tweezer >"))
        assert parse_durations(data, "2025-07-25")[0].song == "Tweezer"

    def test_date_mismatch(self):
        with pytest.raises(DataInconsistency):
            parse_durations(_show(_track("Tweezer"), date="2025-07-26"), "2025-07-25")

    def test_not_a_dict(self):
        with pytest.raises(DataInconsistency):
            parse_durations(["Tweezer"], "2025-07-25")

    def test_empty(self):
        assert parse_durations(None, "2025-07-25") == []
        assert parse_durations(_show(), "2025-07-25") == []


class FakeResponse:
    def __init__(self, data, status=200):
        self.status_code = status
        self._data = data
        self.headers = {}

    def json(self):
        return self._data


class FakeSession:
    def __init__(self, shows):
        self.shows = shows
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append(url)
        date = url.rsplit("/", 1)[-1]
        if date in self.shows:
            return FakeResponse(self.shows[date])
        return FakeResponse({"message": "not found"}, status=404)


def _client(shows, **kwargs):
    session = FakeSession(shows)
    kwargs.setdefault("cache_dir", None)
    return PhishInClient(session=session, rate_limit=0, verbose=False, **kwargs), session


class TestPhishInClient:

    def test_fetch_durations(self):
        client, session = _client({"2025-07-25": _show(_track("Tweezer"))})
        assert [d.song for d in client.fetch_durations("2025-07-25")] == ["Tweezer"]
        assert session.calls[0].endswith("/shows/2025-07-25")

    def test_not_yet_published(self):
        client, _ = _client({})
        assert client.fetch_durations("2025-07-25") == []
        assert client.fetch_show("2025-07-25") is None

    def test_memory_cache(self):
        client, session = _client({"2025-07-25": _show(_track("Tweezer"))}, cache=TTLCache())
        client.fetch_durations("2025-07-25")
        client.fetch_durations("2025-07-25")
        assert len(session.calls) == 1

    def test_disk_cache_only_with_tracks(self, tmp_path):
        client, session = _client({"2025-07-25": _show(_track("Tweezer")),
                                   "2025-07-26": _show(date="2025-07-26")},
                                  cache_dir=str(tmp_path))
        for _ in range(2):
            client.fetch_durations("2025-07-25")
            client.fetch_durations("2025-07-26")
        assert session.calls.count(session.calls[0]) == 1
        assert sum(1 for c in session.calls if c.endswith("2025-07-26")) == 2
