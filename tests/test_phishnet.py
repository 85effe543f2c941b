"""Tests for phishstats.phishnet parsing and the phish.net client."""

import pytest

from phishstats.cache import TTLCache
from phishstats.errors import DataInconsistency, NotFound, SourceUnavailable
from phishstats.phishnet import (
    PhishNetClient,
    parse_gaps,
    parse_performances,
    parse_set_label,
    parse_setlist,
    parse_shows,
    parse_song_catalog,
    song_slug,
    tour_position,
    venue_run,
)
from tests.conftest import TOUR, make_show


def _row(song="Tweezer", date="2025-07-25", position=1, set_label="1", **kwargs):
    row = {
        "showdate": date,
        "artistid": 1,
        "artist_name": "Phish",
        "venue": "Madison Square Garden",
        "city": "New York",
        "state": "NY",
        "country": "USA",
        "tourname": TOUR,
        "song": song,
        "songid": 100 + position,
        "set": set_label,
        "position": position,
        "gap": 5,
        "footnote": "",
        "trans_mark": ", ",
    }
    row.update(kwargs)
    return row


def _tour_shows():
    return [
        make_show("2025-07-20", venue="Alpine Valley", city="East Troy", state="WI"),
        make_show("2025-07-25"),
        make_show("2025-07-26"),
        make_show("2025-07-27"),
        make_show("2025-08-30", venue="Dick's", city="Commerce City", state="CO",
                  tour_name="Dick's 2025"),
    ]


class TestParseShows:

    def test_one_per_date_sorted(self):
        rows = [_row(date="2025-07-26"), _row(date="2025-07-25"), _row(date="2025-07-25")]
        shows = parse_shows(rows)
        assert [s.date for s in shows] == ["2025-07-25", "2025-07-26"]
        assert shows[0].tour_name == TOUR
        assert shows[0].state == "NY"

    def test_skips_side_projects_and_bad_dates(self):
        rows = [
            _row(date="2025-07-25"),
            _row(date="2025-07-26", artistid=2, artist_name="Trey Anastasio Band"),
            _row(date="not-a-date"),
        ]
        assert [s.date for s in parse_shows(rows)] == ["2025-07-25"]

    def test_missing_venue(self):
        assert parse_shows([_row(venue=None)])[0].venue == "Unknown Venue"

    def test_empty(self):
        assert parse_shows(None) == []


class TestParseSongCatalog:

    def test_rows(self):
        rows = [
            {"songid": 1, "song": "You Enjoy Myself", "artist": "Phish", "times_played": "612"},
            {"songid": 2, "song": "Loving Cup", "artist": "The Rolling Stones",
             "times_played": 151},
            {"songid": 3, "song": "", "times_played": 5},
            {"songid": 4, "song": "Brand New Song", "times_played": None},
        ]
        catalog = parse_song_catalog(rows)
        assert [(s.song, s.times_played, s.song_id) for s in catalog] == [
            ("You Enjoy Myself", 612, 1), ("Loving Cup", 151, 2), ("Brand New Song", 0, 4)]
        assert catalog[1].artist == "The Rolling Stones"
        assert catalog[2].artist is None


class TestParseSetLabel:

    def test_labels(self):
        assert parse_set_label("E") == "e"
        assert parse_set_label("2") == "2"
        assert parse_set_label(None) == "1"
        assert parse_set_label("  ") == "1"


class TestParseSetlist:
    """Test setlist parsing from showdate rows."""

    def test_positions_within_set(self):
        rows = [
            _row("Tweezer", position=1),
            _row("Sand", position=2),
            _row("Carini", position=3, set_label="2"),
            _row("Tweezer Reprise", position=4, set_label="e"),
        ]
        show, entries = parse_setlist(rows, "2025-07-25")
        assert show.venue == "Madison Square Garden"
        assert [(e.set_label, e.position, e.song) for e in entries] == [
            ("1", 1, "Tweezer"), ("1", 2, "Sand"), ("2", 1, "Carini"),
            ("e", 1, "Tweezer Reprise")]
        assert entries[0].song_id == 101
        assert entries[0].transition == ","

    def test_row_order_follows_position(self):
        rows = [_row("Sand", position=2), _row("Tweezer", position=1)]
        _, entries = parse_setlist(rows, "2025-07-25")
        assert [e.song for e in entries] == ["Tweezer", "Sand"]

    def test_no_rows(self):
        with pytest.raises(NotFound):
            parse_setlist([], "2025-07-25")

    def test_mixed_dates(self):
        rows = [_row(date="2025-07-25"), _row(date="2025-07-26", position=2)]
        with pytest.raises(DataInconsistency):
            parse_setlist(rows, "2025-07-25")

    def test_wrong_date(self):
        with pytest.raises(DataInconsistency):
            parse_setlist([_row(date="2025-07-26")], "2025-07-25")


class TestParseGaps:

    def test_distinct_songs(self):
        rows = [_row("Tweezer", gap=4), _row("Tweezer", position=2, gap=0),
                _row("Sand", position=3, gap=12)]
        gaps = parse_gaps(rows)
        assert [(g.song, g.gap) for g in gaps] == [("Tweezer", 4), ("Sand", 12)]
        assert gaps[0].show_date == "2025-07-25"

    def test_debut_from_footnote(self):
        rows = [_row("Oblivion", gap=0, footnote="Phish debut.")]
        assert parse_gaps(rows)[0].is_debut

    def test_debut_from_missing_gap(self):
        assert parse_gaps([_row("Oblivion", gap="")])[0].gap is None

    def test_filter_by_songs(self):
        rows = [_row("Tweezer"), _row("Sand", position=2)]
        assert [g.song for g in parse_gaps(rows, songs=["sand"])] == ["Sand"]


class TestParsePerformances:

    def test_chronological_unique(self):
        rows = [_row(date="2024-12-31"), _row(date="1997-11-22", venue="Hampton Coliseum"),
                _row(date="2024-12-31", position=2)]
        perfs = parse_performances(rows)
        assert [p.date for p in perfs] == ["1997-11-22", "2024-12-31"]
        assert perfs[0].venue == "Hampton Coliseum"


class TestTourPosition:

    def test_position(self):
        pos = tour_position(_tour_shows(), "2025-07-26")
        assert (pos.tour_name, pos.show_number, pos.total_shows) == (TOUR, 3, 4)

    def test_unknown_date(self):
        assert tour_position(_tour_shows(), "2025-07-28") is None

    def test_no_tour_name(self):
        shows = [make_show("2025-07-25", tour_name=None)]
        assert tour_position(shows, "2025-07-25") is None


class TestVenueRun:

    def test_middle_night(self):
        run = venue_run(_tour_shows(), "2025-07-26")
        assert (run.night_number, run.total_nights) == (2, 3)
        assert run.dates == ["2025-07-25", "2025-07-26", "2025-07-27"]
        assert run.label == "N2/3"

    def test_single_night(self):
        run = venue_run(_tour_shows(), "2025-07-20")
        assert run.total_nights == 1
        assert run.label == ""

    def test_missing(self):
        assert venue_run(_tour_shows(), "2025-01-01") is None


class TestSongSlug:

    def test_slugs(self):
        assert song_slug("Harry Hood") == "harry-hood"
        assert song_slug("Punch You in the Eye") == "punch-you-in-the-eye"
        assert song_slug("Wilson's Dream") == "wilsons-dream"
        assert song_slug("") == ""


# ── Client ────────────────────────────────────────────────────────────

class FakeResponse:
    def __init__(self, data, status=200):
        self.status_code = status
        self._data = data
        self.headers = {}

    def json(self):
        return self._data


class FakeSession:
    """Serves phish.net envelopes keyed by URL path suffix."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        for suffix, data in self.routes.items():
            if url.endswith(suffix):
                return FakeResponse({"error": False, "error_message": "", "data": data})
        return FakeResponse(None, status=404)


def _client(routes, **kwargs):
    session = FakeSession(routes)
    kwargs.setdefault("cache_dir", None)
    return PhishNetClient(api_key="test-key", session=session, rate_limit=0,
                          verbose=False, **kwargs), session


def _year_rows():
    return [
        _row(date="2025-07-20", venue="Alpine Valley", city="East Troy", state="WI"),
        _row(date="2025-07-25"),
        _row(date="2025-07-26"),
        _row(date="2025-08-30", venue="Dick's", tourname="Dick's 2025"),
    ]


class TestPhishNetClient:
    """Test the client against a fake HTTP session."""

    def test_missing_api_key(self):
        client = PhishNetClient(api_key="", session=FakeSession({}), cache_dir=None)
        with pytest.raises(SourceUnavailable):
            client.fetch_shows(2025)

    def test_api_error_envelope(self):
        class ErrorSession(FakeSession):
            def get(self, url, params=None, timeout=None):
                return FakeResponse({"error": True, "error_message": "bad key", "data": []})

        client = PhishNetClient(api_key="k", session=ErrorSession({}), cache_dir=None,
                                rate_limit=0)
        with pytest.raises(SourceUnavailable, match="bad key"):
            client.fetch_shows(2025)

    def test_fetch_shows_sends_key(self):
        client, session = _client({"shows/showyear/2025.json": _year_rows()})
        shows = client.fetch_shows(2025)
        assert len(shows) == 4
        assert session.calls[0][1]["apikey"] == "test-key"

    def test_fetch_setlist_sets_tour_fields(self):
        client, _ = _client({
            "shows/showyear/2025.json": _year_rows(),
            "setlists/showdate/2025-07-26.json": [
                _row("Tweezer", date="2025-07-26"),
                _row("Sand", date="2025-07-26", position=2),
            ],
        })
        show, entries, position, run = client.fetch_setlist("2025-07-26")
        assert len(entries) == 2
        assert (show.show_number, show.total_shows) == (3, 3)
        assert position.tour_name == TOUR
        assert run.label == "N2/2"

    def test_fetch_setlist_missing(self):
        client, _ = _client({"shows/showyear/2025.json": _year_rows()})
        with pytest.raises(NotFound):
            client.fetch_setlist("2025-07-27")

    def test_fetch_gaps_reuses_setlist_via_cache(self):
        client, session = _client({
            "setlists/showdate/2025-07-25.json": [_row("Tweezer", gap=7)],
        }, cache=TTLCache())
        assert client.fetch_gaps(["Tweezer"], "2025-07-25")[0].gap == 7
        client.fetch_gaps(["Tweezer"], "2025-07-25")
        assert len(session.calls) == 1

    def test_disk_cache(self, tmp_path):
        client, session = _client({"shows/showyear/2025.json": _year_rows()},
                                  cache_dir=str(tmp_path))
        client.fetch_shows(2025)
        client.fetch_shows(2025)
        assert len(session.calls) == 1

    def test_performance_history(self):
        client, session = _client({"setlists/slug/harry-hood.json": [
            _row("Harry Hood", date="2024-08-01"), _row("Harry Hood", date="1990-01-01")]})
        perfs = client.fetch_performance_history("Harry Hood")
        assert [p.date for p in perfs] == ["1990-01-01", "2024-08-01"]
        assert session.calls[0][0].endswith("harry-hood.json")

    def test_performance_history_needs_slug(self):
        client, _ = _client({})
        with pytest.raises(NotFound):
            client.fetch_performance_history("!!!")

    def test_song_catalog(self):
        client, session = _client({"songs.json": [
            {"songid": 1, "song": "Tweezer", "artist": "Phish", "times_played": 450}]})
        assert client.fetch_song_catalog()[0].times_played == 450
        assert session.calls[0][0].endswith("/songs.json")

    def test_count_shows_between(self):
        client, _ = _client({
            "shows/showyear/2024.json": [_row(date="2024-12-30"), _row(date="2024-12-31")],
            "shows/showyear/2025.json": _year_rows(),
        })
        assert client.count_shows_between("2024-12-31", "2025-07-25") == 3
