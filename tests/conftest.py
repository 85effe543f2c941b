"""Shared fixtures, record factories, and fake sources for phishstats tests."""

import pytest

from phishstats import db
from phishstats.errors import NotFound
from phishstats.models import (
    DurationEntry,
    GapRecord,
    Performance,
    SetlistEntry,
    Show,
    TourControl,
    TourDate,
)
from phishstats.reconcile import reconcile

TOUR = "2025 Summer Tour"


@pytest.fixture
def conn():
    """Fresh in-memory database with schema applied."""
    c = db.get_connection(db_path=":memory:")
    yield c
    c.close()


def make_show(date="2025-07-25", venue="Madison Square Garden", city="New York",
              state="NY", tour_name=TOUR, **kwargs):
    return Show(date=date, venue=venue, city=city, state=state, tour_name=tour_name, **kwargs)


def make_setlist(*songs, set_label="1"):
    """SetlistEntries from song names or (set_label, song) tuples."""
    entries = []
    counts = {}
    for item in songs:
        label, song = item if isinstance(item, tuple) else (set_label, item)
        counts[label] = counts.get(label, 0) + 1
        entries.append(SetlistEntry(set_label=label, position=counts[label], song=song))
    return entries


def make_durations(*pairs, set_label="1"):
    """DurationEntries from (song, seconds) or (set_label, song, seconds)."""
    durations = []
    counts = {}
    for item in pairs:
        label, song, seconds = item if len(item) == 3 else (set_label, *item)
        counts[label] = counts.get(label, 0) + 1
        durations.append(DurationEntry(set_label=label, position=counts[label],
                                       song=song, duration_seconds=seconds))
    return durations


def make_gap(song, gap, song_id=None, **kwargs):
    return GapRecord(song=song, gap=gap, song_id=song_id, **kwargs)


def make_enriched(date="2025-07-25", songs=(), durations=(), gaps=(), venue_run=None,
                  **show_kwargs):
    """Reconcile a show from plain factory data."""
    show = make_show(date=date, **show_kwargs)
    return reconcile(show, make_setlist(*songs), list(durations), list(gaps),
                     venue_run=venue_run)


def make_tour_date(date, venue="Madison Square Garden", city="New York", state="NY",
                   played=True, show_number=1, durations_available=False):
    return TourDate(date=date, venue=venue, city=city, state=state, played=played,
                    show_number=show_number, durations_available=durations_available)


def make_control(tour_dates, tour_name=TOUR, year="2025", future_tours=None):
    played = [t for t in tour_dates if t.played]
    return TourControl(
        tour_name=tour_name,
        year=year,
        tour_dates=list(tour_dates),
        latest_show=played[-1] if played else None,
        future_tours=list(future_tours or []),
    )


class FakePhishNet:
    """In-memory source A.  errors maps a date, song name, or "catalog" to an exception."""

    def __init__(self, shows=(), setlists=None, gaps=None, histories=None, catalog=None,
                 errors=None):
        self.shows = sorted(shows, key=lambda s: s.date)
        self.setlists = setlists or {}
        self.gaps = gaps or {}
        self.histories = histories or {}
        self.catalog = catalog or []
        self.errors = errors or {}
        self.calls = []

    def _maybe_raise(self, key):
        if key in self.errors:
            raise self.errors[key]

    def fetch_shows(self, year):
        self.calls.append(("fetch_shows", year))
        self._maybe_raise(f"year:{year}")
        return [s for s in self.shows if s.date.startswith(str(year))]

    def fetch_setlist(self, show_date):
        self.calls.append(("fetch_setlist", show_date))
        self._maybe_raise(show_date)
        if show_date not in self.setlists:
            raise NotFound(f"no setlist for {show_date}")
        show, entries, position, run = self.setlists[show_date]
        return Show(**show.to_dict()), list(entries), position, run

    def fetch_gaps(self, songs, show_date):
        self.calls.append(("fetch_gaps", show_date))
        self._maybe_raise(f"gaps:{show_date}")
        return list(self.gaps.get(show_date, []))

    def fetch_performance_history(self, song):
        self.calls.append(("fetch_performance_history", song))
        self._maybe_raise(song)
        return [Performance(**p) if isinstance(p, dict) else p
                for p in self.histories.get(song, [])]

    def fetch_song_catalog(self):
        self.calls.append(("fetch_song_catalog",))
        self._maybe_raise("catalog")
        return list(self.catalog)

    def count_shows_between(self, start_date, end_date):
        self.calls.append(("count_shows_between", start_date, end_date))
        return sum(1 for s in self.shows if start_date <= s.date <= end_date)


class FakePhishIn:
    """In-memory source B."""

    def __init__(self, durations=None, errors=None):
        self.durations = durations or {}
        self.errors = errors or {}

    def fetch_durations(self, show_date):
        if show_date in self.errors:
            raise self.errors[show_date]
        return list(self.durations.get(show_date, []))
