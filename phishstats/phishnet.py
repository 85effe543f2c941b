"""phish.net API v5 client: setlists, venues, tour positions, and gaps.

phish.net is the authority for everything except durations.  Venue, city,
state, and date on every derived record come from here, never from
phish.in.

Responses are cached in two layers: the run's TTLCache (when given) and
the on-disk JSON cache under PN_CACHE_DIR.  Parsing is done by the pure
parse_* helpers so tests can feed recorded payloads without a network.
"""

import re

from phishstats.cache import read_cache, write_cache
from phishstats.config import (
    ARTIST_NAME,
    CACHE_CATALOG_TTL,
    CACHE_HISTORY_TTL,
    CACHE_SETLIST_TTL,
    CACHE_YEAR_SHOWS_TTL,
    PN_API_BASE,
    PN_API_KEY,
    PN_CACHE_DIR,
    PN_RATE_LIMIT,
)
from phishstats.errors import DataInconsistency, NotFound, SourceUnavailable
from phishstats.http_utils import api_get_with_retry, create_session
from phishstats.models import (
    CatalogSong,
    GapRecord,
    Performance,
    SetlistEntry,
    Show,
    TourPosition,
    VenueRun,
)
from phishstats.normalize import normalize_song_name
from phishstats.spans import group_venue_runs

SOURCE = "phish.net"
_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ── Parsing ───────────────────────────────────────────────────────────

def _is_phish(row):
    """True for Phish rows (phish.net also lists side projects)."""
    artist_id = row.get("artistid")
    name = row.get("artist_name")
    if artist_id is None and not name:
        return True
    if str(artist_id) == "1":
        return True
    return bool(name) and ARTIST_NAME.lower() in name.lower()


def _valid_date(value):
    return isinstance(value, str) and bool(_DATE.match(value))


def _int_or_none(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _tour_name(row):
    return row.get("tourname") or row.get("tour_name") or None


def show_from_row(row):
    return Show(
        date=row["showdate"],
        venue=row.get("venue") or "Unknown Venue",
        city=row.get("city") or "",
        state=row.get("state") or None,
        country=row.get("country") or None,
        tour_name=_tour_name(row),
    )


def parse_shows(rows):
    """Phish shows from a showyear payload, one per date, in date order."""
    shows = {}
    for row in rows or []:
        if not _is_phish(row) or not _valid_date(row.get("showdate")):
            continue
        shows.setdefault(row["showdate"], show_from_row(row))
    return [shows[d] for d in sorted(shows)]


def parse_set_label(value):
    label = str(value or "1").strip().lower()
    return label or "1"


def parse_setlist(rows, show_date):
    """Show and its SetlistEntries from a showdate payload.

    Raises NotFound when no Phish rows exist for the date, and
    DataInconsistency when rows for another date are mixed in.
    """
    rows = [r for r in (rows or []) if _is_phish(r)]
    if not rows:
        raise NotFound(f"{SOURCE}: no setlist for {show_date}")
    dates = {r.get("showdate") for r in rows}
    if dates != {show_date}:
        raise DataInconsistency(
            f"{SOURCE}: setlist for {show_date} contains rows for {sorted(d or '?' for d in dates)}"
        )

    rows = sorted(rows, key=lambda r: _int_or_none(r.get("position")) or 0)
    show = show_from_row(rows[0])
    entries = []
    counts = {}
    for row in rows:
        song = (row.get("song") or "").strip()
        if not song:
            continue
        label = parse_set_label(row.get("set"))
        counts[label] = counts.get(label, 0) + 1
        entries.append(SetlistEntry(
            set_label=label,
            position=counts[label],
            song=song,
            song_id=_int_or_none(row.get("songid")),
            transition=(row.get("trans_mark") or "").strip() or None,
            footnote=(row.get("footnote") or "").strip() or None,
        ))
    return show, entries


def _is_debut(row):
    if "debut" in (row.get("footnote") or "").lower():
        return True
    return _int_or_none(row.get("gap")) is None


def parse_gaps(rows, songs=None):
    """One GapRecord per distinct song in a showdate payload.

    songs, when given, restricts the result to those names.  A missing gap
    or a "debut" footnote marks a debut (gap=None).
    """
    wanted = {normalize_song_name(s) for s in songs} if songs is not None else None
    records = []
    seen = set()
    for row in rows or []:
        if not _is_phish(row):
            continue
        song = (row.get("song") or "").strip()
        key = normalize_song_name(song)
        if not key or key in seen:
            continue
        if wanted is not None and key not in wanted:
            continue
        seen.add(key)
        records.append(GapRecord(
            song=song,
            gap=None if _is_debut(row) else _int_or_none(row.get("gap")),
            song_id=_int_or_none(row.get("songid")),
            show_date=row.get("showdate"),
        ))
    return records


def parse_performances(rows):
    """Chronological, one-per-date Performances from a song history payload."""
    seen = {}
    for row in rows or []:
        if not _is_phish(row) or not _valid_date(row.get("showdate")):
            continue
        seen.setdefault(row["showdate"], Performance(
            date=row["showdate"],
            venue=row.get("venue") or None,
            city=row.get("city") or None,
            state=row.get("state") or None,
        ))
    return [seen[d] for d in sorted(seen)]


def parse_song_catalog(rows):
    """CatalogSongs from a songs.json payload, skipping rows without a name."""
    catalog = []
    for row in rows or []:
        song = (row.get("song") or "").strip()
        if not song:
            continue
        catalog.append(CatalogSong(
            song=song,
            times_played=_int_or_none(row.get("times_played")) or 0,
            song_id=_int_or_none(row.get("songid")),
            artist=row.get("artist") or None,
        ))
    return catalog


def tour_position(shows, show_date):
    """Ordinal of show_date within its tour, or None if it isn't listed."""
    target = next((s for s in shows if s.date == show_date), None)
    if target is None or not target.tour_name:
        return None
    tour = sorted((s for s in shows if s.tour_name == target.tour_name), key=lambda s: s.date)
    index = [s.date for s in tour].index(show_date)
    return TourPosition(tour_name=target.tour_name, show_number=index + 1,
                        total_shows=len(tour))


def venue_run(shows, show_date):
    """The run of consecutive nights at one venue containing show_date."""
    for run in group_venue_runs(shows):
        dates = [s.date for s in run]
        if show_date in dates:
            head = run[0]
            return VenueRun(venue=head.venue, city=head.city, state=head.state,
                            night_number=dates.index(show_date) + 1,
                            total_nights=len(run), dates=dates)
    return None


def song_slug(name):
    """phish.net song slug: "Harry Hood" → "harry-hood"."""
    s = normalize_song_name(name)
    s = re.sub(r"[^a-z0-9 ]", "", s)
    return re.sub(r"\s+", "-", s.strip())


# ── Client ────────────────────────────────────────────────────────────

class PhishNetClient:
    """Source A.  Every fetch_* method raises the phishstats error types."""

    def __init__(self, api_key=PN_API_KEY, session=None, cache=None,
                 cache_dir=PN_CACHE_DIR, rate_limit=PN_RATE_LIMIT, verbose=True):
        self.api_key = api_key
        self.session = session or create_session()
        self.cache = cache
        self.cache_dir = cache_dir
        self.rate_limit = rate_limit
        self.verbose = verbose

    def _request(self, path, params=None):
        if not self.api_key:
            raise SourceUnavailable(SOURCE, "PHISH_NET_API_KEY is not set")
        query = {"apikey": self.api_key}
        query.update(params or {})
        payload = api_get_with_retry(self.session, f"{PN_API_BASE}/{path}", params=query,
                                     rate_limit=self.rate_limit, source=SOURCE)
        if not isinstance(payload, dict):
            raise DataInconsistency(f"{SOURCE}: unexpected payload for {path}")
        if payload.get("error"):
            raise SourceUnavailable(SOURCE, payload.get("error_message") or "API error")
        return payload.get("data") or []

    def _get(self, identifier, path, params=None, ttl=0):
        """Rows for path, via the in-memory cache then the disk cache."""
        def fetch():
            if self.cache_dir:
                cached = read_cache(self.cache_dir, identifier, max_age_seconds=ttl)
                if cached is not None:
                    return cached
            data = self._request(path, params)
            if self.cache_dir and data:
                write_cache(self.cache_dir, identifier, data)
            return data

        if self.cache is None:
            return fetch()
        return self.cache.get_or_fetch(f"pn:{identifier}", fetch, ttl=ttl)

    def fetch_shows(self, year):
        rows = self._get(f"showyear-{year}", f"shows/showyear/{year}.json",
                         params={"order_by": "showdate"}, ttl=CACHE_YEAR_SHOWS_TTL)
        return parse_shows(rows)

    def _setlist_rows(self, show_date):
        return self._get(f"setlist-{show_date}", f"setlists/showdate/{show_date}.json",
                         ttl=CACHE_SETLIST_TTL)

    def fetch_setlist(self, show_date):
        """(Show, [SetlistEntry], TourPosition or None, VenueRun or None)."""
        show, entries = parse_setlist(self._setlist_rows(show_date), show_date)
        year_shows = self.fetch_shows(show_date[:4])
        position = tour_position(year_shows, show_date)
        if position is not None:
            show.tour_name = position.tour_name
            show.show_number = position.show_number
            show.total_shows = position.total_shows
        return show, entries, position, venue_run(year_shows, show_date)

    def fetch_gaps(self, songs, show_date):
        return parse_gaps(self._setlist_rows(show_date), songs)

    def fetch_performance_history(self, song):
        slug = song_slug(song)
        if not slug:
            raise NotFound(f"{SOURCE}: no slug for song {song!r}")
        rows = self._get(f"song-{slug}", f"setlists/slug/{slug}.json",
                         params={"order_by": "showdate", "direction": "asc"},
                         ttl=CACHE_HISTORY_TTL)
        return parse_performances(rows)

    def fetch_song_catalog(self):
        """Every song phish.net knows, with its all-time play count."""
        return parse_song_catalog(self._get("songs", "songs.json", ttl=CACHE_CATALOG_TTL))

    def count_shows_between(self, start_date, end_date):
        """Number of Phish shows with start_date <= date <= end_date."""
        total = 0
        for year in range(int(start_date[:4]), int(end_date[:4]) + 1):
            total += sum(1 for s in self.fetch_shows(year)
                         if start_date <= s.date <= end_date)
        return total
