"""phish.in API v2 client, used for track durations only.

phish.in publishes audio some time after a show, so a 404 or a show
without tracks simply means "no durations yet" and yields an empty list.
Set names are mapped onto phish.net set codes ("Set 1" → "1",
"Encore" → "e") so the reconciler can compare sets directly.  Banter,
tuning, and other non-song tracks are dropped.
"""

import re

from phishstats.cache import read_cache, write_cache
from phishstats.config import (
    CACHE_SETLIST_TTL,
    PI_API_BASE,
    PI_CACHE_DIR,
    PI_RATE_LIMIT,
    SET_LABEL_ALIASES,
)
from phishstats.errors import DataInconsistency, NotFound
from phishstats.http_utils import api_get_with_retry, create_session
from phishstats.models import DurationEntry
from phishstats.normalize import clean_title, is_non_song

SOURCE = "phish.in"


def normalize_set_label(set_name):
    """phish.in set name → phish.net set code.  Missing means set 1."""
    if set_name is None:
        return "1"
    key = re.sub(r"\s+", " ", str(set_name).strip().lower())
    if not key:
        return "1"
    return SET_LABEL_ALIASES.get(key, key)


def _track_song_id(track):
    songs = track.get("songs") or []
    if songs and isinstance(songs[0], dict):
        return songs[0].get("id")
    return None


def parse_durations(data, show_date):
    """DurationEntries from a phish.in show payload.

    Positions are renumbered within each set (1-based) in phish.in track
    order.  Raises DataInconsistency if the payload is for another date.
    """
    if not data:
        return []
    if not isinstance(data, dict):
        raise DataInconsistency(f"{SOURCE}: unexpected payload for {show_date}")
    payload_date = data.get("date")
    if payload_date and payload_date != show_date:
        raise DataInconsistency(f"{SOURCE}: asked for {show_date}, got {payload_date}")

    tracks = sorted(data.get("tracks") or [], key=lambda t: t.get("position") or 0)
    durations = []
    counts = {}
    for track in tracks:
        title = clean_title(track.get("title"))
        duration_ms = track.get("duration")
        if not title or not duration_ms or is_non_song(title):
            continue
        label = normalize_set_label(track.get("set_name"))
        counts[label] = counts.get(label, 0) + 1
        durations.append(DurationEntry(
            set_label=label,
            position=counts[label],
            song=title,
            duration_seconds=round(duration_ms / 1000),
            song_id=_track_song_id(track),
        ))
    return durations


class PhishInClient:
    """Source B."""

    def __init__(self, session=None, cache=None, cache_dir=PI_CACHE_DIR,
                 rate_limit=PI_RATE_LIMIT, verbose=True):
        self.session = session or create_session()
        self.cache = cache
        self.cache_dir = cache_dir
        self.rate_limit = rate_limit
        self.verbose = verbose

    def _fetch_show(self, show_date):
        if self.cache_dir:
            cached = read_cache(self.cache_dir, show_date, max_age_seconds=CACHE_SETLIST_TTL)
            if cached is not None:
                return cached
        data = api_get_with_retry(self.session, f"{PI_API_BASE}/shows/{show_date}",
                                  rate_limit=self.rate_limit, source=SOURCE)
        # Only cache shows whose audio is up; an empty show may fill in later
        if self.cache_dir and isinstance(data, dict) and data.get("tracks"):
            write_cache(self.cache_dir, show_date, data)
        return data

    def fetch_show(self, show_date):
        """Raw show payload, or None when phish.in has no such show."""
        def fetch():
            try:
                return self._fetch_show(show_date)
            except NotFound:
                return None

        if self.cache is None:
            return fetch()
        return self.cache.get_or_fetch(f"pi:show-{show_date}", fetch, ttl=CACHE_SETLIST_TTL)

    def fetch_durations(self, show_date):
        data = self.fetch_show(show_date)
        if not data:
            if self.verbose:
                print(f"    {SOURCE}: no audio for {show_date} yet")
            return []
        return parse_durations(data, show_date)
