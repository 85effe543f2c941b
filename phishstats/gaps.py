"""Rarity tracking across a tour, and historical enrichment of the rarest.

GapTracker keeps, for every song played on the tour, the occurrence with
the highest gap (shows since last played).  A later occurrence with a
smaller gap never overwrites a larger one, and debuts (no prior
performance) rank below every finite gap.

HistoricalGapResolver looks up, for only the top-N rarest songs, the
actual performance that preceded the tour occurrence so the stats can say
"last played 2019-12-31 at Madison Square Garden".  One failed lookup only
leaves that song unenriched.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

from phishstats.config import (
    CACHE_HISTORY_TTL,
    HISTORICAL_LOOKUP_DELAY,
    HISTORICAL_LOOKUP_WORKERS,
    HISTORICAL_TOP_N,
)
from phishstats.errors import NotFound, PhishStatsError
from phishstats.normalize import normalize_song_name


def _rank(gap):
    """Sort value for a gap: debuts (None) rank below gap 0."""
    return -1 if gap is None else gap


def rarity_sort_key(record):
    return (-_rank(record.gap), normalize_song_name(record.song), record.song)


class GapTracker:
    """Fold shows in chronological order, keeping each song's max gap."""

    def __init__(self, verbose=False):
        self.verbose = verbose
        self._records = {}
        self._debuts = {}
        self._aliases = {}
        self._last_date = None

    def _key(self, record):
        """Song id when known, normalized name otherwise.

        A name seen first without an id is promoted to the id key the first
        time a record carrying the id shows up.
        """
        name = normalize_song_name(record.song)
        if record.song_id is None:
            return self._aliases.setdefault(name, ("name", name))

        key = ("id", record.song_id)
        old = self._aliases.get(name)
        if old is not None and old != key and old[0] == "name":
            self._promote(old, key)
        self._aliases[name] = key
        return key

    def _promote(self, old, key):
        moved = self._records.pop(old, None)
        if moved is not None:
            current = self._records.get(key)
            if current is None or _rank(moved.gap) > _rank(current.gap):
                self._records[key] = moved
        debut = self._debuts.pop(old, None)
        if debut is not None:
            self._debuts.setdefault(key, debut)

    def update(self, record):
        """Track one gap record.  Returns True if it became the song's max."""
        key = self._key(record)
        if record.is_debut:
            self._debuts.setdefault(key, record)

        existing = self._records.get(key)
        if existing is None:
            self._records[key] = record
            return True
        if _rank(record.gap) > _rank(existing.gap):
            if self.verbose:
                print(f"    {record.song}: gap {existing.gap} → {record.gap}")
            self._records[key] = record
            return True
        return False

    def add_show(self, show):
        """Fold one EnrichedShow.  Shows must arrive in date order."""
        if self._last_date is not None and show.date < self._last_date:
            raise ValueError(
                f"shows must be folded chronologically: {show.date} after {self._last_date}"
            )
        self._last_date = show.date
        for record in show.gaps:
            self.update(record)

    def rarest(self, limit=None, include_debuts=False):
        """Songs ranked by their max tour gap, highest first, ties by name.

        Debuts are left out unless asked for or no finite gaps exist.
        """
        records = list(self._records.values())
        finite = [r for r in records if not r.is_debut]
        pool = records if include_debuts or not finite else finite
        ranked = sorted(pool, key=rarity_sort_key)
        return ranked if limit is None else ranked[:limit]

    def debuts(self):
        """Every tour debut, in the order played."""
        return sorted(self._debuts.values(), key=lambda r: (r.show_date or "", r.song))

    def get(self, song, song_id=None):
        name = normalize_song_name(song)
        key = ("id", song_id) if song_id is not None else self._aliases.get(name)
        return self._records.get(key)

    def __len__(self):
        return len(self._records)


def fold_gaps(shows, verbose=False):
    """Build a GapTracker from EnrichedShows in chronological order."""
    tracker = GapTracker(verbose=verbose)
    for show in sorted(shows, key=lambda s: s.date):
        tracker.add_show(show)
    return tracker


class HistoricalGapResolver:
    """Find the performance preceding each tour occurrence of a rare song.

    source must provide fetch_performance_history(song) and
    count_shows_between(start_date, end_date) (phish.net client).  cache is
    a TTLCache shared with the rest of the run, or None.
    """

    def __init__(self, source, cache=None, delay=HISTORICAL_LOOKUP_DELAY,
                 workers=HISTORICAL_LOOKUP_WORKERS, top_n=HISTORICAL_TOP_N,
                 verbose=True, sleep=time.sleep):
        self.source = source
        self.cache = cache
        self.delay = delay
        self.workers = max(1, workers)
        self.top_n = top_n
        self.verbose = verbose
        self._sleep = sleep

    def _cached(self, key, fetch):
        if self.cache is None:
            return fetch()
        return self.cache.get_or_fetch(key, fetch, ttl=CACHE_HISTORY_TTL)

    def _history(self, song):
        key = f"history:{normalize_song_name(song)}"
        return self._cached(key, lambda: self.source.fetch_performance_history(song))

    def _count_between(self, start, end):
        key = f"showcount:{start}:{end}"
        return self._cached(key, lambda: self.source.count_shows_between(start, end))

    def resolve(self, record):
        """Return a copy of record with its historical fields filled in.

        Raises NotFound when the song's history has no performance on the
        tour date.  A song with nothing before the tour date is a debut.
        """
        if not record.show_date:
            raise NotFound(f"{record.song}: no tour date to resolve against")

        history = sorted(self._history(record.song), key=lambda p: p.date)
        if not any(p.date == record.show_date for p in history):
            raise NotFound(f"{record.song}: not played on {record.show_date}")

        prior = [p for p in history if p.date < record.show_date]
        if not prior:
            return replace(record, gap=None, resolved_gap=None)

        previous = prior[-1]
        inclusive = self._count_between(previous.date, record.show_date)
        return replace(
            record,
            last_played=previous.date,
            historical_venue=previous.venue,
            historical_city=previous.city,
            historical_state=previous.state,
            resolved_gap=max(0, inclusive - 2),
        )

    def _try_resolve(self, index, total, record):
        try:
            resolved = self.resolve(record)
        except PhishStatsError as e:
            if self.verbose:
                print(f"    [{index + 1}/{total}] {record.song}: no historical data ({e})")
            return record
        if self.verbose:
            if resolved.is_debut:
                print(f"    [{index + 1}/{total}] {record.song}: debut")
            else:
                print(f"    [{index + 1}/{total}] {record.song}: last played "
                      f"{resolved.last_played} at {resolved.historical_venue or 'unknown venue'}")
        return resolved

    def enrich(self, records, top_n=None):
        """Resolve the first top_n records; the rest pass through unchanged."""
        top_n = self.top_n if top_n is None else top_n
        head, tail = list(records[:top_n]), list(records[top_n:])
        if not head:
            return tail

        if self.workers > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                futures = [pool.submit(self._try_resolve, i, len(head), r)
                           for i, r in enumerate(head)]
                enriched = [f.result() for f in futures]
        else:
            enriched = []
            for i, record in enumerate(head):
                if i > 0 and self.delay > 0:
                    self._sleep(self.delay)
                enriched.append(self._try_resolve(i, len(head), record))

        return enriched + tail
