"""Position-based reconciliation of phish.net setlists with phish.in durations.

The phish.net setlist order is the source of truth for what was played
when.  phish.in's track order is advisory: the two sites can disagree on
set boundaries (encores, soundchecks) and phish.in may split or drop
tracks.  Matching therefore goes position first, validated by name, with a
show-wide exact-name fallback:

  1. Group durations by set label, ordered by phish.in position.
  2. Each setlist entry's zero-based position within its set is a running
     count, so duplicate song names get distinct positions.
  3. The duration at the same position in the same set is a candidate.
  4. The candidate is accepted if the names are equal, one contains the
     other, or their edit-distance similarity exceeds the threshold.
  5. Otherwise search the whole show for an exact normalized-name match.
     The fallback only fires when it is unambiguous; anything else is left
     as "duration unavailable" rather than guessed.
"""

from collections import Counter, defaultdict
from dataclasses import replace

from phishstats.config import DURATION_COUNT_TOLERANCE, NAME_SIMILARITY_THRESHOLD
from phishstats.models import EnrichedShow, ReconciledEntry
from phishstats.normalize import names_match, normalize_song_name


def set_positions(setlist):
    """Zero-based position of every setlist entry within its own set."""
    seen = defaultdict(int)
    positions = []
    for entry in setlist:
        positions.append(seen[entry.set_label])
        seen[entry.set_label] += 1
    return positions


def _group_by_set(durations):
    groups = defaultdict(list)
    for d in durations:
        groups[d.set_label].append(d)
    for group in groups.values():
        group.sort(key=lambda d: d.position)
    return groups


def match_durations(setlist, durations, threshold=NAME_SIMILARITY_THRESHOLD):
    """Map setlist index → DurationEntry.  Unmatched indices are absent.

    Never raises on mismatched list lengths and never assigns one duration
    to two setlist entries.  Deterministic for identical input.
    """
    if not setlist or not durations:
        return {}

    groups = _group_by_set(durations)
    positions = set_positions(setlist)
    matches = {}
    claimed = set()

    # Pass 1: positional candidates validated by name
    for i, entry in enumerate(setlist):
        group = groups.get(entry.set_label, [])
        pos = positions[i]
        if pos >= len(group):
            continue
        candidate = group[pos]
        if names_match(entry.song, candidate.song, threshold):
            matches[i] = candidate
            claimed.add(id(candidate))

    # Pass 2: show-wide exact-name fallback for whatever is left
    setlist_counts = Counter(normalize_song_name(e.song) for e in setlist)
    by_name = defaultdict(list)
    for d in durations:
        by_name[normalize_song_name(d.song)].append(d)

    for i, entry in enumerate(setlist):
        if i in matches:
            continue
        key = normalize_song_name(entry.song)
        if not key or setlist_counts[key] != 1:
            continue
        candidates = [d for d in by_name.get(key, []) if id(d) not in claimed]
        if len(candidates) != 1:
            continue
        matches[i] = candidates[0]
        claimed.add(id(candidates[0]))

    return matches


def match_gaps(setlist, gaps):
    """Map setlist index → GapRecord by song id, then by normalized name.

    Gap records are per (song, show), so a song played twice in one show
    shares the same record.
    """
    by_id = {g.song_id: g for g in gaps if g.song_id is not None}
    by_name = {}
    for g in gaps:
        by_name.setdefault(normalize_song_name(g.song), g)

    matches = {}
    for i, entry in enumerate(setlist):
        gap = None
        if entry.song_id is not None:
            gap = by_id.get(entry.song_id)
        if gap is None:
            gap = by_name.get(normalize_song_name(entry.song))
        if gap is not None:
            matches[i] = gap
    return matches


def _stamp_tour_context(gaps, show, venue_run):
    """Copies of the gap records carrying date/venue from the same phish.net show."""
    label = (venue_run.label if venue_run else None) or None
    return [
        replace(g, show_date=show.date, venue=show.venue, city=show.city,
                state=show.state, venue_run=label)
        for g in gaps
    ]


def reconcile(show, setlist, durations, gaps, venue_run=None, verbose=False):
    """Build the EnrichedShow for one show.

    show, setlist and gaps come from phish.net; durations from phish.in
    (empty when audio is not published yet).  Completeness flags record
    which facets were available.
    """
    setlist = list(setlist or [])
    durations = list(durations or [])
    gaps = _stamp_tour_context(gaps or [], show, venue_run)

    duration_matches = match_durations(setlist, durations)
    gap_matches = match_gaps(setlist, gaps)

    entries = [
        ReconciledEntry(entry=e, duration=duration_matches.get(i), gap=gap_matches.get(i))
        for i, e in enumerate(setlist)
    ]

    enriched = EnrichedShow(
        show=show,
        entries=entries,
        durations=durations,
        gaps=gaps,
        venue_run=venue_run,
        has_setlist=bool(setlist),
        has_durations=bool(durations),
        has_gaps=bool(gaps),
        count_mismatch=bool(setlist and durations) and (
            abs(len(setlist) - len(durations)) > DURATION_COUNT_TOLERANCE),
    )

    if verbose and setlist and durations:
        if enriched.count_mismatch:
            print(f"    {show.date}: {len(setlist)} setlist songs vs "
                  f"{len(durations)} phish.in tracks")
        if enriched.unavailable_count:
            print(f"    {show.date}: {enriched.unavailable_count} of {len(entries)} "
                  f"songs without a duration")

    return enriched
