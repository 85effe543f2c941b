"""Tour statistics: ranked song lists, debuts, set shapes, and repeats.

Everything here is a pure fold over EnrichedShows, so recomputing on the
same shows yields identical ranked lists.  Only the provenance fields
(latest show processed, shows with durations, generation time) describe
the run itself.
"""

from collections import Counter
from datetime import datetime, timezone

from phishstats.config import COMMON_SONG_MIN_PLAYS, DURATION_UNAVAILABLE, RESULT_LIMITS
from phishstats.gaps import fold_gaps
from phishstats.models import (
    LongestSong,
    MostPlayedSong,
    PositionSong,
    RepeatShow,
    SetPosition,
    SetSongStat,
    ShowRef,
    TourStatistics,
)
from phishstats.normalize import normalize_song_name


def format_duration(seconds):
    """125 → "2:05".  Negative values clamp to 0:00; None is unavailable."""
    if seconds is None:
        return DURATION_UNAVAILABLE
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def format_gap(gap):
    if gap is None:
        return "Debut"
    if gap == 0:
        return "Most recent"
    if gap == 1:
        return "1 show ago"
    return f"{gap} shows ago"


def _run_label(show):
    return (show.venue_run.label if show.venue_run else None) or None


def longest_songs(shows, limit=None):
    """Every matched duration on the tour, longest first.

    Ties go to the earlier show, then to setlist order within the show.
    Date, venue, and run label all come from the phish.net show.
    """
    candidates = []
    for show in shows:
        for index, rec in enumerate(show.entries):
            if rec.duration is None:
                continue
            candidates.append((-rec.duration_seconds, show.date, index, show, rec))
    candidates.sort(key=lambda c: c[:3])

    results = []
    for _, _, _, show, rec in candidates[:limit]:
        results.append(LongestSong(
            song=rec.entry.song,
            duration_seconds=rec.duration_seconds,
            formatted_duration=format_duration(rec.duration_seconds),
            show_date=show.date,
            venue=show.show.venue,
            city=show.show.city,
            state=show.show.state,
            venue_run=_run_label(show),
            set_label=rec.entry.set_label,
        ))
    return results


def _song_key(entry):
    if entry.song_id is not None:
        return ("id", entry.song_id)
    return ("name", normalize_song_name(entry.song))


def most_played_songs(shows, limit=None):
    """Play counts per song across the tour, highest first, ties by name.

    Every setlist entry counts, so a song played twice in one show counts
    twice.
    """
    counts = Counter()
    names = {}
    ids = {}
    aliases = {}
    for show in shows:
        for rec in show.entries:
            key = _song_key(rec.entry)
            name_key = ("name", normalize_song_name(rec.entry.song))
            # Collapse name-only entries onto the id seen for the same song
            if key[0] == "id":
                aliases[name_key] = key
                if name_key in counts:
                    counts[key] += counts.pop(name_key)
                    names.setdefault(key, names.pop(name_key))
            else:
                key = aliases.get(name_key, key)
            counts[key] += 1
            names.setdefault(key, rec.entry.song)
            if rec.entry.song_id is not None:
                ids[key] = rec.entry.song_id

    ranked = sorted(
        counts.items(),
        key=lambda kv: (-kv[1], normalize_song_name(names.get(kv[0], "")), str(kv[0][1])),
    )
    return [
        MostPlayedSong(song=names.get(key) or key[1], play_count=count, song_id=ids.get(key))
        for key, count in ranked[:limit]
    ]


def _set_sort_key(label):
    """Numbered sets first, then encores, then anything else (soundchecks)."""
    if label.isdigit():
        return (0, int(label), label)
    if label.startswith("e"):
        rest = label[1:]
        return (1, int(rest) if rest.isdigit() else 1, label)
    return (2, 0, label)


def _sets(show):
    """Setlist entries of one show grouped by set label, in setlist order."""
    sets = {}
    for rec in show.entries:
        sets.setdefault(rec.entry.set_label, []).append(rec.entry)
    return sets


def _show_ref(show):
    return ShowRef(date=show.date, venue=show.show.venue, city=show.show.city,
                   state=show.show.state, venue_run=_run_label(show))


_ROLE_ORDER = {"opener": 0, "closer": 1, "all": 2}


def openers_closers(shows):
    """Which songs opened and closed each set, and every song in each encore.

    A one-song set counts its song as both opener and closer.  Songs within
    a slot are ranked by count, then name.
    """
    slots = {}
    for show in shows:
        for label, entries in _sets(show).items():
            if label.startswith("e"):
                picks = [("all", e) for e in entries]
            else:
                picks = [("opener", entries[0]), ("closer", entries[-1])]
            for role, entry in picks:
                key = f"{label}_{role}"
                if key not in slots:
                    slots[key] = SetPosition(key=key, set_label=label, role=role)
                songs = slots[key].songs
                name = normalize_song_name(entry.song)
                song = next((s for s in songs if normalize_song_name(s.song) == name), None)
                if song is None:
                    song = PositionSong(song=entry.song, song_id=entry.song_id)
                    songs.append(song)
                song.count += 1

    results = sorted(slots.values(),
                     key=lambda p: (_set_sort_key(p.set_label), _ROLE_ORDER[p.role]))
    for slot in results:
        slot.songs.sort(key=lambda s: (-s.count, normalize_song_name(s.song)))
    return results


def set_song_stats(shows):
    """Fewest and most songs per set type, keeping every show that ties."""
    counts = {}
    for show in sorted(shows, key=lambda s: s.date):
        if not show.entries:
            continue
        ref = _show_ref(show)
        for label, n in Counter(rec.entry.set_label for rec in show.entries).items():
            counts.setdefault(label, []).append((n, ref))

    results = []
    for label in sorted(counts, key=_set_sort_key):
        values = [n for n, _ in counts[label]]
        low, high = min(values), max(values)
        results.append(SetSongStat(
            set_label=label,
            min_songs=low,
            max_songs=high,
            min_shows=[ref for n, ref in counts[label] if n == low],
            max_shows=[ref for n, ref in counts[label] if n == high],
        ))
    return results


def tour_repeats(shows):
    """Per show: how many of its songs were already played earlier on the tour.

    The percentage is over every setlist entry, while repeats counts each
    distinct song once.  The average gap covers entries with a gap above
    zero, so debuts are left out.
    """
    seen = set()
    results = []
    for show in sorted(shows, key=lambda s: s.date):
        songs = [normalize_song_name(rec.entry.song) for rec in show.entries]
        songs = [s for s in songs if s]
        if not songs:
            continue
        distinct = set(songs)
        repeats = len(distinct & seen)
        gaps = [rec.gap.gap for rec in show.entries if rec.gap is not None and rec.gap.gap]
        average = sum(gaps) / len(gaps) if gaps else 0.0
        results.append(RepeatShow(
            date=show.date,
            venue=show.show.venue,
            city=show.show.city,
            state=show.show.state,
            venue_run=_run_label(show),
            total_songs=len(songs),
            repeats=repeats,
            repeat_percentage=round(repeats / len(songs) * 100, 1),
            average_gap=round(average, 1),
            show_number=show.show.show_number,
            total_shows=show.show.total_shows,
        ))
        seen |= distinct
    return results


def common_songs_not_played(shows, catalog, limit=None, min_plays=COMMON_SONG_MIN_PLAYS):
    """Songs played at least min_plays times all-time that the tour has skipped.

    Ranked by all-time play count.  Empty when either the catalog or the
    tour's setlists are empty, since every song would qualify.
    """
    played = {normalize_song_name(rec.entry.song) for show in shows for rec in show.entries}
    played.discard("")
    if not catalog or not played:
        return []
    missing = [s for s in catalog
               if s.times_played >= min_plays and normalize_song_name(s.song) not in played]
    missing.sort(key=lambda s: (-s.times_played, normalize_song_name(s.song)))
    return missing[:limit]


def fold_statistics(tour_name, shows, limits=None, resolver=None, catalog=None, now=None,
                    verbose=False):
    """Fold a tour's EnrichedShows into TourStatistics.

    Args:
        tour_name: Name of the tour the shows belong to
        shows: EnrichedShows in any order; gaps are folded chronologically
        limits: Overrides for RESULT_LIMITS, keyed by list name
        resolver: Optional HistoricalGapResolver for the rarest list
        catalog: Optional CatalogSongs for the common-songs-not-played list
        now: Generation timestamp (datetime), defaults to current UTC
    """
    limits = {**RESULT_LIMITS, **(limits or {})}
    shows = sorted(shows, key=lambda s: s.date)

    tracker = fold_gaps(shows)
    rarest = tracker.rarest(limits["rarest_songs"])
    if resolver is not None:
        if verbose:
            print(f"  Enriching top {min(len(rarest), resolver.top_n)} rarest songs...")
        rarest = resolver.enrich(rarest)

    played = [s for s in shows if s.has_setlist]
    stats = TourStatistics(
        tour_name=tour_name,
        longest_songs=longest_songs(shows, limits["longest_songs"]),
        rarest_songs=rarest,
        most_played_songs=most_played_songs(shows, limits["most_played_songs"]),
        debuts=tracker.debuts(),
        openers_closers=openers_closers(shows),
        set_song_stats=set_song_stats(shows),
        repeats=tour_repeats(shows),
        common_songs_not_played=common_songs_not_played(
            shows, catalog, limits["common_songs_not_played"]),
        latest_show_processed=played[-1].date if played else None,
        shows_with_durations=sum(1 for s in shows if s.has_durations),
        generated_at=(now or datetime.now(timezone.utc)).isoformat(timespec="seconds"),
    )

    if verbose:
        print(f"  {tour_name}: {len(played)} shows, "
              f"{stats.shows_with_durations} with durations, "
              f"{len(tracker)} distinct songs, {len(stats.debuts)} debuts")
    return stats
