"""CLI with subcommands for the Phish tour statistics pipeline."""

import argparse
import sys

from phishstats import db
from phishstats.analyze import format_gap
from phishstats.cache import TTLCache
from phishstats.changes import should_regenerate
from phishstats.config import CACHE_DEFAULT_TTL, CALENDAR_PATH, EXPORT_DIR
from phishstats.errors import PhishStatsError, StoreCorruption


def _sources():
    """phish.net and phish.in clients sharing one in-memory cache."""
    from phishstats.phishin import PhishInClient
    from phishstats.phishnet import PhishNetClient

    cache = TTLCache(default_ttl=CACHE_DEFAULT_TTL)
    return PhishNetClient(cache=cache), PhishInClient(cache=cache), cache


def cmd_update_tour(args):
    """Refresh the tour control record from phish.net."""
    from phishstats.pipeline import update_tour_control

    conn = db.get_connection()
    try:
        source_a, _, _ = _sources()
        print("Updating tour control...")
        update_tour_control(conn, source_a, today=args.today)
    finally:
        conn.close()


def cmd_update_shows(args):
    """Collect and reconcile every played show of the current tour."""
    from phishstats.pipeline import update_shows

    conn = db.get_connection()
    try:
        source_a, source_b, _ = _sources()
        print("Updating show records...")
        update_shows(conn, source_a, source_b)
    finally:
        conn.close()


def _song_catalog(source_a):
    """phish.net's song list, or None when it can't be fetched."""
    try:
        return source_a.fetch_song_catalog()
    except PhishStatsError as e:
        print(f"  Song catalog unavailable ({e}), skipping common songs not played")
        return None


def cmd_stats(args):
    """Regenerate tour statistics if the store has changed."""
    from phishstats.gaps import HistoricalGapResolver
    from phishstats.pipeline import generate_statistics

    conn = db.get_connection()
    try:
        source_a, _, cache = _sources()
        resolver, catalog = None, None
        if not args.no_history:
            resolver = HistoricalGapResolver(source_a, cache=cache, workers=args.workers)
            catalog = _song_catalog(source_a)
        print("Generating tour statistics...")
        stats, _ = generate_statistics(conn, resolver=resolver, catalog=catalog,
                                       force=args.force)
        if stats is not None:
            print_statistics(stats)
    finally:
        conn.close()


def print_statistics(stats):
    print(f"\n  {stats.tour_name}")
    if not stats.has_data:
        print("    No statistics yet.")
        return
    print("  Longest songs:")
    for s in stats.longest_songs:
        run = f" {s.venue_run}" if s.venue_run else ""
        print(f"    {s.formatted_duration:>6s}  {s.song}  ({s.show_date}, {s.venue}{run})")
    print("  Rarest songs:")
    for g in stats.rarest_songs:
        line = f"    {format_gap(g.gap):>14s}  {g.song}  ({g.show_date}, {g.venue})"
        if g.is_enriched:
            line += f"  last played {g.last_played} at {g.historical_venue or 'unknown venue'}"
        print(line)
    print("  Most played:")
    for m in stats.most_played_songs:
        print(f"    {m.play_count:>6d}  {m.song}")
    if stats.debuts:
        print("  Debuts:")
        for d in stats.debuts:
            print(f"    {d.show_date}  {d.song}")
    if stats.openers_closers:
        print("  Openers and closers:")
        for slot in stats.openers_closers:
            top = slot.songs[0]
            print(f"    {slot.key:>10s}  {top.song} ({top.count}x)")
    if stats.set_song_stats:
        print("  Songs per set:")
        for s in stats.set_song_stats:
            print(f"    {s.set_label:>10s}  {s.min_songs}-{s.max_songs}")
    if stats.repeats:
        print("  Repeats:")
        for r in stats.repeats:
            print(f"    {r.date}  {r.repeats}/{r.total_songs} ({r.repeat_percentage}%)"
                  f"  avg gap {r.average_gap}")
    if stats.common_songs_not_played:
        print("  Common songs not played:")
        for s in stats.common_songs_not_played:
            print(f"    {s.times_played:>6d}  {s.song}")


def cmd_status(args):
    """Show store statistics and what the next stats run would do."""
    conn = db.get_connection()
    try:
        _print_status(conn)
    finally:
        conn.close()


def _print_status(conn):
    stats = db.db_stats(conn)
    print(f"  Show records:       {stats['shows']}")
    print(f"  With setlist:       {stats['shows_has_setlist']}")
    print(f"  With durations:     {stats['shows_has_durations']}")
    print(f"  With gaps:          {stats['shows_has_gaps']}")
    for show in db.load_show_records(conn):
        if show.count_mismatch:
            print(f"  Count mismatch:     {show.date} ({len(show.entries)} songs, "
                  f"{len(show.durations)} phish.in tracks)")

    control = db.load_tour_control(conn)
    if control is None:
        print("  No tour control record. Run 'update-tour' first.")
        return
    print(f"  Tour:               {control.tour_name} ({control.start_date} to {control.end_date})")
    print(f"  Played:             {control.played_shows}/{control.total_shows}")
    if control.latest_show:
        latest = control.latest_show
        print(f"  Latest show:        {latest.date} {latest.venue}, {latest.city}")
    if control.next_show:
        print(f"  Next show:          {control.next_show.date} {control.next_show.venue}")
    for tour in control.future_tours:
        print(f"  Upcoming:           {tour.name} ({tour.start_date}, {tour.shows} shows)")

    regenerate, reason = should_regenerate(db.load_statistics(conn), control)
    print(f"  Statistics:         {'stale' if regenerate else 'current'} ({reason})")


def cmd_export(args):
    """Export the store as static JSON files."""
    from phishstats.pipeline import export_json

    conn = db.get_connection()
    try:
        export_json(conn, args.output)
    finally:
        conn.close()


def cmd_calendar(args):
    """Render the tour calendar PNG (requires the viz extra)."""
    from phishstats.viz import render_calendar

    conn = db.get_connection()
    try:
        control = db.load_tour_control(conn)
    finally:
        conn.close()
    if control is None:
        print("No tour control record. Run 'update-tour' first.")
        sys.exit(1)
    render_calendar(control, args.output)


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="phishstats",
        description="Phish tour statistics from phish.net and phish.in",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # update-tour
    p_tour = subparsers.add_parser("update-tour", help="Refresh the tour control record")
    p_tour.add_argument("--today", default=None,
                        help="Treat this date (YYYY-MM-DD) as today")
    p_tour.set_defaults(func=cmd_update_tour)

    # update-shows
    p_shows = subparsers.add_parser("update-shows", help="Collect played shows of the tour")
    p_shows.set_defaults(func=cmd_update_shows)

    # stats
    p_stats = subparsers.add_parser("stats", help="Regenerate tour statistics")
    p_stats.add_argument("--force", action="store_true",
                         help="Regenerate even if nothing changed")
    p_stats.add_argument("--no-history", action="store_true",
                         help="Skip historical lookups and the song catalog")
    p_stats.add_argument("--workers", type=int, default=1,
                         help="Parallel historical lookups (default: 1)")
    p_stats.set_defaults(func=cmd_stats)

    # status
    p_status = subparsers.add_parser("status", help="Show store status")
    p_status.set_defaults(func=cmd_status)

    # export
    p_export = subparsers.add_parser("export", help="Export records as JSON")
    p_export.add_argument("-o", "--output", default=EXPORT_DIR,
                          help=f"Output directory (default: {EXPORT_DIR})")
    p_export.set_defaults(func=cmd_export)

    # calendar
    p_cal = subparsers.add_parser("calendar", help="Render the tour calendar PNG")
    p_cal.add_argument("-o", "--output", default=CALENDAR_PATH,
                       help=f"Output file (default: {CALENDAR_PATH})")
    p_cal.set_defaults(func=cmd_calendar)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except StoreCorruption as e:
        print(f"Store corrupted: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
