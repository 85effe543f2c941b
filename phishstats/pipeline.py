"""Scheduled jobs: tour control update, show collection, statistics, export.

Each job reads the store, talks to the sources, and writes back only what
the change detector says has changed.  A single show that fails to fetch
is stored with its completeness flags lowered instead of aborting the run.
"""

import os
from datetime import date, datetime, timezone

from phishstats import db
from phishstats.analyze import fold_statistics
from phishstats.cache import write_json
from phishstats.changes import control_needs_update, should_regenerate, show_needs_update
from phishstats.errors import PhishStatsError
from phishstats.models import Show
from phishstats.reconcile import reconcile
from phishstats.tour import build_tour_control, determine_current_tour, find_latest_tour_from_history


def _now():
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def collect_show(tour_date, source_a, source_b, tour_name=None, verbose=True):
    """Fetch one show from both sources and reconcile it.

    Any facet that fails to load is left empty and its flag stays False.
    Without a setlist the show's venue comes from the tour date, which
    phish.net supplied as well.
    """
    show_date = tour_date.date
    show, setlist, venue_run = None, [], None
    try:
        show, setlist, _, venue_run = source_a.fetch_setlist(show_date)
    except PhishStatsError as e:
        if verbose:
            print(f"    {show_date}: no setlist ({e})")
    if show is None:
        show = Show(date=show_date, venue=tour_date.venue, city=tour_date.city,
                    state=tour_date.state, show_number=tour_date.show_number or None)
    if show.tour_name is None:
        show.tour_name = tour_name

    gaps = []
    if setlist:
        try:
            gaps = source_a.fetch_gaps([e.song for e in setlist], show_date)
        except PhishStatsError as e:
            if verbose:
                print(f"    {show_date}: no gaps ({e})")

    durations = []
    try:
        durations = source_b.fetch_durations(show_date)
    except PhishStatsError as e:
        if verbose:
            print(f"    {show_date}: no durations ({e})")

    return reconcile(show, setlist, durations, gaps, venue_run=venue_run, verbose=verbose)


def update_tour_control(conn, source_a, today=None, verbose=True):
    """Rebuild the tour control record and save it if anything changed.

    Returns (control, updated, reason).  control is None when no tour
    could be found this year or in the last few.
    """
    today = today or date.today().isoformat()
    year = int(today[:4])

    if verbose:
        print(f"  Fetching {year} shows from phish.net...")
    shows = source_a.fetch_shows(year)
    tour_name, latest = determine_current_tour(shows, today)
    tour_shows = shows
    if not tour_name:
        if verbose:
            print("  No tour this year, searching earlier years...")
        tour_name, latest, tour_shows = find_latest_tour_from_history(
            source_a, year - 1, today, verbose=verbose)
    if not tour_name:
        if verbose:
            print("  No tour found")
        return None, False, "no_tour_found"

    if verbose:
        print(f"  Current tour: {tour_name}")
        print(f"  Latest show: {latest.date if latest else 'none yet'}")

    with_durations = {s.date for s in db.load_show_records(conn) if s.has_durations}
    control = build_tour_control(tour_shows, tour_name, today, future_shows=shows,
                                 durations_available=with_durations)

    existing = db.load_tour_control(conn)
    needed, reason = control_needs_update(existing, control)
    if not needed:
        if verbose:
            print("  Tour control unchanged")
        return existing, False, reason

    control.updated_at = _now()
    control.update_reason = reason
    db.save_tour_control(conn, control)
    if verbose:
        print(f"  Tour control updated: {reason}")
    return control, True, reason


def update_shows(conn, source_a, source_b, verbose=True):
    """Collect every played show of the current tour that isn't complete.

    Returns a summary dict of counts.
    """
    summary = {"checked": 0, "saved": 0, "skipped_complete": 0, "kept_existing": 0}
    control = db.load_tour_control(conn)
    if control is None:
        if verbose:
            print("  No tour control record. Run 'update-tour' first.")
        return summary

    before = control.shows_with_durations
    played = [t for t in control.tour_dates if t.played]
    for i, tour_date in enumerate(played):
        existing = db.load_show_record(conn, tour_date.date)
        if existing is not None and existing.is_complete:
            summary["skipped_complete"] += 1
            tour_date.durations_available = True
            continue

        summary["checked"] += 1
        if verbose:
            print(f"  [{i + 1}/{len(played)}] {tour_date.date} {tour_date.venue}")
        new = collect_show(tour_date, source_a, source_b, tour_name=control.tour_name,
                           verbose=verbose)
        needed, reason = show_needs_update(existing, new)
        if needed:
            db.save_show_record(conn, new)
            summary["saved"] += 1
            current = new
        else:
            if reason == "existing_more_complete":
                summary["kept_existing"] += 1
            current = existing
        tour_date.durations_available = current.has_durations
        if verbose:
            print(f"    {reason}: {current.matched_count}/{len(current.entries)} "
                  f"songs with durations")

    if control.shows_with_durations != before:
        control.updated_at = _now()
        control.update_reason = "durations_updated"
        db.save_tour_control(conn, control)

    if verbose:
        print(f"  Shows: {summary['saved']} saved, {summary['skipped_complete']} already "
              f"complete, {summary['kept_existing']} kept over less complete data")
    return summary


def generate_statistics(conn, resolver=None, catalog=None, force=False, now=None,
                        verbose=True):
    """Recompute tour statistics when the change detector says so.

    Returns (statistics or None, reason).  When nothing changed the stored
    snapshot is returned untouched.  The snapshot's provenance is copied
    from the tour control record it was checked against, so a played date
    without a setlist yet does not leave it stale forever.
    """
    control = db.load_tour_control(conn)
    if control is None:
        if verbose:
            print("  No tour control record. Run 'update-tour' first.")
        return None, "no_tour_control"

    existing = db.load_statistics(conn)
    regenerate, reason = should_regenerate(existing, control)
    if force:
        regenerate, reason = True, "forced"
    if not regenerate:
        if verbose:
            print(f"  Statistics up to date ({reason})")
        return existing, reason

    if verbose:
        print(f"  Regenerating statistics ({reason})...")
    shows = db.load_show_records(conn, control.played_dates())
    stats = fold_statistics(control.tour_name, shows, resolver=resolver, catalog=catalog,
                            now=now, verbose=verbose)
    stats.latest_show_processed = control.latest_show.date if control.latest_show else None
    stats.shows_with_durations = control.shows_with_durations
    db.save_statistics(conn, stats)
    return stats, reason


def export_json(conn, out_dir, verbose=True):
    """Write the store's records as static JSON files.  Returns the paths."""
    written = []
    control = db.load_tour_control(conn)
    if control is not None:
        path = os.path.join(out_dir, "tour-dashboard.json")
        write_json(path, control.to_dict(), indent=2)
        written.append(path)

    stats = db.load_statistics(conn)
    if stats is not None:
        path = os.path.join(out_dir, "tour-statistics.json")
        write_json(path, stats.to_dict(), indent=2)
        written.append(path)

    for show in db.load_show_records(conn):
        path = os.path.join(out_dir, "shows", f"show-{show.date}.json")
        write_json(path, show.to_dict(), indent=2)
        written.append(path)

    if verbose:
        print(f"  Exported {len(written)} files to {out_dir}")
    return written
