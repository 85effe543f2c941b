"""Change detection: decide whether stored records or statistics are stale.

Each check compares freshly collected data against what the store already
holds and returns (should_update, reason).  Reasons are short snake_case
strings that end up in the CLI output and in TourControl.update_reason.
"""


def should_regenerate(existing_stats, control):
    """Whether the tour statistics need recomputing.

    Unchanged when the tour, its latest played show, and the number of
    shows with durations all match the last snapshot's provenance.
    """
    if existing_stats is None:
        return True, "initial_creation"
    if control is None or control.latest_show is None:
        return False, "no_shows_played"
    if existing_stats.tour_name != control.tour_name:
        return True, "tour_change"
    if existing_stats.latest_show_processed != control.latest_show.date:
        return True, "new_show"
    if existing_stats.shows_with_durations != control.shows_with_durations:
        return True, "durations_updated"
    return False, "unchanged"


def show_needs_update(existing, new):
    """Whether a freshly reconciled show should replace the stored record.

    A transient phish.in outage must not erase durations already stored, so
    a new record missing a facet the stored one has is never written.
    """
    if existing is None:
        return True, "new_record"
    for facet in ("has_setlist", "has_durations", "has_gaps"):
        if getattr(existing, facet) and not getattr(new, facet):
            return False, "existing_more_complete"
    for facet in ("has_setlist", "has_durations", "has_gaps"):
        if getattr(new, facet) and not getattr(existing, facet):
            return True, "more_complete"
    if len(new.entries) != len(existing.entries):
        return True, "setlist_changed"
    if len(new.durations) != len(existing.durations):
        return True, "durations_changed"
    if len(new.gaps) != len(existing.gaps):
        return True, "gaps_changed"
    return False, "unchanged"


def control_needs_update(existing, new):
    """Whether the tour control record should be rewritten."""
    if existing is None:
        return True, "initial_creation"
    existing_latest = existing.latest_show.date if existing.latest_show else None
    new_latest = new.latest_show.date if new.latest_show else None
    if existing_latest != new_latest:
        return True, "new_show"
    if existing.tour_name != new.tour_name:
        return True, "tour_change"
    if existing.played_shows != new.played_shows:
        return True, "show_played"
    if existing.shows_with_durations != new.shows_with_durations:
        return True, "durations_updated"
    if [f.to_dict() for f in existing.future_tours] != [f.to_dict() for f in new.future_tours]:
        return True, "future_tours_changed"
    return False, "unchanged"
