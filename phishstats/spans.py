"""Calendar layout and venue-run span detection for the tour calendar.

Weeks start on Sunday.  A day's grid position within its month is
    row    = (day_index + first_weekday_offset) // 7
    column = (day_index + first_weekday_offset) % 7
so overlay badges can be placed without re-deriving the month layout.

Span detection only looks at date contiguity and venue identity.  It knows
nothing about tours, so callers filter with spans_in_window().
"""

import calendar
from datetime import date, timedelta

from phishstats.models import (
    BadgeSegment,
    CalendarDay,
    CalendarMonth,
    GridPosition,
    ShowInfo,
    VenueRunSpan,
)


def _day(iso):
    return date.fromisoformat(iso)


def group_venue_runs(items, date_of=lambda x: x.date, venue_of=lambda x: x.venue):
    """Split items into runs of consecutive calendar days at the same venue.

    Items are sorted by date first.  A date gap or a venue change closes the
    current run; the final run is flushed at the end.  Single-day runs are
    kept.
    """
    runs = []
    for item in sorted(items, key=date_of):
        if runs:
            last = runs[-1][-1]
            if (venue_of(last) == venue_of(item)
                    and _day(date_of(item)) - _day(date_of(last)) == timedelta(days=1)):
                runs[-1].append(item)
                continue
        runs.append([item])
    return runs


def run_labels(tour_dates):
    """Map date → "N1", "N2", ... for every night of a multi-night run."""
    labels = {}
    for run in group_venue_runs(tour_dates):
        if len(run) < 2:
            continue
        for night, td in enumerate(run, start=1):
            labels[td.date] = f"N{night}"
    return labels


def _month_range(first, last):
    year, month = first.year, first.month
    while (year, month) <= (last.year, last.month):
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1


def build_calendar_months(tour_dates, start=None, end=None):
    """Lay out every month from the tour's first to last date.

    start/end ("YYYY-MM-DD") widen or narrow the window.  Show days carry a
    ShowInfo with the run label; other days have show=None.
    """
    tour_dates = sorted(tour_dates, key=lambda t: t.date)
    if not tour_dates and not (start and end):
        return []
    first = _day(start) if start else _day(tour_dates[0].date)
    last = _day(end) if end else _day(tour_dates[-1].date)

    labels = run_labels(tour_dates)
    infos = {
        td.date: ShowInfo(venue=td.venue, city=td.city, state=td.state,
                          show_number=td.show_number, venue_run=labels.get(td.date))
        for td in tour_dates
    }

    months = []
    for year, month in _month_range(first, last):
        weekday, ndays = calendar.monthrange(year, month)
        days = []
        for n in range(1, ndays + 1):
            iso = date(year, month, n).isoformat()
            days.append(CalendarDay(date=iso, day_number=n, show=infos.get(iso)))
        # calendar.monthrange is Monday=0; shift so Sunday is column 0
        months.append(CalendarMonth(year=year, month=month, days=days,
                                    first_weekday_offset=(weekday + 1) % 7))
    return months


def grid_position(day_index, first_weekday_offset, iso_date):
    row, column = divmod(day_index + first_weekday_offset, 7)
    return GridPosition(week_row=row, column=column, date=iso_date)


def detect_spans(months):
    """Group show days across all months into VenueRunSpans.

    Runs continue across month boundaries (July 31 + August 1 at one venue
    is a single span).  Every date keeps its own grid position within its
    containing month.
    """
    show_days = []
    for month in months:
        for index, day in enumerate(month.days):
            if day.show is None:
                continue
            show_days.append((day, grid_position(index, month.first_weekday_offset, day.date)))

    spans = []
    runs = group_venue_runs(show_days,
                            date_of=lambda x: x[0].date,
                            venue_of=lambda x: x[0].show.venue)
    for run in runs:
        head = run[0][0].show
        spans.append(VenueRunSpan(
            venue=head.venue,
            city=head.city,
            state=head.state,
            dates=[d.date for d, _ in run],
            grid_positions=[g for _, g in run],
        ))
    return spans


def badge_segments(span):
    """Split a span into one segment per (month, week row) it touches."""
    segments = []
    for iso, pos in zip(span.dates, span.grid_positions):
        month = iso[:7]
        if segments and segments[-1].month == month and segments[-1].week_row == pos.week_row:
            seg = segments[-1]
            seg.end_column = pos.column
            seg.dates.append(iso)
            continue
        segments.append(BadgeSegment(month=month, week_row=pos.week_row,
                                     start_column=pos.column, end_column=pos.column,
                                     dates=[iso]))
    if segments:
        segments[0].is_first = True
        segments[-1].is_last = True
    return segments


def spans_in_window(spans, start, end):
    """Spans with at least one date inside [start, end] (ISO dates)."""
    return [s for s in spans if s.dates and s.start_date <= end and s.end_date >= start]
