"""Tests for calendar layout and venue-run span detection."""

from phishstats.spans import (
    badge_segments,
    build_calendar_months,
    detect_spans,
    group_venue_runs,
    grid_position,
    run_labels,
    spans_in_window,
)
from tests.conftest import make_tour_date


def _msg_tour():
    return [
        make_tour_date("2025-07-25", venue="MSG", show_number=1),
        make_tour_date("2025-07-26", venue="MSG", show_number=2),
        make_tour_date("2025-07-27", venue="MSG", show_number=3),
        make_tour_date("2025-07-29", venue="MSG", show_number=4),
    ]


class TestGroupVenueRuns:

    def test_date_gap_splits_run(self):
        runs = group_venue_runs(_msg_tour())
        assert [len(r) for r in runs] == [3, 1]

    def test_venue_change_splits_run(self):
        dates = [make_tour_date("2025-07-25", venue="A"), make_tour_date("2025-07-26", venue="B")]
        assert [len(r) for r in group_venue_runs(dates)] == [1, 1]

    def test_unsorted_input(self):
        dates = list(reversed(_msg_tour()))
        assert [r[0].date for r in group_venue_runs(dates)] == ["2025-07-25", "2025-07-29"]

    def test_empty(self):
        assert group_venue_runs([]) == []


class TestRunLabels:

    def test_multi_night_only(self):
        labels = run_labels(_msg_tour())
        assert labels == {"2025-07-25": "N1", "2025-07-26": "N2", "2025-07-27": "N3"}


class TestBuildCalendarMonths:
    """Test month layout with Sunday-first offsets."""

    def test_single_month(self):
        months = build_calendar_months(_msg_tour())
        assert len(months) == 1
        july = months[0]
        assert (july.year, july.month, len(july.days)) == (2025, 7, 31)
        # July 1, 2025 is a Tuesday
        assert july.first_weekday_offset == 2

    def test_show_days_carry_info(self):
        july = build_calendar_months(_msg_tour())[0]
        day = july.days[25]
        assert day.date == "2025-07-26"
        assert day.is_show_date
        assert day.show.venue_run == "N2"
        assert day.show.show_number == 2
        assert not july.days[27].is_show_date
        assert july.days[28].show.venue_run is None

    def test_spans_months(self):
        dates = [make_tour_date("2025-07-30"), make_tour_date("2025-09-02")]
        months = build_calendar_months(dates)
        assert [(m.year, m.month) for m in months] == [(2025, 7), (2025, 8), (2025, 9)]
        # August 1, 2025 is a Friday
        assert months[1].first_weekday_offset == 5

    def test_year_boundary(self):
        dates = [make_tour_date("2025-12-30"), make_tour_date("2026-01-01")]
        months = build_calendar_months(dates)
        assert [(m.year, m.month) for m in months] == [(2025, 12), (2026, 1)]

    def test_empty(self):
        assert build_calendar_months([]) == []


class TestGridPosition:

    def test_row_and_column(self):
        pos = grid_position(25, 2, "2025-07-26")
        assert (pos.week_row, pos.column) == (3, 6)


class TestDetectSpans:
    """Test span contiguity and per-date grid positions."""

    def test_span_contiguity(self):
        """25-27 and 29 at one venue are two spans, never one of four."""
        spans = detect_spans(build_calendar_months(_msg_tour()))
        assert [s.nights for s in spans] == [3, 1]
        assert spans[0].dates == ["2025-07-25", "2025-07-26", "2025-07-27"]
        assert spans[1].dates == ["2025-07-29"]

    def test_grid_positions(self):
        spans = detect_spans(build_calendar_months(_msg_tour()))
        positions = [(g.week_row, g.column) for g in spans[0].grid_positions]
        # Fri 25, Sat 26, Sun 27
        assert positions == [(3, 5), (3, 6), (4, 0)]
        assert spans[0].spans_weeks
        assert not spans[0].spans_months

    def test_single_night_kept(self):
        spans = detect_spans(build_calendar_months([make_tour_date("2025-07-04")]))
        assert len(spans) == 1
        assert spans[0].nights == 1

    def test_run_across_month_boundary(self):
        dates = [make_tour_date("2025-07-31", venue="Dick's"),
                 make_tour_date("2025-08-01", venue="Dick's"),
                 make_tour_date("2025-08-02", venue="Dick's")]
        spans = detect_spans(build_calendar_months(dates))
        assert len(spans) == 1
        assert spans[0].spans_months
        assert spans[0].display_text == "New York, NY"

    def test_no_shows(self):
        months = build_calendar_months([], start="2025-07-01", end="2025-07-31")
        assert len(months) == 1
        assert detect_spans(months) == []


class TestBadgeSegments:

    def test_split_by_week_row(self):
        span = detect_spans(build_calendar_months(_msg_tour()))[0]
        segments = badge_segments(span)
        assert [(s.week_row, s.start_column, s.end_column) for s in segments] == [
            (3, 5, 6), (4, 0, 0)]
        assert segments[0].is_first and not segments[0].is_last
        assert segments[1].is_last
        assert segments[0].width == 2

    def test_split_by_month(self):
        dates = [make_tour_date("2025-07-31", venue="Dick's"),
                 make_tour_date("2025-08-01", venue="Dick's")]
        span = detect_spans(build_calendar_months(dates))[0]
        assert [s.month for s in badge_segments(span)] == ["2025-07", "2025-08"]


class TestSpansInWindow:

    def test_filters_by_overlap(self):
        spans = detect_spans(build_calendar_months(_msg_tour()))
        assert [s.start_date for s in spans_in_window(spans, "2025-07-27", "2025-07-28")] == [
            "2025-07-25"]
        assert spans_in_window(spans, "2025-08-01", "2025-08-31") == []
