"""Render the tour calendar as a PNG with venue-run badges.

One panel per month, Sunday-first weeks.  Show days are filled with a
color derived from the venue name; each venue-run span gets a badge
spanning its days on every week row it touches.

Requires the viz extra (matplotlib).
"""

import zlib
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches

from phishstats.spans import badge_segments, build_calendar_months, detect_spans

BG_COLOR = "#1a1a2e"
DAY_COLOR = "#2a2a40"
TEXT_COLOR = "white"
WEEKDAYS = ["S", "M", "T", "W", "T", "F", "S"]
MONTH_NAMES = ["January", "February", "March", "April", "May", "June", "July",
               "August", "September", "October", "November", "December"]
MONTHS_PER_ROW = 3


def venue_color(venue):
    """Stable color for a venue name (same venue, same color, every run)."""
    cmap = matplotlib.colormaps["tab20"]
    return cmap(zlib.crc32(venue.encode("utf-8")) % cmap.N)


def _draw_month(ax, month, spans):
    ax.set_facecolor(BG_COLOR)
    ax.set_xlim(-0.1, 7.1)
    ax.set_ylim(6.6, -1.2)
    ax.set_aspect("equal")
    ax.axis("off")
    ax.set_title(f"{MONTH_NAMES[month.month - 1]} {month.year}", fontsize=11,
                 color=TEXT_COLOR, fontweight="bold")

    for col, name in enumerate(WEEKDAYS):
        ax.text(col + 0.5, -0.5, name, fontsize=7, color="#aaaaaa",
                ha="center", va="center")

    for index, day in enumerate(month.days):
        row, col = divmod(index + month.first_weekday_offset, 7)
        color = venue_color(day.show.venue) if day.show else DAY_COLOR
        ax.add_patch(mpatches.FancyBboxPatch(
            (col + 0.06, row + 0.06), 0.88, 0.88,
            boxstyle="round,pad=0,rounding_size=0.12",
            facecolor=color, edgecolor="none", alpha=0.9 if day.show else 1.0,
        ))
        ax.text(col + 0.5, row + 0.38, str(day.day_number), fontsize=7,
                color=TEXT_COLOR, ha="center", va="center",
                fontweight="bold" if day.show else "normal")
        if day.show and day.show.venue_run:
            ax.text(col + 0.5, row + 0.62, day.show.venue_run, fontsize=5,
                    color=TEXT_COLOR, ha="center", va="center")

    month_key = f"{month.year:04d}-{month.month:02d}"
    for span in spans:
        for seg in badge_segments(span):
            if seg.month != month_key:
                continue
            ax.add_patch(mpatches.FancyBboxPatch(
                (seg.start_column + 0.1, seg.week_row + 0.78), seg.width - 0.2, 0.16,
                boxstyle="round,pad=0,rounding_size=0.06",
                facecolor="black", edgecolor=venue_color(span.venue),
                linewidth=0.8, alpha=0.85,
            ))
            label = span.display_text if seg.is_first or seg.width > 1 else ""
            ax.text(seg.start_column + seg.width / 2, seg.week_row + 0.86, label,
                    fontsize=4, color=TEXT_COLOR, ha="center", va="center", clip_on=True)


def render_calendar(control, out_path, verbose=True):
    """Draw every month of the control's tour to out_path.  Returns the path."""
    months = build_calendar_months(control.tour_dates)
    if not months:
        if verbose:
            print("  No tour dates to draw")
        return None
    spans = detect_spans(months)

    n_cols = min(MONTHS_PER_ROW, len(months))
    n_rows = (len(months) + n_cols - 1) // n_cols
    fig, axes = plt.subplots(n_rows, n_cols, figsize=(n_cols * 3.2, n_rows * 3.4),
                             squeeze=False)
    fig.set_facecolor(BG_COLOR)

    for i, ax in enumerate(axes.flat):
        if i < len(months):
            _draw_month(ax, months[i], spans)
        else:
            ax.axis("off")

    fig.suptitle(f"{control.tour_name}  ({control.played_shows}/{control.total_shows} played)",
                 fontsize=14, color=TEXT_COLOR, fontweight="bold")
    fig.tight_layout(rect=[0.0, 0.0, 1.0, 0.94])
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=200, facecolor=fig.get_facecolor())
    plt.close(fig)
    if verbose:
        print(f"  {out_path}")
    return out_path
