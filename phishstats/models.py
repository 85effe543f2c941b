"""Data records for shows, setlists, durations, gaps, and tour statistics.

Every field that phish.net or phish.in populate inconsistently (venue,
state, footnotes, song ids) is Optional.  Records that get persisted carry
to_dict()/from_dict() so the store never has to know their layout.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Optional


@dataclass
class Show:
    """One concert date.  Always built from a phish.net record."""
    date: str                   # "YYYY-MM-DD"
    venue: str
    city: str = ""
    state: Optional[str] = None
    country: Optional[str] = None
    tour_name: Optional[str] = None
    show_number: Optional[int] = None
    total_shows: Optional[int] = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class SetlistEntry:
    """One song as played, in phish.net setlist order."""
    set_label: str              # "1", "2", "3", "e", "e2", "s"
    position: int               # ordinal within the set
    song: str
    song_id: Optional[int] = None
    transition: Optional[str] = None
    footnote: Optional[str] = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class DurationEntry:
    """One phish.in track duration.  Position is phish.in's, not phish.net's."""
    set_label: str
    position: int
    song: str
    duration_seconds: int
    song_id: Optional[int] = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class GapRecord:
    """Shows-since-last-played for one song at one show.

    gap is None for a debut (first performance ever).  The tour context
    fields (show_date, venue, city, state, venue_run) always come from the
    same phish.net show.  The historical fields are only filled in by the
    HistoricalGapResolver.
    """
    song: str
    gap: Optional[int]
    song_id: Optional[int] = None
    times_played: Optional[int] = None
    show_date: Optional[str] = None
    venue: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    venue_run: Optional[str] = None
    last_played: Optional[str] = None
    historical_venue: Optional[str] = None
    historical_city: Optional[str] = None
    historical_state: Optional[str] = None
    resolved_gap: Optional[int] = None

    @property
    def is_debut(self):
        return self.gap is None

    @property
    def is_enriched(self):
        return self.last_played is not None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class VenueRun:
    """Consecutive nights at one venue, e.g. night 2 of 3."""
    venue: str
    city: str
    state: Optional[str]
    night_number: int
    total_nights: int
    dates: List[str] = field(default_factory=list)

    @property
    def label(self):
        if self.total_nights > 1:
            return f"N{self.night_number}/{self.total_nights}"
        return ""

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class TourPosition:
    tour_name: str
    show_number: int
    total_shows: int


@dataclass
class Performance:
    """One historical performance of a song (phish.net song history)."""
    date: str
    venue: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


@dataclass
class ReconciledEntry:
    entry: SetlistEntry
    duration: Optional[DurationEntry] = None
    gap: Optional[GapRecord] = None

    @property
    def duration_seconds(self):
        return self.duration.duration_seconds if self.duration else None

    @property
    def has_duration(self):
        return self.duration is not None

    def to_dict(self):
        return {
            "entry": self.entry.to_dict(),
            "duration": self.duration.to_dict() if self.duration else None,
            "gap": self.gap.to_dict() if self.gap else None,
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            entry=SetlistEntry.from_dict(d["entry"]),
            duration=DurationEntry.from_dict(d["duration"]) if d.get("duration") else None,
            gap=GapRecord.from_dict(d["gap"]) if d.get("gap") else None,
        )


@dataclass
class EnrichedShow:
    """A show's setlist paired with best-effort durations and gaps."""
    show: Show
    entries: List[ReconciledEntry] = field(default_factory=list)
    durations: List[DurationEntry] = field(default_factory=list)
    gaps: List[GapRecord] = field(default_factory=list)
    venue_run: Optional[VenueRun] = None
    has_setlist: bool = False
    has_durations: bool = False
    has_gaps: bool = False
    # Setlist and phish.in track counts differ beyond DURATION_COUNT_TOLERANCE
    count_mismatch: bool = False

    @property
    def date(self):
        return self.show.date

    @property
    def is_complete(self):
        return self.has_setlist and self.has_durations and self.has_gaps

    @property
    def matched_count(self):
        return sum(1 for e in self.entries if e.has_duration)

    @property
    def unavailable_count(self):
        return len(self.entries) - self.matched_count

    def to_dict(self):
        return {
            "show": self.show.to_dict(),
            "entries": [e.to_dict() for e in self.entries],
            "durations": [d.to_dict() for d in self.durations],
            "gaps": [g.to_dict() for g in self.gaps],
            "venue_run": self.venue_run.to_dict() if self.venue_run else None,
            "has_setlist": self.has_setlist,
            "has_durations": self.has_durations,
            "has_gaps": self.has_gaps,
            "count_mismatch": self.count_mismatch,
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            show=Show.from_dict(d["show"]),
            entries=[ReconciledEntry.from_dict(e) for e in d.get("entries", [])],
            durations=[DurationEntry.from_dict(x) for x in d.get("durations", [])],
            gaps=[GapRecord.from_dict(g) for g in d.get("gaps", [])],
            venue_run=VenueRun.from_dict(d["venue_run"]) if d.get("venue_run") else None,
            has_setlist=d.get("has_setlist", False),
            has_durations=d.get("has_durations", False),
            has_gaps=d.get("has_gaps", False),
            count_mismatch=d.get("count_mismatch", False),
        )


# ── Tour control ─────────────────────────────────────────────────────

@dataclass
class TourDate:
    date: str
    venue: str
    city: str = ""
    state: Optional[str] = None
    played: bool = False
    show_number: int = 0
    durations_available: bool = False

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class FutureTour:
    name: str
    start_date: str
    end_date: str
    shows: int

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class TourControl:
    """The single authoritative record of which tour is current."""
    tour_name: str
    year: str
    tour_dates: List[TourDate] = field(default_factory=list)
    latest_show: Optional[TourDate] = None
    future_tours: List[FutureTour] = field(default_factory=list)
    updated_at: Optional[str] = None
    update_reason: Optional[str] = None

    @property
    def total_shows(self):
        return len(self.tour_dates)

    @property
    def played_shows(self):
        return sum(1 for t in self.tour_dates if t.played)

    @property
    def shows_with_durations(self):
        return sum(1 for t in self.tour_dates if t.played and t.durations_available)

    @property
    def start_date(self):
        return self.tour_dates[0].date if self.tour_dates else None

    @property
    def end_date(self):
        return self.tour_dates[-1].date if self.tour_dates else None

    @property
    def next_show(self):
        return next((t for t in self.tour_dates if not t.played), None)

    def played_dates(self):
        return [t.date for t in self.tour_dates if t.played]

    def to_dict(self):
        return {
            "tour_name": self.tour_name,
            "year": self.year,
            "tour_dates": [t.to_dict() for t in self.tour_dates],
            "latest_show": self.latest_show.to_dict() if self.latest_show else None,
            "future_tours": [f.to_dict() for f in self.future_tours],
            "updated_at": self.updated_at,
            "update_reason": self.update_reason,
        }

    @classmethod
    def from_dict(cls, d):
        latest = d.get("latest_show")
        return cls(
            tour_name=d["tour_name"],
            year=d["year"],
            tour_dates=[TourDate.from_dict(t) for t in d.get("tour_dates", [])],
            latest_show=TourDate.from_dict(latest) if latest else None,
            future_tours=[FutureTour.from_dict(f) for f in d.get("future_tours", [])],
            updated_at=d.get("updated_at"),
            update_reason=d.get("update_reason"),
        )


# ── Tour statistics ──────────────────────────────────────────────────

@dataclass
class LongestSong:
    song: str
    duration_seconds: int
    formatted_duration: str
    show_date: str
    venue: str
    city: str = ""
    state: Optional[str] = None
    venue_run: Optional[str] = None
    set_label: Optional[str] = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class MostPlayedSong:
    song: str
    play_count: int
    song_id: Optional[int] = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class PositionSong:
    song: str
    song_id: Optional[int] = None
    count: int = 0

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class SetPosition:
    """Songs seen at one slot of a set: "1_opener", "2_closer", "e_all"."""
    key: str
    set_label: str
    role: str                           # "opener", "closer", or "all" for encores
    songs: List[PositionSong] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(
            key=d["key"],
            set_label=d["set_label"],
            role=d["role"],
            songs=[PositionSong.from_dict(s) for s in d.get("songs", [])],
        )


@dataclass
class ShowRef:
    date: str
    venue: str
    city: str = ""
    state: Optional[str] = None
    venue_run: Optional[str] = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class SetSongStat:
    """Fewest and most songs played in one set type, with every tied show."""
    set_label: str
    min_songs: int
    max_songs: int
    min_shows: List[ShowRef] = field(default_factory=list)
    max_shows: List[ShowRef] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(
            set_label=d["set_label"],
            min_songs=d["min_songs"],
            max_songs=d["max_songs"],
            min_shows=[ShowRef.from_dict(s) for s in d.get("min_shows", [])],
            max_shows=[ShowRef.from_dict(s) for s in d.get("max_shows", [])],
        )


@dataclass
class RepeatShow:
    """Songs already played earlier in the tour, and the average gap, for one show.

    repeats counts distinct songs, so a song played twice in the show
    counts once.  average_gap skips debuts and zero gaps.
    """
    date: str
    venue: str
    city: str = ""
    state: Optional[str] = None
    venue_run: Optional[str] = None
    total_songs: int = 0
    repeats: int = 0
    repeat_percentage: float = 0.0
    average_gap: float = 0.0
    show_number: Optional[int] = None
    total_shows: Optional[int] = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class CatalogSong:
    """One song from phish.net's all-time song list."""
    song: str
    times_played: int
    song_id: Optional[int] = None
    artist: Optional[str] = None        # original artist; "Phish" for originals

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(**d)


@dataclass
class TourStatistics:
    tour_name: str
    longest_songs: List[LongestSong] = field(default_factory=list)
    rarest_songs: List[GapRecord] = field(default_factory=list)
    most_played_songs: List[MostPlayedSong] = field(default_factory=list)
    debuts: List[GapRecord] = field(default_factory=list)
    openers_closers: List[SetPosition] = field(default_factory=list)
    set_song_stats: List[SetSongStat] = field(default_factory=list)
    repeats: List[RepeatShow] = field(default_factory=list)
    common_songs_not_played: List[CatalogSong] = field(default_factory=list)
    latest_show_processed: Optional[str] = None
    shows_with_durations: int = 0
    generated_at: Optional[str] = None

    @property
    def has_data(self):
        return bool(self.longest_songs or self.rarest_songs or self.most_played_songs)

    @property
    def has_repeats(self):
        return any(r.repeats for r in self.repeats)

    def ranked_lists(self):
        """The ranked content without provenance, for equality checks."""
        d = self.to_dict()
        for key in ("latest_show_processed", "shows_with_durations", "generated_at"):
            d.pop(key)
        return d

    def to_dict(self):
        return {
            "tour_name": self.tour_name,
            "longest_songs": [s.to_dict() for s in self.longest_songs],
            "rarest_songs": [s.to_dict() for s in self.rarest_songs],
            "most_played_songs": [s.to_dict() for s in self.most_played_songs],
            "debuts": [s.to_dict() for s in self.debuts],
            "openers_closers": [p.to_dict() for p in self.openers_closers],
            "set_song_stats": [s.to_dict() for s in self.set_song_stats],
            "repeats": [r.to_dict() for r in self.repeats],
            "common_songs_not_played": [s.to_dict() for s in self.common_songs_not_played],
            "latest_show_processed": self.latest_show_processed,
            "shows_with_durations": self.shows_with_durations,
            "generated_at": self.generated_at,
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            tour_name=d["tour_name"],
            longest_songs=[LongestSong.from_dict(s) for s in d.get("longest_songs", [])],
            rarest_songs=[GapRecord.from_dict(s) for s in d.get("rarest_songs", [])],
            most_played_songs=[MostPlayedSong.from_dict(s)
                               for s in d.get("most_played_songs", [])],
            debuts=[GapRecord.from_dict(s) for s in d.get("debuts", [])],
            openers_closers=[SetPosition.from_dict(p) for p in d.get("openers_closers", [])],
            set_song_stats=[SetSongStat.from_dict(s) for s in d.get("set_song_stats", [])],
            repeats=[RepeatShow.from_dict(r) for r in d.get("repeats", [])],
            common_songs_not_played=[CatalogSong.from_dict(s)
                                     for s in d.get("common_songs_not_played", [])],
            latest_show_processed=d.get("latest_show_processed"),
            shows_with_durations=d.get("shows_with_durations", 0),
            generated_at=d.get("generated_at"),
        )


# ── Calendar ─────────────────────────────────────────────────────────

@dataclass
class ShowInfo:
    venue: str
    city: str
    state: Optional[str]
    show_number: int
    venue_run: Optional[str] = None     # "N1", "N2", ... for multi-night runs


@dataclass
class CalendarDay:
    date: str
    day_number: int
    show: Optional[ShowInfo] = None

    @property
    def is_show_date(self):
        return self.show is not None


@dataclass
class CalendarMonth:
    year: int
    month: int
    days: List[CalendarDay] = field(default_factory=list)
    first_weekday_offset: int = 0       # 0 = month starts on Sunday


@dataclass
class GridPosition:
    week_row: int
    column: int                         # 0 = Sunday
    date: str


@dataclass
class VenueRunSpan:
    venue: str
    city: str
    state: Optional[str]
    dates: List[str] = field(default_factory=list)
    grid_positions: List[GridPosition] = field(default_factory=list)

    @property
    def start_date(self):
        return self.dates[0]

    @property
    def end_date(self):
        return self.dates[-1]

    @property
    def nights(self):
        return len(self.dates)

    @property
    def display_text(self):
        return f"{self.city}, {self.state}" if self.state else self.city

    @property
    def spans_months(self):
        return self.start_date[:7] != self.end_date[:7]

    @property
    def spans_weeks(self):
        rows = {(d[:7], g.week_row) for d, g in zip(self.dates, self.grid_positions)}
        return len(rows) > 1


@dataclass
class BadgeSegment:
    """The part of a span that falls on one week row of one month."""
    month: str                          # "YYYY-MM"
    week_row: int
    start_column: int
    end_column: int
    dates: List[str] = field(default_factory=list)
    is_first: bool = False
    is_last: bool = False

    @property
    def width(self):
        return self.end_column - self.start_column + 1
