"""SQLite schema, connection, and the single-source-of-truth store.

One tour control row, one row per show (keyed by ISO date), and one
statistics snapshot per tour.  Records are stored as JSON alongside the
columns the change detector and status report query directly.
"""

import json
import os
import sqlite3
from datetime import datetime, timezone

from phishstats.config import DB_PATH
from phishstats.errors import StoreCorruption
from phishstats.models import EnrichedShow, TourControl, TourStatistics

SCHEMA = """
CREATE TABLE IF NOT EXISTS tour_control (
    id          INTEGER PRIMARY KEY CHECK (id = 1),
    tour_name   TEXT NOT NULL,
    year        TEXT,
    latest_show TEXT,
    data        TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS shows (
    date          TEXT PRIMARY KEY,
    tour_name     TEXT,
    venue         TEXT,
    has_setlist   INTEGER DEFAULT 0,
    has_durations INTEGER DEFAULT 0,
    has_gaps      INTEGER DEFAULT 0,
    song_count    INTEGER DEFAULT 0,
    data          TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_shows_tour ON shows(tour_name);

CREATE TABLE IF NOT EXISTS statistics (
    tour_name             TEXT PRIMARY KEY,
    latest_show_processed TEXT,
    shows_with_durations  INTEGER DEFAULT 0,
    generated_at          TEXT,
    data                  TEXT NOT NULL
);
"""


def get_connection(db_path=None):
    """Get a SQLite connection, creating the DB and schema if needed."""
    path = db_path or DB_PATH
    if path != ":memory:":
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.executescript(SCHEMA)
    return conn


def _now():
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _parse(row, model, what):
    """Decode a stored JSON record.  Any failure means the store is corrupt."""
    try:
        return model.from_dict(json.loads(row["data"]))
    except (ValueError, KeyError, TypeError) as e:
        raise StoreCorruption(f"stored {what} cannot be parsed: {e}") from e


# ── Tour control ──────────────────────────────────────────────────────

def load_tour_control(conn):
    row = conn.execute("SELECT data FROM tour_control WHERE id = 1").fetchone()
    return _parse(row, TourControl, "tour control") if row else None


def save_tour_control(conn, control):
    control.updated_at = control.updated_at or _now()
    latest = control.latest_show.date if control.latest_show else None
    conn.execute(
        """INSERT INTO tour_control (id, tour_name, year, latest_show, data, updated_at)
           VALUES (1, ?, ?, ?, ?, ?)
           ON CONFLICT(id) DO UPDATE SET
               tour_name = excluded.tour_name, year = excluded.year,
               latest_show = excluded.latest_show, data = excluded.data,
               updated_at = excluded.updated_at""",
        (control.tour_name, control.year, latest,
         json.dumps(control.to_dict()), control.updated_at),
    )
    conn.commit()


# ── Show records ──────────────────────────────────────────────────────

def load_show_record(conn, date):
    row = conn.execute("SELECT data FROM shows WHERE date = ?", (date,)).fetchone()
    return _parse(row, EnrichedShow, f"show {date}") if row else None


def load_show_records(conn, dates=None):
    """Stored shows in date order, optionally restricted to dates."""
    if dates is None:
        rows = conn.execute("SELECT data FROM shows ORDER BY date").fetchall()
    else:
        dates = list(dates)
        if not dates:
            return []
        marks = ", ".join("?" for _ in dates)
        rows = conn.execute(
            f"SELECT data FROM shows WHERE date IN ({marks}) ORDER BY date", dates,
        ).fetchall()
    return [_parse(row, EnrichedShow, "show") for row in rows]


def save_show_record(conn, show):
    conn.execute(
        """INSERT INTO shows
           (date, tour_name, venue, has_setlist, has_durations, has_gaps,
            song_count, data, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
           ON CONFLICT(date) DO UPDATE SET
               tour_name = excluded.tour_name, venue = excluded.venue,
               has_setlist = excluded.has_setlist,
               has_durations = excluded.has_durations,
               has_gaps = excluded.has_gaps, song_count = excluded.song_count,
               data = excluded.data, updated_at = excluded.updated_at""",
        (show.date, show.show.tour_name, show.show.venue,
         int(show.has_setlist), int(show.has_durations), int(show.has_gaps),
         len(show.entries), json.dumps(show.to_dict()), _now()),
    )
    conn.commit()


# ── Statistics ────────────────────────────────────────────────────────

def load_statistics(conn, tour_name=None):
    """Statistics snapshot for tour_name, or the most recent one."""
    if tour_name is None:
        row = conn.execute(
            "SELECT data FROM statistics ORDER BY generated_at DESC LIMIT 1"
        ).fetchone()
    else:
        row = conn.execute(
            "SELECT data FROM statistics WHERE tour_name = ?", (tour_name,)
        ).fetchone()
    return _parse(row, TourStatistics, "statistics") if row else None


def save_statistics(conn, stats):
    conn.execute(
        """INSERT INTO statistics
           (tour_name, latest_show_processed, shows_with_durations, generated_at, data)
           VALUES (?, ?, ?, ?, ?)
           ON CONFLICT(tour_name) DO UPDATE SET
               latest_show_processed = excluded.latest_show_processed,
               shows_with_durations = excluded.shows_with_durations,
               generated_at = excluded.generated_at, data = excluded.data""",
        (stats.tour_name, stats.latest_show_processed, stats.shows_with_durations,
         stats.generated_at, json.dumps(stats.to_dict())),
    )
    conn.commit()


def db_stats(conn):
    stats = {}
    for table in ("tour_control", "shows", "statistics"):
        row = conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()
        stats[table] = row["n"]
    for flag in ("has_setlist", "has_durations", "has_gaps"):
        stats[f"shows_{flag}"] = conn.execute(
            f"SELECT COUNT(*) AS n FROM shows WHERE {flag} = 1"
        ).fetchone()["n"]
    return stats
