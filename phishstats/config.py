"""Constants, thresholds, and API URLs for Phish tour statistics."""

import os

# ── Paths ──────────────────────────────────────────────────────────────
DATA_DIR = os.path.expanduser(os.environ.get("PHISHSTATS_HOME", "~/.phishstats"))
DB_PATH = os.path.join(DATA_DIR, "phishstats.db")
EXPORT_DIR = os.path.join(DATA_DIR, "api")
CALENDAR_PATH = os.path.join(DATA_DIR, "tour_calendar.png")

# ── phish.net (setlists, venues, tour positions, gaps) ────────────────
ARTIST_NAME = "Phish"
PN_API_BASE = "https://api.phish.net/v5"
PN_API_KEY = os.environ.get("PHISH_NET_API_KEY", "")
PN_CACHE_DIR = os.path.join(DATA_DIR, "cache_phishnet")
PN_RATE_LIMIT = 0.1

# ── phish.in (audio durations only) ───────────────────────────────────
PI_API_BASE = "https://phish.in/api/v2"
PI_CACHE_DIR = os.path.join(DATA_DIR, "cache_phishin")
PI_RATE_LIMIT = 0.25

USER_AGENT = "PhishStatsBot/1.0 (https://github.com/phishstats)"

# Years searched backwards for a tour when the current year has none
TOUR_HISTORY_YEARS = 3

# ── HTTP ──────────────────────────────────────────────────────────────
HTTP_TIMEOUT = 5.0     # seconds per request
HTTP_MAX_RETRIES = 3

# ── In-memory cache TTLs (seconds) ────────────────────────────────────
CACHE_DEFAULT_TTL = 3600
CACHE_YEAR_SHOWS_TTL = 3600
CACHE_SETLIST_TTL = 600
CACHE_HISTORY_TTL = 86400
CACHE_CATALOG_TTL = 86400

# ── Matching ──────────────────────────────────────────────────────────
NAME_SIMILARITY_THRESHOLD = 0.8
# Reported (not fatal) when setlist and duration counts differ by more
DURATION_COUNT_TOLERANCE = 2

# ── Statistics ────────────────────────────────────────────────────────
RESULT_LIMITS = {
    "longest_songs": 3,
    "rarest_songs": 3,
    "most_played_songs": 3,
    "common_songs_not_played": 3,
}
# Songs played at least this often all-time count as "common"
COMMON_SONG_MIN_PLAYS = 100
HISTORICAL_TOP_N = 3
HISTORICAL_LOOKUP_DELAY = 0.1
HISTORICAL_LOOKUP_WORKERS = 1

DURATION_UNAVAILABLE = "duration unavailable"

# ── Set labels ────────────────────────────────────────────────────────
# phish.in set names → phish.net set codes.  phish.net is authoritative.
SET_LABEL_ALIASES = {
    "set 1": "1",
    "set 2": "2",
    "set 3": "3",
    "set 4": "4",
    "encore": "e",
    "encore 2": "e2",
    "encore 3": "e3",
    "soundcheck": "s",
}

# ── Non-song tracks (dropped from duration lists) ────────────────────
NON_SONG_WORDS = frozenset({
    "tuning", "crowd", "crowd noise", "audience",
    "set break", "intermission", "break",
    "banter", "stage banter",
    "intro", "introduction", "band introductions",
    "applause",
    "unknown", "untitled",
})
