"""Song name normalization shared by every cross-source comparison.

phish.net and phish.in disagree on case, apostrophes, hyphens, and spacing
("Punch You in the Eye" / "Punch You In The Eye", "Chalk Dust Torture"
/ "Chalkdust Torture").  Every component compares names through
normalize_song_name(); nothing else re-implements matching.
"""

import re

from rapidfuzz.distance import Levenshtein

from phishstats.config import NAME_SIMILARITY_THRESHOLD, NON_SONG_WORDS

_APOSTROPHES = re.compile(r"['‘’`]")
_HYPHENS = re.compile(r"[-‐‑‒–—]")
_SEGUE = re.compile(r"\s*-?[>→]+\s*$")


def normalize_song_name(name):
    """Canonical comparison key for a song name.

    Lower-cases, strips apostrophes and hyphens, and trims/collapses
    whitespace.  Total: None or non-strings give "".
    """
    if not isinstance(name, str):
        return ""
    s = name.lower()
    s = _APOSTROPHES.sub("", s)
    s = _HYPHENS.sub("", s)
    return re.sub(r"\s+", " ", s).strip()


def clean_title(raw):
    """Strip trailing segue markers and surrounding whitespace from a title."""
    if not raw:
        return ""
    s = _SEGUE.sub("", raw.strip())
    return re.sub(r"\s+", " ", s).strip()


def is_non_song(title):
    """True for tracks that are not songs (banter, tuning, set break...)."""
    lower = clean_title(title).lower()
    if not lower:
        return True
    return lower in NON_SONG_WORDS


def name_similarity(a, b):
    """Levenshtein similarity of the normalized names, in [0, 1]."""
    na, nb = normalize_song_name(a), normalize_song_name(b)
    if not na and not nb:
        return 1.0
    return Levenshtein.normalized_similarity(na, nb)


def names_match(a, b, threshold=NAME_SIMILARITY_THRESHOLD):
    """Validate a tentative pairing of two song names.

    Accepts when the normalized names are equal, one contains the other,
    or their edit-distance similarity exceeds threshold.  Empty names
    never match.
    """
    na, nb = normalize_song_name(a), normalize_song_name(b)
    if not na or not nb:
        return False
    if na == nb:
        return True
    if na in nb or nb in na:
        return True
    return Levenshtein.normalized_similarity(na, nb) > threshold
