"""
Rules for comparing a submitted cafe against the place its Maps link points at.

A submission is a clear match when the names are near-identical and the pins
are close, a clear mismatch when either is far off, and borderline otherwise.
Borderline cases go to the LLM evaluator.
"""
import math
import re

from rapidfuzz.distance import Levenshtein

CLEAR_MATCH_NAME_THRESHOLD = 85.0
CLEAR_MATCH_DISTANCE_METERS = 100
CLEAR_MISMATCH_NAME_THRESHOLD = 50.0
CLEAR_MISMATCH_DISTANCE_METERS = 500

DUPLICATE_CHECK_RADIUS_METERS = 200
DUPLICATE_NAME_THRESHOLD = 80.0

_EARTH_RADIUS_METERS = 6_371_000

_GENERIC_WORDS = re.compile(r"\b(cafe|coffee|shop|house|bar|kitchen)\b")


def normalize_name(name: str) -> str:
    """Lowercase, drop apostrophes and generic words like 'cafe', strip punctuation."""
    name = name.lower()
    name = re.sub(r"['‘’`]", "", name)
    name = _GENERIC_WORDS.sub("", name)
    name = name.replace("&", "and")
    name = re.sub(r"[^\w\s]", "", name)
    return re.sub(r"\s+", " ", name).strip()


def name_similarity(first: str, second: str) -> float:
    """Similarity in percent (0-100, one decimal) from edit distance over the longer name."""
    a, b = normalize_name(first), normalize_name(second)
    if a == b:
        return 100.0
    if not a or not b:
        return 0.0
    return round(Levenshtein.normalized_similarity(a, b) * 100, 1)


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> int:
    """Haversine distance, rounded to the nearest metre."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return round(_EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h)))


def classify_match(score: float, distance: int) -> str:
    """Return 'clear_match', 'clear_mismatch' or 'borderline'."""
    if score > CLEAR_MATCH_NAME_THRESHOLD and distance < CLEAR_MATCH_DISTANCE_METERS:
        return "clear_match"
    if score < CLEAR_MISMATCH_NAME_THRESHOLD or distance > CLEAR_MISMATCH_DISTANCE_METERS:
        return "clear_mismatch"
    return "borderline"
