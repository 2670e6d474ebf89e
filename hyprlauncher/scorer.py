"""Ranking of index entries against a query.

Everything here is pure: the same query, entry, usage stat, window hint and
``now`` always produce the same number. ``score`` returns ``None`` for
entries that do not match the query at all; callers drop those.

Usage boost
-----------
``FREQUENCY_WEIGHT * log2(1 + launch_count)`` plus
``RECENCY_WEIGHT * 0.5 ** (age_hours / RECENCY_HALF_LIFE_H)``.
The logarithm keeps growing with every launch but each extra launch is worth
less; the recency half-life makes a burst of old launches fade.
"""
from __future__ import annotations

import math
import time

from rapidfuzz.distance import LCSseq

from hyprlauncher.entries import ApplicationEntry
from hyprlauncher.heatmap import UsageStat

BINARY_BONUS = 3000.0
KEYWORD_BONUS = 2500.0
CATEGORY_BONUS = 2000.0
ICON_BONUS = 1000.0
EXACT_NAME_BONUS = 10000.0
WINDOW_OPEN_PENALTY = -500.0

FREQUENCY_WEIGHT = 150.0
RECENCY_WEIGHT = 500.0
RECENCY_HALF_LIFE_H = 72.0

FALLBACK_WEIGHT = 0.5

SCORE_MATCH = 16
BONUS_CONSECUTIVE = 16
BONUS_WORD_START = 24
BONUS_PREFIX = 48
PENALTY_GAP_START = 3
PENALTY_GAP_EXTENSION = 1
MAX_LEADING_PENALTY = 15

_SEPARATORS = frozenset(" -_./:")


def normalize_query(query: str) -> str:
    return " ".join(query.split()).lower()


def is_subsequence(query: str, text: str) -> bool:
    if not query:
        return True
    if len(query) > len(text):
        return False
    return LCSseq.similarity(query, text) == len(query)


def _alignment_score(query: str, text: str, start: int) -> int | None:
    pos = start
    score = 0
    prev = -1
    for ch in query:
        found = text.find(ch, pos)
        if found < 0:
            return None
        score += SCORE_MATCH
        if prev >= 0:
            gap = found - prev - 1
            if gap == 0:
                score += BONUS_CONSECUTIVE
            else:
                score -= PENALTY_GAP_START + PENALTY_GAP_EXTENSION * (gap - 1)
        if found == 0 or text[found - 1] in _SEPARATORS:
            score += BONUS_WORD_START
        prev = found
        pos = found + 1
    if start == 0:
        score += BONUS_PREFIX
    else:
        score -= min(start, MAX_LEADING_PENALTY)
    return score


def fuzzy_score(query: str, text: str) -> int | None:
    """Subsequence match of ``query`` in ``text`` (both already lower-cased).

    Tries every occurrence of the first query character as the anchor and
    keeps the best alignment, so contiguous runs and word/prefix starts win.
    """
    if not query:
        return 0
    if not is_subsequence(query, text):
        return None
    best: int | None = None
    start = text.find(query[0])
    while start >= 0:
        s = _alignment_score(query, text, start)
        if s is None:
            break
        if best is None or s > best:
            best = s
        start = text.find(query[0], start + 1)
    return best


def base_match(query: str, entry: ApplicationEntry) -> float | None:
    name_score = fuzzy_score(query, entry.search_name)
    if name_score is not None:
        return float(name_score)

    fallback: list[int] = []
    if entry.binary_name:
        s = fuzzy_score(query, entry.binary_name)
        if s is not None:
            fallback.append(s)
    for kw in entry.search_keywords:
        s = fuzzy_score(query, kw)
        if s is not None:
            fallback.append(s)
    if fallback:
        return max(fallback) * FALLBACK_WEIGHT
    if any(query in c for c in entry.search_categories):
        return 0.0
    return None


def match_bonus(query: str, entry: ApplicationEntry) -> float:
    bonus = 0.0
    first = query.split(" ", 1)[0]
    if entry.binary_name and first and entry.binary_name.startswith(first):
        bonus += BINARY_BONUS
    if any(query in kw for kw in entry.search_keywords):
        bonus += KEYWORD_BONUS
    if any(query in c for c in entry.search_categories):
        bonus += CATEGORY_BONUS
    if entry.icon_name and query in entry.icon_name.lower():
        bonus += ICON_BONUS
    if entry.search_name == query:
        bonus += EXACT_NAME_BONUS
    return bonus


def usage_boost(stat: UsageStat, *, now: float) -> float:
    boost = 0.0
    if stat.launch_count > 0:
        boost += FREQUENCY_WEIGHT * math.log2(1 + stat.launch_count)
    if stat.last_used is not None:
        age_h = max(0.0, now - stat.last_used) / 3600.0
        boost += RECENCY_WEIGHT * 0.5 ** (age_h / RECENCY_HALF_LIFE_H)
    return boost


def score(
    query: str,
    entry: ApplicationEntry,
    stat: UsageStat,
    is_window_open: bool = False,
    *,
    now: float | None = None,
) -> float | None:
    q = normalize_query(query)
    if now is None:
        now = time.time()

    total = 0.0
    if q:
        base = base_match(q, entry)
        if base is None:
            return None
        total = base + match_bonus(q, entry)

    total += usage_boost(stat, now=now)
    if is_window_open:
        total += WINDOW_OPEN_PENALTY
    return total
