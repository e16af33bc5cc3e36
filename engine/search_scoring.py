import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime

from config import settings
from engine.query_facets import parse_event_token
from metadata.types import EventKind

_WS_RE = re.compile(r"\s+")
_SEGMENT_SPLIT_RE = re.compile(r"[@,]")
_EVENT_PHRASE_RES = {
    EventKind.WEEKEND: re.compile(r"\b(?:weekend\s*|we\s?|w)(\d{1,2})\b", re.IGNORECASE),
    EventKind.DAY: re.compile(r"\b(?:day\s*|d)(\d{1,2})\b", re.IGNORECASE),
}
_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d.%m.%Y")


@dataclass(frozen=True)
class ScoringWeights:
    duration_steps: tuple = settings.DURATION_SCORE_STEPS
    duration_far: float = settings.DURATION_SCORE_FAR
    abbreviation: float = settings.ABBREVIATION_POINTS
    alias: float = settings.ALIAS_POINTS
    keyword_coverage: float = settings.KEYWORD_COVERAGE_POINTS
    keyword_all_bonus: float = settings.KEYWORD_ALL_MATCHED_BONUS
    event_match: float = settings.EVENT_MATCH_POINTS
    event_mismatch: float = settings.EVENT_MISMATCH_POINTS
    year: float = settings.YEAR_POINTS
    recency_max: float = settings.RECENCY_MAX_POINTS
    recency_flat: float = settings.RECENCY_FLAT_POINTS


DEFAULT_WEIGHTS = ScoringWeights()


def fold_text(value):
    """Lowercase and strip diacritics so ``Tiësto`` compares equal to ``tiesto``."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(value))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WS_RE.sub(" ", stripped.lower()).strip()


def duration_points(reference_minutes, candidate_minutes, weights=DEFAULT_WEIGHTS):
    if reference_minutes is None or candidate_minutes is None:
        return 0.0
    delta = abs(int(reference_minutes) - int(candidate_minutes))
    for limit, points in weights.duration_steps:
        if delta <= limit:
            return float(points)
    return float(weights.duration_far)


def derive_abbreviations(title):
    """Initials of each ``@``/``,`` segment with at least two capitalized words.

    ``"Sub Zero Project @ Amsterdam Music Festival"`` yields ``{"SZP", "AMF"}``.
    """
    derived = set()
    for segment in _SEGMENT_SPLIT_RE.split(str(title or "")):
        capitalized = [word for word in segment.split() if word[:1].isupper()]
        if len(capitalized) >= 2:
            derived.add("".join(word[0] for word in capitalized))
    return derived


def abbreviation_matches(abbreviation, title):
    if re.search(rf"\b{re.escape(abbreviation)}\b", str(title or "")):
        return True
    return abbreviation in derive_abbreviations(title)


def alias_matches(alias, title):
    target = fold_text(alias.target)
    return bool(target) and target in fold_text(title)


def event_pattern_points(pattern, title, weights=DEFAULT_WEIGHTS):
    """Return ``(points, exact_match)`` for one requested weekend/day pattern."""
    found = {str(int(number)) for number in _EVENT_PHRASE_RES[pattern.kind].findall(str(title or ""))}
    if not found:
        return 0.0, False
    if str(int(pattern.number)) in found:
        return float(weights.event_match), True
    return float(weights.event_mismatch), False


def parse_catalog_date(value):
    text = str(value or "").strip()
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def recency_points(candidate_date, min_date, max_date, weights=DEFAULT_WEIGHTS):
    if candidate_date is None or min_date is None or max_date is None:
        return 0.0
    if min_date == max_date:
        return float(weights.recency_flat)
    span = (max_date - min_date).days
    position = (candidate_date - min_date).days
    return float(weights.recency_max) * position / span


def _keyword_matched(keyword, folded_title, matched_abbreviations, matched_alias_tokens, matched_events):
    if fold_text(keyword) in folded_title:
        return True
    if keyword in matched_abbreviations or keyword in matched_alias_tokens:
        return True
    pattern = parse_event_token(keyword)
    return pattern is not None and pattern in matched_events


def score_candidate(facets, candidate, reference_minutes=None, *, date_window=(None, None), weights=DEFAULT_WEIGHTS):
    """Score one candidate against query facets.

    Every sub-score is additive; the returned dict carries each part plus
    ``final_score`` and the match flags used by ``filter_candidates``.
    """
    title = candidate.title
    folded_title = fold_text(title)

    duration_pts = duration_points(reference_minutes, candidate.duration_minutes, weights)

    abbreviation_hits = [abbr for abbr in facets.abbreviations if abbreviation_matches(abbr, title)]
    abbreviation_pts = weights.abbreviation * len(abbreviation_hits)
    matched_abbreviations = {abbr.lower() for abbr in abbreviation_hits}

    matched_aliases = [alias for alias in facets.resolved_aliases if alias_matches(alias, title)]
    alias_pts = weights.alias * len(matched_aliases)
    matched_alias_tokens = {alias.alias.lower() for alias in matched_aliases}

    event_pts = 0.0
    matched_events = set()
    for pattern in facets.event_patterns:
        points, exact = event_pattern_points(pattern, title, weights)
        event_pts += points
        if exact:
            matched_events.add(pattern)

    matched_keywords = [
        keyword
        for keyword in facets.keywords
        if _keyword_matched(keyword, folded_title, matched_abbreviations, matched_alias_tokens, matched_events)
    ]
    keyword_pts = 0.0
    if facets.keywords:
        keyword_pts = weights.keyword_coverage * len(matched_keywords) / len(facets.keywords)
        if len(matched_keywords) == len(facets.keywords):
            keyword_pts += weights.keyword_all_bonus

    year_pts = 0.0
    if facets.year and candidate.date and facets.year in candidate.date:
        year_pts = float(weights.year)

    min_date, max_date = date_window
    recency_pts = recency_points(parse_catalog_date(candidate.date), min_date, max_date, weights)

    final_score = duration_pts + abbreviation_pts + alias_pts + keyword_pts + event_pts + year_pts + recency_pts
    return {
        "duration_pts": duration_pts,
        "abbreviation_pts": abbreviation_pts,
        "alias_pts": alias_pts,
        "keyword_pts": keyword_pts,
        "event_pts": event_pts,
        "year_pts": year_pts,
        "recency_pts": recency_pts,
        "final_score": final_score,
        "matched_keyword_count": len(matched_keywords),
        "has_abbreviation_match": bool(matched_abbreviations),
        "has_alias_match": bool(matched_aliases),
        "has_event_match": bool(matched_events),
    }


def date_window(candidates):
    dates = [parse_catalog_date(candidate.date) for candidate in candidates]
    known = [value for value in dates if isinstance(value, date)]
    if not known:
        return None, None
    return min(known), max(known)


def score_candidates(facets, candidates, reference_minutes=None, *, weights=DEFAULT_WEIGHTS):
    """Fill ``score`` and match fields on each candidate in place and return them."""
    window = date_window(candidates)
    for candidate in candidates:
        breakdown = score_candidate(facets, candidate, reference_minutes, date_window=window, weights=weights)
        candidate.score = breakdown["final_score"]
        candidate.matched_keyword_count = breakdown["matched_keyword_count"]
        candidate.has_event_match = breakdown["has_event_match"]
        candidate.score_breakdown = breakdown
    return candidates


def filter_candidates(facets, candidates):
    """Drop keyword-less candidates, and weak ones when the query names an event."""
    strict = bool(facets.abbreviations or facets.resolved_aliases)
    kept = []
    for candidate in candidates:
        if candidate.matched_keyword_count == 0:
            continue
        if strict and candidate.matched_keyword_count <= 1:
            breakdown = candidate.score_breakdown
            strong = (
                breakdown.get("has_abbreviation_match")
                or breakdown.get("has_alias_match")
                or candidate.has_event_match
            )
            if not strong:
                continue
        kept.append(candidate)
    return kept


def rank_candidates(candidates):
    # sorted() is stable, so discovery order breaks score ties.
    ranked = sorted(candidates, key=lambda item: -float(item.score))
    for index, item in enumerate(ranked, start=1):
        item.index = index
    return ranked
