import logging
import re

from catalog.html_parsing import parse_search_results
from config.settings import SEARCH_DURATION_SLACK_MINUTES
from engine.errors import NoResultsFound, RateLimited
from engine.query_facets import analyze_query, strip_platform_id
from engine.search_scoring import DEFAULT_WEIGHTS, filter_candidates, rank_candidates, score_candidates
from metadata.types import SearchResult

logger = logging.getLogger(__name__)

SEARCH_PATH = "/search/result.php"
_DURATION_HOURS_RE = re.compile(r"(\d+)\s*h", re.IGNORECASE)
_DURATION_MINUTES_RE = re.compile(r"(\d+)\s*m", re.IGNORECASE)


def parse_duration_minutes(text):
    """``"1h 5m"`` -> 65; ``None`` when neither component is present."""
    value = str(text or "")
    hours = _DURATION_HOURS_RE.search(value)
    minutes = _DURATION_MINUTES_RE.search(value)
    if hours is None and minutes is None:
        return None
    total = 0
    if hours is not None:
        total += int(hours.group(1)) * 60
    if minutes is not None:
        total += int(minutes.group(1))
    return total


def build_search_form(query, reference_minutes=None, year=None):
    form = {
        "main_search": strip_platform_id(query).strip(),
        "search_selection": "9",
        "orderby": "added",
    }
    if reference_minutes:
        # Widen rather than narrow: catalog durations are often a few minutes short.
        form["duration_min"] = str(max(1, int(reference_minutes) - SEARCH_DURATION_SLACK_MINUTES))
    if year:
        form["date_from"] = f"{year}-01-01"
        form["date_to"] = f"{year}-12-31"
    return form


class TracklistSearchEngine:
    """Runs one filtered catalog search and ranks the candidates against the query."""

    def __init__(self, session, *, aliases=None, weights=DEFAULT_WEIGHTS):
        self.session = session
        self.aliases = dict(aliases or {})
        self.weights = weights

    def _fetch(self, form):
        self.session.ensure_active()
        response = self.session.post(SEARCH_PATH, data=form)
        return response.text or ""

    def search(self, query, reference_duration_minutes=None, year=None):
        facets = analyze_query(query, self.aliases)
        year = year or facets.year
        form = build_search_form(query, reference_duration_minutes, year)
        try:
            body = self._fetch(form)
        except RateLimited:
            logger.warning("[SEARCH] rate limited query=%r; returning no candidates", query)
            return []

        candidates = [
            SearchResult(
                id=item.id,
                title=item.title,
                url=item.url,
                duration_minutes=parse_duration_minutes(item.duration_text),
                date=item.date_text or None,
            )
            for item in parse_search_results(body)
        ]
        score_candidates(facets, candidates, reference_duration_minutes, weights=self.weights)
        ranked = rank_candidates(filter_candidates(facets, candidates))
        logger.info(
            f"[SEARCH] query={query!r} parsed={len(candidates)} kept={len(ranked)} "
            f"top={ranked[0].id if ranked else '-'}"
        )
        return ranked

    def search_or_raise(self, query, reference_duration_minutes=None, year=None):
        results = self.search(query, reference_duration_minutes, year)
        if not results:
            raise NoResultsFound(f"no tracklist candidates for {query!r}")
        return results
