"""Application settings constants."""

from __future__ import annotations

# Pause between files of a batch, to stay under the catalog's informal rate limits.
DEFAULT_BATCH_DELAY_SECONDS = 5.0

# ISO 639-2 language written alongside every chapter.
DEFAULT_CHAPTER_LANGUAGE = "eng"

# How many candidates the per-file loop may try when a pick turns out untimed.
MAX_SELECTION_ATTEMPTS = 3

# Server-side duration filter is widened by this many minutes below the reference.
SEARCH_DURATION_SLACK_MINUTES = 3

# Empirically tuned relevance weights. Changing them changes ranking order.
DURATION_SCORE_STEPS = ((1, 100.0), (5, 80.0), (15, 40.0), (30, 10.0))
DURATION_SCORE_FAR = -20.0
ABBREVIATION_POINTS = 35.0
ALIAS_POINTS = 35.0
KEYWORD_COVERAGE_POINTS = 60.0
KEYWORD_ALL_MATCHED_BONUS = 15.0
EVENT_MATCH_POINTS = 40.0
EVENT_MISMATCH_POINTS = -30.0
YEAR_POINTS = 25.0
RECENCY_MAX_POINTS = 10.0
RECENCY_FLAT_POINTS = 1.0
