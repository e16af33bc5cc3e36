import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum

from catalog.resolve import TracklistResolver
from config.settings import DEFAULT_BATCH_DELAY_SECONDS, DEFAULT_CHAPTER_LANGUAGE, MAX_SELECTION_ATTEMPTS
from engine.errors import (
    AuthenticationFailure,
    MalformedLine,
    MalformedTimestamp,
    NoResultsFound,
    RateLimited,
    TracklistError,
    UntimedTracklist,
)
from engine.paths import build_engine_paths, ensure_dir
from engine.query_facets import query_from_filename
from engine.search_engine import TracklistSearchEngine
from engine.search_scoring import DEFAULT_WEIGHTS
from media.ffprobe import get_media_chapters, get_media_duration_minutes
from metadata.chapters import chapters_from_content, chapters_identical
from metadata.tagging import read_stored_metadata, write_stored_metadata
from metadata.types import SessionState, StoredMetadata, TracklistSelection

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logging(log_dir=None, level=logging.INFO):
    if log_dir:
        log_dir = str(log_dir)
        ensure_dir(log_dir)
    else:
        log_dir = build_engine_paths().log_dir
    root = logging.getLogger("")
    root.setLevel(level)
    if getattr(root, "_setlistr_handlers", False):
        return
    file_handler = logging.FileHandler(os.path.join(log_dir, "setlistr.log"), encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    console.setLevel(level)
    root.addHandler(file_handler)
    root.addHandler(console)
    root._setlistr_handlers = True


class StoredPolicy(Enum):
    AUTO_ACCEPT = "auto"
    CONFIRM = "confirm"
    FORCE_REFRESH = "force"


class SelectionPhase(Enum):
    SEARCHING = "searching"
    SELECTING = "selecting"
    RESOLVED = "resolved"
    UNTIMED = "untimed"


class OutcomeStatus(Enum):
    EMBEDDED = "embedded"
    UNCHANGED = "unchanged"
    NO_RESULTS = "no_results"
    RATE_LIMITED = "rate_limited"
    UNTIMED = "untimed"
    MALFORMED = "malformed"
    FAILED = "failed"


@dataclass
class PipelineOptions:
    aliases: dict = field(default_factory=dict)
    stored_policy: StoredPolicy = StoredPolicy.AUTO_ACCEPT
    batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS
    language: str = DEFAULT_CHAPTER_LANGUAGE
    max_selection_attempts: int = MAX_SELECTION_ATTEMPTS
    weights: object = DEFAULT_WEIGHTS


@dataclass
class FileOutcome:
    path: str
    status: OutcomeStatus
    chapters: list = field(default_factory=list)
    content: object = None
    from_stored: bool = False
    error: str | None = None
    reference_stored: bool = True


def pick_top_candidate(candidates):
    return candidates[0] if candidates else None


class TracklistPipeline:
    """Per-file flow: stored reference or search, resolve, normalize, compare, embed.

    Collaborators outside the core are injected: ``embedder(path, chapters)``
    writes chapters into the container, ``chapter_reader(path)`` returns the
    chapters already there (or ``None``), and ``selector(candidates)`` picks
    one ranked candidate.
    """

    def __init__(
        self,
        session,
        *,
        embedder,
        options=None,
        search_engine=None,
        resolver=None,
        selector=pick_top_candidate,
        confirm_stored=None,
        chapter_reader=get_media_chapters,
        duration_probe=get_media_duration_minutes,
        metadata_reader=read_stored_metadata,
        metadata_writer=write_stored_metadata,
        sleep=time.sleep,
    ):
        self.session = session
        self.options = options or PipelineOptions()
        self.search_engine = search_engine or TracklistSearchEngine(
            session, aliases=self.options.aliases, weights=self.options.weights
        )
        self.resolver = resolver or TracklistResolver(session)
        self.embedder = embedder
        self.selector = selector
        self.confirm_stored = confirm_stored
        self.chapter_reader = chapter_reader
        self.duration_probe = duration_probe
        self.metadata_reader = metadata_reader
        self.metadata_writer = metadata_writer
        self._sleep = sleep

    def _read_stored(self, path):
        try:
            return self.metadata_reader(path)
        except ValueError as exc:
            logger.debug("[PIPELINE] no stored reference for %s: %s", path, exc)
            return None

    def _use_stored(self, stored):
        policy = self.options.stored_policy
        if stored is None or policy is StoredPolicy.FORCE_REFRESH:
            return False
        if policy is StoredPolicy.CONFIRM and self.confirm_stored is not None:
            return bool(self.confirm_stored(stored))
        return True

    def _search_and_resolve(self, path, query):
        """Walk SEARCHING -> SELECTING -> RESOLVED, looping through UNTIMED a bounded number of times."""
        query = query or query_from_filename(path)
        reference_minutes = self.duration_probe(path) if self.duration_probe else None
        phase = SelectionPhase.SEARCHING
        candidates = None
        excluded = set()
        attempts = 0
        content = None
        chapters = []

        while phase is not SelectionPhase.RESOLVED:
            if phase is SelectionPhase.SEARCHING:
                if candidates is None:
                    candidates = self.search_engine.search_or_raise(query, reference_minutes)
                phase = SelectionPhase.SELECTING
            elif phase is SelectionPhase.SELECTING:
                remaining = [candidate for candidate in candidates if candidate.id not in excluded]
                choice = self.selector(remaining) if remaining else None
                if choice is None:
                    raise NoResultsFound(f"no selectable tracklist left for {query!r}")
                attempts += 1
                logger.info(
                    f"[PIPELINE] attempt={attempts} pick={choice.id} score={choice.score:.1f} title={choice.title!r}"
                )
                content = self.resolver.resolve(
                    TracklistSelection(url=choice.url, id=choice.id, title=choice.title)
                )
                try:
                    chapters = chapters_from_content(content, language=self.options.language)
                    phase = SelectionPhase.RESOLVED
                except UntimedTracklist:
                    excluded.add(choice.id)
                    phase = SelectionPhase.UNTIMED
            elif phase is SelectionPhase.UNTIMED:
                if attempts >= self.options.max_selection_attempts:
                    raise UntimedTracklist(f"{attempts} picked tracklist(s) for {query!r} have no timestamps yet")
                logger.info("[PIPELINE] tracklist untimed; choosing another candidate")
                phase = SelectionPhase.SEARCHING
        return content, chapters

    def _existing_chapters(self, path):
        try:
            return self.chapter_reader(path)
        except RuntimeError as exc:
            logger.warning("[PIPELINE] could not read existing chapters of %s: %s", path, exc)
            return None

    def process_file(self, path, query=None):
        """Process one media file and report what happened.

        Raises any ``TracklistError`` for ``run_batch`` to classify.
        """
        stored = self._read_stored(path)
        from_stored = self._use_stored(stored)
        if from_stored:
            logger.info(f"[PIPELINE] using stored tracklist {stored.url} for {path}")
            content = self.resolver.resolve(TracklistSelection(url=stored.url, title=stored.title))
            chapters = chapters_from_content(content, language=self.options.language)
        else:
            content, chapters = self._search_and_resolve(path, query)

        if not chapters:
            raise MalformedLine(f"tracklist {content.canonical_url} has no timestamped lines")

        if chapters_identical(self._existing_chapters(path), chapters):
            logger.info(f"[PIPELINE] chapters unchanged for {path}")
            return FileOutcome(path, OutcomeStatus.UNCHANGED, chapters, content, from_stored)

        self.embedder(path, chapters)
        logger.info(f"[PIPELINE] embedded {len(chapters)} chapters into {path}")
        reference_stored = self._store_reference(path, content)
        return FileOutcome(path, OutcomeStatus.EMBEDDED, chapters, content, from_stored, reference_stored=reference_stored)

    def _store_reference(self, path, content):
        # Chapters are already embedded at this point; an untaggable container only loses the shortcut.
        try:
            self.metadata_writer(path, StoredMetadata(url=content.canonical_url, title=content.canonical_title))
        except ValueError as exc:
            logger.warning(f"[PIPELINE] tracklist reference not stored for {path}: {exc}")
            return False
        return True

    def _failure_status(self, exc):
        if isinstance(exc, RateLimited):
            return OutcomeStatus.RATE_LIMITED
        if isinstance(exc, NoResultsFound):
            if self.session.state is SessionState.INVALID:
                return OutcomeStatus.RATE_LIMITED
            return OutcomeStatus.NO_RESULTS
        if isinstance(exc, UntimedTracklist):
            return OutcomeStatus.UNTIMED
        if isinstance(exc, (MalformedLine, MalformedTimestamp)):
            return OutcomeStatus.MALFORMED
        return OutcomeStatus.FAILED

    def run_batch(self, paths, queries=None):
        """Process files one after another; one file's failure never stops the rest.

        ``AuthenticationFailure`` is the exception: bad credentials end the run.
        """
        queries = queries or {}
        outcomes = []
        for position, path in enumerate(paths):
            if position and self.options.batch_delay_seconds > 0:
                self._sleep(self.options.batch_delay_seconds)
            try:
                outcome = self.process_file(path, queries.get(path))
            except AuthenticationFailure:
                logger.error("[PIPELINE] authentication failed; stopping the run")
                raise
            except TracklistError as exc:
                status = self._failure_status(exc)
                logger.warning(f"[PIPELINE] {path}: {status.value} ({exc})")
                outcome = FileOutcome(path, status, error=str(exc))
            except Exception as exc:
                logger.exception("[PIPELINE] %s failed", path)
                outcome = FileOutcome(path, OutcomeStatus.FAILED, error=str(exc))
            outcomes.append(outcome)
        return outcomes
