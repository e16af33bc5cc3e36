from __future__ import annotations

import logging

import pytest

from engine.core import OutcomeStatus, PipelineOptions, StoredPolicy, TracklistPipeline, setup_logging
from engine.errors import AuthenticationFailure, NoResultsFound
from metadata.types import (
    ExistingChapter,
    SearchResult,
    SessionState,
    StoredMetadata,
    TracklistContent,
)

TIMED_LINES = ["[00:00] Artist - Track A", "[03:45] Artist - Track B", "intro text with no timestamp"]
UNTIMED_LINES = ["1. Artist - Track A", "2. Artist - Track B"]


class FakeSession:
    def __init__(self) -> None:
        self.state = SessionState.ACTIVE


class FakeEngine:
    def __init__(self, candidates=None, error=None) -> None:
        self.candidates = candidates or []
        self.error = error
        self.queries = []

    def search_or_raise(self, query, reference_minutes=None):
        self.queries.append((query, reference_minutes))
        if self.error is not None:
            raise self.error
        return list(self.candidates)


class FakeResolver:
    def __init__(self, lines_by_url) -> None:
        self.lines_by_url = lines_by_url
        self.resolved = []

    def resolve(self, selection):
        self.resolved.append(selection)
        tracklist_id = selection.id or selection.url.rstrip("/").rsplit("/", 1)[-1]
        return TracklistContent(
            canonical_url=f"https://www.1001tracklists.com/tracklist/{tracklist_id}/",
            canonical_title=f"Set {tracklist_id}",
            lines=list(self.lines_by_url[selection.url]),
        )


def _candidate(result_id, score=100.0):
    return SearchResult(id=result_id, title=f"Set {result_id}", url=f"/tracklist/{result_id}/set.html", score=score)


def _pipeline(engine=None, resolver=None, stored=None, existing=None, options=None, session=None, confirm=None):
    embedded = []
    written = []
    sleeps = []
    pipeline = TracklistPipeline(
        session or FakeSession(),
        embedder=lambda path, chapters: embedded.append((path, chapters)),
        options=options or PipelineOptions(batch_delay_seconds=2.5),
        search_engine=engine or FakeEngine(),
        resolver=resolver or FakeResolver({}),
        confirm_stored=confirm,
        chapter_reader=lambda path: existing,
        duration_probe=lambda path: 62,
        metadata_reader=lambda path: stored,
        metadata_writer=lambda path, metadata: written.append((path, metadata)),
        sleep=sleeps.append,
    )
    return pipeline, embedded, written, sleeps


def test_search_resolve_and_embed() -> None:
    engine = FakeEngine([_candidate("aaa")])
    resolver = FakeResolver({"/tracklist/aaa/set.html": TIMED_LINES})
    pipeline, embedded, written, _ = _pipeline(engine, resolver)

    outcome = pipeline.process_file("/sets/2025_Artist_Live [dQw4w9WgXcQ].mkv")

    assert outcome.status is OutcomeStatus.EMBEDDED
    assert [chapter.timestamp for chapter in outcome.chapters] == ["00:00:00.000", "00:03:45.000"]
    assert engine.queries == [("2025 Artist Live", 62)]
    assert len(embedded) == 1
    assert written == [
        (
            "/sets/2025_Artist_Live [dQw4w9WgXcQ].mkv",
            StoredMetadata(url="https://www.1001tracklists.com/tracklist/aaa/", title="Set aaa"),
        )
    ]


def test_stored_reference_skips_search() -> None:
    stored = StoredMetadata(url="https://www.1001tracklists.com/tracklist/zzz/", title="Stored set")
    engine = FakeEngine([_candidate("aaa")])
    resolver = FakeResolver({stored.url: TIMED_LINES})
    pipeline, embedded, _, _ = _pipeline(engine, resolver, stored=stored)

    outcome = pipeline.process_file("set.mkv")

    assert outcome.status is OutcomeStatus.EMBEDDED
    assert outcome.from_stored is True
    assert engine.queries == []
    assert resolver.resolved[0].url == stored.url


@pytest.mark.parametrize(
    ("policy", "confirm"),
    [(StoredPolicy.FORCE_REFRESH, None), (StoredPolicy.CONFIRM, lambda stored: False)],
)
def test_stored_reference_can_be_bypassed(policy, confirm) -> None:
    stored = StoredMetadata(url="https://www.1001tracklists.com/tracklist/zzz/", title="Stored set")
    engine = FakeEngine([_candidate("aaa")])
    resolver = FakeResolver({"/tracklist/aaa/set.html": TIMED_LINES})
    options = PipelineOptions(stored_policy=policy)
    pipeline, _, _, _ = _pipeline(engine, resolver, stored=stored, options=options, confirm=confirm)

    outcome = pipeline.process_file("set.mkv", query="Artist Live")

    assert outcome.from_stored is False
    assert engine.queries == [("Artist Live", 62)]


def test_untimed_pick_moves_to_next_candidate() -> None:
    engine = FakeEngine([_candidate("aaa"), _candidate("bbb", score=90.0)])
    resolver = FakeResolver({"/tracklist/aaa/set.html": UNTIMED_LINES, "/tracklist/bbb/set.html": TIMED_LINES})
    pipeline, embedded, _, _ = _pipeline(engine, resolver)

    outcome = pipeline.process_file("set.mkv", query="Artist Live")

    assert outcome.status is OutcomeStatus.EMBEDDED
    assert [selection.id for selection in resolver.resolved] == ["aaa", "bbb"]
    assert len(engine.queries) == 1
    assert outcome.content.canonical_url.endswith("/tracklist/bbb/")


def test_untimed_attempts_are_bounded() -> None:
    candidates = [_candidate(name) for name in ("aaa", "bbb", "ccc")]
    resolver = FakeResolver({candidate.url: UNTIMED_LINES for candidate in candidates})
    options = PipelineOptions(max_selection_attempts=2)
    pipeline, embedded, _, _ = _pipeline(FakeEngine(candidates), resolver, options=options)

    [outcome] = pipeline.run_batch(["set.mkv"])

    assert outcome.status is OutcomeStatus.UNTIMED
    assert len(resolver.resolved) == 2
    assert embedded == []


def test_identical_chapters_are_left_alone() -> None:
    existing = [ExistingChapter("00:00:00.000000", "Artist - Track A"), ExistingChapter("00:03:45.000000", "Artist - Track B")]
    resolver = FakeResolver({"/tracklist/aaa/set.html": TIMED_LINES})
    pipeline, embedded, written, _ = _pipeline(FakeEngine([_candidate("aaa")]), resolver, existing=existing)

    outcome = pipeline.process_file("set.mkv", query="Artist Live")

    assert outcome.status is OutcomeStatus.UNCHANGED
    assert embedded == []
    assert written == []


def test_batch_continues_after_failures_and_waits_between_files() -> None:
    class FlakyEngine(FakeEngine):
        def search_or_raise(self, query, reference_minutes=None):
            if query == "missing":
                raise NoResultsFound("nothing")
            if query == "boom":
                raise KeyError("unexpected")
            return super().search_or_raise(query, reference_minutes)

    resolver = FakeResolver({"/tracklist/aaa/set.html": TIMED_LINES})
    pipeline, _, _, sleeps = _pipeline(FlakyEngine([_candidate("aaa")]), resolver)

    outcomes = pipeline.run_batch(
        ["a.mkv", "b.mkv", "c.mkv"], queries={"a.mkv": "missing", "b.mkv": "boom", "c.mkv": "Artist Live"}
    )

    assert [outcome.status for outcome in outcomes] == [
        OutcomeStatus.NO_RESULTS,
        OutcomeStatus.FAILED,
        OutcomeStatus.EMBEDDED,
    ]
    assert sleeps == [2.5, 2.5]


def test_no_results_on_invalid_session_reports_rate_limit() -> None:
    session = FakeSession()
    session.state = SessionState.INVALID
    pipeline, _, _, _ = _pipeline(FakeEngine(), session=session)

    [outcome] = pipeline.run_batch(["set.mkv"])

    assert outcome.status is OutcomeStatus.RATE_LIMITED


def test_authentication_failure_stops_the_batch() -> None:
    pipeline, _, _, _ = _pipeline(FakeEngine(error=AuthenticationFailure("bad password")))

    with pytest.raises(AuthenticationFailure):
        pipeline.run_batch(["a.mkv", "b.mkv"])


def test_setup_logging_writes_to_log_dir(tmp_path) -> None:
    root = logging.getLogger("")
    previous_handlers = list(root.handlers)
    previous_level = root.level
    try:
        setup_logging(tmp_path / "logs")
        logging.getLogger("engine.core").info("[PIPELINE] hello from the batch")
        for handler in root.handlers:
            handler.flush()

        assert "[PIPELINE] hello from the batch" in (tmp_path / "logs" / "setlistr.log").read_text(encoding="utf-8")
    finally:
        for handler in [handler for handler in root.handlers if handler not in previous_handlers]:
            root.removeHandler(handler)
            handler.close()
        root.setLevel(previous_level)
        root._setlistr_handlers = False


def test_untaggable_container_still_reports_embedded(tmp_path) -> None:
    path = str(tmp_path / "2025 Tomorrowland Martin Garrix WE2 [dQw4w9WgXcQ].mkv")
    embedded = []
    pipeline = TracklistPipeline(
        FakeSession(),
        embedder=lambda target, chapters: embedded.append(target),
        options=PipelineOptions(batch_delay_seconds=0),
        search_engine=FakeEngine([_candidate("aaa")]),
        resolver=FakeResolver({"/tracklist/aaa/set.html": TIMED_LINES}),
        chapter_reader=lambda target: None,
        duration_probe=lambda target: 62,
    )

    [outcome] = pipeline.run_batch([path])

    assert embedded == [path]
    assert outcome.status is OutcomeStatus.EMBEDDED
    assert outcome.error is None
    assert outcome.reference_stored is False
    assert len(outcome.chapters) == 2
