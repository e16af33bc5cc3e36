from catalog.html_parsing import (
    ParsedTrack,
    clean_html_text,
    parse_document_title,
    parse_loose_tracks,
    parse_search_results,
    parse_track_blocks,
    parse_tracklist_page,
)


def test_search_results_skip_duplicates_pagination_and_linkless_items(fixture_text):
    items = parse_search_results(fixture_text("search_results.html"))

    assert [item.id for item in items] == ["2x1lq0yt", "1r9kd3pt", "9zz0aa1b"]
    first = items[0]
    assert first.title == "Martin Garrix @ Mainstage, Tomorrowland Weekend 2, Belgium 2025-07-27"
    assert first.url.startswith("/tracklist/2x1lq0yt/")
    assert first.duration_text == "1h 2m"
    assert first.date_text == "2025-07-27"
    assert items[2].duration_text == ""


def test_search_results_on_empty_page():
    assert parse_search_results("") == []
    assert parse_search_results("<html><body>No results</body></html>") == []


def test_document_title_drops_site_suffixes(fixture_text):
    assert (
        parse_document_title(fixture_text("tracklist_page.html"))
        == "Sub Zero Project @ Amsterdam Music Festival, Johan Cruijff ArenA 2025-10-18"
    )
    assert parse_document_title(fixture_text("tracklist_page_loose.html")) == (
        "Charlotte de Witte @ Awakenings Festival 2024"
    )
    assert parse_document_title("<html></html>") is None


def test_track_blocks_pair_cues_before_dropping_merged_tracks(fixture_text):
    tracks = parse_track_blocks(fixture_text("tracklist_page.html"))

    assert tracks == [
        ParsedTrack(title="Sub Zero Project - The Project", cue_seconds=0),
        ParsedTrack(title="Sub Zero Project & Dual Damage - Rage", cue_seconds=185),
        ParsedTrack(title="ID - ID", cue_seconds=None),
        ParsedTrack(title="Sub Zero Project - Phoenix", cue_seconds=3725),
    ]


def test_nameless_timed_block_becomes_id():
    body = (
        '<div class="tlpTog tlpItem"><span class="trackValue"> </span></div>'
        '<div class="tlpTog tlpItem"></div>'
        "<script>var cueSeconds = [60, ''];</script>"
    )

    assert parse_track_blocks(body) == [ParsedTrack(title="ID", cue_seconds=60)]


def test_loose_tracks_pair_names_with_following_times(fixture_text):
    tracks = parse_loose_tracks(fixture_text("tracklist_page_loose.html"))

    assert [(track.title, track.cue_text) for track in tracks] == [
        ("Charlotte de Witte - Overdrive", "0:00"),
        ("Amelie Lens - Feel It", "4:12"),
        ("Charlotte de Witte - Selected", None),
        ("KNTXT - Closing", "1:02:03"),
    ]


def test_tracklist_page_falls_back_to_loose_parsing(fixture_text):
    tracks = parse_tracklist_page(fixture_text("tracklist_page_loose.html"))

    assert len(tracks) == 4
    assert all(track.cue_seconds is None for track in tracks)


def test_clean_html_text():
    assert clean_html_text("  Armin&nbsp;van <b>Buuren</b>\n") == "Armin van Buuren"
    assert clean_html_text(None) == ""
