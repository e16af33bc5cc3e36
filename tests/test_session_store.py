from catalog.session_store import SessionRecord, SessionStore, StoredCookie


def test_save_and_load(tmp_path):
    store = SessionStore(tmp_path / "tokens" / "session.json")
    record = SessionRecord(
        identity="dj@example.com",
        timestamp=1700000000.5,
        cookies=[StoredCookie(name="sid", value="abc", domain="www.1001tracklists.com", expires=1800000000)],
    )

    store.save(record)
    loaded = store.load()

    assert loaded == record
    assert not (tmp_path / "tokens" / "session.json.tmp").exists()


def test_missing_or_corrupt_file_loads_as_none(tmp_path):
    path = tmp_path / "session.json"
    store = SessionStore(path)
    assert store.load() is None

    path.write_text("{not json", encoding="utf-8")
    assert store.load() is None

    path.write_text("[1, 2]", encoding="utf-8")
    assert store.load() is None


def test_clear_is_idempotent(tmp_path):
    store = SessionStore(tmp_path / "session.json")
    store.save(SessionRecord(identity="a", timestamp=1.0))

    store.clear()
    store.clear()

    assert store.load() is None


def test_payload_skips_nameless_cookies():
    record = SessionRecord.from_payload(
        {"identity": "a", "timestamp": 5, "cookies": [{"value": "x"}, {"name": "uid", "value": 7}]}
    )

    assert [cookie.name for cookie in record.cookies] == ["uid"]
    assert record.cookies[0].value == "7"
    assert record.cookies[0].path == "/"


def test_cookie_expiry():
    assert StoredCookie(name="sid", value="x").is_expired(now=10**10) is False
    assert StoredCookie(name="sid", value="x", expires=100).is_expired(now=100) is True
    assert StoredCookie(name="sid", value="x", expires=101).is_expired(now=100) is False
