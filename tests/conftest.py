import sys
from pathlib import Path

import pytest
from requests.cookies import RequestsCookieJar


# Ensure tests can import project packages regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

FIXTURES = Path(__file__).resolve().parent / "fixtures"


class FakeResponse:
    def __init__(self, text="", status_code=200, json_payload=None, url=""):
        self.text = text
        self.status_code = status_code
        self.url = url
        self._json_payload = json_payload

    def json(self):
        if self._json_payload is None:
            raise ValueError("no JSON body")
        return self._json_payload


class FakeHttp:
    """Stands in for ``requests.Session``: canned responses, recorded calls, real cookie jar."""

    def __init__(self, routes=None, login_cookies=None):
        self.routes = dict(routes or {})
        self.login_cookies = dict(login_cookies or {})
        self.cookies = RequestsCookieJar()
        self.headers = {}
        self.calls = []

    def _respond(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        for fragment, response in self.routes.items():
            if fragment in url:
                if callable(response):
                    return response(method, url, **kwargs)
                return response
        return FakeResponse("<html><body>ok</body></html>", url=url)

    def get(self, url, **kwargs):
        return self._respond("GET", url, **kwargs)

    def post(self, url, **kwargs):
        if "/action/login" in url:
            for name, value in self.login_cookies.items():
                self.cookies.set(name, value, domain="www.1001tracklists.com", path="/")
        return self._respond("POST", url, **kwargs)

    def request(self, method, url, **kwargs):
        return self._respond(method, url, **kwargs)


@pytest.fixture
def fixture_text():
    def _read(name):
        return (FIXTURES / name).read_text(encoding="utf-8")

    return _read
