import logging
import os
import re
import time
from typing import Any, Callable
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from requests.cookies import create_cookie
from urllib3.util.retry import Retry

from catalog.session_store import SessionRecord, SessionStore, StoredCookie
from engine.errors import AuthenticationFailure, RateLimited, SessionUnavailable
from metadata.types import SessionState

logger = logging.getLogger(__name__)

CATALOG_BASE_URL = os.getenv("SETLISTR_BASE_URL", "https://www.1001tracklists.com")
CATALOG_USER_AGENT = os.getenv(
    "SETLISTR_USER_AGENT",
    "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0",
)
CATALOG_TIMEOUT_SECONDS = float(os.getenv("SETLISTR_TIMEOUT_SECONDS", "20"))
CATALOG_MAX_REDIRECTS = int(os.getenv("SETLISTR_MAX_REDIRECTS", "5"))

LOGIN_PATH = "/action/login.html"
ACCOUNT_PATH = "/my/"
REQUIRED_SESSION_COOKIES = ("sid", "uid")

_RATE_LIMIT_RE = re.compile(
    r"(?:you have reached the (?:maximum|limit) of|too many requests|unusual traffic from your)",
    re.IGNORECASE,
)
_AUTHENTICATED_MARKER_RE = re.compile(r"(?:/action/logout|>\s*Logout\s*<|id=\"userMenu\")", re.IGNORECASE)
_LOGGED_OUT_MARKER_RE = re.compile(r"(?:id=\"loginForm\"|/action/login\.html|>\s*Login\s*<)", re.IGNORECASE)


def is_rate_limited(body: str | None) -> bool:
    return bool(_RATE_LIMIT_RE.search(body or ""))


def _build_http_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": CATALOG_USER_AGENT})
    session.max_redirects = CATALOG_MAX_REDIRECTS
    retry = Retry(
        total=3,
        backoff_factor=0.4,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _has_required_cookies(jar: Any) -> bool:
    names = {cookie.name for cookie in jar}
    return all(name in names for name in REQUIRED_SESSION_COOKIES)


class CatalogSession:
    """Owns the catalog login and every HTTP request made against the site.

    Lifecycle: ``UNINITIALIZED -> RESTORING -> ACTIVE``, or on a rejected
    cache ``INVALID -> FRESH -> ACTIVE``. A rate-limit page seen on any
    request moves the session to ``INVALID`` and purges the persisted
    cache; the next ``ensure_active()`` logs in again.
    """

    def __init__(
        self,
        *,
        email: str | None = None,
        password: str | None = None,
        store: SessionStore | None = None,
        http_factory: Callable[[], Any] | None = None,
        base_url: str = CATALOG_BASE_URL,
        timeout_seconds: float = CATALOG_TIMEOUT_SECONDS,
    ) -> None:
        self.identity = (email or "").strip()
        self._password = password or ""
        self._store = store or SessionStore()
        self._http_factory = http_factory or _build_http_session
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout_seconds = timeout_seconds
        self._http: Any = None
        self.state = SessionState.UNINITIALIZED
        self.authenticated = False
        self.validated_at: float | None = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.identity and self._password)

    def url_for(self, path: str) -> str:
        return urljoin(self.base_url, path)

    def ensure_active(self) -> None:
        """Bring the session to ``ACTIVE``, restoring or logging in as needed."""
        if self.state is SessionState.ACTIVE:
            return
        if self.has_credentials and self._restore():
            return
        self._login()

    def _restore(self) -> bool:
        self.state = SessionState.RESTORING
        record = self._store.load()
        if record is None:
            self.state = SessionState.INVALID
            return False

        reason = None
        now = time.time()
        if record.identity != self.identity:
            reason = "identity_mismatch"
        elif any(cookie.is_expired(now) for cookie in record.cookies):
            reason = "cookie_expired"

        http = None
        if reason is None:
            http = self._http_factory()
            for cookie in record.cookies:
                http.cookies.set_cookie(
                    create_cookie(
                        name=cookie.name,
                        value=cookie.value,
                        domain=cookie.domain,
                        path=cookie.path or "/",
                        expires=cookie.expires,
                    )
                )
            probe = http.get(self.url_for(ACCOUNT_PATH), timeout=self.timeout_seconds)
            body = probe.text or ""
            if is_rate_limited(body):
                reason = "rate_limited"
            elif not _AUTHENTICATED_MARKER_RE.search(body) and _LOGGED_OUT_MARKER_RE.search(body):
                reason = "logged_out"
            elif not _has_required_cookies(http.cookies):
                reason = "missing_cookies"

        if reason is not None:
            logger.info(f"[SESSION] restore rejected identity={self.identity} reason={reason}")
            self._store.clear()
            self.state = SessionState.INVALID
            return False

        self._http = http
        self.authenticated = True
        self.validated_at = now
        self.state = SessionState.ACTIVE
        logger.info(f"[SESSION] restored identity={self.identity} saved_at={record.timestamp:.0f}")
        return True

    def _login(self) -> None:
        self.state = SessionState.FRESH
        self.authenticated = False
        http = self._http_factory()
        priming = http.get(self.base_url, timeout=self.timeout_seconds)
        if is_rate_limited(priming.text):
            self._invalidate("rate_limited_on_priming")
            raise RateLimited("catalog rate limit reached before login")

        if not self.has_credentials:
            self._http = http
            self.validated_at = time.time()
            self.state = SessionState.ACTIVE
            logger.info("[SESSION] anonymous session active")
            return

        # The site redirects on success and failure alike; only the cookies tell.
        http.post(
            self.url_for(LOGIN_PATH),
            data={"email": self.identity, "password": self._password, "referer": self.base_url},
            headers={"Referer": self.base_url},
            timeout=self.timeout_seconds,
        )
        if not _has_required_cookies(http.cookies):
            self.state = SessionState.INVALID
            raise AuthenticationFailure(
                f"login for {self.identity} did not yield session cookies {', '.join(REQUIRED_SESSION_COOKIES)}"
            )

        self._http = http
        self.authenticated = True
        self.validated_at = time.time()
        self.state = SessionState.ACTIVE
        self._persist()
        logger.info(f"[SESSION] logged in identity={self.identity}")

    def _persist(self) -> None:
        cookies = [
            StoredCookie(
                name=cookie.name,
                value=cookie.value or "",
                domain=cookie.domain or "",
                path=cookie.path or "/",
                expires=int(cookie.expires) if cookie.expires is not None else None,
            )
            for cookie in self._http.cookies
        ]
        self._store.save(SessionRecord(identity=self.identity, timestamp=time.time(), cookies=cookies))

    def _invalidate(self, reason: str) -> None:
        logger.warning(f"[SESSION] invalidated identity={self.identity or '-'} reason={reason}")
        self._http = None
        self.authenticated = False
        self.validated_at = None
        self.state = SessionState.INVALID
        self._store.clear()

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Issue one request through the active session.

        Raises ``SessionUnavailable`` unless ``ACTIVE`` and ``RateLimited``
        when the response is the catalog's rate-limit page.
        """
        if self.state is not SessionState.ACTIVE or self._http is None:
            raise SessionUnavailable(f"catalog session is {self.state.value}")
        kwargs.setdefault("timeout", self.timeout_seconds)
        response = self._http.request(method, self.url_for(path), **kwargs)
        logger.info(f"[CATALOG] request={method} {path} status={response.status_code}")
        if is_rate_limited(response.text):
            self._invalidate("rate_limited")
            raise RateLimited(f"catalog rate limit reached on {path}")
        return response

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Any:
        return self.request("POST", path, **kwargs)
