"""Conditional, cached retrieval of remote libraries."""

from __future__ import annotations

from collections.abc import Callable
import hashlib
import logging
from threading import Lock
import time
from typing import TYPE_CHECKING, Any

import requests
from slugify import slugify
import urllib3

from ..config import DORMANCY_SECONDS, TRANSIENT_EXPIRATION_SECONDS
from ..diagnostics import DiagnosticEmitter, LoggingEmitter
from ..exceptions import FetchError
from ..transients import TransientStore


if TYPE_CHECKING:  # pragma: no cover - typing only
    from requests import Session as RequestsSession
else:
    RequestsSession = Any


logger = logging.getLogger(__name__)

_NAMESPACE = "fetcher"


def fetch_prefix(url: str) -> str:
    """Return the transient name prefix scoping the fetch state of ``url``."""
    return slugify(f"{_NAMESPACE}-{hashlib.md5(url.encode('utf-8')).hexdigest()}") + "-"


class Fetcher:
    """Retrieve URLs with ETag revalidation, a dormancy window, and stale-on-error.

    The fetch state of every URL (last ETag, last download time, last body)
    lives in a `TransientStore` so that it survives process restarts. TLS
    certificates are not verified unless ``verify_tls`` is set: libraries are
    frequently served from self-signed or test endpoints.
    """

    _DEFAULT_USER_AGENT = "bibcite-library-fetcher"

    def __init__(
        self,
        transients: TransientStore,
        *,
        session: RequestsSession | None = None,
        dormancy_seconds: float = DORMANCY_SECONDS,
        expiration_seconds: float = TRANSIENT_EXPIRATION_SECONDS,
        timeout: float = 30.0,
        verify_tls: bool = False,
        user_agent: str | None = None,
        clock: Callable[[], float] = time.time,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self._transients = transients
        self._session_lock = Lock()
        self._session: RequestsSession | None = session
        self._dormancy = dormancy_seconds
        self._expiration = expiration_seconds
        self._timeout = timeout
        self._verify_tls = verify_tls
        self._user_agent = user_agent or self._DEFAULT_USER_AGENT
        self._clock = clock
        self._emitter = emitter or LoggingEmitter(logger_obj=logger)

    def fetch(self, url: str, force_refresh: bool = False) -> bytes | None:
        """Return the body of ``url``, using cached state where possible.

        The result is None only when the URL has never been fetched
        successfully and the current attempt failed as well.
        """
        prefix = fetch_prefix(url)
        body_name = f"{prefix}request-body"
        etag_name = f"{prefix}last-etag"
        time_name = f"{prefix}last-downloaded-time"

        last_etag = self._transients.get(etag_name)
        last_downloaded = self._transients.get(time_name)
        logger.debug("%s - last ETag: %r, last downloaded: %r", url, last_etag, last_downloaded)

        if last_downloaded is not None:
            if force_refresh:
                logger.debug("%s - forcing a new download", url)
            elif self._clock() - float(last_downloaded) < self._dormancy:
                self._emitter.event("library_fetch_cached", {"url": url, "reason": "dormant"})
                return self._cached_body(body_name)

        headers = {"User-Agent": self._user_agent}
        if last_etag and not force_refresh:
            headers["If-None-Match"] = str(last_etag)

        try:
            response = self._request(url, headers)
        except FetchError as exc:
            self._emitter.warning(f"Error retrieving {url}: {exc}. Returning cached value.", exc)
            return self._cached_body(body_name)

        new_etag = response.headers.get("ETag")
        self._transients.set(etag_name, new_etag, self._expiration)
        self._transients.set(time_name, self._clock(), self._expiration)
        self._emitter.event("library_fetch", {"url": url, "status": response.status_code})

        body = response.content or b""
        if not body:
            self._emitter.event("library_fetch_cached", {"url": url, "reason": "not modified"})
            return self._cached_body(body_name)

        self._transients.set(body_name, body, self._expiration)
        return body

    def clear(self) -> None:
        """Forget the fetch state of every URL."""
        self._transients.delete_prefix(f"{_NAMESPACE}-")

    def _cached_body(self, name: str) -> bytes | None:
        cached = self._transients.get(name)
        if cached is None:
            return None
        if isinstance(cached, str):
            return cached.encode("utf-8")
        return cached

    def _request(self, url: str, headers: dict[str, str]) -> Any:
        client = self._ensure_session()
        try:
            response = client.get(
                url,
                headers=headers,
                timeout=self._timeout,
                allow_redirects=True,
                verify=self._verify_tls,
            )
        except requests.RequestException as exc:
            raise FetchError(str(exc)) from exc
        if response.status_code >= 400:
            raise FetchError(f"HTTP {response.status_code}")
        return response

    def _ensure_session(self) -> RequestsSession:
        if self._session is not None:
            return self._session
        with self._session_lock:
            if self._session is None:
                if not self._verify_tls:
                    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
                self._session = requests.Session()
            return self._session


__all__ = ["Fetcher", "fetch_prefix"]
