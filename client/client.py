"""Python client for the movie search & save API.

The logged-in state lives in an explicit ``ApiSession`` object owned by the
caller: logging in loads it, logging out (or any 401 from the server) clears
it, and every protected call reads the bearer token from it.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class ApiClientError(Exception):
    """An API call failed; carries the HTTP status and the server's message."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class ApiSession:
    """Token and user of the currently logged-in account."""

    def __init__(self):
        self.token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.user)

    def load(self, token: str, user: Dict[str, Any]) -> None:
        self.token = token
        self.user = user

    def clear(self) -> None:
        self.token = None
        self.user = None

    def auth_headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


class MovieApiClient:
    """Thin wrapper over the HTTP API using ``requests``."""

    def __init__(
        self,
        base_url: str = "http://localhost:5000/api",
        session: Optional[ApiSession] = None,
        http: Optional[requests.Session] = None,
        timeout: float = 15,
    ):
        """Create a new client.

        Args:
            base_url: API root, including the ``/api`` prefix.
            session: Session context to read/update; a fresh one by default.
            http: ``requests.Session`` used for transport.
            timeout: Per-request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.session = session or ApiSession()
        self.http = http or requests.Session()
        self.timeout = timeout

    def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json", **self.session.auth_headers()}
        resp = self.http.request(
            method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs
        )
        try:
            body = resp.json()
        except ValueError:
            body = {}

        if resp.status_code == 401:
            # Token expired or invalid.
            self.session.clear()
        if resp.status_code >= 400 or not body.get("success", False):
            message = body.get("message") or f"Request failed with status {resp.status_code}"
            logger.debug("%s %s failed: %s", method, path, message)
            raise ApiClientError(resp.status_code, message)
        return body.get("data") or {}

    # ------------------------- Auth ------------------------
    def register(self, email: str, password: str) -> Dict[str, Any]:
        data = self._call("POST", "/auth/register", json={"email": email, "password": password})
        self.session.load(data["token"], data["user"])
        return data["user"]

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._call("POST", "/auth/login", json={"email": email, "password": password})
        self.session.load(data["token"], data["user"])
        return data["user"]

    def logout(self) -> None:
        self.session.clear()

    # ------------------------- Movies ------------------------
    def search(self, title: str) -> Dict[str, Any]:
        """Return ``{"movies": [...], "totalResults": n}`` for a title query."""
        return self._call("GET", "/movies/search", params={"title": title})

    def save(self, movie: Dict[str, Any]) -> Dict[str, Any]:
        """Save a search result (OMDb-style or normalized keys)."""
        payload = {
            "title": movie.get("Title") or movie.get("title"),
            "year": movie.get("Year") or movie.get("year"),
            "poster": movie.get("Poster") or movie.get("poster"),
            "imdbID": movie.get("imdbID") or movie.get("externalID"),
        }
        return self._call("POST", "/movies/save", json=payload)["movie"]

    def saved(self) -> List[Dict[str, Any]]:
        return self._call("GET", "/movies/list")["movies"]

    def remove(self, imdb_id: str) -> None:
        self._call("DELETE", f"/movies/remove/{requests.utils.quote(imdb_id, safe='')}")
