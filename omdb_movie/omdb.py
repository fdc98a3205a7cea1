"""Lightweight OMDb API helper.

Provides a function to search movies by title using the OMDb API and
normalize the results. The API key, base URL and timeout come from the Flask
configuration (see ``create_app``), which reads them from the environment.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from data_manager.data_manager import normalize_poster
from errors.errors import ConfigError, NotFound, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_OMDB_URL = "https://www.omdbapi.com/"


def search_omdb(
    title: str,
    *,
    api_key: Optional[str],
    url: str = DEFAULT_OMDB_URL,
    timeout: float = 10,
) -> Dict[str, Any]:
    """Search OMDb for movies whose title matches ``title``.

    Args:
        title: The title query (required, non-empty).
        api_key: OMDb API key.
        url: OMDb endpoint.
        timeout: Seconds to wait for OMDb before giving up.

    Returns:
        dict: ``{"movies": [...], "totalResults": int}`` where each movie is
        ``{"title", "year", "poster", "imdbID"}`` and a missing poster is None.

    Raises:
        ValidationError: If the title is empty. OMDb is not called.
        ConfigError: If no API key is configured.
        NotFound: If OMDb reports no results (carries OMDb's message).
        UpstreamError: If OMDb rejects the key, times out or fails otherwise.
    """
    title = (title or "").strip()
    if not title:
        raise ValidationError("Movie title is required")
    if not api_key:
        raise ConfigError(
            "OMDB_API_KEY is not set. Create a .env file or export the variable."
        )

    params = {"s": title, "apikey": api_key, "type": "movie"}
    try:
        resp = requests.get(url, params=params, timeout=timeout)
    except requests.exceptions.Timeout:
        logger.warning("OMDb search for %r timed out after %ss", title, timeout)
        raise UpstreamError("Movie provider timed out")
    except requests.exceptions.RequestException as exc:
        logger.error("OMDb search for %r failed: %s", title, exc)
        raise UpstreamError("Failed to connect to movie provider")

    if resp.status_code == 401:
        logger.error("OMDb rejected the configured API key")
        raise UpstreamError("Invalid OMDb API key")
    try:
        resp.raise_for_status()
        payload = resp.json()
    except requests.exceptions.HTTPError as exc:
        logger.error("OMDb search for %r returned HTTP error: %s", title, exc)
        raise UpstreamError(f"Movie provider returned HTTP {resp.status_code}")
    except ValueError:
        logger.error("OMDb search for %r returned a non-JSON body", title)
        raise UpstreamError("Movie provider returned an invalid response")

    if payload.get("Response") == "False":
        raise NotFound(payload.get("Error") or "No movies found")

    return {
        "movies": [_normalize(item) for item in payload.get("Search") or []],
        "totalResults": _to_int(payload.get("totalResults")),
    }


def _normalize(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "title": item.get("Title"),
        "year": item.get("Year"),
        "poster": normalize_poster(item.get("Poster")),
        "imdbID": item.get("imdbID"),
    }


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0

