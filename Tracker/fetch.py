"""Fetch JSON item data from a local file or an http(s) URL."""
from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx
import requests
import requests_cache
from pydantic import TypeAdapter, ValidationError

from .config import FetchSettings

JSONPayload = Union[Dict[str, Any], List[Any]]

JSON_PAYLOAD_ADAPTER: TypeAdapter = TypeAdapter(JSONPayload)


class FetchError(Exception):
    """Raised when a source cannot be fetched or is not valid JSON."""


def is_remote(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _validate(payload: Any, source: str) -> JSONPayload:
    try:
        return JSON_PAYLOAD_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise FetchError(f"Unexpected payload structure from {source}: {exc}") from exc


def _read_local(source: str) -> Any:
    path = Path(source)
    try:
        raw_text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FetchError(f"Unable to read {path}: {exc}") from exc
    try:
        return json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise FetchError(f"Invalid JSON in {path}: {exc}") from exc


def _fetch_cached(url: str, settings: FetchSettings) -> Any:
    expire = (
        None if settings.cache_expire_seconds is None
        else timedelta(seconds=settings.cache_expire_seconds)
    )
    session = requests_cache.CachedSession(cache_name=settings.cache_name, expire_after=expire)
    try:
        response = session.get(url, timeout=settings.timeout_seconds,
                                headers={"Accept": "application/json"})
        response.raise_for_status()
        return response.json()
    except requests.HTTPError as exc:
        raise FetchError(f"HTTP error {exc.response.status_code} when requesting {url}") from exc
    except requests.RequestException as exc:
        raise FetchError(f"Request failure when reaching {url}: {exc}") from exc
    except ValueError as exc:
        raise FetchError(f"Received invalid JSON from {url}: {exc}") from exc
    finally:
        session.close()


def _fetch_remote(url: str, settings: FetchSettings) -> Any:
    transport = httpx.HTTPTransport(retries=settings.max_retries)
    headers = {"Accept": "application/json"}
    try:
        with httpx.Client(transport=transport, timeout=httpx.Timeout(settings.timeout_seconds),
                          headers=headers, follow_redirects=True) as client:
            response = client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise FetchError(
            f"HTTP error {exc.response.status_code} when requesting {url}: {exc.response.reason_phrase}"
        ) from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"Request failure when reaching {url}: {exc}") from exc

    try:
        return response.json()
    except (json.JSONDecodeError, ValueError) as exc:
        raise FetchError(f"Received invalid JSON from {url}: {exc}") from exc


def fetch_json(source: str, settings: Optional[FetchSettings] = None) -> JSONPayload:
    """
    Load a JSON document from a path or URL.

    Parameters
    ----------
    source : str
        Filesystem path, or an http(s) URL.
    settings : FetchSettings, optional
        Timeout, retry and cache options for remote sources.

    Raises
    ------
    FetchError
        On any I/O, HTTP, or decoding failure.
    """
    settings = settings or FetchSettings()
    if is_remote(source):
        if settings.cache_enabled:
            payload = _fetch_cached(source, settings)
        else:
            payload = _fetch_remote(source, settings)
    else:
        payload = _read_local(source)
    return _validate(payload, source)
