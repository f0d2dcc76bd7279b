"""Steam app list: download, cache and parse into an app id -> game name catalog.

The app list is fetched once and kept as a local cache file (``app.json``).
It is never refreshed automatically; delete the file or pass
``--refresh-catalog`` to fetch a new copy.
"""

from __future__ import annotations

import http.client
import json
import os
import time
import urllib.request
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

from screenshot_organizer import __version__
from screenshot_organizer.console import Logger
from screenshot_organizer.naming import is_valid_app_id, sanitize_name

STEAM_APP_LIST_URL = "https://api.steampowered.com/ISteamApps/GetAppList/v2/"

DEFAULT_CACHE_FILE = "app.json"

# Suffix of the file a download is streamed into before it replaces the cache
PARTIAL_SUFFIX = ".part"

USER_AGENT = f"steam-screenshot-organizer/{__version__}"

CHUNK_SIZE = 8192
BYTES_PER_MB = 1024 * 1024

DEFAULT_CONNECT_TIMEOUT = 15.0
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_PROGRESS_INTERVAL = 2.5

# How much of a fresh download is inspected by the cheap format check
MARKER_WINDOW = 4096
CATALOG_MARKERS = ('"applist"', '"apps"', '"appid"')


class CatalogUnavailable(Exception):
    """No usable app list could be obtained."""


class DownloadFailed(CatalogUnavailable):
    """The app list request or the write of its body failed."""


class DownloadInvalid(CatalogUnavailable):
    """The downloaded body does not look like an app list."""


class CatalogInvalid(CatalogUnavailable):
    """The cache file exists but cannot be decoded."""


class CatalogEmpty(CatalogUnavailable):
    """The cache file holds no usable app entries."""


class Catalog(Mapping[str, str]):
    """Read-only app id -> sanitized game name mapping."""

    def __init__(self, names: Mapping[str, str] | None = None) -> None:
        self._names = MappingProxyType(dict(names or {}))

    def __getitem__(self, app_id: str) -> str:
        return self._names[app_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def resolve(self, app_id: str) -> str:
        """Folder name for ``app_id``, or the id itself when it is unknown."""
        name = self._names.get(app_id)
        if not name or not name.strip():
            return app_id
        return name


def _discard(path: Path) -> None:
    """Remove a cache or partial file if it exists."""
    if path.exists():
        path.unlink()


def iter_app_entries(document: Any) -> Iterator[tuple[Any, Any]]:
    """Yield ``(appid, name)`` for every object carrying both keys.

    Objects are found at any depth, in document order, so both the classic
    ``{"applist": {"apps": [...]}}`` layout and ``{"response": {"apps": [...]}}``
    are understood.
    """
    stack: list[Any] = [document]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            if "appid" in node and "name" in node:
                yield node["appid"], node["name"]
            children = [v for v in node.values() if isinstance(v, (dict, list))]
        elif isinstance(node, list):
            children = [v for v in node if isinstance(v, (dict, list))]
        else:
            continue
        stack.extend(reversed(children))


def _app_id_text(value: Any) -> str | None:
    # JSON numbers arrive as int; bool is an int subclass and never an id
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    return None


def parse_catalog(document: Any) -> Catalog:
    """Build a catalog from a decoded app list document.

    Entries whose id is not all digits or whose name is blank are dropped.
    Later entries win over earlier ones with the same id.
    """
    names: dict[str, str] = {}
    for raw_id, raw_name in iter_app_entries(document):
        app_id = _app_id_text(raw_id)
        if not is_valid_app_id(app_id):
            continue
        if not isinstance(raw_name, str) or not raw_name.strip():
            continue
        names[app_id] = sanitize_name(raw_name.strip())
    return Catalog(names)


def looks_like_catalog(head: str) -> bool:
    """Cheap format check on the first bytes of a downloaded app list."""
    head = head.lstrip("\ufeff \t\r\n")
    if not head.startswith("{"):
        return False
    return any(marker in head for marker in CATALOG_MARKERS)


def read_cache(cache_path: Path) -> Any:
    """Read and decode the cache file.

    A cache that is not valid JSON is deleted, so the next run downloads a
    fresh copy.
    """
    try:
        with open(cache_path, encoding="utf-8-sig") as f:
            return json.load(f)
    except OSError as e:
        raise CatalogInvalid(f"Cannot read {cache_path}: {e}") from e
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        _discard(cache_path)
        raise CatalogInvalid(
            f"{cache_path} is not a valid app list and was removed; run again to re-download it"
        ) from e


def download_catalog(
    cache_path: Path,
    logger: Logger,
    url: str = STEAM_APP_LIST_URL,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    progress_interval: float = DEFAULT_PROGRESS_INTERVAL,
) -> Any:
    """Download the app list into ``cache_path`` and return the decoded document.

    The body is streamed into ``<cache>.part`` and only replaces the cache
    once it has been checked and parsed. One attempt, no retries.
    ``connect_timeout`` bounds connecting and each read; ``request_timeout``
    bounds the whole transfer.
    """
    partial = cache_path.with_name(cache_path.name + PARTIAL_SUFFIX)
    request = urllib.request.Request(
        url,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
    )

    started = time.monotonic()
    total_bytes = 0
    try:
        with urllib.request.urlopen(request, timeout=connect_timeout) as response, open(
            partial, "wb"
        ) as out:
            last_report = started
            while True:
                chunk = response.read(CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
                total_bytes += len(chunk)

                now = time.monotonic()
                if now - started > request_timeout:
                    raise TimeoutError(f"download took longer than {request_timeout:g}s")
                if now - last_report >= progress_interval:
                    logger.progress(f"Downloaded: {total_bytes / BYTES_PER_MB:.2f} MB")
                    last_report = now
    except (OSError, ValueError, http.client.HTTPException) as e:
        _discard(partial)
        raise DownloadFailed(f"Unable to download data from Steam API: {e}") from e

    logger.info(
        f"{cache_path.name} download completed. Total size: {total_bytes / BYTES_PER_MB:.2f} MB"
    )

    with open(partial, encoding="utf-8", errors="replace") as f:
        head = f.read(MARKER_WINDOW)
    if not looks_like_catalog(head):
        _discard(partial)
        raise DownloadInvalid("Downloaded data does not look like a Steam app list")

    try:
        with open(partial, encoding="utf-8-sig") as f:
            document = json.load(f)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        _discard(partial)
        raise DownloadInvalid("Downloaded data is not valid JSON") from e

    os.replace(partial, cache_path)
    return document


def load_catalog(
    cache_path: Path,
    logger: Logger,
    url: str = STEAM_APP_LIST_URL,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    progress_interval: float = DEFAULT_PROGRESS_INTERVAL,
    refresh: bool = False,
) -> Catalog:
    """Load the catalog from the cache file, downloading it first if needed.

    With ``refresh`` an existing cache is re-downloaded; if that download
    fails the existing cache is used instead.

    Raises:
        CatalogUnavailable: (or a subclass) when no usable catalog exists.
    """
    document: Any = None
    cached = cache_path.exists()

    if refresh or not cached:
        if cached:
            logger.info(f"Refreshing {cache_path.name} from Steam API...")
        else:
            logger.info(f"{cache_path.name} file not found. Downloading data from Steam API...")
        try:
            document = download_catalog(
                cache_path,
                logger,
                url=url,
                connect_timeout=connect_timeout,
                request_timeout=request_timeout,
                progress_interval=progress_interval,
            )
        except CatalogUnavailable as e:
            if not cached:
                raise
            logger.warn(f"{e}. Using existing {cache_path.name}")

    if document is None:
        document = read_cache(cache_path)

    catalog = parse_catalog(document)
    if not catalog:
        raise CatalogEmpty(f"No valid games found in {cache_path}")

    logger.verbose(f"Loaded {len(catalog)} games from {cache_path.name}")
    return catalog
