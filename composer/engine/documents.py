#!/usr/bin/env python3
"""
Animation Document Cache

Fetches vector animation documents asynchronously and caches them by source path.
While a fetch is in flight the owning item renders a placeholder; the frame loop never
blocks on it. The cache is append-only: once a source resolves (successfully or not) it
is never fetched again, and failures are not retried.

Sources may be package-relative paths (resolved against the data directory), absolute
paths, file:// URIs or http(s):// URLs.
"""

import json
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import unquote, urlparse

import requests

from composer.core import DocumentsCfg, get_logger

from .errors import AnimationLoadFailure
from .sdk import Paths

log = get_logger("documents")

Fetcher = Callable[[str], Union[str, bytes, Dict[str, Any]]]


class DocumentStatus(str, Enum):
    MISSING = "missing"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def parse_document(source: str, raw: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Parse and minimally validate a vector animation document.

    Raises:
        AnimationLoadFailure: If the payload is not a JSON object with a layer list
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise AnimationLoadFailure(source, f"invalid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise AnimationLoadFailure(source, "document is not a JSON object")
    if not isinstance(raw.get("layers"), list):
        raise AnimationLoadFailure(source, "document has no layer list")
    return raw


class AnimationDocumentCache:
    """Source path -> Future[document]. Only the injector reads the cached documents."""

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        executor: Optional[Executor] = None,
        timeout: float = 15.0,
        max_workers: int = 2,
        base_dir: Optional[Union[str, Path]] = None,
    ):
        self.timeout = timeout
        self.base_dir = Path(base_dir) if base_dir else Paths.data_dir()
        self.fetcher = fetcher or self.fetch
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="doc-fetch")
        self.futures: Dict[str, Future] = {}
        self.fetch_count = 0
        self.lock = Lock()

    @classmethod
    def from_config(cls, cfg: DocumentsCfg, base_dir: Optional[Union[str, Path]] = None, **kwargs) -> "AnimationDocumentCache":
        return cls(timeout=cfg.fetch_timeout_sec, max_workers=cfg.max_workers, base_dir=base_dir, **kwargs)

    # ------------------------------------------------------------- fetching

    def fetch(self, source: str) -> Union[str, bytes]:
        """Default fetcher: HTTP(S) through requests, everything else from disk."""
        parsed = urlparse(source)
        if parsed.scheme in ("http", "https"):
            response = requests.get(source, timeout=self.timeout)
            response.raise_for_status()
            return response.content
        if parsed.scheme == "file":
            path = Path(unquote(parsed.path))
        else:
            path = Path(source)
            if not path.is_absolute():
                path = self.base_dir / path
        return path.read_bytes()

    def _load(self, source: str) -> Dict[str, Any]:
        try:
            raw = self.fetcher(source)
        except (requests.RequestException, OSError) as e:
            log.error(f"Fetch failed for {source}: {e}")
            raise AnimationLoadFailure(source, str(e)) from e
        try:
            document = parse_document(source, raw)
        except AnimationLoadFailure as e:
            log.error(str(e))
            raise
        log.info(f"Loaded animation {source} ({len(document['layers'])} layers)")
        return document

    def request(self, source: str) -> Future:
        """Start (or join) the fetch for source. Never fetches a source twice."""
        with self.lock:
            future = self.futures.get(source)
            if future is None:
                future = self.executor.submit(self._load, source)
                self.futures[source] = future
                self.fetch_count += 1
                log.debug(f"Fetching animation {source}")
            return future

    # ------------------------------------------------------------- queries

    def status(self, source: str) -> DocumentStatus:
        with self.lock:
            future = self.futures.get(source)
        if future is None:
            return DocumentStatus.MISSING
        if not future.done():
            return DocumentStatus.LOADING
        return DocumentStatus.FAILED if future.exception() is not None else DocumentStatus.READY

    def peek(self, source: str) -> Optional[Dict[str, Any]]:
        """The cached document if it has resolved successfully, else None."""
        if self.status(source) != DocumentStatus.READY:
            return None
        return self.futures[source].result()

    def error(self, source: str) -> Optional[AnimationLoadFailure]:
        if self.status(source) != DocumentStatus.FAILED:
            return None
        exc = self.futures[source].exception()
        if isinstance(exc, AnimationLoadFailure):
            return exc
        return AnimationLoadFailure(source, str(exc))

    def load(self, source: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Block until source resolves (export path).

        Raises:
            AnimationLoadFailure: If the fetch or parse failed
        """
        future = self.request(source)
        exc = future.exception(timeout=timeout)
        if exc is None:
            return future.result()
        if isinstance(exc, AnimationLoadFailure):
            raise exc
        raise AnimationLoadFailure(source, str(exc)) from exc

    def sources(self) -> List[str]:
        with self.lock:
            return list(self.futures)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=wait)
