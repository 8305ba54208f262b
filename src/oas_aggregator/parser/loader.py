"""Document loader with a per-run, thread-safe parse cache.

A loader instance is the only state shared between parallel bundling
tasks. Each distinct file is parsed at most once per loader: concurrent
requests for the same path wait on a per-path lock while the first one
loads it.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any

import yaml

from oas_aggregator.errors import FILE_NOT_FOUND, DocumentLoadError
from oas_aggregator.parser.detect import parse_text

logger = logging.getLogger(__name__)


def normalize_path(path: str | Path) -> str:
    """Absolute, normalized cache key for a document path."""
    return str(Path(path).expanduser().resolve())


class DocumentLoader:
    """Load YAML/JSON documents by absolute path, caching parsed trees.

    In-memory buffers registered with :meth:`add_source` are served under
    their (virtual) path before the filesystem is consulted, so a
    multi-file spec can be supplied entirely from memory.
    """

    def __init__(self, sources: dict[str, str] | None = None):
        self._cache: dict[str, Any] = {}
        self._sources: dict[str, str] = {}
        self._lock = threading.Lock()
        self._path_locks: dict[str, threading.Lock] = {}
        for name, text in (sources or {}).items():
            self.add_source(name, text)

    def add_source(self, name: str | Path, text: str) -> str:
        """Register document text under ``name``; returns the cache key."""
        key = normalize_path(name)
        with self._lock:
            self._sources[key] = text
            self._cache.pop(key, None)
        return key

    def load(self, path: str | Path) -> Any:
        """Return the parsed tree for ``path``, loading it on first use."""
        key = normalize_path(path)
        with self._lock:
            if key in self._cache:
                logger.debug(f"Cache hit for {key}")
                return self._cache[key]
            path_lock = self._path_locks.setdefault(key, threading.Lock())

        with path_lock:
            # Another thread may have finished loading while we waited.
            with self._lock:
                if key in self._cache:
                    return self._cache[key]
            tree = self._read(key)
            with self._lock:
                self._cache[key] = tree
        return tree

    def is_cached(self, path: str | Path) -> bool:
        with self._lock:
            return normalize_path(path) in self._cache

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._path_locks.clear()

    def _read(self, key: str) -> Any:
        if key in self._sources:
            text = self._sources[key]
        else:
            file_path = Path(key)
            if not file_path.is_file():
                raise DocumentLoadError(f"File not found: {key}", path=key, code=FILE_NOT_FOUND)
            try:
                text = file_path.read_text(encoding="utf-8")
            except OSError as e:
                raise DocumentLoadError(f"Cannot read {key}: {e}", path=key) from e

        logger.debug(f"Parsing {key}")
        try:
            return parse_text(key, text)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise DocumentLoadError(f"Cannot parse {key}: {e}", path=key) from e
