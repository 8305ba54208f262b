"""Resolve ``$ref`` pointers within and across spec files.

Resolution is transitive: a pointer whose target is itself a ``$ref`` is
followed until a concrete node is reached. Every location visited along
one chain is tracked, so a chain that comes back to a location raises
CircularReferenceError instead of looping.
"""

import logging
import threading
from pathlib import Path
from typing import Any

from oas_aggregator.errors import CircularReferenceError, DocumentLoadError, ReferenceResolutionError
from oas_aggregator.parser.base import SourceLocation
from oas_aggregator.parser.loader import DocumentLoader, normalize_path
from oas_aggregator.resolver.pointer import REMOTE_PREFIXES, is_ref, split_ref, walk_pointer

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """Follow ``$ref`` chains to concrete nodes, memoizing results.

    Results are cached per (document, ref string): relative file refs only
    depend on the directory of the referencing document, not on where in
    that document the ref sits.
    """

    def __init__(self, loader: DocumentLoader | None = None):
        self.loader = loader or DocumentLoader()
        self._memo: dict[tuple[str, str], tuple[Any, SourceLocation]] = {}
        self._lock = threading.Lock()

    def resolve(self, pointer: str, current: SourceLocation) -> tuple[Any, SourceLocation]:
        """Resolve ``pointer`` as written inside the node at ``current``.

        Returns the concrete target node and its location.
        """
        key = (current.file_path, pointer)
        with self._lock:
            cached = self._memo.get(key)
        if cached is not None:
            return cached

        chain = [current]
        visited = {current}
        ref, location = pointer, current
        while True:
            target = self.locate(ref, location)
            if target in visited:
                raise CircularReferenceError(chain + [target])
            chain.append(target)
            visited.add(target)

            node = self.fetch(target, ref=ref, referenced_from=location)
            if not is_ref(node):
                break
            ref, location = node["$ref"], target

        result = (node, target)
        with self._lock:
            self._memo[key] = result
        return result

    def locate(self, ref: str, current: SourceLocation) -> SourceLocation:
        """Turn a ref string into the absolute location it names, without loading it."""
        if ref.startswith(REMOTE_PREFIXES):
            raise ReferenceResolutionError(
                f"Remote reference {ref!r} in {current.file_path} is not supported",
                ref=ref,
                referenced_from=str(current),
            )
        file_part, fragment = split_ref(ref)
        if file_part:
            file_path = normalize_path(Path(current.file_path).parent / file_part)
        else:
            file_path = current.file_path
        if fragment and not fragment.startswith("/"):
            raise ReferenceResolutionError(
                f"Unsupported fragment {fragment!r} in $ref {ref!r}",
                ref=ref,
                referenced_from=str(current),
            )
        return SourceLocation(file_path=file_path, pointer=fragment)

    def fetch(self, target: SourceLocation, ref: str, referenced_from: SourceLocation) -> Any:
        """Load the node at ``target`` (one hop, no chain following)."""
        try:
            document = self.loader.load(target.file_path)
        except DocumentLoadError as e:
            raise ReferenceResolutionError(
                f"Cannot load {target.file_path} for $ref {ref!r} in {referenced_from.file_path}: {e.message}",
                ref=ref,
                referenced_from=str(referenced_from),
            ) from e
        try:
            return walk_pointer(document, target.pointer)
        except KeyError as e:
            raise ReferenceResolutionError(
                f"$ref {ref!r} in {referenced_from.file_path}: no {e.args[0]!r} at {target}",
                ref=ref,
                referenced_from=str(referenced_from),
            ) from None
