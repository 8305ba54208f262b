"""Bundle a multi-file spec into one self-contained document.

External references are dereferenced; internal references of the entry
document are kept as pointers after proving they resolve without a cycle.
Targets in other files that live under ``components/<section>/<name>``
are hoisted into the entry document's components (so recursive schemas
stay expressible), anything else is inlined unless it contains itself, in
which case it is hoisted under ``components.schemas`` as well.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from oas_aggregator.errors import AggregatorError, CircularReferenceError
from oas_aggregator.parser.base import ResolvedDocument, SourceLocation, SpecFailure
from oas_aggregator.parser.loader import DocumentLoader, normalize_path
from oas_aggregator.parser.validate import validate_spec
from oas_aggregator.resolver.pointer import (
    component_ref,
    is_internal,
    is_ref,
    parse_component_pointer,
)
from oas_aggregator.resolver.resolver import ReferenceResolver

logger = logging.getLogger(__name__)


def _identifier(text: str) -> str:
    return re.sub(r"[^0-9A-Za-z_]+", "_", text).strip("_")


class _BundleRun:
    """State for bundling one entry document."""

    def __init__(self, resolver: ReferenceResolver, entry: str, raw: dict):
        self.resolver = resolver
        self.entry = entry
        self.raw = raw
        # target location -> internal ref in the output document
        self.hoisted: dict[SourceLocation, str] = {}
        self.pending: list[tuple[SourceLocation, str, str]] = []
        self.taken: dict[str, set[str]] = {
            section: set(entries)
            for section, entries in raw.get("components", {}).items()
            if isinstance(entries, dict)
        }
        self.inlining: list[SourceLocation] = []

    def run(self) -> dict:
        self._claim_component_slots()
        tree = self.walk(self.raw, SourceLocation(file_path=self.entry))

        while self.pending:
            target, section, name = self.pending.pop(0)
            node = self.resolver.fetch(target, ref="#" + target.pointer, referenced_from=target)
            components = tree.setdefault("components", {}).setdefault(section, {})
            components[name] = self.walk(node, target)
        return tree

    def _claim_component_slots(self) -> None:
        """Map external targets referenced directly from entry component slots.

        ``components.schemas.User: {$ref: user.yaml}`` makes ``User`` the home
        of that target: the slot receives the content and every other
        reference to the same target points at the slot.
        """
        root = SourceLocation(file_path=self.entry)
        for section, entries in self.raw.get("components", {}).items():
            if not isinstance(entries, dict):
                continue
            for name, node in entries.items():
                if not is_ref(node) or is_internal(node["$ref"]):
                    continue
                slot = root.child("components").child(section).child(name)
                _, target = self.resolver.resolve(node["$ref"], slot)
                if target.file_path != self.entry:
                    self.hoisted.setdefault(target, component_ref(section, name))

    def walk(self, node: Any, location: SourceLocation) -> Any:
        if isinstance(node, list):
            return [self.walk(item, location.child(i)) for i, item in enumerate(node)]
        if isinstance(node, dict):
            if is_ref(node):
                return self.bundle_ref(node, location)
            return {key: self.walk(value, location.child(key)) for key, value in node.items()}
        return node

    def bundle_ref(self, node: dict, location: SourceLocation) -> Any:
        ref = node["$ref"]
        siblings = {
            key: self.walk(value, location.child(key))
            for key, value in node.items()
            if key != "$ref"
        }
        target_node, target = self.resolver.resolve(ref, location)

        if location.file_path == self.entry and is_internal(ref):
            return {"$ref": ref, **siblings}
        if target.file_path == self.entry:
            return {"$ref": "#" + target.pointer, **siblings}

        home = self.hoisted.get(target)
        if home is not None:
            if location.file_path == self.entry and "#" + location.pointer == home:
                return self._inline(target_node, target, siblings)
            return {"$ref": home, **siblings}

        component = parse_component_pointer(target.pointer)
        if component is not None:
            section, name = component
            home = self._hoist(target, section, name)
            return {"$ref": home, **siblings}

        return self._inline(target_node, target, siblings)

    def _inline(self, target_node: Any, target: SourceLocation, siblings: dict) -> Any:
        if target in self.inlining:
            # A schema that contains itself cannot be inlined; give it a name instead.
            if not isinstance(target_node, dict):
                raise CircularReferenceError(self.inlining[self.inlining.index(target):] + [target])
            tokens = target.pointer.rsplit("/", 1)
            name = _identifier(tokens[-1] if target.pointer else Path(target.file_path).stem) or "Schema"
            return {"$ref": self._hoist(target, "schemas", name), **siblings}
        self.inlining.append(target)
        try:
            content = self.walk(target_node, target)
        finally:
            self.inlining.pop()
        if siblings and isinstance(content, dict):
            return {**content, **siblings}
        return content

    def _hoist(self, target: SourceLocation, section: str, name: str) -> str:
        taken = self.taken.setdefault(section, set())
        candidate = name
        if candidate in taken:
            candidate = f"{name}_{_identifier(Path(target.file_path).stem)}"
            base, n = candidate, 2
            while candidate in taken:
                candidate = f"{base}_{n}"
                n += 1
        taken.add(candidate)
        home = component_ref(section, candidate)
        self.hoisted[target] = home
        self.pending.append((target, section, candidate))
        logger.debug(f"Hoisting {target} as {home}")
        return home


class Bundler:
    """Produce one ResolvedDocument per entry file."""

    def __init__(self, loader: DocumentLoader | None = None, resolver: ReferenceResolver | None = None):
        self.loader = loader or (resolver.loader if resolver else DocumentLoader())
        self.resolver = resolver or ReferenceResolver(self.loader)

    def bundle(self, entry_path: str | Path) -> ResolvedDocument:
        """Bundle the spec rooted at ``entry_path``.

        Raises DocumentLoadError, InvalidSpecError, ReferenceResolutionError
        or CircularReferenceError; the input tree is never modified.
        """
        entry = normalize_path(entry_path)
        raw = self.loader.load(entry)
        validate_spec(raw, entry)

        tree = _BundleRun(self.resolver, entry, raw).run()
        logger.info(f"Bundled {entry}")
        return ResolvedDocument(source=entry, tree=tree)

    def bundle_all(
        self, entry_paths: list[str | Path], max_workers: int = 4
    ) -> tuple[list[ResolvedDocument], list[SpecFailure]]:
        """Bundle several specs in parallel, isolating failures per spec.

        Successful documents come back in input order.
        """
        def _one(entry_path):
            try:
                return self.bundle(entry_path)
            except AggregatorError as e:
                logger.error(f"Bundling {entry_path} failed: {e.message}")
                return SpecFailure(source=str(entry_path), **e.to_dict())

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(pool.map(_one, entry_paths))

        documents = [o for o in outcomes if isinstance(o, ResolvedDocument)]
        failures = [o for o in outcomes if isinstance(o, SpecFailure)]
        return documents, failures


def bundle(entry_path: str | Path, loader: DocumentLoader | None = None) -> ResolvedDocument:
    """Bundle a single spec with a fresh (or supplied) loader."""
    return Bundler(loader=loader).bundle(entry_path)

