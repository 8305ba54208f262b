"""Fold resolved documents, in order, into one aggregate document.

Each document is folded in three steps:

1. decide, per component name it shares with the aggregate, whether to
   merge, keep the first, or rename the newcomer;
2. rewrite every ``$ref`` in the incoming document to the renamed
   components, and decide again until no new rename appears (a renamed
   ``User`` can make the incoming ``Order`` incompatible);
3. insert or merge its components, then its operations.

Header deduplication and operationId checks run once all documents are in.
"""

import copy
import logging
import re
from typing import Any

from oas_aggregator.config import AggregatorConfig
from oas_aggregator.merger.conflict import Action, resolve_conflict
from oas_aggregator.merger.headers import attribute_conflicts, deduplicate_headers, header_signature
from oas_aggregator.merger.operations import OperationMerge, merge_parameters
from oas_aggregator.merger.provenance import annotate
from oas_aggregator.merger.refs import deref, rewrite_refs
from oas_aggregator.merger.shapes import merge_compatible
from oas_aggregator.parser.base import (
    HTTP_METHODS,
    AggregateDocument,
    Diagnostic,
    MergeConflict,
    OperationIdConflictWarning,
    PathEntry,
    ResolvedDocument,
    SchemaEntry,
    SchemaIncompatibleWarning,
    SourceLocation,
)
from oas_aggregator.resolver.pointer import component_ref

logger = logging.getLogger(__name__)

# securitySchemes are referenced by name from `security`, never renamed
FIRST_WINS_SECTIONS = ("securitySchemes",)
TOP_LEVEL_ORDER = ("openapi", "info", "servers", "security", "tags", "paths", "components")


def source_identifier(title: str, fallback: str) -> str:
    """Sanitize a spec title into an identifier usable in component names."""
    ident = re.sub(r"[^0-9A-Za-z_]+", "_", title).strip("_")
    return ident or fallback


def iter_operations(tree: dict, source_title: str) -> list[PathEntry]:
    entries = []
    for path, item in (tree.get("paths") or {}).items():
        for method in HTTP_METHODS:
            operation = item.get(method)
            if isinstance(operation, dict):
                entries.append(PathEntry(path=path, method=method, operation=operation, source_title=source_title))
    return entries


def iter_schemas(tree: dict, source_title: str) -> list[SchemaEntry]:
    schemas = (tree.get("components") or {}).get("schemas") or {}
    return [SchemaEntry(name=name, schema=schema, source_title=source_title) for name, schema in schemas.items()]


def generate_operation_id(method: str, path: str) -> str:
    """``GET /users/{id}/posts`` -> ``getUsersIdPosts``."""
    segments = [s for s in re.sub(r"[{}]", "", path).split("/") if s]
    words = [w for s in segments for w in re.split(r"[^0-9A-Za-z]+", s) if w]
    return method.lower() + "".join(w[:1].upper() + w[1:] for w in words)


class SpecMerger:
    """Sequentially merge resolved documents; the first document wins ties."""

    def __init__(self, config: AggregatorConfig | None = None):
        self.config = config or AggregatorConfig()
        self.document: dict[str, Any] = {}
        self.warnings: list[Diagnostic] = []
        self.sources: list[ResolvedDocument] = []
        self.operation_sources: dict[tuple[str, str], list[str]] = {}
        self._component_sources: dict[tuple[str, str], SourceLocation] = {}
        self._identifiers: set[str] = set()
        self._operation_locations: dict[tuple[str, str], SourceLocation] = {}

    def merge(self, documents: list[ResolvedDocument]) -> AggregateDocument:
        """Merge ``documents`` in the given order into an AggregateDocument."""
        if not documents:
            raise ValueError("merge() needs at least one resolved document")

        first = documents[0].tree
        self.document = {
            "openapi": first.get("openapi", "3.0.3"),
            "info": {},
            "paths": {},
        }
        for index, doc in enumerate(documents):
            self.fold(doc, index)

        if self.config.policy.headers == "deduplicate":
            self.warnings += deduplicate_headers(self.document)
        self._check_operation_ids()
        annotate(self.document, self.sources, self.operation_sources, self.config)
        self._drop_empty_sections()
        self.document = {
            key: self.document[key] for key in TOP_LEVEL_ORDER if key in self.document
        }

        logger.info(
            f"Merged {len(self.operation_sources)} operations from {len(documents)} specifications"
        )
        return AggregateDocument(
            document=self.document,
            sources=[doc.title for doc in self.sources],
            warnings=self.warnings,
        )

    def fold(self, resolved: ResolvedDocument, index: int) -> None:
        """Fold one document into the aggregate."""
        tree = copy.deepcopy(resolved.tree)
        title = resolved.title or f"spec{index + 1}"
        ident = source_identifier(title, f"spec{index + 1}")
        if ident in self._identifiers:
            ident = f"{ident}_{index + 1}"
        self._identifiers.add(ident)
        root = SourceLocation(file_path=resolved.source)

        # schemas first: other components compare equal only after their schema refs are rewritten
        sections = sorted(tree.get("components") or {}, key=lambda s: s != "schemas")
        decisions = {}
        for section in sections:
            section_decisions = self._decide_section(tree, section, title, ident, root)
            decisions.update({(section, name): d for name, d in section_decisions.items()})

        self._fold_components(tree, decisions, title, root)
        self._fold_paths(tree, title, root)
        self._fold_top_level(tree)
        self.sources.append(resolved)

    # -- components ------------------------------------------------------------

    @staticmethod
    def _section_entries(tree: dict, section: str, title: str) -> dict[str, Any]:
        if section == "schemas":
            return {entry.name: entry.schema_ for entry in iter_schemas(tree, title)}
        return tree["components"][section]

    def _decide_section(
        self, tree: dict, section: str, title: str, ident: str, root: SourceLocation
    ) -> dict[str, tuple[Action, str]]:
        """Decide every shared name of one section and rewrite refs to renamed ones.

        Runs until no new rename appears: renaming ``User`` changes every
        incoming node that refers to it, so names already judged compatible
        are judged again against the rewritten nodes.
        """
        decisions: dict[str, tuple[Action, str]] = {}
        if not isinstance(tree["components"][section], dict) or section in FIRST_WINS_SECTIONS:
            return decisions
        existing_section = (self.document.get("components") or {}).get(section) or {}
        entries = self._section_entries(tree, section, title)
        reserved = set(existing_section) | set(entries)

        while True:
            renames = {}
            for name, node in entries.items():
                if name not in existing_section:
                    continue
                if name in decisions and decisions[name][0] == Action.RENAME_AND_KEEP_BOTH:
                    continue
                location = root.child("components").child(section).child(name)
                conflict = MergeConflict(
                    kind=self._conflict_kind(tree, section, existing_section[name], node),
                    identity=f"{section}/{name}",
                    sources=[self._component_sources[(section, name)], location],
                    existing=existing_section[name],
                    incoming=node,
                )
                action = resolve_conflict(conflict, self.config.policy)
                new_name = name
                if action == Action.RENAME_AND_KEEP_BOTH:
                    new_name = self._unique_name(f"{name}_{ident}", reserved)
                    reserved.add(new_name)
                    renames[component_ref(section, name)] = component_ref(section, new_name)
                    warning = SchemaIncompatibleWarning(
                        message=(
                            f"components.{section}.{name} from '{title}' is incompatible with the "
                            f"existing definition; renamed to {new_name}"
                        ),
                        sources=[str(s) for s in conflict.sources],
                        component=section,
                        original_name=name,
                        renamed_to=new_name,
                    )
                    logger.warning(warning.message)
                    self.warnings.append(warning)
                decisions[name] = (action, new_name)

            if not renames:
                return decisions
            changed = rewrite_refs(tree, renames)
            logger.debug(f"Rewrote {changed} refs to {section} in {title}")

    def _conflict_kind(self, tree: dict, section: str, existing: Any, incoming: Any) -> str:
        if section == "schemas":
            return "schema"
        if section == "parameters":
            signature = header_signature(self.document, existing)
            if signature is not None and signature == header_signature(tree, incoming):
                return "header"
        return "component"

    @staticmethod
    def _unique_name(candidate: str, reserved: set[str]) -> str:
        name, n = candidate, 2
        while name in reserved:
            name = f"{candidate}_{n}"
            n += 1
        return name

    def _fold_components(self, tree: dict, decisions: dict, title: str, root: SourceLocation) -> None:
        components = self.document.setdefault("components", {})
        for section, entries in (tree.get("components") or {}).items():
            if not isinstance(entries, dict):
                continue
            target = components.setdefault(section, {})
            for name, node in self._section_entries(tree, section, title).items():
                location = root.child("components").child(section).child(name)
                if name not in target:
                    target[name] = node
                    self._component_sources[(section, name)] = location
                    continue
                if section in FIRST_WINS_SECTIONS:
                    continue
                action, new_name = decisions[(section, name)]
                if action == Action.RENAME_AND_KEEP_BOTH:
                    target[new_name] = node
                    self._component_sources[(section, new_name)] = location
                elif action == Action.MERGE_IN_PLACE and section == "parameters":
                    # same header signature: one definition, differing attributes reported
                    self.warnings += attribute_conflicts(
                        self.document, target[name], deref(tree, node), component_ref(section, name), ""
                    )
                elif action == Action.MERGE_IN_PLACE and isinstance(node, dict):
                    target[name] = merge_compatible(target[name], node)

    # -- paths -----------------------------------------------------------------

    def _fold_paths(self, tree: dict, title: str, root: SourceLocation) -> None:
        paths = self.document["paths"]
        for path, item in (tree.get("paths") or {}).items():
            merged_item = paths.setdefault(path, {})
            for key, value in item.items():
                if key != "parameters" and key not in HTTP_METHODS:
                    merged_item.setdefault(key, value)

        for entry in iter_operations(tree, title):
            operation = entry.operation
            shared = tree["paths"][entry.path].get("parameters") or []
            if shared:
                operation["parameters"] = merge_parameters(
                    shared, operation.get("parameters") or [], self.document
                )
            key = entry.identity
            location = root.child("paths").child(entry.path).child(entry.method)
            merged_item = paths[entry.path]
            if entry.method not in merged_item:
                merged_item[entry.method] = operation
                self.operation_sources[key] = [title]
                self._operation_locations[key] = location
                continue

            contributors = self.operation_sources[key]
            conflict = MergeConflict(
                kind="operation",
                identity=f"{entry.method.upper()} {entry.path}",
                sources=[self._operation_locations[key], location],
            )
            if resolve_conflict(conflict, self.config.policy) == Action.MERGE_IN_PLACE:
                merge = OperationMerge(self.document, entry.path, entry.method, contributors + [title])
                self.warnings += merge.merge(merged_item[entry.method], operation)
                if title not in contributors:
                    contributors.append(title)

    def _fold_top_level(self, tree: dict) -> None:
        servers = self.document.setdefault("servers", [])
        urls = {s.get("url") for s in servers}
        for server in tree.get("servers") or []:
            if server.get("url") not in urls:
                servers.append(server)
                urls.add(server.get("url"))

        tags = self.document.setdefault("tags", [])
        names = {t.get("name") for t in tags}
        for tag in tree.get("tags") or []:
            if tag.get("name") not in names:
                tags.append(tag)
                names.add(tag.get("name"))

        if tree.get("security") and not self.document.get("security"):
            self.document["security"] = tree["security"]

    # -- finishing -------------------------------------------------------------

    def _check_operation_ids(self) -> None:
        seen: dict[str, tuple[str, str]] = {}
        for (path, method), contributors in self.operation_sources.items():
            operation = self.document["paths"][path][method]
            op_id = operation.get("operationId")
            if not op_id:
                if not self.config.fill_operation_ids:
                    continue
                op_id = generate_operation_id(method, path)
                operation["operationId"] = op_id
            if op_id not in seen:
                seen[op_id] = (path, method)
                continue

            ident = source_identifier(contributors[0], "op")
            new_id = self._unique_name(f"{op_id}_{ident}", set(seen))
            operation["operationId"] = new_id
            seen[new_id] = (path, method)
            other_path, other_method = seen[op_id]
            warning = OperationIdConflictWarning(
                message=(
                    f"operationId '{op_id}' of {method.upper()} {path} is already used by "
                    f"{other_method.upper()} {other_path}; renamed to {new_id}"
                ),
                sources=list(contributors),
                path=path,
                method=method,
                operation_id=op_id,
                renamed_to=new_id,
            )
            logger.warning(warning.message)
            self.warnings.append(warning)

    def _drop_empty_sections(self) -> None:
        components = self.document.get("components")
        if components is not None:
            for section in [s for s, entries in components.items() if not entries]:
                del components[section]
            if not components:
                del self.document["components"]
        for key in ("servers", "tags"):
            if not self.document.get(key):
                self.document.pop(key, None)
