"""Fold a duplicate (path, method) operation into the one already merged.

The earlier operation is updated in place. Components it references are
never modified here: a referenced request body or response that needs
extending is first copied inline.
"""

import copy
import logging
from typing import Any

from oas_aggregator.merger.refs import deref, inline_refs
from oas_aggregator.merger.shapes import is_compatible, merge_compatible
from oas_aggregator.parser.base import Diagnostic, MediaTypeConflictWarning, ParameterConflictWarning
from oas_aggregator.resolver.pointer import is_ref

logger = logging.getLogger(__name__)


def param_identity(param: Any) -> tuple[str, str] | None:
    if not isinstance(param, dict) or "name" not in param:
        return None
    location = param.get("in", "query")
    name = str(param["name"])
    if location == "header":
        name = name.lower()
    return (name, location)


def merge_parameters(base: list, overrides: list, root: dict) -> list:
    """Combine path-level and operation-level parameters; operation level wins."""
    override_ids = {param_identity(deref(root, p)) for p in overrides}
    kept = [p for p in base if param_identity(deref(root, p)) not in override_ids]
    return kept + list(overrides)


class OperationMerge:
    """Merge ``incoming`` into ``existing`` for one (path, method)."""

    def __init__(self, root: dict, path: str, method: str, sources: list[str]):
        self.root = root
        self.path = path
        self.method = method
        self.sources = sources
        self.warnings: list[Diagnostic] = []

    def merge(self, existing: dict, incoming: dict) -> list[Diagnostic]:
        self._merge_parameters(existing, incoming)
        self._merge_request_body(existing, incoming)
        self._merge_responses(existing, incoming)

        tags = list(existing.get("tags") or [])
        tags += [t for t in incoming.get("tags") or [] if t not in tags]
        if tags:
            existing["tags"] = tags

        for key, value in incoming.items():
            if key not in ("parameters", "requestBody", "responses", "tags"):
                existing.setdefault(key, copy.deepcopy(value))
        return self.warnings

    # -- parameters ------------------------------------------------------------

    def _merge_parameters(self, existing: dict, incoming: dict) -> None:
        incoming_params = incoming.get("parameters") or []
        if not incoming_params:
            return
        params = existing.setdefault("parameters", [])
        index = {param_identity(deref(self.root, p)): p for p in params}

        for param in incoming_params:
            resolved = deref(self.root, param)
            identity = param_identity(resolved)
            if identity not in index:
                params.append(copy.deepcopy(param))
                index[identity] = param
                continue
            differing = self._differing_attributes(deref(self.root, index[identity]), resolved)
            if differing:
                name, location = identity
                warning = ParameterConflictWarning(
                    message=(
                        f"{self.method.upper()} {self.path}: parameter '{name}' in {location} differs "
                        f"({', '.join(differing)}); keeping the definition from {self.sources[0]}"
                    ),
                    sources=list(self.sources),
                    path=self.path,
                    method=self.method,
                    name=name,
                    location=location,
                    attributes=differing,
                )
                logger.warning(warning.message)
                self.warnings.append(warning)

    def _differing_attributes(self, a: dict, b: dict) -> list[str]:
        differing = []
        for key in sorted(set(a) | set(b)):
            if key in ("description", "example", "examples") or key.startswith("x-"):
                continue
            left, right = a.get(key), b.get(key)
            if key == "schema":
                left, right = inline_refs(self.root, left), inline_refs(self.root, right)
            elif key == "name" and a.get("in") == "header":
                left, right = str(left).lower(), str(right).lower()
            if left != right:
                differing.append(key)
        return differing

    # -- bodies ----------------------------------------------------------------

    def _merge_request_body(self, existing: dict, incoming: dict) -> None:
        if "requestBody" not in incoming:
            return
        if "requestBody" not in existing:
            existing["requestBody"] = copy.deepcopy(incoming["requestBody"])
            return
        body = self._materialize(existing, "requestBody", incoming["requestBody"])
        if body is not None:
            self._merge_content(body, deref(self.root, incoming["requestBody"]), "requestBody")

    def _merge_responses(self, existing: dict, incoming: dict) -> None:
        incoming_responses = incoming.get("responses") or {}
        responses = existing.setdefault("responses", {})
        for status, response in incoming_responses.items():
            status = str(status)
            if status not in responses:
                responses[status] = copy.deepcopy(response)
                continue
            target = self._materialize(responses, status, response)
            if target is None:
                continue
            other = deref(self.root, response)
            self._merge_content(target, other, f"responses.{status}")
            headers = other.get("headers") or {}
            if headers:
                merged_headers = target.setdefault("headers", {})
                for name, header in headers.items():
                    merged_headers.setdefault(name, copy.deepcopy(header))

    def _materialize(self, container: dict, key: str, incoming: Any) -> dict | None:
        """Return an inline, mutable copy of ``container[key]`` unless nothing needs merging."""
        current = container[key]
        if inline_refs(self.root, current) == inline_refs(self.root, incoming):
            return None
        if is_ref(current):
            resolved = deref(self.root, current)
            if not isinstance(resolved, dict) or is_ref(resolved):
                return None
            current = copy.deepcopy(resolved)
            container[key] = current
        return current

    def _merge_content(self, target: dict, other: dict, where: str) -> None:
        content = target.setdefault("content", {})
        for media_type, media in (other.get("content") or {}).items():
            if media_type not in content:
                content[media_type] = copy.deepcopy(media)
                continue
            mine = content[media_type].get("schema")
            theirs = media.get("schema")
            if inline_refs(self.root, mine) == inline_refs(self.root, theirs):
                continue
            # inline object schemas can be merged; referenced ones belong to a component
            if (
                isinstance(mine, dict)
                and isinstance(theirs, dict)
                and not is_ref(mine)
                and not is_ref(theirs)
                and where != "requestBody"
                and is_compatible(mine, theirs)
            ):
                content[media_type]["schema"] = merge_compatible(mine, copy.deepcopy(theirs))
                continue
            warning = MediaTypeConflictWarning(
                message=(
                    f"{self.method.upper()} {self.path}: {where} '{media_type}' schemas differ; "
                    f"keeping the one from {self.sources[0]}"
                ),
                sources=list(self.sources),
                path=self.path,
                method=self.method,
                media_type=media_type,
                where=where,
            )
            logger.warning(warning.message)
            self.warnings.append(warning)
