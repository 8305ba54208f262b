"""Header parameter signatures and deduplication into shared components."""

import copy
import json
import logging
import re
from typing import Any

from oas_aggregator.merger.refs import deref, inline_refs, rewrite_refs
from oas_aggregator.parser.base import HTTP_METHODS, Diagnostic, HeaderSignature, ParameterConflictWarning
from oas_aggregator.resolver.pointer import component_ref

logger = logging.getLogger(__name__)

ANNOTATION_KEYS = {"description", "title", "example", "examples", "externalDocs"}
SCHEMA_MAP_KEYS = {"properties", "patternProperties", "$defs", "definitions"}
ATTRIBUTE_KEYS = ("required", "deprecated", "allowEmptyValue", "style", "explode")


def schema_shape(node: Any, _names: bool = False) -> Any:
    """Drop annotation-only keywords so only the structure remains.

    ``_names`` marks a mapping whose keys are property names rather than
    keywords (so a property called ``description`` survives).
    """
    if isinstance(node, list):
        return [schema_shape(item) for item in node]
    if not isinstance(node, dict):
        return node
    if _names:
        return {key: schema_shape(value) for key, value in node.items()}
    return {
        key: schema_shape(value, _names=key in SCHEMA_MAP_KEYS)
        for key, value in node.items()
        if key not in ANNOTATION_KEYS and not key.startswith("x-")
    }


def header_signature(root: dict, param: Any) -> HeaderSignature | None:
    """Canonical signature of a header parameter, None for other parameters.

    The schema part is fully dereferenced, so two headers reaching the same
    schema through different ``$ref`` chains share a signature.
    """
    resolved = deref(root, param)
    if not isinstance(resolved, dict) or resolved.get("in") != "header" or "name" not in resolved:
        return None
    shape = inline_refs(root, resolved.get("schema", resolved.get("content")))
    return json.dumps(
        {"name": str(resolved["name"]).lower(), "in": "header", "schema": schema_shape(shape)},
        sort_keys=True,
        separators=(",", ":"),
    )


def _component_name(param_name: str, taken: dict) -> str:
    base = re.sub(r"[^A-Za-z0-9._-]+", "_", param_name).strip("_") or "Header"
    name, n = base, 2
    while name in taken:
        name = f"{base}_{n}"
        n += 1
    return name


def deduplicate_headers(document: dict) -> list[Diagnostic]:
    """Move every header parameter into ``components.parameters``, one per signature.

    Header components that already share a signature are collapsed onto the
    first one and all refs to the others are rewritten. Each operation-level
    header then becomes a ``$ref`` to its shared component.
    """
    warnings: list[Diagnostic] = []
    params = document.setdefault("components", {}).setdefault("parameters", {})
    by_signature: dict[HeaderSignature, str] = {}
    renames: dict[str, str] = {}

    for name in list(params):
        signature = header_signature(document, params[name])
        if signature is None:
            continue
        if signature in by_signature:
            canonical = by_signature[signature]
            warnings += attribute_conflicts(
                document, params[canonical], params[name], component_ref("parameters", name), ""
            )
            renames[component_ref("parameters", name)] = component_ref("parameters", canonical)
            del params[name]
        else:
            by_signature[signature] = name
    if renames:
        rewrite_refs(document, renames)
        logger.info(f"Collapsed {len(renames)} duplicate header components")

    for path, item in (document.get("paths") or {}).items():
        for method in HTTP_METHODS:
            operation = item.get(method)
            if not isinstance(operation, dict):
                continue
            parameters = operation.get("parameters") or []
            for i, param in enumerate(parameters):
                signature = header_signature(document, param)
                if signature is None:
                    continue
                if signature not in by_signature:
                    resolved = deref(document, param)
                    name = _component_name(str(resolved["name"]), params)
                    params[name] = copy.deepcopy(resolved)
                    by_signature[signature] = name
                else:
                    warnings += attribute_conflicts(
                        document, params[by_signature[signature]], param, path, method
                    )
                parameters[i] = {"$ref": component_ref("parameters", by_signature[signature])}

    if not params:
        del document["components"]["parameters"]
        if not document["components"]:
            del document["components"]
    return warnings


def attribute_conflicts(document: dict, canonical: Any, other: Any, path: str, method: str) -> list[Diagnostic]:
    a, b = deref(document, canonical), deref(document, other)
    differing = [key for key in ATTRIBUTE_KEYS if a.get(key) != b.get(key)]
    if not differing:
        return []
    where = f"{method.upper()} {path}".strip()
    warning = ParameterConflictWarning(
        message=(
            f"Header '{a['name']}' at {where} differs from its shared definition "
            f"({', '.join(differing)}); shared definition kept"
        ),
        path=path,
        method=method,
        name=str(a["name"]),
        location="header",
        attributes=differing,
    )
    logger.warning(warning.message)
    return [warning]
