"""Internal ``$ref`` rewriting and dereferencing inside a single document."""

from typing import Any

from oas_aggregator.resolver.pointer import is_ref, walk_pointer


def rewrite_refs(node: Any, renames: dict[str, str]) -> int:
    """Rewrite internal refs in place according to ``renames``.

    Keys and values are full refs (``#/components/schemas/User``). A ref
    pointing inside a renamed component (``.../User/properties/id``) is
    rewritten too. Returns the number of refs changed.
    """
    if not renames:
        return 0
    changed = 0
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            ref = current.get("$ref")
            if isinstance(ref, str):
                new_ref = _renamed(ref, renames)
                if new_ref != ref:
                    current["$ref"] = new_ref
                    changed += 1
            stack.extend(current.values())
        elif isinstance(current, list):
            stack.extend(current)
    return changed


def _renamed(ref: str, renames: dict[str, str]) -> str:
    if ref in renames:
        return renames[ref]
    for old, new in renames.items():
        if ref.startswith(old + "/"):
            return new + ref[len(old):]
    return ref


def deref(root: dict, node: Any) -> Any:
    """Follow an internal ref chain to its concrete node; non-refs pass through.

    Unresolvable or cyclic refs are returned as-is.
    """
    seen = set()
    while is_ref(node) and node["$ref"].startswith("#"):
        ref = node["$ref"]
        if ref in seen:
            return node
        seen.add(ref)
        try:
            node = walk_pointer(root, ref[1:])
        except (KeyError, ValueError):
            return node
    return node


def inline_refs(root: dict, node: Any, _active: frozenset = frozenset()) -> Any:
    """Return a copy of ``node`` with every internal ref expanded.

    Recursive schemas keep the ``$ref`` at the point where they loop back.
    """
    if isinstance(node, list):
        return [inline_refs(root, item, _active) for item in node]
    if not isinstance(node, dict):
        return node
    if is_ref(node) and node["$ref"].startswith("#"):
        ref = node["$ref"]
        if ref in _active:
            return {"$ref": ref}
        target = deref(root, node)
        if target is node:
            return dict(node)
        return inline_refs(root, target, _active | {ref})
    return {key: inline_refs(root, value, _active) for key, value in node.items()}
