"""JSON Pointer (RFC 6901) helpers and ``$ref`` string handling."""

from typing import Any
from urllib.parse import unquote, urldefrag

from oas_aggregator.parser.base import escape_token

REMOTE_PREFIXES = ("http://", "https://")


def is_ref(node: Any) -> bool:
    return isinstance(node, dict) and isinstance(node.get("$ref"), str)


def split_ref(ref: str) -> tuple[str, str]:
    """Split a ``$ref`` into (file part, pointer).

    ``'#/components/schemas/Pet'`` -> ``('', '/components/schemas/Pet')``
    ``'pets.yaml#/Pet'`` -> ``('pets.yaml', '/Pet')``
    ``'pets.yaml'`` -> ``('pets.yaml', '')``
    """
    file_part, fragment = urldefrag(ref)
    return file_part, unquote(fragment)


def is_internal(ref: str) -> bool:
    return ref.startswith("#")


def parse_pointer(pointer: str) -> list[str]:
    """Split a JSON pointer into unescaped reference tokens."""
    if not pointer:
        return []
    if not pointer.startswith("/"):
        raise ValueError(f"JSON pointer must start with '/': {pointer!r}")
    return [part.replace("~1", "/").replace("~0", "~") for part in pointer[1:].split("/")]


def build_pointer(tokens: list[str]) -> str:
    return "".join("/" + escape_token(str(t)) for t in tokens)


def walk_pointer(node: Any, pointer: str) -> Any:
    """Return the value at ``pointer`` inside ``node``.

    Raises KeyError naming the first token that cannot be followed.
    """
    current = node
    for token in parse_pointer(pointer):
        if isinstance(current, dict):
            if token not in current:
                raise KeyError(token)
            current = current[token]
        elif isinstance(current, list):
            try:
                current = current[int(token)]
            except (ValueError, IndexError):
                raise KeyError(token) from None
        else:
            raise KeyError(token)
    return current


def component_ref(section: str, name: str) -> str:
    return "#" + build_pointer(["components", section, name])


def parse_component_pointer(pointer: str) -> tuple[str, str] | None:
    """Return (section, name) when ``pointer`` is exactly ``/components/<section>/<name>``."""
    try:
        tokens = parse_pointer(pointer)
    except ValueError:
        return None
    if len(tokens) == 3 and tokens[0] == "components":
        return tokens[1], tokens[2]
    return None
