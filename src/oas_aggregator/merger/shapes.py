"""Schema shapes: a tagged view over untyped JSON Schema nodes.

The merger only needs to know what *kind* of schema it is looking at, so
each raw node is classified into exactly one shape and compatibility is
decided by matching on the pair of shapes.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

PRIMITIVE_TYPES = {"string", "number", "integer", "boolean", "null"}
COMPOSITION_KEYS = ("allOf", "oneOf", "anyOf", "not")


class ObjectSchema(BaseModel):
    kind: Literal["object"] = "object"
    properties: dict[str, Any] = {}
    required: list[str] = []


class ArraySchema(BaseModel):
    kind: Literal["array"] = "array"
    items: Any = None


class PrimitiveSchema(BaseModel):
    kind: Literal["primitive"] = "primitive"
    types: tuple[str, ...]  # sorted; OpenAPI 3.1 allows a list of types


class RefPointer(BaseModel):
    kind: Literal["ref"] = "ref"
    ref: str


class CompositionSchema(BaseModel):
    kind: Literal["composition"] = "composition"
    keywords: tuple[str, ...]


class OpaqueSchema(BaseModel):
    """Anything without a recognisable type (e.g. ``{}`` or enum-only)."""

    kind: Literal["opaque"] = "opaque"


SchemaShape = Annotated[
    Union[ObjectSchema, ArraySchema, PrimitiveSchema, RefPointer, CompositionSchema, OpaqueSchema],
    Field(discriminator="kind"),
]


def _types(node: dict) -> tuple[str, ...]:
    declared = node.get("type")
    if isinstance(declared, list):
        return tuple(sorted(str(t) for t in declared))
    if declared is None:
        return ()
    return (str(declared),)


def classify(node: Any) -> SchemaShape:
    """Classify a raw schema node. Composition keywords win over ``type``."""
    if not isinstance(node, dict):
        return OpaqueSchema()
    if isinstance(node.get("$ref"), str):
        return RefPointer(ref=node["$ref"])

    keywords = tuple(k for k in COMPOSITION_KEYS if k in node)
    if keywords:
        return CompositionSchema(keywords=keywords)

    types = _types(node)
    if types == ("object",) or (not types and "properties" in node):
        return ObjectSchema(
            properties=node.get("properties") or {},
            required=list(node.get("required") or []),
        )
    if types == ("array",) or (not types and "items" in node):
        return ArraySchema(items=node.get("items"))
    if types and set(types) <= PRIMITIVE_TYPES:
        return PrimitiveSchema(types=types)
    return OpaqueSchema()


def is_compatible(existing: Any, incoming: Any) -> bool:
    """Whether two same-named schemas can be merged into one.

    Identical schemas always can. Otherwise both must be objects whose
    shared properties are themselves compatible, or both the same non-object
    type; refs and compositions are opaque and only match themselves.
    """
    if existing == incoming:
        return True

    match (classify(existing), classify(incoming)):
        case (ObjectSchema(properties=a), ObjectSchema(properties=b)):
            return all(is_compatible(a[name], b[name]) for name in a.keys() & b.keys())
        case (PrimitiveSchema(types=a), PrimitiveSchema(types=b)):
            return a == b
        case (ArraySchema(items=a), ArraySchema(items=b)):
            return a is None or b is None or is_compatible(a, b)
        case (RefPointer(ref=a), RefPointer(ref=b)):
            return a == b
        case _:
            return False


def merge_compatible(existing: dict, incoming: dict) -> dict:
    """Merge two compatible schemas into a new one.

    Objects: ``properties`` are unioned (the later definition of a
    property wins) and ``required`` is the ordered union of both lists.
    Other keywords keep the earlier value and gain any the later one adds.
    """
    merged = dict(existing)
    for key, value in incoming.items():
        merged.setdefault(key, value)

    if isinstance(classify(existing), ObjectSchema) and isinstance(classify(incoming), ObjectSchema):
        properties = dict(existing.get("properties") or {})
        properties.update(incoming.get("properties") or {})
        if properties:
            merged["properties"] = properties
        required = list(existing.get("required") or [])
        required += [name for name in incoming.get("required") or [] if name not in required]
        if required:
            merged["required"] = required
    return merged
