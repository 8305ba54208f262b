"""Basic OpenAPI 3.x structural checks run before any reference resolution."""

from typing import Any

from oas_aggregator.errors import UNSUPPORTED_VERSION, InvalidSpecError


def validate_spec(doc: Any, source: str) -> None:
    """Raise InvalidSpecError unless ``doc`` looks like an OpenAPI 3.x document."""
    if not isinstance(doc, dict):
        raise InvalidSpecError(f"{source}: document root must be a mapping", source=source)

    if "swagger" in doc:
        raise InvalidSpecError(
            f"{source}: Swagger {doc['swagger']} documents are not supported, convert to OpenAPI 3.x",
            source=source,
            code=UNSUPPORTED_VERSION,
        )

    version = doc.get("openapi")
    if version is None:
        raise InvalidSpecError(f"{source}: missing 'openapi' field", source=source)
    if not str(version).startswith("3."):
        raise InvalidSpecError(
            f"{source}: unsupported OpenAPI version {version!r}",
            source=source,
            code=UNSUPPORTED_VERSION,
        )

    info = doc.get("info")
    if not isinstance(info, dict):
        raise InvalidSpecError(f"{source}: missing 'info' object", source=source)
    for key in ("title", "version"):
        if key not in info:
            raise InvalidSpecError(f"{source}: missing 'info.{key}'", source=source)

    paths = doc.get("paths")
    if not isinstance(paths, dict):
        raise InvalidSpecError(f"{source}: missing 'paths' object", source=source)
    for path, item in paths.items():
        if not str(path).startswith("/"):
            raise InvalidSpecError(f"{source}: path {path!r} must start with '/'", source=source)
        if not isinstance(item, dict):
            raise InvalidSpecError(f"{source}: path item {path!r} must be a mapping", source=source)

    components = doc.get("components", {})
    if not isinstance(components, dict):
        raise InvalidSpecError(f"{source}: 'components' must be a mapping", source=source)
