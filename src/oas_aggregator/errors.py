"""Error taxonomy for loading, resolving and validating specs.

Every fatal error is scoped to a single input spec. Non-fatal conditions
are not exceptions; see the diagnostic models in ``parser.base``.
"""

from typing import Any

FILE_NOT_FOUND = "FS_1002"
PARSE_ERROR = "API_2000"
VALIDATION_ERROR = "API_2001"
UNSUPPORTED_VERSION = "API_2003"
UNRESOLVED_REFERENCE = "REF_2100"
CIRCULAR_REFERENCE = "REF_2101"


class AggregatorError(Exception):
    """Base class for all fatal per-spec errors."""

    default_code = VALIDATION_ERROR

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class DocumentLoadError(AggregatorError):
    """A document could not be read or parsed."""

    default_code = PARSE_ERROR

    def __init__(self, message: str, path: str, code: str | None = None):
        super().__init__(message, code=code, details={"path": path})
        self.path = path


class ReferenceResolutionError(AggregatorError):
    """A ``$ref`` target file or fragment does not exist."""

    default_code = UNRESOLVED_REFERENCE

    def __init__(self, message: str, ref: str, referenced_from: str | None = None):
        super().__init__(message, details={"ref": ref, "referenced_from": referenced_from})
        self.ref = ref
        self.referenced_from = referenced_from


class CircularReferenceError(ReferenceResolutionError):
    """A ``$ref`` chain revisits a location before reaching a concrete node."""

    default_code = CIRCULAR_REFERENCE

    def __init__(self, chain: list):
        self.chain = [str(loc) for loc in chain]
        message = "Circular $ref chain: " + " -> ".join(self.chain)
        super().__init__(message, ref=self.chain[-1], referenced_from=self.chain[0])
        self.details["chain"] = self.chain


class InvalidSpecError(AggregatorError):
    """Input is not a structurally valid OpenAPI 3.x document."""

    default_code = VALIDATION_ERROR

    def __init__(self, message: str, source: str, code: str | None = None):
        super().__init__(message, code=code, details={"source": source})
        self.source = source
