"""Data models shared by the resolver, bundler and merger.

Raw documents stay plain ``dict``/``list`` trees as parsed from YAML or
JSON; these models describe identities, results and diagnostics around
those trees.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# Canonical string built from (name, in, schema shape); see merger.headers.
HeaderSignature = str


def escape_token(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


class SourceLocation(BaseModel):
    """Identity of a loaded document or one of its sub-nodes."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    pointer: str = ""  # JSON pointer without the leading '#', '' for the root

    def child(self, token: str | int) -> "SourceLocation":
        return SourceLocation(file_path=self.file_path, pointer=f"{self.pointer}/{escape_token(str(token))}")

    def document(self) -> "SourceLocation":
        return SourceLocation(file_path=self.file_path)

    def __str__(self) -> str:
        return f"{self.file_path}#{self.pointer}"


class ResolvedDocument(BaseModel):
    """A bundled spec: no external ``$ref`` remains in ``tree``."""

    model_config = ConfigDict(frozen=True)

    source: str
    tree: dict[str, Any]

    @property
    def title(self) -> str:
        return str(self.tree.get("info", {}).get("title", ""))

    @property
    def version(self) -> str:
        return str(self.tree.get("info", {}).get("version", ""))


class PathEntry(BaseModel):
    """One operation of a spec, identified by (path, method)."""

    path: str
    method: str  # lower-case HTTP method
    operation: dict[str, Any]
    source_title: str

    @property
    def identity(self) -> tuple[str, str]:
        return (self.path, self.method)


class SchemaEntry(BaseModel):
    """A named schema from ``components.schemas``."""

    name: str
    schema_: Any = Field(alias="schema")
    source_title: str

    model_config = ConfigDict(populate_by_name=True)


class MergeConflict(BaseModel):
    """Two entities share an identity; consumed at once by the conflict resolver."""

    kind: Literal["schema", "component", "operation", "header"]
    identity: str
    sources: list[SourceLocation]
    existing: Any = None
    incoming: Any = None


class Diagnostic(BaseModel):
    """Base for non-fatal conditions returned next to the aggregate."""

    kind: str
    message: str
    sources: list[str] = []


class SchemaIncompatibleWarning(Diagnostic):
    kind: Literal["schema_incompatible"] = "schema_incompatible"
    component: str = "schemas"
    original_name: str
    renamed_to: str


class ParameterConflictWarning(Diagnostic):
    kind: Literal["parameter_conflict"] = "parameter_conflict"
    path: str
    method: str
    name: str
    location: str
    attributes: list[str]


class MediaTypeConflictWarning(Diagnostic):
    kind: Literal["media_type_conflict"] = "media_type_conflict"
    path: str
    method: str
    media_type: str
    where: str  # 'requestBody' or 'responses.<status>'


class OperationIdConflictWarning(Diagnostic):
    kind: Literal["operation_id_conflict"] = "operation_id_conflict"
    path: str
    method: str
    operation_id: str
    renamed_to: str


class AggregateDocument(BaseModel):
    """The merged document plus the diagnostics gathered while building it."""

    document: dict[str, Any]
    sources: list[str]
    warnings: list[SerializeAsAny[Diagnostic]] = []


class SpecFailure(BaseModel):
    """A fatal error that removed one input spec from the batch."""

    source: str
    code: str
    message: str
    details: dict[str, Any] = {}


class AggregationResult(BaseModel):
    """Pipeline output: ``document`` is None when no spec could be bundled."""

    document: dict[str, Any] | None
    warnings: list[SerializeAsAny[Diagnostic]] = []
    failures: list[SpecFailure] = []

    @property
    def ok(self) -> bool:
        return self.document is not None and not self.failures
