"""Aggregation settings."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field

DEFAULT_TITLE = "Aggregated API"


class ConflictPolicy(BaseModel):
    """How identity clashes between specs are settled.

    schemas: 'auto' merges compatible schemas and renames incompatible
    ones, 'rename' always keeps both, 'prefer_first' drops the later one.
    operations: 'merge' folds duplicate (path, method) operations together,
    'prefer_first' keeps the earlier operation untouched.
    headers: 'deduplicate' collapses header parameters by signature,
    'keep' leaves them inline.
    """

    schemas: Literal["auto", "rename", "prefer_first"] = "auto"
    operations: Literal["merge", "prefer_first"] = "merge"
    headers: Literal["deduplicate", "keep"] = "deduplicate"


class AggregatorConfig(BaseModel):
    title: str = DEFAULT_TITLE
    version: str | None = None  # None: first source's info.version
    description: str | None = None
    policy: ConflictPolicy = ConflictPolicy()
    max_workers: int = Field(default=4, ge=1)
    fill_operation_ids: bool = False
    output_format: Literal["yaml", "json"] = "yaml"

    @classmethod
    def from_file(cls, path: Path) -> "AggregatorConfig":
        """Load settings from a YAML (or JSON) file."""
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return cls.model_validate(data)
