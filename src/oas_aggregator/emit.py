"""Serialize resolved or aggregate documents."""

import json
from pathlib import Path

import yaml


def dump_document(document: dict, fmt: str = "yaml") -> str:
    """Render ``document`` as YAML or JSON, keeping key order."""
    if fmt == "json":
        return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unknown output format: {fmt}")


def format_for_path(path: Path, default: str = "yaml") -> str:
    suffix = path.suffix.lower()
    if suffix == ".json":
        return "json"
    if suffix in (".yaml", ".yml"):
        return "yaml"
    return default


def write_document(document: dict, output: Path, fmt: str | None = None) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(dump_document(document, fmt or format_for_path(output)), encoding="utf-8")
