"""Detect whether a spec document is YAML or JSON and parse it."""

import json
from pathlib import Path
from typing import Any

import yaml

JSON_SUFFIXES = (".json",)
YAML_SUFFIXES = (".yaml", ".yml")


def detect_format(name: str | Path, text: str) -> str:
    """Detect the serialization of a document.

    Returns: 'json' or 'yaml'. The file suffix wins; otherwise the content
    is sniffed (JSON documents start with '{' or '[').
    """
    suffix = Path(name).suffix.lower()
    if suffix in JSON_SUFFIXES:
        return "json"
    if suffix in YAML_SUFFIXES:
        return "yaml"
    if text.lstrip()[:1] in ("{", "["):
        return "json"
    return "yaml"


def parse_text(name: str | Path, text: str) -> Any:
    """Parse document text into a raw tree.

    JSON is (almost) a subset of YAML, so a document that fails strict
    JSON parsing gets a second try with the YAML loader.
    """
    if detect_format(name, text) == "json":
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass
    return yaml.safe_load(text)
