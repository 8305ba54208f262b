import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from oas_aggregator.errors import FILE_NOT_FOUND, PARSE_ERROR, DocumentLoadError
from oas_aggregator.parser.detect import detect_format, parse_text
from oas_aggregator.parser.loader import DocumentLoader, normalize_path

FIXTURES = Path(__file__).parent / "fixtures"


class TestDetectFormat:
    def test_detect_by_suffix(self):
        assert detect_format("api.json", "openapi: 3.0.0") == "json"
        assert detect_format("api.yml", "{}") == "yaml"

    def test_detect_by_content(self):
        assert detect_format("api", '  {"openapi": "3.0.0"}') == "json"
        assert detect_format("api", "openapi: 3.0.0") == "yaml"

    def test_parse_json_with_yaml_fallback(self):
        assert parse_text("a.json", '{"a": 1}') == {"a": 1}
        # not strict JSON, but valid YAML flow mapping
        assert parse_text("a.json", "{a: 1}") == {"a": 1}


class TestDocumentLoader:
    def test_load_yaml_and_json(self):
        loader = DocumentLoader()
        users = loader.load(FIXTURES / "services" / "users.yaml")
        orders = loader.load(FIXTURES / "services" / "orders.json")
        assert users["info"]["title"] == "Users Service"
        assert orders["info"]["title"] == "ServiceB"

    def test_same_file_is_parsed_once(self):
        loader = DocumentLoader()
        path = FIXTURES / "petstore" / "common.yaml"
        first = loader.load(path)
        second = loader.load(str(path.parent / "schemas" / ".." / "common.yaml"))
        assert first is second
        assert loader.is_cached(path)

    def test_in_memory_sources(self):
        loader = DocumentLoader({"/virtual/api.yaml": "openapi: 3.0.3\n"})
        assert loader.load("/virtual/api.yaml") == {"openapi": "3.0.3"}

    def test_add_source_replaces_cached_entry(self):
        loader = DocumentLoader()
        loader.add_source("/virtual/a.yaml", "a: 1")
        assert loader.load("/virtual/a.yaml") == {"a": 1}
        loader.add_source("/virtual/a.yaml", "a: 2")
        assert loader.load("/virtual/a.yaml") == {"a": 2}

    def test_missing_file(self, tmp_path):
        with pytest.raises(DocumentLoadError) as exc:
            DocumentLoader().load(tmp_path / "nope.yaml")
        assert exc.value.code == FILE_NOT_FOUND
        assert exc.value.path == normalize_path(tmp_path / "nope.yaml")

    def test_unparsable_file(self, tmp_path):
        f = tmp_path / "bad.yaml"
        f.write_text("key: [unclosed\n")
        with pytest.raises(DocumentLoadError) as exc:
            DocumentLoader().load(f)
        assert exc.value.code == PARSE_ERROR

    def test_concurrent_loads_parse_once(self, tmp_path):
        f = tmp_path / "spec.yaml"
        f.write_text("a: 1\n")
        loader = DocumentLoader()
        calls = []
        lock = threading.Lock()
        original = loader._read

        def slow_read(key):
            with lock:
                calls.append(key)
            time.sleep(0.05)
            return original(key)

        loader._read = slow_read
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: loader.load(f), range(8)))

        assert len(calls) == 1
        assert all(r is results[0] for r in results)

    def test_clear(self, tmp_path):
        f = tmp_path / "spec.yaml"
        f.write_text("a: 1\n")
        loader = DocumentLoader()
        loader.load(f)
        loader.clear()
        assert not loader.is_cached(f)
