from pathlib import Path

from oas_aggregator.config import AggregatorConfig
from oas_aggregator.errors import CIRCULAR_REFERENCE, UNSUPPORTED_VERSION
from oas_aggregator.parser.base import SchemaIncompatibleWarning
from oas_aggregator.parser.loader import DocumentLoader
from oas_aggregator.pipeline import aggregate

FIXTURES = Path(__file__).parent / "fixtures"
SERVICES = FIXTURES / "services"


class TestAggregate:
    def test_two_services(self):
        result = aggregate([SERVICES / "users.yaml", SERVICES / "orders.json"])
        assert result.ok
        doc = result.document
        assert list(doc["paths"]) == ["/users", "/orders"]
        assert doc["info"]["title"] == "Aggregated API"
        assert doc["info"]["version"] == "1.2.0"
        assert doc["servers"] == [{"url": "https://users.example.com"}, {"url": "https://orders.example.com"}]
        assert list(doc["components"]["parameters"]) == ["Authorization"]
        assert [type(w) for w in result.warnings] == [SchemaIncompatibleWarning]

    def test_order_is_input_order(self):
        result = aggregate([SERVICES / "orders.json", SERVICES / "users.yaml"], AggregatorConfig(max_workers=1))
        assert list(result.document["paths"]) == ["/orders", "/users"]
        assert "User_Users_Service" in result.document["components"]["schemas"]

    def test_failed_specs_are_skipped(self):
        result = aggregate([
            SERVICES / "users.yaml",
            SERVICES / "swagger.yaml",
            FIXTURES / "cycle" / "a.yaml",
        ])
        assert result.document is not None
        assert not result.ok
        assert list(result.document["paths"]) == ["/users"]
        assert [f.code for f in result.failures] == [UNSUPPORTED_VERSION, CIRCULAR_REFERENCE]

    def test_nothing_bundles(self):
        result = aggregate([SERVICES / "swagger.yaml"])
        assert result.document is None
        assert len(result.failures) == 1

    def test_in_memory_sources(self):
        loader = DocumentLoader({
            "/mem/a.yaml": """
openapi: 3.0.3
info: {title: ServiceA, version: '1'}
paths:
  /ping:
    get:
      responses:
        '200': {$ref: 'shared.yaml#/Ok'}
""",
            "/mem/b.yaml": """
openapi: 3.0.3
info: {title: ServiceB, version: '2'}
paths:
  /pong:
    get:
      responses:
        '200': {$ref: 'shared.yaml#/Ok'}
""",
            "/mem/shared.yaml": "Ok:\n  description: fine\n",
        })
        result = aggregate(["/mem/a.yaml", "/mem/b.yaml"], AggregatorConfig(title="Gateway"), loader=loader)
        doc = result.document
        assert doc["info"]["title"] == "Gateway"
        assert doc["paths"]["/pong"]["get"]["responses"]["200"] == {"description": "fine"}
        assert doc["info"]["x-aggregated-from"] == [
            {"title": "ServiceA", "version": "1"},
            {"title": "ServiceB", "version": "2"},
        ]
