"""Reference resolution and spec aggregation for OpenAPI 3.x documents."""

__version__ = "0.1.0"
