"""Provenance annotations on the aggregate document."""

from oas_aggregator.config import AggregatorConfig
from oas_aggregator.parser.base import ResolvedDocument

EXTENSION = "x-aggregated-from"


def annotate(
    document: dict,
    sources: list[ResolvedDocument],
    operation_sources: dict[tuple[str, str], list[str]],
    config: AggregatorConfig,
) -> None:
    """Fill ``info`` and add ``x-aggregated-from`` to ``info`` and each operation."""
    info = document.setdefault("info", {})
    info["title"] = config.title
    info["version"] = config.version or (sources[0].version if sources else "1.0.0")
    if config.description:
        info["description"] = config.description
    info[EXTENSION] = [{"title": doc.title, "version": doc.version} for doc in sources]

    for (path, method), titles in operation_sources.items():
        document["paths"][path][method][EXTENSION] = list(titles)
