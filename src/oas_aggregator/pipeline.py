"""End-to-end aggregation: bundle every input spec, then merge them."""

import logging
from pathlib import Path

from oas_aggregator.config import AggregatorConfig
from oas_aggregator.merger.merger import SpecMerger
from oas_aggregator.parser.base import AggregationResult
from oas_aggregator.parser.loader import DocumentLoader
from oas_aggregator.resolver.bundler import Bundler

logger = logging.getLogger(__name__)


def aggregate(
    entry_paths: list[str | Path],
    config: AggregatorConfig | None = None,
    loader: DocumentLoader | None = None,
) -> AggregationResult:
    """Bundle ``entry_paths`` (in parallel) and merge them in the given order.

    A spec that fails to bundle is reported in ``failures`` and left out;
    the others are still merged. Pass a ``loader`` holding in-memory
    sources to aggregate without touching disk.
    """
    config = config or AggregatorConfig()
    bundler = Bundler(loader=loader or DocumentLoader())
    documents, failures = bundler.bundle_all(entry_paths, max_workers=config.max_workers)

    if not documents:
        logger.error("No input specification could be bundled")
        return AggregationResult(document=None, failures=failures)

    aggregate_doc = SpecMerger(config).merge(documents)
    return AggregationResult(
        document=aggregate_doc.document,
        warnings=aggregate_doc.warnings,
        failures=failures,
    )
