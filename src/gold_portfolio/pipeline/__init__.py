"""Price acquisition: orchestration and persistence."""

from gold_portfolio.pipeline.acquisition import (
    PriceAcquisitionPipeline,
    QuoteSource,
    ReferenceRateSource,
    quote_age_days,
    run_update,
)
from gold_portfolio.pipeline.writer import SnapshotWriter

__all__ = [
    "PriceAcquisitionPipeline",
    "QuoteSource",
    "ReferenceRateSource",
    "SnapshotWriter",
    "quote_age_days",
    "run_update",
]
