"""Import pipeline turning tabular batches into passenger records."""

from transportjf.ingestion.passengers import ImportSummary, import_passengers, passengers_from_rows

__all__ = ["ImportSummary", "import_passengers", "passengers_from_rows"]
