"""JSON file sink for exporting reconciliation results."""

import json
import logging
from pathlib import Path
from typing import Any

from reco_engine.exceptions import SinkError
from reco_engine.sinks.serialization import to_dict

logger = logging.getLogger(__name__)


class JsonFileSink:
    """Output records and batch reports to JSON files."""

    def __init__(self, output_dir: str | Path, pretty: bool = False) -> None:
        """Initialize JSON file sink.

        Parameters
        ----------
        output_dir : str | Path
            Directory to write JSON files.
        pretty : bool
            Pretty-print JSON output.
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.pretty = pretty
        self._counts: dict[str, int] = {}

    def write_batch(self, entity_type: str, records: list[Any]) -> Path:
        """Write a batch of records to ``<entity_type>.json``."""
        data = [to_dict(record) for record in records]
        path = self._dump(entity_type, data)
        self._counts[entity_type] = len(records)
        return path

    def write_report(self, name: str, report: Any) -> Path:
        """Write a single report object (e.g. a batch summary) to ``<name>.json``."""
        summary = report.summary() if hasattr(report, "summary") else to_dict(report)
        path = self._dump(name, summary)
        self._counts[name] = 1
        return path

    def _dump(self, name: str, data: Any) -> Path:
        file_path = self.output_dir / f"{name}.json"
        try:
            with open(file_path, "w", encoding="utf-8") as f:
                if self.pretty:
                    json.dump(data, f, indent=2, ensure_ascii=False, default=str)
                else:
                    json.dump(data, f, ensure_ascii=False, default=str)
        except OSError as exc:
            raise SinkError(f"Could not write {file_path}: {exc}") from exc
        return file_path

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    def close(self) -> None:
        """Log a summary of what was written."""
        logger.info("JSON files written to: %s", self.output_dir)
        for entity_type, count in self._counts.items():
            logger.info("  %s: %d records", entity_type, count)
