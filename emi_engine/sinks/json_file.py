"""JSON file sink: one file per topic under an output directory."""

import json
import logging
from pathlib import Path
from typing import Any

from emi_engine.exceptions import SinkError
from emi_engine.sinks.serialization import to_dict

logger = logging.getLogger(__name__)


class JsonFileSink:
    """Write each batch as a JSON array to ``<output_dir>/<topic>.json``.

    Dots in topic names become underscores, so ``dev.loans.payments`` is
    written to ``dev_loans_payments.json``. A later batch for the same
    topic replaces the file.
    """

    def __init__(self, output_dir: str | Path, pretty: bool = False) -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.indent = 2 if pretty else None
        self._counts: dict[str, int] = {}

    @property
    def pretty(self) -> bool:
        return self.indent is not None

    def path_for(self, topic: str) -> Path:
        return self.output_dir / f"{topic.replace('.', '_')}.json"

    def write_batch(self, topic: str, records: list[Any]) -> None:
        """Serialize ``records`` and replace the topic's file."""
        path = self.path_for(topic)
        payload = json.dumps(
            [to_dict(record) for record in records],
            indent=self.indent,
            ensure_ascii=False,
            default=str,
        )
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(payload)
        except OSError as exc:
            raise SinkError(f"Cannot write {path}: {exc}") from exc

        self._counts[topic] = len(records)
        logger.debug("Wrote %d records to %s", len(records), path)

    def close(self) -> None:
        """Print the files written."""
        print(f"JSON files written to: {self.output_dir}")
        for topic, count in self._counts.items():
            print(f"  {self.path_for(topic).name}: {count} records")
