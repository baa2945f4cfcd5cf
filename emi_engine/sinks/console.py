"""Console sink for inspecting loans, schedules and events."""

import json
import sys
from typing import Any, TextIO

from emi_engine.sinks.serialization import to_dict


class ConsoleSink:
    """Print records as JSON, one block per topic.

    Parameters
    ----------
    pretty : bool
        Indent each record.
    max_records : int | None
        Records shown per batch; the rest are only counted.
    stream : TextIO | None
        Destination (defaults to stdout).
    """

    RULE = "-" * 60

    def __init__(
        self,
        pretty: bool = True,
        max_records: int | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self.pretty = pretty
        self.max_records = max_records
        self.stream = stream or sys.stdout
        self._counts: dict[str, int] = {}

    def _print(self, text: str = "") -> None:
        print(text, file=self.stream)

    def write_batch(self, topic: str, records: list[Any]) -> None:
        """Print up to ``max_records`` records of ``topic``."""
        self._print(self.RULE)
        self._print(f"{topic} ({len(records)} records)")
        self._print(self.RULE)

        shown = records if self.max_records is None else records[: self.max_records]
        indent = 2 if self.pretty else None
        for record in shown:
            self._print(json.dumps(to_dict(record), indent=indent, ensure_ascii=False, default=str))

        hidden = len(records) - len(shown)
        if hidden > 0:
            self._print(f"... and {hidden} more records")

        self._counts[topic] = self._counts.get(topic, 0) + len(records)

    def close(self) -> None:
        """Print how many records each topic received."""
        self._print(self.RULE)
        self._print("Records written")
        for topic, count in sorted(self._counts.items()):
            self._print(f"  {topic}: {count} records")
