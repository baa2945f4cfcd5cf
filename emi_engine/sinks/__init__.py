"""Output sinks for exporting loans, schedules, payments and events."""

from emi_engine.sinks.console import ConsoleSink
from emi_engine.sinks.json_file import JsonFileSink
from emi_engine.sinks.kafka import KafkaSink

__all__ = ["ConsoleSink", "JsonFileSink", "KafkaSink"]
