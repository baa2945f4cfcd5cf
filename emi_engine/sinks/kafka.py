"""Kafka sink publishing loan rows and lifecycle events.

Rows are JSON encoded unless a schema registry is configured, in which
case ``installments`` and ``payments`` rows go out as Avro. Messages are
keyed by loan so every record of one loan lands on the same partition.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from confluent_kafka import Producer
from confluent_kafka.serialization import MessageField, SerializationContext

from emi_engine.config import KafkaConfig
from emi_engine.exceptions import SinkError
from emi_engine.sinks.serialization import to_dict

logger = logging.getLogger(__name__)

SCHEMA_NAMESPACE = "com.emiengine.loans"

_MONEY = {"type": "bytes", "logicalType": "decimal", "precision": 15, "scale": 2}
_DATE = {"type": "int", "logicalType": "date"}
_EPOCH = date(1970, 1, 1)


def _record_schema(name: str, fields: list[tuple[str, Any]]) -> dict:
    schema_fields = []
    for field_name, field_type in fields:
        entry: dict[str, Any] = {"name": field_name, "type": field_type}
        if isinstance(field_type, list) and "null" in field_type:
            entry["default"] = None
        schema_fields.append(entry)
    return {"type": "record", "name": name, "namespace": SCHEMA_NAMESPACE, "fields": schema_fields}


# Field order follows installment_rows() / payment_rows()
AVRO_SCHEMAS = {
    "installments": _record_schema(
        "Installment",
        [
            ("loan_id", "string"),
            ("emi_number", "int"),
            ("due_date", _DATE),
            ("due_date_day", "int"),
            ("principal_amount", _MONEY),
            ("interest_amount", _MONEY),
            ("emi_amount", _MONEY),
            ("remaining_balance", _MONEY),
            ("status", "string"),
            ("paid_date", ["null", _DATE]),
            ("paid_amount", _MONEY),
            ("late_fee", _MONEY),
            ("days_overdue", "int"),
        ],
    ),
    "payments": _record_schema(
        "Payment",
        [
            ("loan_id", "string"),
            ("payment_date", _DATE),
            ("amount", _MONEY),
            ("emi_number", "int"),
            ("principal_paid", _MONEY),
            ("interest_paid", _MONEY),
            ("late_fee", _MONEY),
            ("payment_method", "string"),
            ("notes", ["null", "string"]),
        ],
    ),
}


def _decimal_bytes(value: Decimal) -> bytes:
    """Two-decimal fixed point as big-endian two's complement."""
    scaled = int(value * 100)
    length = max(1, (scaled.bit_length() + 8) // 8)
    return scaled.to_bytes(length, byteorder="big", signed=True)


@dataclass
class ProducerStats:
    """Counts of produced and acknowledged messages."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0

    @property
    def success_rate(self) -> float:
        acked = self.delivered + self.failed
        return self.delivered / acked if acked else 0.0

    def __str__(self) -> str:
        return f"sent={self.sent}, delivered={self.delivered}, failed={self.failed}"


class KafkaSink:
    """Publish records to Kafka.

    Parameters
    ----------
    config : KafkaConfig | str
        Producer settings, or just a bootstrap servers string.
    """

    # Last topic segment -> field used as message key
    KEY_FIELDS = {
        "loans": "loan_id",
        "installments": "loan_id",
        "payments": "loan_id",
        "loan-events": "subject",
    }

    def __init__(self, config: KafkaConfig | str) -> None:
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.producer = Producer(config.to_dict())
        self.stats = ProducerStats()
        self._avro_serializers: dict[str, Any] = {}

        if config.schema_registry_url:
            self._init_avro_serializers()

    def _init_avro_serializers(self) -> None:
        try:
            from confluent_kafka.schema_registry import SchemaRegistryClient
            from confluent_kafka.schema_registry.avro import AvroSerializer
        except ImportError:
            logger.warning(
                "Schema registry configured but confluent-kafka[avro] is missing; "
                "falling back to JSON"
            )
            return

        registry = SchemaRegistryClient({"url": self.config.schema_registry_url})
        self._avro_serializers = {
            entity_type: AvroSerializer(registry, json.dumps(schema), to_dict=self._to_avro_dict)
            for entity_type, schema in AVRO_SCHEMAS.items()
        }
        logger.info("Avro enabled for %s", ", ".join(self._avro_serializers))

    def _to_avro_dict(self, obj: Any, ctx: SerializationContext | None) -> dict:
        """Map a flat row onto Avro logical types (decimal bytes, epoch days)."""
        if not isinstance(obj, dict):
            raise SinkError(f"Avro encoding needs a flat row, got {type(obj).__name__}")

        result = {}
        for key, value in obj.items():
            if isinstance(value, Decimal):
                value = _decimal_bytes(value)
            elif isinstance(value, datetime):
                value = int(value.timestamp() * 1000)
            elif isinstance(value, date):
                value = (value - _EPOCH).days
            elif isinstance(value, Enum):
                value = value.value
            result[key] = value
        return result

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        if err:
            self.stats.failed += 1
            logger.error("Delivery failed: %s", err)
            return
        self.stats.delivered += 1
        logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    @staticmethod
    def _get_entity_type(topic: str) -> str:
        """``dev.loans.payments`` -> ``payments``."""
        return topic.rsplit(".", 1)[-1]

    def _get_key(self, topic: str, record: Any) -> str | None:
        key_field = self.KEY_FIELDS.get(self._get_entity_type(topic))
        if key_field is None:
            return None
        if isinstance(record, dict):
            return record.get(key_field)
        return getattr(record, key_field, None)

    def _encode(self, topic: str, record: Any) -> bytes:
        serializer = self._avro_serializers.get(self._get_entity_type(topic))
        if serializer is not None and isinstance(record, dict):
            return serializer(record, SerializationContext(topic, MessageField.VALUE))
        return json.dumps(to_dict(record), ensure_ascii=False, default=str).encode("utf-8")

    def send(self, topic: str, record: Any, key: str | None = None) -> None:
        """Queue one record; ``key`` overrides the topic's key field.

        Raises
        ------
        SinkError
            If the producer's local queue is full.
        """
        value = self._encode(topic, record)
        key = key if key is not None else self._get_key(topic, record)

        try:
            self.producer.produce(
                topic=topic,
                key=key.encode("utf-8") if key else None,
                value=value,
                callback=self._delivery_callback,
            )
        except BufferError as exc:
            raise SinkError(f"Producer queue full while sending to {topic}") from exc

        self.stats.sent += 1
        self.producer.poll(0)

    def write_batch(self, topic: str, records: list[Any]) -> None:
        """Send every record, then wait for delivery."""
        for record in records:
            self.send(topic, record)
        self.flush()
        logger.info("Published %d records to %s (%s)", len(records), topic, self.stats)

    def flush(self, timeout: float = 30.0) -> None:
        remaining = self.producer.flush(timeout)
        if isinstance(remaining, int) and remaining > 0:
            logger.warning("%d messages still queued after %.0fs flush", remaining, timeout)

    def close(self) -> None:
        self.flush()
        logger.info("Kafka sink closed (%s)", self.stats)
