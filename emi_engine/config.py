"""Configuration management for emi-engine.

Settings are plain dataclasses with defaults; ``EngineConfig.from_env``
overrides them from environment variables.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from emi_engine.exceptions import ConfigurationError

# Hard bounds on loan terms; configured limits may only narrow them
MAX_TENURE_MONTHS = 600
MAX_INTEREST_RATE = Decimal("100")


def _env(name: str, default: str) -> str:
    return os.getenv(name) or default


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_decimal(name: str, default: str) -> Decimal:
    raw = _env(name, default)
    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if not value.is_finite():
        raise ConfigurationError(f"{name} must be a finite number, got {raw!r}")
    return value


def _env_flag(name: str) -> bool:
    return _env(name, "false").lower() in ("1", "true", "yes")


@dataclass
class LoanLimits:
    """Accepted ranges for loan terms."""

    min_tenure_months: int = 1
    max_tenure_months: int = MAX_TENURE_MONTHS
    max_interest_rate: Decimal = MAX_INTEREST_RATE  # annual %

    def __post_init__(self) -> None:
        if not 1 <= self.min_tenure_months <= self.max_tenure_months <= MAX_TENURE_MONTHS:
            raise ConfigurationError(
                f"Invalid tenure range {self.min_tenure_months}..{self.max_tenure_months}; "
                f"must lie within 1..{MAX_TENURE_MONTHS}"
            )
        if not 0 < self.max_interest_rate <= MAX_INTEREST_RATE:
            raise ConfigurationError(
                f"max_interest_rate must be in (0, {MAX_INTEREST_RATE}], got {self.max_interest_rate}"
            )


@dataclass
class AlertConfig:
    """Day windows for due-date alerts and upcoming EMI views."""

    alert_days: int = 7
    urgent_days: int = 3
    warning_days: int = 7
    upcoming_days: int = 30
    upcoming_months: int = 3


@dataclass
class KafkaConfig:
    """Producer settings for the Kafka sink."""

    bootstrap_servers: str = "localhost:9092"
    schema_registry_url: str | None = None
    client_id: str = "emi-engine"
    acks: str = "all"
    batch_size: int = 16384
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3

    def to_dict(self) -> dict[str, Any]:
        """Producer config in librdkafka property names."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "client.id": self.client_id,
            "acks": self.acks,
            "batch.size": self.batch_size,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
        }


@dataclass
class OutputConfig:
    """Where generated and exported records go."""

    json_output_dir: Path = field(default_factory=lambda: Path("output"))
    pretty_json: bool = False
    topic_prefix: str = "dev.loans"


@dataclass
class EngineConfig:
    """Top-level configuration for emi-engine."""

    limits: LoanLimits = field(default_factory=LoanLimits)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    seed: int | None = None
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from environment variables.

        Raises
        ------
        ConfigurationError
            If a numeric variable does not parse or the limits are inconsistent.
        """
        limits = LoanLimits(
            min_tenure_months=_env_int("EMI_MIN_TENURE_MONTHS", 1),
            max_tenure_months=_env_int("EMI_MAX_TENURE_MONTHS", 600),
            max_interest_rate=_env_decimal("EMI_MAX_INTEREST_RATE", "100"),
        )
        alerts = AlertConfig(
            alert_days=_env_int("EMI_ALERT_DAYS", 7),
            upcoming_days=_env_int("EMI_UPCOMING_DAYS", 30),
        )
        kafka = KafkaConfig(
            bootstrap_servers=_env("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            schema_registry_url=os.getenv("SCHEMA_REGISTRY_URL") or None,
            acks=_env("KAFKA_ACKS", "all"),
        )
        output = OutputConfig(
            json_output_dir=Path(_env("OUTPUT_DIR", "output")),
            pretty_json=_env_flag("PRETTY_JSON"),
            topic_prefix=_env("TOPIC_PREFIX", "dev.loans"),
        )
        seed = _env_int("SEED", 0) if os.getenv("SEED") else None

        return cls(
            limits=limits,
            alerts=alerts,
            kafka=kafka,
            output=output,
            seed=seed,
            log_level=_env("LOG_LEVEL", "INFO"),
            log_format=_env("LOG_FORMAT", "standard"),
        )
