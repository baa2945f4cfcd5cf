"""Tests for config and logging."""

import json
import logging
import os
import sys
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

from emi_engine.config import (
    AlertConfig,
    EngineConfig,
    KafkaConfig,
    LoanLimits,
    OutputConfig,
)
from emi_engine.exceptions import ConfigurationError
from emi_engine.logging import JsonFormatter, get_logger, setup_logging

ENV_VARS = [
    "EMI_MIN_TENURE_MONTHS",
    "EMI_MAX_TENURE_MONTHS",
    "EMI_MAX_INTEREST_RATE",
    "EMI_ALERT_DAYS",
    "EMI_UPCOMING_DAYS",
    "KAFKA_BOOTSTRAP_SERVERS",
    "SCHEMA_REGISTRY_URL",
    "KAFKA_ACKS",
    "OUTPUT_DIR",
    "PRETTY_JSON",
    "TOPIC_PREFIX",
    "SEED",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture
def clean_env() -> dict[str, str]:
    """Environment without any emi-engine settings."""
    return {k: v for k, v in os.environ.items() if k not in ENV_VARS}


class TestLoanLimits:
    """Tests for LoanLimits."""

    def test_default_values(self) -> None:
        """Test default term ranges."""
        limits = LoanLimits()

        assert limits.min_tenure_months == 1
        assert limits.max_tenure_months == 600
        assert limits.max_interest_rate == Decimal("100")

    def test_invalid_tenure_range(self) -> None:
        """Test inverted or empty tenure ranges are rejected."""
        with pytest.raises(ConfigurationError):
            LoanLimits(min_tenure_months=0)
        with pytest.raises(ConfigurationError):
            LoanLimits(min_tenure_months=24, max_tenure_months=12)

    def test_invalid_rate_cap(self) -> None:
        """Test the rate cap must be positive."""
        with pytest.raises(ConfigurationError):
            LoanLimits(max_interest_rate=Decimal("0"))

    def test_cannot_widen_hard_bounds(self) -> None:
        """Test limits may narrow but never widen the 600-month and 100% bounds."""
        with pytest.raises(ConfigurationError):
            LoanLimits(max_tenure_months=601)
        with pytest.raises(ConfigurationError):
            LoanLimits(max_interest_rate=Decimal("100.5"))

        limits = LoanLimits(max_tenure_months=600, max_interest_rate=Decimal("100"))
        assert limits.max_tenure_months == 600


class TestKafkaConfig:
    """Tests for KafkaConfig."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        config = KafkaConfig()

        assert config.bootstrap_servers == "localhost:9092"
        assert config.schema_registry_url is None
        assert config.acks == "all"
        assert config.compression == "snappy"

    def test_to_dict(self) -> None:
        """Test conversion to confluent-kafka config dict."""
        result = KafkaConfig(bootstrap_servers="kafka:9092", acks="1", linger_ms=10).to_dict()

        assert result == {
            "bootstrap.servers": "kafka:9092",
            "client.id": "emi-engine",
            "acks": "1",
            "batch.size": 16384,
            "linger.ms": 10,
            "compression.type": "snappy",
            "retries": 3,
        }


class TestEngineConfig:
    """Tests for EngineConfig."""

    def test_default_values(self) -> None:
        """Test nested defaults."""
        config = EngineConfig()

        assert isinstance(config.limits, LoanLimits)
        assert isinstance(config.alerts, AlertConfig)
        assert isinstance(config.output, OutputConfig)
        assert config.alerts.alert_days == 7
        assert config.alerts.upcoming_days == 30
        assert config.output.topic_prefix == "dev.loans"
        assert config.seed is None

    def test_from_env_default(self, clean_env: dict[str, str]) -> None:
        """Test defaults when nothing is set."""
        with patch.dict(os.environ, clean_env, clear=True):
            config = EngineConfig.from_env()

        assert config.limits.max_tenure_months == 600
        assert config.kafka.bootstrap_servers == "localhost:9092"
        assert config.kafka.schema_registry_url is None
        assert config.output.json_output_dir == Path("output")
        assert config.output.pretty_json is False
        assert config.seed is None
        assert config.log_level == "INFO"
        assert config.log_format == "standard"

    def test_from_env_custom(self, clean_env: dict[str, str]) -> None:
        """Test every setting is read from the environment."""
        env = {
            **clean_env,
            "EMI_MIN_TENURE_MONTHS": "3",
            "EMI_MAX_TENURE_MONTHS": "360",
            "EMI_MAX_INTEREST_RATE": "36.5",
            "EMI_ALERT_DAYS": "14",
            "EMI_UPCOMING_DAYS": "45",
            "KAFKA_BOOTSTRAP_SERVERS": "kafka-cluster:9092",
            "SCHEMA_REGISTRY_URL": "http://registry:8081",
            "KAFKA_ACKS": "1",
            "OUTPUT_DIR": "/tmp/loans",
            "PRETTY_JSON": "true",
            "TOPIC_PREFIX": "prod.loans",
            "SEED": "7",
            "LOG_LEVEL": "DEBUG",
            "LOG_FORMAT": "json",
        }
        with patch.dict(os.environ, env, clear=True):
            config = EngineConfig.from_env()

        assert config.limits.min_tenure_months == 3
        assert config.limits.max_tenure_months == 360
        assert config.limits.max_interest_rate == Decimal("36.5")
        assert config.alerts.alert_days == 14
        assert config.alerts.upcoming_days == 45
        assert config.kafka.bootstrap_servers == "kafka-cluster:9092"
        assert config.kafka.schema_registry_url == "http://registry:8081"
        assert config.kafka.acks == "1"
        assert config.output.json_output_dir == Path("/tmp/loans")
        assert config.output.pretty_json is True
        assert config.output.topic_prefix == "prod.loans"
        assert config.seed == 7
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("EMI_ALERT_DAYS", "soon"),
            ("EMI_MAX_INTEREST_RATE", "lots"),
            ("SEED", "abc"),
            ("EMI_MIN_TENURE_MONTHS", "0"),
            ("EMI_MAX_TENURE_MONTHS", "1200"),
            ("EMI_MAX_INTEREST_RATE", "250"),
            ("EMI_MAX_INTEREST_RATE", "NaN"),
        ],
    )
    def test_from_env_invalid(self, clean_env: dict[str, str], name: str, value: str) -> None:
        """Test malformed settings raise ConfigurationError."""
        with patch.dict(os.environ, {**clean_env, name: value}, clear=True):
            with pytest.raises(ConfigurationError):
                EngineConfig.from_env()


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_default(self) -> None:
        """Test default logging setup."""
        setup_logging()

        assert logging.getLogger("emi_engine").level == logging.INFO

    def test_setup_logging_debug(self) -> None:
        """Test debug level logging setup."""
        setup_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("emi_engine").level == logging.DEBUG

    def test_setup_logging_invalid_level(self) -> None:
        """Test logging with invalid level defaults to INFO."""
        setup_logging(level="INVALID")

        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_json_format(self) -> None:
        """Test JSON format logging."""
        setup_logging(format_type="json")

        assert any(isinstance(h.formatter, JsonFormatter) for h in logging.getLogger().handlers)

    def test_setup_logging_replaces_handlers(self) -> None:
        """Test that setup_logging replaces existing handlers."""
        logger = logging.getLogger()
        logger.addHandler(logging.StreamHandler())
        logger.addHandler(logging.StreamHandler())

        setup_logging()

        assert len(logger.handlers) == 1

    def test_external_loggers_quieted(self) -> None:
        """Test that external library loggers are quieted."""
        setup_logging(level="DEBUG")

        assert logging.getLogger("confluent_kafka").level == logging.WARNING
        assert logging.getLogger("faker").level == logging.WARNING


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _record(self, **kwargs: object) -> logging.LogRecord:
        return logging.LogRecord(
            name="emi_engine.engine.payments",
            level=kwargs.pop("level", logging.INFO),
            pathname="/path/to/payments.py",
            lineno=42,
            msg=kwargs.pop("msg", "Recorded payment of %s"),
            args=kwargs.pop("args", ("8885",)),
            exc_info=kwargs.pop("exc_info", None),
        )

    def test_format_basic(self) -> None:
        """Test basic log formatting."""
        data = json.loads(JsonFormatter().format(self._record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "emi_engine.engine.payments"
        assert data["message"] == "Recorded payment of 8885"
        assert "timestamp" in data

    def test_format_with_exception(self) -> None:
        """Test formatting with exception info."""
        try:
            raise ValueError("Test error")
        except ValueError:
            exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(self._record(level=logging.ERROR, exc_info=exc_info)))

        assert data["level"] == "ERROR"
        assert "ValueError" in data["exception"]

    def test_format_with_extra(self) -> None:
        """Test formatting with extra fields."""
        record = self._record()
        record.extra = {"loan_id": "loan-1", "amount": Decimal("8885")}

        data = json.loads(JsonFormatter().format(record))

        assert data["loan_id"] == "loan-1"
        assert data["amount"] == "8885"

    def test_format_with_context_fields(self) -> None:
        """Test attributes passed through extra= appear in the output."""
        record = self._record()
        record.loan_id = "loan-7"
        record.emi_number = 3

        data = json.loads(JsonFormatter().format(record))

        assert data["loan_id"] == "loan-7"
        assert data["emi_number"] == 3
        assert "user_id" not in data


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger(self) -> None:
        """Test getting a logger."""
        logger = get_logger("emi_engine.test")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "emi_engine.test"
        assert get_logger("emi_engine.test") is logger


class TestPackageInit:
    """Tests for emi_engine __init__.py."""

    def test_version_exported(self) -> None:
        """Test that __version__ is exported."""
        from emi_engine import __version__

        assert isinstance(__version__, str)
