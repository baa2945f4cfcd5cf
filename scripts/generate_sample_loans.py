#!/usr/bin/env python3
"""Generate sample loans with payment history and write them to a sink.

Each user gets a few loans of random types. Payments are replayed up to
``--as-of`` with a mix of on-time, late and defaulting borrowers, then
loans, installments, payments and lifecycle events are written to the
console, JSON files or Kafka topics.
"""

import argparse
import sys
import time
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from emi_engine.config import EngineConfig, KafkaConfig
from emi_engine.generators import LoanGenerator, PaymentSimulator
from emi_engine.logging import get_logger, setup_logging
from emi_engine.service import LoanService
from emi_engine.sinks import ConsoleSink, JsonFileSink, KafkaSink
from emi_engine.sinks.serialization import installment_rows, loan_header, payment_rows

logger = get_logger(__name__)


def generate_portfolio(
    service: LoanService,
    num_users: int,
    loans_per_user: int,
    seed: int,
    as_of: date,
) -> None:
    """Generate loans for ``num_users`` users and replay their payments.

    Parameters
    ----------
    service : LoanService
        Service whose store receives the loans.
    num_users : int
        Number of users.
    loans_per_user : int
        Maximum loans per user (each user gets 1..loans_per_user).
    seed : int
        Random seed for reproducibility.
    as_of : date
        Date payments are replayed up to.
    """
    loan_gen = LoanGenerator(seed=seed)
    simulator = PaymentSimulator(seed=seed)

    t0 = time.perf_counter()
    for _ in range(num_users):
        user_id = loan_gen.fake.uuid4()
        for _ in range(loan_gen.random.randint(1, loans_per_user)):
            loan = loan_gen.generate(user_id)
            simulator.simulate(loan, as_of=as_of)
            service.register_loan(loan)

    logger.info("Generated portfolio in %.1fs: %s", time.perf_counter() - t0, service.store.summary())


def create_sink(args: argparse.Namespace, config: EngineConfig):
    """Build the output sink selected on the command line."""
    if args.sink == "json":
        return JsonFileSink(args.output_dir or config.output.json_output_dir, pretty=config.output.pretty_json)
    if args.sink == "kafka":
        kafka_config = KafkaConfig(
            bootstrap_servers=args.kafka_bootstrap or config.kafka.bootstrap_servers,
            schema_registry_url=None if args.no_avro else config.kafka.schema_registry_url,
            acks=config.kafka.acks,
        )
        return KafkaSink(kafka_config)
    return ConsoleSink(pretty=True, max_records=args.max_records)


def write_portfolio(service: LoanService, sink, topic_prefix: str) -> None:
    """Write loans, installments, payments and events to ``sink``."""
    loans = list(service.store.loans.values())

    sink.write_batch(f"{topic_prefix}.loans", [loan_header(loan) for loan in loans])
    sink.write_batch(
        f"{topic_prefix}.installments",
        [row for loan in loans for row in installment_rows(loan)],
    )
    sink.write_batch(
        f"{topic_prefix}.payments",
        [row for loan in loans for row in payment_rows(loan)],
    )
    service.publish_events(sink)


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Generate sample loans with EMI schedules")
    parser.add_argument(
        "--users",
        type=int,
        default=10,
        help="Number of users to generate (default: 10)",
    )
    parser.add_argument(
        "--loans-per-user",
        type=int,
        default=3,
        help="Maximum loans per user (default: 3)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducibility (default: SEED env or 42)",
    )
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Replay payments up to this date, YYYY-MM-DD (default: today)",
    )
    parser.add_argument(
        "--sink",
        choices=["console", "json", "kafka"],
        default="console",
        help="Output sink (default: console)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for the json sink (default: OUTPUT_DIR env or ./output)",
    )
    parser.add_argument(
        "--max-records",
        type=int,
        default=5,
        help="Records printed per batch by the console sink (default: 5)",
    )
    parser.add_argument(
        "--kafka-bootstrap",
        type=str,
        default=None,
        help="Kafka bootstrap servers (default: KAFKA_BOOTSTRAP_SERVERS env)",
    )
    parser.add_argument(
        "--no-avro",
        action="store_true",
        help="Disable Avro serialization even if SCHEMA_REGISTRY_URL is set",
    )

    args = parser.parse_args()

    config = EngineConfig.from_env()
    setup_logging(config.log_level, config.log_format)

    seed = args.seed if args.seed is not None else (config.seed if config.seed is not None else 42)
    as_of = args.as_of or date.today()

    logger.info("=" * 60)
    logger.info("EMI Engine - Sample Loan Generator")
    logger.info("=" * 60)
    logger.info("Users: %d, loans per user: up to %d", args.users, args.loans_per_user)
    logger.info("Seed: %d, as of: %s, sink: %s", seed, as_of.isoformat(), args.sink)

    service = LoanService(config=config)
    generate_portfolio(service, args.users, args.loans_per_user, seed, as_of)

    sink = create_sink(args, config)
    try:
        write_portfolio(service, sink, config.output.topic_prefix)
    finally:
        sink.close()


if __name__ == "__main__":
    main()
