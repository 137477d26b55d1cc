"""
Replication Verification Tool for Scylla Clusters

Compares a local table with its replica on a replication peer. Every cell
is compared and must match exactly (family, qualifier, timestamp and value).
The job can be restricted by time range and families. The peer id must be
the one the replication stream was set up with.

Two counters are reported, GOODROWS and BADROWS. The reason a row differs is
written to the log.

Usage:
    verifyrep [--starttime=X] [--endtime=Y] [--versions=N] [--families=A,B] <peerid> <tablename>

Examples:
    To verify the data replicated from users for a 1 hour window with peer 5:
    $ verifyrep --starttime=1265875194289 --endtime=1265878794289 5 users
"""

import sys
import argparse
import logging
import json
from datetime import datetime, timezone
from typing import List, Optional

from src.monitoring.metrics import VerificationMetrics
from src.utils.correlation import PartitionContext, generate_job_id, setup_context_logging
from src.verification.config import VerifyConfig
from src.verification.errors import (
    InvalidArguments,
    PeerResolutionError,
    ReplicationDisabled,
    VerificationError,
)
from src.verification.job import VerificationJob
from src.verification.peer_resolver import PeerResolver
from src.verification.scylla_store import ScyllaSessionFactory, ScyllaTable

NAME = "verifyrep"

logger = logging.getLogger(__name__)


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter carrying job and partition context."""

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'job_id': getattr(record, 'job_id', None),
            'partition': getattr(record, 'partition', None),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'thread': record.threadName,
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(verbose: bool = False, json_logging: bool = False) -> None:
    """
    Configure root logging for a CLI run.

    Args:
        verbose: Log at DEBUG instead of INFO
        json_logging: Emit structured JSON lines instead of plain text
    """
    handler = logging.StreamHandler(sys.stderr)
    if json_logging:
        handler.setFormatter(StructuredJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(partition)s] - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
    setup_context_logging(handler)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    # The driver is chatty at DEBUG
    logging.getLogger("cassandra").setLevel(logging.WARNING)


class VerifyArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises InvalidArguments instead of exiting with 2."""

    def error(self, message):
        raise InvalidArguments(message)


def non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative, got {number}")
    return number


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be positive, got {number}")
    return number


def build_parser() -> VerifyArgumentParser:
    parser = VerifyArgumentParser(
        prog=NAME,
        description="Verify that a table's data matches its replica on a replication peer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument("peer_id", metavar="peerid",
                        help="Id of the peer used for verification, must match the one given for replication")
    parser.add_argument("table_name", metavar="tablename", help="Name of the table to verify")

    parser.add_argument("--starttime", type=non_negative_int,
                        help="Beginning of the time range (epoch millis); without endtime means from starttime to forever")
    parser.add_argument("--endtime", "--stoptime", dest="endtime", type=non_negative_int,
                        help="End of the time range (epoch millis, exclusive)")
    parser.add_argument("--versions", type=non_negative_int, help="Number of cell versions to verify")
    parser.add_argument("--families", help="Comma-separated list of families to verify")

    parser.add_argument("--workers", type=positive_int, default=4, help="Concurrent partition workers")
    parser.add_argument("--splits", type=positive_int, default=16, help="Number of token-range partitions")
    parser.add_argument("--attempts", type=positive_int, default=2, help="Attempts per partition")
    parser.add_argument("--fetch-size", type=positive_int, default=100, help="Rows fetched per round trip")

    parser.add_argument("--scylla-hosts", help="Local cluster contact points (comma-separated)")
    parser.add_argument("--scylla-port", type=positive_int, help="Local cluster CQL port")
    parser.add_argument("--keyspace", help="Local keyspace")
    parser.add_argument("--vault-url", help="Vault address of the peer registry")
    parser.add_argument("--peers-path", help="Vault path holding replication peers")
    parser.add_argument("--pushgateway", help="Prometheus Pushgateway to push job metrics to")

    parser.add_argument("--json-logs", action="store_true", help="Structured JSON logging")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    return parser


def print_usage(parser: argparse.ArgumentParser, error_message: Optional[str] = None) -> None:
    if error_message:
        print(f"ERROR: {error_message}", file=sys.stderr)
    parser.print_usage(sys.stderr)


def run_job(config: VerifyConfig) -> int:
    """
    Run one verification job against the configured clusters.

    Returns:
        0 if every partition was verified, 1 otherwise
    """
    job_id = generate_job_id()
    metrics = VerificationMetrics()
    resolver = PeerResolver(config.registry, default_keyspace=config.local.keyspace)

    local_table = ScyllaTable(config.local, config.table_name, splits=config.splits)
    session_factory = ScyllaSessionFactory(config.table_name)
    job = VerificationJob(config, resolver, local_table, session_factory, metrics, job_id)

    with PartitionContext(job_id):
        # Nothing connects to either cluster until the peer has resolved
        plan = job.submit()
        with local_table, session_factory:
            result = job.execute(plan)

        print(json.dumps(result.to_dict(), indent=2))

        if config.pushgateway_url:
            try:
                metrics.push(config.pushgateway_url, job_name=f"{NAME}_{config.table_name}",
                             grouping_key={"job_id": job_id})
            except Exception:
                logger.warning("Continuing without pushed metrics")

    return 0 if result.succeeded else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
        config = VerifyConfig.from_args(args)
    except (InvalidArguments, ValueError) as e:
        print_usage(parser, f"Can't start because {e}")
        return 1

    configure_logging(args.verbose, config.json_logging)

    try:
        return run_job(config)
    except InvalidArguments as e:
        print_usage(parser, f"Can't start because {e}")
        return 1
    except (ReplicationDisabled, PeerResolutionError) as e:
        logger.error(f"Job not submitted: {e}")
        return 1
    except VerificationError as e:
        logger.error(f"Job failed: {e}", exc_info=args.verbose)
        return 1
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=args.verbose)
        return 1


if __name__ == "__main__":
    sys.exit(main())
