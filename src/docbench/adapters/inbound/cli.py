"""Command-line entry point.

Usage:
    docbench --size small --iterations 5 --adapters memory,sqlite
    python -m docbench --scenarios query,aggregate --output report.json

Options not given on the command line fall back to ``DOCBENCH_*``
environment variables, then to built-in defaults. The JSON report goes to
stdout (or ``--output``); logs go to stderr.
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from docbench import __version__
from docbench.adapters.outbound.registry import available_adapters
from docbench.application import SCENARIOS, BenchmarkRunner
from docbench.infrastructure.config import DATA_SIZE_PRESETS, BenchmarkConfig, get_config
from docbench.infrastructure.logging import get_logger, setup_logging
from docbench.infrastructure.metrics import get_metrics, setup_metrics
from docbench.infrastructure.tracing import setup_tracing


def _data_size(value: str) -> str | int:
    if value in DATA_SIZE_PRESETS:
        return value
    try:
        count = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"expected one of {', '.join(DATA_SIZE_PRESETS)} or a positive integer, got {value!r}"
        ) from None
    if count <= 0:
        raise argparse.ArgumentTypeError(f"document count must be positive, got {count}")
    return count


def _name_list(value: str) -> list[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docbench",
        description="Benchmark document storage adapters with MongoDB-style workloads.",
        epilog=(
            f"adapters: {', '.join(available_adapters())}\n"
            f"scenarios: {', '.join(SCENARIOS)}"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--size",
        type=_data_size,
        help=f"dataset preset ({', '.join(DATA_SIZE_PRESETS)}) or document count",
    )
    parser.add_argument("--iterations", type=int, help="measured iterations per scenario")
    parser.add_argument("--warmup", type=int, help="discarded warm-up iterations")
    parser.add_argument("--adapters", type=_name_list, help="comma-separated adapter names")
    parser.add_argument("--scenarios", type=_name_list, help="comma-separated scenario names")
    parser.add_argument("--seed", type=int, help="data generation seed")
    parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="reject unknown query operators and pipeline stages",
    )
    parser.add_argument("--output", type=Path, help="write the JSON report to this file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument("--log-format", choices=["json", "console"])
    parser.add_argument("--metrics-port", type=int, help="serve Prometheus metrics on this port")
    return parser


def resolve_config(
    args: argparse.Namespace,
    parser: argparse.ArgumentParser,
) -> BenchmarkConfig:
    """Overlay command-line options on the environment configuration."""
    overrides: dict[str, Any] = {
        "data_size": args.size,
        "iterations": args.iterations,
        "warmup": args.warmup,
        "adapters": args.adapters,
        "scenarios": args.scenarios,
        "seed": args.seed,
        "strict_operators": args.strict,
    }
    merged = get_config().benchmark.model_dump()
    merged.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return BenchmarkConfig.model_validate(merged)
    except ValidationError as e:
        parser.error(str(e))
        raise


def main(argv: Sequence[str] | None = None) -> int:
    """Run the benchmark and emit the JSON report.

    Returns:
        0 when the run completes, even if some scenarios or adapters
        failed. Argument errors exit with status 2.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    config = resolve_config(args, parser)

    observability = get_config().observability
    setup_logging(
        level=args.log_level or observability.log_level,
        log_format=args.log_format or observability.log_format,
    )
    logger = get_logger(__name__)

    metrics_port = args.metrics_port or observability.metrics_port
    metrics = setup_metrics(metrics_port) if metrics_port else get_metrics()
    if observability.otel_endpoint:
        setup_tracing(
            service_name=observability.otel_service_name,
            otlp_endpoint=observability.otel_endpoint,
        )

    report = BenchmarkRunner(config, metrics=metrics).run()
    payload = json.dumps(report.to_dict(), indent=2)

    if args.output:
        args.output.write_text(payload + "\n", encoding="utf-8")
        logger.info("report_written", path=str(args.output))
    else:
        sys.stdout.write(payload + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
