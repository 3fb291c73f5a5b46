"""
Command-line interface for the Metric Simulator.

Provides commands for:
- Running the continuous simulation against an OTLP endpoint (or file/console)
- Previewing the metric catalog each resource would report
- Printing the effective configuration
"""

import argparse
import logging
import random
import sys
from pathlib import Path

import yaml

from . import __version__
from .config import SimulatorConfig
from .exporters.meter_session import (
    SessionFactory,
    console_session_factory,
    file_session_factory,
    otlp_session_factory,
)
from .generators.buckets import BucketBoundarySet
from .generators.catalog import MetricCatalogBuilder
from .simulation.supervisor import SimulationSupervisor
from .statistics.distributions import IntRange

logger = logging.getLogger("metricsim")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def _csv(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def _int_range(value: str) -> IntRange:
    try:
        return IntRange.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _boundaries(value: str) -> BucketBoundarySet:
    try:
        return BucketBoundarySet(tuple(float(v) for v in _csv(value)))
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _header(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    return key.strip(), val.strip()


def _add_common_options(parser: argparse.ArgumentParser, suppress: bool = False) -> None:
    """Options accepted both before and after the subcommand."""
    # Subparser copies must not overwrite values given before the subcommand.
    default = argparse.SUPPRESS if suppress else None
    parser.add_argument(
        "--config",
        type=Path,
        default=default,
        help="Path to config YAML (default: resource/config/config.yaml when present)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=default,
        help="Log level (default: INFO, or METRICSIM_LOG_LEVEL)",
    )
    parser.add_argument(
        "--resources",
        type=_csv,
        default=default,
        metavar="NAME[,NAME...]",
        help="Comma-separated resource names to simulate",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=default,
        help="Random seed; each worker uses seed + its index",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="metricsim",
        description="Synthetic OTEL metric generator for exercising telemetry pipelines",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Stream metrics for the default services to a local collector
  metricsim run

  # Two resources, plaintext gRPC to a remote collector, stop after a minute
  metricsim run --endpoint collector:4317 --resources web-service-a,order-service --duration 60

  # Offline: write three cycles per resource to a JSONL file
  metricsim run --cycles 3 --output-file metrics.jsonl

  # Show which metrics each resource would report
  metricsim catalog --seed 42
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _add_common_options(parser)

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    run_parser = subparsers.add_parser("run", help="Run the continuous metric simulation")
    _add_common_options(run_parser, suppress=True)
    run_parser.add_argument(
        "--endpoint",
        type=str,
        default=None,
        help="OTLP collector endpoint (default: 0.0.0.0:4317)",
    )
    run_parser.add_argument(
        "--protocol",
        choices=("grpc", "http"),
        default=None,
        help="OTLP transport (default: grpc)",
    )
    run_parser.add_argument(
        "--secure",
        action="store_true",
        help="Use TLS instead of plaintext transport",
    )
    run_parser.add_argument(
        "--header",
        dest="headers",
        type=_header,
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Extra exporter header (repeatable)",
    )
    run_parser.add_argument("--service-name", type=str, default=None, help="service.name attribute")
    run_parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until signalled)",
    )
    run_parser.add_argument(
        "--cycles",
        type=int,
        default=None,
        help="Cycles per resource before its worker stops (default: unlimited)",
    )
    run_parser.add_argument(
        "--cooldown",
        type=float,
        default=None,
        help="Seconds between cycles (default: 1.0)",
    )
    run_parser.add_argument(
        "--sample-delay",
        type=float,
        default=None,
        help="Seconds between samples (default: 0.05)",
    )
    run_parser.add_argument(
        "--grace",
        type=float,
        default=None,
        help="Seconds to wait for workers on shutdown (default: 2.0)",
    )
    run_parser.add_argument(
        "--metric-count",
        type=_int_range,
        default=None,
        metavar="LOW-HIGH",
        help="Metrics per resource per cycle (default: 3-7)",
    )
    run_parser.add_argument(
        "--data-points",
        type=_int_range,
        default=None,
        metavar="LOW-HIGH",
        help="Samples per metric per cycle (default: 5-25)",
    )
    run_parser.add_argument(
        "--max-value",
        type=float,
        default=None,
        help="Upper bound of generated values (default: 15000)",
    )
    run_parser.add_argument(
        "--boundaries",
        type=_boundaries,
        default=None,
        metavar="B1,B2,...",
        help="Ascending histogram bucket boundaries",
    )
    run_parser.add_argument(
        "--reuse-session",
        action="store_true",
        help="Keep one exporter per resource across cycles instead of one per cycle",
    )
    output = run_parser.add_mutually_exclusive_group()
    output.add_argument(
        "--output-file",
        type=str,
        default=None,
        help="Write metrics as JSONL to this file instead of OTLP",
    )
    output.add_argument(
        "--console",
        action="store_true",
        help="Print metrics to stdout instead of OTLP",
    )

    catalog_parser = subparsers.add_parser(
        "catalog", help="Show one sample metric catalog per resource"
    )
    _add_common_options(catalog_parser, suppress=True)
    config_parser = subparsers.add_parser(
        "config", help="Print the effective configuration as YAML"
    )
    _add_common_options(config_parser, suppress=True)

    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_config(args: argparse.Namespace) -> SimulatorConfig:
    """Load config file and environment, then apply command-line overrides."""
    config = SimulatorConfig.load(args.config)
    config = config.replace(
        resources=tuple(args.resources) if args.resources else None,
        random_seed=args.seed,
        log_level=args.log_level.upper() if args.log_level else None,
    )
    if args.command != "run":
        return config
    return config.replace(
        endpoint=args.endpoint,
        protocol=args.protocol,
        insecure=False if args.secure else None,
        headers=dict(args.headers) if args.headers else None,
        service_name=args.service_name,
        duration_seconds=args.duration,
        max_cycles=args.cycles,
        cooldown_seconds=args.cooldown,
        sample_delay_seconds=args.sample_delay,
        shutdown_grace_seconds=args.grace,
        metric_count=args.metric_count,
        data_point_count=args.data_points,
        max_value=args.max_value,
        boundaries=args.boundaries,
        reuse_session=True if args.reuse_session else None,
    )


def session_factory_for(args: argparse.Namespace, config: SimulatorConfig) -> SessionFactory:
    if args.output_file:
        return file_session_factory(config, args.output_file)
    if args.console:
        return console_session_factory(config)
    return otlp_session_factory(config)


def cmd_run(args: argparse.Namespace, config: SimulatorConfig) -> int:
    """Run the simulation until a stop condition."""
    if args.output_file:
        logger.info("Writing metrics to %s", args.output_file)
    elif args.console:
        logger.info("Printing metrics to console")
    else:
        logger.info("Using exporter endpoint: %s (%s)", config.endpoint, config.protocol)
    logger.info("Simulating resources: %s", ", ".join(config.resources))

    try:
        supervisor = SimulationSupervisor(config, session_factory_for(args, config))
        return supervisor.run()
    except Exception:
        logger.exception("Unexpected error in simulation")
        return EXIT_FAILURE
    finally:
        logger.info("Shutting down application gracefully.")


def cmd_catalog(args: argparse.Namespace, config: SimulatorConfig) -> int:
    """Print one sample catalog per resource."""
    print("Sample metric catalogs (re-rolled every cycle):")
    print()
    for i, resource in enumerate(config.resources):
        builder = MetricCatalogBuilder(
            metric_count=config.metric_count,
            archetypes=config.archetypes,
            kinds=config.instrument_kinds,
            rng=random.Random(config.worker_seed(i)),
        )
        catalog = builder.build(resource)
        kinds = ", ".join(k.value for k in config.instrument_kinds)
        print(f"  - {resource} ({len(catalog)} metrics, reported as {kinds})")
        for descriptor in catalog:
            print(f"     {descriptor.index}. {descriptor.name}")
    return EXIT_OK


def cmd_config(args: argparse.Namespace, config: SimulatorConfig) -> int:
    """Print the effective configuration."""
    print(yaml.safe_dump(config.to_dict(), sort_keys=False), end="")
    return EXIT_OK


def run(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch; returns the exit code."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    configure_logging(config.log_level)

    if args.command == "run":
        return cmd_run(args, config)
    elif args.command == "catalog":
        return cmd_catalog(args, config)
    elif args.command == "config":
        return cmd_config(args, config)
    parser.print_help()
    return EXIT_FAILURE


def main() -> None:
    """Main entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
