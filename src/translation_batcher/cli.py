"""
Command-line interface for the Translation Batcher.

Commands:
- serialize: Print the deduplication key for a JSON text description
- simulate: Run the scheduler against a lossy, delaying fake resolver
- config: Show the effective configuration

Usage:
    translation-batcher serialize '["recipe-name", ["item-name.iron-plate"]]'
    translation-batcher simulate [REQUESTS.yaml] [--actors N] [--drop-rate R]
    translation-batcher config

Environment Variables:
    BATCHER_TOTAL_BUDGET: Per-cycle operation budget (default: 50)
    BATCHER_WAIT_CYCLES: Cycles before re-requesting (default: 20)
    BATCHER_LOG_LEVEL: Log level (default: INFO)
    BATCHER_LOG_FORMAT: simple, detailed or json (default: simple)
"""

import argparse
import configparser
import json
import random
import sys
from dataclasses import replace
from pathlib import Path

from translation_batcher import __version__


def cmd_serialize(args: argparse.Namespace) -> int:
    """
    Print the canonical key for a text description given as JSON.

    A bare word that is not valid JSON is treated as an atomic string.

    Returns:
        0 on success, 1 if the description is invalid
    """
    from translation_batcher.translation.errors import InvalidDescription
    from translation_batcher.translation.serializer import serialize

    try:
        description = json.loads(args.description)
    except json.JSONDecodeError:
        description = args.description

    try:
        print(serialize(description))
        return 0
    except InvalidDescription as e:
        print(f"Error: invalid text description: {e}", file=sys.stderr)
        return 1


def cmd_simulate(args: argparse.Namespace) -> int:
    """
    Run a full simulation and print a summary.

    Requests come from a YAML file when one is given, otherwise they are
    generated at random (``--actors`` x ``--items``). Command-line options
    override the [simulation] config section.

    Returns:
        0 if every actor finished, 1 on bad input, 2 if the cycle limit was
        reached with work outstanding
    """
    from translation_batcher.config import config, validate_config
    from translation_batcher.simulation import (
        generate_requests,
        load_requests_file,
        run_simulation,
    )

    settings = replace(
        config.simulation,
        **{
            name: value
            for name, value in (
                ("actors", args.actors),
                ("items_per_actor", args.items),
                ("drop_rate", args.drop_rate),
                ("duplicate_rate", args.duplicate_rate),
                ("max_delay_cycles", args.max_delay),
                ("max_cycles", args.max_cycles),
                ("seed", args.seed),
            )
            if value is not None
        },
    )
    scheduler = replace(
        config.scheduler,
        **{
            name: value
            for name, value in (("total_budget", args.budget), ("wait_cycles", args.wait))
            if value is not None
        },
    )

    try:
        validate_config(replace(config, simulation=settings, scheduler=scheduler))
        if args.requests_file:
            requests = load_requests_file(Path(args.requests_file))
        else:
            rng = random.Random(settings.seed)
            requests = generate_requests(settings.actors, settings.items_per_actor, rng)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    summary = run_simulation(requests, settings=settings, scheduler=scheduler)

    print("\n" + "=" * 60)
    print("SIMULATION SUMMARY")
    print("=" * 60)
    print(f"Actors:            {len(requests)}")
    print(f"Items requested:   {sum(len(items) for items in requests.values())}")
    print(f"Cycles run:        {summary.cycles}")
    print(f"Resolver requests: {summary.requests_issued}")
    print(f"Results dropped:   {summary.dropped}")
    print(f"Results delivered: {summary.results_delivered}")
    print(f"Finished actors:   {len(summary.finished)}")
    if summary.cancelled:
        print(f"Cancelled actors:  {len(summary.cancelled)}")
    if summary.unfinished:
        print(f"Unfinished actors: {len(summary.unfinished)}")
    print("-" * 60)
    for actor_id, dictionaries in summary.finished.items():
        sizes = ", ".join(f"{name}={len(entries)}" for name, entries in dictionaries.items())
        print(f"  {actor_id!s:<12} tick {summary.finished_at[actor_id]:>5}  {sizes}")
    print("=" * 60 + "\n")

    return 0 if summary.completed else 2


def cmd_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    from translation_batcher.config import print_config_summary

    print_config_summary()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="translation-batcher",
        description="Translation Batcher - budgeted, deduplicated translation lookups",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="INI file to load instead of config/batcher.ini",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log at DEBUG level",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # serialize command
    serialize_parser = subparsers.add_parser(
        "serialize",
        help="Print the deduplication key for a text description",
        description="Print the canonical key for a JSON text description.",
    )
    serialize_parser.add_argument(
        "description",
        help='JSON text description, e.g. \'["item-name.coal"]\' (bare words are strings)',
    )
    serialize_parser.set_defaults(func=cmd_serialize)

    # simulate command
    simulate_parser = subparsers.add_parser(
        "simulate",
        help="Run the scheduler against a simulated resolver",
        description=(
            "Drive the scheduler tick by tick against a fake resolver that delays, "
            "drops and duplicates results, then print a summary."
        ),
    )
    simulate_parser.add_argument(
        "requests_file",
        nargs="?",
        help="YAML file with per-actor requests (default: generate at random)",
    )
    simulate_parser.add_argument("--actors", type=int, help="Actors to generate")
    simulate_parser.add_argument("--items", type=int, help="Items per generated actor")
    simulate_parser.add_argument("--drop-rate", type=float, help="Probability a result is lost")
    simulate_parser.add_argument(
        "--duplicate-rate", type=float, help="Probability a result is delivered twice"
    )
    simulate_parser.add_argument("--max-delay", type=int, help="Maximum result delay in cycles")
    simulate_parser.add_argument("--max-cycles", type=int, help="Give up after this many cycles")
    simulate_parser.add_argument("--budget", type=int, help="Per-cycle operation budget")
    simulate_parser.add_argument("--wait", type=int, help="Cycles to wait before re-requesting")
    simulate_parser.add_argument("--seed", type=int, help="Random seed for reproducible runs")
    simulate_parser.set_defaults(func=cmd_simulate)

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Show the effective configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        # Both imports load settings from disk and the environment
        from translation_batcher import config as config_module
        from translation_batcher.logging_setup import configure_logging

        if args.config:
            config_module.reload_config(Path(args.config))
    except (OSError, ValueError, configparser.Error) as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(config_module.config.logging, verbose=args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
