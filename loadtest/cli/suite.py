"""CLI for multi-concurrency test suites."""

import argparse
import asyncio
import sys
import traceback
from dataclasses import replace
from typing import List, Optional

from ..core.models import ConfigurationError, LoadTestConfig, LoadTestResult
from ..core.operation import load_test
from ..results.aggregator import ResultAggregator
from ..results.charts import generate_charts
from .load_test import add_test_arguments, build_config, configure_logging


async def run_suite(
    base_config: LoadTestConfig,
    levels: List[int],
    aggregator: Optional[ResultAggregator] = None,
) -> List[LoadTestResult]:
    """Run one load test per concurrency level with the same stop conditions."""
    aggregator = aggregator if aggregator is not None else ResultAggregator()

    print(f"\nStarting Load Test Suite with {len(levels)} concurrency levels")
    print(f"Concurrency levels: {levels}")

    for i, level in enumerate(levels):
        print(f"\n{'='*60}")
        print(f"Running test {i+1}/{len(levels)}: concurrency {level}")
        print(f"{'='*60}")

        config = replace(base_config, concurrency=level)
        result = await load_test(config)
        aggregator.add_result(result)
        aggregator.print_single_result(result)

    return aggregator.results


def parse_levels(value: str) -> List[int]:
    levels = [int(level.strip()) for level in value.split(",") if level.strip()]
    if not levels or any(level < 1 for level in levels):
        raise ConfigurationError(f"Invalid concurrency levels: {value}")
    return levels


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loadtest suite",
        description="Run load tests at increasing concurrency levels",
    )
    add_test_arguments(parser)
    parser.add_argument(
        "--levels",
        type=str,
        default="1,2,4,8,16",
        help="Comma-separated concurrency levels (default: 1,2,4,8,16)",
    )
    parser.add_argument(
        "--no-charts",
        action="store_true",
        help="Skip chart generation",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Path for the chart image (auto-generated if omitted)",
    )
    parser.add_argument(
        "--csv",
        type=str,
        default=None,
        help="Export the summary table to a CSV file",
    )
    return parser


def main(argv=None):
    """Main entry point for suite CLI."""
    args = build_parser().parse_args(argv)
    configure_logging(quiet=args.quiet, debug=args.debug)

    try:
        levels = parse_levels(args.levels)
        base_config = asyncio.run(build_config(args))
    except (ConfigurationError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    if not base_config.max_requests and not base_config.max_seconds:
        print("Error: a suite needs -n or -t so that each test ends")
        sys.exit(1)

    aggregator = ResultAggregator()

    try:
        asyncio.run(run_suite(base_config, levels, aggregator))

        aggregator.print_summary_table(
            title="LOAD TEST SUITE RESULTS",
            description=f"URL: {base_config.url} | Levels: {args.levels}",
        )
        if args.csv:
            aggregator.to_csv(args.csv)
            print(f"\nSummary saved to: {args.csv}")

        if not args.no_charts and aggregator.results:
            generate_charts(aggregator.results, output_path=args.output)

    except KeyboardInterrupt:
        print("\nTest suite interrupted by user")
        if aggregator.results:
            aggregator.print_summary_table(
                title="PARTIAL TEST SUITE RESULTS (interrupted)"
            )
    except Exception as e:
        print(f"Error running test suite: {e}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
