"""CLI for single load tests."""

import argparse
import asyncio
import logging
import sys

from ..core.body_loader import load_body
from ..core.models import ConfigurationError, LoadTestConfig
from ..core.operation import Operation
from ..results.aggregator import print_results, snapshots_to_dataframe


def configure_logging(quiet: bool = False, debug: bool = False) -> None:
    """Set up process-wide logging for the command line."""
    level = logging.INFO
    if debug:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logging.basicConfig(
        level=level, format="%(asctime)s - %(levelname)s - %(message)s"
    )


def add_test_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the options shared by every command that runs load tests."""
    parser.add_argument("url", help="HTTP or WebSocket URL to load test")

    # Apache ab-compatible options
    parser.add_argument(
        "-n",
        dest="max_requests",
        type=int,
        metavar="REQUESTS",
        help="Number of requests to perform",
    )
    parser.add_argument(
        "-c",
        dest="concurrency",
        type=int,
        default=1,
        metavar="CONCURRENCY",
        help="Number of multiple requests to make (default: 1)",
    )
    parser.add_argument(
        "-t",
        dest="max_seconds",
        type=float,
        metavar="TIMELIMIT",
        help="Seconds to max. wait for responses",
    )
    parser.add_argument(
        "-C",
        dest="cookies",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Send a cookie with the given name (repeatable)",
    )
    parser.add_argument(
        "-T",
        dest="content_type",
        metavar="CONTENT_TYPE",
        help="The MIME type for the body",
    )
    parser.add_argument(
        "-m",
        dest="method",
        default=None,
        metavar="METHOD",
        help="HTTP method to use (default: GET)",
    )
    body_group = parser.add_mutually_exclusive_group()
    body_group.add_argument(
        "-p", dest="post_file", metavar="POST_FILE", help="Send the contents of the file as POST body"
    )
    body_group.add_argument(
        "-u", dest="put_file", metavar="PUT_FILE", help="Send the contents of the file as PUT body"
    )
    parser.add_argument(
        "-r",
        dest="recover",
        action="store_true",
        help="Do not exit on socket receive errors (WebSocket clients reconnect)",
    )

    # Other options
    parser.add_argument(
        "--rps",
        dest="requests_per_second",
        type=float,
        help="Requests per second for each client",
    )
    parser.add_argument(
        "--noagent",
        dest="keep_alive",
        action="store_false",
        help="Do not use keep-alive connections (default)",
    )
    parser.add_argument(
        "--agent",
        "--keepalive",
        dest="keep_alive",
        action="store_true",
        help="Use keep-alive connections",
    )
    parser.set_defaults(keep_alive=False)
    parser.add_argument(
        "--index",
        dest="index_param",
        metavar="PARAM",
        help="Replace the value of PARAM with the client index in the URL",
    )
    parser.add_argument(
        "--show-interval",
        type=float,
        default=5.0,
        metavar="SECONDS",
        help="Seconds between partial reports (default: 5)",
    )
    parser.add_argument("--quiet", action="store_true", help="Do not log any messages")
    parser.add_argument("--debug", action="store_true", help="Show debug messages")


async def build_config(args: argparse.Namespace, **overrides) -> LoadTestConfig:
    """Turn parsed arguments into a validated configuration."""
    method = args.method or "GET"
    body = None
    if args.post_file:
        method = args.method or "POST"
        body = await load_body(args.post_file)
    elif args.put_file:
        method = args.method or "PUT"
        body = await load_body(args.put_file)

    config = LoadTestConfig(
        url=args.url,
        concurrency=args.concurrency,
        max_requests=args.max_requests,
        max_seconds=args.max_seconds,
        requests_per_second=args.requests_per_second,
        method=method,
        body=body,
        content_type=args.content_type,
        cookies=list(args.cookies),
        index_param=args.index_param,
        keep_alive=args.keep_alive,
        recover=args.recover,
        show_interval_ms=int(args.show_interval * 1000),
        quiet=args.quiet,
        debug=args.debug,
    )
    for name, value in overrides.items():
        setattr(config, name, value)
    config.validate()
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loadtest load-test",
        description="Run a load test against an HTTP or WebSocket URL",
    )
    add_test_arguments(parser)
    parser.add_argument(
        "--csv",
        type=str,
        default=None,
        metavar="PATH",
        help="Export the partial snapshots to a CSV file",
    )
    return parser


async def run_load_test(args: argparse.Namespace) -> Operation:
    """Build the configuration and run one operation to completion."""
    config = await build_config(args)
    operation = Operation(config)
    args.operation = operation
    await operation.run()
    return operation


def main(argv=None):
    """Main entry point for load-test CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    args.operation = None

    configure_logging(quiet=args.quiet, debug=args.debug)

    try:
        operation = asyncio.run(run_load_test(args))
    except KeyboardInterrupt:
        print("\nTest interrupted by user")
        operation = args.operation
        if operation is None or operation.result is None:
            sys.exit(1)
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    print_results(operation.result)
    if args.csv:
        snapshots_to_dataframe(operation.result.partials).to_csv(args.csv, index=False)
        print(f"\nPartial snapshots saved to: {args.csv}")


if __name__ == "__main__":
    main()
