"""Main entry point for the loadtest package.

Usage:
    python -m loadtest load-test -n 1000 -c 10 http://localhost:8080/
    python -m loadtest load-test -c 4 --rps 20 -t 60 ws://localhost:8080/ws
    python -m loadtest suite -n 500 --levels 1,2,4,8 http://localhost:8080/
"""

import sys


def main():
    """Main entry point that dispatches to subcommands."""
    if len(sys.argv) < 2:
        print_help()
        sys.exit(1)

    command = sys.argv[1]

    if command in ["-h", "--help", "help"]:
        print_help()
        sys.exit(0)

    args = sys.argv[2:]

    if command == "load-test":
        from .cli.load_test import main as load_test_main

        load_test_main(args)
    elif command == "suite":
        from .cli.suite import main as suite_main

        suite_main(args)
    else:
        print(f"Unknown command: {command}")
        print_help()
        sys.exit(1)


def print_help():
    """Print help message."""
    print(
        """Load test an HTTP or WebSocket URL

Usage: python -m loadtest <command> [options] URL

Commands:
    load-test     Run a single load test and print its statistics
    suite         Run load tests at several concurrency levels with charts

Examples:
    # Send 1000 requests with 10 concurrent clients
    python -m loadtest load-test -n 1000 -c 10 http://localhost:8080/

    # 4 clients at 20 requests per second each, for 60 seconds
    python -m loadtest load-test -c 4 --rps 20 -t 60 ws://localhost:8080/ws

    # POST a file body, with a per-client index in the URL
    python -m loadtest load-test -n 100 -c 5 -p body.json -T application/json \\
        --index CLIENT http://localhost:8080/users/CLIENT

    # Compare concurrency levels
    python -m loadtest suite -n 500 --levels 1,2,4,8 http://localhost:8080/

For command-specific help:
    python -m loadtest <command> --help
"""
    )


if __name__ == "__main__":
    main()
