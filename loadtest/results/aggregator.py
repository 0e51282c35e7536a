"""Result aggregation and reporting."""

import pandas as pd
from typing import List, Optional

from ..core.models import LatencyStats, LoadTestResult


def snapshots_to_dataframe(snapshots: List[LatencyStats]) -> pd.DataFrame:
    """Tabulate partial snapshots, one row per reporting interval."""
    data = []
    elapsed = 0.0
    for snapshot in snapshots:
        elapsed += snapshot.elapsed_seconds
        data.append({
            "Elapsed_s": round(elapsed, 3),
            "Total": snapshot.total_requests,
            "Success": snapshot.successful_requests,
            "Failed": snapshot.failed_requests,
            "Avg_ms": snapshot.avg_latency_ms,
            "P95_ms": snapshot.p95_latency_ms,
            "RPS": snapshot.throughput_rps,
        })
    return pd.DataFrame(
        data, columns=["Elapsed_s", "Total", "Success", "Failed", "Avg_ms", "P95_ms", "RPS"]
    )


def print_results(result: LoadTestResult) -> None:
    """Print the final results of one load test."""
    stats = result.stats
    print("\n" + "=" * 60)
    print("LOAD TEST RESULTS")
    print("=" * 60)
    print(f"Target URL:          {result.url}")
    print(f"Mode:                {result.test_mode}")
    print(f"Concurrency:         {result.concurrency}")
    print(f"Stopped by:          {result.stop_reason}")
    print(f"Total Requests:      {stats.total_requests}")
    print(f"Successful Requests: {stats.successful_requests}")
    print(f"Failed Requests:     {stats.failed_requests}")
    print(f"Error Rate:          {stats.error_rate:.2f}%")
    print()
    print("LATENCY STATISTICS (ms)")
    print("-" * 30)
    print(f"Average:             {stats.avg_latency_ms:.2f}")
    print(f"Minimum:             {stats.min_latency_ms:.2f}")
    print(f"Maximum:             {stats.max_latency_ms:.2f}")
    print(f"50th Percentile:     {stats.p50_latency_ms:.2f}")
    print(f"95th Percentile:     {stats.p95_latency_ms:.2f}")
    print(f"99th Percentile:     {stats.p99_latency_ms:.2f}")
    print()
    print("THROUGHPUT")
    print("-" * 30)
    print(f"Actual Throughput:   {stats.throughput_rps:.2f} requests/second")
    if result.target_requests_per_second:
        target = result.target_requests_per_second * result.concurrency
        print(f"Target Throughput:   {target:.2f} requests/second")
    print("=" * 60)

    if stats.error_codes:
        print("\nERROR SUMMARY")
        print("-" * 30)
        for code, count in sorted(stats.error_codes.items()):
            label = "Connection error" if code < 0 else f"HTTP {code}"
            print(f"{label}: {count} occurrences")


class ResultAggregator:
    """Aggregates and formats load test results for export."""

    def __init__(self):
        self.results: List[LoadTestResult] = []

    def add_result(self, result: LoadTestResult) -> None:
        """Add a single test result."""
        self.results.append(result)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert results to pandas DataFrame."""
        data = []
        for result in self.results:
            stats = result.stats
            data.append({
                "Concurrency": result.concurrency,
                "Mode": result.test_mode,
                "Total": stats.total_requests,
                "Success": stats.successful_requests,
                "Failed": stats.failed_requests,
                "Error%": f"{stats.error_rate:.2f}",
                "Avg_ms": f"{stats.avg_latency_ms:.2f}",
                "Min_ms": f"{stats.min_latency_ms:.2f}",
                "Max_ms": f"{stats.max_latency_ms:.2f}",
                "P50_ms": f"{stats.p50_latency_ms:.2f}",
                "P95_ms": f"{stats.p95_latency_ms:.2f}",
                "P99_ms": f"{stats.p99_latency_ms:.2f}",
                "RPS": f"{stats.throughput_rps:.2f}",
            })
        return pd.DataFrame(data)

    def to_csv(self, path: str) -> None:
        """Export to CSV file."""
        df = self.to_dataframe()
        df.to_csv(path, index=False)

    def get_tsv_string(self) -> str:
        """Get results as TSV string for easy copy/paste to spreadsheet."""
        df = self.to_dataframe()
        return df.to_csv(sep="\t", index=False)

    def print_summary_table(
        self,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """Print formatted summary table to console."""
        if not self.results:
            print("No results to display.")
            return

        print()
        print("=" * 100)
        print((title or "LOAD TEST RESULTS SUMMARY").center(100))
        print("=" * 100)

        if description:
            print(description)
            print("-" * 100)

        df = self.to_dataframe()
        print(df.to_string(index=False))

        print()
        print("=" * 100)
        print("TSV OUTPUT (copy to spreadsheet):")
        print("=" * 100)
        print(self.get_tsv_string())
        print("=" * 100)

    def print_single_result(self, result: LoadTestResult) -> None:
        """Print a short summary of one result during a suite."""
        stats = result.stats
        print(f"\nResults for concurrency={result.concurrency}:")
        print(f"  Throughput: {stats.throughput_rps:.2f} req/s")
        print(f"  Avg Latency: {stats.avg_latency_ms:.2f}ms")
        print(f"  P95 Latency: {stats.p95_latency_ms:.2f}ms")
        print(f"  Error Rate: {stats.error_rate:.2f}%")
