"""Chart generation for load test results."""

import matplotlib.pyplot as plt
from datetime import datetime
from typing import List, Optional

from ..core.models import LoadTestResult


def generate_charts(
    results: List[LoadTestResult],
    output_path: Optional[str] = None,
    show: bool = True,
    x_label: str = "Concurrency",
) -> Optional[str]:
    """
    Plot throughput, latency and error rate for a suite of runs.

    Open-loop runs also get the offered rate (clients x rate) drawn on the
    throughput panel, so saturation shows as the two lines diverging.

    Returns:
        Path to saved chart file, or None if there was nothing to plot
    """
    if not results:
        print("No results to chart.")
        return None

    levels = [r.concurrency for r in results]
    stats = [r.stats for r in results]

    fig, (rate_ax, latency_ax, error_ax) = plt.subplots(1, 3, figsize=(18, 5))
    fig.suptitle(f"Load Test Results: {results[0].url}", fontweight="bold")

    rate_ax.plot(levels, [s.throughput_rps for s in stats], "b-o", label="Measured")
    offered = [
        r.target_requests_per_second * r.concurrency
        for r in results
        if r.target_requests_per_second
    ]
    if len(offered) == len(results):
        rate_ax.plot(levels, offered, "k--", label="Offered")
    rate_ax.set_ylabel("Requests/second")
    rate_ax.set_title("Throughput")
    rate_ax.legend()

    for field, style, label in (
        ("p50_latency_ms", "g-o", "p50"),
        ("p95_latency_ms", "y-o", "p95"),
        ("p99_latency_ms", "r-o", "p99"),
    ):
        latency_ax.plot(levels, [getattr(s, field) for s in stats], style, label=label)
    latency_ax.set_ylabel("Latency (ms)")
    latency_ax.set_title("Latency")
    latency_ax.legend()

    error_ax.bar(levels, [s.error_rate for s in stats], color="tab:red")
    error_ax.set_ylabel("Error Rate (%)")
    error_ax.set_title("Errors")

    for ax in (rate_ax, latency_ax, error_ax):
        ax.set_xlabel(x_label)
        ax.grid(True, alpha=0.3)
    fig.tight_layout()

    if not output_path:
        output_path = f"loadtest_results_{datetime.now():%Y%m%d_%H%M%S}.png"
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    print(f"\nChart saved as: {output_path}")

    if show:
        plt.show()
    plt.close(fig)
    return output_path
