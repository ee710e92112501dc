from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from ..client import ClientFactory
from ..errors import HarnessError, ReportError
from .charts import render_latency_timeline
from .collector import samples_dataframe, summarise
from .config import ExperimentConfig, load_config, parse_clusters
from .experiment import ReconfigurationExperiment
from .report import ExperimentReport, write_report

LOGGER = logging.getLogger("reconbench.harness")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Membership reconfiguration latency harness")
    parser.add_argument(
        "--config",
        default=os.environ.get("RECONBENCH_CONFIG"),
        help="JSON file with clusters, threads, before, after and folder",
    )
    parser.add_argument(
        "--clusters",
        default=os.environ.get("RECONBENCH_CLUSTERS"),
        help="Endpoints, comma-separated within a cluster and ';' between clusters",
    )
    parser.add_argument("--threads", type=int, help="Requester threads per cluster")
    parser.add_argument("--before", type=float, help="Seconds of load before issuing")
    parser.add_argument("--after", type=float, help="Seconds of load after issuing")
    parser.add_argument(
        "--output-dir",
        default=os.environ.get("RECONBENCH_OUTPUT_DIR"),
        help="Directory to store the report and derived artefacts",
    )
    parser.add_argument("--request-timeout", type=float, help="Per-write timeout in seconds")
    parser.add_argument(
        "--reconfigure-timeout", type=float, help="Timeout of the reconfiguration call"
    )
    parser.add_argument("--status-timeout", type=float, help="Timeout of status probes")
    parser.add_argument(
        "--no-measurement",
        dest="fetch_measurement",
        action="store_const",
        const=False,
        help="Skip reading the leader's self-reported measurement",
    )
    parser.add_argument(
        "--strict-measurement",
        action="store_const",
        const=True,
        help="Abort when the leader measurement is missing or malformed",
    )
    parser.add_argument(
        "--shed-extra-workers",
        dest="shed_extra_workers_on_issue",
        action="store_const",
        const=True,
        help="Stop requesters beyond the per-cluster thread count once the change is issued",
    )
    parser.add_argument(
        "--chart",
        dest="render_chart",
        action="store_const",
        const=True,
        help="Render a latency timeline next to the report",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the resolved experiment configuration",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("RECONBENCH_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace) -> ExperimentConfig:
    overrides = {
        "clusters": parse_clusters(args.clusters) if args.clusters else None,
        "threads": args.threads,
        "before_seconds": args.before,
        "after_seconds": args.after,
        "output_dir": args.output_dir,
        "request_timeout_seconds": args.request_timeout,
        "reconfigure_timeout_seconds": args.reconfigure_timeout,
        "status_timeout_seconds": args.status_timeout,
        "fetch_measurement": args.fetch_measurement,
        "strict_measurement": args.strict_measurement,
        "shed_extra_workers_on_issue": args.shed_extra_workers_on_issue,
        "render_chart": args.render_chart,
    }
    return load_config(args.config, overrides)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None, client_factory: ClientFactory | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = resolve_config(args)
        if args.dry_run:
            _print_config(config)
            return 0

        LOGGER.info("Report destination: %s", config.report_path())
        report = ReconfigurationExperiment(config, client_factory=client_factory).run()
        report_path = write_report(report, config.report_path())
        write_artefacts(report, report_path, config.render_chart)
    except HarnessError as exc:
        LOGGER.error("experiment aborted: %s", exc)
        return 1

    LOGGER.info("finished.")
    return 0


def write_artefacts(report: ExperimentReport, report_path: Path, render_chart: bool) -> None:
    """Write the samples CSV (and optionally the chart) next to the report."""
    df = samples_dataframe(report)
    csv_path = report_path.with_suffix(".csv")
    try:
        df.to_csv(csv_path, index=False)
    except OSError as exc:
        raise ReportError(f"cannot write samples {csv_path}: {exc}") from exc
    LOGGER.info("Saved %d samples to %s", len(df), csv_path)
    for phase, stats in summarise(df).items():
        LOGGER.info(
            "%s issue: %d samples, median %.2f ms, p99 %.2f ms, max %.2f ms",
            phase,
            stats["count"],
            stats["median_ms"],
            stats["p99_ms"],
            stats["max_ms"],
        )
    if render_chart:
        chart_path = report_path.with_suffix(".png")
        try:
            render_latency_timeline(report, df, chart_path)
        except OSError as exc:
            raise ReportError(f"cannot write chart {chart_path}: {exc}") from exc


def _print_config(config: ExperimentConfig) -> None:
    print(f"Report: {config.report_path()}")
    for cluster in config.clusters:
        print(f"  - cluster: {', '.join(cluster)}")
    print(
        f"  threads={config.threads} before={config.before_seconds}s "
        f"after={config.after_seconds}s request_timeout={config.request_timeout_seconds}s "
        f"measurement={'strict' if config.strict_measurement else config.fetch_measurement}"
    )


if __name__ == "__main__":
    sys.exit(main())
