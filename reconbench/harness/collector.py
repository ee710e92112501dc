from __future__ import annotations

import logging
from concurrent.futures import Future

import numpy as np
import pandas as pd

from ..client import ClientFactory
from ..errors import HarnessError, MeasurementError, StoreClientError
from .issuer import IssueTimes
from .load import collect_results
from .report import ExperimentReport, LeaderMeasurement, ObservationEvent, WorkerResult

LOGGER = logging.getLogger("reconbench.harness.collector")

SAMPLE_COLUMNS = ["source", "cluster", "start_us", "latency_us", "offset_ms", "phase"]


class ResultAggregator:
    """Rendezvous point for every primary worker and leader-change observer."""

    def __init__(
        self,
        primary: list[Future[WorkerResult]],
        observers: list[Future[ObservationEvent | None]],
        expected_primary: int,
    ) -> None:
        if len(primary) != expected_primary:
            raise HarnessError(
                f"expected {expected_primary} primary workers, {len(primary)} were spawned"
            )
        self._primary = primary
        self._observers = observers
        self._expected_primary = expected_primary

    def collect_primary(self) -> list[WorkerResult]:
        LOGGER.info("collect results...")
        return collect_results(self._primary)

    def collect_observations(self) -> list[ObservationEvent]:
        """At most one event per secondary cluster; the first one wins."""
        observations: dict[int, ObservationEvent] = {}
        for future in self._observers:
            event = future.result()
            if event is None:
                continue
            if event.cluster_index in observations:
                LOGGER.warning(
                    "ignoring second leader observation for cluster #%d from %s",
                    event.cluster_index,
                    event.endpoint,
                )
                continue
            LOGGER.info(
                "observer %s started at %d fetched %d queries",
                event.endpoint,
                event.observed_at // 1_000_000,
                len(event.samples),
            )
            observations[event.cluster_index] = event
        return [observations[idx] for idx in sorted(observations)]

    def assemble(
        self,
        times: IssueTimes,
        leader: LeaderMeasurement | None,
        results: list[WorkerResult],
        observations: list[ObservationEvent],
    ) -> ExperimentReport:
        return ExperimentReport(
            start=times.start,
            issue=times.issue,
            leader=leader,
            queries=[sample for result in results for sample in result.samples],
            observes=observations,
        )


def fetch_leader_measurement(
    endpoint: str,
    client_factory: ClientFactory,
    key: str,
    timeout: float,
    strict: bool = False,
) -> LeaderMeasurement | None:
    """Read the leader's self-reported reconfiguration timings.

    A missing or malformed measurement is reported as unavailable (``None``)
    unless ``strict`` is set, in which case MeasurementError is raised.
    """
    try:
        with client_factory(endpoint) as client:
            raw = client.read(key, timeout=timeout)
        measurement = LeaderMeasurement.parse(raw)
    except (StoreClientError, MeasurementError) as exc:
        if strict:
            if isinstance(exc, MeasurementError):
                raise
            raise MeasurementError(f"fetch measurement from endpoint {endpoint} failed: {exc}") from exc
        LOGGER.warning("leader measurement unavailable: %s", exc)
        return None

    LOGGER.info(
        "leader measure: %d, %d, %d",
        measurement.add_enter,
        measurement.add_leave,
        measurement.leader_elect,
    )
    return measurement


def samples_dataframe(report: ExperimentReport) -> pd.DataFrame:
    rows = [
        {"source": "leader", "cluster": -1, "start_us": s.start, "latency_us": s.latency}
        for s in report.queries
    ]
    for observe in report.observes:
        rows.extend(
            {
                "source": "observer",
                "cluster": observe.cluster_index,
                "start_us": s.start,
                "latency_us": s.latency,
            }
            for s in observe.samples
        )
    if not rows:
        return pd.DataFrame(columns=SAMPLE_COLUMNS)

    df = pd.DataFrame(rows)
    df["offset_ms"] = (df["start_us"] - report.issue) / 1_000.0
    df["phase"] = np.where(df["start_us"] < report.issue, "before", "after")
    return df.sort_values("start_us", kind="stable").reset_index(drop=True)[SAMPLE_COLUMNS]


def summarise(df: pd.DataFrame) -> dict[str, dict[str, float]]:
    """Per-phase latency statistics in milliseconds."""
    summary: dict[str, dict[str, float]] = {}
    if df.empty:
        return summary
    for phase, group in df.groupby("phase"):
        latencies = group["latency_us"].to_numpy(dtype=float) / 1_000.0
        summary[str(phase)] = {
            "count": float(len(latencies)),
            "median_ms": float(np.median(latencies)),
            "p99_ms": float(np.percentile(latencies, 99)),
            "max_ms": float(latencies.max()),
        }
    return summary
