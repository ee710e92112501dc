from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import MeasurementError, ReportError

LOGGER = logging.getLogger("reconbench.harness.report")


@dataclass(frozen=True)
class Sample:
    start: int  # unix microseconds
    latency: int  # microseconds

    def to_dict(self) -> dict[str, int]:
        return {"start": self.start, "latency": self.latency}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Sample:
        return cls(start=int(data["start"]), latency=int(data["latency"]))


@dataclass
class WorkerResult:
    """Samples owned by one worker, handed over when the worker exits."""

    worker: str
    samples: list[Sample] = field(default_factory=list)
    attempts: int = 0

    @property
    def failures(self) -> int:
        return self.attempts - len(self.samples)


@dataclass
class ObservationEvent:
    cluster_index: int
    endpoint: str
    observed_at: int  # unix microseconds
    samples: list[Sample] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "observe": self.observed_at,
            "queries": [sample.to_dict() for sample in self.samples],
            "cluster": self.cluster_index,
            "endpoint": self.endpoint,
        }


@dataclass(frozen=True)
class LeaderMeasurement:
    """Reconfiguration timings written by the leader process itself."""

    add_enter: int
    add_leave: int
    leader_elect: int

    def to_dict(self) -> dict[str, int]:
        return {
            "addEnter": self.add_enter,
            "addLeave": self.add_leave,
            "leaderElect": self.leader_elect,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LeaderMeasurement:
        return cls(
            add_enter=int(_pick(data, "addEnter", "AddEnter")),
            add_leave=int(_pick(data, "addLeave", "AddLeave")),
            leader_elect=int(_pick(data, "leaderElect", "LeaderElect")),
        )

    @classmethod
    def parse(cls, raw: bytes) -> LeaderMeasurement:
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise TypeError("measurement must be a JSON object")
            return cls.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise MeasurementError(f"malformed leader measurement: {exc}") from exc


@dataclass
class ExperimentReport:
    start: int
    issue: int
    leader: LeaderMeasurement | None
    queries: list[Sample]
    observes: list[ObservationEvent]

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "issue": self.issue,
            "leader": self.leader.to_dict() if self.leader else None,
            "queries": [sample.to_dict() for sample in self.queries],
            "observes": [observe.to_dict() for observe in self.observes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExperimentReport:
        leader = data.get("leader")
        return cls(
            start=int(data["start"]),
            issue=int(data["issue"]),
            leader=LeaderMeasurement.from_dict(leader) if leader else None,
            queries=[Sample.from_dict(item) for item in data.get("queries", [])],
            observes=[
                _observation_from_dict(idx, item)
                for idx, item in enumerate(data.get("observes", []))
            ],
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> ExperimentReport:
        return cls.from_dict(json.loads(text))


def write_report(report: ExperimentReport, path: Path) -> Path:
    """Persist the report atomically: a crash never leaves a partial file."""
    try:
        payload = report.to_json()
    except (TypeError, ValueError) as exc:
        raise ReportError(f"cannot serialize report: {exc}") from exc

    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError as exc:
        raise ReportError(f"cannot write report {path}: {exc}") from exc
    LOGGER.info("Report written to %s", path)
    return path


def _observation_from_dict(idx: int, data: dict[str, Any]) -> ObservationEvent:
    # Reports written without cluster/endpoint fall back to list position.
    return ObservationEvent(
        cluster_index=int(data.get("cluster", idx)),
        endpoint=str(data.get("endpoint", "")),
        observed_at=int(data["observe"]),
        samples=[Sample.from_dict(item) for item in data.get("queries", [])],
    )


def _pick(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    raise KeyError(keys[0])
