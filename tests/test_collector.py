"""Tests for result aggregation and derived artefacts."""

from concurrent.futures import Future

import pytest

from reconbench.errors import HarnessError, MeasurementError
from reconbench.harness.collector import (
    ResultAggregator,
    fetch_leader_measurement,
    samples_dataframe,
    summarise,
)
from reconbench.harness.issuer import IssueTimes
from reconbench.harness.report import ExperimentReport, ObservationEvent, Sample, WorkerResult

from .fakes import two_cluster_store


def _done(value):
    future = Future()
    future.set_result(value)
    return future


class TestResultAggregator:
    def test_rejects_wrong_worker_count(self):
        with pytest.raises(HarnessError):
            ResultAggregator([_done(WorkerResult("thread-0"))], [], expected_primary=2)

    def test_assembles_report(self):
        primary = [
            _done(WorkerResult("thread-0", [Sample(10, 1), Sample(20, 1)], attempts=3)),
            _done(WorkerResult("thread-1", [Sample(15, 2)], attempts=1)),
        ]
        observers = [
            _done(None),
            _done(ObservationEvent(2, "c1", 40, [Sample(41, 3)])),
            _done(ObservationEvent(1, "b2", 30, [])),
            _done(ObservationEvent(1, "b3", 35, [])),
        ]
        aggregator = ResultAggregator(primary, observers, expected_primary=2)

        results = aggregator.collect_primary()
        observations = aggregator.collect_observations()
        report = aggregator.assemble(IssueTimes(start=5, issue=18), None, results, observations)

        assert [r.failures for r in results] == [1, 0]
        assert [s.start for s in report.queries] == [10, 20, 15]
        assert [(o.cluster_index, o.endpoint) for o in report.observes] == [(1, "b2"), (2, "c1")]
        assert report.start == 5 and report.issue == 18


class TestFetchLeaderMeasurement:
    def test_reads_measurement(self):
        store = two_cluster_store()
        store.values["measurement"] = b'{"AddEnter": 1, "AddLeave": 2, "leaderElect": 3}'

        measurement = fetch_leader_measurement("a1:2379", store.client, "measurement", timeout=1)

        assert measurement.to_dict() == {"addEnter": 1, "addLeave": 2, "leaderElect": 3}
        assert store.closed["a1:2379"] == 1

    def test_missing_is_unavailable(self):
        store = two_cluster_store()
        assert fetch_leader_measurement("a1:2379", store.client, "measurement", timeout=1) is None

    def test_malformed_is_unavailable(self):
        store = two_cluster_store()
        store.values["measurement"] = b"not json"
        assert fetch_leader_measurement("a1:2379", store.client, "measurement", timeout=1) is None

    def test_strict_missing_raises(self):
        store = two_cluster_store()
        with pytest.raises(MeasurementError, match="a1:2379"):
            fetch_leader_measurement("a1:2379", store.client, "measurement", timeout=1, strict=True)


class TestSamplesDataframe:
    def test_phases_and_offsets(self):
        report = ExperimentReport(
            start=0,
            issue=1_000,
            leader=None,
            queries=[Sample(500, 100), Sample(1_500, 4_000)],
            observes=[ObservationEvent(1, "b2", 1_200, [Sample(1_300, 2_000)])],
        )
        df = samples_dataframe(report)

        assert list(df["phase"]) == ["before", "after", "after"]
        assert list(df["source"]) == ["leader", "observer", "leader"]
        assert list(df["offset_ms"]) == [-0.5, 0.3, 0.5]

        summary = summarise(df)
        assert summary["before"]["count"] == 1
        assert summary["after"]["max_ms"] == 4.0

    def test_empty_report(self):
        df = samples_dataframe(ExperimentReport(0, 0, None, [], []))
        assert df.empty
        assert summarise(df) == {}
