from __future__ import annotations

import functools
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from ..client import ClientFactory, create_client
from .collector import ResultAggregator, fetch_leader_measurement
from .config import ExperimentConfig
from .gates import PhaseGates
from .issuer import ReconfigurationIssuer
from .load import RequestWorker, submit_workers
from .observer import LeaderChangeObserver
from .report import ExperimentReport, ObservationEvent
from .timing import MonotonicClock
from .topology import ClusterTopology, discover_topology

LOGGER = logging.getLogger("reconbench.harness.experiment")


class ReconfigurationExperiment:
    """Runs discovery, load, reconfiguration and collection for one config."""

    def __init__(
        self,
        config: ExperimentConfig,
        client_factory: ClientFactory | None = None,
        clock: MonotonicClock | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self._client_factory = client_factory or functools.partial(
            create_client, reconfigure_path=config.reconfigure_path
        )
        self._clock = clock or MonotonicClock()
        self._sleep = sleep

    def run(self) -> ExperimentReport:
        config = self.config
        topology = discover_topology(
            config.clusters, self._client_factory, timeout=config.status_timeout_seconds
        )
        gates = PhaseGates()

        observers = self._build_observers(topology, gates)
        primary_pool = ThreadPoolExecutor(
            max_workers=config.primary_workers, thread_name_prefix="requester"
        )
        observer_pool = ThreadPoolExecutor(
            max_workers=max(len(observers), 1), thread_name_prefix="observer"
        )
        try:
            LOGGER.info("spawn %d requesters...", config.primary_workers)
            primary = submit_workers(primary_pool, self._build_workers(topology, gates))
            LOGGER.info("spawn %d observers...", len(observers))
            observed: list[Future[ObservationEvent | None]] = [
                observer_pool.submit(observer.run) for observer in observers
            ]
            aggregator = ResultAggregator(primary, observed, config.primary_workers)

            issuer = ReconfigurationIssuer(
                leader_endpoint=topology.leader_endpoint,
                member_ids=topology.all_member_ids(),
                client_factory=self._client_factory,
                gates=gates,
                clock=self._clock,
                before_seconds=config.before_seconds,
                after_seconds=config.after_seconds,
                timeout=config.reconfigure_timeout_seconds,
                sleep=self._sleep,
            )
            times = issuer.run()
            results = aggregator.collect_primary()
            observations = aggregator.collect_observations()
        except BaseException:
            gates.abort()
            raise
        finally:
            primary_pool.shutdown(wait=True)
            observer_pool.shutdown(wait=True)

        leader = None
        if config.fetch_measurement:
            leader = fetch_leader_measurement(
                topology.leader_endpoint,
                self._client_factory,
                key=config.measurement_key,
                timeout=config.status_timeout_seconds,
                strict=config.strict_measurement,
            )
        report = aggregator.assemble(times, leader, results, observations)
        LOGGER.info(
            "collected %d leader samples and %d observations",
            len(report.queries),
            len(report.observes),
        )
        return report

    def _build_workers(self, topology: ClusterTopology, gates: PhaseGates) -> list[RequestWorker]:
        config = self.config
        workers = []
        for tidx in range(config.primary_workers):
            shed = config.shed_extra_workers_on_issue and tidx >= config.threads
            workers.append(
                RequestWorker(
                    name=f"thread-{tidx}",
                    endpoint=topology.leader_endpoint,
                    client_factory=self._client_factory,
                    start_gate=gates.start,
                    stop_gate=gates.stop,
                    clock=self._clock,
                    request_timeout=config.request_timeout_seconds,
                    shed_gate=gates.issued if shed else None,
                )
            )
        return workers

    def _build_observers(
        self, topology: ClusterTopology, gates: PhaseGates
    ) -> list[LeaderChangeObserver]:
        config = self.config
        return [
            LeaderChangeObserver(
                cluster=cluster,
                endpoint=endpoint,
                old_leader_id=topology.leader_id,
                client_factory=self._client_factory,
                gates=gates,
                clock=self._clock,
                threads=config.threads,
                request_timeout=config.request_timeout_seconds,
                status_timeout=config.status_timeout_seconds,
                initial_backoff=config.poll_initial_backoff_seconds,
                max_backoff=config.poll_max_backoff_seconds,
            )
            for cluster in topology.secondary_clusters()
            for endpoint in cluster.endpoints
        ]
