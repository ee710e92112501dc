from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from ..client import ClientFactory, EndpointStatus
from ..errors import StoreClientError
from .gates import PhaseGates
from .load import RequestWorker, collect_results, submit_workers
from .report import ObservationEvent
from .timing import MonotonicClock
from .topology import ClusterInfo

LOGGER = logging.getLogger("reconbench.harness.observer")


def is_new_leader(status: EndpointStatus, old_leader_id: int, cluster: ClusterInfo) -> bool:
    """True once ``status`` names a leader elected after the reconfiguration.

    Only ids recorded for ``cluster`` at discovery time qualify.
    """
    return (
        status.leader_id != 0
        and status.leader_id != old_leader_id
        and cluster.owns(status.leader_id)
    )


class LeaderChangeObserver:
    """Watches one endpoint of a secondary cluster for the leadership change.

    If the endpoint itself becomes the new leader, it records the observation
    time and drives ``threads`` writers against itself until ``stop``.
    Otherwise it returns ``None`` without generating any load.
    """

    def __init__(
        self,
        cluster: ClusterInfo,
        endpoint: str,
        old_leader_id: int,
        client_factory: ClientFactory,
        gates: PhaseGates,
        clock: MonotonicClock,
        threads: int,
        request_timeout: float,
        status_timeout: float,
        initial_backoff: float = 0.01,
        max_backoff: float = 0.5,
        backoff_factor: float = 2.0,
    ) -> None:
        self.cluster = cluster
        self.endpoint = endpoint
        self._old_leader_id = old_leader_id
        self._client_factory = client_factory
        self._gates = gates
        self._clock = clock
        self._threads = threads
        self._request_timeout = request_timeout
        self._status_timeout = status_timeout
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._backoff_factor = backoff_factor

    def run(self) -> ObservationEvent | None:
        if not self._gates.issued.wait(unless=self._gates.stop):
            LOGGER.debug("observer %s: run stopped before reconfiguration", self.endpoint)
            return None

        status = self._await_transition()
        if status is None:
            LOGGER.warning(
                "observer %s: no new leader seen in cluster #%d before stop",
                self.endpoint,
                self.cluster.index,
            )
            return None
        if status.leader_id != status.member_id:
            LOGGER.info(
                "observer %s: new leader %d is another member, exiting",
                self.endpoint,
                status.leader_id,
            )
            return None

        observed_at = self._clock.now_us()
        LOGGER.info(
            "observer %s: became leader of cluster #%d, spawning %d requesters",
            self.endpoint,
            self.cluster.index,
            self._threads,
        )
        workers = [
            RequestWorker(
                name=f"observer-{self.cluster.index}-{tidx}",
                endpoint=self.endpoint,
                client_factory=self._client_factory,
                start_gate=self._gates.issued,
                stop_gate=self._gates.stop,
                clock=self._clock,
                request_timeout=self._request_timeout,
            )
            for tidx in range(self._threads)
        ]
        with ThreadPoolExecutor(
            max_workers=self._threads,
            thread_name_prefix=f"observer-{self.cluster.index}",
        ) as executor:
            results = collect_results(submit_workers(executor, workers))

        samples = [sample for result in results for sample in result.samples]
        return ObservationEvent(
            cluster_index=self.cluster.index,
            endpoint=self.endpoint,
            observed_at=observed_at,
            samples=samples,
        )

    def _await_transition(self) -> EndpointStatus | None:
        delay = self._initial_backoff
        with self._client_factory(self.endpoint) as client:
            while not self._gates.stop.is_released():
                try:
                    status = client.status(timeout=self._status_timeout)
                except StoreClientError as exc:
                    LOGGER.debug("observe %s error: %s", self.endpoint, exc)
                else:
                    if is_new_leader(status, self._old_leader_id, self.cluster):
                        return status
                self._gates.stop.wait(timeout=delay)
                delay = min(delay * self._backoff_factor, self._max_backoff)
        return None
