from __future__ import annotations

import itertools
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable

from ..client import ClientFactory
from ..errors import StoreClientError
from .gates import Gate
from .report import Sample, WorkerResult
from .timing import MonotonicClock

LOGGER = logging.getLogger("reconbench.harness.load")


class RequestWorker:
    """Closed-loop writer bound to one endpoint.

    The worker waits for ``start_gate``, then issues one write at a time until
    it notices ``stop_gate`` (or the optional ``shed_gate``) after an attempt.
    Failed writes are logged and dropped; they never end the loop. The
    collected samples are only reachable through the value returned by
    :meth:`run`.
    """

    def __init__(
        self,
        name: str,
        endpoint: str,
        client_factory: ClientFactory,
        start_gate: Gate,
        stop_gate: Gate,
        clock: MonotonicClock,
        request_timeout: float,
        shed_gate: Gate | None = None,
    ) -> None:
        self.name = name
        self.endpoint = endpoint
        self._client_factory = client_factory
        self._start_gate = start_gate
        self._stop_gate = stop_gate
        self._clock = clock
        self._request_timeout = request_timeout
        self._shed_gate = shed_gate

    def run(self) -> WorkerResult:
        result = WorkerResult(worker=self.name)
        with self._client_factory(self.endpoint) as client:
            if not self._start_gate.wait(unless=self._stop_gate):
                LOGGER.debug("%s stopped before %s opened", self.name, self._start_gate.name)
                return result

            for attempt in itertools.count():
                started_at = self._clock.now_us()
                started_ns = time.perf_counter_ns()
                result.attempts += 1
                try:
                    client.write(f"{self.name}-{attempt}", str(attempt), timeout=self._request_timeout)
                except StoreClientError as exc:
                    LOGGER.warning("%s sending request #%d error: %s", self.name, attempt, exc)
                else:
                    result.samples.append(Sample(started_at, MonotonicClock.elapsed_us(started_ns)))
                if self._should_stop():
                    break
        return result

    def _should_stop(self) -> bool:
        if self._shed_gate is not None and self._shed_gate.is_released():
            return True
        return self._stop_gate.is_released()


def submit_workers(
    executor: ThreadPoolExecutor, workers: Iterable[RequestWorker]
) -> list[Future[WorkerResult]]:
    return [executor.submit(worker.run) for worker in workers]


def collect_results(futures: list[Future[WorkerResult]]) -> list[WorkerResult]:
    """Receive every worker's result, in spawn order, blocking on each."""
    results = []
    for future in futures:
        result = future.result()
        LOGGER.info(
            "%s handed off %d samples (%d failed attempts)",
            result.worker,
            len(result.samples),
            result.failures,
        )
        results.append(result)
    return results
