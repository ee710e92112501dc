from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Sequence

from ..client import ClientFactory
from ..errors import ReconfigurationError, StoreClientError
from .gates import PhaseGates
from .timing import MonotonicClock

LOGGER = logging.getLogger("reconbench.harness.issuer")


@dataclass(frozen=True)
class IssueTimes:
    start: int
    issue: int


class ReconfigurationIssuer:
    """Opens the phase gates around a single membership-reconfiguration call."""

    def __init__(
        self,
        leader_endpoint: str,
        member_ids: Sequence[int],
        client_factory: ClientFactory,
        gates: PhaseGates,
        clock: MonotonicClock,
        before_seconds: float,
        after_seconds: float,
        timeout: float,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._leader_endpoint = leader_endpoint
        self._member_ids = list(member_ids)
        self._client_factory = client_factory
        self._gates = gates
        self._clock = clock
        self._before_seconds = before_seconds
        self._after_seconds = after_seconds
        self._timeout = timeout
        self._sleep = sleep

    def run(self) -> IssueTimes:
        """Run the issue sequence once.

        A failed call is never retried: ``stop`` is released so every task
        winds down, ``issued`` stays closed, and ReconfigurationError is raised.
        """
        with self._client_factory(self._leader_endpoint) as client:
            LOGGER.info("ready to start")
            start = self._clock.now_us()
            self._gates.start.release()
            self._sleep(self._before_seconds)

            issue = self._clock.now_us()
            LOGGER.info(
                "issuing reconfiguration on %s with members %s",
                self._leader_endpoint,
                self._member_ids,
            )
            try:
                client.reconfigure(self._member_ids, timeout=self._timeout)
            except StoreClientError as exc:
                self._gates.abort()
                raise ReconfigurationError(f"add failed: {exc}") from exc
            self._gates.issued.release()
            LOGGER.info(
                "reconfiguration returned after %.3fs",
                (self._clock.now_us() - issue) / 1e6,
            )

        self._sleep(self._after_seconds)
        self._gates.stop.release()
        return IssueTimes(start=start, issue=issue)
