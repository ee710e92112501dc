from __future__ import annotations

import threading
import time


class Gate:
    """One-shot, level-triggered broadcast signal.

    Once released a gate stays released; waiters arriving late return
    immediately. Gates created by the same :class:`PhaseGates` share one
    condition so that a waiter can also give up when another gate opens.
    """

    def __init__(self, name: str, condition: threading.Condition | None = None) -> None:
        self.name = name
        self._condition = condition or threading.Condition()
        self._released = False

    def release(self) -> bool:
        """Open the gate. Returns False if it was already open."""
        with self._condition:
            if self._released:
                return False
            self._released = True
            self._condition.notify_all()
            return True

    def is_released(self) -> bool:
        with self._condition:
            return self._released

    def wait(self, timeout: float | None = None, unless: Gate | None = None) -> bool:
        """Block until the gate opens.

        Returns True once open, False if ``timeout`` elapsed or ``unless``
        opened first. ``unless`` must share this gate's condition.
        """
        if unless is not None and unless._condition is not self._condition:
            raise ValueError(f"gate {unless.name!r} does not share a condition with {self.name!r}")

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._condition:
            while not self._released:
                if unless is not None and unless._released:
                    return False
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._condition.wait(remaining)
            return True

    def __repr__(self) -> str:
        state = "released" if self.is_released() else "closed"
        return f"Gate({self.name!r}, {state})"


class PhaseGates:
    """The ``start``/``issued``/``stop`` gates that sequence an experiment."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self.start = Gate("start", self._condition)
        self.issued = Gate("issued", self._condition)
        self.stop = Gate("stop", self._condition)

    def abort(self) -> None:
        """Release ``stop`` without touching the other gates."""
        self.stop.release()
