from __future__ import annotations


class HarnessError(Exception):
    """Base class for conditions that invalidate an experiment run."""


class ConfigError(HarnessError):
    """Raised when the experiment configuration is incomplete or inconsistent."""


class StoreClientError(HarnessError):
    """Raised when a request against a store endpoint fails."""


class KeyNotFoundError(StoreClientError):
    """Raised when a read finds no value under the requested key."""


class TopologyError(HarnessError):
    """Raised when the cluster topology cannot be established consistently."""


class ReconfigurationError(HarnessError):
    """Raised when the membership-reconfiguration call fails."""


class MeasurementError(HarnessError):
    """Raised when the leader-side measurement is required but unusable."""


class ReportError(HarnessError):
    """Raised when the experiment report cannot be serialized or persisted."""


__all__ = [
    "ConfigError",
    "HarnessError",
    "KeyNotFoundError",
    "MeasurementError",
    "ReconfigurationError",
    "ReportError",
    "StoreClientError",
    "TopologyError",
]
