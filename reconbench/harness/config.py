from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from ..client import DEFAULT_RECONFIGURE_PATH
from ..errors import ConfigError

DEFAULT_REQUEST_TIMEOUT_SECONDS = 300.0


@dataclass(frozen=True)
class ExperimentConfig:
    """Fully resolved inputs of a single reconfiguration experiment."""

    clusters: tuple[tuple[str, ...], ...]
    threads: int
    before_seconds: float
    after_seconds: float
    output_dir: Path
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    reconfigure_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    status_timeout_seconds: float = 5.0
    measurement_key: str = "measurement"
    fetch_measurement: bool = True
    strict_measurement: bool = False
    shed_extra_workers_on_issue: bool = False
    poll_initial_backoff_seconds: float = 0.01
    poll_max_backoff_seconds: float = 0.5
    render_chart: bool = False
    reconfigure_path: str = DEFAULT_RECONFIGURE_PATH

    @property
    def cluster_count(self) -> int:
        return len(self.clusters)

    @property
    def primary_workers(self) -> int:
        return self.threads * self.cluster_count

    def report_path(self) -> Path:
        return self.output_dir / f"add-{self.cluster_count}-{self.threads}.json"

    def validate(self) -> ExperimentConfig:
        if not self.clusters:
            raise ConfigError("at least one cluster is required")
        seen: set[str] = set()
        for idx, cluster in enumerate(self.clusters):
            if not cluster:
                raise ConfigError(f"cluster #{idx} has no endpoints")
            for endpoint in cluster:
                if endpoint in seen:
                    raise ConfigError(f"endpoint {endpoint} is listed more than once")
                seen.add(endpoint)
        if not _is_int(self.threads) or self.threads < 1:
            raise ConfigError(f"threads must be an integer >= 1, got {self.threads!r}")
        for name in _NUMERIC_FIELDS:
            value = getattr(self, name)
            if not _is_number(value):
                raise ConfigError(f"{name} must be a number, got {value!r}")
        if self.before_seconds < 0 or self.after_seconds < 0:
            raise ConfigError("before/after delays must be >= 0")
        for name in (
            "request_timeout_seconds",
            "reconfigure_timeout_seconds",
            "status_timeout_seconds",
            "poll_initial_backoff_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be > 0")
        if self.poll_max_backoff_seconds < self.poll_initial_backoff_seconds:
            raise ConfigError("poll_max_backoff_seconds must be >= poll_initial_backoff_seconds")
        return self


_NUMERIC_FIELDS = (
    "before_seconds",
    "after_seconds",
    "request_timeout_seconds",
    "reconfigure_timeout_seconds",
    "status_timeout_seconds",
    "poll_initial_backoff_seconds",
    "poll_max_backoff_seconds",
)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# JSON keys accepted in a config file, mapped onto ExperimentConfig fields.
_FILE_KEYS = {
    "clusters": "clusters",
    "threads": "threads",
    "before": "before_seconds",
    "after": "after_seconds",
    "folder": "output_dir",
    "request_timeout": "request_timeout_seconds",
    "reconfigure_timeout": "reconfigure_timeout_seconds",
    "status_timeout": "status_timeout_seconds",
    "measurement_key": "measurement_key",
    "fetch_measurement": "fetch_measurement",
    "strict_measurement": "strict_measurement",
    "shed_extra_workers_on_issue": "shed_extra_workers_on_issue",
    "poll_initial_backoff": "poll_initial_backoff_seconds",
    "poll_max_backoff": "poll_max_backoff_seconds",
    "chart": "render_chart",
    "reconfigure_path": "reconfigure_path",
}


def load_config(path: str | Path | None, overrides: dict[str, Any] | None = None) -> ExperimentConfig:
    """Build a validated config from an optional JSON file plus field overrides.

    ``overrides`` uses ExperimentConfig field names; ``None`` values are ignored
    so unset command-line flags never shadow the file.
    """
    values: dict[str, Any] = {}
    if path:
        values.update(_read_file(Path(path)))
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    missing = [
        name
        for name in ("clusters", "threads", "before_seconds", "after_seconds", "output_dir")
        if name not in values
    ]
    if missing:
        raise ConfigError(f"missing configuration values: {', '.join(missing)}")

    values["clusters"] = _coerce_clusters(values["clusters"])
    values["output_dir"] = Path(values["output_dir"])
    try:
        config = ExperimentConfig(**values)
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc
    return config.validate()


def parse_clusters(text: str) -> tuple[tuple[str, ...], ...]:
    """Parse ``a:2379,b:2379;c:2379`` into clusters separated by semicolons."""
    return _coerce_clusters(
        [[item.strip() for item in group.split(",") if item.strip()] for group in text.split(";")]
    )


def _read_file(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"config {path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"config {path} must contain a JSON object")

    known = {field.name for field in dataclasses.fields(ExperimentConfig)}
    values: dict[str, Any] = {}
    for key, value in raw.items():
        name = _FILE_KEYS.get(key, key)
        if name not in known:
            raise ConfigError(f"unknown configuration key {key!r} in {path}")
        values[name] = value
    return values


def _coerce_clusters(raw: Sequence[Sequence[str]]) -> tuple[tuple[str, ...], ...]:
    if isinstance(raw, str) or not isinstance(raw, Sequence):
        raise ConfigError("clusters must be a list of endpoint lists")
    clusters = []
    for cluster in raw:
        if isinstance(cluster, str) or not isinstance(cluster, Sequence):
            raise ConfigError("each cluster must be a list of endpoints")
        clusters.append(tuple(str(endpoint) for endpoint in cluster))
    return tuple(clusters)
