"""Tests for experiment configuration loading and validation."""

import json
from pathlib import Path

import pytest

from reconbench.errors import ConfigError
from reconbench.harness.config import ExperimentConfig, load_config, parse_clusters


@pytest.fixture
def config_file(tmp_path):
    def write(data):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(data))
        return path

    return write


BASE = {
    "clusters": [["a1:2379", "a2:2379"], ["b1:2379"]],
    "threads": 2,
    "before": 5,
    "after": 10,
    "folder": "/tmp/results",
}


class TestLoadConfig:
    def test_reads_file_keys(self, config_file):
        config = load_config(config_file(BASE))

        assert config.clusters == (("a1:2379", "a2:2379"), ("b1:2379",))
        assert config.threads == 2
        assert config.before_seconds == 5
        assert config.after_seconds == 10
        assert config.output_dir == Path("/tmp/results")
        assert config.request_timeout_seconds == 300.0
        assert config.primary_workers == 4

    def test_overrides_win_and_none_is_ignored(self, config_file):
        config = load_config(config_file(BASE), {"threads": 8, "after_seconds": None})
        assert config.threads == 8
        assert config.after_seconds == 10

    def test_without_file(self, tmp_path):
        config = load_config(
            None,
            {
                "clusters": parse_clusters("a:1,b:1;c:1"),
                "threads": 1,
                "before_seconds": 0,
                "after_seconds": 0,
                "output_dir": str(tmp_path),
            },
        )
        assert config.clusters == (("a:1", "b:1"), ("c:1",))

    def test_missing_values(self):
        with pytest.raises(ConfigError, match="clusters"):
            load_config(None, {"threads": 1})

    def test_unknown_key(self, config_file):
        with pytest.raises(ConfigError, match="unknown"):
            load_config(config_file({**BASE, "bogus": 1}))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_report_path(self, config_file):
        config = load_config(config_file(BASE))
        assert config.report_path() == Path("/tmp/results/add-2-2.json")


class TestValidate:
    def _config(self, **changes):
        values = dict(
            clusters=(("a:1",),),
            threads=1,
            before_seconds=0,
            after_seconds=0,
            output_dir=Path("."),
        )
        values.update(changes)
        return ExperimentConfig(**values)

    @pytest.mark.parametrize(
        "changes",
        [
            {"clusters": ()},
            {"clusters": (("a:1",), ())},
            {"clusters": (("a:1",), ("a:1",))},
            {"threads": 0},
            {"threads": "2"},
            {"threads": 2.5},
            {"threads": True},
            {"before_seconds": "5"},
            {"request_timeout_seconds": None},
            {"before_seconds": -1},
            {"request_timeout_seconds": 0},
            {"poll_initial_backoff_seconds": 1.0, "poll_max_backoff_seconds": 0.5},
        ],
    )
    def test_rejects(self, changes):
        with pytest.raises(ConfigError):
            self._config(**changes).validate()

    def test_accepts_minimal(self):
        assert self._config().validate().threads == 1


def test_parse_clusters_rejects_empty_group():
    with pytest.raises(ConfigError):
        load_config(
            None,
            {
                "clusters": parse_clusters("a:1;;b:1"),
                "threads": 1,
                "before_seconds": 0,
                "after_seconds": 0,
                "output_dir": ".",
            },
        )


@pytest.mark.parametrize("threads", ["2", 2.5, True])
def test_non_integer_threads_in_file(config_file, threads):
    with pytest.raises(ConfigError, match="threads"):
        load_config(config_file({**BASE, "threads": threads}))
