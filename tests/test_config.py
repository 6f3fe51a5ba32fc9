from __future__ import annotations

from pathlib import Path

import pytest

from handwriting_csv.config import DataConfig, Settings, validate
from handwriting_csv.errors import ConfigError, ErrorCode
from handwriting_csv.training.train_config import TrainConfig

_ENV_KEYS = (
    "DATA__CSV_PATH",
    "DATA__TEST_FRACTION",
    "DATA__SEED",
    "DATA__SAMPLE_INDICES",
    "TRAIN__OPTIMIZER",
    "TRAIN__LEARNING_RATE",
    "TRAIN__MAX_ITERATIONS",
    "TRAIN__BATCH_SIZE",
    "TRAIN__L2",
    "TRAIN__L1",
    "TRAIN__CONVERGENCE_TOLERANCE",
    "TRAIN__SHUFFLE",
    "TRAIN__CACHE",
    "TRAIN__THREADS",
    "EVAL__TOP_K",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for k in _ENV_KEYS:
        monkeypatch.delenv(k, raising=False)
    # Point to a non-existent TOML so the repo default config does not apply
    monkeypatch.setenv("DIGITS_CSV_CONFIG", (tmp_path / "missing.toml").as_posix())


def test_defaults_match_reference_program() -> None:
    s = Settings.load()
    assert s.data.csv_path == Path("handwritten_digits_large.csv")
    assert s.data.test_fraction == pytest.approx(0.2)
    assert s.data.seed is None
    assert s.data.sample_indices == (5, 12, 20)
    assert s.train == TrainConfig()
    assert s.eval.top_k == 5


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATA__CSV_PATH", "/tmp/x.csv")
    monkeypatch.setenv("DATA__TEST_FRACTION", "0.3")
    monkeypatch.setenv("DATA__SEED", "42")
    monkeypatch.setenv("DATA__SAMPLE_INDICES", "1, 2,3")
    monkeypatch.setenv("TRAIN__OPTIMIZER", "AdamW")
    monkeypatch.setenv("TRAIN__LEARNING_RATE", "0.05")
    monkeypatch.setenv("TRAIN__MAX_ITERATIONS", "7")
    monkeypatch.setenv("TRAIN__BATCH_SIZE", "64")
    monkeypatch.setenv("TRAIN__SHUFFLE", "false")
    monkeypatch.setenv("TRAIN__CACHE", "0")
    monkeypatch.setenv("EVAL__TOP_K", "3")
    s = Settings.load()
    assert s.data.csv_path == Path("/tmp/x.csv")
    assert s.data.test_fraction == pytest.approx(0.3)
    assert s.data.seed == 42
    assert s.data.sample_indices == (1, 2, 3)
    assert s.train.optimizer == "adamw"
    assert s.train.learning_rate == pytest.approx(0.05)
    assert s.train.max_iterations == 7
    assert s.train.batch_size == 64
    assert s.train.shuffle is False
    assert s.train.cache is False
    assert s.eval.top_k == 3


def test_toml_overrides_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    p = tmp_path / "cfg.toml"
    p.write_text(
        """
[data]
csv_path = "digits.csv"
seed = "random"
sample_indices = [0, 1]

[train]
optimizer = "sgd"
l2 = 0.01
cache = false

[eval]
top_k = 2
""".strip(),
        encoding="utf-8",
    )
    monkeypatch.setenv("DIGITS_CSV_CONFIG", p.as_posix())
    monkeypatch.setenv("DATA__SEED", "5")
    s = Settings.load()
    assert s.data.csv_path == Path("digits.csv")
    assert s.data.seed is None
    assert s.data.sample_indices == (0, 1)
    assert s.train.optimizer == "sgd"
    assert s.train.l2 == pytest.approx(0.01)
    assert s.train.cache is False
    assert s.eval.top_k == 2


def test_invalid_toml(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    p = tmp_path / "bad.toml"
    p.write_text("[data\n", encoding="utf-8")
    monkeypatch.setenv("DIGITS_CSV_CONFIG", p.as_posix())
    with pytest.raises(ConfigError) as ei:
        Settings.load()
    assert ei.value.code is ErrorCode.bad_config


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("DATA__TEST_FRACTION", "1.5"),
        ("DATA__TEST_FRACTION", "zero"),
        ("DATA__SAMPLE_INDICES", "1,-2"),
        ("TRAIN__OPTIMIZER", "newton"),
        ("TRAIN__MAX_ITERATIONS", "0"),
        ("TRAIN__L2", "-1"),
        ("TRAIN__THREADS", "-1"),
        ("EVAL__TOP_K", "11"),
    ],
)
def test_invalid_values(monkeypatch: pytest.MonkeyPatch, key: str, value: str) -> None:
    monkeypatch.setenv(key, value)
    with pytest.raises(ConfigError):
        Settings.load()


def test_validate_returns_settings() -> None:
    s = Settings.defaults()
    assert validate(s) is s
    assert s.data == DataConfig()


def test_env_applies_from_repo_root(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(Path(__file__).resolve().parents[1])
    monkeypatch.delenv("DIGITS_CSV_CONFIG")
    monkeypatch.setenv("DATA__SEED", "42")
    monkeypatch.setenv("TRAIN__MAX_ITERATIONS", "7")
    s = Settings.load()
    assert s.data.seed == 42
    assert s.train.max_iterations == 7


def test_example_config_parses(monkeypatch: pytest.MonkeyPatch) -> None:
    example = Path(__file__).resolve().parents[1] / "config" / "digits_csv.example.toml"
    monkeypatch.setenv("DIGITS_CSV_CONFIG", example.as_posix())
    monkeypatch.setenv("DATA__SEED", "42")
    s = Settings.load()
    assert s == Settings.defaults()
