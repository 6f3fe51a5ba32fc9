from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Final

from .errors import ConfigError
from .training.train_config import OPTIMIZERS, TrainConfig

_DEFAULT_CONFIG_PATH: Final[Path] = Path("config/digits_csv.toml")
_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class DataConfig:
    csv_path: Path = Path("handwritten_digits_large.csv")
    test_fraction: float = 0.2
    # None = fresh randomness on every run
    seed: int | None = None
    sample_indices: tuple[int, ...] = (5, 12, 20)


@dataclass(frozen=True)
class EvalConfig:
    top_k: int = 5


@dataclass(frozen=True)
class Settings:
    data: DataConfig
    train: TrainConfig
    eval: EvalConfig

    @staticmethod
    def _toml_path() -> Path:
        env_val = os.getenv("DIGITS_CSV_CONFIG")
        if env_val:
            return Path(env_val)
        return _DEFAULT_CONFIG_PATH

    @classmethod
    def defaults(cls) -> Settings:
        return cls(data=DataConfig(), train=TrainConfig(), eval=EvalConfig())

    @classmethod
    def load(cls) -> Settings:
        # Load env first, then override from TOML if present.
        base = cls(
            data=_load_data_from_env(),
            train=_load_train_from_env(),
            eval=_load_eval_from_env(),
        )
        cfg_path = cls._toml_path()
        if not cfg_path.exists():
            return validate(base)
        try:
            raw: object = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(f"Failed to read config TOML: {cfg_path}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML config: {cfg_path}") from exc
        merged = cls(
            data=_merge_data(base.data, _toml_table(raw, "data")),
            train=_merge_train(base.train, _toml_table(raw, "train")),
            eval=_merge_eval(base.eval, _toml_table(raw, "eval")),
        )
        return validate(merged)


def validate(s: Settings) -> Settings:
    d, t, e = s.data, s.train, s.eval
    if not (0.0 < d.test_fraction < 1.0):
        raise ConfigError("test_fraction must be in (0, 1)")
    if any(i < 0 for i in d.sample_indices):
        raise ConfigError("sample_indices must be >= 0")
    if t.optimizer not in OPTIMIZERS:
        raise ConfigError(f"optimizer must be one of {sorted(OPTIMIZERS)}")
    if t.learning_rate <= 0.0:
        raise ConfigError("learning_rate must be > 0")
    if t.max_iterations < 1:
        raise ConfigError("max_iterations must be >= 1")
    if t.batch_size < 0:
        raise ConfigError("batch_size must be >= 0")
    if t.l1 < 0.0 or t.l2 < 0.0:
        raise ConfigError("regularization weights must be >= 0")
    if t.convergence_tolerance < 0.0:
        raise ConfigError("convergence_tolerance must be >= 0")
    if t.threads < 0:
        raise ConfigError("threads must be >= 0")
    if not (1 <= e.top_k <= 10):
        raise ConfigError("top_k must be in [1, 10]")
    return s


def _int(name: str, v: object) -> int:
    try:
        return int(str(v).strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer") from exc


def _float(name: str, v: object) -> float:
    try:
        return float(str(v).strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number") from exc


def _bool(v: object) -> bool:
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in _TRUTHY


def _indices(name: str, v: object) -> tuple[int, ...]:
    if isinstance(v, list | tuple):
        return tuple(_int(name, x) for x in v)
    parts = [p for p in str(v).split(",") if p.strip()]
    return tuple(_int(name, p) for p in parts)


def _seed(v: object) -> int | None:
    s = str(v).strip().lower()
    if s in {"", "none", "random"}:
        return None
    return _int("seed", s)


def _load_data_from_env() -> DataConfig:
    d = DataConfig()
    cp = os.getenv("DATA__CSV_PATH")
    tf = os.getenv("DATA__TEST_FRACTION")
    sd = os.getenv("DATA__SEED")
    si = os.getenv("DATA__SAMPLE_INDICES")
    if cp:
        d = replace(d, csv_path=Path(cp))
    if tf is not None:
        d = replace(d, test_fraction=_float("DATA__TEST_FRACTION", tf))
    if sd is not None:
        d = replace(d, seed=_seed(sd))
    if si is not None:
        d = replace(d, sample_indices=_indices("DATA__SAMPLE_INDICES", si))
    return d


def _load_train_from_env() -> TrainConfig:
    t = TrainConfig()
    op = os.getenv("TRAIN__OPTIMIZER")
    lr = os.getenv("TRAIN__LEARNING_RATE")
    mi = os.getenv("TRAIN__MAX_ITERATIONS")
    bs = os.getenv("TRAIN__BATCH_SIZE")
    l2 = os.getenv("TRAIN__L2")
    l1 = os.getenv("TRAIN__L1")
    ct = os.getenv("TRAIN__CONVERGENCE_TOLERANCE")
    sh = os.getenv("TRAIN__SHUFFLE")
    ca = os.getenv("TRAIN__CACHE")
    th = os.getenv("TRAIN__THREADS")
    if op:
        t = replace(t, optimizer=op.strip().lower())
    if lr is not None:
        t = replace(t, learning_rate=_float("TRAIN__LEARNING_RATE", lr))
    if mi is not None:
        t = replace(t, max_iterations=_int("TRAIN__MAX_ITERATIONS", mi))
    if bs is not None:
        t = replace(t, batch_size=_int("TRAIN__BATCH_SIZE", bs))
    if l2 is not None:
        t = replace(t, l2=_float("TRAIN__L2", l2))
    if l1 is not None:
        t = replace(t, l1=_float("TRAIN__L1", l1))
    if ct is not None:
        t = replace(t, convergence_tolerance=_float("TRAIN__CONVERGENCE_TOLERANCE", ct))
    if sh is not None:
        t = replace(t, shuffle=_bool(sh))
    if ca is not None:
        t = replace(t, cache=_bool(ca))
    if th is not None:
        t = replace(t, threads=_int("TRAIN__THREADS", th))
    return t


def _load_eval_from_env() -> EvalConfig:
    e = EvalConfig()
    tk = os.getenv("EVAL__TOP_K")
    if tk is not None:
        e = replace(e, top_k=_int("EVAL__TOP_K", tk))
    return e


def _merge_data(base: DataConfig, data: dict[str, object]) -> DataConfig:
    out = base
    if "csv_path" in data:
        out = replace(out, csv_path=Path(str(data["csv_path"])))
    if "test_fraction" in data:
        out = replace(out, test_fraction=_float("test_fraction", data["test_fraction"]))
    if "seed" in data:
        out = replace(out, seed=_seed(data["seed"]))
    if "sample_indices" in data:
        out = replace(out, sample_indices=_indices("sample_indices", data["sample_indices"]))
    return out


def _merge_train(base: TrainConfig, data: dict[str, object]) -> TrainConfig:
    out = base
    if "optimizer" in data:
        out = replace(out, optimizer=str(data["optimizer"]).strip().lower())
    if "learning_rate" in data:
        out = replace(out, learning_rate=_float("learning_rate", data["learning_rate"]))
    if "max_iterations" in data:
        out = replace(out, max_iterations=_int("max_iterations", data["max_iterations"]))
    if "batch_size" in data:
        out = replace(out, batch_size=_int("batch_size", data["batch_size"]))
    if "l2" in data:
        out = replace(out, l2=_float("l2", data["l2"]))
    if "l1" in data:
        out = replace(out, l1=_float("l1", data["l1"]))
    if "convergence_tolerance" in data:
        out = replace(
            out, convergence_tolerance=_float("convergence_tolerance", data["convergence_tolerance"])
        )
    if "shuffle" in data:
        out = replace(out, shuffle=_bool(data["shuffle"]))
    if "cache" in data:
        out = replace(out, cache=_bool(data["cache"]))
    if "threads" in data:
        out = replace(out, threads=_int("threads", data["threads"]))
    return out


def _merge_eval(base: EvalConfig, data: dict[str, object]) -> EvalConfig:
    out = base
    if "top_k" in data:
        out = replace(out, top_k=_int("top_k", data["top_k"]))
    return out


def _toml_table(raw: object, key: str) -> dict[str, object]:
    if isinstance(raw, dict):
        tab: object = raw.get(key, {})
        if isinstance(tab, dict):
            return {str(k): v for k, v in tab.items()}
    return {}
