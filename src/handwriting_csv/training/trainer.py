from __future__ import annotations

import math
import time

import torch
from threadpoolctl import threadpool_limits

from ..data.dataset import build_feature_dataset, make_loader
from ..data.loader import DigitTable
from ..data.schema import N_CLASSES
from ..errors import ConfigError, DatasetError, ErrorCode, TrainingError
from ..logging import get_logger, log_event
from ..monitoring import log_memory_usage, log_system_info
from .loops import train_epoch
from .model import MaxEntModel, fit_scale
from .optim import build_optimizer
from .train_config import TrainConfig


def _converged(prev: float | None, cur: float, tol: float) -> bool:
    if prev is None:
        return False
    return abs(prev - cur) <= tol * max(abs(prev), 1e-12)


def _configure_threads(cfg: TrainConfig) -> None:
    if int(cfg.threads) > 0:
        torch.set_num_threads(int(cfg.threads))


def fit(
    train: DigitTable,
    cfg: TrainConfig,
    *,
    generator: torch.Generator | None = None,
) -> MaxEntModel:
    """Fit a maximum-entropy classifier on ``train``.

    Features are concatenated from the schema's column ranges, optionally
    cached, max-abs normalized and then fed to the configured optimizer until
    the epoch loss stops improving or ``cfg.max_iterations`` is reached.
    """
    log = get_logger()
    if len(train) == 0:
        raise DatasetError(ErrorCode.empty_dataset, "training partition is empty")
    if int(cfg.max_iterations) < 1:
        raise ConfigError("max_iterations must be >= 1")
    log_system_info()
    _configure_threads(cfg)
    log.info(
        f"train_config optimizer={cfg.optimizer} lr={cfg.learning_rate} "
        f"max_iterations={cfg.max_iterations} batch_size={cfg.batch_size} "
        f"l2={cfg.l2} l1={cfg.l1} tol={cfg.convergence_tolerance} cache={cfg.cache} "
        f"threads={torch.get_num_threads()}"
    )

    ds = build_feature_dataset(train, cache=cfg.cache)
    n_features = train.schema.n_features
    model = MaxEntModel(n_features, N_CLASSES)
    scan = make_loader(ds, batch_size=cfg.batch_size, shuffle=False)
    model.scale.copy_(fit_scale(scan, n_features))
    loader = make_loader(ds, batch_size=cfg.batch_size, shuffle=cfg.shuffle, generator=generator)
    optimizer = build_optimizer(model, cfg)

    t_start = time.perf_counter()
    prev: float | None = None
    # Limit OpenMP/BLAS thread pools alongside torch threads
    with threadpool_limits(limits=cfg.threads if cfg.threads > 0 else None):
        for ep in range(1, cfg.max_iterations + 1):
            t0 = time.perf_counter()
            try:
                loss = train_epoch(model, loader, optimizer, cfg)
            except RuntimeError as exc:
                log.error("fit_failed epoch=%d error=%s", ep, exc)
                raise TrainingError(f"fit failed at epoch {ep}: {exc}") from exc
            if not math.isfinite(loss):
                log.error("fit_diverged epoch=%d loss=%s", ep, loss)
                raise TrainingError(f"loss became non-finite at epoch {ep}")
            dt = time.perf_counter() - t0
            log.debug(f"epoch_done idx={ep} loss={loss:.6f} time_s={dt:.2f}")
            if _converged(prev, loss, cfg.convergence_tolerance):
                log.info(f"converged_at_epoch={ep} loss={loss:.6f}")
                break
            prev = loss
    log_event(
        "fit_done",
        {
            "epoch": ep,
            "loss": float(loss),
            "elapsed_ms": int((time.perf_counter() - t_start) * 1000),
            "rows": len(train),
        },
    )
    log_memory_usage(context="fit_done")
    model.eval()
    return model
