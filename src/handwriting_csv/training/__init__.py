from __future__ import annotations

from .loops import objective, predict_proba, train_epoch
from .model import MaxEntModel, fit_scale
from .optim import build_optimizer
from .train_config import OPTIMIZERS, TrainConfig
from .trainer import fit

__all__ = [
    "OPTIMIZERS",
    "MaxEntModel",
    "TrainConfig",
    "build_optimizer",
    "fit",
    "fit_scale",
    "objective",
    "predict_proba",
    "train_epoch",
]
