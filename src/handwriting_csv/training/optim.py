from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from torch.nn.parameter import Parameter
from torch.optim.adam import Adam
from torch.optim.adamw import AdamW
from torch.optim.lbfgs import LBFGS
from torch.optim.sgd import SGD

if TYPE_CHECKING:
    from torch.optim.optimizer import Optimizer


class _TrainableModel(Protocol):
    def parameters(self) -> Iterable[Parameter]: ...  # pragma: no cover - typing only


class _Cfg(Protocol):
    @property
    def optimizer(self) -> str: ...

    @property
    def learning_rate(self) -> float: ...


def build_optimizer(model: _TrainableModel, cfg: _Cfg) -> Optimizer:
    # Regularization is part of the objective, so no optimizer-side weight decay
    if cfg.optimizer == "sgd":
        return SGD(model.parameters(), lr=cfg.learning_rate, momentum=0.9)
    if cfg.optimizer == "adam":
        return Adam(model.parameters(), lr=cfg.learning_rate)
    if cfg.optimizer == "adamw":
        return AdamW(model.parameters(), lr=cfg.learning_rate, weight_decay=0.0)
    return LBFGS(
        model.parameters(),
        lr=cfg.learning_rate,
        max_iter=20,
        history_size=10,
        line_search_fn="strong_wolfe",
    )
