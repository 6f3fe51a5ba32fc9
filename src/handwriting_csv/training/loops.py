from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

import torch
import torch.nn.functional as F  # noqa: N812
from torch import Tensor
from torch.optim.lbfgs import LBFGS
from torch.optim.optimizer import Optimizer

from .model import MaxEntModel


class _PenaltyCfg(Protocol):
    @property
    def l1(self) -> float: ...

    @property
    def l2(self) -> float: ...


def objective(model: MaxEntModel, x: Tensor, y: Tensor, cfg: _PenaltyCfg) -> Tensor:
    """Mean cross-entropy plus elastic-net penalty on the weights (bias is free)."""
    loss = F.cross_entropy(model(x), y)
    w = model.linear.weight
    if cfg.l2 > 0.0:
        loss = loss + 0.5 * float(cfg.l2) * w.pow(2).sum()
    if cfg.l1 > 0.0:
        loss = loss + float(cfg.l1) * w.abs().sum()
    return loss


def train_epoch(
    model: MaxEntModel,
    loader: Iterable[tuple[Tensor, Tensor]],
    optimizer: Optimizer,
    cfg: _PenaltyCfg,
) -> float:
    """One pass over ``loader``; returns the row-weighted mean objective."""
    model.train()
    total = 0
    loss_sum = 0.0
    for x, y in loader:
        x = x.to(dtype=torch.float32)
        if isinstance(optimizer, LBFGS):

            def closure(xb: Tensor = x, yb: Tensor = y) -> Tensor:
                optimizer.zero_grad(set_to_none=True)
                loss_c = objective(model, xb, yb, cfg)
                torch.autograd.backward((loss_c,))
                return loss_c

            loss_val = float(optimizer.step(closure))
        else:
            optimizer.zero_grad(set_to_none=True)
            loss = objective(model, x, y, cfg)
            torch.autograd.backward((loss,))
            optimizer.step()
            loss_val = float(loss.item())
        total += int(y.size(0))
        loss_sum += loss_val * int(y.size(0))
    return loss_sum / total if total > 0 else 0.0


def predict_proba(
    model: MaxEntModel, loader: Iterable[tuple[Tensor, Tensor]]
) -> tuple[Tensor, Tensor]:
    """Return stacked class probabilities and the matching labels."""
    model.eval()
    probs: list[Tensor] = []
    labels: list[Tensor] = []
    for x, y in loader:
        probs.append(model.predict_proba(x))
        labels.append(y)
    return torch.cat(probs), torch.cat(labels)
