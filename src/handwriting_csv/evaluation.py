from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

import torch
from torch import Tensor

from .data.dataset import build_feature_dataset, make_loader
from .data.loader import DigitTable
from .data.schema import N_CLASSES
from .errors import DatasetError, ErrorCode
from .logging import log_event
from .training.loops import predict_proba
from .training.model import MaxEntModel

_EPS: Final[float] = 1e-15


@dataclass(frozen=True)
class MulticlassMetrics:
    micro_accuracy: float
    macro_accuracy: float
    log_loss: float
    log_loss_reduction: float
    top_k: int
    top_k_accuracy: float
    # NaN for classes absent from the evaluated rows
    per_class_log_loss: tuple[float, ...]
    # rows = true class, columns = predicted class
    confusion_matrix: tuple[tuple[int, ...], ...]


def compute_metrics(
    probs: Tensor, labels: Tensor, *, n_classes: int = N_CLASSES, top_k: int = 5
) -> MulticlassMetrics:
    """Aggregate classification metrics from per-row class probabilities.

    Probabilities are clipped to [1e-15, 1] before taking logs. Macro accuracy
    averages recall over the classes that occur in ``labels``. Log-loss
    reduction is measured against always predicting the label distribution
    of ``labels`` and is 0.0 when that baseline is itself perfect.
    """
    n = int(labels.shape[0])
    if n == 0:
        raise DatasetError(ErrorCode.empty_dataset, "no rows to evaluate")
    if probs.ndim != 2 or int(probs.shape[0]) != n or int(probs.shape[1]) != n_classes:
        raise ValueError("probs must have shape (n_rows, n_classes)")
    k = max(1, min(int(top_k), n_classes))
    y = labels.to(dtype=torch.long)
    p = probs.to(dtype=torch.float64)

    preds = p.argmax(dim=1)
    correct = preds == y
    micro = float(correct.double().mean().item())

    counts = torch.bincount(y, minlength=n_classes)
    hits = torch.bincount(y[correct], minlength=n_classes)
    present = counts > 0
    recall = hits[present].double() / counts[present].double()
    macro = float(recall.mean().item())

    p_true = p.gather(1, y.unsqueeze(1)).squeeze(1).clamp(min=_EPS, max=1.0)
    row_ll = -torch.log(p_true)
    log_loss = float(row_ll.mean().item())

    prior = counts[present].double() / float(n)
    prior_ll = float(-(prior * torch.log(prior)).sum().item())
    reduction = (prior_ll - log_loss) / prior_ll if prior_ll > 0.0 else 0.0

    topk_idx = p.topk(k, dim=1).indices
    top_k_acc = float((topk_idx == y.unsqueeze(1)).any(dim=1).double().mean().item())

    per_class: list[float] = []
    for c in range(n_classes):
        mask = y == c
        per_class.append(float(row_ll[mask].mean().item()) if bool(mask.any()) else math.nan)

    conf = torch.zeros((n_classes, n_classes), dtype=torch.long)
    conf.index_put_((y, preds), torch.ones(n, dtype=torch.long), accumulate=True)
    confusion = tuple(tuple(int(v) for v in row) for row in conf.tolist())

    return MulticlassMetrics(
        micro_accuracy=micro,
        macro_accuracy=macro,
        log_loss=log_loss,
        log_loss_reduction=float(reduction),
        top_k=k,
        top_k_accuracy=top_k_acc,
        per_class_log_loss=tuple(per_class),
        confusion_matrix=confusion,
    )


def evaluate(
    model: MaxEntModel, test: DigitTable, *, top_k: int = 5, batch_size: int = 1024
) -> MulticlassMetrics:
    """Score ``test`` with ``model`` and aggregate the metrics. Read-only."""
    if len(test) == 0:
        raise DatasetError(ErrorCode.empty_dataset, "test partition is empty")
    ds = build_feature_dataset(test, cache=False)
    loader = make_loader(ds, batch_size=batch_size, shuffle=False)
    probs, labels = predict_proba(model, loader)
    metrics = compute_metrics(probs, labels, n_classes=model.n_classes, top_k=top_k)
    log_event(
        "evaluated",
        {
            "rows": len(test),
            "micro_acc": metrics.micro_accuracy,
            "macro_acc": metrics.macro_accuracy,
            "log_loss": metrics.log_loss,
            "log_loss_reduction": metrics.log_loss_reduction,
        },
    )
    return metrics
