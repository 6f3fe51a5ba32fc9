from __future__ import annotations

from collections.abc import Iterable

import torch
from torch import Tensor


class MaxEntModel(torch.nn.Module):
    """Linear softmax classifier over max-abs normalized features.

    ``scale`` holds the per-feature divisor fitted on the training partition;
    the linear layer starts from all-zero weights so fits are deterministic
    for a fixed data order.
    """

    def __init__(self, n_features: int, n_classes: int) -> None:
        super().__init__()
        self.register_buffer("scale", torch.ones(n_features))
        self.linear = torch.nn.Linear(n_features, n_classes)
        torch.nn.init.zeros_(self.linear.weight)
        torch.nn.init.zeros_(self.linear.bias)

    @property
    def n_features(self) -> int:
        return int(self.linear.in_features)

    @property
    def n_classes(self) -> int:
        return int(self.linear.out_features)

    def forward(self, x: Tensor) -> Tensor:
        return self.linear(x / self.scale)

    def predict_proba(self, x: Tensor) -> Tensor:
        with torch.no_grad():
            return torch.softmax(self(x.to(dtype=torch.float32)), dim=1)


def fit_scale(batches: Iterable[tuple[Tensor, Tensor]], n_features: int) -> Tensor:
    """Per-feature max |x| over all batches; all-zero features keep a divisor of 1."""
    peak = torch.zeros(n_features)
    for x, _ in batches:
        peak = torch.maximum(peak, x.abs().amax(dim=0))
    return torch.where(peak > 0, peak, torch.ones_like(peak))
