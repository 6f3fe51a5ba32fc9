from __future__ import annotations

import torch
from torch import Tensor
from torch.utils.data import DataLoader, Dataset, TensorDataset

from ..logging import get_logger
from .loader import DigitTable


class FeatureDataset(Dataset[tuple[Tensor, Tensor]]):
    """Concatenates a row's feature columns on access.

    Yields ``(features, label)`` with features of shape (n_features,).
    """

    def __init__(self, table: DigitTable) -> None:
        self._labels = table.labels
        self._columns = [table.columns[n] for n in table.schema.feature_names]

    def __len__(self) -> int:
        return int(self._labels.shape[0])

    def __getitem__(self, idx: int) -> tuple[Tensor, Tensor]:
        x = torch.cat([c[idx] for c in self._columns])
        return x, self._labels[idx]


def cache_checkpoint(ds: FeatureDataset) -> TensorDataset:
    """Materialize every row of ``ds`` once so later passes skip concatenation."""
    xs: list[Tensor] = []
    ys: list[Tensor] = []
    for i in range(len(ds)):
        x, y = ds[i]
        xs.append(x)
        ys.append(y)
    return TensorDataset(torch.stack(xs), torch.stack(ys))


def build_feature_dataset(table: DigitTable, *, cache: bool) -> Dataset[tuple[Tensor, Tensor]]:
    lazy = FeatureDataset(table)
    if not cache:
        return lazy
    cached = cache_checkpoint(lazy)
    get_logger().info(f"feature_cache_built rows={len(table)}")
    return cached


def make_loader(
    ds: Dataset[tuple[Tensor, Tensor]],
    *,
    batch_size: int,
    shuffle: bool,
    generator: torch.Generator | None = None,
) -> DataLoader[tuple[Tensor, Tensor]]:
    """Build a loader; ``batch_size`` 0 means one batch holding every row."""
    n = _sized_len(ds)
    bs = n if batch_size <= 0 else min(batch_size, n)
    return DataLoader(
        ds,
        batch_size=max(1, bs),
        shuffle=shuffle,
        num_workers=0,
        generator=generator,
    )


def _sized_len(ds: Dataset[tuple[Tensor, Tensor]]) -> int:
    if isinstance(ds, FeatureDataset | TensorDataset):
        return len(ds)
    raise TypeError("dataset must be a FeatureDataset or TensorDataset")
