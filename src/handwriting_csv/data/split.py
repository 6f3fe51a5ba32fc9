from __future__ import annotations

from dataclasses import dataclass

import torch

from ..errors import ConfigError, DatasetError, ErrorCode
from .loader import DigitTable


@dataclass(frozen=True)
class TrainTestSplit:
    train: DigitTable
    test: DigitTable


def n_test_rows(n_rows: int, test_fraction: float) -> int:
    """Number of test rows for ``n_rows`` at ``test_fraction``.

    Both sides keep at least one row whenever the table has two or more.
    """
    if not (0.0 < test_fraction < 1.0):
        raise ConfigError("test_fraction must be in (0, 1)")
    if n_rows < 2:
        raise DatasetError(ErrorCode.empty_dataset, "need at least two rows to split")
    n_test = int(round(n_rows * test_fraction))
    return min(max(n_test, 1), n_rows - 1)


def train_test_split(
    table: DigitTable,
    test_fraction: float = 0.2,
    *,
    generator: torch.Generator | None = None,
) -> TrainTestSplit:
    """Randomly partition rows into disjoint train and test tables (not stratified)."""
    n = len(table)
    n_test = n_test_rows(n, test_fraction)
    perm = torch.randperm(n, generator=generator)
    # Keep original row order within each side
    test_idx, _ = torch.sort(perm[:n_test])
    train_idx, _ = torch.sort(perm[n_test:])
    return TrainTestSplit(train=table.take(train_idx), test=table.take(test_idx))
