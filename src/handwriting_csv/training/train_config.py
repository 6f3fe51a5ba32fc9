from __future__ import annotations

from dataclasses import dataclass
from typing import Final

OPTIMIZERS: Final[frozenset[str]] = frozenset({"lbfgs", "sgd", "adam", "adamw"})


@dataclass(frozen=True)
class TrainConfig:
    optimizer: str = "lbfgs"
    learning_rate: float = 1.0
    # Upper bound on passes over the training partition
    max_iterations: int = 50
    # 0 = full batch
    batch_size: int = 0
    l2: float = 1e-4
    l1: float = 0.0
    # Stop once the relative epoch-loss improvement drops below this
    convergence_tolerance: float = 1e-4
    shuffle: bool = True
    # Materialize concatenated features once before fitting
    cache: bool = True
    # 0 = leave torch/BLAS defaults alone
    threads: int = 0
