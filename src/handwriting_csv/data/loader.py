from __future__ import annotations

import warnings
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import torch
from torch import Tensor

from ..errors import DatasetError, ErrorCode
from ..logging import get_logger
from .schema import N_CLASSES, DigitSchema


@dataclass(frozen=True)
class Digit:
    """One row: the concatenated feature vector and its integer label."""

    label: int
    pixels: Tensor


@dataclass(frozen=True)
class DigitTable:
    """Ordered rows of a loaded CSV.

    ``labels`` is an int64 tensor of shape (N,); ``columns`` maps each schema
    feature range name to a float32 tensor of shape (N, width). Tensors are
    never written to after load.
    """

    schema: DigitSchema
    labels: Tensor
    columns: dict[str, Tensor]

    def __len__(self) -> int:
        return int(self.labels.shape[0])

    def features(self) -> Tensor:
        return torch.cat([self.columns[n] for n in self.schema.feature_names], dim=1)

    def row(self, idx: int) -> Digit:
        n = len(self)
        if not (0 <= idx < n):
            raise DatasetError(ErrorCode.index_out_of_range, f"row {idx} not in [0, {n})")
        pixels = torch.cat([self.columns[name][idx] for name in self.schema.feature_names])
        return Digit(label=int(self.labels[idx].item()), pixels=pixels)

    def take(self, indices: Tensor | Sequence[int]) -> DigitTable:
        idx = torch.as_tensor(indices, dtype=torch.long)
        return DigitTable(
            schema=self.schema,
            labels=self.labels.index_select(0, idx),
            columns={k: v.index_select(0, idx) for k, v in self.columns.items()},
        )


def load_csv(path: Path, schema: DigitSchema | None = None) -> DigitTable:
    """Load a headerless, comma-separated digit CSV.

    Every row must have exactly ``schema.n_columns`` numeric fields; rows are
    never truncated or padded. Blank lines are skipped.
    """
    sch = schema if schema is not None else DigitSchema()
    log = get_logger()
    if not path.is_file():
        raise DatasetError(ErrorCode.file_not_found, f"dataset not found: {path}")
    with warnings.catch_warnings():
        # An empty file is reported below as empty_dataset
        warnings.filterwarnings("ignore", message=".*input contained no data.*")
        try:
            arr = np.loadtxt(path, delimiter=",", dtype=np.float32, ndmin=2)
        except ValueError as exc:
            log.error("csv_parse_failed path=%s error=%s", path, exc)
            raise DatasetError(ErrorCode.malformed_row, f"{path}: {exc}") from exc
    if arr.size == 0:
        raise DatasetError(ErrorCode.empty_dataset, f"dataset is empty: {path}")
    if int(arr.shape[1]) != sch.n_columns:
        raise DatasetError(
            ErrorCode.malformed_row,
            f"{path}: expected {sch.n_columns} columns, found {arr.shape[1]}",
        )
    finite = np.isfinite(arr).all(axis=1)
    if not bool(finite.all()):
        bad = int(np.flatnonzero(~finite)[0])
        raise DatasetError(ErrorCode.malformed_row, f"{path}: non-finite value in row {bad}")

    raw_labels = arr[:, sch.label]
    valid = (raw_labels == np.round(raw_labels)) & (raw_labels >= 0) & (raw_labels < N_CLASSES)
    if not bool(valid.all()):
        bad = int(np.flatnonzero(~valid)[0])
        raise DatasetError(
            ErrorCode.bad_label, f"{path}: row {bad} has label {float(raw_labels[bad])}"
        )

    labels = torch.from_numpy(raw_labels.astype(np.int64))
    columns = {
        r.name: torch.from_numpy(np.ascontiguousarray(arr[:, r.start : r.end + 1]))
        for r in sch.features
    }
    table = DigitTable(schema=sch, labels=labels, columns=columns)
    log.info(f"csv_loaded path={path} rows={len(table)} features={sch.n_features}")
    return table
