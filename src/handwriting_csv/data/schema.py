from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from ..errors import DatasetError, ErrorCode

N_CLASSES: Final[int] = 10
N_PIXELS: Final[int] = 784
FEATURES: Final[str] = "Features"


@dataclass(frozen=True)
class ColumnRange:
    """Named, inclusive range of source columns loaded as one vector column."""

    name: str
    start: int
    end: int

    @property
    def width(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True)
class DigitSchema:
    """Maps logical roles to CSV column positions.

    The default layout is the classic label-first MNIST CSV: column 0 holds the
    digit, columns 1..784 the pixel intensities.
    """

    label: int = 0
    features: tuple[ColumnRange, ...] = field(
        default_factory=lambda: (ColumnRange("PixelValues", 1, N_PIXELS),)
    )
    n_columns: int = N_PIXELS + 1

    def __post_init__(self) -> None:
        if not self.features:
            raise DatasetError(ErrorCode.bad_schema, "schema needs at least one feature range")
        if not (0 <= self.label < self.n_columns):
            raise DatasetError(ErrorCode.bad_schema, "label column outside the row")
        seen: set[int] = {self.label}
        names: set[str] = set()
        for rng in self.features:
            if rng.name in names or rng.name == FEATURES:
                raise DatasetError(ErrorCode.bad_schema, f"duplicate column name {rng.name!r}")
            names.add(rng.name)
            if rng.start < 0 or rng.end < rng.start or rng.end >= self.n_columns:
                raise DatasetError(
                    ErrorCode.bad_schema,
                    f"column range {rng.name} [{rng.start}, {rng.end}] outside the row",
                )
            cols = set(range(rng.start, rng.end + 1))
            if cols & seen:
                raise DatasetError(ErrorCode.bad_schema, f"column range {rng.name} overlaps")
            seen |= cols

    @property
    def feature_names(self) -> tuple[str, ...]:
        return tuple(r.name for r in self.features)

    @property
    def n_features(self) -> int:
        return sum(r.width for r in self.features)
