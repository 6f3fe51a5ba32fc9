from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DigitPrediction:
    digit: int
    confidence: float
    scores: tuple[float, ...]  # one per class, 0-9
