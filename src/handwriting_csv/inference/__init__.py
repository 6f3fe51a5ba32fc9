from __future__ import annotations

from .engine import PredictionEngine
from .types import DigitPrediction

__all__ = ["DigitPrediction", "PredictionEngine"]
