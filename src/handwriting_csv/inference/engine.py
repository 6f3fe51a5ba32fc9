from __future__ import annotations

from collections.abc import Sequence

import torch
from torch import Tensor

from ..data.loader import Digit
from ..errors import DatasetError, ErrorCode
from ..logging import log_event
from ..training.model import MaxEntModel
from .types import DigitPrediction


class PredictionEngine:
    """Single-row inference over a fitted model."""

    def __init__(self, model: MaxEntModel) -> None:
        self._model = model
        self._model.eval()

    @property
    def n_features(self) -> int:
        return self._model.n_features

    def predict(self, digit: Digit) -> DigitPrediction:
        return self.predict_pixels(digit.pixels)

    def predict_pixels(self, pixels: Tensor | Sequence[float]) -> DigitPrediction:
        tensor = _as_row(pixels, self.n_features)
        probs = self._model.predict_proba(tensor)[0]
        scores = tuple(float(p) for p in probs.tolist())
        top_idx = int(torch.argmax(probs).item())
        out = DigitPrediction(digit=top_idx, confidence=scores[top_idx], scores=scores)
        log_event("predicted", {"digit": out.digit, "confidence": out.confidence})
        return out


def _as_row(pixels: Tensor | Sequence[float], n_features: int) -> Tensor:
    t = pixels if isinstance(pixels, Tensor) else torch.tensor(list(pixels))
    t = t.to(dtype=torch.float32).reshape(-1)
    if int(t.shape[0]) != n_features:
        raise DatasetError(
            ErrorCode.malformed_row, f"expected {n_features} features, got {int(t.shape[0])}"
        )
    # Expect a flat vector -> add batch
    return t.unsqueeze(0)
