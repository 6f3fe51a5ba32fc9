from __future__ import annotations

from typing import TextIO

from .evaluation import MulticlassMetrics
from .inference.types import DigitPrediction


def write_lines(out: TextIO, lines: list[str]) -> None:
    for line in lines:
        out.write(line + "\n")
    out.flush()


def format_metrics(m: MulticlassMetrics) -> list[str]:
    return [
        "Evaluation metrics",
        f"    MicroAccuracy:      {m.micro_accuracy:.3f}",
        f"    MacroAccuracy:      {m.macro_accuracy:.3f}",
        f"    LogLoss:            {m.log_loss:.3f}",
        f"    LogLossReduction:   {m.log_loss_reduction:.3f}",
        "",
    ]


def format_prediction(i: int, pred: DigitPrediction) -> list[str]:
    lines = [f"Predicting test digit {i}..."]
    lines.extend(f"  {j}: {score:.2%}" for j, score in enumerate(pred.scores))
    lines.append("")
    return lines
