from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import TextIO

import torch

from .config import Settings
from .data.loader import load_csv
from .data.schema import DigitSchema
from .data.split import train_test_split
from .errors import AppError
from .evaluation import MulticlassMetrics, evaluate
from .inference.engine import PredictionEngine
from .inference.types import DigitPrediction
from .logging import get_logger, log_event
from .report import format_metrics, format_prediction, write_lines
from .training.trainer import fit


@dataclass(frozen=True)
class PipelineContext:
    """Everything one run needs; nothing is read from module globals."""

    settings: Settings
    schema: DigitSchema
    generator: torch.Generator
    out: TextIO


@dataclass(frozen=True)
class PipelineResult:
    n_rows: int
    n_train: int
    n_test: int
    metrics: MulticlassMetrics
    predictions: tuple[DigitPrediction, ...]


def build_context(
    settings: Settings, *, schema: DigitSchema | None = None, out: TextIO | None = None
) -> PipelineContext:
    gen = torch.Generator()
    seed = settings.data.seed
    if seed is None:
        gen.seed()
    else:
        gen.manual_seed(int(seed))
    return PipelineContext(
        settings=settings,
        schema=schema if schema is not None else DigitSchema(),
        generator=gen,
        out=out if out is not None else sys.stdout,
    )


def run(ctx: PipelineContext) -> PipelineResult:
    """Load, split, train, evaluate and predict, writing the report to ``ctx.out``."""
    log = get_logger()
    s = ctx.settings
    try:
        write_lines(ctx.out, ["Loading data..."])
        table = load_csv(s.data.csv_path, ctx.schema)
        # Resolve sample rows before spending time on training
        samples = [table.row(i) for i in s.data.sample_indices]
        split = train_test_split(table, s.data.test_fraction, generator=ctx.generator)
        log_event(
            "split",
            {"rows": len(table), "n_train": len(split.train), "n_test": len(split.test)},
        )

        write_lines(ctx.out, ["Training model..."])
        model = fit(split.train, s.train, generator=ctx.generator)

        write_lines(ctx.out, ["Evaluating model..."])
        metrics = evaluate(model, split.test, top_k=s.eval.top_k)
        write_lines(ctx.out, format_metrics(metrics))

        engine = PredictionEngine(model)
        preds: list[DigitPrediction] = []
        for i, digit in enumerate(samples):
            pred = engine.predict(digit)
            preds.append(pred)
            write_lines(ctx.out, format_prediction(i, pred))
    except AppError as exc:
        log.error("pipeline_failed code=%s message=%s", exc.code.value, exc.message)
        raise
    return PipelineResult(
        n_rows=len(table),
        n_train=len(split.train),
        n_test=len(split.test),
        metrics=metrics,
        predictions=tuple(preds),
    )
