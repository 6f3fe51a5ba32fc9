from __future__ import annotations

import io
from dataclasses import replace
from pathlib import Path

import pytest

from handwriting_csv.config import DataConfig, EvalConfig, Settings
from handwriting_csv.errors import DatasetError, ErrorCode
from handwriting_csv.pipeline import build_context, run
from handwriting_csv.training.train_config import TrainConfig
from tests._digits_csv import ten_class_rows, two_class_rows, write_digits_csv


def _settings(csv: Path, **data: object) -> Settings:
    return Settings(
        data=replace(DataConfig(csv_path=csv, seed=0), **data),  # type: ignore[arg-type]
        train=TrainConfig(),
        eval=EvalConfig(),
    )


def test_full_run_writes_report(tmp_path: Path) -> None:
    csv = write_digits_csv(tmp_path / "digits.csv", ten_class_rows(60))
    out = io.StringIO()
    result = run(build_context(_settings(csv), out=out))
    text = out.getvalue()

    assert text.startswith("Loading data...\nTraining model...\nEvaluating model...\n")
    assert "Evaluation metrics" in text
    assert "    MicroAccuracy:      " in text
    assert "    LogLossReduction:   " in text
    for i in range(3):
        assert f"Predicting test digit {i}..." in text
    assert "  9: " in text and "%" in text

    assert result.n_rows == 60
    assert result.n_train + result.n_test == 60
    assert result.n_test == 12
    assert 0.0 <= result.metrics.micro_accuracy <= 1.0
    assert len(result.predictions) == 3
    for pred in result.predictions:
        assert len(pred.scores) == 10
        assert sum(pred.scores) == pytest.approx(1.0, abs=1e-5)
    # rows 5, 12 and 20 carry labels 5, 2 and 0
    assert [p.digit for p in result.predictions] == [5, 2, 0]


def test_seeded_runs_are_reproducible(tmp_path: Path) -> None:
    csv = write_digits_csv(tmp_path / "digits.csv", two_class_rows(30))
    s = _settings(csv, sample_indices=(0, 1))
    a = run(build_context(s, out=io.StringIO()))
    b = run(build_context(s, out=io.StringIO()))
    assert a.metrics.micro_accuracy == b.metrics.micro_accuracy
    assert a.metrics.log_loss == b.metrics.log_loss
    assert a.metrics.confusion_matrix == b.metrics.confusion_matrix
    assert a.predictions == b.predictions


def test_sample_index_out_of_range_fails_before_training(tmp_path: Path) -> None:
    csv = write_digits_csv(tmp_path / "digits.csv", ten_class_rows(10))
    out = io.StringIO()
    with pytest.raises(DatasetError) as ei:
        run(build_context(_settings(csv), out=out))
    assert ei.value.code is ErrorCode.index_out_of_range
    assert "Training model..." not in out.getvalue()


def test_missing_csv_aborts(tmp_path: Path) -> None:
    with pytest.raises(DatasetError) as ei:
        run(build_context(_settings(tmp_path / "absent.csv"), out=io.StringIO()))
    assert ei.value.code is ErrorCode.file_not_found


def test_build_context_defaults_to_stdout(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    csv = write_digits_csv(tmp_path / "digits.csv", two_class_rows(24))
    ctx = build_context(_settings(csv, seed=None, sample_indices=(3,)))
    assert ctx.schema.n_features == 784
    run(ctx)
    captured = capsys.readouterr()
    assert "Predicting test digit 0..." in captured.out
