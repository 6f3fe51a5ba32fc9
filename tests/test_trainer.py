from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest
import torch

from handwriting_csv.data.loader import DigitTable, load_csv
from handwriting_csv.errors import ConfigError, ErrorCode, TrainingError
from handwriting_csv.evaluation import evaluate
from handwriting_csv.training import trainer as tr
from handwriting_csv.training.loops import objective
from handwriting_csv.training.model import MaxEntModel, fit_scale
from handwriting_csv.training.optim import build_optimizer
from handwriting_csv.training.train_config import TrainConfig
from tests._digits_csv import ten_class_rows, two_class_rows, write_digits_csv


def _toy(tmp_path: Path, n: int = 20) -> DigitTable:
    return load_csv(write_digits_csv(tmp_path / "toy.csv", two_class_rows(n)))


def test_toy_two_class_converges(tmp_path: Path) -> None:
    table = _toy(tmp_path)
    model = tr.fit(table, TrainConfig(), generator=torch.Generator().manual_seed(0))
    m = evaluate(model, table)
    assert m.micro_accuracy == pytest.approx(1.0)
    assert m.macro_accuracy == pytest.approx(1.0)
    assert m.log_loss < 0.2


@pytest.mark.parametrize("optimizer", ["sgd", "adam", "adamw"])
def test_first_order_optimizers_fit_toy(tmp_path: Path, optimizer: str) -> None:
    table = _toy(tmp_path)
    cfg = TrainConfig(
        optimizer=optimizer,
        learning_rate=0.1,
        max_iterations=60,
        batch_size=5,
        convergence_tolerance=0.0,
    )
    model = tr.fit(table, cfg, generator=torch.Generator().manual_seed(0))
    assert evaluate(model, table).micro_accuracy == pytest.approx(1.0)


def test_lazy_and_cached_fits_agree(tmp_path: Path) -> None:
    table = load_csv(write_digits_csv(tmp_path / "d.csv", ten_class_rows(30)))
    cfg = TrainConfig(max_iterations=5, shuffle=False)
    a = tr.fit(table, replace(cfg, cache=True))
    b = tr.fit(table, replace(cfg, cache=False))
    assert torch.allclose(a.linear.weight, b.linear.weight, atol=1e-5)


def test_fit_sets_scale_from_train_features(tmp_path: Path) -> None:
    table = _toy(tmp_path, 4)
    model = tr.fit(table, TrainConfig(max_iterations=1))
    expected = fit_scale([(table.features(), table.labels)], 784)
    assert torch.equal(model.scale, expected)


def test_fit_scale_keeps_zero_columns() -> None:
    x = torch.tensor([[0.0, -4.0, 2.0], [0.0, 1.0, 3.0]])
    s = fit_scale([(x, torch.zeros(2))], 3)
    assert s.tolist() == [1.0, 4.0, 3.0]


def test_non_finite_loss_is_fatal(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    table = _toy(tmp_path, 4)
    monkeypatch.setattr(tr, "train_epoch", lambda *a, **k: float("nan"))
    with pytest.raises(TrainingError) as ei:
        tr.fit(table, TrainConfig(max_iterations=3))
    assert ei.value.code is ErrorCode.fit_failed


def test_runtime_error_in_epoch_is_wrapped(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    table = _toy(tmp_path, 4)

    def _boom(*_: object, **__: object) -> float:
        raise RuntimeError("boom")

    monkeypatch.setattr(tr, "train_epoch", _boom)
    with pytest.raises(TrainingError):
        tr.fit(table, TrainConfig())


def test_stops_early_when_converged(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    table = _toy(tmp_path, 4)
    calls = {"n": 0}

    def _flat(*_: object, **__: object) -> float:
        calls["n"] += 1
        return 0.5

    monkeypatch.setattr(tr, "train_epoch", _flat)
    tr.fit(table, TrainConfig(max_iterations=10, convergence_tolerance=1e-3))
    assert calls["n"] == 2


def test_zero_iterations_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        tr.fit(_toy(tmp_path, 4), TrainConfig(max_iterations=0))


def test_objective_adds_penalties() -> None:
    model = MaxEntModel(3, 10)
    with torch.no_grad():
        model.linear.weight.fill_(1.0)
    x = torch.zeros((2, 3))
    y = torch.tensor([0, 1])
    base = float(objective(model, x, y, TrainConfig(l1=0.0, l2=0.0)))
    l2 = float(objective(model, x, y, TrainConfig(l1=0.0, l2=0.1)))
    l1 = float(objective(model, x, y, TrainConfig(l1=0.01, l2=0.0)))
    assert l2 == pytest.approx(base + 0.5 * 0.1 * 30)
    assert l1 == pytest.approx(base + 0.01 * 30)


def test_build_optimizer_kinds() -> None:
    model = MaxEntModel(4, 10)
    names = {
        o: type(build_optimizer(model, TrainConfig(optimizer=o))).__name__
        for o in ("lbfgs", "sgd", "adam", "adamw")
    }
    assert names == {"lbfgs": "LBFGS", "sgd": "SGD", "adam": "Adam", "adamw": "AdamW"}


def test_model_starts_uniform() -> None:
    model = MaxEntModel(784, 10)
    p = model.predict_proba(torch.rand((2, 784)))
    assert torch.allclose(p, torch.full((2, 10), 0.1))
