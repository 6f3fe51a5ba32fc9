from __future__ import annotations

import argparse
from dataclasses import dataclass, replace
from pathlib import Path

from handwriting_csv.config import Settings, validate
from handwriting_csv.logging import LogStyle, init_logging
from handwriting_csv.pipeline import PipelineResult, build_context, run
from handwriting_csv.training.train_config import OPTIMIZERS


@dataclass(frozen=True)
class CliArgs:
    csv: Path | None
    test_fraction: float | None
    seed: int | None
    samples: tuple[int, ...] | None
    optimizer: str | None
    max_iterations: int | None
    no_cache: bool
    threads: int | None
    log_style: LogStyle


def _samples(v: str) -> tuple[int, ...]:
    try:
        return tuple(int(p) for p in v.split(",") if p.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError("samples must be comma-separated integers") from exc


def parse_args(argv: list[str] | None = None) -> CliArgs:
    ap = argparse.ArgumentParser(
        description="Train and evaluate a linear digit classifier on CSV pixel data"
    )
    ap.add_argument("--csv", default=None, help="Label-first CSV with 785 columns, no header")
    ap.add_argument("--test-fraction", type=float, default=None)
    ap.add_argument("--seed", type=int, default=None, help="Split/shuffle seed (default random)")
    ap.add_argument("--samples", type=_samples, default=None, help="Row indices to predict")
    ap.add_argument("--optimizer", choices=sorted(OPTIMIZERS), default=None)
    ap.add_argument("--max-iterations", type=int, default=None)
    ap.add_argument("--no-cache", action="store_true", help="Skip the feature cache checkpoint")
    ap.add_argument("--threads", type=int, default=None)
    ap.add_argument("--log-style", choices=["json", "pretty", "auto"], default="auto")
    a = ap.parse_args(argv)
    style: LogStyle = "auto"
    if a.log_style == "json":
        style = "json"
    elif a.log_style == "pretty":
        style = "pretty"
    return CliArgs(
        csv=Path(str(a.csv)) if a.csv is not None else None,
        test_fraction=a.test_fraction,
        seed=a.seed,
        samples=a.samples,
        optimizer=a.optimizer,
        max_iterations=a.max_iterations,
        no_cache=bool(a.no_cache),
        threads=a.threads,
        log_style=style,
    )


def apply_overrides(s: Settings, args: CliArgs) -> Settings:
    data = s.data
    train = s.train
    if args.csv is not None:
        data = replace(data, csv_path=args.csv)
    if args.test_fraction is not None:
        data = replace(data, test_fraction=float(args.test_fraction))
    if args.seed is not None:
        data = replace(data, seed=int(args.seed))
    if args.samples is not None:
        data = replace(data, sample_indices=args.samples)
    if args.optimizer is not None:
        train = replace(train, optimizer=args.optimizer)
    if args.max_iterations is not None:
        train = replace(train, max_iterations=int(args.max_iterations))
    if args.no_cache:
        train = replace(train, cache=False)
    if args.threads is not None:
        train = replace(train, threads=int(args.threads))
    return validate(replace(s, data=data, train=train))


def main(argv: list[str] | None = None) -> PipelineResult:
    args = parse_args(argv)
    init_logging(args.log_style)
    settings = apply_overrides(Settings.load(), args)
    return run(build_context(settings))


if __name__ == "__main__":  # pragma: no cover - script entry
    main()
