from __future__ import annotations

from .dataset import FeatureDataset, build_feature_dataset, cache_checkpoint, make_loader
from .loader import Digit, DigitTable, load_csv
from .schema import FEATURES, N_CLASSES, N_PIXELS, ColumnRange, DigitSchema
from .split import TrainTestSplit, n_test_rows, train_test_split

__all__ = [
    "FEATURES",
    "N_CLASSES",
    "N_PIXELS",
    "ColumnRange",
    "Digit",
    "DigitSchema",
    "DigitTable",
    "FeatureDataset",
    "TrainTestSplit",
    "build_feature_dataset",
    "cache_checkpoint",
    "load_csv",
    "make_loader",
    "n_test_rows",
    "train_test_split",
]
