from __future__ import annotations

from enum import Enum
from typing import Final


class ErrorCode(str, Enum):
    file_not_found = "file_not_found"
    malformed_row = "malformed_row"
    bad_label = "bad_label"
    empty_dataset = "empty_dataset"
    bad_schema = "bad_schema"
    bad_config = "bad_config"
    index_out_of_range = "index_out_of_range"
    fit_failed = "fit_failed"


_DEFAULT_MESSAGE: Final[dict[ErrorCode, str]] = {
    ErrorCode.file_not_found: "Dataset file not found.",
    ErrorCode.malformed_row: "Dataset row is malformed.",
    ErrorCode.bad_label: "Label is not a digit in 0-9.",
    ErrorCode.empty_dataset: "Dataset contains no rows.",
    ErrorCode.bad_schema: "Column schema is invalid.",
    ErrorCode.bad_config: "Invalid configuration value.",
    ErrorCode.index_out_of_range: "Row index out of range.",
    ErrorCode.fit_failed: "Model training failed.",
}


class AppError(Exception):
    def __init__(self, code: ErrorCode, message: str | None = None) -> None:
        msg = message if message is not None else default_message(code)
        super().__init__(msg)
        self.code = code
        self.message = msg


class DatasetError(AppError):
    """Raised when the input table cannot be loaded, split or indexed."""


class ConfigError(AppError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(ErrorCode.bad_config, message)


class TrainingError(AppError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(ErrorCode.fit_failed, message)


def default_message(code: ErrorCode) -> str:
    return _DEFAULT_MESSAGE.get(code, "")
