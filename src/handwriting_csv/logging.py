from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Final, Literal, Protocol, runtime_checkable

_LOGGER_NAME: Final[str] = "handwriting_csv"
_INT_FIELDS: Final[frozenset[str]] = frozenset(
    {"rows", "n_train", "n_test", "epoch", "digit", "elapsed_ms"}
)
_FLOAT_FIELDS: Final[frozenset[str]] = frozenset(
    {"loss", "micro_acc", "macro_acc", "log_loss", "log_loss_reduction", "confidence"}
)


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Parse structured fields encoded via log_event helper
        msg = record.getMessage()
        extra = _parse_evt_fields(msg)
        if extra:
            if "event" in extra:
                payload["message"] = str(extra.pop("event"))
            for k, v in extra.items():
                payload[k] = v
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class _ConsoleFormatter(logging.Formatter):
    """Colorized formatter for interactive terminals.

    - Level tag with color
    - Event token emphasized
    - key=value pairs with colored keys and heuristic value coloring
    """

    _RESET = "\x1b[0m"
    _BOLD = "\x1b[1m"
    _DIM = "\x1b[2m"
    _FG_GRAY = "\x1b[90m"
    _FG_RED = "\x1b[91m"
    _FG_GREEN = "\x1b[92m"
    _FG_YELLOW = "\x1b[93m"
    _FG_BLUE_BRIGHT = "\x1b[94m"
    _FG_MAGENTA = "\x1b[95m"
    _FG_CYAN = "\x1b[36m"
    _FG_WHITE = "\x1b[97m"

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now(UTC).strftime("%H:%M:%S")
        lvl_tag = self._level_tag(record.levelno)
        event, kv_pairs, tail = self._split_message(record.getMessage())

        parts: list[str] = [f"{self._DIM}[{ts}]{self._RESET}", lvl_tag]
        if record.name and record.name != _LOGGER_NAME:
            parts.append(f"{self._DIM}{self._FG_GRAY}{record.name}{self._RESET}")
        if event:
            parts.append(f"{self._BOLD}{self._FG_BLUE_BRIGHT}{event}{self._RESET}")
        for k, v in kv_pairs:
            parts.append(f"{self._DIM}{self._FG_CYAN}{k}{self._RESET}={self._color_value(k, v)}")
        if tail:
            parts.append(tail)
        if record.exc_info:
            exc = self.formatException(record.exc_info)
            parts.append(f"\n{self._FG_RED}{exc}{self._RESET}")
        return " ".join(parts)

    def _level_tag(self, level: int) -> str:
        if level >= logging.CRITICAL:
            c, name = self._FG_MAGENTA, "CRIT"
        elif level >= logging.ERROR:
            c, name = self._FG_RED, "ERROR"
        elif level >= logging.WARNING:
            c, name = self._FG_YELLOW, "WARN"
        elif level >= logging.INFO:
            c, name = self._FG_CYAN, "INFO"
        else:
            c, name = self._FG_GRAY, "DEBUG"
        return f"{self._BOLD}{c}[{name}]{self._RESET}"

    def _split_message(self, msg: str) -> tuple[str | None, list[tuple[str, str]], str | None]:
        if msg.startswith("EVT "):
            extra = _parse_evt_fields(msg)
            evt_name = str(extra.pop("event")) if "event" in extra else "event"
            return evt_name, [(k, str(v)) for k, v in extra.items()], None

        toks = msg.split()
        if not toks:
            return None, [], None

        event: str | None = None
        rest = toks
        if "=" not in toks[0]:
            event = toks[0]
            rest = toks[1:]

        kv: list[tuple[str, str]] = []
        tail_parts: list[str] = []
        for t in rest:
            k, sep, v = t.partition("=")
            if sep and k.strip():
                kv.append((k.strip(), v))
            else:
                tail_parts.append(t)
        tail = " ".join(tail_parts) if tail_parts else None
        return event, kv, tail

    def _color_value(self, key: str, v: str) -> str:
        ks = key.lower()
        vs = v.strip()
        if ks.endswith("_ms") or ks.endswith("_s"):
            return f"{self._FG_MAGENTA}{vs}{self._RESET}"
        if "acc" in ks:
            return f"{self._FG_GREEN}{vs}{self._RESET}"
        if vs.lower() in {"true", "false"}:
            return f"{self._FG_CYAN}{vs}{self._RESET}"
        if _is_float_str(vs):
            return f"{self._FG_GREEN}{vs}{self._RESET}"
        return f"{self._FG_WHITE}{vs}{self._RESET}"


def log_event(event: str, fields: Mapping[str, object] | None = None) -> None:
    logger = get_logger()
    parts: list[str] = [f"event={event}"]
    if fields is not None:
        for key, value in fields.items():
            if key in _INT_FIELDS and isinstance(value, int) and not isinstance(value, bool):
                parts.append(f"{key}={value}")
            elif key in _FLOAT_FIELDS and isinstance(value, float):
                parts.append(f"{key}={value:.6f}")
    logger.info("EVT " + " ".join(parts))


def _parse_evt_fields(msg: str) -> dict[str, object]:
    if not msg.startswith("EVT "):
        return {}
    out: dict[str, object] = {}
    for tok in msg[4:].split():
        k, sep, v = tok.partition("=")
        key = k.strip()
        if not sep or not key:
            continue
        val: object = v
        if key in _INT_FIELDS and v.lstrip("-").isdigit():
            val = int(v)
        elif key in _FLOAT_FIELDS and _is_float_str(v):
            val = float(v)
        out[key] = val
    return out


def _is_float_str(s: str) -> bool:
    # Accept formats like 0.5, 1, 1.0, -0.25
    body = s[1:] if s.startswith("-") else s
    if not body:
        return False
    return body.count(".") <= 1 and body.replace(".", "", 1).isdigit()


LogStyle = Literal["json", "pretty", "auto"]


def _env_level() -> int:
    v = os.environ.get("DIGITS_CSV_LOG_LEVEL")
    if not v:
        return logging.INFO
    return {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }.get(v.strip().upper(), logging.INFO)


def init_logging(style: LogStyle = "auto") -> logging.Logger:
    """Initialize or refresh the project logger.

    Logs go to stderr so that the report written to stdout stays clean. Any
    existing StreamHandler is re-bound to the current sys.stderr, which keeps
    pytest's capture working across repeated calls.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    lvl = _env_level()
    logger.setLevel(lvl)
    logger.propagate = _env_truthy("DIGITS_CSV_LOG_PROPAGATE")

    formatter = _choose_formatter(style)
    for h in list(logger.handlers):
        if isinstance(h, logging.StreamHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(lvl)
    logger.addHandler(handler)
    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)


def _env_truthy(name: str) -> bool:
    v = os.environ.get(name)
    if not v:
        return False
    return v.strip().lower() in {"1", "true", "yes", "on", "y"}


def _choose_formatter(style: LogStyle = "auto") -> logging.Formatter:
    if style == "json":
        return _JsonFormatter()
    if style == "pretty":
        return _ConsoleFormatter()

    force_json = _env_truthy("DIGITS_CSV_LOG_JSON")
    force_pretty = _env_truthy("DIGITS_CSV_LOG_PRETTY")

    @runtime_checkable
    class _HasIsatty(Protocol):
        def isatty(self) -> bool: ...

    out_stream = sys.stderr
    is_tty = isinstance(out_stream, _HasIsatty) and bool(out_stream.isatty())
    if not force_json and (force_pretty or is_tty):
        return _ConsoleFormatter()
    return _JsonFormatter()
