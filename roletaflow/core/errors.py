"""
Error taxonomy and shared error-handling helpers.

Every failure in the operator workflow is recoverable: validation problems
block a single submission, missing references degrade to placeholders, store
and sync failures leave prior state untouched and are reported to the
operator.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, TypeVar

T = TypeVar("T")


class RoletaFlowError(Exception):
    """Base class for recoverable workflow errors."""


class ValidationError(RoletaFlowError):
    """User-correctable input problem on a single field."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class OperationDayRequired(ValidationError):
    def __init__(self, message: str = "Operation day must be selected first") -> None:
        super().__init__("operation_day", message)


class MissingReferenceError(RoletaFlowError, LookupError):
    """A referenced vehicle, company or record does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"{collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


class StoreError(RoletaFlowError):
    """Backend or network failure talking to the document store."""


class SyncError(RoletaFlowError):
    """Offline queue drain failed; the queue was left intact."""

    def __init__(self, message: str, *, failed_local_id: str | None = None, pending: int = 0) -> None:
        super().__init__(message)
        self.failed_local_id = failed_local_id
        self.pending = pending


def _format_extra(extra: dict | None) -> str:
    if not extra:
        return ""
    parts: list[str] = []
    for key, value in extra.items():
        if value is None:
            continue
        parts.append(f"{key}={value}")
    return f" {' '.join(parts)}" if parts else ""


def log_exception(logger: logging.Logger, msg: str, *, extra: dict | None = None, exc: Exception | None = None) -> None:
    """
    Log an exception with context. Uses logger.exception for stack traces.
    """
    suffix = _format_extra(extra)
    if exc is not None:
        logger.error(f"{msg}{suffix}: {exc}", exc_info=exc)
        return
    logger.exception(f"{msg}{suffix}")


def safe_json_load(path: str | Path, default: T, *, logger: logging.Logger | None = None, context: dict | None = None) -> T:
    """
    Best-effort JSON load with logging. Returns default when the file is
    missing or unreadable.
    """
    target = Path(path)
    if not target.exists():
        return default
    try:
        with target.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        if logger:
            log_exception(logger, "JSON load failed", extra={"path": str(target), **(context or {})}, exc=exc)
        return default


def safe_json_dump_atomic(
    path: str | Path,
    data: Any,
    *,
    logger: logging.Logger | None = None,
    context: dict | None = None,
    indent: int = 2,
) -> bool:
    """
    Atomically write JSON to disk. Returns True on success, False otherwise.
    """
    target = Path(path)
    tmp_path: Optional[Path] = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=target.name, suffix=".tmp", dir=str(target.parent))
        tmp_path = Path(tmp_name)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, default=str)
            f.flush()
            os.fsync(f.fileno())
        os.replace(str(tmp_path), str(target))
        return True
    except Exception as exc:
        if logger:
            log_exception(
                logger,
                "JSON atomic write failed",
                extra={"path": str(target), **(context or {})},
                exc=exc,
            )
        return False
    finally:
        if tmp_path and tmp_path.exists():
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError as exc:
                logging.getLogger("errors").warning("Failed to cleanup temp JSON file %s: %s", tmp_path, exc)
