"""Timestamping of signed script files, one file or a batch.

WHY: Each file goes through the same short pipeline: extract the
container, hand it to the external signer, put the amended container
back. A batch must keep going when one file fails and report, per file,
exactly what went wrong.

HOW: timestamp_file() runs the pipeline for one path and returns a
TimestampResult rather than raising: typed TimestampErrors are mapped to
their ErrorKind, anything else is logged and reported as UNEXPECTED.
The container travels to the signer through a temporary .p7 file which
is always removed afterwards. timestamp_files() loops over paths and
collects the results in a BatchSummary.

RULES:
- The script is only overwritten after every earlier step succeeded
- Failures never escape timestamp_file(); callers match on result.error
- Nothing is retried; a failed file is reported and the batch moves on
- Temp file removal is best-effort (logged, not raised)
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Iterable, List, Optional, Union

from pydantic import BaseModel, Field, computed_field

from script_timestamp.core.codec import read_signed_file, write_signed_file
from script_timestamp.core.errors import (
    ContainerReadFailure,
    ContainerWriteFailure,
    ErrorKind,
    SignerFailure,
    TimestampError,
)
from script_timestamp.dialects import DialectConfig
from script_timestamp.signer import Signer

logger = logging.getLogger(__name__)

_CONTAINER_SUFFIX = ".p7"


class TimestampResult(BaseModel):
    """Outcome of timestamping one file.

    RULES:
    - error is None on success, otherwise the failure kind
    - message is empty on success
    """

    path: str = Field(description="Script file that was processed.")
    error: Optional[ErrorKind] = Field(default=None, description="Failure kind, if any.")
    message: str = Field(default="", description="Human-readable failure detail.")

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchSummary(BaseModel):
    """Per-file results of a batch run, in processing order."""

    results: List[TimestampResult] = Field(default_factory=list)

    @computed_field
    @property
    def succeeded(self) -> List[str]:
        return [r.path for r in self.results if r.ok]

    @computed_field
    @property
    def failed(self) -> List[str]:
        return [r.path for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)


# ---------------------------------------------------------------------------
# Container exchange with the signer
# ---------------------------------------------------------------------------


def _write_container(container: bytes) -> Path:
    """Write the container to a fresh temp file and return its path."""
    try:
        fd, name = tempfile.mkstemp(suffix=_CONTAINER_SUFFIX)
    except OSError as e:
        raise ContainerWriteFailure("Could not create temporary container file: {}".format(e)) from e

    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(container)
    except OSError as e:
        _remove_container(path)
        raise ContainerWriteFailure(
            "Could not write signature container to {}: {}".format(path, e)
        ) from e
    return path


def _read_container(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise ContainerReadFailure(
            "Could not read {} after timestamp operation: {}".format(path, e)
        ) from e


def _remove_container(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("The temporary file %s could not be deleted", path)


def _output_tail(output: str, max_lines: int = 3) -> str:
    """Last few non-empty lines of captured signer output, joined on one line."""
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    return " | ".join(lines[-max_lines:])


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def timestamp_file(
    path: Union[str, Path],
    dialect: DialectConfig,
    signer: Signer,
    strict: bool = True,
) -> TimestampResult:
    """Timestamp the signature of one signed script in place.

    WHY: This is the unit of work of the tool: one file, one container
    exchange with the signer, one rewrite.

    HOW: read_signed_file → write container to temp .p7 → signer(temp) →
    read container back → write_signed_file. The temp file is removed in
    a finally block.

    RULES:
    - Returns a result for every outcome; never raises
    - signer output is only trusted when SignerResult.ok is True
    - On any failure the script file on disk is left untouched

    Args:
        path: Script file to timestamp.
        dialect: Traits of the script's dialect.
        signer: Callable that amends a container file in place.
        strict: Passed through to the codec's Base64 extraction.

    Returns:
        TimestampResult with error=None on success.
    """
    path = Path(path)
    container_path: Optional[Path] = None
    try:
        parts = read_signed_file(path, dialect, strict=strict)
        logger.debug("Extracted %d-byte signature container from %s", len(parts.binary_container), path)

        container_path = _write_container(parts.binary_container)

        result = signer(container_path)
        if not result.ok:
            logger.debug("Signer stdout for %s:\n%s", path, result.stdout)
            logger.debug("Signer stderr for %s:\n%s", path, result.stderr)
            message = "Signer failed on {} (exit code {})".format(container_path, result.exit_code)
            detail = _output_tail(result.stderr) or _output_tail(result.stdout)
            if detail:
                message = "{}: {}".format(message, detail)
            raise SignerFailure(message, path=path)

        parts.binary_container = _read_container(container_path)
        write_signed_file(path, parts, dialect)
    except TimestampError as e:
        logger.debug("Could not timestamp %s: %s", path, e.message)
        return TimestampResult(path=str(path), error=e.kind, message=e.message)
    except Exception as e:
        logger.exception("An unhandled error occurred while timestamping %s", path)
        return TimestampResult(path=str(path), error=ErrorKind.UNEXPECTED, message=str(e))
    finally:
        if container_path is not None:
            _remove_container(container_path)

    logger.info("Timestamped %s", path)
    return TimestampResult(path=str(path))


def timestamp_files(
    paths: Iterable[Union[str, Path]],
    dialect: DialectConfig,
    signer: Signer,
    strict: bool = True,
    on_status: Callable[[str], None] | None = None,
) -> BatchSummary:
    """Timestamp every file in ``paths``, continuing past failures.

    Args:
        paths: Script files, processed in order.
        dialect: Traits shared by all files.
        signer: Callable that amends a container file in place.
        strict: Passed through to the codec's Base64 extraction.
        on_status: Optional callback for per-file status lines. Failures
            go to the callback when one is given, otherwise to the log.

    Returns:
        BatchSummary with one result per path.
    """
    summary = BatchSummary()
    for path in paths:
        if on_status:
            on_status("Timestamping {}...".format(path))
        result = timestamp_file(path, dialect, signer, strict=strict)
        if not result.ok:
            if on_status:
                on_status("  [ERROR] {}: {}".format(result.error.value, result.message))
            else:
                logger.error("Could not timestamp %s: %s", path, result.message)
        summary.results.append(result)
    return summary
