"""Failure kinds and typed exceptions for the timestamp pipeline.

WHY: A timestamp run can fail at several distinct points: locating the
signature block, decoding it, exchanging the container with the external
signer, or writing the script back. Callers processing a batch need to
know *which* of these happened for each file without parsing messages.

HOW: ErrorKind is a closed string enum naming every failure. Each kind has
a matching TimestampError subclass that the codec and file helpers raise.
The per-file operation (timestamp.timestamp_file) catches these and
reports the kind on an explicit result object instead of propagating.

RULES:
- Every failure is fatal to the single file it concerns, never retried
- Each exception subclass pins its ``kind`` as a class attribute
- ``path`` is optional; pure codec functions operate on bytes only
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Optional


class ErrorKind(str, enum.Enum):
    """Closed set of per-file failure kinds.

    Inherits from str so values serialize cleanly into JSON reports.
    """

    SIGNATURE_BLOCK_NOT_FOUND = "signature_block_not_found"
    SIGNATURE_BLOCK_UNTERMINATED = "signature_block_unterminated"
    SIGNATURE_BLOCK_MALFORMED = "signature_block_malformed"
    FILE_READ_FAILURE = "file_read_failure"
    CONTAINER_WRITE_FAILURE = "container_write_failure"
    CONTAINER_READ_FAILURE = "container_read_failure"
    SIGNER_FAILURE = "signer_failure"
    FILE_WRITE_FAILURE = "file_write_failure"
    UNEXPECTED = "unexpected"


class TimestampError(Exception):
    """Base class for every failure the pipeline reports by kind.

    RULES:
    - Subclasses set ``kind``; the base defaults to UNEXPECTED
    - The message is human-readable and already names the file when known
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        self.message = message
        self.path = path
        super().__init__(message)


class SignatureBlockNotFound(TimestampError):
    """Begin sequence absent under both encoding assumptions."""

    kind = ErrorKind.SIGNATURE_BLOCK_NOT_FOUND


class SignatureBlockUnterminated(TimestampError):
    """Begin sequence found but no end sequence after it."""

    kind = ErrorKind.SIGNATURE_BLOCK_UNTERMINATED


class SignatureBlockMalformed(TimestampError):
    """Signature text between the delimiters is not valid Base64."""

    kind = ErrorKind.SIGNATURE_BLOCK_MALFORMED


class FileReadFailure(TimestampError):
    kind = ErrorKind.FILE_READ_FAILURE


class ContainerWriteFailure(TimestampError):
    """The temporary container file handed to the signer could not be written."""

    kind = ErrorKind.CONTAINER_WRITE_FAILURE


class ContainerReadFailure(TimestampError):
    """The container could not be read back after the signer ran."""

    kind = ErrorKind.CONTAINER_READ_FAILURE


class SignerFailure(TimestampError):
    """The signer did not run, or exited with a non-zero code."""

    kind = ErrorKind.SIGNER_FAILURE


class FileWriteFailure(TimestampError):
    """The reassembled script could not be persisted."""

    kind = ErrorKind.FILE_WRITE_FAILURE
