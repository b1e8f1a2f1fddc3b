"""External signer invocation (signtool ``timestamp /p7``).

WHY: The actual RFC 3161 timestamping is done by signtool, an opaque
external program. It amends a detached PKCS#7 file in place. This module
is the only place that knows how to start it and how to judge whether it
worked.

HOW: run_process() runs an executable with captured output and a timeout
and returns a SignerResult instead of raising. SignToolSigner binds the
signtool path, server URI, digest and timeout, and is called with the
path of the container file to amend.

RULES:
- Success = the process ran to completion AND exited with code 0
- Start failures and timeouts are logged and reported, never raised
- Any callable taking a container path and returning a SignerResult can
  stand in for SignToolSigner (see the Signer alias)
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from script_timestamp.config import (
    SIGNTOOL_PATH,
    TIMESTAMP_DIGEST_ALGORITHM,
    load_signer_timeout,
)

logger = logging.getLogger(__name__)


@dataclass
class SignerResult:
    """Outcome of one external signer process.

    Attributes:
        executable: Program that was started.
        arguments: Arguments it was given.
        successful: True if the process started and was waited on.
        exit_code: Process exit code, or None if it never finished.
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    executable: str
    arguments: List[str]
    successful: bool
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """The only success signal callers should trust."""
        return self.successful and self.exit_code == 0


Signer = Callable[[Path], SignerResult]
"""A callable that amends the container file at the given path in place."""


def build_signtool_arguments(
    container_path: Path,
    timestamp_uri: str,
    digest_algorithm: str,
) -> List[str]:
    """Arguments for ``signtool timestamp`` on a detached PKCS#7 file."""
    return [
        "timestamp",
        "/v",
        "/tr", timestamp_uri,
        "/td", digest_algorithm,
        "/p7", str(container_path),
    ]


def run_process(
    executable: str,
    arguments: Sequence[str],
    timeout_s: Optional[float] = None,
) -> SignerResult:
    """Run a process to completion and capture its output.

    WHY: The caller needs exit code and output for diagnostics whether
    the process succeeded, failed, or never started.

    HOW: subprocess.run with captured text output. OSError (e.g. missing
    executable) and TimeoutExpired are caught and reported with
    successful=False.

    RULES:
    - Never raises for process-level failures
    - stdin is closed so an interactive prompt cannot hang the run
    """
    args = list(arguments)
    logger.info("Running %s %s", executable, " ".join(args))
    try:
        completed = subprocess.run(
            [executable, *args],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=timeout_s,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        logger.error("%s did not finish within %.0fs", executable, timeout_s)
        return SignerResult(
            executable=executable,
            arguments=args,
            successful=False,
            stdout=_as_text(e.stdout),
            stderr=_as_text(e.stderr),
        )
    except OSError:
        logger.exception("Could not start %s", executable)
        return SignerResult(executable=executable, arguments=args, successful=False)

    if completed.returncode != 0:
        logger.warning("%s exited with code %d", executable, completed.returncode)
    return SignerResult(
        executable=executable,
        arguments=args,
        successful=True,
        exit_code=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )


def _as_text(output: object) -> str:
    # TimeoutExpired carries bytes even when text=True was requested.
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return str(output)


class SignToolSigner:
    """Timestamps detached PKCS#7 files with signtool.

    RULES:
    - timestamp_uri is required; the others default to config values
    - Calling the signer never raises for process failures
    - Without timeout_s, an invalid SIGNER_TIMEOUT_S raises ValueError
    """

    def __init__(
        self,
        timestamp_uri: str,
        signtool_path: Optional[str] = None,
        digest_algorithm: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.timestamp_uri = timestamp_uri
        self.signtool_path = signtool_path or SIGNTOOL_PATH
        self.digest_algorithm = digest_algorithm or TIMESTAMP_DIGEST_ALGORITHM
        self.timeout_s = load_signer_timeout() if timeout_s is None else timeout_s

    def __call__(self, container_path: Path) -> SignerResult:
        arguments = build_signtool_arguments(
            container_path, self.timestamp_uri, self.digest_algorithm
        )
        return run_process(self.signtool_path, arguments, timeout_s=self.timeout_s)
