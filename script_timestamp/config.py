"""Configuration defaults and .env loading.

WHY: The signtool location, timestamp server and digest algorithm are
usually the same for every run on a build machine. Keeping them in the
environment (or a .env file next to the build scripts) lets the command
line stay short, while flags still override them per run.

HOW: python-dotenv loads the .env file on import. Defaults are module-level
constants read from os.environ, kept as raw strings where parsing can fail.
The load_*() helpers parse and validate them and raise ValueError with a
message the CLI can print. load_timestamp_server_uri() gives a clear
error when no server is configured.

RULES:
- All defaults can be overridden via environment variables
- Command-line flags take precedence over these defaults
- There is no default timestamp server; it must be configured
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

# Load .env from the working directory (where the tool is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# External signer defaults
# ---------------------------------------------------------------------------

SIGNTOOL_PATH = os.getenv("SIGNTOOL_PATH", "signtool.exe")
TIMESTAMP_SERVER_URI = os.getenv("TIMESTAMP_SERVER_URI", "").strip()
TIMESTAMP_DIGEST_ALGORITHM = os.getenv("TIMESTAMP_DIGEST_ALGORITHM", "sha256")
SIGNER_TIMEOUT_S = os.getenv("SIGNER_TIMEOUT_S", "300").strip()
"""Seconds before a hanging signer process is killed (parsed by load_signer_timeout())."""

# ---------------------------------------------------------------------------
# Codec and logging defaults
# ---------------------------------------------------------------------------

STRICT_BASE64 = os.getenv("STRICT_BASE64", "true").lower() == "true"
"""Reject stray printable characters in the signature block (see codec.extract_base64)."""

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def load_timestamp_server_uri(override: str | None = None) -> str:
    """Return the RFC 3161 timestamp server URI to use.

    RULES:
    - A non-empty override (from --tr) wins over the environment
    - Raises ValueError if neither is set
    """
    uri = (override or TIMESTAMP_SERVER_URI or "").strip()
    if not uri:
        raise ValueError(
            "No timestamp server URI specified. "
            "Pass --tr <uri> or set TIMESTAMP_SERVER_URI in the .env file."
        )
    return uri


def load_signer_timeout(override: float | str | None = None) -> float:
    """Return the signer timeout in seconds.

    RULES:
    - An override (from --timeout) wins over SIGNER_TIMEOUT_S
    - Raises ValueError for non-numeric or negative values
    """
    raw = SIGNER_TIMEOUT_S if override is None else override
    try:
        timeout_s = float(raw)
    except (TypeError, ValueError):
        raise ValueError(
            "Invalid signer timeout '{}'. "
            "Set SIGNER_TIMEOUT_S or --timeout to a number of seconds.".format(raw)
        ) from None
    if not timeout_s >= 0:
        raise ValueError("Signer timeout must not be negative, got {}".format(raw))
    return timeout_s


def load_log_level() -> int:
    """Return the numeric logging level named by LOG_LEVEL.

    Raises ValueError for names the logging module does not know.
    """
    level = logging.getLevelName(LOG_LEVEL)
    if not isinstance(level, int):
        raise ValueError(
            "Unknown log level '{}'. "
            "Set LOG_LEVEL to DEBUG, INFO, WARNING, ERROR or CRITICAL.".format(LOG_LEVEL)
        )
    return level
