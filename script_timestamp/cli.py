"""Command-line interface for the script timestamper.

WHY: Release pipelines sign scripts early and timestamp them later (or
re-timestamp them when a server was down). The CLI adds an RFC 3161
timestamp to the existing signature of one or more PowerShell or
VBScript files without re-signing them.

HOW: Uses argparse for the dialect, signer settings and file list;
defaults come from config (environment / .env). Builds a SignToolSigner
and runs timestamp_files(). Status messages go to stderr; --json prints
the BatchSummary to stdout.

RULES:
- A dialect and a timestamp server URI are required
- Every input file must exist before any file is touched
- Exit codes: 0 = all files timestamped, 1 = any failure, 2 = usage error
- Status output goes to stderr (not stdout)
- Python 3.9 compatible: no match/case, no X | Y unions at runtime
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from script_timestamp.config import (
    SIGNTOOL_PATH,
    STRICT_BASE64,
    TIMESTAMP_DIGEST_ALGORITHM,
    load_log_level,
    load_signer_timeout,
    load_timestamp_server_uri,
)
from script_timestamp.dialects import Dialect, get_dialect
from script_timestamp.signer import SignToolSigner
from script_timestamp.timestamp import BatchSummary, timestamp_files


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so --json can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


def _report(summary: BatchSummary) -> None:
    """Print the per-file success/failure listing."""
    if summary.succeeded:
        _status("The following files were successfully timestamped:")
        for path in summary.succeeded:
            _status("\t* [SUCCESS] {}".format(path))

    if summary.failed:
        _status("The following files could not be timestamped:")
        for result in summary.results:
            if not result.ok:
                _status("\t* [ERROR]   {} ({})".format(result.path, result.error.value))

    _status("{} succeeded, {} failed".format(len(summary.succeeded), len(summary.failed)))


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable; tests can inspect the parser without running signtool.

    RULES:
    - Positional: one or more script files
    - Dialect: --dialect NAME, or the --powershell / --vbscript shorthands
    - Signer: --tr (server URI), --td (digest), --signtool, --timeout
    """
    parser = argparse.ArgumentParser(
        prog="script_timestamp",
        description="Add an RFC 3161 timestamp to the Authenticode signature "
                    "embedded in signed PowerShell or VBScript files.",
    )

    parser.add_argument(
        "files",
        nargs="+",
        help="Signed script files to timestamp (modified in place).",
    )

    dialect_group = parser.add_mutually_exclusive_group(required=True)
    dialect_group.add_argument(
        "--dialect",
        choices=[d.value for d in Dialect],
        help="Scripting dialect of the input files.",
    )
    dialect_group.add_argument(
        "--powershell",
        dest="dialect",
        action="store_const",
        const=Dialect.POWERSHELL.value,
        help="Shorthand for --dialect powershell.",
    )
    dialect_group.add_argument(
        "--vbscript",
        dest="dialect",
        action="store_const",
        const=Dialect.VBSCRIPT.value,
        help="Shorthand for --dialect vbscript.",
    )

    parser.add_argument(
        "--tr",
        dest="timestamp_uri",
        default=None,
        help="URI of the RFC 3161 timestamp server (default: $TIMESTAMP_SERVER_URI).",
    )

    parser.add_argument(
        "--td",
        dest="digest_algorithm",
        default=TIMESTAMP_DIGEST_ALGORITHM,
        help="Digest algorithm passed to signtool (default: %(default)s).",
    )

    parser.add_argument(
        "--signtool",
        dest="signtool_path",
        default=SIGNTOOL_PATH,
        help="Path to signtool (default: %(default)s).",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for signtool per file (default: $SIGNER_TIMEOUT_S or 300).",
    )

    parser.add_argument(
        "--strict",
        action=argparse.BooleanOptionalAction,
        default=STRICT_BASE64,
        help="Reject stray characters inside the signature block instead of "
             "discarding them.",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the per-file results as JSON on stdout.",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    - Returns the process exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        log_level = logging.DEBUG if args.verbose else load_log_level()
        timeout_s = load_signer_timeout(args.timeout)
        timestamp_uri = load_timestamp_server_uri(args.timestamp_uri)
    except ValueError as e:
        print("Error: {}".format(e), file=sys.stderr)
        return 1

    logging.basicConfig(
        level=log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    for name in args.files:
        if not Path(name).is_file():
            print("Error: File not found: {}".format(name), file=sys.stderr)
            return 1

    dialect = get_dialect(args.dialect)
    signer = SignToolSigner(
        timestamp_uri=timestamp_uri,
        signtool_path=args.signtool_path,
        digest_algorithm=args.digest_algorithm,
        timeout_s=timeout_s,
    )

    _status("Signtool: {}".format(signer.signtool_path))
    _status("Timestamp URI: {}".format(signer.timestamp_uri))
    _status("Digest algorithm: {}".format(signer.digest_algorithm))

    try:
        summary = timestamp_files(
            args.files,
            dialect,
            signer,
            strict=args.strict,
            on_status=_status,
        )
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        return 130

    _status("")
    _report(summary)

    if args.json:
        print(summary.model_dump_json(indent=2))

    return 0 if summary.ok else 1


if __name__ == "__main__":
    sys.exit(main())
