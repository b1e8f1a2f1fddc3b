"""Shared test fixtures for the script_timestamp test suite.

WHY: Most test modules need signed script files in several shapes:
PowerShell and VBScript, single-byte and UTF-16LE, with or without BOM,
with trailing bytes. It also provides a stand-in for signtool. Building them in one
place keeps every test working from the same reference layout.

HOW: build_signed_script() assembles a signed file independently of the
codec (plain string concatenation and slicing), so codec tests are not
checked against the codec's own output. FakeSigner records the container
it was handed and appends bytes to it, like a timestamp attestation.

RULES:
- SAMPLE_CONTAINER is DER-shaped but opaque; nothing parses it
- Fixture files are written under tmp_path
- FakeSigner never starts a process
"""

from __future__ import annotations

import base64
from pathlib import Path
from typing import List

import pytest

from script_timestamp.dialects import POWERSHELL, VBSCRIPT, DialectConfig
from script_timestamp.signer import SignerResult

# 260 bytes → 348 Base64 characters: 6 PowerShell lines, 8 VBScript lines
SAMPLE_CONTAINER = bytes([0x30, 0x82, 0x01, 0x00]) + bytes(range(256))

TIMESTAMP_ATTESTATION = b"\xa1\x82\x00\x10" + b"timestamp-token!"

SCRIPT_TEXT = "Write-Host 'hello'\r\n"


def build_signed_script(
    script: str,
    container: bytes,
    dialect: DialectConfig,
    utf16: bool = False,
    bom: bool = False,
    trailing: bytes = b"",
) -> bytes:
    """Return the bytes of a script signed the way signtool writes it."""
    b64 = base64.b64encode(container).decode("ascii")
    width = dialect.chars_per_line
    lines = [dialect.line_beginning + b64[i:i + width] for i in range(0, len(b64), width)]
    text = script + dialect.begin_sequence + dialect.line_ending.join(lines) + dialect.end_sequence
    data = text.encode("utf-16-le" if utf16 else "utf-8")
    if bom:
        data = b"\xff\xfe" + data
    return data + trailing


class FakeSigner:
    """Stand-in for SignToolSigner that amends the container in-process."""

    def __init__(
        self,
        attestation: bytes = TIMESTAMP_ATTESTATION,
        successful: bool = True,
        exit_code: int = 0,
    ) -> None:
        self.attestation = attestation
        self.successful = successful
        self.exit_code = exit_code
        self.calls: List[Path] = []
        self.received: List[bytes] = []

    def __call__(self, container_path: Path) -> SignerResult:
        self.calls.append(container_path)
        self.received.append(container_path.read_bytes())
        if self.successful and self.exit_code == 0:
            with open(container_path, "ab") as f:
                f.write(self.attestation)
        return SignerResult(
            executable="fake-signtool",
            arguments=["timestamp", "/p7", str(container_path)],
            successful=self.successful,
            exit_code=self.exit_code if self.successful else None,
        )


@pytest.fixture
def powershell():
    return POWERSHELL


@pytest.fixture
def vbscript():
    return VBSCRIPT


@pytest.fixture
def signed_ps1(tmp_path):
    """A single-byte signed PowerShell script on disk."""
    path = tmp_path / "deploy.ps1"
    path.write_bytes(build_signed_script(SCRIPT_TEXT, SAMPLE_CONTAINER, POWERSHELL))
    return path


@pytest.fixture
def fake_signer():
    return FakeSigner()
