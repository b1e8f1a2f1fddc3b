"""Deassembly and reassembly of embedded Authenticode signature blocks.

WHY: Timestamping a signed script means swapping the PKCS#7 container in
its signature block for an amended one while leaving every other byte of
the file alone: BOM, original encoding of the script text, non-ASCII
comments, trailing bytes. Working on decoded text would risk changing
any of those, so the codec works on raw bytes and only ever re-encodes
the block it decoded itself.

HOW: deassemble() detects the encoding (BOM → UTF-16LE, else single-byte),
scans for the dialect's begin sequence at code-unit stride, retries as
UTF-16LE if a single-byte scan finds nothing, then scans for the end
sequence. The text between is unwrapped (split on the line ending, comment
prefix stripped) and Base64-decoded. reassemble() does the reverse:
canonical Base64, fixed-width chunks, prefix + line ending, wrapped in the
begin/end sequences, encoded with the recorded encoding, and spliced
between the untouched surrounding bytes.

RULES:
- reassemble(deassemble(data)) == data when the container is unchanged
- Byte searches advance by the code-unit stride (1 or 2)
- The UTF-16LE fallback is attempted once, only from single-byte
- A missing end sequence is fatal; it is never retried in another encoding
- Chunking is purely positional; the last chunk may be shorter
- Nothing is inserted between bytes_before, the block and bytes_after
"""

from __future__ import annotations

import base64
import binascii
import logging
import math
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterator, List, Union

from script_timestamp.core.errors import (
    FileReadFailure,
    FileWriteFailure,
    SignatureBlockMalformed,
    SignatureBlockNotFound,
    SignatureBlockUnterminated,
)
from script_timestamp.core.models import DeassembledFile, TextEncodingKind
from script_timestamp.dialects import DialectConfig

logger = logging.getLogger(__name__)

_UTF16_LE_BOM = b"\xff\xfe"

_BASE64_PUNCTUATION = frozenset({"/", "+", "="})


# ---------------------------------------------------------------------------
# Byte-level search
# ---------------------------------------------------------------------------


def find_sequence(haystack: bytes, needle: bytes, start: int = 0, stride: int = 1) -> int:
    """Return the offset of the first match of ``needle`` in ``haystack``.

    WHY: Delimiters must only match on code-unit boundaries. In UTF-16LE
    text a match at an odd offset would straddle two characters.

    HOW: Brute-force comparison at ``start``, ``start + stride``, ... up
    to the end of the buffer. Scripts are small, so nothing smarter is
    needed.

    RULES:
    - Returns -1 when there is no match
    - A partial match running past the end of the buffer is no match
    - An empty needle matches at ``start``

    Args:
        haystack: Bytes to search.
        needle: Byte pattern to find.
        start: First offset to try.
        stride: Distance between candidate offsets (code-unit size).

    Returns:
        Offset of the first match, or -1.
    """
    if stride < 1:
        raise ValueError("stride must be positive, got {}".format(stride))
    if not needle:
        return start
    width = len(needle)
    for position in range(start, len(haystack) - width + 1, stride):
        if haystack[position:position + width] == needle:
            return position
    return -1


def detect_encoding(data: bytes) -> TextEncodingKind:
    """UTF16_LE if the data starts with the FF FE byte-order mark, else SINGLE_BYTE."""
    if len(data) >= 2 and data[:2] == _UTF16_LE_BOM:
        return TextEncodingKind.UTF16_LE
    return TextEncodingKind.SINGLE_BYTE


# ---------------------------------------------------------------------------
# Deassembly
# ---------------------------------------------------------------------------


def _is_base64_char(char: str) -> bool:
    return (char.isascii() and char.isalnum()) or char in _BASE64_PUNCTUATION


def extract_base64(section_text: str, dialect: DialectConfig, strict: bool = True) -> str:
    """Unwrap the signature lines into one Base64 string.

    WHY: The block body is one Base64 string wrapped over many comment
    lines. Recovering it means undoing the wrapping exactly as the signer
    applied it.

    HOW: Split on the dialect's line ending (exact string, not general line
    breaks). Strip the comment prefix from lines that carry it (ordinal
    comparison), keep other lines as they are, and concatenate. Then keep
    only Base64 alphabet characters.

    RULES:
    - Whitespace and control characters are always discarded
    - strict=True: any other non-Base64 character raises
      SignatureBlockMalformed
    - strict=False: every non-Base64 character is silently discarded

    Args:
        section_text: Decoded text between the begin and end sequences.
        dialect: Traits of the script's dialect.
        strict: Reject stray printable characters instead of dropping them.

    Returns:
        The Base64 text, not yet decoded.
    """
    prefix = dialect.line_beginning
    unwrapped = "".join(
        line[len(prefix):] if line.startswith(prefix) else line
        for line in section_text.split(dialect.line_ending)
    )

    kept: List[str] = []
    for char in unwrapped:
        if _is_base64_char(char):
            kept.append(char)
        elif strict and char.isprintable() and not char.isspace():
            raise SignatureBlockMalformed(
                "Unexpected character {!r} in signature block".format(char)
            )
    return "".join(kept)


def deassemble(data: bytes, dialect: DialectConfig, strict: bool = True) -> DeassembledFile:
    """Split a signed script into surrounding bytes and decoded container.

    Args:
        data: Raw bytes of the whole script file.
        dialect: Traits of the script's dialect.
        strict: Passed to extract_base64().

    Returns:
        A fresh DeassembledFile.

    Raises:
        SignatureBlockNotFound: Begin sequence absent as single-byte and
            as UTF-16LE text.
        SignatureBlockUnterminated: No end sequence after the begin sequence.
        SignatureBlockMalformed: Block text is not valid Base64.
    """
    encoding = detect_encoding(data)

    while True:
        begin = encoding.encode(dialect.begin_sequence)
        begin_offset = find_sequence(data, begin, 0, encoding.stride)
        if begin_offset >= 0:
            break
        if encoding is TextEncodingKind.SINGLE_BYTE:
            logger.warning(
                "Signature block not found in single-byte encoding; "
                "retrying as UTF-16LE without BOM"
            )
            encoding = TextEncodingKind.UTF16_LE
            continue
        raise SignatureBlockNotFound("Signature block not found")

    section_start = begin_offset + len(begin)
    end = encoding.encode(dialect.end_sequence)
    end_offset = find_sequence(data, end, section_start, encoding.stride)
    if end_offset < 0:
        raise SignatureBlockUnterminated("End of signature block not found")

    logger.debug(
        "Signature block found at bytes %d..%d (%s)",
        begin_offset, end_offset + len(end), encoding.value,
    )

    section_text = encoding.decode(data[section_start:end_offset])
    base64_text = extract_base64(section_text, dialect, strict=strict)
    try:
        container = base64.b64decode(base64_text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SignatureBlockMalformed(
            "Could not decode signature block from Base64: {}".format(e)
        ) from e

    return DeassembledFile(
        encoding=encoding,
        bytes_before=data[:begin_offset],
        binary_container=container,
        bytes_after=data[end_offset + len(end):],
    )


# ---------------------------------------------------------------------------
# Reassembly
# ---------------------------------------------------------------------------


def chunk_text(text: str, size: int) -> Iterator[str]:
    """Yield consecutive pieces of ``text`` of up to ``size`` characters."""
    if size < 1:
        raise ValueError("chunk size must be positive, got {}".format(size))
    for offset in range(0, len(text), size):
        yield text[offset:offset + size]


def render_signature_block(container: bytes, dialect: DialectConfig) -> str:
    """Render a container as the dialect's wrapped signature block text.

    HOW: Canonical padded Base64, chunked at ``chars_per_line``; each chunk
    gets the comment prefix, chunks are joined with the line ending, and
    the result is wrapped in the begin/end sequences with no extra
    separators.
    """
    encoded = base64.b64encode(container).decode("ascii")
    lines = [dialect.line_beginning + chunk for chunk in chunk_text(encoded, dialect.chars_per_line)]
    return dialect.begin_sequence + dialect.line_ending.join(lines) + dialect.end_sequence


def signature_line_count(container: bytes, dialect: DialectConfig) -> int:
    """Number of Base64 lines render_signature_block() produces."""
    base64_length = 4 * math.ceil(len(container) / 3)
    return math.ceil(base64_length / dialect.chars_per_line)


def reassemble(parts: DeassembledFile, dialect: DialectConfig) -> bytes:
    """Rebuild the script bytes around a (possibly replaced) container.

    RULES:
    - The block is encoded with parts.encoding, never re-detected
    - bytes_before and bytes_after are copied verbatim
    """
    block = parts.encoding.encode(render_signature_block(parts.binary_container, dialect))
    return parts.bytes_before + block + parts.bytes_after


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


def read_signed_file(
    path: Union[str, Path],
    dialect: DialectConfig,
    strict: bool = True,
) -> DeassembledFile:
    """Read a script from disk and deassemble it.

    Raises:
        FileReadFailure: The file could not be read.
        SignatureBlockNotFound, SignatureBlockUnterminated,
        SignatureBlockMalformed: As deassemble(), with ``path`` attached.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise FileReadFailure("Could not read {}: {}".format(path, e), path=path) from e

    try:
        return deassemble(data, dialect, strict=strict)
    except (SignatureBlockNotFound, SignatureBlockUnterminated, SignatureBlockMalformed) as e:
        e.path = path
        raise


def write_signed_file(path: Union[str, Path], parts: DeassembledFile, dialect: DialectConfig) -> int:
    """Reassemble ``parts`` and replace ``path`` with the result.

    HOW: The bytes go to a temp file in the same directory, which is then
    moved over ``path`` with os.replace(). The original file stays intact
    until the new content is complete on disk.

    RULES:
    - A failed write never leaves ``path`` truncated
    - The temp file is removed if it was not moved into place
    - The original file's permission bits are carried over

    Returns:
        Number of bytes written.

    Raises:
        FileWriteFailure: The file could not be written.
    """
    path = Path(path)
    data = reassemble(parts, dialect)
    temp_name = None
    try:
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=".{}.".format(path.name), suffix=".tmp")
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if path.is_file():
            shutil.copymode(path, temp_name)
        os.replace(temp_name, path)
        temp_name = None
    except OSError as e:
        raise FileWriteFailure("Could not overwrite {}: {}".format(path, e), path=path) from e
    finally:
        if temp_name is not None:
            try:
                os.remove(temp_name)
            except OSError:
                logger.warning("The temporary file %s could not be deleted", temp_name)
    return len(data)
