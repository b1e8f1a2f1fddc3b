"""Working values for signature-block deassembly and reassembly.

WHY: Deassembly splits a signed script into three parts that must be put
back together exactly: the raw bytes before the signature block, the
decoded PKCS#7 container, and the raw bytes after the block. Reassembly
also needs to know which text encoding the block was found in, because
the block is re-encoded while the surrounding bytes are not.

HOW: Two types:
  TextEncodingKind: single-byte (UTF-8) or UTF-16LE, with stride and
                   encode/decode helpers
  DeassembledFile:  the three parts plus the detected encoding

RULES:
- Surrounding bytes are stored raw and never re-encoded
- DeassembledFile is created fresh per file; nothing is shared between
  instances
- binary_container is opaque (DER-encoded signed-data); it is replaced
  wholesale by the signer, never edited in place
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class TextEncodingKind(str, enum.Enum):
    """Encoding of the text the signature block is written in.

    PowerShell and VBScript signature blocks are written either in plain
    ASCII (read here as UTF-8) or in UTF-16LE. The code-unit stride drives
    every byte-level search.
    """

    SINGLE_BYTE = "single_byte"
    UTF16_LE = "utf16_le"

    @property
    def stride(self) -> int:
        """Bytes per code unit."""
        return 2 if self is TextEncodingKind.UTF16_LE else 1

    @property
    def codec_name(self) -> str:
        return "utf-16-le" if self is TextEncodingKind.UTF16_LE else "utf-8"

    def encode(self, text: str) -> bytes:
        return text.encode(self.codec_name)

    def decode(self, data: bytes) -> str:
        # Invalid sequences become U+FFFD so they surface as non-Base64
        # characters rather than as a codec exception.
        return data.decode(self.codec_name, errors="replace")


@dataclass
class DeassembledFile:
    """A signed script split around its signature block.

    Attributes:
        encoding: Encoding the block was found in; reassembly re-encodes
                  the block with it.
        bytes_before: Raw bytes preceding the begin sequence, BOM included.
        binary_container: Decoded DER-encoded PKCS#7 signed-data bundle.
        bytes_after: Raw bytes following the end sequence (normally empty).
    """

    encoding: TextEncodingKind
    bytes_before: bytes
    binary_container: bytes
    bytes_after: bytes
