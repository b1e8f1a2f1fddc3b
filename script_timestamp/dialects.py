"""Signature-block traits for each supported scripting dialect.

WHY: PowerShell and VBScript embed Authenticode signatures the same way,
a comment-quoted, line-wrapped Base64 block between two marker lines,
but with different comment markers and wrap widths. The codec only needs
those literal strings, so they live here as plain data rather than being
buried in logic.

HOW: DialectConfig is a frozen pydantic model holding the five traits.
DIALECTS maps a Dialect enum tag to its config. get_dialect() resolves a
tag or its string value (as given on the command line) to a config.

RULES:
- Traits are exact literal contracts; both dialects use CRLF
- begin/end sequences include their own surrounding line terminators
- Configs are frozen; never mutate them at runtime
- Adding a dialect = one enum member + one DIALECTS entry, no codec changes
"""

from __future__ import annotations

import enum
from typing import Dict, Union

from pydantic import BaseModel, Field


class Dialect(str, enum.Enum):
    """Supported scripting dialects (values double as CLI names)."""

    POWERSHELL = "powershell"
    VBSCRIPT = "vbscript"


class DialectConfig(BaseModel):
    """Literal strings and wrap width of one dialect's signature block.

    RULES:
    - begin_sequence / end_sequence: found immediately before / after the
      Base64 lines, terminators included
    - line_beginning: comment prefix found at the start of every Base64 line
    - line_ending: separator between Base64 lines; must be non-empty
    - chars_per_line: Base64 characters per line; must be positive
    """

    model_config = {"frozen": True}

    begin_sequence: str = Field(min_length=1, description="Text preceding the signature lines.")
    end_sequence: str = Field(min_length=1, description="Text following the signature lines.")
    line_beginning: str = Field(description="Prefix of every signature line.")
    line_ending: str = Field(min_length=1, description="Separator between signature lines.")
    chars_per_line: int = Field(gt=0, description="Base64 characters per signature line.")


POWERSHELL = DialectConfig(
    begin_sequence="\r\n# SIG # Begin signature block\r\n",
    end_sequence="\r\n# SIG # End signature block\r\n",
    line_beginning="# SIG # ",
    line_ending="\r\n",
    chars_per_line=64,
)

VBSCRIPT = DialectConfig(
    begin_sequence="\r\n'' SIG '' Begin signature block\r\n",
    end_sequence="\r\n'' SIG '' End signature block\r\n",
    line_beginning="'' SIG '' ",
    line_ending="\r\n",
    chars_per_line=44,
)

DIALECTS: Dict[Dialect, DialectConfig] = {
    Dialect.POWERSHELL: POWERSHELL,
    Dialect.VBSCRIPT: VBSCRIPT,
}


def get_dialect(name: Union[Dialect, str]) -> DialectConfig:
    """Resolve a dialect tag or name to its trait config.

    Args:
        name: A Dialect member or its string value (case-insensitive).

    Returns:
        The frozen DialectConfig for that dialect.

    Raises:
        ValueError: If the name is not a known dialect.
    """
    try:
        dialect = name if isinstance(name, Dialect) else Dialect(str(name).strip().lower())
    except ValueError:
        raise ValueError(
            "Unknown dialect '{}'. Available: {}".format(
                name, ", ".join(d.value for d in Dialect)
            )
        ) from None
    return DIALECTS[dialect]
