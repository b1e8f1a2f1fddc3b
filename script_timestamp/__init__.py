"""Script Timestamper: add RFC 3161 timestamps to signed scripts.

WHY: PowerShell and VBScript files carry their Authenticode signature as a
Base64 comment block at the end of the script. Adding a timestamp to an
existing signature means extracting that PKCS#7 container, letting
signtool amend it, and writing it back without disturbing a single other
byte of the script.

HOW: Three layers: the core codec (find, decode and rebuild the block),
the dialect trait table (literal markers per scripting language), and the
timestamp pipeline (temp-file exchange with the external signer, batch
reporting), driven by a small CLI.

RULES:
- Bytes outside the signature block are never re-encoded
- The PKCS#7 container is opaque; only the signer changes it
- Adding a dialect = one new entry in dialects.py, no codec changes
"""

__version__ = "0.1.0"
