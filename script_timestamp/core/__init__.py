"""Signature-block codec, its working values and error taxonomy.

WHY: The core package holds the byte-exact heart of the tool: finding,
decoding and rebuilding the signature block. It knows nothing about the
external signer, temp files or the command line.

HOW: models.py defines the encoding kind and DeassembledFile, codec.py
implements deassembly/reassembly, errors.py names every failure kind.

RULES:
- Codec functions are pure over bytes; file helpers only add read/write
- Dialect traits come in as data, never hard-coded here
"""
