"""File handler module: encoding-aware reads and atomic writes.

Vault files are written back byte-for-byte apart from the edited line, so
reads keep the detected encoding (and any BOM) and writes re-encode with
it.  Line splitting keeps each line's terminator for the same reason.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    UTF-8 is tried first; anything else goes through charset-normalizer.
    The raw bytes are decoded directly with the detected codec so that a
    BOM survives a read/write round trip.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    encoding = result.encoding
    return (raw.decode(encoding), encoding)


def write_file_atomic(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Replace *path* with *content* via a temp file and ``os.replace``.

    The permission bits of an existing target are carried over.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        if path.exists():
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)


# =============================================================================
# Line handling
# =============================================================================


def split_lines(content: str) -> list[str]:
    """Split on ``\\n`` only, keeping any ``\\r`` on the line.

    ``"\\n".join(split_lines(c)) == c`` for every string.
    """
    return content.split("\n")


def strip_cr(line: str) -> tuple[str, str]:
    """Return ``(text, "\\r")`` for CRLF lines and ``(text, "")`` otherwise."""
    if line.endswith("\r"):
        return line[:-1], "\r"
    return line, ""
