"""
Small helpers shared across the backend.

This module provides helper functions for:
- Producing timezone-aware UTC timestamps
- Sanitizing caller-supplied filenames before they reach response headers
- Splitting file extensions for result summaries
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import PurePosixPath

# Characters that are unsafe inside a Content-Disposition filename
# Allows: alphanumeric characters, dots, underscores, and hyphens
SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9._-]+")


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def sanitize_filename(filename: str, fallback: str = "download") -> str:
    """
    Generate a header-safe filename from user input.

    Args:
        filename: The caller-supplied filename
        fallback: Value returned if nothing usable remains after cleaning

    Returns:
        The cleaned filename or the fallback value

    Example:
        >>> sanitize_filename('report "final".zip')
        "report-final-.zip"
        >>> sanitize_filename("@#$")
        "download"
    """
    cleaned = SANITIZE_PATTERN.sub("-", filename.strip())
    cleaned = cleaned.strip("-_")
    if cleaned in {"", ".", ".."}:
        return fallback
    return cleaned


def split_extension(filename: str) -> tuple[str, str]:
    """
    Split a filename into stem and extension components.

    Example:
        >>> split_extension("notes.tar.gz")
        ("notes.tar", ".gz")
        >>> split_extension("README")
        ("README", "")
    """
    path = PurePosixPath(filename)
    return path.stem, path.suffix
