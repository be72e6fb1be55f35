"""
Upload intake: turns a multipart submission into file descriptors and flags.

File contents are read in chunks only to measure them; nothing is stored.
"""

from __future__ import annotations

import json
from typing import List, Optional, Sequence

from fastapi import UploadFile

from .errors import UploadTooLargeError, UploadValidationError
from .models import FileDescriptor

CHUNK_SIZE = 1024 * 1024
DEFAULT_MEDIA_TYPE = "application/octet-stream"


def parse_flags(raw: Optional[str]) -> List[str]:
    """
    Decode the serialized flags form field.

    Args:
        raw: JSON array of strings, or an empty/missing value

    Returns:
        The flags in submission order with duplicates removed

    Raises:
        UploadValidationError: If the value is not a JSON array of strings
    """
    if raw is None or not raw.strip():
        return []

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise UploadValidationError(f"Invalid flags JSON: {exc.msg}") from exc

    if not isinstance(parsed, list) or not all(isinstance(flag, str) for flag in parsed):
        raise UploadValidationError("Flags must be a JSON array of strings")

    return list(dict.fromkeys(parsed))


async def _measure(upload: UploadFile, budget: int) -> int:
    size = 0
    while chunk := await upload.read(CHUNK_SIZE):
        size += len(chunk)
        if size > budget:
            break
    await upload.close()
    return size


async def describe_uploads(files: Sequence[UploadFile], max_total_bytes: int) -> List[FileDescriptor]:
    """
    Describe every uploaded file, enforcing the per-request size ceiling.

    Raises:
        UploadValidationError: If no files were uploaded
        UploadTooLargeError: If the files together exceed ``max_total_bytes``
    """
    if not files:
        raise UploadValidationError("No files uploaded")

    descriptors: List[FileDescriptor] = []
    total = 0
    for upload in files:
        size = await _measure(upload, max_total_bytes - total)
        total += size
        if total > max_total_bytes:
            raise UploadTooLargeError(total, max_total_bytes)
        descriptors.append(
            FileDescriptor(
                name=upload.filename or "unnamed",
                media_type=upload.content_type or DEFAULT_MEDIA_TYPE,
                size=size,
            )
        )
    return descriptors
