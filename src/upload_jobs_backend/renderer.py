"""
Result rendering for completed jobs.

The lifecycle controller only knows the :class:`ResultRenderer` interface.
:class:`SimulatedResultRenderer` produces placeholder payloads shaped like a
real processing result, keyed off the flags the caller submitted; a real
implementation can replace it without touching the state machine.
"""

from __future__ import annotations

import json
import random
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence
from uuid import uuid4

from .models import FileDescriptor
from .utils import split_extension, utcnow


class ResultRenderer(ABC):
    """Turns a finished job's inputs into the payloads clients retrieve."""

    @abstractmethod
    def render(self, flags: Sequence[str], files: Sequence[FileDescriptor]) -> Dict[str, Any]:
        """Build the result payload stored on a done job."""
        ...

    @abstractmethod
    def render_download(self, filename: str) -> bytes:
        """Build the body served for a download link."""
        ...


class SimulatedResultRenderer(ResultRenderer):
    """Placeholder renderer; numbers are random within fixed ranges."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def render(self, flags: Sequence[str], files: Sequence[FileDescriptor]) -> Dict[str, Any]:
        data: Dict[str, Any] = {}

        if "analyze" in flags:
            extensions = []
            for descriptor in files:
                _, suffix = split_extension(descriptor.name)
                if suffix not in extensions:
                    extensions.append(suffix)
            data["analysis"] = {
                "fileCount": len(files),
                "totalSize": sum(descriptor.size for descriptor in files),
                "fileTypes": extensions,
            }

        if "convert" in flags:
            data["conversion"] = {
                "status": "converted",
                "outputFormat": "processed",
                "compressionRatio": self._rng.uniform(0.3, 0.8),
            }

        if "extract" in flags:
            data["extraction"] = {
                "extractedItems": self._rng.randint(10, 59),
                "categories": ["text", "images", "metadata"],
                "confidence": self._rng.uniform(0.7, 1.0),
            }

        return {
            "message": "Processing completed successfully",
            "processedFiles": [descriptor.name for descriptor in files],
            "flags": list(flags),
            "timestamp": utcnow().isoformat(),
            "data": data,
            "downloadUrl": f"/download/{uuid4()}.zip",
        }

    def render_download(self, filename: str) -> bytes:
        body = {
            "message": "This is a dummy processed file",
            "filename": filename,
            "processed_at": utcnow().isoformat(),
            "content": "Dummy processed data would be here...",
        }
        return json.dumps(body, indent=2).encode("utf-8")
