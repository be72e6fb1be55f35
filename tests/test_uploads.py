"""
Tests for upload intake: flag decoding and file measurement.
"""

import asyncio
from io import BytesIO

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from upload_jobs_backend.errors import UploadTooLargeError, UploadValidationError
from upload_jobs_backend.uploads import describe_uploads, parse_flags


def make_upload(name, content, media_type="text/plain"):
    return UploadFile(file=BytesIO(content), filename=name, headers=Headers({"content-type": media_type}))


class TestParseFlags:
    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing_flags_are_empty(self, raw):
        assert parse_flags(raw) == []

    def test_json_list(self):
        assert parse_flags('["analyze", "convert"]') == ["analyze", "convert"]

    def test_duplicates_removed_in_order(self):
        assert parse_flags('["extract", "analyze", "extract"]') == ["extract", "analyze"]

    @pytest.mark.parametrize("raw", ["not json", '{"a": 1}', '["ok", 3]', '"analyze"'])
    def test_invalid_flags_rejected(self, raw):
        with pytest.raises(UploadValidationError):
            parse_flags(raw)


class TestDescribeUploads:
    def test_describes_each_file(self):
        uploads = [make_upload("a.txt", b"hello"), make_upload("b.bin", b"\x00" * 10, "application/octet-stream")]

        descriptors = asyncio.run(describe_uploads(uploads, max_total_bytes=1024))

        assert [(d.name, d.media_type, d.size) for d in descriptors] == [
            ("a.txt", "text/plain", 5),
            ("b.bin", "application/octet-stream", 10),
        ]

    def test_no_files_rejected(self):
        with pytest.raises(UploadValidationError, match="No files uploaded"):
            asyncio.run(describe_uploads([], max_total_bytes=1024))

    def test_total_size_ceiling(self):
        uploads = [make_upload("a.txt", b"x" * 600), make_upload("b.txt", b"y" * 600)]

        with pytest.raises(UploadTooLargeError) as exc_info:
            asyncio.run(describe_uploads(uploads, max_total_bytes=1000))

        assert exc_info.value.max_bytes == 1000

    def test_exactly_at_ceiling_is_accepted(self):
        uploads = [make_upload("a.txt", b"x" * 500), make_upload("b.txt", b"y" * 500)]

        descriptors = asyncio.run(describe_uploads(uploads, max_total_bytes=1000))

        assert sum(d.size for d in descriptors) == 1000
