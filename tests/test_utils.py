"""Tests for utils — ids, file-name sanitizing, MIME detection, storage paths."""

from __future__ import annotations

import base64
import uuid

import pytest

from cumulus.exceptions import NotFoundError, ValidationError
from cumulus.types import ResourceRef
from cumulus.utils import (
    MAX_SANITIZED_LENGTH,
    build_storage_path,
    copy_name,
    detect_mime_type,
    escape_like,
    normalize_id,
    normalize_optional_id,
    sanitize_file_name,
    split_extension,
)


class TestIds:
    def test_canonical_form(self):
        raw = uuid.uuid4()
        assert normalize_id(str(raw).upper()) == str(raw)
        assert normalize_id(raw.hex) == str(raw)
        assert normalize_id(raw) == str(raw)

    @pytest.mark.parametrize("raw", ["", "not-a-uuid", None, True, "12ab"])
    def test_rejects_non_uuid(self, raw):
        with pytest.raises(ValidationError, match="Expected a UUID"):
            normalize_id(raw)

    @pytest.mark.parametrize("raw", [42, "42", " 7 "])
    def test_numeric_ids_are_not_found(self, raw):
        with pytest.raises(NotFoundError, match="Resource not found"):
            normalize_id(raw)

    def test_all_digit_hex_is_still_a_uuid(self):
        raw = "1" * 32
        assert normalize_id(raw) == str(uuid.UUID(raw))

    @pytest.mark.parametrize("raw", [None, "", "null", "root", " NULL "])
    def test_optional_root_markers(self, raw):
        assert normalize_optional_id(raw) is None

    def test_resource_ref(self):
        raw = str(uuid.uuid4())
        ref = ResourceRef.parse(" File ", raw.upper())
        assert ref.kind == "file"
        assert ref.id == raw
        assert ref.is_file

    def test_resource_ref_bad_kind(self):
        with pytest.raises(ValidationError, match="resource type"):
            ResourceRef.parse("bucket", str(uuid.uuid4()))


class TestFileNames:
    def test_split_extension(self):
        assert split_extension("report.pdf") == ("report", ".pdf")
        assert split_extension("archive.tar.gz") == ("archive.tar", ".gz")
        assert split_extension(".env") == (".env", "")

    def test_ascii_normalized(self):
        assert sanitize_file_name("My  Report__v2.PDF") == "My_Report_v2.pdf"

    def test_edges_stripped(self):
        assert sanitize_file_name("..hidden_.txt") == "hidden.txt"

    def test_blank(self):
        assert sanitize_file_name("") == "file"
        assert sanitize_file_name(None) == "file"

    def test_non_ascii_is_reversible(self):
        sanitized = sanitize_file_name("отчёт.docx")
        stem, ext = split_extension(sanitized)
        assert ext == ".docx"
        assert sanitized.isascii()
        padded = stem + "=" * (-len(stem) % 4)
        assert base64.urlsafe_b64decode(padded).decode("utf-8") == "отчёт"

    def test_truncated(self):
        sanitized = sanitize_file_name("a" * 500 + ".txt")
        assert sanitized == "a" * MAX_SANITIZED_LENGTH + ".txt"

    def test_unsafe_extension_folded_into_stem(self):
        sanitized = sanitize_file_name("weird.ex$t")
        assert "$" not in sanitized
        assert sanitized.isascii()

    def test_copy_name(self):
        assert copy_name("report.pdf") == "report (copy).pdf"
        assert copy_name("archive.tar.gz") == "archive.tar (copy).gz"
        assert copy_name("README") == "README (copy)"


class TestMime:
    def test_pdf_forced_by_extension(self):
        assert detect_mime_type("a.PDF", "application/octet-stream") == "application/pdf"

    def test_pdf_forced_by_declared(self):
        assert detect_mime_type("a.bin", "application/pdf") == "application/pdf"

    def test_declared_wins(self):
        assert detect_mime_type("a.txt", "text/markdown") == "text/markdown"

    def test_guessed_from_extension(self):
        assert detect_mime_type("photo.png", None) == "image/png"
        assert detect_mime_type("photo.png", "application/octet-stream") == "image/png"

    def test_fallback(self):
        assert detect_mime_type("blob", None) == "application/octet-stream"


class TestStoragePath:
    def test_layout(self):
        path = build_storage_path("owner", None, "Report.PDF", now_ms=1700000000000)
        owner, folder, name = path.split("/")
        assert (owner, folder) == ("owner", "root")
        assert name.startswith("1700000000000-")
        assert name.endswith("_Report.pdf")

    def test_folder(self):
        path = build_storage_path("owner", "f1", "a.txt", now_ms=1)
        assert path.startswith("owner/f1/1-")

    def test_unique(self):
        first = build_storage_path("o", None, "a.txt", now_ms=1)
        second = build_storage_path("o", None, "a.txt", now_ms=1)
        assert first != second

    def test_escape_like(self):
        assert escape_like(r"50%_a\b") == r"50\%\_a\\b"
