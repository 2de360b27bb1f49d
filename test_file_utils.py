"""
Tests for output naming and upload validation.
"""
import io
import zipfile

from conftest import build_epub
from epub_translator.utils.file_utils import (
    generate_output_filename,
    get_unique_output_path,
    sanitize_filename,
    truncate_filename,
)
from epub_translator.utils.security import RateLimiter, SecureFileHandler


def test_sanitize_filename():
    assert sanitize_filename("Le Petit Prince (1943).epub") == "Le_Petit_Prince_1943_.epub"
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("Œuvres complètes.EPUB") == "uvres_compl_tes.epub"
    assert sanitize_filename("***") == "book.epub"


def test_generate_output_filename():
    assert generate_output_filename("My Book.epub", "fr") == "My_Book_fr.epub"
    assert generate_output_filename("/library/roman.epub", "pt_br") == "roman_pt_br.epub"


def test_unique_output_path(tmp_path):
    target = tmp_path / "book_fr.epub"
    assert get_unique_output_path(str(target)) == str(target)

    target.write_bytes(b"x")
    (tmp_path / "book_fr (1).epub").write_bytes(b"x")

    assert get_unique_output_path(str(target)) == str(tmp_path / "book_fr (2).epub")


def test_truncate_filename():
    assert truncate_filename("short.epub") == "short.epub"
    truncated = truncate_filename("a" * 80 + ".epub", max_length=20)
    assert len(truncated) == 20
    assert truncated.endswith("....epub")


def test_valid_epub_upload_is_saved(tmp_path):
    handler = SecureFileHandler(tmp_path)

    result = handler.validate_and_save_file(build_epub({"a.xhtml": "<p>A</p>"}), "My Book.epub")

    assert result.is_valid
    assert result.file_path.parent == tmp_path.resolve()
    assert result.file_path.name.endswith("_My_Book.epub")
    assert result.file_path.read_bytes()[:2] == b"PK"
    assert result.warnings == []
    assert not list(tmp_path.glob("*.tmp"))


def test_upload_rejections(tmp_path):
    handler = SecureFileHandler(tmp_path)
    book = build_epub({"a.xhtml": "<p>A</p>"})

    assert not handler.validate_and_save_file(book, "book.pdf").is_valid
    assert not handler.validate_and_save_file(b"", "book.epub").is_valid
    assert not handler.validate_and_save_file(b"not a zip", "book.epub").is_valid
    assert not handler.validate_and_save_file(book, "bad|name.epub").is_valid
    assert list(tmp_path.iterdir()) == []


def test_archive_with_executable_is_rejected(tmp_path):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
        zf.writestr("OEBPS/payload.exe", b"MZ")

    result = SecureFileHandler(tmp_path).validate_and_save_file(buffer.getvalue(), "book.epub")

    assert not result.is_valid
    assert "suspicious" in result.error_message


def test_missing_container_entries_only_warn(tmp_path):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("chapter.xhtml", "<p>A</p>")

    result = SecureFileHandler(tmp_path).validate_and_save_file(buffer.getvalue(), "book.epub")

    assert result.is_valid
    assert result.warnings == ["Missing mimetype file", "Missing META-INF directory"]


def test_rate_limiter_window():
    limiter = RateLimiter(max_requests=2, window_seconds=60)

    assert limiter.is_allowed("10.0.0.1")
    assert limiter.get_remaining_requests("10.0.0.1") == 1
    assert limiter.is_allowed("10.0.0.1")
    assert not limiter.is_allowed("10.0.0.1")
    assert limiter.is_allowed("10.0.0.2")
