"""
Tests for the in-memory EPUB archive.
"""
import io
import zipfile

import pytest

from conftest import build_epub, read_entries
from epub_translator.core.epub.archive import ArchiveError, EpubArchive


def test_text_parts_follow_spine_order():
    data = build_epub(
        {"a.xhtml": "<p>A</p>", "b.xhtml": "<p>B</p>", "c.xhtml": "<p>C</p>"},
        spine_order=["c.xhtml", "a.xhtml", "b.xhtml"],
    )

    parts = EpubArchive.from_bytes(data).list_text_parts()

    assert parts == ["OEBPS/Text/c.xhtml", "OEBPS/Text/a.xhtml", "OEBPS/Text/b.xhtml"]


def test_text_parts_fall_back_to_extensions_without_package_document():
    data = build_epub({"one.html": "<p>1</p>", "two.xhtml": "<p>2</p>"}, with_opf=False)

    parts = EpubArchive.from_bytes(data).list_text_parts()

    assert parts == ["OEBPS/Text/one.html", "OEBPS/Text/two.xhtml"]


def test_archive_can_be_loaded_from_disk(tmp_path):
    path = tmp_path / "book.epub"
    path.write_bytes(build_epub({"a.xhtml": "<p>A</p>"}))

    assert EpubArchive.from_file(str(path)).list_text_parts() == ["OEBPS/Text/a.xhtml"]


def test_read_and_write_parts():
    archive = EpubArchive.from_bytes(build_epub({"a.xhtml": "<p>Café</p>"}))

    assert archive.read_part("OEBPS/Text/a.xhtml") == "<p>Café</p>"
    archive.write_part("OEBPS/Text/a.xhtml", "<p>Kaffee</p>")
    assert archive.read_part("OEBPS/Text/a.xhtml") == "<p>Kaffee</p>"

    with pytest.raises(KeyError):
        archive.write_part("OEBPS/Text/missing.xhtml", "<p>?</p>")


def test_set_language_updates_metadata():
    archive = EpubArchive.from_bytes(build_epub({"a.xhtml": "<p>A</p>"}))

    assert archive.set_language("fr") is True

    opf = read_entries(archive.repack())["OEBPS/content.opf"]
    assert "<dc:language>fr</dc:language>" in opf
    assert "<dc:language>en</dc:language>" not in opf
    assert "EPUB Stream Translator" in opf


def test_set_language_without_package_document_is_a_no_op():
    archive = EpubArchive.from_bytes(build_epub({"a.xhtml": "<p>A</p>"}, with_opf=False))

    assert archive.set_language("fr") is False


def test_repack_writes_uncompressed_mimetype_first():
    archive = EpubArchive({
        "OEBPS/Text/a.xhtml": b"<p>A</p>",
        "mimetype": b"application/epub+zip",
    })
    reported = []

    data = archive.repack(on_progress=reported.append)

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        infos = zf.infolist()
        assert infos[0].filename == "mimetype"
        assert infos[0].compress_type == zipfile.ZIP_STORED
        assert infos[1].compress_type == zipfile.ZIP_DEFLATED
    assert reported == [50.0, 100.0]


def test_repack_of_empty_archive_reports_completion():
    reported = []

    EpubArchive({}).repack(on_progress=reported.append)

    assert reported == [100.0]


def test_invalid_data_raises_archive_error():
    with pytest.raises(ArchiveError):
        EpubArchive.from_bytes(b"definitely not a zip")
