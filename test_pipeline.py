"""
End-to-end tests of the EPUB translation pipeline against a fake streaming service.
"""
import asyncio
import os
import threading

import pytest

from conftest import FakeProvider, build_epub, read_entries
from epub_translator.core.concurrency import CancellationToken
from epub_translator.core.epub import ArchiveError, EpubArchive, EpubTranslationPipeline, translate_epub_file
from epub_translator.core.exceptions import TranslationTransportError
from epub_translator.core.translation_cache import TranslationCache

DOC1 = "<p>Doc1 part A</p><p>Doc1 part B</p><p>Doc1 part C</p>"
DOC2 = "<p>Doc2 part A</p><p>Doc2 part B</p><p>Doc2 part C</p>"
CHAPTERS = {"chapter1.xhtml": DOC1, "chapter2.xhtml": DOC2}


def expected_translation(document):
    return "".join(f"«<p>{block}</p>»" for block in document[3:-4].split("</p><p>"))


def make_pipeline(provider, cache=None, **kwargs):
    options = dict(max_segment_size=20, batch_size=5, max_concurrent_requests=3, max_concurrent_files=2)
    options.update(kwargs)
    return EpubTranslationPipeline(provider, cache=cache if cache is not None else TranslationCache(), **options)


def test_two_documents_are_translated_in_order_within_the_request_bound():
    provider = FakeProvider(delay=0.005)
    pipeline = make_pipeline(provider)

    data = asyncio.run(pipeline.run(EpubArchive.from_bytes(build_epub(CHAPTERS)), "fr"))

    entries = read_entries(data)
    assert entries["OEBPS/Text/chapter1.xhtml"] == expected_translation(DOC1)
    assert entries["OEBPS/Text/chapter2.xhtml"] == expected_translation(DOC2)
    assert len(provider.requests) == 6
    assert provider.max_in_flight == 3
    assert pipeline.metrics.completed_files == 2


def test_output_keeps_epub_container_layout(two_chapter_epub, fake_provider):
    data = asyncio.run(make_pipeline(fake_provider).run(EpubArchive.from_bytes(two_chapter_epub), "pt_br"))

    entries = read_entries(data)
    assert list(entries)[0] == "mimetype"
    assert entries["OEBPS/Styles/style.css"] == "p { margin: 0; }"
    assert "<dc:language>pt-BR</dc:language>" in entries["OEBPS/content.opf"]


def test_progress_is_monotonic_and_ends_at_100(fake_provider):
    reported = []

    asyncio.run(make_pipeline(fake_provider).run(
        EpubArchive.from_bytes(build_epub(CHAPTERS)), "fr", progress_callback=reported.append
    ))

    assert reported[0] == 0.0
    assert reported[-1] == 100.0
    assert reported == sorted(reported)
    assert len(reported) == len(set(reported))
    assert all(0.0 <= value <= 100.0 for value in reported)


def test_second_run_is_served_from_cache():
    cache = TranslationCache()
    asyncio.run(make_pipeline(FakeProvider(), cache).run(EpubArchive.from_bytes(build_epub(CHAPTERS)), "fr"))

    second_provider = FakeProvider()
    pipeline = make_pipeline(second_provider, cache)
    data = asyncio.run(pipeline.run(EpubArchive.from_bytes(build_epub(CHAPTERS)), "fr"))

    assert second_provider.requests == []
    assert pipeline.metrics.cache_hits == 6
    assert read_entries(data)["OEBPS/Text/chapter2.xhtml"] == expected_translation(DOC2)


def test_identical_segments_across_languages_are_translated_separately():
    cache = TranslationCache()
    provider = FakeProvider()
    asyncio.run(make_pipeline(provider, cache).run(EpubArchive.from_bytes(build_epub(CHAPTERS)), "fr"))
    asyncio.run(make_pipeline(provider, cache).run(EpubArchive.from_bytes(build_epub(CHAPTERS)), "de"))

    assert len(provider.requests) == 12


def test_cancellation_during_second_document_skips_write_back_and_repackaging():
    token = CancellationToken()
    provider = FakeProvider(delay=0.005)

    def on_request(content):
        if "Doc2" in content:
            token.cancel()

    provider.on_request = on_request
    archive = EpubArchive.from_bytes(build_epub(CHAPTERS))
    repack_calls = []
    original_repack = archive.repack
    archive.repack = lambda on_progress=None: repack_calls.append(True) or original_repack(on_progress)
    reported = []

    result = asyncio.run(
        make_pipeline(provider, max_concurrent_files=1).run(archive, "fr", reported.append, token)
    )

    assert result is None
    assert repack_calls == []
    assert archive.read_part("OEBPS/Text/chapter1.xhtml") == expected_translation(DOC1)
    assert archive.read_part("OEBPS/Text/chapter2.xhtml") == DOC2
    assert reported[-1] < 100.0


def test_repackaging_runs_off_the_event_loop_thread(fake_provider):
    archive = EpubArchive.from_bytes(build_epub(CHAPTERS))
    repack_threads = []
    original_repack = archive.repack

    def repack(on_progress=None):
        repack_threads.append(threading.get_ident())
        return original_repack(on_progress)

    archive.repack = repack
    reported = []

    data = asyncio.run(make_pipeline(fake_provider).run(archive, "fr", progress_callback=reported.append))

    assert data is not None
    assert repack_threads and repack_threads[0] != threading.get_ident()
    assert reported == sorted(reported)
    assert reported[-1] == 100.0


def test_pipeline_cancel_stops_its_own_run():
    provider = FakeProvider(delay=0.005)
    pipeline = make_pipeline(provider, max_concurrent_files=1)
    provider.on_request = lambda content: pipeline.cancel()

    result = asyncio.run(pipeline.run(EpubArchive.from_bytes(build_epub(CHAPTERS)), "fr"))

    assert result is None
    assert pipeline.metrics.completed_files == 0


def test_unsupported_language_is_rejected(fake_provider):
    with pytest.raises(ValueError):
        asyncio.run(make_pipeline(fake_provider).run(EpubArchive.from_bytes(build_epub(CHAPTERS)), "klingon"))


def test_translate_epub_file_writes_output(tmp_path, fake_provider):
    input_path = tmp_path / "book.epub"
    input_path.write_bytes(build_epub(CHAPTERS))
    output_path = tmp_path / "book_fr.epub"
    events, stats = [], []

    completed = asyncio.run(translate_epub_file(
        str(input_path), str(output_path), "fr",
        provider=fake_provider,
        cache=TranslationCache(),
        log_callback=lambda key, message: events.append(key),
        stats_callback=stats.append,
    ))

    assert completed is True
    assert read_entries(output_path.read_bytes())["OEBPS/Text/chapter1.xhtml"].startswith("«<p>")
    assert not os.path.exists(str(output_path) + ".part")
    assert "epub_save_success" in events
    assert "translation_stats" in events
    assert stats[0]["completed_files"] == 2
    assert not fake_provider.closed


def test_failed_segment_aborts_run_without_output(tmp_path):
    input_path = tmp_path / "book.epub"
    input_path.write_bytes(build_epub(CHAPTERS))
    output_path = tmp_path / "book_fr.epub"
    provider = FakeProvider(fail_on="Doc2 part B")
    events = []

    with pytest.raises(TranslationTransportError):
        asyncio.run(translate_epub_file(
            str(input_path), str(output_path), "fr",
            provider=provider,
            cache=TranslationCache(),
            log_callback=lambda key, message: events.append(key),
        ))

    assert not output_path.exists()
    assert not os.path.exists(str(output_path) + ".part")
    assert "epub_translation_error" in events
    assert provider.in_flight == 0


def test_cancelled_file_translation_writes_nothing(tmp_path):
    input_path = tmp_path / "book.epub"
    input_path.write_bytes(build_epub(CHAPTERS))
    output_path = tmp_path / "book_fr.epub"
    token = CancellationToken()
    provider = FakeProvider(on_request=lambda content: token.cancel())

    completed = asyncio.run(translate_epub_file(
        str(input_path), str(output_path), "fr",
        provider=provider, cache=TranslationCache(), cancellation=token,
    ))

    assert completed is False
    assert not output_path.exists()


def test_invalid_archive_is_reported(tmp_path, fake_provider):
    input_path = tmp_path / "broken.epub"
    input_path.write_bytes(b"this is not a zip file")

    with pytest.raises(ArchiveError):
        asyncio.run(translate_epub_file(
            str(input_path), str(tmp_path / "out.epub"), "fr", provider=fake_provider, cache=TranslationCache()
        ))
