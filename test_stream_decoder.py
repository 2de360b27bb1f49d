"""
Tests for incremental SSE decoding of streamed translations.
"""
import asyncio

from conftest import FakeStreamResponse, split_bytes, sse_body
from epub_translator.config import PROGRESS_THRESHOLD
from epub_translator.core.concurrency import CancellationToken
from epub_translator.core.llm.stream_decoder import StreamDecoder, decode_response, extract_delta_text
from epub_translator.core.progress_tracker import UnitProgress

BONJOUR_STREAM = (
    b'data: {"choices":[{"delta":{"content":"Bon"}}]}\n'
    b'data: {"choices":[{"delta":{"content":"jour"}}]}\n'
    b'data: [DONE]\n'
)


def test_decodes_deltas_until_done():
    decoder = StreamDecoder(total_chars=7)
    decoder.feed(BONJOUR_STREAM)
    decoder.finish()

    assert decoder.text == "Bonjour"
    assert decoder.done


def test_records_split_across_reads_at_every_offset():
    for size in range(1, 12):
        decoder = StreamDecoder(total_chars=7)
        for chunk in split_bytes(BONJOUR_STREAM, size):
            decoder.feed(chunk)
        decoder.finish()
        assert decoder.text == "Bonjour", f"failed for read size {size}"


def test_multibyte_characters_split_between_reads():
    body = sse_body("Éléphant « noir » 日本語", pieces=4)
    decoder = StreamDecoder(total_chars=20)
    for chunk in split_bytes(body, 1):
        decoder.feed(chunk)
    decoder.finish()

    assert decoder.text == "Éléphant « noir » 日本語"


def test_malformed_records_are_skipped():
    stream = (
        b'data: {"choices":[{"delta":{"content":"Bon"}}]}\n'
        b'data: {not json\n'
        b'data: {"choices":[{"delta":{"content":"jour"}}]}\n'
        b'data: [DONE]\n'
    )
    decoder = StreamDecoder(total_chars=7)
    decoder.feed(stream)

    assert decoder.text == "Bonjour"
    assert decoder.malformed_records == 1


def test_non_data_lines_and_records_without_content_are_ignored():
    stream = (
        b': keep-alive\n'
        b'event: message\n'
        b'\n'
        b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n'
        b'data: {"choices":[]}\n'
        b'data: {"choices":[{"delta":{"content":"Salut"}}]}\n'
    )
    decoder = StreamDecoder(total_chars=5)
    decoder.feed(stream)
    decoder.finish()

    assert decoder.text == "Salut"
    assert decoder.malformed_records == 0


def test_records_after_done_are_ignored():
    decoder = StreamDecoder(total_chars=7)
    decoder.feed(BONJOUR_STREAM + b'data: {"choices":[{"delta":{"content":"!!!"}}]}\n')
    decoder.feed(b'data: {"choices":[{"delta":{"content":"more"}}]}\n')

    assert decoder.text == "Bonjour"


def test_final_record_without_newline_is_flushed_by_finish():
    decoder = StreamDecoder(total_chars=7)
    decoder.feed(b'data: {"choices":[{"delta":{"content":"Bonjour"}}]}')

    assert decoder.text == ""
    decoder.finish()
    assert decoder.text == "Bonjour"


def test_progress_stays_below_slice_end_until_finish():
    reported = []
    unit = UnitProgress(base=10.0, next=20.0)
    decoder = StreamDecoder(total_chars=3, unit_progress=unit, on_progress=reported.append)

    # Translation longer than the source: estimate is capped
    decoder.feed(sse_body("Bonjour tout le monde", pieces=5))
    assert reported
    assert max(reported) <= 10.0 + PROGRESS_THRESHOLD * 10.0
    assert reported == sorted(reported)

    decoder.finish()
    decoder.finish()
    assert reported[-1] == 20.0
    assert reported.count(20.0) == 1


def test_extract_delta_text_tolerates_unexpected_shapes():
    assert extract_delta_text({"choices": [{"delta": {"content": "x"}}]}) == "x"
    assert extract_delta_text({"choices": [{"delta": {"content": None}}]}) == ""
    assert extract_delta_text({"choices": "nope"}) == ""
    assert extract_delta_text(["not", "a", "dict"]) == ""


def test_decode_response_reads_to_end():
    response = FakeStreamResponse(split_bytes(BONJOUR_STREAM, 5))
    decoder = StreamDecoder(total_chars=7)

    text = asyncio.run(decode_response(response, decoder))

    assert text == "Bonjour"
    assert decoder.finished


def test_decode_response_stops_and_closes_on_cancellation():
    async def scenario():
        token = CancellationToken()
        body = sse_body("Bonjour le monde", pieces=8)
        response = FakeStreamResponse(split_bytes(body, 10), delay=0.05)
        decoder = StreamDecoder(total_chars=16)

        async def cancel_soon():
            await asyncio.sleep(0.08)
            token.cancel()

        canceller = asyncio.ensure_future(cancel_soon())
        text = await decode_response(response, decoder, token)
        await canceller
        return text, response, decoder

    text, response, decoder = asyncio.run(scenario())

    assert text == ""
    assert response.closed
    assert not decoder.finished


def test_decode_response_with_cancelled_token_reads_nothing():
    async def scenario():
        token = CancellationToken()
        token.cancel()
        response = FakeStreamResponse([BONJOUR_STREAM])
        decoder = StreamDecoder(total_chars=7)
        return await decode_response(response, decoder, token), response, decoder

    text, response, decoder = asyncio.run(scenario())

    assert text == ""
    assert response.closed
    assert decoder.text == ""
