"""
Shared fakes for the test suite: a streaming translation service and an EPUB builder.
"""
import asyncio
import io
import json
import zipfile

import pytest

from epub_translator.core.exceptions import TranslationTransportError


def sse_body(text, pieces=3, done=True):
    """Encode ``text`` as chat-completion SSE records split into ``pieces`` deltas."""
    size = max(1, -(-len(text) // pieces))
    records = [
        "data: " + json.dumps({"choices": [{"delta": {"content": text[i:i + size]}}]}, ensure_ascii=False)
        for i in range(0, len(text), size)
    ]
    if done:
        records.append("data: [DONE]")
    return ("\n".join(records) + "\n").encode("utf-8")


def split_bytes(data, size):
    return [data[i:i + size] for i in range(0, len(data), size)]


class FakeStreamResponse:
    """Mimics the parts of httpx.Response used by the stream decoder."""

    def __init__(self, chunks, delay=0.0, on_close=None):
        self.chunks = list(chunks)
        self.delay = delay
        self.closed = False
        self._on_close = on_close

    async def aiter_bytes(self):
        for chunk in self.chunks:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk

    async def aclose(self):
        if self.closed:
            return
        self.closed = True
        if self._on_close:
            self._on_close()


class FakeProvider:
    """
    In-process streaming translation service.

    Translates by wrapping the content in guillemets, streams the answer in
    small byte chunks and records request concurrency.
    """

    name = "fake"

    def __init__(self, translate=None, delay=0.001, chunk_size=7, fail_on=None, on_request=None):
        self.translate = translate or (lambda content: f"«{content}»")
        self.delay = delay
        self.chunk_size = chunk_size
        self.fail_on = fail_on
        self.on_request = on_request
        self.requests = []
        self.system_prompts = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def open_stream(self, system_prompt, content):
        self.requests.append(content)
        self.system_prompts.append(system_prompt)
        await asyncio.sleep(self.delay)
        if self.fail_on is not None and self.fail_on in content:
            raise TranslationTransportError("Translation service error (HTTP 500 Internal Server Error)", 500)

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self.on_request:
            self.on_request(content)

        def release():
            self.in_flight -= 1

        body = sse_body(self.translate(content))
        return FakeStreamResponse(split_bytes(body, self.chunk_size), self.delay, on_close=release)

    async def close(self):
        self.closed = True


CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""


def build_opf(chapter_names, language="en"):
    manifest = "\n".join(
        f'    <item id="ch{i}" href="Text/{name}" media-type="application/xhtml+xml"/>'
        for i, name in enumerate(chapter_names)
    )
    spine = "\n".join(f'    <itemref idref="ch{i}"/>' for i in range(len(chapter_names)))
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="id">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>Test Book</dc:title>
    <dc:language>{language}</dc:language>
  </metadata>
  <manifest>
    <item id="css" href="Styles/style.css" media-type="text/css"/>
{manifest}
  </manifest>
  <spine>
{spine}
  </spine>
</package>
"""


def build_epub(chapters, spine_order=None, with_opf=True):
    """
    Build an EPUB in memory.

    Args:
        chapters: Mapping of chapter file name to markup, stored under OEBPS/Text/
        spine_order: Chapter names in reading order (defaults to ``chapters`` order)
        with_opf: Include META-INF/container.xml and the package document
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED)
        if with_opf:
            zf.writestr("META-INF/container.xml", CONTAINER_XML)
            zf.writestr("OEBPS/content.opf", build_opf(spine_order or list(chapters)))
        zf.writestr("OEBPS/Styles/style.css", "p { margin: 0; }")
        for name, markup in chapters.items():
            zf.writestr(f"OEBPS/Text/{name}", markup)
    return buffer.getvalue()


def read_entries(data):
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return {name: zf.read(name).decode("utf-8") for name in zf.namelist()}


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def two_chapter_epub():
    return build_epub({
        "chapter1.xhtml": "<html><body><p>Hello</p><p>World</p></body></html>",
        "chapter2.xhtml": "<html><body><h1>Title</h1><p>Goodbye</p></body></html>",
    })
