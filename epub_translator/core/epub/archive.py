"""
In-memory EPUB archive.

Holds every entry of the ZIP container in memory so text parts can be
replaced one at a time and the whole book repackaged at the end:

1. Locate the package document (OPF) through META-INF/container.xml
2. List text parts in spine order
3. Read / replace parts
4. Repackage with ``mimetype`` first and uncompressed
"""
import io
import logging
import posixpath
import zipfile
from collections import OrderedDict
from typing import Callable, Dict, List, Optional
from urllib.parse import unquote

from lxml import etree

from epub_translator.config import (
    NAMESPACES, TEXT_PART_MEDIA_TYPES, TEXT_PART_EXTENSIONS,
    ATTRIBUTION_ENABLED, GENERATOR_NAME,
)

logger = logging.getLogger(__name__)

MIMETYPE_ENTRY = 'mimetype'
CONTAINER_ENTRY = 'META-INF/container.xml'


class ArchiveError(Exception):
    """The input is not a readable EPUB (ZIP) archive."""


class EpubArchive:
    """
    Mutable in-memory representation of an EPUB.

    Part identifiers are the entry names inside the archive
    (e.g. ``OEBPS/Text/chapter1.xhtml``).
    """

    def __init__(self, entries: Dict[str, bytes]):
        self._entries: 'OrderedDict[str, bytes]' = OrderedDict(entries)
        self._opf_path: Optional[str] = None
        self._opf_located = False

    @classmethod
    def from_bytes(cls, data: bytes) -> 'EpubArchive':
        """
        Load an archive from raw bytes.

        Raises:
            ArchiveError: If the data is not a ZIP archive
        """
        try:
            with zipfile.ZipFile(io.BytesIO(data), 'r') as zip_ref:
                entries = OrderedDict(
                    (info.filename, zip_ref.read(info))
                    for info in zip_ref.infolist()
                    if not info.is_dir()
                )
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise ArchiveError(f"Not a valid EPUB archive: {e}") from e
        return cls(entries)

    @classmethod
    def from_file(cls, filepath: str) -> 'EpubArchive':
        with open(filepath, 'rb') as f:
            return cls.from_bytes(f.read())

    # === Package document ===

    def _find_opf_path(self) -> Optional[str]:
        if self._opf_located:
            return self._opf_path
        self._opf_located = True

        container = self._entries.get(CONTAINER_ENTRY)
        if container is not None:
            try:
                root = etree.fromstring(container)
                rootfile = root.find('.//container:rootfile', namespaces=NAMESPACES)
                full_path = rootfile.get('full-path') if rootfile is not None else None
                if full_path and full_path in self._entries:
                    self._opf_path = full_path
                    return self._opf_path
            except etree.XMLSyntaxError as e:
                logger.warning("⚠️ Unreadable %s: %s", CONTAINER_ENTRY, e)

        for name in self._entries:
            if name.lower().endswith('.opf'):
                self._opf_path = name
                break
        return self._opf_path

    def _parse_opf(self) -> Optional[etree._Element]:
        opf_path = self._find_opf_path()
        if opf_path is None:
            return None
        try:
            return etree.fromstring(self._entries[opf_path])
        except etree.XMLSyntaxError as e:
            logger.warning("⚠️ Unreadable package document %s: %s", opf_path, e)
            return None

    def _spine_parts(self) -> List[str]:
        opf_root = self._parse_opf()
        if opf_root is None:
            return []
        manifest = opf_root.find('.//opf:manifest', namespaces=NAMESPACES)
        spine = opf_root.find('.//opf:spine', namespaces=NAMESPACES)
        if manifest is None or spine is None:
            return []

        items = {
            item.get('id'): item
            for item in manifest.findall('opf:item', namespaces=NAMESPACES)
        }
        opf_dir = posixpath.dirname(self._opf_path)
        parts = []
        for itemref in spine.findall('opf:itemref', namespaces=NAMESPACES):
            item = items.get(itemref.get('idref'))
            if item is None:
                continue
            href = item.get('href')
            if not href or item.get('media-type') not in TEXT_PART_MEDIA_TYPES:
                continue
            name = posixpath.normpath(posixpath.join(opf_dir, unquote(href.split('#')[0])))
            if name in self._entries and name not in parts:
                parts.append(name)
        return parts

    # === Text parts ===

    def list_text_parts(self) -> List[str]:
        """
        Identifiers of the markup-bearing text parts, in reading order.

        Uses the OPF spine when available, otherwise every .html/.xhtml/.htm
        entry in archive order.
        """
        parts = self._spine_parts()
        if parts:
            return parts
        return [
            name for name in self._entries
            if name.lower().endswith(TEXT_PART_EXTENSIONS)
        ]

    def read_part(self, part_id: str) -> str:
        return self._entries[part_id].decode('utf-8', errors='replace')

    def write_part(self, part_id: str, text: str) -> None:
        if part_id not in self._entries:
            raise KeyError(part_id)
        self._entries[part_id] = text.encode('utf-8')

    # === Metadata ===

    def set_language(self, language_tag: str) -> bool:
        """
        Record the target language in the package metadata.

        Updates ``dc:language`` and, when attribution is enabled, adds the
        translator as a ``dc:contributor``.

        Returns:
            False when the archive has no usable package document
        """
        opf_root = self._parse_opf()
        if opf_root is None:
            return False
        metadata = opf_root.find('.//opf:metadata', namespaces=NAMESPACES)
        if metadata is None:
            return False

        lang_el = metadata.find('dc:language', namespaces=NAMESPACES)
        if lang_el is None:
            lang_el = etree.SubElement(metadata, f"{{{NAMESPACES['dc']}}}language")
        lang_el.text = language_tag

        if ATTRIBUTION_ENABLED:
            contributor_el = etree.SubElement(metadata, f"{{{NAMESPACES['dc']}}}contributor")
            contributor_el.text = GENERATOR_NAME
            contributor_el.set(f"{{{NAMESPACES['opf']}}}role", 'trl')

        self._entries[self._opf_path] = etree.tostring(
            opf_root, encoding='utf-8', xml_declaration=True
        )
        return True

    # === Packaging ===

    def repack(self, on_progress: Optional[Callable[[float], None]] = None) -> bytes:
        """
        Serialize the archive.

        ``mimetype`` is written first and stored uncompressed; every other
        entry is deflated.

        Args:
            on_progress: Receives the repackaging percentage (0-100) after each entry
        """
        names = list(self._entries)
        if MIMETYPE_ENTRY in self._entries:
            names.remove(MIMETYPE_ENTRY)
            names.insert(0, MIMETYPE_ENTRY)

        buffer = io.BytesIO()
        total = len(names)
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED, compresslevel=9) as epub_zip:
            for index, name in enumerate(names):
                if name == MIMETYPE_ENTRY:
                    epub_zip.writestr(name, self._entries[name], compress_type=zipfile.ZIP_STORED)
                else:
                    epub_zip.writestr(name, self._entries[name])
                if on_progress:
                    on_progress((index + 1) / total * 100)

        if on_progress and total == 0:
            on_progress(100.0)
        return buffer.getvalue()
