"""
EPUB archive handling and translation pipeline.
"""
from .archive import ArchiveError, EpubArchive
from .translator import EpubTranslationPipeline, translate_epub_file

__all__ = [
    'ArchiveError',
    'EpubArchive',
    'EpubTranslationPipeline',
    'translate_epub_file',
]
