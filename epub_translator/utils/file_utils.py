"""
File naming helpers for translated outputs.
"""
import os
import re

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]')
_REPEATED_UNDERSCORES = re.compile(r'_+')

DEFAULT_FILENAME = 'book.epub'


def sanitize_filename(filename: str) -> str:
    """
    Make a filename safe for every filesystem.

    Characters other than letters, digits, dots, dashes and underscores become
    underscores, runs of underscores collapse and leading/trailing underscores
    are removed.

    Example:
        >>> sanitize_filename("Le Petit Prince (1943).epub")
        'Le_Petit_Prince_1943_.epub'
    """
    sanitized = _UNSAFE_CHARS.sub('_', os.path.basename(filename or ''))
    sanitized = _REPEATED_UNDERSCORES.sub('_', sanitized).strip('_')
    if sanitized.lower().endswith('.epub'):
        sanitized = sanitized[:-5] + '.epub'
    return sanitized or DEFAULT_FILENAME


def truncate_filename(filename: str, max_length: int = 50) -> str:
    """Shorten a filename for display, keeping its extension."""
    if len(filename) <= max_length:
        return filename
    base, ext = os.path.splitext(filename)
    keep = max(1, max_length - len(ext) - 3)
    return f"{base[:keep]}...{ext}"


def generate_output_filename(input_filename: str, target_language_code: str) -> str:
    """
    Name of the translated book: ``<sanitized name>_<language>.epub``.

    Example:
        >>> generate_output_filename("My Book.epub", "fr")
        'My_Book_fr.epub'
    """
    base, _ = os.path.splitext(sanitize_filename(input_filename))
    return f"{base}_{target_language_code}.epub"


def get_unique_output_path(output_path: str) -> str:
    """
    Return ``output_path``, or a numbered variant when the file already exists.

    Example:
        book_fr.epub -> book_fr (1).epub -> book_fr (2).epub
    """
    if not os.path.exists(output_path):
        return output_path

    base, ext = os.path.splitext(output_path)
    counter = 1
    while True:
        candidate = f"{base} ({counter}){ext}"
        if not os.path.exists(candidate):
            return candidate
        counter += 1
