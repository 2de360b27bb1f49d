"""
EPUB Stream Translator

Translates EPUB books through a streaming chat-completions service while
preserving their markup.
"""

__version__ = "1.0.0"
