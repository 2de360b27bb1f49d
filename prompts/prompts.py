from enum import Enum
from typing import List, Dict


# ============================================================================
# SHARED PROMPT SECTIONS
# ============================================================================

BASE_TRANSLATOR_PROMPT = (
    "You are a professional translator with expertise in accurate and context-aware translations. "
    "Translate the following text to {language}, maintaining the original HTML formatting and "
    "paragraph structure. Preserve all HTML tags exactly as they appear. Ensure the translation is "
    "accurate, fluent, and culturally appropriate, reflecting the intended meaning of the original text."
)


class TargetLanguage(Enum):
    """
    Supported target languages.

    Each entry carries (code, display name, language name used in the prompt,
    extra instructions appended to the system prompt). Adding a language only
    requires a new entry here.
    """
    EN = ('en', 'English (UK)', 'English (UK)',
          'Use British English spelling and vocabulary (e.g., "colour" instead of "color", '
          '"flat" instead of "apartment").')
    EN_US = ('en_us', 'English (US)', 'American English',
             'Use American English spelling and vocabulary (e.g., "color" instead of "colour", '
             '"apartment" instead of "flat").')
    FR = ('fr', 'French', 'French', '')
    NL = ('nl', 'Dutch', 'Dutch', '')
    DE = ('de', 'German', 'German', '')
    IT = ('it', 'Italian', 'Italian', '')
    PL = ('pl', 'Polish', 'Polish', '')
    PT_BR = ('pt_br', 'Portuguese (Brazilian)', 'Brazilian Portuguese',
             'Use Brazilian Portuguese vocabulary and expressions.')
    PT_PT = ('pt_pt', 'Portuguese (European)', 'European Portuguese', '')
    RO = ('ro', 'Romanian', 'Romanian', '')
    ES = ('es', 'Spanish', 'Spanish', '')
    SV = ('sv', 'Swedish', 'Swedish', '')

    def __init__(self, code: str, display_name: str, prompt_name: str, extra_instructions: str):
        self.code = code
        self.display_name = display_name
        self.prompt_name = prompt_name
        self.extra_instructions = extra_instructions

    @property
    def system_prompt(self) -> str:
        """Canonical system instruction sent with every segment."""
        prompt = BASE_TRANSLATOR_PROMPT.format(language=self.prompt_name)
        if self.extra_instructions:
            prompt = f"{prompt} {self.extra_instructions}"
        return prompt

    @property
    def language_tag(self) -> str:
        """BCP 47 style tag for EPUB metadata (pt_br -> pt-BR)."""
        parts = self.code.split('_')
        if len(parts) == 1:
            return parts[0]
        return f"{parts[0]}-{parts[1].upper()}"

    @classmethod
    def from_code(cls, value) -> 'TargetLanguage':
        """
        Resolve a language from its code, enum name or display name.

        Args:
            value: 'fr', 'pt-BR', 'PT_BR', 'French', or a TargetLanguage

        Raises:
            ValueError: If the value does not name a supported language
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Unsupported target language: {value!r}")

        normalized = value.strip().lower().replace('-', '_')
        for language in cls:
            if normalized in (language.code, language.name.lower(), language.display_name.lower()):
                return language
        supported = ', '.join(language.code for language in cls)
        raise ValueError(f"Unsupported target language: {value!r}. Supported: {supported}")


def get_language_choices() -> List[Dict[str, str]]:
    """Languages as plain dicts for the CLI help and the web API."""
    return [{'code': language.code, 'name': language.display_name} for language in TargetLanguage]
