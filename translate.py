"""
Command-line interface for EPUB translation
"""
import os
import sys
import signal
import argparse
import asyncio
import logging

# Reduce verbosity of httpx (one line per streamed request otherwise)
logging.getLogger('httpx').setLevel(logging.WARNING)

from prompts.prompts import TargetLanguage
from epub_translator.config import (
    API_ENDPOINT, LLM_PROVIDER, DEFAULT_TARGET_LANGUAGE, MAX_SEGMENT_SIZE, TranslationConfig,
)
from epub_translator.core.concurrency import CancellationToken
from epub_translator.core.epub import ArchiveError, translate_epub_file
from epub_translator.core.exceptions import TranslationError
from epub_translator.core.llm.factory import PROVIDER_TYPES
from epub_translator.utils.file_utils import generate_output_filename, get_unique_output_path, truncate_filename
from epub_translator.utils.logger import setup_cli_logger, LogType

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Translate an EPUB book using a streaming LLM API.")
    parser.add_argument("-i", "--input", required=True, help="Path to the input EPUB file.")
    parser.add_argument("-o", "--output", default=None, help="Path to the output file. If not specified, uses input filename with language suffix.")
    parser.add_argument("-tl", "--target_lang", default=DEFAULT_TARGET_LANGUAGE, help=f"Target language code (default: {DEFAULT_TARGET_LANGUAGE}).")
    parser.add_argument("--provider", default=LLM_PROVIDER, choices=PROVIDER_TYPES, help=f"LLM provider (default: {LLM_PROVIDER}).")
    parser.add_argument("-m", "--model", default=None, help="LLM model (default: DEFAULT_MODEL for the configured provider, else the provider's own default).")
    parser.add_argument("--api_endpoint", default=API_ENDPOINT, help="Chat completions endpoint (default: provider endpoint).")
    parser.add_argument("--api_key", default=None, help="API key (default: <PROVIDER>_API_KEY from the environment).")
    parser.add_argument("--max_segment_size", type=int, default=MAX_SEGMENT_SIZE, help=f"Maximum characters per request (default: {MAX_SEGMENT_SIZE}).")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser


async def run_translation(args, config: TranslationConfig, logger, cancellation: CancellationToken) -> bool:
    """Translate ``args.input``; Ctrl+C cancels the run instead of killing it."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancellation.cancel)
    except (NotImplementedError, RuntimeError):
        # Windows: KeyboardInterrupt is handled by main()
        pass

    return await translate_epub_file(
        args.input,
        args.output,
        config.target_language,
        config=config,
        log_callback=logger.create_legacy_callback(),
        progress_callback=logger.update_progress,
        cancellation=cancellation,
    )


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not os.path.isfile(args.input):
        parser.error(f"input file not found: {args.input}")
    try:
        language = TargetLanguage.from_code(args.target_lang)
    except ValueError as e:
        parser.error(str(e))

    if args.output is None:
        args.output = os.path.join(
            os.path.dirname(os.path.abspath(args.input)),
            generate_output_filename(args.input, language.code)
        )
    # Ensure output path is unique (add number suffix if file exists)
    args.output = get_unique_output_path(args.output)

    config = TranslationConfig.from_cli_args(args)
    config.target_language = language.code
    if config.llm_provider in ("deepseek", "mistral") and not config.api_key:
        parser.error(f"--api_key (or {config.llm_provider.upper()}_API_KEY) is required when using {config.llm_provider} provider")

    logger = setup_cli_logger(enable_colors=not args.no_color, debug=args.debug)
    logger.info("Translation Started", LogType.TRANSLATION_START, {
        'target_lang': language.display_name,
        'model': config.model,
        'llm_provider': config.llm_provider,
        'input_file': truncate_filename(os.path.basename(args.input)),
        'output_file': args.output,
    })

    cancellation = CancellationToken()
    try:
        completed = asyncio.run(run_translation(args, config, logger, cancellation))
    except KeyboardInterrupt:
        cancellation.cancel()
        completed = False
    except (TranslationError, ArchiveError, OSError) as e:
        logger.error(f"Translation failed: {e}", LogType.ERROR_DETAIL, {
            'details': str(e),
            'input_file': args.input
        })
        return EXIT_FAILURE

    if not completed:
        logger.warning("🛑 Translation interrupted - no output written")
        return EXIT_INTERRUPTED

    logger.info("Translation Completed Successfully", LogType.TRANSLATION_END, {
        'output_file': args.output
    })
    return 0


if __name__ == "__main__":
    sys.exit(main())
