"""
Translation job handlers and processing logic
"""
import os
import time
import asyncio
import logging
import threading
import traceback
from typing import Callable, Optional

from epub_translator.config import TranslationConfig
from epub_translator.core.epub import ArchiveError, translate_epub_file
from epub_translator.core.exceptions import TranslationError
from epub_translator.core.llm.base import LLMProvider
from epub_translator.core.llm.factory import create_provider_from_config
from epub_translator.core.translation_cache import TranslationCache
from epub_translator.utils.file_utils import get_unique_output_path
from epub_translator.utils.logger import setup_web_logger, LogType
from .translation_state import (
    TranslationStateManager,
    STATUS_RUNNING, STATUS_COMPLETED, STATUS_INTERRUPTED, STATUS_ERROR,
)

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[TranslationConfig], LLMProvider]


def run_translation_async_wrapper(translation_id, state_manager, output_dir,
                                  provider_factory=None, cache=None):
    """
    Run a translation job on a private event loop (worker thread entry point)

    Args:
        translation_id (str): Translation job ID
        state_manager: State manager instance
        output_dir (str): Output directory path
        provider_factory: Optional callable building the provider from a TranslationConfig
        cache: Optional translation cache shared by all jobs
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        loop.run_until_complete(
            perform_actual_translation(translation_id, state_manager, output_dir, provider_factory, cache)
        )
    except Exception as e:
        error_msg = f"Uncaught major error in translation wrapper {translation_id}: {e}"
        logger.error(error_msg)
        if state_manager.exists(translation_id):
            state_manager.set_translation_field(translation_id, 'status', STATUS_ERROR)
            state_manager.set_translation_field(translation_id, 'error', error_msg)
    finally:
        asyncio.set_event_loop(None)
        loop.close()


async def perform_actual_translation(translation_id: str, state_manager: TranslationStateManager,
                                     output_dir: str,
                                     provider_factory: Optional[ProviderFactory] = None,
                                     cache: Optional[TranslationCache] = None) -> None:
    """
    Perform the actual translation job

    Args:
        translation_id (str): Translation job ID
        state_manager: State manager instance
        output_dir (str): Output directory path
        provider_factory: Optional callable building the provider from a TranslationConfig
        cache: Optional translation cache shared by all jobs
    """
    if not state_manager.exists(translation_id):
        return

    job_config = state_manager.get_translation_field(translation_id, 'config')
    cancellation = state_manager.get_cancellation_token(translation_id)

    web_logger = setup_web_logger(lambda entry: state_manager.append_log(translation_id, entry))
    log_callback = web_logger.create_legacy_callback()

    def progress_callback(progress: float):
        state_manager.update_progress(translation_id, progress)

    def stats_callback(stats: dict):
        state_manager.update_stats(translation_id, stats)

    state_manager.set_translation_field(translation_id, 'status', STATUS_RUNNING)
    start_time = time.time()
    input_filepath = job_config.get('file_path')

    try:
        config = TranslationConfig.from_web_request(job_config)
        logger.debug("Job %s configuration: %s", translation_id, config.to_dict())

        output_filepath = get_unique_output_path(os.path.join(output_dir, job_config['output_filename']))
        actual_output_filename = os.path.basename(output_filepath)
        if actual_output_filename != job_config['output_filename']:
            log_callback("output_filename_modified",
                         f"ℹ️ Output filename modified to avoid overwriting: "
                         f"{job_config['output_filename']} → {actual_output_filename}")
        state_manager.set_translation_field(translation_id, 'output_filename', actual_output_filename)

        web_logger.info("Translation Started", LogType.TRANSLATION_START, {
            'target_lang': config.target_language,
            'model': config.model,
            'provider': config.llm_provider,
            'translation_id': translation_id,
            'output_file': actual_output_filename,
        })

        if provider_factory is not None:
            provider = provider_factory(config)
        else:
            provider = create_provider_from_config(config, log_callback=log_callback)

        try:
            completed = await translate_epub_file(
                input_filepath,
                output_filepath,
                config.target_language,
                provider=provider,
                config=config,
                cache=cache,
                log_callback=log_callback,
                progress_callback=progress_callback,
                cancellation=cancellation,
                stats_callback=stats_callback,
            )
        finally:
            await provider.close()

        elapsed_time = time.time() - start_time
        state_manager.update_stats(translation_id, {'elapsed_time': elapsed_time})
        if completed:
            state_manager.set_translation_field(translation_id, 'output_filepath', output_filepath)
            state_manager.update_progress(translation_id, 100.0)
            state_manager.set_translation_field(translation_id, 'status', STATUS_COMPLETED)
            log_callback("summary_completed", f"✅ Translation completed in {elapsed_time:.2f}s")
        else:
            state_manager.set_translation_field(translation_id, 'status', STATUS_INTERRUPTED)
            log_callback("summary_interrupted", f"🛑 Translation interrupted - no output written ({elapsed_time:.2f}s)")

    except (TranslationError, ArchiveError, ValueError) as e:
        state_manager.set_translation_field(translation_id, 'status', STATUS_ERROR)
        state_manager.set_translation_field(translation_id, 'error', str(e))
        log_callback("summary_error_final", f"❌ Translation failed: {e}")

    except Exception as e:
        critical_error_msg = f"Critical error during translation task ({translation_id}): {e}"
        log_callback("critical_error_perform_task", critical_error_msg)
        log_callback("critical_error_perform_task_traceback", traceback.format_exc())
        state_manager.set_translation_field(translation_id, 'status', STATUS_ERROR)
        state_manager.set_translation_field(translation_id, 'error', critical_error_msg)

    finally:
        _cleanup_upload(input_filepath, log_callback)


def _cleanup_upload(input_filepath: Optional[str], log_callback: Callable) -> None:
    """Delete the uploaded source file once the job has ended"""
    if not input_filepath or not os.path.exists(input_filepath):
        return
    try:
        os.remove(input_filepath)
    except OSError as e:
        log_callback("cleanup_warning", f"⚠️ Could not delete uploaded file {os.path.basename(input_filepath)}: {e}")


def start_translation_job(translation_id, state_manager, output_dir,
                          provider_factory=None, cache=None) -> threading.Thread:
    """
    Start a translation job in a separate thread

    Args:
        translation_id (str): Translation job ID
        state_manager: State manager instance
        output_dir (str): Output directory path
        provider_factory: Optional callable building the provider from a TranslationConfig
        cache: Optional translation cache shared by all jobs

    Returns:
        The started worker thread
    """
    thread = threading.Thread(
        target=run_translation_async_wrapper,
        args=(translation_id, state_manager, output_dir, provider_factory, cache),
        name=f"translation-{translation_id}",
    )
    thread.daemon = True
    thread.start()
    return thread
