"""
Thread-safe state of web translation jobs
"""
import copy
import threading
import time
import uuid
from typing import Any, Dict, List, Optional

from epub_translator.core.concurrency import CancellationToken

# Job statuses
STATUS_QUEUED = 'queued'
STATUS_RUNNING = 'running'
STATUS_COMPLETED = 'completed'
STATUS_INTERRUPTED = 'interrupted'
STATUS_ERROR = 'error'

FINAL_STATUSES = {STATUS_COMPLETED, STATUS_INTERRUPTED, STATUS_ERROR}

# Fields never returned to API clients
_PRIVATE_FIELDS = {'logs', 'input_filepath', 'output_filepath'}


class TranslationStateManager:
    """
    In-memory registry of translation jobs.

    Each job is a plain dict of fields plus its cancellation token. All access
    goes through a lock because jobs are updated from worker threads while
    request threads read them.
    """

    def __init__(self, max_logs_per_job: int = 500):
        self._translations: Dict[str, Dict[str, Any]] = {}
        self._tokens: Dict[str, CancellationToken] = {}
        self._lock = threading.RLock()
        self.max_logs_per_job = max_logs_per_job
        self.server_session_id = int(time.time())

    def create_translation(self, config: Dict[str, Any], translation_id: Optional[str] = None) -> str:
        """Register a new queued job and return its id"""
        translation_id = translation_id or f"trans_{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._translations[translation_id] = {
                'translation_id': translation_id,
                'status': STATUS_QUEUED,
                'progress': 0.0,
                'error': None,
                'interrupted': False,
                'logs': [],
                'stats': {},
                'created_at': time.time(),
                'config': dict(config),
                'output_filename': config.get('output_filename'),
                'output_filepath': None,
                'input_filepath': config.get('file_path'),
            }
            self._tokens[translation_id] = CancellationToken()
        return translation_id

    def exists(self, translation_id: str) -> bool:
        with self._lock:
            return translation_id in self._translations

    def get_translation(self, translation_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of a job's fields, or None"""
        with self._lock:
            translation = self._translations.get(translation_id)
            return copy.deepcopy(translation) if translation is not None else None

    def get_public_status(self, translation_id: str) -> Optional[Dict[str, Any]]:
        """Job fields safe to return to API clients"""
        with self._lock:
            translation = self._translations.get(translation_id)
            if translation is None:
                return None
            public = {
                key: copy.deepcopy(value)
                for key, value in translation.items()
                if key not in _PRIVATE_FIELDS and key != 'config'
            }
            public['target_language'] = translation['config'].get('target_language')
            public['input_filename'] = translation['config'].get('input_filename')
            public['recent_logs'] = [entry['message'] for entry in translation['logs'][-20:]]
            return public

    def get_translation_field(self, translation_id: str, field: str) -> Any:
        with self._lock:
            translation = self._translations.get(translation_id)
            return translation.get(field) if translation is not None else None

    def set_translation_field(self, translation_id: str, field: str, value: Any) -> None:
        with self._lock:
            if translation_id in self._translations:
                self._translations[translation_id][field] = value

    def update_progress(self, translation_id: str, progress: float) -> None:
        """Store job progress, never lowering it"""
        with self._lock:
            translation = self._translations.get(translation_id)
            if translation is not None and progress > translation['progress']:
                translation['progress'] = progress

    def update_stats(self, translation_id: str, stats: Dict[str, Any]) -> None:
        with self._lock:
            translation = self._translations.get(translation_id)
            if translation is not None:
                translation['stats'].update(stats)

    def append_log(self, translation_id: str, entry: Dict[str, Any]) -> None:
        with self._lock:
            translation = self._translations.get(translation_id)
            if translation is None:
                return
            logs: List[Dict[str, Any]] = translation['logs']
            logs.append(entry)
            if len(logs) > self.max_logs_per_job:
                del logs[:len(logs) - self.max_logs_per_job]

    def get_cancellation_token(self, translation_id: str) -> Optional[CancellationToken]:
        with self._lock:
            return self._tokens.get(translation_id)

    def interrupt(self, translation_id: str) -> bool:
        """
        Request cancellation of a job.

        Idempotent; interrupting a finished job has no effect.

        Returns:
            False when the job does not exist
        """
        with self._lock:
            translation = self._translations.get(translation_id)
            if translation is None:
                return False
            if translation['status'] in FINAL_STATUSES:
                return True
            translation['interrupted'] = True
            token = self._tokens[translation_id]
        token.cancel()
        return True

    def get_all_translations(self) -> List[Dict[str, Any]]:
        with self._lock:
            ids = list(self._translations)
        return [status for status in (self.get_public_status(tid) for tid in ids) if status]


_state_manager: Optional[TranslationStateManager] = None
_state_manager_lock = threading.Lock()


def get_state_manager() -> TranslationStateManager:
    """Return the process-wide state manager"""
    global _state_manager
    with _state_manager_lock:
        if _state_manager is None:
            _state_manager = TranslationStateManager()
        return _state_manager
