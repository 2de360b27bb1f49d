"""
Security utilities for uploaded EPUB files
"""
import os
import re
import secrets
import threading
import time
import logging
import zipfile
from pathlib import Path
from typing import Dict, List, Optional
from dataclasses import dataclass, field

from epub_translator.utils.file_utils import sanitize_filename, truncate_filename

logger = logging.getLogger(__name__)


class SecurityError(Exception):
    """Custom exception for security-related errors"""
    pass


@dataclass
class FileValidationResult:
    """Result of file validation"""
    is_valid: bool
    file_path: Optional[Path] = None
    error_message: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class SecureFileHandler:
    """Secure EPUB upload and validation handler"""

    ALLOWED_EXTENSIONS = {'.epub'}

    # Maximum file size (100MB)
    MAX_FILE_SIZE: int = 100 * 1024 * 1024

    # Entries above this count are treated as a zip bomb
    MAX_ARCHIVE_ENTRIES: int = 10000

    # Entries never expected inside a book
    SUSPICIOUS_EXTENSIONS = {'.exe', '.bat', '.cmd', '.scr', '.com', '.pif', '.jar', '.sh', '.ps1', '.dll'}

    def __init__(self, upload_dir: Path):
        """
        Initialize secure file handler

        Args:
            upload_dir: Directory where uploaded files will be stored
        """
        self.upload_dir = Path(upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def validate_and_save_file(self, file_data: bytes, original_filename: str) -> FileValidationResult:
        """
        Validate and securely save an uploaded EPUB

        Args:
            file_data: Raw file data
            original_filename: Original filename from upload

        Returns:
            FileValidationResult with validation status and secure file path
        """
        validation_result = self._validate_filename(original_filename)
        if not validation_result.is_valid:
            return validation_result

        if not file_data:
            return FileValidationResult(is_valid=False, error_message="Uploaded file is empty")

        if len(file_data) > self.MAX_FILE_SIZE:
            return FileValidationResult(
                is_valid=False,
                error_message=f"File too large: {len(file_data)/1024/1024:.1f}MB. Maximum allowed: {self.MAX_FILE_SIZE/1024/1024:.0f}MB"
            )

        try:
            secure_path = self._get_secure_path(self._create_secure_filename(original_filename))
        except SecurityError as e:
            return FileValidationResult(is_valid=False, error_message=str(e))

        # Validate from a temporary file, then move it into place
        temp_path = secure_path.with_suffix(secure_path.suffix + '.tmp')
        with open(temp_path, 'wb') as f:
            f.write(file_data)

        content_validation = self._validate_epub_file(temp_path)
        if not content_validation.is_valid:
            self._cleanup_temp_file(temp_path)
            return content_validation

        temp_path.replace(secure_path)
        return FileValidationResult(
            is_valid=True,
            file_path=secure_path,
            warnings=content_validation.warnings
        )

    def _validate_filename(self, filename: str) -> FileValidationResult:
        """Validate filename format and extension"""
        if not filename or not filename.strip():
            return FileValidationResult(is_valid=False, error_message="Filename cannot be empty")

        # Remove any path components
        clean_filename = os.path.basename(filename.strip())
        if not clean_filename:
            return FileValidationResult(is_valid=False, error_message="Invalid filename")

        file_ext = Path(clean_filename).suffix.lower()
        if file_ext not in self.ALLOWED_EXTENSIONS:
            return FileValidationResult(
                is_valid=False,
                error_message=f"File type '{file_ext or '(none)'}' not allowed. Only EPUB files can be translated."
            )

        if re.search(r'[<>:"|?*\x00-\x1f]', clean_filename):
            return FileValidationResult(is_valid=False, error_message="Filename contains invalid characters")

        if len(clean_filename) > 255:
            return FileValidationResult(is_valid=False, error_message="Filename too long")

        return FileValidationResult(is_valid=True)

    def _create_secure_filename(self, original_filename: str) -> str:
        """Unique, sanitized upload name: ``<random hex>_<sanitized name>``"""
        sanitized = truncate_filename(sanitize_filename(original_filename.strip()), max_length=100)
        return f"{secrets.token_hex(8)}_{sanitized}"

    def _get_secure_path(self, filename: str) -> Path:
        """Get secure file path within upload directory"""
        resolved_path = (self.upload_dir / filename).resolve()
        upload_dir_resolved = self.upload_dir.resolve()

        if resolved_path.parent != upload_dir_resolved:
            raise SecurityError("Path traversal attempt detected")

        return resolved_path

    def _validate_epub_file(self, file_path: Path) -> FileValidationResult:
        """Validate EPUB container structure"""
        warnings = []

        if not zipfile.is_zipfile(file_path):
            return FileValidationResult(
                is_valid=False,
                error_message="EPUB file is not a valid ZIP archive"
            )

        try:
            with zipfile.ZipFile(file_path, 'r') as epub_zip:
                file_list = epub_zip.namelist()
        except zipfile.BadZipFile as e:
            return FileValidationResult(is_valid=False, error_message=f"EPUB validation failed: {e}")

        if len(file_list) > self.MAX_ARCHIVE_ENTRIES:
            return FileValidationResult(
                is_valid=False,
                error_message="EPUB contains too many files (potential zip bomb)"
            )

        for file_name in file_list:
            if Path(file_name).suffix.lower() in self.SUSPICIOUS_EXTENSIONS:
                return FileValidationResult(
                    is_valid=False,
                    error_message=f"EPUB contains suspicious file: {file_name}"
                )

        if 'mimetype' not in file_list:
            warnings.append("Missing mimetype file")
        if not any(name.startswith('META-INF/') for name in file_list):
            warnings.append("Missing META-INF directory")

        return FileValidationResult(is_valid=True, warnings=warnings)

    def _cleanup_temp_file(self, temp_path: Path) -> None:
        """Remove a temporary file, logging failures"""
        if not temp_path.exists():
            return
        try:
            temp_path.unlink()
        except OSError as e:
            logger.warning(f"Could not delete temporary file {temp_path.name}: {e}")


class RateLimiter:
    """Simple in-memory sliding window rate limiter"""

    def __init__(self, max_requests: int = 10, window_seconds: int = 60):
        self._requests: Dict[str, List[float]] = {}
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._lock = threading.Lock()

    def is_allowed(self, client_ip: str) -> bool:
        """Check if request is allowed for this IP (and count it when it is)"""
        current_time = time.time()
        window_start = current_time - self._window_seconds

        with self._lock:
            recent = [t for t in self._requests.get(client_ip, []) if t > window_start]
            if len(recent) >= self._max_requests:
                self._requests[client_ip] = recent
                return False
            recent.append(current_time)
            self._requests[client_ip] = recent
            return True

    def get_remaining_requests(self, client_ip: str) -> int:
        with self._lock:
            return max(0, self._max_requests - len(self._requests.get(client_ip, [])))


def get_client_ip(request) -> str:
    """Get client IP address from Flask request"""
    if 'X-Forwarded-For' in request.headers:
        return request.headers['X-Forwarded-For'].split(',')[0].strip()
    if 'X-Real-IP' in request.headers:
        return request.headers['X-Real-IP']
    return request.remote_addr or 'unknown'
