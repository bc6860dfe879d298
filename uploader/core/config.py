"""
Application configuration manager.
Stores upload settings in a JSON file under the app data directory.
"""

import json
import logging
from pathlib import Path

from uploader.core.constants import (
    CONFIG_PATH, DEFAULT_API_BASE_URL, DEFAULT_CHUNK_SIZE, DEFAULT_MAX_FILE_SIZE,
    SUPPORTED_FORMATS, DEFAULT_REQUEST_TIMEOUT_SEC, DEFAULT_CHUNK_MAX_RETRIES,
    MIB,
)

# Validation bounds
_CHUNK_SIZE_MIN = 256 * 1024      # 256 KB
_CHUNK_SIZE_MAX = 100 * MIB
_MAX_RETRIES_MIN = 0
_MAX_RETRIES_MAX = 10
_TIMEOUT_MIN = 5
_TIMEOUT_MAX = 3600

logger = logging.getLogger(__name__)

_DEFAULTS = {
    'api_base_url': DEFAULT_API_BASE_URL,
    'chunk_size_bytes': DEFAULT_CHUNK_SIZE,
    'max_file_size_bytes': DEFAULT_MAX_FILE_SIZE,
    'allowed_formats': list(SUPPORTED_FORMATS),
    'enable_resume': True,
    'chunk_max_retries': DEFAULT_CHUNK_MAX_RETRIES,
    'request_timeout_sec': DEFAULT_REQUEST_TIMEOUT_SEC,
    'generate_thumbnail': True,
}


class UploadConfig:
    """Manages upload configuration stored as JSON."""

    def __init__(self, config_path: Path | None = None):
        self.path = config_path or CONFIG_PATH
        self._data: dict = {}
        self.load()

    def load(self):
        """Load config from disk, merging with defaults."""
        self._data = dict(_DEFAULTS)
        self._data['allowed_formats'] = list(SUPPORTED_FORMATS)
        if self.path.exists():
            try:
                with open(self.path, 'r') as f:
                    saved = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Failed to load config: %s", e)
                return
            if not isinstance(saved, dict):
                logger.warning("Ignoring config %s: expected a JSON object", self.path)
                return
            for key, value in saved.items():
                if key in _DEFAULTS:
                    self._data[key] = self._validate(key, value)
                else:
                    logger.warning("Unknown config key %r: ignored", key)

    def save(self):
        """Persist config to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(self._data, f, indent=2)

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value, persist: bool = True):
        value = self._validate(key, value)
        self._data[key] = value
        if persist:
            self.save()

    def override(self, **values):
        """Apply per-run overrides without touching the file on disk."""
        for key, value in values.items():
            if value is not None:
                self.set(key, value, persist=False)

    def _validate(self, key: str, value):
        """Validate and coerce config values to safe ranges."""
        if key == 'chunk_size_bytes':
            try:
                value = int(value)
            except (TypeError, ValueError):
                logger.warning("Invalid chunk_size_bytes %r: using default", value)
                return DEFAULT_CHUNK_SIZE
            return max(_CHUNK_SIZE_MIN, min(_CHUNK_SIZE_MAX, value))

        if key == 'max_file_size_bytes':
            try:
                value = int(value)
            except (TypeError, ValueError):
                logger.warning("Invalid max_file_size_bytes %r: using default", value)
                return DEFAULT_MAX_FILE_SIZE
            if value <= 0:
                logger.warning("Non-positive max_file_size_bytes %r: using default", value)
                return DEFAULT_MAX_FILE_SIZE
            return value

        if key == 'chunk_max_retries':
            try:
                value = int(value)
            except (TypeError, ValueError):
                logger.warning("Invalid chunk_max_retries %r: using default", value)
                return DEFAULT_CHUNK_MAX_RETRIES
            return max(_MAX_RETRIES_MIN, min(_MAX_RETRIES_MAX, value))

        if key == 'request_timeout_sec':
            try:
                value = float(value)
            except (TypeError, ValueError):
                logger.warning("Invalid request_timeout_sec %r: using default", value)
                return DEFAULT_REQUEST_TIMEOUT_SEC
            return max(_TIMEOUT_MIN, min(_TIMEOUT_MAX, value))

        if key == 'allowed_formats':
            if isinstance(value, str):
                value = value.split(',')
            if not isinstance(value, (list, tuple)):
                logger.warning("Invalid allowed_formats %r: using defaults", value)
                return list(SUPPORTED_FORMATS)
            formats = [str(v).strip().lower().lstrip('.') for v in value if str(v).strip()]
            return formats or list(SUPPORTED_FORMATS)

        if key == 'api_base_url':
            value = str(value).strip().rstrip('/')
            return value or DEFAULT_API_BASE_URL

        if key in ('enable_resume', 'generate_thumbnail'):
            return bool(value)

        return value

    def as_dict(self) -> dict:
        return dict(self._data)

    @property
    def api_base_url(self) -> str:
        return self._data['api_base_url']

    @property
    def chunk_size(self) -> int:
        return self._data['chunk_size_bytes']

    @property
    def max_file_size(self) -> int:
        return self._data['max_file_size_bytes']

    @property
    def allowed_formats(self) -> list[str]:
        return list(self._data['allowed_formats'])

    @property
    def enable_resume(self) -> bool:
        return self._data['enable_resume']

    @property
    def chunk_max_retries(self) -> int:
        return self._data['chunk_max_retries']

    @property
    def request_timeout(self) -> float:
        return self._data['request_timeout_sec']

    @property
    def generate_thumbnail(self) -> bool:
        return self._data['generate_thumbnail']
