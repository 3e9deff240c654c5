"""Simple YAML configuration loader for korbivoice."""

import os
import yaml
from pathlib import Path
from dataclasses import replace
from typing import Dict, Any, Optional
import logging

from ..audio.permissions import MicrophonePermission
from ..exceptions import ConfigError
from ..models.audio import FORMAT_PRESETS, RecordingFormat

logger = logging.getLogger(__name__)

# Environment variables that take precedence over the file
ENV_OVERRIDES = {
    "KORBI_WEBHOOK_URL": "webhook.url",
    "KORBI_COMPLETION_URL": "webhook.completion_url",
    "KORBI_HMAC_SECRET": "security.hmac_secret",
}


class KorbiVoiceConfig:
    """korbivoice configuration loader."""

    def __init__(self, config_path: str):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file
        """
        self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise ConfigError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()
        self._apply_env_overrides()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to load configuration: {e}") from e

        if not config:
            raise ConfigError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ConfigError("Configuration file must contain a mapping")

        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        if 'storage' in config and 'temp_directory' in config['storage']:
            temp_dir = config['storage']['temp_directory']
            if not os.path.isabs(temp_dir):
                config['storage']['temp_directory'] = str(config_dir / temp_dir)

        if 'logging' in config and 'file_path' in config['logging']:
            log_path = config['logging']['file_path']
            if not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def _apply_env_overrides(self) -> None:
        for env_name, key_path in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                self.set(key_path, value)
                logger.info(f"Configuration key '{key_path}' taken from {env_name}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'webhook.url').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'webhook.url')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict or not isinstance(config_dict[key], dict):
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value

    def get_webhook_url(self) -> str:
        """Get webhook URL - raises ConfigError if not configured."""
        url = self.get('webhook.url')
        if not url:
            raise ConfigError("Webhook URL not configured (webhook.url or KORBI_WEBHOOK_URL)")
        if not str(url).startswith(("http://", "https://")):
            raise ConfigError(f"Webhook URL must be http(s): {url}")
        return str(url)

    def get_hmac_secret(self) -> bytes:
        """Get the shared HMAC secret - raises ConfigError if not configured."""
        secret = self.get('security.hmac_secret')
        if not secret:
            raise ConfigError("HMAC secret not configured (security.hmac_secret or KORBI_HMAC_SECRET)")
        return str(secret).encode('utf-8')

    def get_recording_format(self) -> RecordingFormat:
        """Get capture settings from the audio preset and chunk size."""
        preset = self.get('audio.preset', 'standard')
        if preset not in FORMAT_PRESETS:
            raise ConfigError(f"Unknown audio preset '{preset}', expected one of {sorted(FORMAT_PRESETS)}")
        fmt = FORMAT_PRESETS[preset]
        chunk_size = self.get('audio.chunk_size')
        if chunk_size:
            fmt = replace(fmt, chunk_size=int(chunk_size))
        return fmt

    def get_microphone_permission(self) -> MicrophonePermission:
        """Map ``audio.microphone_permission`` (granted/denied/ask) to a status."""
        value = str(self.get('audio.microphone_permission', 'ask')).lower()
        if value == 'ask':
            return MicrophonePermission.UNDETERMINED
        try:
            return MicrophonePermission(value)
        except ValueError:
            raise ConfigError(f"Invalid audio.microphone_permission: {value}") from None

    def get_temp_directory(self) -> Optional[str]:
        """Get directory for temporary recordings, or None for the system default."""
        temp_dir = self.get('storage.temp_directory')
        return str(Path(temp_dir).absolute()) if temp_dir else None
