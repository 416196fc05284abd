"""Loading, validation and templating of ``IngestConfig`` files."""

import json
import logging
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..models.core import IngestConfig
from .error_handler import ConfigurationError


logger = logging.getLogger(__name__)

YAML_SUFFIXES = ('.yml', '.yaml')


class ConfigManager:
    """Finds, reads and caches the ingestion configuration.

    Args:
        config_path: explicit configuration file; when None the standard
            locations in ``SEARCH_PATHS`` are tried in order
    """

    SEARCH_PATHS = (
        'ingest_config.json',
        'ingest_config.yml',
        'ingest_config.yaml',
        'config/ingest_config.json',
        'config/ingest_config.yml',
        'config/ingest_config.yaml',
        '~/.statement_ingest/config.json',
        '~/.statement_ingest/config.yml',
    )

    # Expected type per IngestConfig field; None marks an optional string
    FIELD_TYPES = {
        'chunk_size': int,
        'name_max_length': int,
        'default_account_type': str,
        'upload_event_tag': str,
        'store_path': str,
        'skip_validation': bool,
        'skip_duplicate_check': bool,
        'log_directory': None,
    }

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self._config_cache: Optional[IngestConfig] = None

    def load_config(self, force_reload: bool = False) -> IngestConfig:
        """Return the configuration, reading the file on first use or when ``force_reload`` is set"""
        if self._config_cache is None or force_reload:
            self._config_cache = self._build_config(self._load_config_file())
        return self._config_cache

    def _build_config(self, data: Dict[str, Any]) -> IngestConfig:
        known = {f.name for f in fields(IngestConfig)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

        try:
            config = IngestConfig(**{key: value for key, value in data.items() if key in known})
        except ValueError as e:
            logger.warning(f"Invalid configuration ({e}), using defaults")
            return IngestConfig()

        logger.info(f"Configuration ready (chunk_size={config.chunk_size}, store={config.store_path})")
        return config

    def _load_config_file(self) -> Dict[str, Any]:
        """Read the configuration file, returning {} when it is missing or unusable"""
        config_file = self._find_config_file()
        if config_file is None or not config_file.is_file():
            logger.info("No configuration file found, using defaults")
            return {}

        try:
            with config_file.open('r', encoding='utf-8') as f:
                if config_file.suffix == '.json':
                    data = json.load(f)
                elif config_file.suffix in YAML_SUFFIXES:
                    data = yaml.safe_load(f) or {}
                else:
                    logger.warning(f"Unsupported config file format: {config_file}")
                    return {}
            self._validate_config_data(data)
        except (OSError, ValueError, yaml.YAMLError, ConfigurationError) as e:
            logger.error(f"Ignoring configuration file {config_file}: {e}")
            return {}

        logger.info(f"Configuration loaded from {config_file}")
        return data

    def _find_config_file(self) -> Optional[Path]:
        if self.config_path:
            return Path(self.config_path)

        for candidate in self.SEARCH_PATHS:
            path = Path(candidate).expanduser()
            if path.is_file():
                return path
        return None

    def _validate_config_data(self, data: Any) -> None:
        """Check value types field by field.

        Raises:
            ConfigurationError: on the first invalid value
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a mapping")

        for key, expected in self.FIELD_TYPES.items():
            if key not in data:
                continue
            value = data[key]

            if expected is None:
                if value is not None and not isinstance(value, str):
                    raise ConfigurationError(f"{key} must be a string")
            elif expected is bool:
                if not isinstance(value, bool):
                    raise ConfigurationError(f"{key} must be true or false")
            elif expected is int:
                # bool is an int subclass
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ConfigurationError(f"{key} must be an integer")
                if value < 1:
                    raise ConfigurationError(f"{key} must be at least 1")
            elif not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"{key} must be a non-empty string")

    def save_config_template(self, output_path: str) -> None:
        """Write the default configuration as JSON, or YAML for .yml/.yaml paths"""
        template = asdict(IngestConfig())
        template['log_directory'] = "logs"

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open('w', encoding='utf-8') as f:
            if path.suffix in YAML_SUFFIXES:
                yaml.safe_dump(template, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(template, f, indent=2)

        logger.info(f"Configuration template saved to {output_path}")

    def reset_config(self) -> None:
        self._config_cache = None
