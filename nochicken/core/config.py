"""
Configuration management for the NoChickenLeftBehind assistant
"""

import os
import yaml
from typing import Dict, Any, Optional
from pathlib import Path
from .exceptions import ConfigurationError

# Session limits used as list sizes must be whole numbers
_SESSION_COUNT_KEYS = ('max_turns', 'max_topics', 'max_recent_items', 'max_frequent_commands')
# Session durations in seconds
_SESSION_DURATION_KEYS = ('timeout', 'eviction_age', 'cleanup_interval', 'confirmation_ttl')


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Configuration manager with environment-specific settings"""

    def __init__(self, config_path: Optional[str] = None, environment: str = "default"):
        self.environment = environment
        self._config = self._load_config(config_path)
        self._validate()

    def _load_config(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """Load configuration from YAML files"""

        # Default configuration
        default_config = {
            'llm': {
                'base_url': os.getenv('OLLAMA_BASE_URL', 'http://localhost:11434'),
                'default_model': os.getenv('OLLAMA_DEFAULT_MODEL', 'gemma:2b'),
                'timeout': 60,
                'enable_retry': _env_flag('NOCHICKEN_RETRY_ENABLED', True)
            },
            'session': {
                'timeout': 1800,  # 30 minutes idle
                'max_turns': 20,
                'max_topics': 10,
                'max_recent_items': 20,
                'max_frequent_commands': 10,
                'eviction_age': 86400,  # 24 hours idle
                'cleanup_interval': 3600,
                'confirmation_ttl': 300
            },
            'retry': {
                'max_retries': 3,
                'initial_delay': 1.0,
                'max_delay': 10.0,
                'backoff_multiplier': 2.0
            },
            'rate_limit': {
                'enabled': _env_flag('NOCHICKEN_RATE_LIMIT_ENABLED', True),
                'max_requests': 100,
                'window': 3600,  # seconds
                'max_tokens': 50000  # per window; null disables the token budget
            },
            'logging': {
                'level': os.getenv('NOCHICKEN_LOG_LEVEL', 'INFO'),
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            }
        }

        # Try to load from file if provided
        if config_path:
            config_file = Path(config_path)
            if not config_file.exists():
                raise ConfigurationError(f"Config file not found: {config_file}")
        else:
            # Look for config files in standard locations
            possible_paths = [
                Path('config') / f'{self.environment}.yaml',
                Path('config') / 'default.yaml',
                Path('../config') / f'{self.environment}.yaml',
                Path('../config') / 'default.yaml'
            ]

            config_file = None
            for path in possible_paths:
                if path.exists():
                    config_file = path
                    break

        if config_file and config_file.exists():
            try:
                with open(config_file, 'r') as f:
                    file_config = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load config from {config_file}: {e}")
            if file_config:
                if not isinstance(file_config, dict):
                    raise ConfigurationError(f"Config file {config_file} must contain a mapping")
                default_config = self._deep_merge(default_config, file_config)

        return default_config

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _check(self, section: str, key: str, integral: bool, minimum: float,
               inclusive: bool = True, optional: bool = False) -> None:
        value = self.get(f'{section}.{key}')
        if optional and value is None:
            return
        kinds = (int,) if integral else (int, float)
        # bool is a subclass of int
        if isinstance(value, bool) or not isinstance(value, kinds):
            kind = "an integer" if integral else "a number"
            raise ConfigurationError(f"{section}.{key} must be {kind}, got {value!r}")
        if value < minimum or (not inclusive and value == minimum):
            bound = ">=" if inclusive else ">"
            raise ConfigurationError(f"{section}.{key} must be {bound} {minimum}, got {value!r}")

    def _validate(self) -> None:
        for key in _SESSION_COUNT_KEYS:
            self._check('session', key, integral=True, minimum=1)
        for key in _SESSION_DURATION_KEYS:
            self._check('session', key, integral=False, minimum=0, inclusive=False)

        self._check('retry', 'max_retries', integral=True, minimum=0)
        for key in ('initial_delay', 'max_delay'):
            self._check('retry', key, integral=False, minimum=0)
        self._check('retry', 'backoff_multiplier', integral=False, minimum=1)

        self._check('rate_limit', 'max_requests', integral=True, minimum=1)
        self._check('rate_limit', 'window', integral=False, minimum=0, inclusive=False)
        self._check('rate_limit', 'max_tokens', integral=True, minimum=1, optional=True)

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value using dot notation (e.g., 'llm.base_url')"""
        keys = path.split('.')
        value = self._config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, path: str, value: Any) -> None:
        """Set config value using dot notation"""
        keys = path.split('.')
        config = self._config

        for key in keys[:-1]:
            if key not in config:
                config[key] = {}
            config = config[key]

        config[keys[-1]] = value

    @property
    def llm(self) -> Dict[str, Any]:
        """Language model client configuration"""
        return self.get('llm', {})

    @property
    def session_config(self) -> Dict[str, Any]:
        """Conversation context configuration"""
        return self.get('session', {})

    @property
    def retry(self) -> Dict[str, Any]:
        """Retry policy for language model calls"""
        return self.get('retry', {})

    @property
    def rate_limit(self) -> Dict[str, Any]:
        """Per-user request and token budget for language model calls"""
        return self.get('rate_limit', {})

    @property
    def logging(self) -> Dict[str, str]:
        return self.get('logging', {})

    def to_dict(self) -> Dict[str, Any]:
        """Return full configuration as dictionary"""
        return self._config.copy()
