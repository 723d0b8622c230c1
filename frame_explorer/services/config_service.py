# frame_explorer/services/config_service.py
"""
Provides a singleton configuration service for the entire application.

This service is responsible for:
1. Loading the `config.yaml` file on top of built-in defaults.
2. Loading environment variables from a `.env` file.
3. Setting up a centralized logging system for both console and file output.

Using a singleton pattern ensures that configuration is loaded once and is
consistent across all modules that import it.
"""
import copy
import yaml
import os
import logging
import sys
from pathlib import Path
import dotenv
import threading
from typing import Any, Dict, Optional

# Values used when config.yaml is missing or leaves a key out. The numbers are
# the pipeline's tuned batch sizes and delays.
DEFAULTS: Dict[str, Any] = {
    'api': {
        'base_url': 'http://localhost:5003',
        'timeout_seconds': 30,
        'retry_attempts': 3,
        'retry_backoff_seconds': 0.5,
        'image_mime_type': 'image/jpeg',
    },
    'frames': {
        'progressive': True,
        'first_page_size': 9,
        'batch_size': 18,
        'batch_delay_ms': 400,
        'small_result_threshold': 36,
        'small_result_delay_ms': 200,
    },
    'albums': {
        'max_albums_scanned_per_config': 10,
        'first_batch_size': 2,
        'batch_size': 2,
        'batch_delay_ms': 200,
        'album_page_size': 1000,
        'album_frame_order': 'DESC',
        'thumbnail_limit': 4,
        'tag_sample_size': 5,
    },
    'logging': {
        'level': 'INFO',
        'directory': 'logs',
        'filename': 'frame_explorer.log',
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge `override` into a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class AppConfig:
    _instance: Optional['AppConfig'] = None
    _loaded: bool = False
    _lock: threading.Lock = threading.Lock()

    def __new__(cls, *args, **kwargs) -> 'AppConfig':
        if cls._instance is None:
            with cls._lock:
                # Double-check pattern to prevent race conditions
                if cls._instance is None:
                    cls._instance = super(AppConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        # The __init__ might be called multiple times, but the loading logic
        # is protected by the `_loaded` flag and thread lock.
        if not self._loaded:
            with self._lock:
                if not self._loaded:
                    # Load environment variables first, as they might point at the config file.
                    dotenv.load_dotenv()
                    self.project_root = Path(__file__).resolve().parents[2]

                    self._load_yaml_config()
                    self._load_env_vars()
                    self._setup_logging()

                    self._loaded = True
                    logging.info("Application configuration and logging initialized successfully.")

    def _load_yaml_config(self) -> None:
        """Loads config.yaml and layers it over the built-in defaults."""
        config_path = Path(os.getenv('FRAME_EXPLORER_CONFIG') or self.project_root / 'config.yaml')
        self.config_path = config_path
        try:
            with open(config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
        except FileNotFoundError:
            # Logging is not configured yet, so report on stderr like other early failures.
            print(f"WARNING: Configuration file not found at {config_path}; using defaults.", file=sys.stderr)
            loaded = {}
        except yaml.YAMLError as e:
            print(f"FATAL: Error parsing YAML configuration file: {e}", file=sys.stderr)
            sys.exit(1)

        if not isinstance(loaded, dict):
            print(f"FATAL: Configuration file {config_path} must contain a mapping.", file=sys.stderr)
            sys.exit(1)
        self.yaml = _deep_merge(DEFAULTS, loaded)

    def _load_env_vars(self) -> None:
        """Loads environment overrides for the values most often changed per deployment."""
        base_url = os.getenv("FRAME_API_BASE_URL")
        if base_url:
            self.yaml['api']['base_url'] = base_url
        timeout = os.getenv("FRAME_API_TIMEOUT_SECONDS")
        if timeout:
            try:
                self.yaml['api']['timeout_seconds'] = float(timeout)
            except ValueError:
                print(f"WARNING: Ignoring invalid FRAME_API_TIMEOUT_SECONDS={timeout!r}", file=sys.stderr)

    def _setup_logging(self) -> None:
        """Configures the root logger for consistent logging across the app."""
        log_config = self.get('logging', {})
        log_level_str = str(log_config.get('level', 'INFO')).upper()
        log_level = getattr(logging, log_level_str, logging.INFO)

        # Check if logging has already been configured to prevent double setup
        root_logger = logging.getLogger()
        if root_logger.handlers:
            root_logger.setLevel(log_level)
            return

        handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
        log_directory = log_config.get('directory')
        if log_directory:
            log_dir = self.project_root / log_directory
            log_dir.mkdir(exist_ok=True)
            handlers.insert(0, logging.FileHandler(log_dir / log_config.get('filename', 'frame_explorer.log')))

        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - [%(levelname)s] - %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
            handlers=handlers,
            force=True
        )

        # Silence overly verbose libraries
        logging.getLogger("aiohttp").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("requests").setLevel(logging.WARNING)

    @property
    def api_base_url(self) -> str:
        return str(self.get('api.base_url', '')).rstrip('/')

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Safely retrieves a value from the nested YAML configuration.

        Args:
            key_path (str): A dot-separated path to the desired key (e.g., 'frames.batch_size').
            default: The value to return if the key is not found.

        Returns:
            The configuration value or the default.
        """
        value = self.yaml
        try:
            for key in key_path.split('.'):
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def get_seconds(self, key_path: str, default_ms: float) -> float:
        """Reads a millisecond setting and returns it in seconds."""
        return float(self.get(key_path, default_ms)) / 1000.0

# Create the singleton instance that will be imported by other modules.
config = AppConfig()
