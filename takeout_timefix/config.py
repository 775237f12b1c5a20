"""Configuration management for takeout timestamp restoration."""

import copy
import yaml
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Any, Optional
import logging

logger = logging.getLogger(__name__)


class OrganizationMode(Enum):
    YEAR_MONTH = 'year-month'
    SINGLE_FOLDER = 'single-folder'


DEFAULT_PHOTO_EXTENSIONS = [
    'jpg', 'jpeg', 'png', 'gif', 'bmp', 'webp', 'tiff', 'tif',
    'heic', 'heif', 'raw', 'cr2', 'nef', 'arw', 'dng',
]

DEFAULT_VIDEO_EXTENSIONS = [
    'mp4', 'mov', 'avi', 'mkv', 'wmv', 'flv', 'webm', 'm4v',
    '3gp', '3g2', 'asf', 'vob', 'ogv', 'rm', 'rmvb', 'mts', 'm2ts',
]

DEFAULTS: Dict[str, Any] = {
    'timefix': {
        'input_directory': None,
        'output_directory': None,
        'organization': {
            'mode': OrganizationMode.YEAR_MONTH.value,
            'preserve_original_filename': False,
            'write_run_log': True,
        },
        'extraction': {
            'max_file_size_mb': 64,
            'sidecar_max_name_length': 51,
            'recent_modification_days': 30,
            'guess_from_folder_name': False,
        },
        'extensions': {
            'photos': DEFAULT_PHOTO_EXTENSIONS,
            'videos': DEFAULT_VIDEO_EXTENSIONS,
        },
        'process': {
            'parallel_jobs': 1,
            'show_progress': False,
        },
    },
    'logging': {
        'level': 'INFO',
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Manages configuration for a run from YAML files layered over defaults."""

    SEARCH_PATHS = ["timefix.local.yml", "timefix.yml"]

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to config file. If None, searches the working
                directory and falls back to built-in defaults.
        """
        self.config_path = config_path or self._find_config_file()
        self.config: Dict[str, Any] = {}
        self._load_config()

    def _find_config_file(self) -> Optional[str]:
        """Find configuration file in standard locations."""
        for path in self.SEARCH_PATHS:
            config_file = Path.cwd() / path
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return str(config_file.resolve())

        logger.info("No configuration file found, using defaults")
        return None

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        if self.config_path is None:
            self.config = copy.deepcopy(DEFAULTS)
            return

        try:
            with open(self.config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {self.config_path}")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load config from {self.config_path}: {e}")
            raise
        self.config = _deep_merge(DEFAULTS, loaded)

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key_path: Dot-separated path like 'timefix.organization.mode'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        try:
            for key in keys:
                value = value[key]
            return value if value is not None else default
        except (KeyError, TypeError):
            return default

    def set(self, key_path: str, value: Any) -> None:
        """Set a value using dot notation, creating intermediate sections."""
        keys = key_path.split('.')
        section = self.config
        for key in keys[:-1]:
            section = section.setdefault(key, {})
        section[keys[-1]] = value

    def get_input_directory(self) -> Optional[str]:
        return self.get('timefix.input_directory')

    def get_output_directory(self) -> Optional[str]:
        return self.get('timefix.output_directory')

    def get_organization_mode(self) -> OrganizationMode:
        return OrganizationMode(self.get('timefix.organization.mode', 'year-month'))

    def should_preserve_original_filename(self) -> bool:
        return bool(self.get('timefix.organization.preserve_original_filename', False))

    def should_write_run_log(self) -> bool:
        return bool(self.get('timefix.organization.write_run_log', True))

    def get_supported_extensions(self) -> Dict[str, List[str]]:
        """Get supported file extensions for photos and videos."""
        extensions = self.get('timefix.extensions', {})
        return {
            'photos': extensions.get('photos', []),
            'videos': extensions.get('videos', [])
        }

    def get_max_file_size_bytes(self) -> int:
        return int(self.get('timefix.extraction.max_file_size_mb', 64)) * 1024 * 1024

    def get_sidecar_max_name_length(self) -> int:
        return int(self.get('timefix.extraction.sidecar_max_name_length', 51))

    def get_recent_modification_days(self) -> float:
        return float(self.get('timefix.extraction.recent_modification_days', 30))

    def should_guess_from_folder_name(self) -> bool:
        return bool(self.get('timefix.extraction.guess_from_folder_name', False))

    def get_parallel_jobs(self) -> int:
        """Get number of parallel jobs to run."""
        return self.get('timefix.process.parallel_jobs', 1)

    def should_show_progress(self) -> bool:
        return bool(self.get('timefix.process.show_progress', False))

    def get_log_level(self) -> str:
        """Get logging level."""
        return self.get('logging.level', 'INFO')

    def validate_config(self) -> List[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of validation error messages
        """
        errors = []

        input_directory = self.get_input_directory()
        if not input_directory:
            errors.append("Input directory not configured")
        elif not Path(input_directory).is_dir():
            errors.append(f"Input directory does not exist: {input_directory}")

        if not self.get_output_directory():
            errors.append("Output directory not configured")

        try:
            self.get_organization_mode()
        except ValueError:
            errors.append(f"Unknown organization mode: {self.get('timefix.organization.mode')}")

        extensions = self.get_supported_extensions()
        if not extensions.get('photos') and not extensions.get('videos'):
            errors.append("No supported file extensions configured")

        parallel_jobs = self.get_parallel_jobs()
        if not isinstance(parallel_jobs, int) or parallel_jobs < 1 or parallel_jobs > 32:
            errors.append(f"Invalid parallel_jobs value: {parallel_jobs} (must be 1-32)")

        if self.get_recent_modification_days() < 0:
            errors.append("recent_modification_days must not be negative")

        return errors

    def __str__(self) -> str:
        """String representation of configuration."""
        return f"Config(path={self.config_path}, input={self.get_input_directory()})"


@dataclass
class ProcessingConfig:
    """Everything a pipeline run needs, detached from the YAML layer."""
    input_directory: Path
    output_directory: Path
    organization_mode: OrganizationMode = OrganizationMode.YEAR_MONTH
    preserve_original_filename: bool = False
    max_file_size: int = 64 * 1024 * 1024
    sidecar_max_name_length: int = 51
    recent_modification_days: float = 30
    guess_from_folder_name: bool = False
    parallel_jobs: int = 1
    show_progress: bool = False
    write_run_log: bool = True
    extensions: List[str] = field(
        default_factory=lambda: DEFAULT_PHOTO_EXTENSIONS + DEFAULT_VIDEO_EXTENSIONS)

    def __post_init__(self):
        self.input_directory = Path(self.input_directory)
        self.output_directory = Path(self.output_directory)
        if not isinstance(self.organization_mode, OrganizationMode):
            self.organization_mode = OrganizationMode(self.organization_mode)

    @classmethod
    def from_config(cls, config: Config) -> 'ProcessingConfig':
        input_directory = config.get_input_directory()
        output_directory = config.get_output_directory()
        if not input_directory or not output_directory:
            raise ValueError("Both input and output directories must be configured")

        extensions = config.get_supported_extensions()
        return cls(
            input_directory=Path(input_directory),
            output_directory=Path(output_directory),
            organization_mode=config.get_organization_mode(),
            preserve_original_filename=config.should_preserve_original_filename(),
            max_file_size=config.get_max_file_size_bytes(),
            sidecar_max_name_length=config.get_sidecar_max_name_length(),
            recent_modification_days=config.get_recent_modification_days(),
            guess_from_folder_name=config.should_guess_from_folder_name(),
            parallel_jobs=config.get_parallel_jobs(),
            show_progress=config.should_show_progress(),
            write_run_log=config.should_write_run_log(),
            extensions=extensions['photos'] + extensions['videos'],
        )
