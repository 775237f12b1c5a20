"""Shared fixtures for takeout timefix tests."""

import json
import os
from datetime import datetime

import pytest
import yaml

from takeout_timefix.config import Config, ProcessingConfig

# Old enough that the filesystem extractor trusts it
OLD_MTIME = datetime(2015, 5, 20, 8, 30, 0).timestamp()


@pytest.fixture
def takeout_root(tmp_path):
    """Extracted takeout directory."""
    root = tmp_path / 'Takeout'
    root.mkdir()
    return root


@pytest.fixture
def output_root(tmp_path):
    return tmp_path / 'organized'


@pytest.fixture
def create_media(takeout_root):
    """Factory fixture: create a media file under the takeout root."""

    def _create(relative_path, content=b'test-content', mtime=None):
        full_path = takeout_root / relative_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(content)
        if mtime is not None:
            os.utime(full_path, (mtime, mtime))
        return full_path

    return _create


@pytest.fixture
def create_sidecar(takeout_root):
    """Factory fixture: write a JSON sidecar with a photoTakenTime timestamp."""

    def _write(relative_path, timestamp, title=None):
        full_path = takeout_root / relative_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        metadata = {
            'title': title or full_path.name,
            'creationTime': {'timestamp': '1700000000', 'formatted': 'Nov 14, 2023'},
        }
        if timestamp is not None:
            metadata['photoTakenTime'] = {
                'timestamp': str(timestamp),
                'formatted': datetime.fromtimestamp(int(timestamp)).isoformat(),
            }
        with open(full_path, 'w', encoding='utf-8') as f:
            json.dump(metadata, f)
        return full_path

    return _write


@pytest.fixture
def sample_config(takeout_root, output_root, tmp_path):
    """Create a Config backed by a temp YAML file."""
    config_data = {
        'timefix': {
            'input_directory': str(takeout_root),
            'output_directory': str(output_root),
            'organization': {
                'mode': 'year-month',
                'preserve_original_filename': False,
            },
            'extraction': {
                'max_file_size_mb': 64,
                'recent_modification_days': 30,
            },
            'extensions': {
                'photos': ['jpg', 'jpeg', 'png', 'heic'],
                'videos': ['mp4', 'mov'],
            },
            'process': {
                'parallel_jobs': 2,
            },
        },
        'logging': {
            'level': 'DEBUG',
        },
    }

    config_path = tmp_path / 'timefix.yml'
    with open(config_path, 'w') as f:
        yaml.dump(config_data, f)

    return Config(str(config_path))


@pytest.fixture
def processing_config(takeout_root, output_root):
    return ProcessingConfig(input_directory=takeout_root, output_directory=output_root)


@pytest.fixture
def old_mtime():
    return OLD_MTIME
