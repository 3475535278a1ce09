"""
Service Configuration

Settings for the transfer server: where it listens, where finished files
and chunk scratch space live, and which optional checks are on.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
import json

from dotenv import load_dotenv

DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1MB, client-side default


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Config:
    """
    NeuroLink service configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (NEUROLINK_*)
    2. Config file (config.json)
    3. Default values
    """
    # Network
    host: str = '0.0.0.0'
    port: int = 3030

    # Storage
    storage_dir: Path = field(default_factory=lambda: Path('./shared'))
    scratch_dir: Optional[Path] = None  # None = system temp dir

    # Transfers
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_file_size: Optional[int] = None  # None = unlimited
    atomic_reassembly: bool = False

    # Logging
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Config':
        """Read NEUROLINK_* variables (and a .env file, if present)."""
        load_dotenv()

        config = cls()

        # Network
        config.host = os.getenv('NEUROLINK_HOST', config.host)
        config.port = int(os.getenv('NEUROLINK_PORT', config.port))

        # Storage
        storage_dir = os.getenv('NEUROLINK_STORAGE')
        if storage_dir:
            config.storage_dir = Path(storage_dir)

        scratch_dir = os.getenv('NEUROLINK_SCRATCH')
        if scratch_dir:
            config.scratch_dir = Path(scratch_dir)

        # Transfers
        config.chunk_size = int(os.getenv('NEUROLINK_CHUNK_SIZE', config.chunk_size))

        max_file_size = os.getenv('NEUROLINK_MAX_FILE_SIZE')
        if max_file_size:
            config.max_file_size = int(max_file_size)

        atomic = os.getenv('NEUROLINK_ATOMIC_REASSEMBLY')
        if atomic is not None:
            config.atomic_reassembly = _parse_bool(atomic)

        # Logging
        config.log_level = os.getenv('NEUROLINK_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Read a JSON config file; a missing file gives the defaults."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()

        # Network
        config.host = data.get('host', config.host)
        config.port = data.get('port', config.port)

        # Storage
        if 'storage_dir' in data:
            config.storage_dir = Path(data['storage_dir'])
        if data.get('scratch_dir'):
            config.scratch_dir = Path(data['scratch_dir'])

        # Transfers
        config.chunk_size = data.get('chunk_size', config.chunk_size)
        config.max_file_size = data.get('max_file_size', config.max_file_size)
        config.atomic_reassembly = data.get('atomic_reassembly', config.atomic_reassembly)

        # Logging
        config.log_level = data.get('log_level', config.log_level)

        return config

    def to_dict(self) -> dict:
        """JSON-ready form, as written by save()."""
        return {
            'host': self.host,
            'port': self.port,
            'storage_dir': str(self.storage_dir),
            'scratch_dir': str(self.scratch_dir) if self.scratch_dir else None,
            'chunk_size': self.chunk_size,
            'max_file_size': self.max_file_size,
            'atomic_reassembly': self.atomic_reassembly,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Write the config as JSON."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Build the effective config: defaults, then the file, then any
    NEUROLINK_* variable that differs from its default.
    """
    config = Config.from_file(config_path) if config_path else Config()

    env_config = Config.from_env()
    defaults = Config()
    for key in ['host', 'port', 'storage_dir', 'scratch_dir', 'chunk_size',
                'max_file_size', 'atomic_reassembly', 'log_level']:
        env_val = getattr(env_config, key)
        if env_val != getattr(defaults, key):
            setattr(config, key, env_val)

    return config


# Printed by `neurolink config`
EXAMPLE_CONFIG = """
{
  "host": "0.0.0.0",
  "port": 3030,
  "storage_dir": "./shared",
  "scratch_dir": null,
  "chunk_size": 1048576,
  "max_file_size": null,
  "atomic_reassembly": false,
  "log_level": "INFO"
}
"""
