"""
NeuroLink - Chunked File Transfer Service

Accepts files uploaded as fixed-size chunks, tracks which chunks have
arrived, and reassembles them into the storage directory.
"""

from .config import Config, load_config
from .service import TransferService

__version__ = "2.0.0"

__all__ = ['Config', 'load_config', 'TransferService', '__version__']
