"""
Storage Module

Access to completed files in the storage directory.
"""

from .shared import SharedStorage, SharedFile

__all__ = ['SharedStorage', 'SharedFile']
