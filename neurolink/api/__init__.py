"""
API Module - REST Interface
"""

from .rest import create_app, run_api_server

__all__ = ['create_app', 'run_api_server']
