"""
Configuration for autosnap.
"""

from .autosnap_config import AutosnapConfig, load_autosnap_config

__all__ = [
    'AutosnapConfig',
    'load_autosnap_config'
]
