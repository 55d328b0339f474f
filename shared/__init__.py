"""
PELens Shared Module
====================

Configuration, logging and console utilities used by the engine and the
command-line front end.
"""

from shared.config import PELensConfig, get_config

__all__ = ["PELensConfig", "get_config"]
