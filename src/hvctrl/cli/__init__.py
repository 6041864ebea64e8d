#!/usr/bin/env python3
"""
hvctrl CLI package.
"""

from .parsers import build_parser, main
from .utils import console, custom_style, get_backend, load_config

__all__ = [
    "build_parser",
    "console",
    "custom_style",
    "get_backend",
    "load_config",
    "main",
]
