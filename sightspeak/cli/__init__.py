"""
SightSpeak CLI Module

Usage:
    from sightspeak.cli import run_cli, parse_args

    args = parse_args(["detect", "--seed", "1"])
    run_cli(["detect", "--seed", "1"])
"""

from .main import main, run_cli
from .parser import create_parser, parse_args
from .handlers import (
    handle_live,
    handle_describe,
    handle_detect,
    handle_config,
    handle_tts,
)

__all__ = [
    "main",
    "run_cli",
    "create_parser",
    "parse_args",
    "handle_live",
    "handle_describe",
    "handle_detect",
    "handle_config",
    "handle_tts",
]
