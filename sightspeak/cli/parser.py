"""
CLI Argument Parser

Defines all CLI arguments and subcommands.
"""

import argparse
from typing import List, Optional

from .. import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="sightspeak",
        description="SightSpeak - spoken scene descriptions from a live camera",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sightspeak live
  sightspeak live --device auto --interval 5 --objects
  sightspeak live --image street.jpg --no-tts --duration 20
  sightspeak describe photo.jpg --objects
  sightspeak describe photo.jpg --enhance-from "A desk with a laptop."
  sightspeak detect --seed 7
  sightspeak config --show
  sightspeak tts --list
        """
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    _add_live_parser(subparsers)
    _add_describe_parser(subparsers)
    _add_detect_parser(subparsers)
    _add_config_parser(subparsers)
    _add_tts_parser(subparsers)

    return parser


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")
    return number


def _add_live_parser(subparsers):
    """Add live subcommand parser."""
    live = subparsers.add_parser(
        "live",
        help="Narrate the camera view periodically",
        description="Capture, describe and speak the scene on a fixed interval"
    )
    live.add_argument("--device", "-d", help="Camera index, stream URL, or 'auto' (default: SS_CAMERA_DEVICE)")
    live.add_argument("--image", "-i", help="Use a still image instead of the camera")
    live.add_argument("--interval", type=_positive_float,
                      help="Seconds between descriptions (default: SS_ANALYSIS_INTERVAL)")
    live.add_argument("--objects", action="store_true", default=None,
                      help="Run the mock object detector and pass labels to the model")
    live.add_argument("--no-tts", action="store_true", help="Print descriptions without speaking")
    live.add_argument("--duration", "-t", type=_positive_float,
                      help="Stop after N seconds (default: run until Ctrl+C)")
    live.add_argument("--model", "-m", help="Vision model (default: SS_MODEL)")
    live.add_argument("--provider", choices=["ollama", "openai", "mock"],
                      help="Description backend (default: SS_LLM_PROVIDER)")


def _add_describe_parser(subparsers):
    """Add describe subcommand parser."""
    describe = subparsers.add_parser(
        "describe",
        help="Describe a single image",
        description="One-shot scene description of an image file"
    )
    describe.add_argument("image", help="Image file to describe")
    describe.add_argument("--objects", action="store_true",
                          help="Include mock detected objects in the request")
    describe.add_argument("--enhance-from", metavar="TEXT",
                          help="Refine this previous description instead of starting fresh")
    describe.add_argument("--speak", action="store_true", help="Speak the description")
    describe.add_argument("--json", action="store_true", help="Print the wire response as JSON")
    describe.add_argument("--model", "-m", help="Vision model (default: SS_MODEL)")
    describe.add_argument("--provider", choices=["ollama", "openai", "mock"],
                          help="Description backend (default: SS_LLM_PROVIDER)")


def _add_detect_parser(subparsers):
    """Add detect subcommand parser."""
    detect = subparsers.add_parser(
        "detect",
        help="Show mock object detections",
        description="Generate a set of mock detections (placeholder detector)"
    )
    detect.add_argument("--seed", type=int, help="Random seed for repeatable output")
    detect.add_argument("--json", action="store_true", help="Print as JSON")


def _add_config_parser(subparsers):
    """Add config subcommand parser."""
    cfg = subparsers.add_parser(
        "config",
        help="Show or change configuration",
        description="Manage SightSpeak configuration (.env)"
    )
    cfg.add_argument("--show", action="store_true", help="Show current configuration")
    cfg.add_argument("--set", action="append", metavar="KEY=VALUE", dest="assignments",
                     help="Set a configuration value (repeatable)")
    cfg.add_argument("--save", action="store_true", help="Save configuration to .env")


def _add_tts_parser(subparsers):
    """Add tts subcommand parser."""
    tts = subparsers.add_parser(
        "tts",
        help="Check text-to-speech",
        description="List TTS engines or speak a test phrase"
    )
    tts.add_argument("--list", action="store_true", help="List available engines")
    tts.add_argument("text", nargs="?", help="Text to speak (default: test phrase)")


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = create_parser()
    return parser.parse_args(args)
