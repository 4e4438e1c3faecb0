"""
CLI Command Handlers

Each handler implements a specific CLI subcommand and returns an exit code.
"""

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from typing import List, Optional

from rich.table import Table

from ..config import CONFIG_CATEGORIES, DEFAULTS, config
from ..diagnostics import console
from ..exceptions import (
    CameraPermissionError,
    ConfigurationError,
    EnhanceUnavailableError,
    SightSpeakError,
)
from ..frame_capture import ImageBlob
from ..llm_client import DescriptionClient, DescriptionResponse, LLMConfig
from ..notifier import ConsoleNotifier
from ..object_detection import MockObjectDetector
from ..tts import SpeechOutput, check_tts, get_available_engines


def _llm_config(args: argparse.Namespace) -> LLMConfig:
    llm_config = LLMConfig.from_env()
    if getattr(args, "model", None):
        llm_config = replace(llm_config, model=args.model)
    if getattr(args, "provider", None):
        llm_config = replace(llm_config, provider=args.provider)
    return llm_config


# =============================================================================
# LIVE HANDLER
# =============================================================================

LIVE_CONTROLS = {
    "p": "pause / resume",
    "d": "describe now",
    "e": "enhance the last description",
    "q": "quit",
}


def _controls_help() -> str:
    return "⌨️  " + ", ".join(f"[bold]{key}[/bold] {action}" for key, action in LIVE_CONTROLS.items())


async def apply_control(loop, command: str):
    """Apply one typed live command (first letter of the line) to ``loop``."""
    key = command.strip().lower()[:1]

    if key == "p":
        running = loop.toggle()
        console.print("▶️  Resumed" if running else "⏸️  Paused")
    elif key in ("d", "e"):
        try:
            await loop.describe_now(enhance=key == "e")
        except EnhanceUnavailableError as e:
            console.print(f"[yellow]{e}[/yellow]")
    elif key == "q":
        loop.stop()
    else:
        console.print(_controls_help())


def _watch_stdin(aloop: asyncio.AbstractEventLoop, on_line) -> Optional[int]:
    """Call ``on_line`` for each line typed on an interactive stdin.

    Returns the watched file descriptor, or None when stdin is not a
    terminal or the event loop cannot watch it (Windows proactor loop).
    """
    if not sys.stdin or not sys.stdin.isatty():
        return None

    def _readable():
        line = sys.stdin.readline()
        if not line:
            aloop.remove_reader(fd)
            return
        on_line(line)

    try:
        fd = sys.stdin.fileno()
        aloop.add_reader(fd, _readable)
    except (NotImplementedError, OSError, ValueError):
        return None
    return fd


def handle_live(args: argparse.Namespace) -> int:
    """Handle the 'live' command: run the periodic analysis loop."""
    from ..narrator import build_loop

    notifier = ConsoleNotifier()
    try:
        loop = build_loop(
            image=args.image,
            device=args.device,
            interval=args.interval,
            objects=args.objects,
            tts=not args.no_tts,
            llm_config=_llm_config(args),
            notifier=notifier,
        )
    except CameraPermissionError as e:
        notifier.overlay(str(e))
        return 2
    except SightSpeakError as e:
        console.print(f"[red]❌ Error: {e}[/red]")
        return 1

    loop.on_description(lambda text: text and console.print(f"🗣️  {text}"))
    source = args.image or args.device or config.get("SS_CAMERA_DEVICE")
    console.print(f"🎬 Narrating {source} every {loop.config.interval:g}s (Ctrl+C to stop)")

    async def _run():
        aloop = asyncio.get_running_loop()
        pending = set()

        def _on_line(line: str):
            task = asyncio.ensure_future(apply_control(loop, line))
            pending.add(task)
            task.add_done_callback(pending.discard)

        fd = _watch_stdin(aloop, _on_line)
        if fd is not None:
            console.print(_controls_help() + " (then Enter)")
        try:
            await loop.run(duration=args.duration)
        finally:
            if fd is not None:
                aloop.remove_reader(fd)
            for task in pending:
                task.cancel()
            await loop.describer.close()
            loop.frames.close()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n🛑 Stopped")

    stats = loop.stats.to_dict()
    console.print(
        f"📊 {stats['passes_completed']} described, {stats['passes_failed']} failed, "
        f"{stats['ticks_dropped']} ticks dropped, {stats['avg_pass_seconds']:.2f}s per pass"
    )
    if args.verbose:
        loop.metrics.print_summary()
    return 2 if loop.fatal_error else 0


# =============================================================================
# DESCRIBE HANDLER
# =============================================================================

def handle_describe(args: argparse.Namespace) -> int:
    """Handle the 'describe' command: one-shot description of an image file."""
    try:
        blob = ImageBlob.from_file(args.image)
    except OSError as e:
        console.print(f"[red]❌ Cannot read image: {e}[/red]")
        return 1

    async def _describe() -> str:
        labels: List[str] = []
        if args.objects:
            objects = await MockObjectDetector().detect()
            labels = [obj.label for obj in objects]
            console.print(f"🔎 Objects: {', '.join(labels)}")

        async with DescriptionClient(_llm_config(args)) as client:
            if args.enhance_from:
                text = await client.enhance(blob, args.enhance_from, labels)
            else:
                text = await client.describe(blob, labels or None)

        if args.speak:
            await SpeechOutput().speak(text)
        return text

    try:
        text = asyncio.run(_describe())
    except SightSpeakError as e:
        console.print(f"[red]❌ AI Error: {e}[/red]")
        return 1

    if args.json:
        print(DescriptionResponse(description=text).model_dump_json())
    else:
        console.print(text)
    return 0


# =============================================================================
# DETECT HANDLER
# =============================================================================

def handle_detect(args: argparse.Namespace) -> int:
    """Handle the 'detect' command: print a set of mock detections."""
    detector = MockObjectDetector(delay=0, seed=args.seed)
    objects = detector.generate()

    if args.json:
        print(json.dumps([obj.to_dict() for obj in objects], indent=2))
        return 0

    table = Table(title="Mock detections")
    table.add_column("ID", style="cyan")
    table.add_column("Label")
    table.add_column("Confidence", justify="right")
    table.add_column("Box (x, y, w, h)")
    for obj in objects:
        table.add_row(
            obj.id,
            obj.label,
            f"{obj.confidence:.0%}",
            ", ".join(f"{v:.2f}" for v in obj.box),
        )
    console.print(table)
    return 0


# =============================================================================
# CONFIG HANDLER
# =============================================================================

def _mask(key: str, value: str) -> str:
    if value and ("KEY" in key or "PASS" in key or "TOKEN" in key):
        return value[:4] + "****"
    return value


def _parse_assignment(assignment: str) -> tuple:
    key, sep, value = assignment.partition("=")
    key = key.strip().upper()
    if not sep or not key:
        raise ConfigurationError(f"Expected KEY=VALUE, got: {assignment}")
    if key not in DEFAULTS:
        raise ConfigurationError(f"Unknown configuration key: {key}")
    return key, value.strip()


def handle_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    changed: List[str] = []
    for assignment in args.assignments or []:
        try:
            key, value = _parse_assignment(assignment)
        except ConfigurationError as e:
            console.print(f"[red]❌ {e}[/red]")
            return 1
        config.set(key, value)
        changed.append(key)
        console.print(f"✅ {key}={_mask(key, value)}")

    if args.save:
        if changed:
            config.save(keys_only=changed)
        else:
            config.save(full=True)
        console.print("💾 Configuration saved to .env")

    if args.show or not (changed or args.save):
        values = config.to_dict()
        for category, items in CONFIG_CATEGORIES.items():
            table = Table(title=category, title_justify="left")
            table.add_column("Key", style="cyan")
            table.add_column("Value")
            table.add_column("Description", style="dim")
            for key, _label, desc in items:
                table.add_row(key, _mask(key, values.get(key, "")), desc)
            console.print(table)
    return 0


# =============================================================================
# TTS HANDLER
# =============================================================================

def handle_tts(args: argparse.Namespace) -> int:
    """Handle the 'tts' command."""
    if args.list:
        engines = get_available_engines()
        if engines:
            console.print("🔊 Available engines: " + ", ".join(engines))
        else:
            console.print("[yellow]No TTS engine found. Install espeak (Linux).[/yellow]")
        return 0

    if args.text:
        speech = SpeechOutput()
        if speech.resolve_engine() is None:
            console.print("[yellow]No TTS engine found. Install espeak (Linux).[/yellow]")
            return 1
        asyncio.run(speech.speak(args.text))
        return 0

    result = asyncio.run(check_tts())
    console.print(result)
    return 0 if result["test_result"] == "success" else 1
