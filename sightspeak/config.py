"""
SightSpeak Configuration Module

Handles loading configuration from:
1. .env file
2. Environment variables
3. Default values

Usage:
    from sightspeak.config import config

    model = config.get("SS_MODEL", "llava")
    config.set("SS_MODEL", "llava:13b")
    config.save()
"""

__all__ = ["config", "Config", "DEFAULTS", "CONFIG_CATEGORIES"]

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

# Default configuration values
DEFAULTS = {
    # Description service
    "SS_MODEL": "llava:7b",
    "SS_LLM_PROVIDER": "ollama",       # ollama, openai
    "SS_OLLAMA_URL": "http://localhost:11434",
    "SS_OPENAI_API_KEY": "",
    "SS_LLM_TIMEOUT": "30",

    # Analysis loop
    "SS_ANALYSIS_INTERVAL": "5",       # seconds between description passes
    "SS_OBJECT_INTERVAL": "3",         # seconds between mock detector refreshes
    "SS_USE_OBJECTS": "false",

    # Camera
    "SS_CAMERA_DEVICE": "0",           # device index or stream URL
    "SS_CAMERA_FACING": "environment", # environment (rear), user (front)
    "SS_IMAGE_FORMAT": "image/jpeg",
    "SS_IMAGE_QUALITY": "80",

    # Speech
    "SS_TTS_ENGINE": "auto",           # auto, espeak, say, powershell, festival
    "SS_TTS_VOICE": "",
    "SS_TTS_RATE": "150",
    "SS_TTS_LANG": "en-US",

    # Mock detector
    "SS_DETECTOR_DELAY": "0.25",

    # Logging
    "SS_LOG_LEVEL": "INFO",
    "SS_LOG_FILE": "",
}

# Configuration categories, used for `sightspeak config --show` and full saves
CONFIG_CATEGORIES = {
    "Description Service": [
        ("SS_MODEL", "Vision Model", "Vision-language model used for scene descriptions"),
        ("SS_LLM_PROVIDER", "Provider", "Backend provider: ollama, openai"),
        ("SS_OLLAMA_URL", "Ollama URL", "Ollama server URL"),
        ("SS_OPENAI_API_KEY", "OpenAI API Key", "API key for OpenAI models"),
        ("SS_LLM_TIMEOUT", "Timeout (seconds)", "Description request timeout"),
    ],
    "Analysis Loop": [
        ("SS_ANALYSIS_INTERVAL", "Interval (seconds)", "Seconds between description passes"),
        ("SS_OBJECT_INTERVAL", "Object refresh (seconds)", "Seconds between object overlay refreshes"),
        ("SS_USE_OBJECTS", "Use Objects", "Run the mock detector alongside descriptions (true/false)"),
    ],
    "Camera": [
        ("SS_CAMERA_DEVICE", "Device", "Camera index or stream URL"),
        ("SS_CAMERA_FACING", "Facing", "Preferred camera: environment (rear) or user (front)"),
        ("SS_IMAGE_FORMAT", "Image Format", "MIME type of captured frames: image/jpeg, image/png"),
        ("SS_IMAGE_QUALITY", "JPEG Quality", "JPEG quality 1-100"),
    ],
    "Speech": [
        ("SS_TTS_ENGINE", "TTS Engine", "Text-to-speech engine: auto, espeak, say, powershell, festival"),
        ("SS_TTS_VOICE", "TTS Voice", "Preferred voice name (engine-specific)"),
        ("SS_TTS_RATE", "TTS Rate", "Speech rate (words per minute)"),
        ("SS_TTS_LANG", "Language", "Speech locale"),
    ],
    "Detector": [
        ("SS_DETECTOR_DELAY", "Simulated Delay", "Mock detector latency in seconds"),
    ],
    "Logging": [
        ("SS_LOG_LEVEL", "Log Level", "Logging level: DEBUG, INFO, WARNING, ERROR"),
        ("SS_LOG_FILE", "Log File", "Path to log file (empty = console only)"),
    ],
}


class Config:
    """Configuration manager for SightSpeak"""

    def __init__(self):
        self._config: Dict[str, str] = {}
        self._env_file: Optional[Path] = None
        self._load()

    def _find_env_file(self) -> Optional[Path]:
        """Find .env file in current directory or parent directories"""
        current = Path.cwd()

        for _ in range(5):
            env_path = current / ".env"
            if env_path.exists():
                return env_path
            current = current.parent

        return None

    def _load(self):
        """Load configuration from .env file and environment"""
        self._config = DEFAULTS.copy()

        self._env_file = self._find_env_file()
        if self._env_file:
            self._load_env_file(self._env_file)

        # Environment wins over .env
        for key in DEFAULTS.keys():
            env_val = os.environ.get(key)
            if env_val is not None:
                self._config[key] = env_val

    def _load_env_file(self, path: Path):
        """Load configuration from .env file"""
        try:
            with open(path, "r") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#"):
                        continue
                    if "=" in line:
                        key, _, value = line.partition("=")
                        key = key.strip()
                        value = value.strip().strip('"').strip("'")
                        if key in DEFAULTS:
                            self._config[key] = value
        except OSError:
            pass

    def get(self, key: str, default: Any = None) -> str:
        """Get configuration value"""
        return self._config.get(key, default or DEFAULTS.get(key, ""))

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get configuration value as boolean"""
        val = self.get(key, str(default))
        return val.lower() in ("true", "1", "yes", "on")

    def get_int(self, key: str, default: int = 0) -> int:
        """Get configuration value as integer"""
        try:
            return int(self.get(key, str(default)))
        except ValueError:
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        """Get configuration value as float"""
        try:
            return float(self.get(key, str(default)))
        except ValueError:
            return default

    def set(self, key: str, value: str):
        """Set configuration value"""
        self._config[key] = str(value)

    def save(self, path: Optional[Path] = None, full: bool = False, keys_only: List[str] = None):
        """Save configuration to .env file.

        Args:
            path: Path to save to (default: current .env file)
            full: If True, write all values. If False, only update existing keys.
            keys_only: If provided, only update these specific keys
        """
        if path is None:
            path = self._env_file or Path.cwd() / ".env"

        if path.exists() and not full:
            with open(path, "r") as f:
                existing_lines = f.readlines()

            updated_lines = []
            seen = set()
            for line in existing_lines:
                stripped = line.strip()
                if stripped and not stripped.startswith("#") and "=" in stripped:
                    key = stripped.split("=", 1)[0].strip()
                    wanted = key in keys_only if keys_only else key in self._config
                    if wanted and key in self._config:
                        updated_lines.append(f"{key}={self._config[key]}\n")
                        seen.add(key)
                        continue
                updated_lines.append(line)

            # Keys requested explicitly but missing from the file get appended
            for key in keys_only or []:
                if key not in seen and key in self._config:
                    updated_lines.append(f"{key}={self._config[key]}\n")

            with open(path, "w") as f:
                f.writelines(updated_lines)

            self._env_file = path
            return

        lines = []
        for category, items in CONFIG_CATEGORIES.items():
            lines.append(f"\n# {category}")
            for key, label, desc in items:
                value = self._config.get(key, DEFAULTS.get(key, ""))
                lines.append(f"{key}={value}")

        with open(path, "w") as f:
            f.write("# SightSpeak Configuration\n")
            f.write("# Generated by: sightspeak config --save\n")
            f.write("\n".join(lines))
            f.write("\n")

        self._env_file = path

    def to_dict(self) -> Dict[str, str]:
        """Get all configuration as dictionary"""
        return self._config.copy()

    def reload(self):
        """Reload configuration from files"""
        self._load()


# Global config instance
config = Config()
