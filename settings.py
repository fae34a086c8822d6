"""
settings.py

Persistent settings management for layoutsketch.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/layoutsketch/settings.toml
    - macOS: ~/Library/Application Support/layoutsketch/settings.toml
    - Linux: ~/.config/layoutsketch/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs
import tomli_w

APP_NAME = "layoutsketch"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


def set_settings(manager: Optional["SettingsManager"]) -> None:
    """Replace the global settings manager (``None`` resets to lazy default)."""
    global _settings_manager
    _settings_manager = manager


# =============================================================================
# Annotation Settings
# =============================================================================

@dataclass
class AnnotationDefaultSettings:
    """Defaults applied to newly created annotations.

    Defaults:
        default_component_kind: "Button"
        default_color: "#3b82f6"
        duplicate_offset: 0.02
    """
    default_component_kind: str = "Button"  # Default: "Button"
    default_color: str = "#3b82f6"          # Default: blue
    duplicate_offset: float = 0.02          # Default: 2% of the image, both axes


# =============================================================================
# Export Settings
# =============================================================================

@dataclass
class ExportSettings:
    """Report and record export settings.

    Defaults:
        image_name: "image.png"
        requirements: "" (use the built-in requirements text)
        report_filename: "prompt.md"
        records_filename: "annotations.json"
        validate_records: True
    """
    image_name: str = "image.png"             # Default: "image.png"
    requirements: str = ""                    # Default: "" (built-in text)
    report_filename: str = "prompt.md"        # Default: "prompt.md"
    records_filename: str = "annotations.json"  # Default: "annotations.json"
    validate_records: bool = True             # Default: True


# =============================================================================
# Debug Settings
# =============================================================================

@dataclass
class DebugSettings:
    """Trace output settings.

    Defaults:
        trace: False
        log_file: "" (stderr only)
    """
    trace: bool = False   # Default: False
    log_file: str = ""    # Default: "" (no file)


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        annotations: Defaults for new annotations.
        export: Report/record export settings.
        debug: Trace output settings.
    """
    annotations: AnnotationDefaultSettings = field(default_factory=AnnotationDefaultSettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    debug: DebugSettings = field(default_factory=DebugSettings)


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Explicit directory, overriding the platform location.
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Path] = None):
        if settings_dir is None:
            settings_dir = Path(platformdirs.user_config_dir(app_name))
        self.settings_dir = Path(settings_dir)
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError):
            # If file is corrupted or unreadable, return defaults
            return AppSettings()

        return self._parse_toml(data)

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        ann = data.get("annotations", {})
        settings.annotations.default_component_kind = ann.get(
            "default_component_kind", settings.annotations.default_component_kind)
        settings.annotations.default_color = ann.get("default_color", settings.annotations.default_color)
        settings.annotations.duplicate_offset = float(
            ann.get("duplicate_offset", settings.annotations.duplicate_offset))

        export = data.get("export", {})
        settings.export.image_name = export.get("image_name", settings.export.image_name)
        settings.export.requirements = export.get("requirements", settings.export.requirements)
        settings.export.report_filename = export.get("report_filename", settings.export.report_filename)
        settings.export.records_filename = export.get("records_filename", settings.export.records_filename)
        settings.export.validate_records = export.get("validate_records", settings.export.validate_records)

        debug = data.get("debug", {})
        settings.debug.trace = debug.get("trace", settings.debug.trace)
        settings.debug.log_file = debug.get("log_file", settings.debug.log_file)

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "annotations": {
                "default_component_kind": s.annotations.default_component_kind,
                "default_color": s.annotations.default_color,
                "duplicate_offset": s.annotations.duplicate_offset,
            },
            "export": {
                "image_name": s.export.image_name,
                "requirements": s.export.requirements,
                "report_filename": s.export.report_filename,
                "records_filename": s.export.records_filename,
                "validate_records": s.export.validate_records,
            },
            "debug": {
                "trace": s.debug.trace,
                "log_file": s.debug.log_file,
            },
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        return tomli_w.dumps(self._to_toml_dict())

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
