"""Settings manager for loader settings.yaml files.

Manages three-scope settings system:
- User global (~/.hookloader/settings.yaml)
- Project (.hookloader/settings.yaml)
- Local (.hookloader/settings.local.yaml)

Loader configuration lives under the `loader` key of each file.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from .config import LoaderConfig

logger = logging.getLogger(__name__)

SCOPES = ("user", "project", "local")


class SettingsManager:
    """Manages loader settings across user/project/local scopes."""

    def __init__(self, hookloader_dir: Path | None = None, home_dir: Path | None = None):
        """Initialize settings manager with standard paths.

        Args:
            hookloader_dir: Base directory for project/local settings (for testing).
                If None, uses .hookloader in current directory.
            home_dir: Home directory for user settings (for testing).
        """
        if hookloader_dir is None:
            hookloader_dir = Path(".hookloader")
        if home_dir is None:
            home_dir = Path.home()

        self.user_settings_file = home_dir / ".hookloader" / "settings.yaml"
        self.project_settings_file = hookloader_dir / "settings.yaml"
        self.local_settings_file = hookloader_dir / "settings.local.yaml"

    def get_loader_config(self) -> LoaderConfig:
        """Build a LoaderConfig from the merged `loader` sections.

        Returns:
            Validated LoaderConfig
        """
        merged = self.get_merged_settings()
        return LoaderConfig.model_validate(merged.get("loader") or {})

    def set_loader_value(self, section: str, key: str, value: Any, scope: str = "project") -> None:
        """Set one entry of a loader section (map, bundles, versions, shim, paths).

        Args:
            section: Loader section name
            key: Entry key within the section
            value: Entry value
            scope: "user", "project", or "local"
        """
        target_file = self._file_for_scope(scope)
        self._update_settings(target_file, {"loader": {section: {key: value}}})
        logger.info(f"Set {scope} loader.{section}.{key}")

    def remove_loader_value(self, section: str, key: str, scope: str = "project") -> bool:
        """Remove one entry of a loader section.

        Args:
            section: Loader section name
            key: Entry key within the section
            scope: "user", "project", or "local"

        Returns:
            True if removed, False if not found
        """
        target_file = self._file_for_scope(scope)
        settings = self._read_settings(target_file)

        loader = (settings or {}).get("loader") or {}
        if key not in (loader.get(section) or {}):
            return False

        del loader[section][key]

        # Clean up empty sections
        if not loader[section]:
            del loader[section]
        if not loader:
            del settings["loader"]

        self._write_settings(target_file, settings)
        logger.info(f"Removed {scope} loader.{section}.{key}")
        return True

    def get_merged_settings(self) -> dict[str, Any]:
        """Get merged settings from all scopes.

        Merge order (later overrides earlier):
        1. User settings
        2. Project settings
        3. Local settings

        Returns:
            Merged settings dictionary
        """
        merged: dict[str, Any] = {}

        for path in (self.user_settings_file, self.project_settings_file, self.local_settings_file):
            settings = self._read_settings(path)
            if settings:
                merged = self._deep_merge(merged, settings)

        return merged

    def _file_for_scope(self, scope: str) -> Path:
        file_map = {
            "user": self.user_settings_file,
            "project": self.project_settings_file,
            "local": self.local_settings_file,
        }
        if scope not in file_map:
            raise ValueError(f"Unknown settings scope '{scope}' (expected one of {', '.join(SCOPES)})")
        return file_map[scope]

    def _read_settings(self, path: Path) -> dict[str, Any] | None:
        """Read settings from YAML file.

        Args:
            path: Path to settings file

        Returns:
            Settings dict or None if file doesn't exist or is unreadable
        """
        if not path.exists():
            return None

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
                return data if data else {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to read settings from {path}: {e}")
            return None

    def _write_settings(self, path: Path, settings: dict[str, Any]) -> None:
        """Write settings to YAML file.

        Args:
            path: Path to settings file
            settings: Settings dictionary
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(path, "w", encoding="utf-8") as f:
                yaml.dump(settings, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.error(f"Failed to write settings to {path}: {e}")
            raise

    def _update_settings(self, path: Path, updates: dict[str, Any]) -> None:
        existing = self._read_settings(path) or {}
        merged = self._deep_merge(existing, updates)
        self._write_settings(path, merged)

    def _deep_merge(self, base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries.

        Args:
            base: Base dictionary
            overlay: Overlay dictionary (takes precedence)

        Returns:
            Merged dictionary
        """
        result = base.copy()

        for key, value in overlay.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
