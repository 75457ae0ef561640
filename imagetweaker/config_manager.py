"""Configuration persistence for the editor.

This module handles loading and saving of EditorConfig to/from JSON files.
"""

import json
from dataclasses import asdict, fields
from pathlib import Path
from typing import Optional, Tuple

from .models import CONFIG_FILE, EditorConfig


class ConfigManager:
    """Handles loading and saving of editor configuration."""

    def __init__(self, config_path: Path = CONFIG_FILE):
        """Initialize config manager.

        Args:
            config_path: Path to configuration file (defaults to ~/.imagetweaker_config.json)
        """
        self.config_path = Path(config_path)

    def load(self) -> EditorConfig:
        """Load configuration from file, returning defaults if not found.

        Returns:
            EditorConfig with loaded or default values
        """
        config = EditorConfig()

        try:
            if self.config_path.exists():
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("expected a JSON object")
                # Update config with loaded values (fallback to defaults)
                for item in fields(config):
                    setattr(config, item.name, data.get(item.name, getattr(config, item.name)))
                print(f"✓ Loaded configuration from {self.config_path}")
        except Exception as e:
            print(f"Warning: Could not load config file: {e}")
            config = EditorConfig()

        return config

    def save(self, config: EditorConfig) -> Tuple[bool, Optional[str]]:
        """Save configuration to file.

        Args:
            config: EditorConfig to save

        Returns:
            Tuple of (success: bool, error_message: Optional[str])
        """
        try:
            with open(self.config_path, "w") as f:
                json.dump(asdict(config), f, indent=2)
            return True, None
        except Exception as e:
            return False, str(e)
