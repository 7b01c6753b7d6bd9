"""
Manages loading and saving of the INI configuration file, which stores the
Figma access token and the user's default sync options.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from figma_imgs.exceptions import ConfigurationError
from figma_imgs.models.config import SyncConfig

log = logging.getLogger(__name__)

# Keys of the DEFAULT section that map onto SyncConfig fields
OPTION_KEYS = ("format", "scale", "figma_img_types", "concurrency", "save_dir")


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)
        self._loaded = False

    def _read(self) -> configparser.SectionProxy:
        if not self._loaded:
            if self.config_file_path.is_file():
                try:
                    self._parser.read(self.config_file_path, encoding="utf-8")
                except configparser.Error as e:
                    raise ConfigurationError(
                        f"Error parsing configuration file: {e}"
                    ) from e
            self._loaded = True
        return self._parser["DEFAULT"]

    def _write(self) -> None:
        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                self._parser.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def load_config(self, cli_options: dict[str, Any] | None = None) -> SyncConfig:
        """
        Loads default options from the INI file, applies CLI overrides, and validates.

        A missing config file is not an error; built-in defaults apply.

        Raises:
            ConfigurationError: If the file cannot be parsed or validation fails.
        """
        options = self._get_options_from_file()
        if cli_options:
            options.update({k: v for k, v in cli_options.items() if v is not None})
        return SyncConfig.from_options(options)

    def _get_options_from_file(self) -> dict[str, Any]:
        section = self._read()
        options: dict[str, Any] = {}
        try:
            if "format" in section:
                options["format"] = section.get("format")
            if "scale" in section:
                options["scale"] = section.getfloat("scale")
            if "concurrency" in section:
                options["concurrency"] = section.getint("concurrency")
            if "figma_img_types" in section:
                options["figma_img_types"] = [
                    t.strip()
                    for t in section.get("figma_img_types").split(",")
                    if t.strip()
                ]
            if section.get("save_dir"):
                options["save_dir"] = Path(section.get("save_dir"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e
        return options

    def get_token(self) -> str | None:
        """Returns the stored personal access token, if any."""
        token = self._read().get("token", "").strip()
        return token or None

    def save_token(self, token: str) -> None:
        self._read()["token"] = token.strip()
        self._write()
        log.debug(f"Saved access token to '{self.config_file_path}'.")

    def clear_token(self) -> bool:
        """Removes the stored token. Returns False if there was none."""
        section = self._read()
        if "token" not in section:
            return False
        del section["token"]
        self._write()
        log.debug("Removed stored access token.")
        return True

    def get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._read()
        data = {"token": section.get("token", "")}
        for key in OPTION_KEYS:
            if key in section:
                data[key] = section.get(key)
        return data
