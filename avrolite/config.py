"""avrolite configuration."""

import logging
import os
from typing import Optional

import yaml

from avrolite.exceptions import ConfigurationException

DEFAULT_SYNC_INTERVAL = 64000


class ContainerConfig:
    """Configuration for container file writers.

    A block is flushed once its buffered bytes reach ``sync_interval``, or
    once it holds ``max_block_records`` records. A ``max_block_records`` of
    0 disables the record-count threshold.
    """

    def __init__(
        self,
        sync_interval: int = DEFAULT_SYNC_INTERVAL,
        max_block_records: int = 0,
    ):
        self._sync_interval = sync_interval
        self._max_block_records = max_block_records
        self._validate()

    def _validate(self) -> None:
        if not isinstance(self._sync_interval, int) or self._sync_interval <= 0:
            raise ConfigurationException("sync_interval must be a positive integer")
        if not isinstance(self._max_block_records, int) or self._max_block_records < 0:
            raise ConfigurationException("max_block_records must be a non-negative integer")

    @property
    def sync_interval(self) -> int:
        """Get the block size, in bytes, that triggers a flush."""
        return self._sync_interval

    @sync_interval.setter
    def sync_interval(self, value: int) -> None:
        self._sync_interval = value
        self._validate()

    @property
    def max_block_records(self) -> int:
        """Get the record count that triggers a flush (0 for no limit)."""
        return self._max_block_records

    @max_block_records.setter
    def max_block_records(self, value: int) -> None:
        self._max_block_records = value
        self._validate()

    @classmethod
    def from_dict(cls, data: dict) -> "ContainerConfig":
        """Create ContainerConfig from a dictionary."""
        return cls(
            sync_interval=data.get("sync_interval", DEFAULT_SYNC_INTERVAL),
            max_block_records=data.get("max_block_records", 0),
        )


class TextConfig:
    """Configuration for the JSON text encoding."""

    def __init__(self, indent: Optional[int] = None, sort_keys: bool = False):
        self._indent = indent
        self._sort_keys = sort_keys
        self._validate()

    def _validate(self) -> None:
        if self._indent is not None and (not isinstance(self._indent, int) or self._indent < 0):
            raise ConfigurationException("indent must be None or a non-negative integer")

    @property
    def indent(self) -> Optional[int]:
        """Get the indentation used for pretty printing, None for compact output."""
        return self._indent

    @indent.setter
    def indent(self, value: Optional[int]) -> None:
        self._indent = value
        self._validate()

    @property
    def sort_keys(self) -> bool:
        """Get whether object keys are sorted instead of following schema order."""
        return self._sort_keys

    @sort_keys.setter
    def sort_keys(self, value: bool) -> None:
        self._sort_keys = value

    @classmethod
    def from_dict(cls, data: dict) -> "TextConfig":
        """Create TextConfig from a dictionary."""
        return cls(
            indent=data.get("indent"),
            sort_keys=data.get("sort_keys", False),
        )


class AvroliteConfig:
    """Top-level avrolite configuration.

    Attributes:
        container: Container file writer settings.
        text: JSON text encoding settings.
        log_level: Level applied to the ``avrolite`` logger, by name.

    Example:
        From a YAML file::

            config = AvroliteConfig.from_yaml("avrolite.yml")

        where ``avrolite.yml`` holds::

            avrolite:
              log_level: DEBUG
              container:
                sync_interval: 16000
                max_block_records: 100
              text:
                indent: 2
    """

    def __init__(self):
        self._container: ContainerConfig = ContainerConfig()
        self._text: TextConfig = TextConfig()
        self._log_level: str = "WARNING"

    @property
    def container(self) -> ContainerConfig:
        """Get the container configuration."""
        return self._container

    @container.setter
    def container(self, value: ContainerConfig) -> None:
        self._container = value

    @property
    def text(self) -> TextConfig:
        """Get the text encoding configuration."""
        return self._text

    @text.setter
    def text(self, value: TextConfig) -> None:
        self._text = value

    @property
    def log_level(self) -> str:
        """Get the log level name."""
        return self._log_level

    @log_level.setter
    def log_level(self, value: str) -> None:
        if not isinstance(value, str) or not isinstance(logging.getLevelName(value.upper()), int):
            raise ConfigurationException(f"Unknown log level: {value!r}")
        self._log_level = value.upper()

    @property
    def log_level_number(self) -> int:
        """Get the log level as a ``logging`` constant."""
        return logging.getLevelName(self._log_level)

    @classmethod
    def from_dict(cls, data: dict) -> "AvroliteConfig":
        """Create AvroliteConfig from a dictionary."""
        if not isinstance(data, dict):
            raise ConfigurationException(f"Configuration must be a mapping, got {type(data).__name__}")
        config = cls()

        if "container" in data:
            config.container = ContainerConfig.from_dict(data["container"] or {})

        if "text" in data:
            config.text = TextConfig.from_dict(data["text"] or {})

        if "log_level" in data:
            config.log_level = data["log_level"]

        return config

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "AvroliteConfig":
        """Load configuration from a YAML file.

        Args:
            yaml_path: Path to the YAML configuration file.

        Returns:
            AvroliteConfig instance.

        Raises:
            ConfigurationException: If the file cannot be read or parsed.
        """
        if not os.path.exists(yaml_path):
            raise ConfigurationException(f"Configuration file not found: {yaml_path}")

        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Failed to parse YAML: {e}", cause=e)
        except IOError as e:
            raise ConfigurationException(f"Failed to read configuration file: {e}", cause=e)

        return cls._from_loaded(data)

    @classmethod
    def from_yaml_string(cls, yaml_content: str) -> "AvroliteConfig":
        """Load configuration from a YAML string.

        Args:
            yaml_content: YAML configuration as a string.

        Returns:
            AvroliteConfig instance.

        Raises:
            ConfigurationException: If the YAML cannot be parsed.
        """
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Failed to parse YAML: {e}", cause=e)

        return cls._from_loaded(data)

    @classmethod
    def _from_loaded(cls, data) -> "AvroliteConfig":
        if data is None:
            data = {}

        if isinstance(data, dict) and "avrolite" in data:
            data = data["avrolite"] or {}

        return cls.from_dict(data)
