"""Import configuration: typed settings, validation and JSON storage."""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger


ALLOWED_EXTENSIONS: frozenset[str] = frozenset({"txt", "md", "pdf"})

DEFAULT_SOURCE_ROOT: Path = Path.home() / "gravity_well_import"
DEFAULT_SETTINGS_FILE: Path = Path("config/gravity_well.json")

TAG_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_-]*$")


class ConfigurationError(Exception):
    """Raised when a run cannot start because of invalid configuration."""
    pass


def parse_extensions(raw: str) -> List[str]:
    """Split a comma separated extension list into normalized tokens.

    Tokens are lower-cased, trimmed and stripped of a leading dot; empty
    tokens are dropped.
    """
    tokens: List[str] = []
    for token in raw.split(','):
        token = token.strip().lower().lstrip('.')
        if token and token not in tokens:
            tokens.append(token)
    return tokens


def validate_extensions(raw: str) -> List[str]:
    """Return the normalized extension list or raise ConfigurationError."""
    extensions = parse_extensions(raw)
    if not extensions:
        raise ConfigurationError("No file extensions specified.")

    invalid = [ext for ext in extensions if ext not in ALLOWED_EXTENSIONS]
    if invalid:
        raise ConfigurationError(
            f"Invalid file extensions: {', '.join(invalid)}. "
            f"Only {', '.join(sorted(ALLOWED_EXTENSIONS))} are allowed."
        )
    return extensions


def parse_global_tags(raw: str) -> List[str]:
    """Split the comma separated global tag list, dropping empty entries."""
    return [tag.strip() for tag in raw.split(',') if tag.strip()]


def validate_global_tags(raw: str) -> List[str]:
    """Return the global tag list or raise ConfigurationError naming bad tags."""
    tags = parse_global_tags(raw)
    invalid = [tag for tag in tags if not TAG_PATTERN.match(tag)]
    if invalid:
        raise ConfigurationError(
            f"Invalid tags: {', '.join(invalid)}. "
            "Tags must not have spaces, special characters, or start with digits."
        )
    return tags


@dataclass(frozen=True)
class ImportConfig:
    """Immutable configuration for one import run."""

    # Source
    source_root: Path = DEFAULT_SOURCE_ROOT
    file_extensions: str = "txt,md"
    max_recursion_depth: int = 0

    # Destination
    vault_root: Path = Path(".")
    target_directory: str = "gravity_well"
    replicate_folder_structure: bool = True
    file_prefix: str = ""

    # Behaviour toggles
    dry_run: bool = True
    detect_external_urls: bool = True
    tag_notes: bool = True
    max_tags: int = 5
    create_internal_links: bool = False
    add_file_metadata: bool = True
    detect_additional_metadata: bool = False
    global_tags: str = ""
    max_file_size_mb: float = 2

    debug_enabled: bool = False

    def __post_init__(self) -> None:
        """Coerce path fields and validate numeric ranges."""
        # JSON and CLI layers hand us strings
        object.__setattr__(self, "source_root", Path(self.source_root).expanduser())
        object.__setattr__(self, "vault_root", Path(self.vault_root).expanduser())

        if self.max_recursion_depth < -1:
            raise ConfigurationError("Max recursion depth must be -1 (unlimited) or greater")
        if self.max_tags < 0:
            raise ConfigurationError("Max tags cannot be negative")
        if self.max_file_size_mb <= 0:
            raise ConfigurationError("Max file size must be positive")
        if not self.target_directory.strip():
            raise ConfigurationError("Target directory cannot be empty")

    @property
    def extensions(self) -> List[str]:
        return parse_extensions(self.file_extensions)

    @property
    def global_tag_list(self) -> List[str]:
        return parse_global_tags(self.global_tags)

    @property
    def max_file_size_bytes(self) -> float:
        return self.max_file_size_mb * 1024 * 1024

    def validate(self) -> List[str]:
        """Validate the run entry conditions before any file is touched.

        Returns:
            The normalized extension list.

        Raises:
            ConfigurationError: If the source root is missing or the
                extension list contains a token outside the allow-list, or
                a global tag is not a valid tag.
        """
        if not str(self.source_root).strip() or not self.source_root.exists():
            raise ConfigurationError(f"Import directory does not exist: {self.source_root}")
        if not self.source_root.is_dir():
            raise ConfigurationError(f"Import directory is not a directory: {self.source_root}")
        extensions = validate_extensions(self.file_extensions)
        validate_global_tags(self.global_tags)
        return extensions

    def with_overrides(self, **overrides: Any) -> ImportConfig:
        """Return a copy with the non-None overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source_root"] = str(self.source_root)
        data["vault_root"] = str(self.vault_root)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ImportConfig:
        """Build a config from stored data merged over the defaults.

        Unknown keys are ignored with a warning.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown settings keys: {', '.join(unknown)}")
        return cls(**{key: value for key, value in data.items() if key in known})


def load_settings(settings_file: Optional[Path] = None) -> ImportConfig:
    """Load settings from a JSON file, falling back to defaults.

    Args:
        settings_file: Path to the JSON settings file.

    Returns:
        Loaded ImportConfig instance.

    Raises:
        ConfigurationError: If the file exists but cannot be parsed.
    """
    settings_file = settings_file or DEFAULT_SETTINGS_FILE

    if not settings_file.exists():
        logger.debug(f"No settings file at {settings_file}, using defaults")
        return ImportConfig()

    try:
        data = json.loads(settings_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load settings: {e}")
        raise ConfigurationError(f"Failed to load settings from {settings_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {settings_file} must contain a JSON object")

    try:
        config = ImportConfig.from_dict(data)
    except TypeError as e:
        raise ConfigurationError(f"Invalid settings in {settings_file}: {e}") from e

    logger.info(f"Settings loaded from {settings_file}")
    return config


def save_settings(config: ImportConfig, settings_file: Optional[Path] = None) -> Path:
    """Persist settings as JSON and return the file path."""
    settings_file = settings_file or DEFAULT_SETTINGS_FILE
    settings_file.parent.mkdir(parents=True, exist_ok=True)
    settings_file.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")
    logger.info(f"Settings saved to {settings_file}")
    return settings_file


def reset_settings(settings_file: Optional[Path] = None) -> ImportConfig:
    """Overwrite stored settings with the defaults."""
    config = ImportConfig()
    save_settings(config, settings_file)
    return config
