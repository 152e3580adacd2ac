"""Settings for the site and vault generators.

Values come from the built-in defaults, then a ``.sessionpress.toml`` (or the
global config), then ``SESSIONPRESS_*`` environment variables, and finally
whatever flags the CLI was given.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".sessionpress.toml"
GLOBAL_CONFIG = Path.home() / ".config" / "sessionpress" / "config.toml"


class JournalSectionConfig(BaseModel):
    """[journal] section."""

    directory: str = ".context/journal"


class SiteSectionConfig(BaseModel):
    """[site] section."""

    output: str = ".context/journal-site"
    site_name: str = "Session Journal"
    max_recent_sessions: int = 20
    max_nav_title_len: int = 40


class VaultSectionConfig(BaseModel):
    """[vault] section."""

    output: str = ".context/journal-obsidian"
    max_related: int = 5
    max_recent_sessions: int = 20


class NormalizeSectionConfig(BaseModel):
    """[normalize] section."""

    wrap_width: int = Field(default=80, gt=0)
    max_title_len: int = Field(default=75, gt=0)


class SessionpressConfig(BaseModel):
    """Top-level configuration for both generators."""

    journal: JournalSectionConfig = Field(default_factory=JournalSectionConfig)
    site: SiteSectionConfig = Field(default_factory=SiteSectionConfig)
    vault: VaultSectionConfig = Field(default_factory=VaultSectionConfig)
    normalize: NormalizeSectionConfig = Field(default_factory=NormalizeSectionConfig)

    @property
    def journal_dir(self) -> Path:
        return Path(self.journal.directory).expanduser()

    @property
    def site_output(self) -> Path:
        return Path(self.site.output).expanduser()

    @property
    def vault_output(self) -> Path:
        return Path(self.vault.output).expanduser()


# (section, field) targets shared by env vars and CLI flags.
FIELD_TARGETS: dict[str, tuple[str, str]] = {
    "journal_dir": ("journal", "directory"),
    "site_output": ("site", "output"),
    "vault_output": ("vault", "output"),
    "wrap_width": ("normalize", "wrap_width"),
}
ENV_PREFIX = "SESSIONPRESS_"
INT_FIELDS = {"wrap_width"}


def load_config(path: str | Path | None = None) -> SessionpressConfig:
    """Build the effective config before CLI flags are applied.

    An explicit ``path`` is the only file considered. Without one, the
    project file in the working directory is tried first and the global
    file second. A file that is missing, unparsable or fails validation
    yields the defaults; environment variables are overlaid either way.
    """
    data: dict[str, object] = {}
    if path is not None:
        explicit = Path(path)
        if explicit.exists():
            data = _load_toml(explicit)
        else:
            logger.warning("Config file not found: %s", explicit)
    else:
        for candidate in (Path.cwd() / CONFIG_FILENAME, GLOBAL_CONFIG):
            if candidate.exists():
                data = _load_toml(candidate)
            if data:
                logger.info("Loaded config from %s", candidate)
                break

    try:
        config = SessionpressConfig.model_validate(data)
    except ValidationError as exc:
        logger.warning("Invalid configuration, using defaults: %s", exc)
        config = SessionpressConfig()
    return _apply_env_vars(config)


def merge_cli_overrides(config: SessionpressConfig, **cli_kwargs: object) -> SessionpressConfig:
    """Return ``config`` with every flag the user actually passed applied.

    Flags left as None and keywords with no config field are ignored.
    """
    values = {
        key: str(value) if isinstance(value, Path) else value
        for key, value in cli_kwargs.items()
        if value is not None
    }
    return _overlay(config, values)


def _load_toml(path: Path) -> dict[str, object]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: SessionpressConfig) -> SessionpressConfig:
    values: dict[str, object] = {}
    for key in FIELD_TARGETS:
        env_var = ENV_PREFIX + key.upper()
        raw = os.environ.get(env_var)
        if raw is None:
            continue
        if key in INT_FIELDS:
            try:
                number = int(raw)
            except ValueError:
                number = 0
            if number > 0:
                values[key] = number
            else:
                logger.warning("Ignoring %s=%r: expected a positive integer", env_var, raw)
            continue
        values[key] = raw
    return _overlay(config, values)


def _overlay(config: SessionpressConfig, values: dict[str, object]) -> SessionpressConfig:
    data = config.model_dump()
    for key, value in values.items():
        target = FIELD_TARGETS.get(key)
        if target is None:
            continue
        section, field = target
        data[section][field] = value
    return SessionpressConfig.model_validate(data)
