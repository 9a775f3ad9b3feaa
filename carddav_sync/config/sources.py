"""
External CardDAV source configuration.

Sources are listed under the ``sources`` key of config.yaml:

    sources:
      - id: work
        name: Work Directory
        url: dav.example.com/addressbooks/alice/contacts/
        username: alice
        password_env: WORK_CARDDAV_PASSWORD
      - id: family
        url: https://cloud.example.org/remote.php/dav/addressbooks/users/bob/family/
        username: bob
        password: s3cret
        enabled: false

Notes:
    - ``id`` must be unique; it becomes part of every local book and contact id
    - ``name`` defaults to the id
    - Exactly one of ``password`` or ``password_env`` supplies the password;
      a referenced environment variable must be set
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from carddav_sync.config.loader import ConfigError

logger = logging.getLogger(__name__)


class SourceConfigError(ConfigError):
    """Raised when a source definition is invalid."""

    pass


def _require_str(data: dict[str, Any], key: str, label: str) -> str:
    value = data.get(key)
    if value is None:
        raise SourceConfigError(f"{label}: '{key}' is required")
    if not isinstance(value, str):
        raise SourceConfigError(
            f"{label}: '{key}' must be a string, got {type(value).__name__}"
        )
    if not value.strip():
        raise SourceConfigError(f"{label}: '{key}' cannot be empty")
    return value.strip()


@dataclass(frozen=True)
class SourceConfig:
    """
    One external address book with its credentials.

    Attributes:
        id: Stable identifier used to derive local ids
        name: Human-readable name
        url: Address book collection URL
        username: User name for Basic authentication
        password: Password for Basic authentication
        enabled: Disabled sources are skipped by ``sync``
    """

    id: str
    name: str
    url: str
    username: str
    password: str
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: Any, index: int = 0) -> SourceConfig:
        """
        Create a SourceConfig from a mapping.

        Args:
            data: Source mapping from the configuration file
            index: Position in the ``sources`` list, for error messages

        Raises:
            SourceConfigError: If the mapping is invalid
        """
        label = f"sources[{index}]"
        if not isinstance(data, dict):
            raise SourceConfigError(
                f"{label} must be a dictionary, got {type(data).__name__}"
            )

        source_id = _require_str(data, "id", label)
        label = f"source '{source_id}'"

        name = data.get("name", source_id)
        if not isinstance(name, str) or not name.strip():
            raise SourceConfigError(f"{label}: 'name' must be a non-empty string")

        url = _require_str(data, "url", label)
        username = _require_str(data, "username", label)

        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise SourceConfigError(
                f"{label}: 'enabled' must be a boolean, got {type(enabled).__name__}"
            )

        password = cls._resolve_password(data, label)

        return cls(
            id=source_id,
            name=name.strip(),
            url=url,
            username=username,
            password=password,
            enabled=enabled,
        )

    @staticmethod
    def _resolve_password(data: dict[str, Any], label: str) -> str:
        has_password = "password" in data
        has_env = "password_env" in data
        if has_password and has_env:
            raise SourceConfigError(
                f"{label}: set either 'password' or 'password_env', not both"
            )

        if has_env:
            env_name = _require_str(data, "password_env", label)
            password = os.environ.get(env_name)
            if password is None:
                raise SourceConfigError(
                    f"{label}: environment variable {env_name} is not set"
                )
            return password

        if has_password:
            password = data["password"]
            if not isinstance(password, str):
                raise SourceConfigError(
                    f"{label}: 'password' must be a string, "
                    f"got {type(password).__name__}"
                )
            return password

        raise SourceConfigError(f"{label}: 'password' or 'password_env' is required")

    def __repr__(self) -> str:
        # Keep the password out of logs and tracebacks
        return (
            f"SourceConfig(id={self.id!r}, name={self.name!r}, url={self.url!r}, "
            f"username={self.username!r}, enabled={self.enabled})"
        )


def load_sources(config: dict[str, Any]) -> list[SourceConfig]:
    """
    Parse the ``sources`` list of a loaded configuration.

    Args:
        config: Configuration dictionary from ConfigLoader

    Returns:
        Source configurations in file order (empty if none are configured)

    Raises:
        SourceConfigError: If the list or any entry is invalid, or ids repeat
    """
    raw_sources = config.get("sources") or []
    if not isinstance(raw_sources, list):
        raise SourceConfigError(
            f"sources must be a list, got {type(raw_sources).__name__}"
        )

    sources: list[SourceConfig] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw_sources):
        source = SourceConfig.from_dict(entry, index)
        if source.id in seen:
            raise SourceConfigError(f"Duplicate source id '{source.id}'")
        seen.add(source.id)
        sources.append(source)

    logger.debug(f"Loaded {len(sources)} source(s)")
    return sources
