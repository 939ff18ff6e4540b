"""Secrets management helpers.

Secrets are loaded from ``config/secrets.yml`` when present and can be
overridden via environment variables. Environment variables take priority,
and missing secrets trigger a fail-fast error for the affected device.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "NETCTRL_SECRET_"
ENV_CONTROLLER_PASSWORD = "NETCTRL_CONTROLLER_PASSWORD"
DEFAULT_SECRETS_PATH = Path("config/secrets.yml")


class SecretsConfigError(ValueError):
    """Raised when the secrets file is missing required structure."""


class SecretNotFoundError(KeyError):
    """Raised when a password cannot be resolved.

    Callers should handle it as a fail-fast signal for the affected device
    or, for the controller password, for the whole run.
    """


@dataclass(slots=True)
class Secrets:
    """Container for controller and device secrets."""

    entries: Mapping[str, str]
    source_path: Path
    controller_password: str | None = None
    missing_source: bool = False

    def get(self, secret_ref: str) -> str | None:
        return self.entries.get(secret_ref)


def _normalize_secret_ref(secret_ref: str) -> str:
    """Convert secret references to ``UPPER_SNAKE_CASE`` for env lookup."""

    normalized = re.sub(r"[^A-Z0-9]+", "_", secret_ref.upper())
    return normalized.strip("_")


def _require_password(entry: object, context: str) -> str:
    if not isinstance(entry, Mapping):
        raise SecretsConfigError(f"{context} must be a mapping.")
    password = entry.get("password")
    if password is None:
        raise SecretsConfigError(f"{context} is missing required field 'password'.")
    if not isinstance(password, str):
        raise SecretsConfigError(f"{context} field 'password' must be a string.")
    return password


def _load_file_secrets(path: Path) -> Secrets:
    """Load secrets from a YAML file.

    The expected structure matches ``config/secrets.yml.example``.
    """

    try:
        with path.open("r", encoding="utf-8") as handle:
            raw_data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise SecretsConfigError(f"Unable to read secrets file: {path}") from exc

    if not isinstance(raw_data, Mapping):
        raise SecretsConfigError("Top-level secrets.yml structure must be a mapping.")

    controller_password = None
    if "controller" in raw_data:
        controller_password = _require_password(raw_data["controller"], "Section 'controller'")

    raw_secrets = raw_data.get("secrets") or {}
    if not isinstance(raw_secrets, Mapping):
        raise SecretsConfigError("Field 'secrets' must be a mapping of secret refs.")

    entries = {
        str(ref): _require_password(entry, f"Secret '{ref}'") for ref, entry in raw_secrets.items()
    }
    return Secrets(entries=entries, source_path=path, controller_password=controller_password)


def load_secrets(path: Path = DEFAULT_SECRETS_PATH, logger: logging.Logger | None = None) -> Secrets:
    """Load secrets from the provided path."""

    logger = logger or logging.getLogger(__name__)
    if not path.exists():
        logger.warning("Secrets file not found at %s", path, extra={"resource": "-"})
        return Secrets(entries={}, source_path=path, missing_source=True)

    secrets = _load_file_secrets(path)
    logger.debug("Secrets file loaded path=%s entries=%d", path, len(secrets.entries))
    return secrets


def get_controller_password(secrets: Secrets, env: Mapping[str, str] | None = None) -> str:
    """Resolve the controller password: environment first, then secrets.yml."""

    env = os.environ if env is None else env
    value = env.get(ENV_CONTROLLER_PASSWORD)
    if value is not None:
        return value
    if secrets.controller_password is not None:
        return secrets.controller_password
    raise SecretNotFoundError("Controller password not found.")


def get_password(secret_ref: str, secrets: Secrets, env: Mapping[str, str] | None = None) -> str:
    """Resolve a device password.

    Resolution order:
    1. Environment variable ``NETCTRL_SECRET_<SECRET_REF>``
    2. ``config/secrets.yml``
    """

    env = os.environ if env is None else env
    value = env.get(f"{ENV_PREFIX}{_normalize_secret_ref(secret_ref)}")
    if value is not None:
        return value

    entry = secrets.get(secret_ref)
    if entry is not None:
        return entry

    raise SecretNotFoundError(f"Secret '{secret_ref}' not found.")
