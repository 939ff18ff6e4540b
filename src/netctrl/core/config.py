"""Configuration helpers for netctrl."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from netctrl.core.models import DEFAULT_SSH_PORT, HOST_OS_VALUES

ENV_CONTROLLER_URL = "NETCTRL_CONTROLLER_URL"
ENV_CONTROLLER_USERNAME = "NETCTRL_CONTROLLER_USERNAME"
DEFAULT_TIMEOUT = 30.0

OPTIONAL_DEVICE_FIELDS = (
    "address_1",
    "address_2",
    "city",
    "state",
    "country",
    "zip_code",
    "description",
    "software_version",
)


@dataclass(slots=True)
class ControllerConfig:
    """Connection settings for the controller."""

    url: str
    username: str
    verify_tls: bool = True
    timeout: float = DEFAULT_TIMEOUT


@dataclass(slots=True)
class InventoryDevice:
    """A device entry from devices.yml.

    ``values`` holds the registration fields; the password is resolved
    separately through ``secrets_ref``.
    """

    name: str
    values: dict[str, Any] = field(default_factory=dict)
    secrets_ref: str | None = None


class ControllerConfigError(ValueError):
    """Raised when the controller section of local.yml is invalid."""


class DevicesConfigError(ValueError):
    """Raised when devices.yml cannot be parsed or validated."""


def _read_yaml(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _require_string(mapping: Mapping[str, Any], field: str, context: str) -> str:
    value = mapping.get(field)
    if value is None or value == "":
        raise DevicesConfigError(f"{context}: missing required field '{field}'.")
    if not isinstance(value, str):
        raise DevicesConfigError(f"{context}: field '{field}' must be a string.")
    return value


def _validate_port(value: Any, context: str) -> int:
    if value is None:
        return DEFAULT_SSH_PORT
    if isinstance(value, bool) or not isinstance(value, int):
        raise DevicesConfigError(f"{context}: port must be an integer.")
    if value <= 0 or value > 65535:
        raise DevicesConfigError(f"{context}: port must be between 1 and 65535.")
    return value


def _validate_host_os(value: Any, context: str) -> str | None:
    if value is None:
        return None
    if value not in HOST_OS_VALUES:
        raise DevicesConfigError(
            f"{context}: invalid host_os '{value}'. Allowed values: {', '.join(HOST_OS_VALUES)}."
        )
    return value


def load_controller_config(path: Path, env: Mapping[str, str] | None = None) -> ControllerConfig:
    """Load the ``controller`` section of local.yml with environment overrides."""

    env = os.environ if env is None else env
    section: Mapping[str, Any] = {}
    if path.exists():
        data = _read_yaml(path)
        if not isinstance(data, Mapping):
            raise ControllerConfigError("Top-level local.yml structure must be a mapping.")
        raw_section = data.get("controller", {})
        if not isinstance(raw_section, Mapping):
            raise ControllerConfigError("The 'controller' section must be a mapping.")
        section = raw_section

    url = env.get(ENV_CONTROLLER_URL) or section.get("url")
    username = env.get(ENV_CONTROLLER_USERNAME) or section.get("username")
    if not url or not isinstance(url, str):
        raise ControllerConfigError(
            f"controller url is required (local.yml controller.url or {ENV_CONTROLLER_URL})."
        )
    if not username or not isinstance(username, str):
        raise ControllerConfigError(
            f"controller username is required (local.yml controller.username or {ENV_CONTROLLER_USERNAME})."
        )

    verify_tls = section.get("verify_tls", True)
    if not isinstance(verify_tls, bool):
        raise ControllerConfigError("controller.verify_tls must be a boolean.")

    timeout = section.get("timeout", DEFAULT_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ControllerConfigError("controller.timeout must be a positive number of seconds.")

    return ControllerConfig(url=url, username=username, verify_tls=verify_tls, timeout=float(timeout))


def _parse_device(raw_device: Mapping[str, Any], context: str) -> InventoryDevice:
    name = _require_string(raw_device, "name", context)
    device_context = f"{context} '{name}'"
    public_ip = _require_string(raw_device, "public_ip", device_context)
    username = _require_string(raw_device, "username", device_context)

    if "password" in raw_device:
        raise DevicesConfigError(
            f"{device_context}: field 'password' is not allowed in devices.yml. "
            "Store secrets in config/secrets.yml."
        )

    key_file = raw_device.get("key_file")
    secrets_ref = raw_device.get("secrets_ref")
    if key_file is not None and not isinstance(key_file, str):
        raise DevicesConfigError(f"{device_context}: key_file must be a string when provided.")
    if secrets_ref is not None and not isinstance(secrets_ref, str):
        raise DevicesConfigError(f"{device_context}: secrets_ref must be a string when provided.")
    if key_file and secrets_ref:
        raise DevicesConfigError(f"{device_context}: set only one of 'key_file' or 'secrets_ref'.")

    values: dict[str, Any] = {
        "name": name,
        "public_ip": public_ip,
        "username": username,
        "ssh_port": _validate_port(raw_device.get("ssh_port"), f"{device_context} ssh_port"),
    }
    host_os = _validate_host_os(raw_device.get("host_os"), device_context)
    if host_os:
        values["host_os"] = host_os
    if key_file:
        values["key_file"] = key_file

    for optional in OPTIONAL_DEVICE_FIELDS:
        value = raw_device.get(optional)
        if value is None:
            continue
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise DevicesConfigError(f"{device_context}: {optional} must be a string when provided.")
        values[optional] = str(value)

    return InventoryDevice(name=name, values=values, secrets_ref=secrets_ref or None)


def load_devices(path: Path, logger: logging.Logger | None = None) -> list[InventoryDevice]:
    """Load and validate devices.yml according to the project schema."""

    logger = logger or logging.getLogger(__name__)

    if not path.exists():
        raise FileNotFoundError(f"Devices inventory not found: {path}")

    raw_data = _read_yaml(path)
    if not isinstance(raw_data, dict):
        raise DevicesConfigError("Top-level devices.yml structure must be a mapping.")

    raw_devices = raw_data.get("devices")
    if raw_devices is None:
        raise DevicesConfigError("devices.yml must contain a 'devices' list.")
    if not isinstance(raw_devices, list):
        raise DevicesConfigError("The 'devices' field must be a list of device entries.")

    devices: list[InventoryDevice] = []
    seen_names: set[str] = set()

    for index, raw_device in enumerate(raw_devices, start=1):
        context = f"device #{index}"
        if not isinstance(raw_device, dict):
            logger.error("%s: each device must be a mapping.", context, extra={"resource": "-"})
            continue

        log_extra = {"resource": raw_device.get("name") or "-"}
        try:
            device = _parse_device(raw_device, context)
        except DevicesConfigError as exc:
            logger.error("%s", exc, extra=log_extra)
            continue

        if device.name in seen_names:
            logger.error(
                "%s '%s': device name must be unique. Duplicate ignored.",
                context,
                device.name,
                extra=log_extra,
            )
            continue

        seen_names.add(device.name)
        devices.append(device)
        logger.debug(
            "device=%s public_ip=%s port=%s username=%s host_os=%s",
            device.name,
            device.values["public_ip"],
            device.values["ssh_port"],
            device.values["username"],
            device.values.get("host_os", "-"),
            extra={"resource": device.name},
        )

    return devices
