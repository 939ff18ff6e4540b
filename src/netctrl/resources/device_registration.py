"""Lifecycle of a device registration as seen by a declarative caller.

The functions here sit on top of :class:`~netctrl.api.devices.DeviceClient`
and carry the rules the client itself does not enforce:

* input validation, including "exactly one of ``key_file``/``password``";
* a missing device on read means the registration is gone, not an error;
* a ``software_version`` change is only allowed for managed-gateway (CaaG)
  devices and is realised as a second, Gateway-scoped upgrade call after the
  device update.
"""

from __future__ import annotations

import ipaddress
import logging
import os
from typing import Any, Mapping

from netctrl.api.devices import DeviceClient
from netctrl.api.gateways import GatewayClient
from netctrl.api.transport import ControllerError, NotFoundError
from netctrl.core.models import DEFAULT_HOST_OS, DEFAULT_SSH_PORT, HOST_OS_VALUES, Device, Gateway

logger = logging.getLogger(__name__)

DEVICE_PASSWORD_ENV = "NETCTRL_DEVICE_PASSWORD"

OPTIONAL_TEXT_FIELDS = (
    "address_1",
    "address_2",
    "city",
    "state",
    "country",
    "zip_code",
    "description",
    "software_version",
)
MUTABLE_FIELDS = ("username", "ssh_port") + OPTIONAL_TEXT_FIELDS
IMMUTABLE_FIELDS = ("public_ip", "host_os")


class RegistrationInputError(ValueError):
    """Raised when registration input fails validation."""


class RegistrationError(RuntimeError):
    """Raised when a registration lifecycle step fails."""


def _require_string(values: Mapping[str, Any], field: str) -> str:
    value = values.get(field)
    if value is None or value == "":
        raise RegistrationInputError(f"missing required field '{field}'.")
    if not isinstance(value, str):
        raise RegistrationInputError(f"field '{field}' must be a string.")
    return value


def _optional_string(values: Mapping[str, Any], field: str) -> str:
    value = values.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise RegistrationInputError(f"field '{field}' must be a string when provided.")
    return value


def _validate_ip(value: str) -> str:
    try:
        ipaddress.ip_address(value)
    except ValueError as exc:
        raise RegistrationInputError(f"public_ip '{value}' is not a valid IP address.") from exc
    return value


def _validate_host_os(value: Any) -> str:
    if value is None or value == "":
        return DEFAULT_HOST_OS
    if value not in HOST_OS_VALUES:
        raise RegistrationInputError(
            f"invalid host_os '{value}'. Allowed values: {', '.join(HOST_OS_VALUES)}."
        )
    return value


def _validate_port(value: Any) -> int:
    if value is None:
        return DEFAULT_SSH_PORT
    if isinstance(value, bool) or not isinstance(value, int):
        raise RegistrationInputError("ssh_port must be an integer.")
    if value <= 0 or value > 65535:
        raise RegistrationInputError("ssh_port must be between 1 and 65535.")
    return value


def marshal_device_input(values: Mapping[str, Any], env: Mapping[str, str] | None = None) -> Device:
    """Validate caller values and build the :class:`Device` to send."""

    env = os.environ if env is None else env

    key_file = _optional_string(values, "key_file")
    password = _optional_string(values, "password")
    if not password and not key_file:
        password = env.get(DEVICE_PASSWORD_ENV, "")
    if bool(key_file) == bool(password):
        raise RegistrationInputError("exactly one of 'key_file' or 'password' must be set.")

    optional = {field: _optional_string(values, field) for field in OPTIONAL_TEXT_FIELDS}
    return Device(
        name=_require_string(values, "name"),
        public_ip=_validate_ip(_require_string(values, "public_ip")),
        username=_require_string(values, "username"),
        key_file=key_file,
        password=password,
        host_os=_validate_host_os(values.get("host_os")),  # type: ignore[arg-type]
        ssh_port=_validate_port(values.get("ssh_port")),
        **optional,
    )


def device_state(device: Device, values: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Flatten a controller record into caller state.

    Credentials are never returned by the controller, so they are carried
    over from ``values``.
    """

    values = values or {}
    state: dict[str, Any] = {
        "name": device.name,
        "public_ip": device.public_ip,
        "username": device.username,
        "key_file": values.get("key_file") or "",
        "password": values.get("password") or "",
        "host_os": device.host_os,
        "ssh_port": device.ssh_port,
    }
    for field in OPTIONAL_TEXT_FIELDS:
        state[field] = getattr(device, field)
    state["is_caag"] = device.is_caag
    return state


def create_registration(client: DeviceClient, values: Mapping[str, Any]) -> str:
    """Register a device and return its resource ID (the device name)."""

    device = marshal_device_input(values)
    try:
        client.register_device(device)
    except ControllerError as exc:
        raise RegistrationError(f"could not register device: {exc}") from exc
    return device.name


def read_registration(
    client: DeviceClient, resource_id: str, values: Mapping[str, Any] | None = None
) -> dict[str, Any] | None:
    """Return the current state of a registration, or ``None`` when it is gone."""

    name = (values or {}).get("name") or ""
    if not name:
        logger.debug("no device name received, treating as import id=%s", resource_id)
        name = resource_id

    try:
        device = client.get_device(Device(name=name))
    except NotFoundError:
        logger.info("device registration no longer exists", extra={"resource": name})
        return None
    except ControllerError as exc:
        raise RegistrationError(f"could not find device {name}: {exc}") from exc

    return device_state(device, values)


def update_registration(
    device_client: DeviceClient,
    gateway_client: GatewayClient,
    values: Mapping[str, Any],
    changed: set[str] | frozenset[str],
    is_caag: bool,
) -> str:
    """Push changed values and upgrade the gateway when the version changed.

    The upgrade is a separate call against the gateway named after the
    device; it is never folded into the device update.
    """

    device = marshal_device_input(values)
    upgrade = "software_version" in changed
    if upgrade and not is_caag:
        raise RegistrationError(
            "'software_version' can only be updated for managed cloudN (CaaG) devices"
        )

    try:
        device_client.update_device(device)
    except ControllerError as exc:
        raise RegistrationError(f"could not update device registration information: {exc}") from exc

    if upgrade:
        try:
            gateway_client.upgrade_gateway(
                Gateway(gw_name=device.name, software_version=device.software_version)
            )
        except ControllerError as exc:
            raise RegistrationError(f"could not upgrade CaaG: {exc}") from exc

    return device.name


def delete_registration(client: DeviceClient, values: Mapping[str, Any]) -> None:
    name = _require_string(values, "name")
    try:
        client.deregister_device(Device(name=name))
    except ControllerError as exc:
        raise RegistrationError(f"could not deregister device: {exc}") from exc


def registration_diff(desired: Device, current: Device) -> set[str]:
    """Return mutable fields whose desired value differs from the controller's.

    An empty desired ``software_version`` leaves the version unmanaged.
    """

    changed: set[str] = set()
    for field in MUTABLE_FIELDS:
        wanted = getattr(desired, field)
        if field == "software_version" and not wanted:
            continue
        if wanted != getattr(current, field):
            changed.add(field)
    return changed


def immutable_diff(desired: Device, current: Device) -> set[str]:
    """Return fields that cannot change without re-registering the device."""

    return {field for field in IMMUTABLE_FIELDS if getattr(desired, field) != getattr(current, field)}
