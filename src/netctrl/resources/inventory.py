"""Reconcile devices.yml entries with the controller."""

from __future__ import annotations

import logging

from netctrl.api.devices import DeviceClient
from netctrl.api.gateways import GatewayClient
from netctrl.api.transport import ControllerError, NotFoundError
from netctrl.common.run_summary import DeviceResultData
from netctrl.core.config import InventoryDevice
from netctrl.core.models import Device
from netctrl.core.secrets import SecretNotFoundError, Secrets, get_password
from netctrl.resources.device_registration import (
    RegistrationError,
    RegistrationInputError,
    create_registration,
    immutable_diff,
    marshal_device_input,
    registration_diff,
    update_registration,
)


def apply_device(
    entry: InventoryDevice,
    device_client: DeviceClient,
    gateway_client: GatewayClient,
    secrets: Secrets,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> DeviceResultData:
    """Register, update or leave a single device, logging the outcome."""

    logger = logger or logging.getLogger(__name__)
    log_extra = {"resource": entry.name}
    values = dict(entry.values)
    if entry.secrets_ref:
        try:
            values["password"] = get_password(entry.secrets_ref, secrets)
        except SecretNotFoundError:
            logger.error("Skipping device due to missing secret.", extra=log_extra)
            return DeviceResultData(name=entry.name, status="skipped", error="missing secret")

    try:
        desired = marshal_device_input(values)
    except RegistrationInputError as exc:
        logger.error("Invalid device definition: %s", exc, extra=log_extra)
        return DeviceResultData(name=entry.name, status="failed", error=str(exc))

    try:
        try:
            current = device_client.get_device(Device(name=desired.name))
        except NotFoundError:
            if dry_run:
                logger.info("would register device", extra=log_extra)
                return DeviceResultData(name=entry.name, status="planned", changed_fields=["*"])
            create_registration(device_client, values)
            return DeviceResultData(name=entry.name, status="registered")

        fixed = immutable_diff(desired, current)
        if fixed:
            message = f"fields {sorted(fixed)} cannot change; deregister and register the device again"
            logger.error(message, extra=log_extra)
            return DeviceResultData(name=entry.name, status="failed", error=message)

        changed = registration_diff(desired, current)
        if not changed:
            logger.info("device up to date", extra=log_extra)
            return DeviceResultData(name=entry.name, status="unchanged")

        if dry_run:
            logger.info("would update fields=%s", sorted(changed), extra=log_extra)
            return DeviceResultData(name=entry.name, status="planned", changed_fields=sorted(changed))

        update_registration(device_client, gateway_client, values, changed, current.is_caag)
    except (ControllerError, RegistrationError) as exc:
        logger.error("Apply failed: %s", exc, extra=log_extra)
        return DeviceResultData(name=entry.name, status="failed", error=str(exc))

    upgraded_to = desired.software_version if "software_version" in changed else None
    return DeviceResultData(
        name=entry.name, status="updated", changed_fields=sorted(changed), upgraded_to=upgraded_to
    )
