"""Device registration operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from netctrl.api.transport import APIError, NotFoundError, Transport, TransportError
from netctrl.core.models import Device

logger = logging.getLogger(__name__)

NOT_FOUND_MARKER = "does not exist"


@dataclass(slots=True)
class DeviceClient:
    """Register, read, update and deregister network devices."""

    transport: Transport

    def register_device(self, device: Device) -> None:
        """Register ``device``; the controller decides on name collisions."""

        self._send("register_cloudwan_device", device)
        logger.info("device registered public_ip=%s", device.public_ip, extra={"resource": device.name})

    def get_device(self, device: Device) -> Device:
        """Look up a device by name and return the controller's record.

        Raises ``NotFoundError`` when the controller does not know the name.
        """

        params = {
            "action": "get_cloudwan_device_details",
            "CID": self.transport.cid,
            "device_name": device.name,
        }
        try:
            payload = self.transport.get(params["action"], params)
        except APIError as exc:
            if NOT_FOUND_MARKER in exc.reason.lower():
                raise NotFoundError(f"device '{device.name}' not found") from exc
            raise

        results = payload.get("results")
        if not isinstance(results, dict):
            raise APIError("device details response carried no results", action=params["action"])

        try:
            found = Device.from_results(results)
        except ValueError as exc:
            raise APIError(f"device details response is invalid: {exc}", action=params["action"]) from exc
        if not found.name:
            found.name = device.name
        return found

    def update_device(self, device: Device) -> None:
        """Overwrite every field of the registration with ``device``."""

        self._send("update_cloudwan_device_info", device)
        logger.info("device registration updated", extra={"resource": device.name})

    def deregister_device(self, device: Device) -> None:
        params = {
            "action": "deregister_cloudwan_device",
            "CID": self.transport.cid,
            "device_name": device.name,
        }
        self.transport.post(params["action"], params)
        logger.info("device deregistered", extra={"resource": device.name})

    def _send(self, action: str, device: Device) -> None:
        params = {"action": action, "CID": self.transport.cid, **device.to_form()}
        if not device.key_file:
            self.transport.post(action, params)
            return

        key_path = Path(device.key_file).expanduser()
        logger.debug("uploading key file path=%s", key_path, extra={"resource": device.name})
        try:
            handle = key_path.open("rb")
        except OSError as exc:
            raise TransportError(f"cannot read key file {key_path}: {exc}") from exc
        with handle:
            self.transport.post(action, params, files={"key_file": (key_path.name, handle)})
