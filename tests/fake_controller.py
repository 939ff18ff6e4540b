"""In-memory controller implementing the transport contract for tests."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Mapping

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from netctrl.api.transport import basic_check

DEVICE_FIELDS = (
    "name",
    "public_ip",
    "username",
    "host_os",
    "ssh_port",
    "address_1",
    "address_2",
    "city",
    "state",
    "country",
    "zip_code",
    "description",
)
UPDATABLE_FIELDS = DEVICE_FIELDS[2:] + ("software_version",)


class FakeController:
    """Records every call and keeps tags and devices in dictionaries."""

    def __init__(self, cid: str = "cid-123", base_version: str = "6.8.1") -> None:
        self.cid = cid
        self.base_version = base_version
        self.calls: list[tuple[str, str, dict[str, Any], Mapping[str, Any] | None]] = []
        self.tags: dict[tuple[str, str, str], dict[str, str]] = {}
        self.devices: dict[str, dict[str, Any]] = {}
        self.uploaded_keys: dict[str, bytes] = {}
        self.upgrades: list[tuple[str, str]] = []
        self.rejections: dict[str, str] = {}

    def post(self, action, params, check=basic_check, files=None):
        self.calls.append(("POST", action, dict(params), files))
        payload = self._dispatch(action, params, files)
        check(payload)
        return payload

    def get(self, action, params, check=basic_check):
        self.calls.append(("GET", action, dict(params), None))
        payload = self._dispatch(action, params, None)
        check(payload)
        return payload

    def actions(self) -> list[str]:
        return [action for _, action, _, _ in self.calls]

    def _dispatch(self, action: str, params: Mapping[str, Any], files) -> dict[str, Any]:
        if params.get("CID") != self.cid:
            return {"return": False, "reason": "CID is invalid or expired."}
        if action in self.rejections:
            return {"return": False, "reason": self.rejections[action]}
        handler = getattr(self, f"_{action}", None)
        if handler is None:
            return {"return": False, "reason": f"Unknown action {action}"}
        return handler(params, files)

    @staticmethod
    def _ok(**extra: Any) -> dict[str, Any]:
        return {"return": True, "reason": "", **extra}

    @staticmethod
    def _resource(params: Mapping[str, Any]) -> tuple[str, str, str]:
        return (str(params["cloud_type"]), params["resource_type"], params["resource_name"])

    def _add_resource_tags(self, params, files):
        self.tags.setdefault(self._resource(params), {}).update(json.loads(params["new_tag_json"]))
        return self._ok()

    def _update_resource_tags(self, params, files):
        self.tags[self._resource(params)] = dict(json.loads(params["new_tag_json"]))
        return self._ok()

    def _delete_resource_tag(self, params, files):
        current = self.tags.get(self._resource(params), {})
        for key in params["del_tag_list"].split(","):
            current.pop(key, None)
        return self._ok()

    def _list_resource_tags(self, params, files):
        results: dict[str, Any] = {"sys_tags": {"Aviatrix-Created-Resource": "Do-Not-Delete"}}
        user_tags = self.tags.get(self._resource(params))
        if user_tags is not None:
            results["usr_tags"] = dict(user_tags)
        return self._ok(results=results)

    def _register_cloudwan_device(self, params, files):
        name = params["name"]
        if name in self.devices:
            return {"return": False, "reason": f"Device {name} already exists."}
        if files and "key_file" in files:
            self.uploaded_keys[name] = files["key_file"][1].read()
        elif not params.get("password"):
            return {"return": False, "reason": "Password or key file is required."}

        record = {field: params.get(field, "") for field in DEVICE_FIELDS}
        record["software_version"] = self.base_version
        record["is_caag"] = params.get("host_os") == "aviatrix"
        self.devices[name] = record
        return self._ok()

    def _get_cloudwan_device_details(self, params, files):
        record = self.devices.get(params["device_name"])
        if record is None:
            return {"return": False, "reason": f"Device {params['device_name']} does not exist."}
        return self._ok(results=dict(record))

    def _update_cloudwan_device_info(self, params, files):
        record = self.devices.get(params["name"])
        if record is None:
            return {"return": False, "reason": f"Device {params['name']} does not exist."}
        for field in UPDATABLE_FIELDS:
            if field in params and field != "software_version":
                record[field] = params[field]
        return self._ok()

    def _deregister_cloudwan_device(self, params, files):
        if self.devices.pop(params["device_name"], None) is None:
            return {"return": False, "reason": f"Device {params['device_name']} does not exist."}
        return self._ok()

    def _upgrade_gateway(self, params, files):
        record = self.devices.get(params["gateway_name"])
        if record is None or not record["is_caag"]:
            return {"return": False, "reason": f"Gateway {params['gateway_name']} does not exist."}
        self.upgrades.append((params["gateway_name"], params["software_version"]))
        record["software_version"] = params["software_version"]
        return self._ok()
