"""Data models for controller-managed tags and device registrations."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Mapping

DeviceHostOS = Literal["ios", "aviatrix"]

HOST_OS_VALUES: tuple[str, ...] = ("ios", "aviatrix")
DEFAULT_HOST_OS: DeviceHostOS = "ios"
DEFAULT_SSH_PORT = 22
USER_TAGS_CATEGORY = "usr_tags"


@dataclass(slots=True)
class TagSet:
    """Tags attached to one cloud resource."""

    cloud_type: int
    resource_type: str
    resource_name: str
    cid: str = ""
    tag_list: str = ""
    tags: dict[str, str] = field(default_factory=dict)
    tag_json: str = ""

    @classmethod
    def for_tags(
        cls, cloud_type: int, resource_type: str, resource_name: str, tags: Mapping[str, str]
    ) -> "TagSet":
        """Build a tag set ready for add/update from a key-value mapping."""

        tags = {str(key): str(value) for key, value in tags.items()}
        return cls(
            cloud_type=cloud_type,
            resource_type=resource_type,
            resource_name=resource_name,
            tag_list=",".join(f"{key}:{value}" for key, value in tags.items()),
            tags=tags,
            tag_json=json.dumps(tags),
        )

    @classmethod
    def for_deletion(
        cls, cloud_type: int, resource_type: str, resource_name: str, keys: Iterable[str]
    ) -> "TagSet":
        return cls(
            cloud_type=cloud_type,
            resource_type=resource_type,
            resource_name=resource_name,
            tag_list=",".join(keys),
        )

    def to_form(self, action: str) -> dict[str, str]:
        """Render add/update request parameters, skipping empty values."""

        form = {
            "action": action,
            "CID": self.cid,
            "cloud_type": str(self.cloud_type) if self.cloud_type else "",
            "resource_type": self.resource_type,
            "resource_name": self.resource_name,
            "new_tag_list": self.tag_list,
            "new_tag_json": self.tag_json,
        }
        return {key: value for key, value in form.items() if value}


@dataclass(slots=True)
class TagAPIResponse:
    """Envelope returned by ``list_resource_tags``."""

    return_: bool
    results: dict[str, dict[str, str]] = field(default_factory=dict)
    reason: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TagAPIResponse":
        """Decode the envelope, ignoring unknown keys and malformed categories."""

        raw_results = payload.get("results")
        results: dict[str, dict[str, str]] = {}
        if isinstance(raw_results, Mapping):
            for category, entries in raw_results.items():
                if not isinstance(entries, Mapping):
                    continue
                results[str(category)] = {str(key): str(value) for key, value in entries.items()}

        return cls(
            return_=bool(payload.get("return")),
            results=results,
            reason=str(payload.get("reason") or ""),
        )

    @property
    def usr_tags(self) -> dict[str, str] | None:
        return self.results.get(USER_TAGS_CATEGORY)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _as_port(value: Any) -> int:
    if value in (None, ""):
        return DEFAULT_SSH_PORT
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid ssh_port {value!r}") from exc


@dataclass(slots=True)
class Device:
    """Representation of a registered network device."""

    name: str
    public_ip: str = ""
    username: str = ""
    key_file: str = ""
    password: str = ""
    host_os: DeviceHostOS = DEFAULT_HOST_OS
    ssh_port: int = DEFAULT_SSH_PORT
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    zip_code: str = ""
    description: str = ""
    software_version: str = ""
    is_caag: bool = False

    def to_form(self) -> dict[str, str]:
        """Render the device as controller request parameters.

        ``key_file`` is a local path and is uploaded as a file part by the
        client, so it never appears here.
        """

        form = {
            "name": self.name,
            "public_ip": self.public_ip,
            "username": self.username,
            "host_os": self.host_os,
            "ssh_port": str(self.ssh_port),
            "address_1": self.address_1,
            "address_2": self.address_2,
            "city": self.city,
            "state": self.state,
            "country": self.country,
            "zip_code": self.zip_code,
            "description": self.description,
        }
        if self.password and not self.key_file:
            form["password"] = self.password
        if self.software_version:
            form["software_version"] = self.software_version
        return form

    @classmethod
    def from_results(cls, results: Mapping[str, Any]) -> "Device":
        """Build a device from a ``get_cloudwan_device_details`` record."""

        def text(key: str) -> str:
            value = results.get(key)
            return "" if value is None else str(value)

        return cls(
            name=text("name"),
            public_ip=text("public_ip"),
            username=text("username"),
            host_os=text("host_os") or DEFAULT_HOST_OS,  # type: ignore[arg-type]
            ssh_port=_as_port(results.get("ssh_port")),
            address_1=text("address_1"),
            address_2=text("address_2"),
            city=text("city"),
            state=text("state"),
            country=text("country"),
            zip_code=text("zip_code"),
            description=text("description"),
            software_version=text("software_version"),
            is_caag=_as_bool(results.get("is_caag")),
        )


@dataclass(slots=True)
class Gateway:
    """Gateway-scoped target of a software upgrade."""

    gw_name: str
    software_version: str
