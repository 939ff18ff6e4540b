"""Helpers for building and persisting machine-readable apply summaries."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

DeviceOutcome = Literal["registered", "updated", "unchanged", "planned", "failed", "skipped"]


@dataclass(slots=True)
class DeviceResultData:
    """Outcome of reconciling one device."""

    name: str
    status: DeviceOutcome
    changed_fields: list[str] = field(default_factory=list)
    upgraded_to: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "status": self.status,
            "changed_fields": self.changed_fields,
            "upgraded_to": self.upgraded_to,
            "error": self.error,
        }


class RunSummaryBuilder:
    """Accumulate per-run data and store it as JSON."""

    def __init__(self, *, run_id: str, timestamp: str, controller: str, dry_run: bool) -> None:
        self.run_id = run_id
        self.timestamp = timestamp
        self.controller = controller
        self.dry_run = dry_run
        self.devices_total = 0
        self._devices: list[DeviceResultData] = []

    def set_devices_total(self, total: int) -> None:
        self.devices_total = max(0, total)

    def add_device(self, device: DeviceResultData) -> None:
        self._devices.append(device)

    def count(self, status: DeviceOutcome) -> int:
        return sum(1 for device in self._devices if device.status == status)

    @property
    def failed(self) -> bool:
        return any(device.status in ("failed", "skipped") for device in self._devices)

    def build(self) -> dict[str, object]:
        return {
            "run_id": self.run_id,
            "timestamp": self.timestamp,
            "controller": self.controller,
            "dry_run": self.dry_run,
            "totals": {
                "devices_total": self.devices_total,
                "devices_registered": self.count("registered"),
                "devices_updated": self.count("updated"),
                "devices_unchanged": self.count("unchanged"),
                "devices_planned": self.count("planned"),
                "devices_failed": self.count("failed"),
                "devices_skipped": self.count("skipped"),
                "gateways_upgraded": sum(1 for device in self._devices if device.upgraded_to),
            },
            "devices": [device.to_dict() for device in self._devices],
        }

    def save(self, summary_dir: Path, logger: logging.Logger) -> Path:
        summary_dir.mkdir(parents=True, exist_ok=True)

        target = summary_dir / f"apply_{self.run_id}.json"
        target.write_text(json.dumps(self.build(), indent=2, ensure_ascii=False), encoding="utf-8")

        logger.info("run_summary_json_saved path=%s", target)
        return target
