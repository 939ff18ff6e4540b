#!/usr/bin/env python3
"""Entry point for netctrl."""

from __future__ import annotations

import argparse
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

import yaml

# Ensure src/ is on sys.path for local imports when running as a script
ROOT_DIR = Path(__file__).resolve().parent.parent
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from netctrl.api.devices import DeviceClient  # noqa: E402
from netctrl.api.gateways import GatewayClient  # noqa: E402
from netctrl.api.tags import TagClient  # noqa: E402
from netctrl.api.transport import ControllerError, ControllerSession  # noqa: E402
from netctrl.common.run_summary import RunSummaryBuilder  # noqa: E402
from netctrl.core.config import load_controller_config, load_devices  # noqa: E402
from netctrl.core.logging import setup_logging  # noqa: E402
from netctrl.core.models import TagSet  # noqa: E402
from netctrl.core.secrets import (  # noqa: E402
    SecretNotFoundError,
    Secrets,
    get_controller_password,
    load_secrets,
)
from netctrl.resources.device_registration import (  # noqa: E402
    RegistrationError,
    delete_registration,
    read_registration,
)
from netctrl.resources.inventory import apply_device  # noqa: E402


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""

    parser = argparse.ArgumentParser(
        description=(
            "Manage device registrations and resource tags on the cloud-networking controller. "
            "Use this CLI to apply a devices inventory or to inspect single resources."
        ),
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=ROOT_DIR / "config" / "local.yml",
        help="Path to local.yml with the controller and logging sections",
    )
    parser.add_argument(
        "--devices",
        type=Path,
        default=ROOT_DIR / "config" / "devices.yml",
        help="Path to the devices inventory file (YAML)",
    )
    parser.add_argument(
        "--secrets",
        type=Path,
        default=ROOT_DIR / "config" / "secrets.yml",
        help="Path to the secrets file (YAML)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug-level logging for troubleshooting. Overrides config/local.yml logging.level.",
    )

    subcommands = parser.add_subparsers(dest="command", title="commands")

    apply_parser = subcommands.add_parser("apply", help="Register or update every device in the inventory")
    apply_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compare the inventory with the controller without changing anything",
    )
    apply_parser.add_argument(
        "--summary-dir",
        type=Path,
        default=None,
        help="Directory where a JSON run summary is written",
    )

    show_parser = subcommands.add_parser("show", help="Show a registered device")
    show_parser.add_argument("name", help="Device name")

    deregister_parser = subcommands.add_parser("deregister", help="Deregister a device")
    deregister_parser.add_argument("name", help="Device name")

    resource_parent = argparse.ArgumentParser(add_help=False)
    resource_parent.add_argument("--cloud-type", type=int, required=True, help="Numeric cloud type")
    resource_parent.add_argument("--resource-type", required=True, help="Resource type, e.g. vpc")
    resource_parent.add_argument("--resource-name", required=True, help="Resource name")

    tags_parser = subcommands.add_parser("tags", help="Manage resource tags")
    tag_commands = tags_parser.add_subparsers(dest="tags_command", title="tag commands", required=True)
    tag_commands.add_parser("list", help="List user tags", parents=[resource_parent])
    for name, help_text in (("add", "Add tags"), ("update", "Replace all tags")):
        tag_parser = tag_commands.add_parser(name, help=help_text, parents=[resource_parent])
        tag_parser.add_argument(
            "--tag", action="append", required=True, metavar="KEY=VALUE", help="Tag to set (repeatable)"
        )
    delete_parser = tag_commands.add_parser("delete", help="Delete tags by key", parents=[resource_parent])
    delete_parser.add_argument("--key", action="append", required=True, help="Tag key to delete (repeatable)")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = setup_logging(args.config, cli_level=logging.DEBUG if args.debug else None)

    if args.command is None:
        parser.print_help()
        return 0

    tags: dict[str, str] = {}
    if args.command == "tags":
        try:
            tags = _parse_tag_arguments(getattr(args, "tag", None) or [])
        except ValueError as exc:
            parser.error(str(exc))
            return 2

    try:
        session, secrets = _open_session(args, logger)
    except (OSError, ValueError, yaml.YAMLError, SecretNotFoundError, ControllerError):
        logger.exception("Unable to open a controller session.")
        return 1

    try:
        if args.command == "apply":
            return _run_apply(args, session, secrets, logger)
        if args.command == "show":
            return _run_show(args.name, session, logger)
        if args.command == "deregister":
            return _run_deregister(args.name, session, logger)
        return _run_tags(args, tags, session, logger)
    finally:
        session.close()


def _open_session(args: argparse.Namespace, logger: logging.Logger) -> tuple[ControllerSession, Secrets]:
    controller = load_controller_config(Path(args.config))
    secrets = load_secrets(Path(args.secrets), logger)

    session = ControllerSession(
        url=controller.url,
        username=controller.username,
        password=get_controller_password(secrets),
        verify_tls=controller.verify_tls,
        timeout=controller.timeout,
    )
    session.login()
    return session, secrets


def _run_apply(
    args: argparse.Namespace, session: ControllerSession, secrets: Secrets, logger: logging.Logger
) -> int:
    """Reconcile the devices inventory with the controller."""

    try:
        inventory = load_devices(Path(args.devices), logger)
    except Exception:
        logger.exception("Failed to load devices configuration.")
        return 1

    run_id = uuid.uuid4().hex[:8]
    summary = RunSummaryBuilder(
        run_id=run_id, timestamp=_timestamp(), controller=session.url, dry_run=args.dry_run
    )
    summary.set_devices_total(len(inventory))
    logger.info("Applying %d device(s) dry_run=%s run_id=%s", len(inventory), args.dry_run, run_id)

    device_client = DeviceClient(session)
    gateway_client = GatewayClient(session)
    for entry in inventory:
        result = apply_device(entry, device_client, gateway_client, secrets, args.dry_run, logger)
        summary.add_device(result)

    if args.summary_dir is not None:
        summary.save(Path(args.summary_dir), logger)

    totals = summary.build()["totals"]
    logger.info("Apply finished totals=%s", totals)
    return 1 if summary.failed else 0


def _run_show(name: str, session: ControllerSession, logger: logging.Logger) -> int:
    try:
        state = read_registration(DeviceClient(session), name)
    except RegistrationError:
        logger.exception("Lookup failed.", extra={"resource": name})
        return 1

    if state is None:
        logger.error("Device is not registered.", extra={"resource": name})
        return 1

    for secret_field in ("password", "key_file"):
        state.pop(secret_field, None)
    print(yaml.safe_dump(state, sort_keys=False), end="")
    return 0


def _run_deregister(name: str, session: ControllerSession, logger: logging.Logger) -> int:
    client = DeviceClient(session)
    try:
        if read_registration(client, name) is None:
            logger.info("Device already absent.", extra={"resource": name})
            return 0
        delete_registration(client, {"name": name})
    except RegistrationError:
        logger.exception("Deregistration failed.", extra={"resource": name})
        return 1
    return 0


def _run_tags(
    args: argparse.Namespace, tags: dict[str, str], session: ControllerSession, logger: logging.Logger
) -> int:
    client = TagClient(session)
    resource = (args.cloud_type, args.resource_type, args.resource_name)
    log_extra = {"resource": f"{args.resource_type}/{args.resource_name}"}

    try:
        if args.tags_command == "list":
            tag_list = client.get_tags(TagSet(*resource))
            for tag in sorted(tag_list or []):
                print(tag)
        elif args.tags_command == "add":
            client.add_tags(TagSet.for_tags(*resource, tags))
        elif args.tags_command == "update":
            client.update_tags(TagSet.for_tags(*resource, tags))
        else:
            client.delete_tags(TagSet.for_deletion(*resource, args.key))
    except ControllerError:
        logger.exception("Tag %s failed.", args.tags_command, extra=log_extra)
        return 1
    return 0


def _parse_tag_arguments(raw_tags: list[str]) -> dict[str, str]:
    tags: dict[str, str] = {}
    for raw in raw_tags:
        key, separator, value = raw.partition("=")
        if not separator or not key:
            raise ValueError(f"invalid tag '{raw}', expected KEY=VALUE")
        tags[key] = value
    return tags


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M%S")


if __name__ == "__main__":
    raise SystemExit(main())
