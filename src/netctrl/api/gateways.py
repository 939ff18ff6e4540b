"""Gateway-scoped operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from netctrl.api.transport import Transport
from netctrl.core.models import Gateway

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GatewayClient:
    """Operations addressed to a gateway rather than a device record."""

    transport: Transport

    def upgrade_gateway(self, gateway: Gateway) -> None:
        """Request a software upgrade; the controller runs it asynchronously."""

        params = {
            "action": "upgrade_gateway",
            "CID": self.transport.cid,
            "gateway_name": gateway.gw_name,
            "software_version": gateway.software_version,
        }
        self.transport.post(params["action"], params)
        logger.info(
            "gateway upgrade requested software_version=%s",
            gateway.software_version,
            extra={"resource": gateway.gw_name},
        )
