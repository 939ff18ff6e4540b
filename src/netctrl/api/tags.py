"""Resource tag operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from netctrl.api.transport import Transport
from netctrl.core.models import TagAPIResponse, TagSet

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TagClient:
    """Add, list, delete and replace tags on a cloud resource."""

    transport: Transport

    def add_tags(self, tag_set: TagSet) -> None:
        tag_set.cid = self.transport.cid
        self.transport.post("add_resource_tags", tag_set.to_form("add_resource_tags"))
        logger.info("tags added resource=%s", tag_set.resource_name, extra=_extra(tag_set))

    def get_tags(self, tag_set: TagSet) -> list[str] | None:
        """Fetch user tags into ``tag_set.tags`` and return them as ``key:value`` strings.

        Returns ``None`` when the resource carries no user tags, whether the
        category is missing or empty.
        """

        params = {
            "action": "list_resource_tags",
            "CID": self.transport.cid,
            "cloud_type": str(tag_set.cloud_type),
            "resource_type": tag_set.resource_type,
            "resource_name": tag_set.resource_name,
        }
        payload = self.transport.get(params["action"], params)
        response = TagAPIResponse.from_payload(payload)

        user_tags = response.usr_tags
        if user_tags is not None:
            tag_set.tags = user_tags
        if not user_tags:
            logger.debug("no user tags resource=%s", tag_set.resource_name, extra=_extra(tag_set))
            return None

        return [f"{key}:{value}" for key, value in user_tags.items()]

    def delete_tags(self, tag_set: TagSet) -> None:
        params = {
            "action": "delete_resource_tag",
            "CID": self.transport.cid,
            "cloud_type": str(tag_set.cloud_type),
            "del_tag_list": tag_set.tag_list,
            "resource_name": tag_set.resource_name,
            "resource_type": tag_set.resource_type,
        }
        self.transport.post(params["action"], params)
        logger.info(
            "tags deleted resource=%s keys=%s", tag_set.resource_name, tag_set.tag_list, extra=_extra(tag_set)
        )

    def update_tags(self, tag_set: TagSet) -> None:
        tag_set.cid = self.transport.cid
        self.transport.post("update_resource_tags", tag_set.to_form("update_resource_tags"))
        logger.info("tags replaced resource=%s", tag_set.resource_name, extra=_extra(tag_set))


def _extra(tag_set: TagSet) -> dict[str, str]:
    return {"resource": f"{tag_set.resource_type}/{tag_set.resource_name}"}
