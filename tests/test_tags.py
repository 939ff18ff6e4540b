import json
import sys
import unittest
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from fake_controller import FakeController
from netctrl.api.tags import TagClient
from netctrl.api.transport import APIError
from netctrl.core.models import TagAPIResponse, TagSet


class TagClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.controller = FakeController()
        self.client = TagClient(self.controller)

    def _tags(self, tags: dict[str, str]) -> TagSet:
        return TagSet.for_tags(1, "vpc", "spoke-vpc", tags)

    def test_add_stamps_session_and_action(self) -> None:
        tag_set = self._tags({"env": "prod"})
        self.client.add_tags(tag_set)

        method, action, params, _ = self.controller.calls[-1]
        self.assertEqual("POST", method)
        self.assertEqual("add_resource_tags", action)
        self.assertEqual("cid-123", tag_set.cid)
        self.assertEqual("add_resource_tags", params["action"])
        self.assertEqual("cid-123", params["CID"])
        self.assertEqual("1", params["cloud_type"])
        self.assertEqual("env:prod", params["new_tag_list"])
        self.assertEqual({"env": "prod"}, json.loads(params["new_tag_json"]))

    def test_get_after_add_returns_exactly_added_tags(self) -> None:
        tags = {"env": "prod", "owner": "netops", "cost-center": "42"}
        self.client.add_tags(self._tags(tags))

        query = TagSet(1, "vpc", "spoke-vpc")
        tag_list = self.client.get_tags(query)

        self.assertEqual({"env:prod", "owner:netops", "cost-center:42"}, set(tag_list))
        self.assertEqual(tags, query.tags)

    def test_get_sends_list_parameters(self) -> None:
        self.client.get_tags(TagSet(8, "vnet", "hub"))

        method, action, params, _ = self.controller.calls[-1]
        self.assertEqual("GET", method)
        self.assertEqual(
            {
                "action": "list_resource_tags",
                "CID": "cid-123",
                "cloud_type": "8",
                "resource_type": "vnet",
                "resource_name": "hub",
            },
            params,
        )

    def test_get_without_user_tags_returns_none(self) -> None:
        query = TagSet(1, "vpc", "untagged")

        self.assertIsNone(self.client.get_tags(query))
        self.assertEqual({}, query.tags)

    def test_delete_removes_keys_from_listing(self) -> None:
        self.client.add_tags(self._tags({"env": "prod", "owner": "netops", "tier": "web"}))
        self.client.delete_tags(TagSet.for_deletion(1, "vpc", "spoke-vpc", ["env", "tier"]))

        _, action, params, _ = self.controller.calls[-1]
        self.assertEqual("delete_resource_tag", action)
        self.assertEqual("env,tier", params["del_tag_list"])

        tag_list = self.client.get_tags(TagSet(1, "vpc", "spoke-vpc"))
        self.assertEqual(["owner:netops"], tag_list)

    def test_get_with_empty_user_tags_returns_none(self) -> None:
        self.client.add_tags(self._tags({"env": "prod"}))
        self.client.delete_tags(TagSet.for_deletion(1, "vpc", "spoke-vpc", ["env"]))
        query = TagSet(1, "vpc", "spoke-vpc", tags={"stale": "value"})

        self.assertIsNone(self.client.get_tags(query))
        self.assertEqual({}, query.tags)

    def test_update_replaces_whole_tag_set(self) -> None:
        self.client.add_tags(self._tags({"env": "prod", "owner": "netops"}))
        self.client.update_tags(self._tags({"env": "staging"}))

        self.assertEqual("update_resource_tags", self.controller.calls[-1][1])
        self.assertEqual(["env:staging"], self.client.get_tags(TagSet(1, "vpc", "spoke-vpc")))

    def test_rejection_carries_controller_reason(self) -> None:
        self.controller.rejections["add_resource_tags"] = "Resource spoke-vpc not found."

        with self.assertRaises(APIError) as ctx:
            self.client.add_tags(self._tags({"env": "prod"}))

        self.assertEqual("Resource spoke-vpc not found.", ctx.exception.reason)


class TagAPIResponseTests(unittest.TestCase):
    def test_ignores_unknown_keys_and_malformed_categories(self) -> None:
        response = TagAPIResponse.from_payload(
            {
                "return": True,
                "results": {"usr_tags": {"env": "prod"}, "sys_tags": "n/a"},
                "reason": "",
                "extra": 1,
            }
        )

        self.assertTrue(response.return_)
        self.assertEqual({"env": "prod"}, response.usr_tags)
        self.assertNotIn("sys_tags", response.results)

    def test_missing_results_has_no_user_tags(self) -> None:
        response = TagAPIResponse.from_payload({"return": True})

        self.assertIsNone(response.usr_tags)


if __name__ == "__main__":
    unittest.main()
