import sys
import unittest
from pathlib import Path
from unittest import mock

import requests

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from netctrl.api.transport import APIError, ControllerSession, TransportError, basic_check


def _response(payload=None, status_code: int = 200, json_error: bool = False) -> mock.Mock:
    response = mock.Mock(spec=requests.Response)
    response.status_code = status_code
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    if json_error:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


class BasicCheckTests(unittest.TestCase):
    def test_accepts_successful_envelope(self) -> None:
        basic_check({"return": True, "results": {}})

    def test_rejection_keeps_reason_verbatim(self) -> None:
        with self.assertRaises(APIError) as ctx:
            basic_check({"return": False, "reason": "Invalid resource_type 'vpcx'."})

        self.assertEqual("Invalid resource_type 'vpcx'.", ctx.exception.reason)

    def test_missing_return_is_a_rejection(self) -> None:
        with self.assertRaises(APIError):
            basic_check({"results": {}})


class ControllerSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.http = mock.Mock(spec=requests.Session)
        self.session = ControllerSession(
            url="https://controller.example.com/",
            username="admin",
            password="secret",
            verify_tls=False,
            timeout=12.0,
            http=self.http,
        )

    def test_login_stores_cid(self) -> None:
        self.http.request.return_value = _response({"return": True, "CID": "abc123"})

        self.assertEqual("abc123", self.session.login())
        self.assertEqual("abc123", self.session.cid)

        args, kwargs = self.http.request.call_args
        self.assertEqual(("POST", "https://controller.example.com/v1/api"), args)
        self.assertEqual({"action": "login", "username": "admin", "password": "secret"}, kwargs["data"])
        self.assertFalse(kwargs["verify"])
        self.assertEqual(12.0, kwargs["timeout"])

    def test_login_rejected(self) -> None:
        self.http.request.return_value = _response({"return": False, "reason": "Invalid credentials"})

        with self.assertRaises(APIError):
            self.session.login()
        self.assertEqual("", self.session.cid)

    def test_get_sends_query_parameters(self) -> None:
        self.http.request.return_value = _response({"return": True, "results": {}})

        payload = self.session.get("list_resource_tags", {"action": "list_resource_tags", "CID": "abc"})

        self.assertEqual({"return": True, "results": {}}, payload)
        args, kwargs = self.http.request.call_args
        self.assertEqual("GET", args[0])
        self.assertEqual({"action": "list_resource_tags", "CID": "abc"}, kwargs["params"])

    def test_post_passes_files(self) -> None:
        self.http.request.return_value = _response({"return": True})
        files = {"key_file": ("dev1.pem", b"key")}

        self.session.post("register_cloudwan_device", {"action": "register_cloudwan_device"}, files=files)

        _, kwargs = self.http.request.call_args
        self.assertEqual(files, kwargs["files"])
        self.assertEqual({"action": "register_cloudwan_device"}, kwargs["data"])

    def test_rejection_records_action(self) -> None:
        self.http.request.return_value = _response({"return": False, "reason": "Device dev1 does not exist."})

        with self.assertRaises(APIError) as ctx:
            self.session.get("get_cloudwan_device_details", {"device_name": "dev1"})

        self.assertEqual("get_cloudwan_device_details", ctx.exception.action)
        self.assertEqual("Device dev1 does not exist.", ctx.exception.reason)

    def test_network_failure_is_transport_error(self) -> None:
        self.http.request.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(TransportError) as ctx:
            self.session.post("add_resource_tags", {})

        self.assertIsInstance(ctx.exception.__cause__, requests.ConnectionError)

    def test_http_error_status_is_transport_error(self) -> None:
        self.http.request.return_value = _response(status_code=502)

        with self.assertRaises(TransportError):
            self.session.post("add_resource_tags", {})

    def test_non_json_response_is_transport_error(self) -> None:
        self.http.request.return_value = _response(json_error=True)

        with self.assertRaises(TransportError):
            self.session.get("list_resource_tags", {})

    def test_non_mapping_payload_is_transport_error(self) -> None:
        self.http.request.return_value = _response(["unexpected"])

        with self.assertRaises(TransportError):
            self.session.get("list_resource_tags", {})


if __name__ == "__main__":
    unittest.main()
