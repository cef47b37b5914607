"""Tests for the Linode protocol adapter.

The HTTP session is mocked; no request leaves the process.
"""

from __future__ import annotations

import json
from typing import Any, List
from unittest.mock import MagicMock, PropertyMock

import pytest
import requests

from linodepool.errors import (
    DecodeError,
    EncodeError,
    ProviderError,
    ResponseReadError,
    TransportError,
)
from linodepool.models import DiskJob, Envelope, JobInfo
from linodepool.protocol import LinodeClient, encode_params, encode_value, redact


def _response(payload: Any = None, status_code: int = 200, body: bytes = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.reason = "OK"
    resp.content = body if body is not None else json.dumps(payload).encode()
    return resp


def _client(resp: MagicMock) -> tuple:
    session = MagicMock()
    session.post.return_value = resp
    return LinodeClient("secret-key", endpoint="https://api.test/", session=session), session


# ---------------------------------------------------------------------------
# Parameter encoding
# ---------------------------------------------------------------------------


class TestEncodeValue:
    def test_int_is_decimal(self):
        assert encode_value("Size", 4096) == "4096"

    def test_negative_int(self):
        assert encode_value("X", -1) == "-1"

    def test_string_unchanged(self):
        assert encode_value("Label", "spread-ubuntu-16.04") == "spread-ubuntu-16.04"

    def test_bool_is_json(self):
        assert encode_value("helper_distro", True) == "true"
        assert encode_value("helper_network", False) == "false"

    def test_nested_requests_are_json(self):
        encoded = encode_value("api_requestArray", [
            {"api_action": "linode.disk.delete", "LinodeID": 1, "DiskID": 2},
        ])
        assert json.loads(encoded) == [
            {"api_action": "linode.disk.delete", "LinodeID": 1, "DiskID": 2},
        ]

    def test_float_rejected(self):
        with pytest.raises(EncodeError, match="Size"):
            encode_value("Size", 1.5)

    def test_list_of_scalars_rejected(self):
        with pytest.raises(EncodeError, match="unsupported type list"):
            encode_value("DiskList", [1, 2])

    def test_encode_params(self):
        assert encode_params({"api_action": "linode.list", "LinodeID": 7}) == {
            "api_action": "linode.list",
            "LinodeID": "7",
        }


class TestRedact:
    def test_hides_key_and_password(self):
        clean = redact({"api_key": "k", "rootPass": "p", "LinodeID": 1})
        assert clean == {"api_key": "***", "rootPass": "***", "LinodeID": 1}

    def test_hides_nested_password(self):
        clean = redact({"api_requestArray": [{"rootPass": "p", "Size": 1}]})
        assert clean["api_requestArray"] == [{"rootPass": "***", "Size": 1}]


# ---------------------------------------------------------------------------
# Single calls
# ---------------------------------------------------------------------------


class TestExecute:
    def test_posts_form_with_key(self):
        client, session = _client(_response({"ERRORARRAY": [], "DATA": {"DISKID": 5}}))
        client.execute({"api_action": "linode.disk.create", "Size": 256}, Envelope[DiskJob])

        url = session.post.call_args.args[0]
        data = session.post.call_args.kwargs["data"]
        assert url == "https://api.test/"
        assert data == {
            "api_action": "linode.disk.create",
            "Size": "256",
            "api_key": "secret-key",
        }

    def test_decodes_envelope(self):
        client, _ = _client(_response({"ERRORARRAY": [], "DATA": {"DISKID": 5, "JOBID": 9}}))
        result = client.execute({"api_action": "x"}, Envelope[DiskJob])
        assert result.error() is None
        assert result.data.disk_id == 5
        assert result.data.job_id == 9

    def test_provider_error_left_in_envelope(self):
        client, _ = _client(_response({
            "ERRORARRAY": [{"ERRORCODE": 8, "ERRORMESSAGE": "Linode is busy"}],
            "DATA": {},
        }))
        result = client.execute({"api_action": "x"}, Envelope[DiskJob])
        err = result.error()
        assert isinstance(err, ProviderError)
        assert err.code == 8
        assert str(err) == "linode is busy"
        with pytest.raises(ProviderError):
            result.raise_for_error()

    def test_response_closed(self):
        resp = _response({"ERRORARRAY": [], "DATA": None})
        client, _ = _client(resp)
        client.execute({"api_action": "x"}, Envelope[DiskJob])
        resp.close.assert_called_once()

    def test_connection_error(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        client = LinodeClient("k", session=session)
        with pytest.raises(TransportError, match="cannot perform Linode request"):
            client.execute({"api_action": "x"}, Envelope[DiskJob])

    def test_timeout(self):
        session = MagicMock()
        session.post.side_effect = requests.Timeout("slow")
        client = LinodeClient("k", session=session)
        with pytest.raises(TransportError):
            client.execute({"api_action": "x"}, Envelope[DiskJob])

    def test_http_error_status(self):
        client, _ = _client(_response(body=b"oops", status_code=502))
        with pytest.raises(TransportError, match="502"):
            client.execute({"api_action": "x"}, Envelope[DiskJob])

    def test_unreadable_body(self):
        resp = _response({})
        type(resp).content = PropertyMock(
            side_effect=requests.exceptions.ChunkedEncodingError("cut"),
        )
        client, _ = _client(resp)
        with pytest.raises(ResponseReadError, match="cannot read Linode response"):
            client.execute({"api_action": "x"}, Envelope[DiskJob])
        resp.close.assert_called_once()

    def test_malformed_json(self):
        client, _ = _client(_response(body=b"<html>"))
        with pytest.raises(DecodeError, match="cannot decode Linode response"):
            client.execute({"api_action": "x"}, Envelope[DiskJob])

    def test_unexpected_shape(self):
        client, _ = _client(_response({"ERRORARRAY": [], "DATA": {"DISKID": "many"}}))
        with pytest.raises(DecodeError):
            client.execute({"api_action": "x"}, Envelope[DiskJob])

    def test_encode_error_sends_nothing(self):
        client, session = _client(_response({}))
        with pytest.raises(EncodeError):
            client.execute({"api_action": "x", "Size": 1.5}, Envelope[DiskJob])
        session.post.assert_not_called()


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------


class TestExecuteBatch:
    def test_sends_request_array(self):
        client, session = _client(_response([]))
        client.execute_batch(
            [{"api_action": "a", "LinodeID": 1}, {"api_action": "b", "Flag": True}],
            Envelope[DiskJob],
        )
        data = session.post.call_args.kwargs["data"]
        assert data["api_action"] == "batch"
        assert json.loads(data["api_requestArray"]) == [
            {"api_action": "a", "LinodeID": 1},
            {"api_action": "b", "Flag": True},
        ]

    def test_results_in_request_order(self):
        client, _ = _client(_response([
            {"ERRORARRAY": [], "DATA": {"DISKID": 1}},
            {"ERRORARRAY": [{"ERRORCODE": 5, "ERRORMESSAGE": "Not found"}], "DATA": {}},
            {"ERRORARRAY": [], "DATA": {"DISKID": 3}},
        ]))
        results: List[Envelope[DiskJob]] = client.execute_batch(
            [{"api_action": "a"}] * 3, Envelope[DiskJob],
        )
        assert [r.data.disk_id if r.data else None for r in results] == [1, None, 3]
        assert str(results[1].error()) == "not found"

    def test_non_list_response(self):
        client, _ = _client(_response({"ERRORARRAY": [], "DATA": []}))
        with pytest.raises(DecodeError):
            client.execute_batch([{"api_action": "a"}], Envelope[JobInfo])
