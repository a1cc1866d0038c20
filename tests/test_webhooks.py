from __future__ import annotations

import json
import warnings
from dataclasses import replace
from unittest.mock import patch

import pytest
import requests.exceptions
from fastapi.testclient import TestClient

from nfe_bridge.api.app import create_app
from nfe_bridge.api.auth import compute_signature, is_valid_signature
from nfe_bridge.models.invoice import ProductInvoiceResponse
from nfe_bridge.services.exceptions import (
    CfopNotFoundError,
    FrappeAPIError,
    NfeioAPIError,
)

ISSUE_URL = "/api/v1/webhook/invoices/issue"


@pytest.fixture
def client(settings):
    return TestClient(create_app(settings))


def _post_signed(client, body: bytes, secret: str = "s3cret", header: str = "X-Webhook-Signature"):
    return client.post(
        ISSUE_URL,
        content=body,
        headers={header: compute_signature(secret, body), "Content-Type": "application/json"},
    )


class TestSignature:
    def test_known_vector(self):
        # printf '{"name":"INV-1"}' | openssl dgst -sha256 -hmac s3cret -binary | base64
        body = b'{"name":"INV-1"}'
        signature = compute_signature("s3cret", body)
        assert signature == "n5LBWJCSnF1HPS4WFF2cqPfQ5F3AMZf2pcssZhk78vA="
        assert is_valid_signature("s3cret", body, signature)
        assert not is_valid_signature("other", body, signature)
        assert not is_valid_signature("s3cret", body + b" ", signature)

    def test_empty_signature_rejected(self):
        assert not is_valid_signature("s3cret", b"{}", "")


class TestIssueWebhook:
    @patch("nfe_bridge.services.issuance.issue_invoice")
    def test_success(self, mock_issue, client, settings):
        mock_issue.return_value = ProductInvoiceResponse(id="nfe-123", status="Created")
        resp = _post_signed(client, json.dumps({"name": "INV-1"}).encode())
        assert resp.status_code == 200
        assert resp.json() == {"message": "Invoice Issued", "nfe_id": "nfe-123", "status": "Created"}
        mock_issue.assert_called_once_with("INV-1", settings)

    @patch("nfe_bridge.services.issuance.issue_invoice")
    def test_bad_signature(self, mock_issue, client):
        resp = client.post(ISSUE_URL, content=b'{"name":"INV-1"}', headers={"X-Webhook-Signature": "bogus"})
        assert resp.status_code == 401
        mock_issue.assert_not_called()

    @patch("nfe_bridge.services.issuance.issue_invoice")
    def test_missing_signature(self, mock_issue, client):
        resp = client.post(ISSUE_URL, content=b'{"name":"INV-1"}')
        assert resp.status_code == 401
        mock_issue.assert_not_called()

    @patch("nfe_bridge.services.issuance.issue_invoice")
    def test_custom_signature_header(self, mock_issue, settings):
        mock_issue.return_value = ProductInvoiceResponse(id="nfe-1")
        client = TestClient(create_app(replace(settings, webhook_signature_header="X-Frappe-Webhook-Signature")))
        resp = _post_signed(client, b'{"name":"INV-1"}', header="X-Frappe-Webhook-Signature")
        assert resp.status_code == 200

    @patch("nfe_bridge.services.issuance.issue_invoice")
    def test_invalid_json(self, mock_issue, client):
        resp = _post_signed(client, b"{not json")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid JSON"
        mock_issue.assert_not_called()

    @pytest.mark.parametrize("body", [b"{}", b'{"name": ""}', b"[]"])
    @patch("nfe_bridge.services.issuance.issue_invoice")
    def test_missing_name(self, mock_issue, client, body):
        resp = _post_signed(client, body)
        assert resp.status_code == 400
        mock_issue.assert_not_called()

    @patch("nfe_bridge.services.issuance.issue_invoice")
    def test_build_error_is_422(self, mock_issue, client):
        mock_issue.side_effect = CfopNotFoundError("doação")
        resp = _post_signed(client, b'{"name":"INV-1"}')
        assert resp.status_code == 422
        assert "cfop not found" in resp.json()["detail"]

    @patch("nfe_bridge.services.issuance.issue_invoice")
    def test_build_error_raises_no_status_deprecation(self, mock_issue, client):
        mock_issue.side_effect = CfopNotFoundError("doação")
        with warnings.catch_warnings():
            warnings.filterwarnings("error", message=".*HTTP_422.*")
            resp = _post_signed(client, b'{"name":"INV-1"}')
        assert resp.status_code == 422

    @pytest.mark.parametrize(
        "error",
        [
            NfeioAPIError("create invoice", 400, "buyer invalid"),
            FrappeAPIError("get Invoices", 404, "DoesNotExistError"),
            requests.exceptions.ConnectionError("refused"),
        ],
    )
    @patch("nfe_bridge.services.issuance.issue_invoice")
    def test_upstream_error_is_502(self, mock_issue, client, error):
        mock_issue.side_effect = error
        resp = _post_signed(client, b'{"name":"INV-1"}')
        assert resp.status_code == 502


class TestOtherRoutes:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.text == "OK"

    def test_nfeio_callback(self, client):
        resp = client.post(
            "/api/v1/webhook/nfeio/response",
            json={"id": "nfe-123", "status": "Issued", "flowStatus": "Issued"},
        )
        assert resp.status_code == 200
        assert resp.json() == {"received": True}

    def test_nfeio_callback_invalid_json(self, client):
        resp = client.post("/api/v1/webhook/nfeio/response", content=b"oops")
        assert resp.status_code == 400
