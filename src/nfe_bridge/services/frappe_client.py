from __future__ import annotations

import logging
from urllib.parse import quote

from requests import get, put

from nfe_bridge.config import FRAPPE_TIMEOUT, Settings
from nfe_bridge.services.exceptions import FrappeAPIError
from nfe_bridge.services.http_retry import FRAPPE_READ, request_with_retry

logger = logging.getLogger(__name__)

TAX_DOCTYPE = "Tax"
CARRIER_DOCTYPE = "Carrier"


def _resource_url(settings: Settings, doctype: str, name: str) -> str:
    return f"{settings.frappe_url}/api/resource/{quote(doctype)}/{quote(name, safe='')}"


def _headers(settings: Settings) -> dict[str, str]:
    return {
        "Authorization": settings.frappe_authorization,
        "Accept": "application/json",
    }


def _fetch(doctype: str, name: str, settings: Settings) -> dict:
    url = _resource_url(settings, doctype, name)
    resp = request_with_retry(
        lambda: get(url, headers=_headers(settings), timeout=FRAPPE_TIMEOUT),
        f"get {doctype}",
        FRAPPE_READ,
        FrappeAPIError,
    )
    return resp.json().get("data") or {}


def fetch_invoice(name: str, settings: Settings) -> dict:
    """Fetch the invoice document (``settings.frappe_doctype``) by name."""
    logger.debug("Buscando %s %s no Frappe", settings.frappe_doctype, name)
    return _fetch(settings.frappe_doctype, name, settings)


def fetch_tax_template(name: str, settings: Settings) -> dict:
    return _fetch(TAX_DOCTYPE, name, settings)


def fetch_carrier(name: str, settings: Settings) -> dict:
    return _fetch(CARRIER_DOCTYPE, name, settings)


def update_invoice(name: str, data: dict, settings: Settings) -> dict:
    """Write fields back to the invoice document. Not retried."""
    url = _resource_url(settings, settings.frappe_doctype, name)
    resp = put(url, json=data, headers=_headers(settings), timeout=FRAPPE_TIMEOUT)
    if not resp.ok:
        raise FrappeAPIError.from_response(f"update {settings.frappe_doctype}", resp)
    return resp.json().get("data") or {}
