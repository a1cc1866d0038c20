from __future__ import annotations

import logging
from typing import Any

from requests import delete, get, post, put

from nfe_bridge.config import NFEIO_TIMEOUT, Settings
from nfe_bridge.models.invoice import InvoiceRequest, ProductInvoiceResponse
from nfe_bridge.services.exceptions import NfeioAPIError
from nfe_bridge.services.http_retry import NFEIO_READ, NFEIO_SUBMIT, request_with_retry
from nfe_bridge.utils.validators import validate_access_key

logger = logging.getLogger(__name__)


def _invoices_url(settings: Settings, *parts: str) -> str:
    url = f"{settings.nfe_endpoint}/{settings.nfe_company_id}/productinvoices"
    if parts:
        url = "/".join((url, *parts))
    return url


def _params(settings: Settings) -> dict[str, str]:
    return {"apikey": settings.nfe_api_key}


def _read(url: str, action: str, settings: Settings) -> Any:
    """GET with the read retry policy; returns the response."""
    return request_with_retry(
        lambda: get(url, params=_params(settings), timeout=NFEIO_TIMEOUT),
        action,
        NFEIO_READ,
        NfeioAPIError,
    )


def create_product_invoice(request: InvoiceRequest, settings: Settings) -> ProductInvoiceResponse:
    """Submit a product invoice for issuance.

    Only connection errors are retried so a request the provider may have
    received is never sent twice.
    """
    url = _invoices_url(settings)
    payload = request.to_dict()
    resp = request_with_retry(
        lambda: post(url, json=payload, params=_params(settings), timeout=NFEIO_TIMEOUT),
        "create invoice",
        NFEIO_SUBMIT,
        NfeioAPIError,
    )
    result = ProductInvoiceResponse.from_dict(resp.json())
    logger.info("NFE.io aceitou a nota %s (status %s)", result.id, result.status or "-")
    return result


def get_invoice(invoice_id: str, settings: Settings) -> ProductInvoiceResponse:
    resp = _read(_invoices_url(settings, invoice_id), "get invoice", settings)
    return ProductInvoiceResponse.from_dict(resp.json())


def get_invoice_by_access_key(access_key: str, settings: Settings) -> ProductInvoiceResponse:
    """Look up an NF-e by its 44-digit access key on the consult endpoint."""
    key = validate_access_key(access_key)
    url = f"{settings.nfe_endpoint_consult}/productinvoices/{key}"
    resp = _read(url, "get invoice by access key", settings)
    return ProductInvoiceResponse.from_dict(resp.json())


def delete_invoice(invoice_id: str, settings: Settings) -> None:
    """Cancel an issued invoice."""
    resp = delete(_invoices_url(settings, invoice_id), params=_params(settings), timeout=NFEIO_TIMEOUT)
    if not resp.ok:
        raise NfeioAPIError.from_response("delete invoice", resp)
    logger.info("Cancelamento da nota %s solicitado", invoice_id)


def get_invoice_pdf(invoice_id: str, settings: Settings) -> bytes:
    return _read(_invoices_url(settings, invoice_id, "pdf"), "get pdf", settings).content


def get_invoice_xml(invoice_id: str, settings: Settings) -> bytes:
    return _read(_invoices_url(settings, invoice_id, "xml"), "get xml", settings).content


def create_correction_letter(
    invoice_id: str, reason: str, settings: Settings
) -> ProductInvoiceResponse:
    """Send a correction letter (carta de correcao) for an issued invoice."""
    url = _invoices_url(settings, invoice_id, "correctionletter")
    resp = put(url, json={"reason": reason}, params=_params(settings), timeout=NFEIO_TIMEOUT)
    if not resp.ok:
        raise NfeioAPIError.from_response("create correction letter", resp)
    return ProductInvoiceResponse.from_dict(resp.json())


def get_correction_letter_pdf(invoice_id: str, settings: Settings) -> bytes:
    url = _invoices_url(settings, invoice_id, "correctionletter", "pdf")
    return _read(url, "get correction letter pdf", settings).content


def get_correction_letter_xml(invoice_id: str, settings: Settings) -> bytes:
    url = _invoices_url(settings, invoice_id, "correctionletter", "xml")
    return _read(url, "get correction letter xml", settings).content
