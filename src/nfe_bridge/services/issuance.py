from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from nfe_bridge.config import Settings
from nfe_bridge.models.invoice import InvoiceRequest, ProductInvoiceResponse
from nfe_bridge.models.source import Carrier, SourceInvoice, TaxTemplate
from nfe_bridge.services.exceptions import FrappeAPIError
from nfe_bridge.services.frappe_client import (
    fetch_carrier,
    fetch_invoice,
    fetch_tax_template,
    update_invoice,
)
from nfe_bridge.services.invoice_builder import build_invoice
from nfe_bridge.services.nfeio_client import create_product_invoice
from nfe_bridge.utils.locks import issuance_lock

logger = logging.getLogger(__name__)


@dataclass
class PreparedInvoice:
    """Everything fetched and built for one source record, ready to submit."""

    source: SourceInvoice
    tax_template: TaxTemplate | None
    carrier: Carrier | None
    request: InvoiceRequest


def _prepare(invoice_name: str, settings: Settings) -> PreparedInvoice:
    source = SourceInvoice.from_dict(fetch_invoice(invoice_name, settings))

    tax_template = None
    if source.tax_template:
        tax_template = TaxTemplate.from_dict(fetch_tax_template(source.tax_template, settings))

    carrier = None
    if source.carrier:
        carrier = Carrier.from_dict(fetch_carrier(source.carrier, settings))

    request = build_invoice(source, tax_template, carrier, issuer_state=settings.issuer_state)
    logger.info(
        "Nota montada para %s: %d itens, CFOP %s, impostos %s",
        invoice_name,
        len(request.items),
        request.items[0].cfop if request.items else "-",
        request.total_tax,
    )
    return PreparedInvoice(
        source=source,
        tax_template=tax_template,
        carrier=carrier,
        request=request,
    )


def prepare(invoice_name: str, settings: Settings) -> PreparedInvoice:
    """Fetch the source records and assemble the request without submitting it."""
    with issuance_lock(invoice_name):
        return _prepare(invoice_name, settings)


def _write_back(
    invoice_name: str,
    prepared: PreparedInvoice,
    response: ProductInvoiceResponse,
    settings: Settings,
) -> None:
    data = {
        "invoice_id": response.id,
        "invoice_serie": prepared.request.serie,
        "invoice_link": response.pdf,
    }
    try:
        update_invoice(invoice_name, data, settings)
    except (FrappeAPIError, requests.exceptions.RequestException):
        # NF-e already issued upstream; only the Frappe fields are stale.
        logger.warning("Falha ao atualizar %s no Frappe", invoice_name, exc_info=True)


def issue_invoice(invoice_name: str, settings: Settings) -> ProductInvoiceResponse:
    """Issue the NF-e for a Frappe invoice and record the result back on it.

    Only one issuance per invoice name runs at a time.
    """
    with issuance_lock(invoice_name):
        prepared = _prepare(invoice_name, settings)
        response = create_product_invoice(prepared.request, settings)
        _write_back(invoice_name, prepared, response, settings)
    return response
