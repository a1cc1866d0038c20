from __future__ import annotations

import pytest

from nfe_bridge.config import Settings
from nfe_bridge.models.source import Carrier, SourceInvoice, TaxTemplate


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Keep lock files and other runtime data inside the test's tmp dir."""
    d = tmp_path / "data"
    monkeypatch.setenv("NFE_BRIDGE_DATA_DIR", str(d))
    return d


# --- Frappe documents ---


@pytest.fixture
def item_dict() -> dict:
    return {
        "item_name": "Inversor Solar 5kW",
        "rate": 100,
        "quantity": 2,
        "ncm": "85044040",
        "icms_rate": 18,
        "pis_rate": 1.65,
        "cofins_rate": 7.6,
        "ipi_rate": 0,
        "freight_amount": 20,
        "discount_amount": 5,
        "gross_weight": 12.5,
        "net_weight": 11,
    }


@pytest.fixture
def invoice_dict(item_dict) -> dict:
    return {
        "name": "INV-2025-00042",
        "client_name": "Comercial Exemplo LTDA",
        "client_id_number": "12.345.678/0001-95",
        "contribuinte_icms": "Contribuinte",
        "inscricao_estadual": "110.042.490.114",
        "client_email": "fiscal@exemplo.com.br",
        "operation_nature": "Venda",
        "operation_type": "outgoing",
        "delivery_address": "Rua das Flores",
        "delivery_number_address": "100",
        "delivery_neighborhood": "Centro",
        "delivery_complement": "Sala 2",
        "city": "São Paulo",
        "delivery_ibge": "3550308",
        "delivery_state": "SP",
        "delivery_cep": "01001-000",
        "delivery_phone": "(11) 3333-4444",
        "freight_modality": "Por conta do emitente",
        "product_brand": "Acme",
        "additional_information": "Pedido 123",
        "tax_template": "",
        "carrier": "",
        "invoices_table": [item_dict],
    }


@pytest.fixture
def source_invoice(invoice_dict) -> SourceInvoice:
    return SourceInvoice.from_dict(invoice_dict)


@pytest.fixture
def tax_template_dict() -> dict:
    return {
        "name": "ICMS 18 SP",
        "aliq_icms": 18,
        "cst_icms": "00",
        "origin_icms": "0",
        "mod_determ_bc": "3",
        "aliquota_pis": 1.65,
        "cst_pis": "01",
        "aliquota_cofins": 7.6,
        "cst_cofins": "01",
        "aliquota_ipi": 0,
        "cst_ipi": "53",
    }


@pytest.fixture
def tax_template(tax_template_dict) -> TaxTemplate:
    return TaxTemplate.from_dict(tax_template_dict)


@pytest.fixture
def carrier_dict() -> dict:
    return {
        "name": "TRANSP-001",
        "carrier_name": "Transportes Rápidos LTDA",
        "cnpj": "98.765.432/0001-10",
        "state_registration": "123456789",
        "email": "contato@rapidos.com.br",
        "phone": "(11) 4000-1000",
        "address": "Av. Industrial",
        "number": "500",
        "neighborhood": "Distrito Industrial",
        "city": "Guarulhos",
        "ibge": "3518800",
        "state": "SP",
        "cep": "07000-000",
    }


@pytest.fixture
def carrier(carrier_dict) -> Carrier:
    return Carrier.from_dict(carrier_dict)


# --- Settings ---


@pytest.fixture
def settings() -> Settings:
    return Settings(
        frappe_url="https://erp.example.com",
        nfe_api_key="nfe-key",
        nfe_company_id="company-1",
        issuer_state="SP",
        frappe_api_key="frappe-key",
        frappe_api_secret="frappe-secret",
        webhook_secret="s3cret",
    )
