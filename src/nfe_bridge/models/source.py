from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation


def parse_decimal(value: object, default: Decimal = Decimal("0")) -> Decimal:
    """Leniently parse a Frappe numeric field.

    Frappe returns numbers, numeric strings, ``None`` or ``""`` depending on
    the field type. Anything that is not a finite number yields *default*.
    Brazilian notation ("18,5", "1.234,56") is accepted.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if isinstance(value, (int, float)):
        value = repr(value)
    text = str(value).strip()
    if "," in text:
        # 1.234,56: dots group thousands, the comma is the decimal mark
        text = text.replace(".", "").replace(",", ".")
    if not text:
        return default
    try:
        d = Decimal(text)
    except InvalidOperation:
        return default
    return d if d.is_finite() else default


def _str(d: dict, key: str, default: str = "") -> str:
    value = d.get(key)
    if value is None:
        return default
    return str(value).strip()


@dataclass(frozen=True)
class SourceItem:
    """One row of the invoice's item table."""

    item_name: str
    rate: Decimal  # unit value
    quantity: Decimal
    ncm: str = ""
    icms_rate: Decimal = Decimal("0")
    pis_rate: Decimal = Decimal("0")
    cofins_rate: Decimal = Decimal("0")
    ipi_rate: Decimal = Decimal("0")
    freight_amount: Decimal = Decimal("0")
    insurance_amount: Decimal = Decimal("0")
    others_amount: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    gross_weight: Decimal = Decimal("0")
    net_weight: Decimal = Decimal("0")

    @classmethod
    def from_dict(cls, d: dict) -> SourceItem:
        quantity = d.get("quantity")
        if quantity is None:
            quantity = d.get("qty")
        return cls(
            item_name=_str(d, "item_name"),
            rate=parse_decimal(d.get("rate")),
            quantity=parse_decimal(quantity),
            ncm=_str(d, "ncm"),
            icms_rate=parse_decimal(d.get("icms_rate")),
            pis_rate=parse_decimal(d.get("pis_rate")),
            cofins_rate=parse_decimal(d.get("cofins_rate")),
            ipi_rate=parse_decimal(d.get("ipi_rate")),
            freight_amount=parse_decimal(d.get("freight_amount")),
            insurance_amount=parse_decimal(d.get("insurance_amount")),
            others_amount=parse_decimal(d.get("others_amount")),
            discount_amount=parse_decimal(d.get("discount_amount")),
            gross_weight=parse_decimal(d.get("gross_weight")),
            net_weight=parse_decimal(d.get("net_weight")),
        )


@dataclass(frozen=True)
class SourceInvoice:
    """Snapshot of the Frappe ``Invoices`` document that triggers an issuance."""

    name: str
    client_name: str
    client_id_number: str  # CPF or CNPJ, possibly formatted
    contribuinte_icms: str = ""
    inscricao_estadual: str = ""
    client_email: str = ""

    operation_nature: str = ""
    operation_type: str = ""  # "incoming" | "outgoing"; empty means outgoing

    delivery_address: str = ""
    delivery_number_address: str = ""
    delivery_neighborhood: str = ""
    delivery_complement: str = ""
    city: str = ""
    delivery_ibge: str = ""
    delivery_state: str = ""
    delivery_cep: str = ""
    delivery_phone: str = ""

    freight_modality: str = ""
    product_brand: str = ""
    additional_information: str = ""

    tax_template: str = ""  # name of a Frappe "Tax" document
    carrier: str = ""  # name of a Frappe "Carrier" document

    items: tuple[SourceItem, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, d: dict) -> SourceInvoice:
        """Create a SourceInvoice from the ``data`` mapping of a Frappe resource."""
        rows = d.get("invoices_table") or d.get("items") or []
        return cls(
            name=_str(d, "name"),
            client_name=_str(d, "client_name"),
            client_id_number=_str(d, "client_id_number"),
            contribuinte_icms=_str(d, "contribuinte_icms"),
            inscricao_estadual=_str(d, "inscricao_estadual"),
            client_email=_str(d, "client_email"),
            operation_nature=_str(d, "operation_nature", "venda"),
            operation_type=_str(d, "operation_type"),
            delivery_address=_str(d, "delivery_address"),
            delivery_number_address=_str(d, "delivery_number_address"),
            delivery_neighborhood=_str(d, "delivery_neighborhood"),
            delivery_complement=_str(d, "delivery_complement"),
            city=_str(d, "city"),
            delivery_ibge=_str(d, "delivery_ibge"),
            delivery_state=_str(d, "delivery_state"),
            delivery_cep=_str(d, "delivery_cep"),
            delivery_phone=_str(d, "delivery_phone"),
            freight_modality=_str(d, "freight_modality"),
            product_brand=_str(d, "product_brand"),
            additional_information=_str(d, "additional_information"),
            tax_template=_str(d, "tax_template"),
            carrier=_str(d, "carrier"),
            items=tuple(SourceItem.from_dict(row) for row in rows),
        )


@dataclass(frozen=True)
class TaxTemplate:
    """Frappe ``Tax`` document: rates and CSTs shared by every item."""

    name: str
    aliq_icms: Decimal = Decimal("0")
    cst_icms: str = ""
    origin_icms: str = ""
    mod_determ_bc: str = ""
    aliquota_pis: Decimal = Decimal("0")
    cst_pis: str = ""
    aliquota_cofins: Decimal = Decimal("0")
    cst_cofins: str = ""
    aliquota_ipi: Decimal = Decimal("0")
    cst_ipi: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> TaxTemplate:
        return cls(
            name=_str(d, "name"),
            aliq_icms=parse_decimal(d.get("aliq_icms")),
            cst_icms=_str(d, "cst_icms"),
            origin_icms=_str(d, "origin_icms"),
            mod_determ_bc=_str(d, "mod_determ_bc"),
            aliquota_pis=parse_decimal(d.get("aliquota_pis")),
            cst_pis=_str(d, "cst_pis"),
            aliquota_cofins=parse_decimal(d.get("aliquota_cofins")),
            cst_cofins=_str(d, "cst_cofins"),
            aliquota_ipi=parse_decimal(d.get("aliquota_ipi")),
            cst_ipi=_str(d, "cst_ipi"),
        )


@dataclass(frozen=True)
class Carrier:
    """Frappe ``Carrier`` document (transportadora)."""

    name: str
    carrier_name: str = ""
    cnpj: str = ""
    state_registration: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    number: str = ""
    neighborhood: str = ""
    city: str = ""
    ibge: str = ""
    state: str = ""
    cep: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> Carrier:
        return cls(
            name=_str(d, "name"),
            carrier_name=_str(d, "carrier_name"),
            cnpj=_str(d, "cnpj"),
            state_registration=_str(d, "state_registration"),
            email=_str(d, "email"),
            phone=_str(d, "phone"),
            address=_str(d, "address"),
            number=_str(d, "number"),
            neighborhood=_str(d, "neighborhood"),
            city=_str(d, "city"),
            ibge=_str(d, "ibge"),
            state=_str(d, "state"),
            cep=_str(d, "cep"),
        )
