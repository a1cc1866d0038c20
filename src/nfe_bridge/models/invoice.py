from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from nfe_bridge.services.tax import TaxResult

BRA = "BRA"


def _number(value: Decimal) -> int | float:
    """JSON number for a quantity: integral values stay integers."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _compact(d: dict) -> dict:
    """Drop optional keys whose value is empty."""
    return {k: v for k, v in d.items() if v not in (None, "")}


@dataclass(frozen=True)
class City:
    code: str  # IBGE
    name: str

    def to_dict(self) -> dict:
        return {"code": self.code, "name": self.name}


@dataclass(frozen=True)
class Address:
    city: City
    state: str
    street: str = ""
    number: str = ""
    district: str = ""
    postal_code: str = ""
    phone: str = ""
    additional_information: str = ""
    country: str = BRA

    def to_dict(self) -> dict:
        return _compact({
            "phone": self.phone,
            "state": self.state,
            "city": self.city.to_dict(),
            "district": self.district,
            "additionalInformation": self.additional_information,
            "street": self.street,
            "number": self.number,
            "postalCode": self.postal_code,
            "country": self.country,
        })


@dataclass(frozen=True)
class Buyer:
    name: str
    federal_tax_number: int
    type: str
    address: Address
    email: str = ""
    tax_regime: str | None = None
    state_tax_number_indicator: str | None = None
    state_tax_number: str = ""

    def to_dict(self) -> dict:
        return _compact({
            "name": self.name,
            "federalTaxNumber": self.federal_tax_number,
            "email": self.email,
            "address": self.address.to_dict(),
            "type": str(self.type),
            "stateTaxNumberIndicator": (
                str(self.state_tax_number_indicator) if self.state_tax_number_indicator else None
            ),
            "stateTaxNumber": self.state_tax_number,
            "taxRegime": self.tax_regime,
        })


@dataclass(frozen=True)
class Item:
    code: str
    description: str
    ncm: str
    cfop: int
    quantity: Decimal
    unit_amount: Decimal
    total_amount: Decimal
    tax: TaxResult
    code_gtin: str = "SEM GTIN"
    code_tax_gtin: str = "SEM GTIN"
    unit: str = "UN"

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "codeGTIN": self.code_gtin,
            "codeTaxGTIN": self.code_tax_gtin,
            "description": self.description,
            "ncm": self.ncm,
            "cfop": self.cfop,
            "unit": self.unit,
            "quantity": _number(self.quantity),
            "unitAmount": float(self.unit_amount),
            "totalAmount": float(self.total_amount),
            "tax": self.tax.to_dict(),
        }


@dataclass(frozen=True)
class TransportGroup:
    name: str
    federal_tax_number: int
    address: Address
    state_tax_number: str = ""
    email: str = ""
    type: str = "legalEntity"

    def to_dict(self) -> dict:
        return _compact({
            "name": self.name,
            "federalTaxNumber": self.federal_tax_number,
            "stateTaxNumber": self.state_tax_number,
            "email": self.email,
            "type": self.type,
            "address": self.address.to_dict(),
        })


@dataclass(frozen=True)
class Volume:
    gross_weight: Decimal
    net_weight: Decimal
    volume_quantity: int = 1
    species: str = "Caixa"
    brand: str = ""
    volume_numeration: str = ""

    def to_dict(self) -> dict:
        return _compact({
            "volumeQuantity": self.volume_quantity,
            "species": self.species,
            "brand": self.brand,
            "volumeNumeration": self.volume_numeration,
            "netWeight": float(self.net_weight),
            "grossWeight": float(self.gross_weight),
        })


@dataclass(frozen=True)
class Transport:
    freight_modality: str
    transport_group: TransportGroup
    volume: Volume
    seal_number: str = ""

    def to_dict(self) -> dict:
        return _compact({
            "freightModality": self.freight_modality,
            "sealNumber": self.seal_number,
            "transportGroup": self.transport_group.to_dict(),
            "volume": self.volume.to_dict(),
        })


@dataclass(frozen=True)
class PaymentDetail:
    method: str
    amount: Decimal

    def to_dict(self) -> dict:
        return {"method": self.method, "amount": float(self.amount)}


@dataclass(frozen=True)
class Payment:
    payment_detail: tuple[PaymentDetail, ...]

    def to_dict(self) -> dict:
        return {"paymentDetail": [d.to_dict() for d in self.payment_detail]}


@dataclass(frozen=True)
class InvoiceRequest:
    """NFE.io v2 product-invoice request (aggregate root)."""

    serie: int
    operation_nature: str
    operation_type: str
    consumer_type: str
    destination: str
    buyer: Buyer
    items: tuple[Item, ...]
    payment: tuple[Payment, ...]
    transport: Transport | None = None
    additional_information: str = ""
    purpose_type: str = "normal"

    @property
    def total_tax(self) -> Decimal:
        return sum((item.tax.total_tax for item in self.items), Decimal("0"))

    @property
    def total_amount(self) -> Decimal:
        return sum((item.total_amount for item in self.items), Decimal("0"))

    def to_dict(self) -> dict:
        """Encode as the JSON body expected by NFE.io."""
        d = {
            "serie": self.serie,
            "operationNature": self.operation_nature,
            "operationType": str(self.operation_type),
            "consumerType": self.consumer_type,
            "purposeType": self.purpose_type,
            "destination": str(self.destination),
            "buyer": self.buyer.to_dict(),
            "items": [item.to_dict() for item in self.items],
            "payment": [p.to_dict() for p in self.payment],
        }
        if self.transport is not None:
            d["transport"] = self.transport.to_dict()
        if self.additional_information:
            d["additionalInformation"] = {"taxpayer": self.additional_information}
        return d


@dataclass(frozen=True)
class ProductInvoiceResponse:
    id: str
    status: str = ""
    environment: str = ""
    flow_status: str = ""
    pdf: str = ""
    xml: str = ""
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, d: dict) -> ProductInvoiceResponse:
        return cls(
            id=str(d.get("id", "")),
            status=str(d.get("status") or ""),
            environment=str(d.get("environment") or ""),
            flow_status=str(d.get("flowStatus") or ""),
            pdf=str(d.get("pdf") or ""),
            xml=str(d.get("xml") or ""),
            raw=d,
        )
