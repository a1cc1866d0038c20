from __future__ import annotations

from decimal import Decimal

from nfe_bridge.models.invoice import (
    Address,
    Buyer,
    City,
    InvoiceRequest,
    Item,
    Payment,
    PaymentDetail,
    Transport,
    TransportGroup,
    Volume,
)
from nfe_bridge.models.source import Carrier, SourceInvoice, SourceItem, TaxTemplate
from nfe_bridge.services.classification import BuyerClassification, BuyerType, classify_buyer
from nfe_bridge.services.exceptions import MissingAddressFieldError, MissingCarrierIdentifierError
from nfe_bridge.services.operation import Direction, OperationResolution, resolve_operation
from nfe_bridge.services.tax import (
    DEFAULT_COFINS_CST,
    DEFAULT_ICMS_CST,
    DEFAULT_ICMS_MODALITY,
    DEFAULT_ICMS_ORIGIN,
    DEFAULT_IPI_CST,
    DEFAULT_PIS_CST,
    TaxInput,
    calculate_tax,
)
from nfe_bridge.utils.formatters import only_digits

DEFAULT_FREIGHT_MODALITY = "ByIssuer"

# Frappe "modalidade de frete" labels and codes -> provider value
_FREIGHT_MODALITIES = {
    "0": "ByIssuer",
    "por conta do emitente": "ByIssuer",
    "1": "ByReceiver",
    "por conta do destinatário": "ByReceiver",
    "2": "ByThirdParty",
    "por conta de terceiros": "ByThirdParty",
    "9": "NoFreight",
    "sem frete": "NoFreight",
}


def build_address(
    *,
    city: str,
    city_code: str,
    state: str,
    street: str = "",
    number: str = "",
    district: str = "",
    postal_code: str = "",
    phone: str = "",
    additional_information: str = "",
) -> Address:
    """Build an address block; city name and IBGE code are both mandatory."""
    if not city:
        raise MissingAddressFieldError("city", f"IBGE: {city_code or '-'}, UF: {state or '-'}")
    if not city_code:
        raise MissingAddressFieldError("city_code", f"cidade: {city}, UF: {state or '-'}")
    return Address(
        city=City(code=city_code, name=city),
        state=state,
        street=street,
        number=number,
        district=district,
        postal_code=only_digits(postal_code),
        phone=only_digits(phone),
        additional_information=additional_information,
    )


def build_buyer(source: SourceInvoice, profile: BuyerClassification) -> Buyer:
    address = build_address(
        city=source.city,
        city_code=source.delivery_ibge,
        state=source.delivery_state,
        street=source.delivery_address,
        number=source.delivery_number_address,
        district=source.delivery_neighborhood,
        postal_code=source.delivery_cep,
        phone=source.delivery_phone,
        additional_information=source.delivery_complement,
    )
    state_tax_number = ""
    if profile.type is BuyerType.LEGAL_ENTITY:
        state_tax_number = only_digits(source.inscricao_estadual)
    return Buyer(
        name=source.client_name,
        federal_tax_number=profile.federal_tax_number,
        type=profile.type,
        address=address,
        email=source.client_email,
        tax_regime=profile.tax_regime,
        state_tax_number_indicator=profile.state_tax_number_indicator,
        state_tax_number=state_tax_number,
    )


def tax_input_for(item: SourceItem, tax_template: TaxTemplate | None) -> TaxInput:
    """Tax configuration for one item: the template if given, else the item's own rates."""
    amounts = {
        "unit_value": item.rate,
        "quantity": item.quantity,
        "freight": item.freight_amount,
        "insurance": item.insurance_amount,
        "others": item.others_amount,
        "discount": item.discount_amount,
    }
    if tax_template is not None:
        return TaxInput(
            **amounts,
            icms_rate=tax_template.aliq_icms,
            icms_origin=tax_template.origin_icms,
            icms_cst=tax_template.cst_icms,
            icms_modality=tax_template.mod_determ_bc,
            pis_rate=tax_template.aliquota_pis,
            pis_cst=tax_template.cst_pis,
            cofins_rate=tax_template.aliquota_cofins,
            cofins_cst=tax_template.cst_cofins,
            ipi_rate=tax_template.aliquota_ipi,
            ipi_cst=tax_template.cst_ipi,
        )
    return TaxInput(
        **amounts,
        icms_rate=item.icms_rate,
        icms_origin=DEFAULT_ICMS_ORIGIN,
        icms_cst=DEFAULT_ICMS_CST,
        icms_modality=DEFAULT_ICMS_MODALITY,
        pis_rate=item.pis_rate,
        pis_cst=DEFAULT_PIS_CST,
        cofins_rate=item.cofins_rate,
        cofins_cst=DEFAULT_COFINS_CST,
        ipi_rate=item.ipi_rate,
        ipi_cst=DEFAULT_IPI_CST,
    )


def build_items(
    source_items: tuple[SourceItem, ...],
    cfop: int,
    tax_template: TaxTemplate | None = None,
) -> tuple[Item, ...]:
    items = []
    for code, src in enumerate(source_items, start=1):
        items.append(
            Item(
                code=str(code),
                description=src.item_name,
                ncm=src.ncm,
                cfop=cfop,
                quantity=src.quantity,
                unit_amount=src.rate,
                total_amount=src.rate * src.quantity,
                tax=calculate_tax(tax_input_for(src, tax_template)),
            )
        )
    return tuple(items)


def resolve_freight_modality(value: str) -> str:
    value = (value or "").strip()
    if not value:
        return DEFAULT_FREIGHT_MODALITY
    return _FREIGHT_MODALITIES.get(value.lower(), value)


def build_transport(source: SourceInvoice, carrier: Carrier) -> Transport:
    cnpj = only_digits(carrier.cnpj)
    if not cnpj:
        raise MissingCarrierIdentifierError()

    group = TransportGroup(
        name=carrier.carrier_name or carrier.name,
        federal_tax_number=int(cnpj),
        state_tax_number=carrier.state_registration,
        email=carrier.email,
        address=Address(
            city=City(code=carrier.ibge, name=carrier.city),
            state=carrier.state,
            street=carrier.address,
            number=carrier.number,
            district=carrier.neighborhood,
            postal_code=only_digits(carrier.cep),
            phone=only_digits(carrier.phone),
        ),
    )
    volume = Volume(
        gross_weight=sum((i.gross_weight for i in source.items), Decimal("0")),
        net_weight=sum((i.net_weight for i in source.items), Decimal("0")),
        brand=source.product_brand,
        volume_numeration=source.items[0].item_name if source.items else "",
    )
    return Transport(
        freight_modality=resolve_freight_modality(source.freight_modality),
        seal_number=source.name,
        transport_group=group,
        volume=volume,
    )


def build_payment() -> tuple[Payment, ...]:
    # Documents are issued without payment capture.
    return (Payment(payment_detail=(PaymentDetail(method="withoutPayment", amount=Decimal("0")),)),)


def resolve_invoice_operation(source: SourceInvoice, issuer_state: str) -> OperationResolution:
    return resolve_operation(
        source.operation_nature,
        source.operation_type or Direction.OUTGOING,
        source.delivery_state,
        issuer_state,
    )


def build_invoice(
    source: SourceInvoice,
    tax_template: TaxTemplate | None = None,
    carrier: Carrier | None = None,
    *,
    issuer_state: str,
) -> InvoiceRequest:
    """Assemble the complete NFE.io request for one source invoice.

    Raises an InvoiceBuildError subclass on the first failing step; nothing
    is partially built.
    """
    profile = classify_buyer(source.client_id_number, source.contribuinte_icms)
    buyer = build_buyer(source, profile)
    operation = resolve_invoice_operation(source, issuer_state)
    items = build_items(source.items, operation.cfop, tax_template)
    transport = build_transport(source, carrier) if carrier is not None else None

    return InvoiceRequest(
        serie=operation.series,
        operation_nature=source.operation_nature,
        operation_type=operation.operation_type,
        consumer_type=profile.consumer_type,
        destination=operation.destination,
        buyer=buyer,
        items=items,
        payment=build_payment(),
        transport=transport,
        additional_information=source.additional_information,
    )
