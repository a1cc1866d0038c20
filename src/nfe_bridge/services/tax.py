"""Per-item statutory tax calculation (ICMS, PIS, COFINS, IPI) and DIFAL.

Calculation base:

    base = unit value * quantity + freight + insurance + other charges - discount

Each tax amount is ``rate / 100 * base`` rounded to the cent, with halves
rounded away from zero. The base is not clamped: a discount larger than the
other components yields a negative base and negative amounts.

DIFAL (interstate rate differential) has two accepted methods; the caller
picks one according to the destination state's rule:

    single base:  value * (internal rate - interstate rate)

    dual base:    icms_inter = value * interstate rate
                  bc1        = value - icms_inter
                  bc2        = bc1 / (1 - internal rate)
                  icms_intra = bc2 * internal rate
                  difal      = icms_intra - icms_inter
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

_ZERO = Decimal("0")
_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")

DEFAULT_ICMS_ORIGIN = "0"
DEFAULT_ICMS_CST = "00"
DEFAULT_ICMS_MODALITY = "3"
DEFAULT_PIS_CST = "01"
DEFAULT_COFINS_CST = "01"
DEFAULT_IPI_CST = "50"


@dataclass(frozen=True)
class TaxInput:
    unit_value: Decimal
    quantity: Decimal
    freight: Decimal = _ZERO
    insurance: Decimal = _ZERO
    others: Decimal = _ZERO
    discount: Decimal = _ZERO

    icms_rate: Decimal = _ZERO
    icms_origin: str = DEFAULT_ICMS_ORIGIN
    icms_cst: str = DEFAULT_ICMS_CST
    icms_modality: str = DEFAULT_ICMS_MODALITY  # modBC: 3 = valor da operacao

    pis_rate: Decimal = _ZERO
    pis_cst: str = DEFAULT_PIS_CST

    cofins_rate: Decimal = _ZERO
    cofins_cst: str = DEFAULT_COFINS_CST

    ipi_rate: Decimal = _ZERO
    ipi_cst: str = DEFAULT_IPI_CST


@dataclass(frozen=True)
class IcmsTax:
    origin: str
    cst: str
    base_tax_modality: str
    base_tax: Decimal
    rate: Decimal
    amount: Decimal
    base_tax_st_reduction: str = "0"

    def to_dict(self) -> dict:
        return {
            "origin": self.origin,
            "cst": self.cst,
            "baseTaxModality": self.base_tax_modality,
            "baseTax": float(self.base_tax),
            "baseTaxSTReduction": self.base_tax_st_reduction,
            "rate": float(self.rate),
            "amount": float(self.amount),
        }


@dataclass(frozen=True)
class RateTax:
    """PIS, COFINS or IPI: a rate applied to the shared base."""

    cst: str
    base_tax: Decimal
    rate: Decimal
    amount: Decimal

    def to_dict(self, include_base: bool = True) -> dict:
        d = {"amount": float(self.amount), "rate": float(self.rate)}
        if include_base:
            d["baseTax"] = float(self.base_tax)
        d["cst"] = self.cst
        return d


@dataclass(frozen=True)
class TaxResult:
    base_tax: Decimal
    icms: IcmsTax
    pis: RateTax
    cofins: RateTax
    ipi: RateTax

    @property
    def total_tax(self) -> Decimal:
        return self.icms.amount + self.pis.amount + self.cofins.amount + self.ipi.amount

    def to_dict(self) -> dict:
        return {
            "totalTax": float(self.total_tax),
            "icms": self.icms.to_dict(),
            "pis": self.pis.to_dict(),
            "cofins": self.cofins.to_dict(),
            "ipi": self.ipi.to_dict(include_base=False),
        }


def round_cents(value: Decimal) -> Decimal:
    """Round to 2 decimal places, halves away from zero."""
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def tax_amount(rate: Decimal, base: Decimal) -> Decimal:
    return round_cents(rate / _HUNDRED * base)


def _prefix(code: str | None, size: int, default: str) -> str:
    code = (code or "").strip()
    if len(code) < size:
        return default
    return code[:size]


def calculate_base_tax(tax_input: TaxInput) -> Decimal:
    product_value = tax_input.unit_value * tax_input.quantity
    return (
        product_value
        + tax_input.freight
        + tax_input.insurance
        + tax_input.others
        - tax_input.discount
    )


def calculate_tax(tax_input: TaxInput) -> TaxResult:
    """Compute the shared base and the four tax blocks for one item."""
    base = calculate_base_tax(tax_input)

    icms = IcmsTax(
        origin=_prefix(tax_input.icms_origin, 1, DEFAULT_ICMS_ORIGIN),
        cst=_prefix(tax_input.icms_cst, 2, DEFAULT_ICMS_CST),
        base_tax_modality=_prefix(tax_input.icms_modality, 1, DEFAULT_ICMS_MODALITY),
        base_tax=base,
        rate=tax_input.icms_rate,
        amount=tax_amount(tax_input.icms_rate, base),
    )
    pis = RateTax(
        cst=_prefix(tax_input.pis_cst, 2, DEFAULT_PIS_CST),
        base_tax=base,
        rate=tax_input.pis_rate,
        amount=tax_amount(tax_input.pis_rate, base),
    )
    cofins = RateTax(
        cst=_prefix(tax_input.cofins_cst, 2, DEFAULT_COFINS_CST),
        base_tax=base,
        rate=tax_input.cofins_rate,
        amount=tax_amount(tax_input.cofins_rate, base),
    )
    ipi = RateTax(
        cst=_prefix(tax_input.ipi_cst, 2, DEFAULT_IPI_CST),
        base_tax=base,
        rate=tax_input.ipi_rate,
        amount=tax_amount(tax_input.ipi_rate, base),
    )
    return TaxResult(base_tax=base, icms=icms, pis=pis, cofins=cofins, ipi=ipi)


def calculate_difal(
    operation_value: Decimal,
    interstate_rate: Decimal,
    internal_rate: Decimal,
) -> Decimal:
    """DIFAL by the dual-base method. Rates are fractions (0.12, not 12)."""
    if internal_rate >= 1:
        raise ValueError(f"internal rate must be below 1, got {internal_rate}")
    icms_inter = operation_value * interstate_rate
    bc1 = operation_value - icms_inter
    bc2 = bc1 / (1 - internal_rate)
    icms_intra = bc2 * internal_rate
    return icms_intra - icms_inter


def calculate_difal_simple(
    operation_value: Decimal,
    interstate_rate: Decimal,
    internal_rate: Decimal,
) -> Decimal:
    """DIFAL by the single-base method. Rates are fractions."""
    return operation_value * (internal_rate - interstate_rate)
