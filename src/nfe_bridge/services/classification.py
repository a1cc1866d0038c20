from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from nfe_bridge.services.exceptions import (
    InvalidContributorStatusError,
    InvalidTaxNumberLengthError,
)
from nfe_bridge.utils.formatters import only_digits


class BuyerType(StrEnum):
    NATURAL_PERSON = "naturalPerson"  # CPF
    LEGAL_ENTITY = "legalEntity"  # CNPJ


class StateTaxNumberIndicator(StrEnum):
    TAX_PAYER = "taxPayer"
    NON_TAX_PAYER = "nonTaxPayer"
    EXEMPT = "exempt"


CPF_LENGTH = 11
CNPJ_LENGTH = 14

_BUYER_TYPE_BY_LENGTH = {
    CPF_LENGTH: BuyerType.NATURAL_PERSON,
    CNPJ_LENGTH: BuyerType.LEGAL_ENTITY,
}

# taxRegime, consumerType per buyer type
_BUYER_PROFILE = {
    BuyerType.NATURAL_PERSON: ("none", "finalConsumer"),
    BuyerType.LEGAL_ENTITY: (None, "normal"),
}

# Frappe "contribuinte_icms" labels (case-sensitive)
_CONTRIBUTOR_STATUS = {
    "Contribuinte": StateTaxNumberIndicator.TAX_PAYER,
    "Não Contribuinte": StateTaxNumberIndicator.NON_TAX_PAYER,
    "Contribuinte Isento": StateTaxNumberIndicator.EXEMPT,
}


@dataclass(frozen=True)
class BuyerClassification:
    tax_number: str  # digits only
    type: BuyerType
    tax_regime: str | None
    consumer_type: str
    state_tax_number_indicator: StateTaxNumberIndicator | None = None

    @property
    def federal_tax_number(self) -> int:
        return int(self.tax_number)


def classify_buyer(raw_tax_number: str, contributor_status: str | None) -> BuyerClassification:
    """Classify a buyer from its CPF/CNPJ and ICMS contributor label.

    The contributor status is only read for legal entities; natural persons
    are always final consumers without a state-tax-number indicator.
    """
    tax_number = only_digits(raw_tax_number)
    buyer_type = _BUYER_TYPE_BY_LENGTH.get(len(tax_number))
    if buyer_type is None:
        raise InvalidTaxNumberLengthError(tax_number)

    tax_regime, consumer_type = _BUYER_PROFILE[buyer_type]
    indicator = None
    if buyer_type is BuyerType.LEGAL_ENTITY:
        indicator = _CONTRIBUTOR_STATUS.get(contributor_status or "")
        if indicator is None:
            raise InvalidContributorStatusError(contributor_status or "")

    return BuyerClassification(
        tax_number=tax_number,
        type=buyer_type,
        tax_regime=tax_regime,
        consumer_type=consumer_type,
        state_tax_number_indicator=indicator,
    )
