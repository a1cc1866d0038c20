from __future__ import annotations


class InvoiceBuildError(ValueError):
    """Base class for errors raised while assembling an invoice request."""


class InvalidTaxNumberLengthError(InvoiceBuildError):
    """Tax number is neither a CPF (11 digits) nor a CNPJ (14 digits) after cleaning."""

    def __init__(self, tax_number: str) -> None:
        super().__init__(f"invalid tax number length: {len(tax_number)}")
        self.tax_number = tax_number


class InvalidContributorStatusError(InvoiceBuildError):
    def __init__(self, status: str) -> None:
        super().__init__(f"invalid ICMS contributor status: {status!r}")
        self.status = status


class MissingAddressFieldError(InvoiceBuildError):
    def __init__(self, field: str, detail: str = "") -> None:
        message = f"missing address field: {field}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.field = field


class CfopNotFoundError(InvoiceBuildError):
    def __init__(self, nature: str) -> None:
        super().__init__(f"cfop not found for operation: {nature!r}")
        self.nature = nature


class MissingCarrierIdentifierError(InvoiceBuildError):
    def __init__(self) -> None:
        super().__init__("carrier CNPJ is required")


class InvalidOperationDirectionError(InvoiceBuildError):
    def __init__(self, direction: object) -> None:
        super().__init__(f"invalid operation type: {direction!r}")
        self.direction = direction


class UpstreamAPIError(RuntimeError):
    """An upstream REST API answered with a non-success status."""

    service = "upstream"

    def __init__(self, action: str, status_code: int, body: str = "") -> None:
        super().__init__(f"{self.service} API error on {action} ({status_code}): {body}")
        self.action = action
        self.status_code = status_code
        self.body = body

    @classmethod
    def from_response(cls, action: str, resp) -> UpstreamAPIError:
        return cls(action, resp.status_code, resp.text[:500] if resp.text else "")


class FrappeAPIError(UpstreamAPIError):
    service = "Frappe"


class NfeioAPIError(UpstreamAPIError):
    service = "NFE.io"
