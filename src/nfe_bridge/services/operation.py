from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from nfe_bridge.services.exceptions import CfopNotFoundError, InvalidOperationDirectionError


class Direction(StrEnum):
    INCOMING = "incoming"  # entrada
    OUTGOING = "outgoing"  # saida


class Destination(StrEnum):
    INTERNAL = "internal_Operation"
    INTERSTATE = "interstate_Operation"


CFOP_PLACEHOLDER = "x"

# Operation nature (lower-cased) -> CFOP template. The placeholder digit is
# resolved from direction and locality.
_CFOP_TEMPLATES: dict[Direction, dict[str, str]] = {
    Direction.OUTGOING: {
        "venda": "x102",
        "venda de produção do estabelecimento": "x101",
        "retorno de remessa para conserto": "x916",
        "retorno de troca em garantia": "x949",
        "devolução de mercadoria de bonificação": "x949",
    },
    Direction.INCOMING: {
        "remessa para conserto": "x915",
        "troca em garantia": "x949",
        "bonificação": "x910",
        "compra": "x102",
    },
}

# Incoming operations have no fallback: an unknown nature is an error.
_DEFAULT_TEMPLATE: dict[Direction, str | None] = {
    Direction.OUTGOING: "x102",
    Direction.INCOMING: None,
}

# (direction, same state) -> leading CFOP digit
_CFOP_PREFIX: dict[tuple[Direction, bool], str] = {
    (Direction.OUTGOING, True): "5",
    (Direction.OUTGOING, False): "6",
    (Direction.INCOMING, True): "1",
    (Direction.INCOMING, False): "2",
}

_SERIES: dict[Direction, int] = {
    Direction.OUTGOING: 11,
    Direction.INCOMING: 10,
}


@dataclass(frozen=True)
class OperationResolution:
    cfop: int
    series: int
    operation_type: Direction
    destination: Destination


def parse_direction(value: Direction | str | None) -> Direction:
    try:
        return Direction(value)
    except ValueError:
        raise InvalidOperationDirectionError(value) from None


def _normalize_state(state: str | None) -> str:
    return (state or "").strip().upper()


def resolve_cfop(nature: str, direction: Direction, same_state: bool) -> int:
    key = (nature or "").strip().lower()
    template = _CFOP_TEMPLATES[direction].get(key) or _DEFAULT_TEMPLATE[direction]
    if template is None:
        raise CfopNotFoundError(nature)
    return int(template.replace(CFOP_PLACEHOLDER, _CFOP_PREFIX[direction, same_state], 1))


def resolve_destination(buyer_state: str | None, issuer_state: str | None) -> Destination:
    if _normalize_state(buyer_state) == _normalize_state(issuer_state):
        return Destination.INTERNAL
    return Destination.INTERSTATE


def resolve_operation(
    nature: str,
    direction: Direction | str,
    buyer_state: str | None,
    issuer_state: str | None,
) -> OperationResolution:
    """Derive CFOP, series, operation type and destination for an invoice."""
    op_direction = parse_direction(direction)
    destination = resolve_destination(buyer_state, issuer_state)
    cfop = resolve_cfop(nature, op_direction, destination is Destination.INTERNAL)
    return OperationResolution(
        cfop=cfop,
        series=_SERIES[op_direction],
        operation_type=op_direction,
        destination=destination,
    )
