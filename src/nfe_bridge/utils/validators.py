from __future__ import annotations

import re

_UFS = frozenset({
    "AC", "AL", "AM", "AP", "BA", "CE", "DF", "ES", "GO",
    "MA", "MG", "MS", "MT", "PA", "PB", "PE", "PI", "PR",
    "RJ", "RN", "RO", "RR", "RS", "SC", "SE", "SP", "TO",
})


def validate_uf(value: str) -> str:
    """Validate and normalize a two-letter Brazilian state code."""
    uf = (value or "").strip().upper()
    if uf not in _UFS:
        raise ValueError(f"UF invalida: '{value}'")
    return uf


def validate_access_key(value: str) -> str:
    """Validate an NF-e access key: exactly 44 numeric digits."""
    if not re.fullmatch(r"\d{44}", value):
        raise ValueError("Chave de acesso: deve ter exatamente 44 digitos numericos")
    return value
