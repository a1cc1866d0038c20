from __future__ import annotations

from decimal import Decimal

import pytest

from nfe_bridge.services.tax import (
    TaxInput,
    calculate_base_tax,
    calculate_difal,
    calculate_difal_simple,
    calculate_tax,
    round_cents,
    tax_amount,
)

D = Decimal


def _input(**overrides) -> TaxInput:
    values = {
        "unit_value": D("100.00"),
        "quantity": D("2"),
        "freight": D("10"),
        "insurance": D("5"),
        "icms_rate": D("18"),
        "pis_rate": D("1.65"),
        "cofins_rate": D("7.6"),
        "ipi_rate": D("0"),
    }
    values.update(overrides)
    return TaxInput(**values)


class TestRoundCents:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("3.5475", "3.55"),
            ("0.005", "0.01"),
            ("0.004", "0.00"),
            ("-0.005", "-0.01"),
            ("2.675", "2.68"),
        ],
    )
    def test_half_away_from_zero(self, value, expected):
        assert round_cents(D(value)) == D(expected)

    def test_tax_amount(self):
        assert tax_amount(D("1.65"), D("215")) == D("3.55")


class TestCalculateTax:
    def test_end_to_end_example(self):
        result = calculate_tax(_input())
        assert result.base_tax == D("215.00")
        assert result.icms.amount == D("38.70")
        assert result.pis.amount == D("3.55")
        assert result.cofins.amount == D("16.34")
        assert result.ipi.amount == D("0.00")
        assert result.total_tax == D("58.59")

    def test_regression_with_discount(self):
        result = calculate_tax(
            _input(
                unit_value=D("1000"),
                quantity=D("2"),
                freight=D("50"),
                insurance=D("25"),
                discount=D("100"),
            )
        )
        assert result.base_tax == D("1975.00")
        assert result.icms.amount == D("355.50")
        assert result.pis.amount == D("32.59")
        assert result.cofins.amount == D("150.10")
        assert result.total_tax == D("538.19")

    def test_others_enter_base(self):
        assert calculate_base_tax(_input(others=D("7.5"))) == D("222.50")

    def test_same_base_for_every_tax(self):
        result = calculate_tax(_input(ipi_rate=D("5")))
        assert result.icms.base_tax == result.pis.base_tax == result.cofins.base_tax == result.ipi.base_tax
        assert result.ipi.amount == D("10.75")

    def test_is_idempotent(self):
        tax_input = _input(discount=D("3.33"))
        assert calculate_tax(tax_input) == calculate_tax(tax_input)

    @pytest.mark.parametrize("base", ["0", "0.01", "99.99", "215", "1234.56", "100000"])
    @pytest.mark.parametrize("rate", ["0", "0.65", "1.65", "7.6", "12", "18", "100"])
    def test_amount_is_rounded_rate_times_base(self, base, rate):
        result = calculate_tax(
            TaxInput(
                unit_value=D(base),
                quantity=D("1"),
                icms_rate=D(rate),
                pis_rate=D(rate),
                cofins_rate=D(rate),
                ipi_rate=D(rate),
            )
        )
        expected = round_cents(D(rate) / 100 * D(base))
        assert result.icms.amount == expected
        assert result.pis.amount == expected
        assert result.cofins.amount == expected
        assert result.ipi.amount == expected
        assert result.total_tax == (
            result.icms.amount + result.pis.amount + result.cofins.amount + result.ipi.amount
        )

    def test_negative_base_is_not_clamped(self):
        result = calculate_tax(_input(unit_value=D("10"), quantity=D("1"), discount=D("100")))
        assert result.base_tax == D("-75")
        assert result.icms.amount == D("-13.50")
        assert result.total_tax < 0


class TestCodes:
    def test_defaults_for_short_codes(self):
        result = calculate_tax(
            _input(icms_origin="", icms_cst="0", icms_modality="", pis_cst="1", cofins_cst="", ipi_cst="5")
        )
        assert result.icms.origin == "0"
        assert result.icms.cst == "00"
        assert result.icms.base_tax_modality == "3"
        assert result.pis.cst == "01"
        assert result.cofins.cst == "01"
        assert result.ipi.cst == "50"

    def test_long_codes_are_truncated(self):
        result = calculate_tax(_input(icms_origin="21", icms_cst="101", pis_cst="049", ipi_cst="999"))
        assert result.icms.origin == "2"
        assert result.icms.cst == "10"
        assert result.pis.cst == "04"
        assert result.ipi.cst == "99"

    def test_template_codes_kept(self):
        result = calculate_tax(_input(icms_cst="20", cofins_cst="06", ipi_cst="53"))
        assert (result.icms.cst, result.cofins.cst, result.ipi.cst) == ("20", "06", "53")


class TestWireFormat:
    def test_tax_dict(self):
        d = calculate_tax(_input()).to_dict()
        assert d["totalTax"] == 58.59
        assert d["icms"] == {
            "origin": "0",
            "cst": "00",
            "baseTaxModality": "3",
            "baseTax": 215.0,
            "baseTaxSTReduction": "0",
            "rate": 18.0,
            "amount": 38.7,
        }
        assert d["pis"] == {"amount": 3.55, "rate": 1.65, "baseTax": 215.0, "cst": "01"}
        assert d["cofins"]["amount"] == 16.34
        assert "baseTax" not in d["ipi"]
        assert d["ipi"]["cst"] == "50"


class TestDifal:
    def test_dual_base(self):
        # 1000 at 12% interstate, 18% internal
        # icms_inter = 120, bc1 = 880, bc2 = 880 / 0.82, icms_intra = bc2 * 0.18
        result = calculate_difal(D("1000"), D("0.12"), D("0.18"))
        expected = D("880") / D("0.82") * D("0.18") - D("120")
        assert result == expected
        assert round_cents(result) == D("73.17")

    def test_simple(self):
        assert calculate_difal_simple(D("1000"), D("0.12"), D("0.18")) == D("60.00")

    def test_simple_negative_when_interstate_higher(self):
        assert calculate_difal_simple(D("100"), D("0.12"), D("0.07")) == D("-5.00")

    def test_dual_base_rejects_internal_rate_of_one(self):
        with pytest.raises(ValueError, match="internal rate"):
            calculate_difal(D("1000"), D("0.12"), D("1"))

    def test_zero_rates(self):
        assert calculate_difal(D("1000"), D("0"), D("0")) == 0
