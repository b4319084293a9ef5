"""Invoice arithmetic for bookings and converted challans.

All amounts are :class:`~decimal.Decimal`. Line amounts and every charge are
quantised to paise (two places, half up); only the grand total is rounded to a
whole rupee, and the difference is kept as ``round_off``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Sequence

from django.conf import settings

from ..exceptions import ValidationError
from .money import HUNDRED, money, parse_decimal, parse_percent, percent_of, round_to_whole

ZERO = Decimal("0")


def _setting_decimal(name: str, default: str) -> Decimal:
    return Decimal(str(getattr(settings, name, default)))


def line_amount(cases: int, per_case: int, rate_per_box: Decimal, discount_percent: Decimal) -> tuple[int, Decimal]:
    """Return ``(quantity, amount)`` for one line item."""

    quantity = cases * per_case
    gross = Decimal(quantity) * rate_per_box
    amount = money(gross * (HUNDRED - discount_percent) / HUNDRED)
    return quantity, amount


def build_policy(data: Mapping[str, Any]) -> dict:
    """Read the optional fee and tax switches from a booking request.

    The returned mapping is stored on the booking as its settings blob so the
    bill can always be explained later.
    """

    apply_igst = bool(data.get("apply_igst", False))
    apply_cgst_sgst = bool(data.get("apply_cgst_sgst", False))
    if apply_igst and apply_cgst_sgst:
        raise ValidationError("IGST and CGST/SGST cannot both be applied.")

    packing_percent = data.get("packing_percent")
    if packing_percent in (None, ""):
        packing_percent = getattr(settings, "DEFAULT_PACKING_PERCENT", "3.0")

    extra = parse_decimal(data.get("extra_taxable_value"), "extra_taxable_value")
    if extra < 0:
        raise ValidationError("extra_taxable_value cannot be negative.")

    return {
        "apply_packing": bool(data.get("apply_packing", True)),
        "packing_percent": parse_percent(packing_percent, "packing_percent"),
        "extra_taxable_value": money(extra),
        "additional_discount": parse_percent(data.get("additional_discount"), "additional_discount"),
        "apply_igst": apply_igst,
        "apply_cgst_sgst": apply_cgst_sgst,
        "igst_percent": _setting_decimal("IGST_PERCENT", "18"),
        "cgst_percent": _setting_decimal("CGST_PERCENT", "9"),
        "sgst_percent": _setting_decimal("SGST_PERCENT", "9"),
    }


def plain_policy() -> dict:
    """Policy used for converted challans: no packing, discount or tax."""

    return build_policy({"apply_packing": False, "packing_percent": 0})


def compute_totals(items: Sequence[Mapping[str, Any]], policy: Mapping[str, Any]) -> dict:
    """Aggregate line ``amount``/``cases`` and apply the policy in bill order.

    packing on the subtotal, then the flat extra taxable value, then the
    additional discount on the running taxable amount, then tax, then round.
    """

    subtotal = money(sum((Decimal(item["amount"]) for item in items), ZERO))
    total_cases = sum(int(item["cases"]) for item in items)

    packing_charges = ZERO
    if policy["apply_packing"]:
        packing_charges = percent_of(subtotal, policy["packing_percent"])
    subtotal_with_packing = subtotal + packing_charges

    extra_taxable_value = policy["extra_taxable_value"]
    taxable_value = subtotal_with_packing + extra_taxable_value

    additional_discount_amount = percent_of(taxable_value, policy["additional_discount"])
    taxable_after_discount = taxable_value - additional_discount_amount

    igst_amount = cgst_amount = sgst_amount = ZERO
    if policy["apply_igst"]:
        igst_amount = percent_of(taxable_after_discount, policy["igst_percent"])
    elif policy["apply_cgst_sgst"]:
        cgst_amount = percent_of(taxable_after_discount, policy["cgst_percent"])
        sgst_amount = percent_of(taxable_after_discount, policy["sgst_percent"])
    tax_amount = igst_amount + cgst_amount + sgst_amount

    net_before_round = taxable_after_discount + tax_amount
    grand_total = round_to_whole(net_before_round)
    round_off = grand_total - net_before_round

    return {
        "subtotal": subtotal,
        "total_cases": total_cases,
        "packing_charges": packing_charges,
        "subtotal_with_packing": subtotal_with_packing,
        "extra_taxable_value": extra_taxable_value,
        "taxable_value": taxable_value,
        "additional_discount_amount": additional_discount_amount,
        "taxable_after_discount": taxable_after_discount,
        "igst_amount": igst_amount,
        "cgst_amount": cgst_amount,
        "sgst_amount": sgst_amount,
        "tax_amount": tax_amount,
        "net_before_round": net_before_round,
        "round_off": round_off,
        "grand_total": grand_total,
    }


__all__ = ["build_policy", "compute_totals", "line_amount", "plain_policy"]
