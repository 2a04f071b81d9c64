# ============================================================================
# src/order_proof/extractors/sanity.py
# ============================================================================
"""
Post-extraction sanity filters.

Applied once, after all recognition passes and model steps, to whatever
ended up in the result:
- amounts that are digit fragments of the order id
- amounts above the plausibility ceiling
- dates misread as amounts
- product names that look like URLs, addresses, status or navigation text
- order ids that fail validation
"""

import logging
import re
from datetime import datetime
from typing import List, Optional

from ..core.types import ExtractionResult
from .order_id import order_id_digit_segments, order_id_digits, sanitize_order_id
from .text_fields import is_rejected_product_name

logger = logging.getLogger(__name__)

FRAGMENT_MIN_ID_DIGITS = 10
FRAGMENT_MIN_AMOUNT_DIGITS = 4
LABELED_SCORE = 3


def is_order_id_fragment(amount: Optional[float], order_id: Optional[str]) -> bool:
    """
    True when the amount's digits are an order-id dash segment, or a
    contiguous run inside a long id.
    """
    if amount is None or not order_id:
        return False
    amount_digits = str(int(round(amount)))
    if amount_digits in order_id_digit_segments(order_id):
        return True
    id_digits = order_id_digits(order_id)
    return (
        len(id_digits) >= FRAGMENT_MIN_ID_DIGITS
        and len(amount_digits) >= FRAGMENT_MIN_AMOUNT_DIGITS
        and amount_digits in id_digits
    )


def looks_like_date(amount: float, order_date: Optional[str] = None) -> bool:
    if not float(amount).is_integer():
        return False
    digits = str(int(amount))
    if order_date and digits == re.sub(r'\D', '', order_date):
        return True
    if len(digits) == 8:
        for fmt in ('%d%m%Y', '%Y%m%d'):
            try:
                datetime.strptime(digits, fmt)
                return True
            except ValueError:
                continue
    return False


def is_year_like(amount: float) -> bool:
    return float(amount).is_integer() and 1900 <= amount <= 2099


def apply_sanity_filters(result: ExtractionResult, ceiling: float = 500_000.0) -> List[str]:
    """Clear implausible fields in place; returns the notes added."""
    notes: List[str] = []

    if result.order_id is not None and sanitize_order_id(result.order_id) is None:
        notes.append(f"Discarded order ID '{result.order_id}' (not a marketplace order id).")
        result.clear_field('order_id')

    amount = result.amount
    if amount is not None:
        reason = None
        if amount <= 0:
            reason = "not positive"
        elif amount > ceiling:
            reason = f"above plausibility ceiling {ceiling:,.0f}"
        elif is_order_id_fragment(amount, result.order_id):
            reason = "matches digits of the order ID"
        elif looks_like_date(amount, result.order_date):
            reason = "looks like a date"
        elif is_year_like(amount) and result.field_scores.get('amount', 0) < LABELED_SCORE:
            reason = "looks like a year"
        if reason:
            notes.append(f"Discarded amount {amount:g} ({reason}).")
            result.clear_field('amount')

    if result.product_name is not None and is_rejected_product_name(result.product_name):
        notes.append("Discarded product name (looks like a URL, address, status or navigation text).")
        result.clear_field('product_name')

    for note in notes:
        logger.debug(note)
        result.add_note(note)
    return notes
