# ============================================================================
# src/order_proof/extractors/amount.py
# ============================================================================
"""
Paid Amount Extraction

Preference order:
1. the LAST amount next to a final label (grand total, amount paid, you pay,
   payable, ...); receipts put the authoritative total near the bottom
2. the largest amount next to a generic label (total, price, subtotal)
3. the largest currency-prefixed amount anywhere
4. the largest plausible bare number

Amounts equal to a digit segment of the detected order id are skipped, as
are list prices / savings (MRP, discount, you save) sitting between a label
and its value.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .order_id import order_id_digit_segments

FINAL_LABEL_RE = re.compile(
    r'grand\s*total|amount\s*paid|paid\s*amount|you\s*pa(?:id|y)|order\s*total|'
    r'final\s*(?:total|amount)|net\s*(?:amount|payable|total)|total\s*(?:amount|payable)|'
    r'amount\s*payable|payable|total\s*paid|paid\s*via|bill\s*total',
    re.IGNORECASE,
)
GENERIC_LABEL_RE = re.compile(
    r'\btotal\b|\bsub\s*-?\s*total\b|\bprice\b|\bamount\b|\bselling\s*price\b',
    re.IGNORECASE,
)
DISCOUNT_CONTEXT_RE = re.compile(
    r'm\.?\s?r\.?\s?p|list\s*price|you\s*save|saving|discount|coupon|cashback|'
    r'\boff\b|promotion|strike|was\b|delivery\s*(?:fee|charge)|shipping\s*(?:fee|charge)',
    re.IGNORECASE,
)

AMOUNT_TOKEN_RE = re.compile(
    r'(?:(?P<cur>₹|\brs\.?|\binr\b)\s*)?'
    r'(?P<num>(?<!\w)\d{1,3}(?:,\d{2,3})+(?:\.\d{1,2})?(?!\d)|(?<![\w,])\d+(?:\.\d{1,2})?(?![\d,]))',
    re.IGNORECASE,
)
UNIT_SUFFIX_RE = re.compile(
    r'\s*(?:%|x\b|gb\b|tb\b|mb\b|ml\b|l\b|kg\b|g\b|gm\b|cm\b|mm\b|inch|items?\b|pcs\b|qty\b|units?\b|'
    r'stars?\b|ratings?\b|reviews?\b|days?\b|hrs?\b|mins?\b|mah\b|w\b)',
    re.IGNORECASE,
)

DATE_FRAGMENT_RE = re.compile(
    r'\b\d{1,4}[/\-.]\d{1,2}[/\-.]\d{2,4}\b|'
    r'\b\d{1,2}(?:st|nd|rd|th)?\s+(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?,?\s+\d{2,4}\b|'
    r'\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4}\b',
    re.IGNORECASE,
)
TIME_FRAGMENT_RE = re.compile(r'\b\d{1,2}:\d{2}(?::\d{2})?\s*(?:am|pm)?\b', re.IGNORECASE)
DASHED_ID_RE = re.compile(r'\S*\d\S*-\S*\d\S*')

SOURCE_SCORES = {'final': 4, 'generic': 3, 'currency': 2, 'bare': 1}


@dataclass
class AmountToken:
    value: float
    raw: str
    currency: bool
    start: int
    end: int


@dataclass
class AmountCandidate:
    value: float
    source: str

    @property
    def score(self) -> int:
        return SOURCE_SCORES[self.source]


def parse_amount(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(str(raw).replace(',', '').strip())
    except ValueError:
        return None
    return value if value == value else None


def find_amount_tokens(line: str) -> List[AmountToken]:
    tokens = []
    for match in AMOUNT_TOKEN_RE.finditer(line):
        if UNIT_SUFFIX_RE.match(line, match.end()):
            continue
        value = parse_amount(match.group('num'))
        if not value or value <= 0:
            continue
        tokens.append(AmountToken(
            value=value,
            raw=match.group('num'),
            currency=bool(match.group('cur')),
            start=match.start(),
            end=match.end(),
        ))
    return tokens


class AmountExtractor:
    """Label-aware paid amount extraction."""

    def __init__(self, ceiling: float = 500_000.0):
        self.ceiling = ceiling

    def extract(self, text: str, order_id: Optional[str] = None) -> Optional[AmountCandidate]:
        lines = [line.strip() for line in (text or '').replace('\r', '\n').split('\n') if line.strip()]
        segments = set(order_id_digit_segments(order_id))

        finals: List[float] = []
        generics: List[float] = []
        for i, line in enumerate(lines):
            final = list(FINAL_LABEL_RE.finditer(line))
            label = final[-1] if final else GENERIC_LABEL_RE.search(line)
            if not label:
                continue
            value = self._labeled_value(line, label.end(), segments)
            if value is None and i + 1 < len(lines) and not self._has_label(lines[i + 1]):
                value = self._labeled_value(lines[i + 1], 0, segments)
            if value is None:
                continue
            (finals if final else generics).append(value)

        if finals:
            return AmountCandidate(finals[-1], 'final')
        if generics:
            return AmountCandidate(max(generics), 'generic')

        currency = [
            token.value for line in lines for token in find_amount_tokens(line)
            if token.currency and self._acceptable(token, segments)
            and not DISCOUNT_CONTEXT_RE.search(line[max(0, token.start - 16):token.start])
        ]
        if currency:
            return AmountCandidate(max(currency), 'currency')

        bare = self.plausible_bare_amounts(lines, segments)
        if bare:
            return AmountCandidate(max(bare), 'bare')
        return None

    def all_amounts(self, text: str, order_id: Optional[str] = None) -> List[float]:
        """Every plausible amount in the text (for matching against an expected value)."""
        segments = set(order_id_digit_segments(order_id))
        lines = [line.strip() for line in (text or '').split('\n') if line.strip()]
        values = [
            token.value for line in lines for token in find_amount_tokens(line)
            if token.currency and self._acceptable(token, segments)
        ]
        values.extend(self.plausible_bare_amounts(lines, segments))
        return sorted(set(values))

    def plausible_bare_amounts(self, lines: Sequence[str], segments=frozenset()) -> List[float]:
        values = []
        for line in lines:
            cleaned = DATE_FRAGMENT_RE.sub(' ', line)
            cleaned = TIME_FRAGMENT_RE.sub(' ', cleaned)
            cleaned = DASHED_ID_RE.sub(' ', cleaned)
            for token in find_amount_tokens(cleaned):
                if token.currency or not self._acceptable(token, segments):
                    continue
                digits = token.raw.split('.')[0].replace(',', '')
                whole = '.' not in token.raw
                if whole and len(digits) == 4 and 1900 <= token.value <= 2099:
                    continue  # year
                if whole and len(digits) == 6 and ',' not in token.raw:
                    continue  # pincode
                if len(digits) >= 9:
                    continue  # phone / id / timestamp
                if token.value < 1:
                    continue
                values.append(token.value)
        return values

    # ------------------------------------------------------------------

    def _acceptable(self, token: AmountToken, segments) -> bool:
        if token.value > self.ceiling:
            return False
        digits = token.raw.split('.')[0].replace(',', '')
        return digits not in segments

    def _labeled_value(self, line: str, offset: int, segments) -> Optional[float]:
        tokens = [
            token for token in find_amount_tokens(line)
            if token.start >= offset and self._acceptable(token, segments)
            and not DISCOUNT_CONTEXT_RE.search(line[offset:token.start])
        ]
        currency = [token for token in tokens if token.currency]
        chosen = currency[0] if currency else (tokens[0] if tokens else None)
        return chosen.value if chosen else None

    @staticmethod
    def _has_label(line: str) -> bool:
        return bool(FINAL_LABEL_RE.search(line) or GENERIC_LABEL_RE.search(line))
