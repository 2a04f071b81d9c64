# ============================================================================
# src/order_proof/verification/matching.py
# ============================================================================
"""
Expected-value matching against recognized text.

Identifiers are compared after OCR confusion normalization (O->0, I/l->1,
S->5, B->8, Z->2) with separators removed; identifiers of 12+ characters
also tolerate one dropped or duplicated character. Any other differing
character is a different identifier. Amounts match within
``max(2, 0.5% of expected)``. Names match by token coverage with a fuzzy
per-token comparison.
"""

import re
from difflib import SequenceMatcher
from typing import Iterable, List, Optional, Sequence

IDENTIFIER_CONFUSIONS = str.maketrans('OILSBZ', '011582')
FUZZY_IDENTIFIER_MIN_LENGTH = 12

AMOUNT_ABSOLUTE_TOLERANCE = 2.0
AMOUNT_RELATIVE_TOLERANCE = 0.005

TOKEN_SIMILARITY = 0.8
NAME_STOPWORDS = frozenset({'the', 'and', 'for', 'with', 'of', 'a', 'an', 'in', 'by', 'to'})


# ----------------------------------------------------------------------
# Identifiers
# ----------------------------------------------------------------------

def normalize_identifier(value: Optional[str]) -> str:
    """Alphanumerics only, upper-cased, confusable letters mapped to digits."""
    if not value:
        return ''
    return re.sub(r'[^A-Z0-9]', '', str(value).upper()).translate(IDENTIFIER_CONFUSIONS)


def within_one_gap(a: str, b: str) -> bool:
    """True when ``a`` and ``b`` are equal or one extra character apart (dropped or duplicated)."""
    if a == b:
        return True
    if abs(len(a) - len(b)) != 1:
        return False
    shorter, longer = (a, b) if len(a) < len(b) else (b, a)
    for i, ch in enumerate(shorter):
        if ch != longer[i]:
            return shorter[i:] == longer[i + 1:]
    return True


def identifiers_match(expected: Optional[str], actual: Optional[str]) -> bool:
    exp = normalize_identifier(expected)
    act = normalize_identifier(actual)
    if not exp or not act:
        return False
    if exp == act:
        return True
    return len(exp) >= FUZZY_IDENTIFIER_MIN_LENGTH and within_one_gap(exp, act)


def identifier_in_text(
    expected: Optional[str],
    text: Optional[str],
    candidates: Iterable[str] = (),
) -> bool:
    """
    Whether ``expected`` appears in ``text``: as one of the extracted
    candidates, as a substring of a normalized line, or (long identifiers)
    as a window one dropped or duplicated character away.
    """
    exp = normalize_identifier(expected)
    if not exp or not text:
        return False

    if any(identifiers_match(expected, candidate) for candidate in candidates):
        return True

    fuzzy = len(exp) >= FUZZY_IDENTIFIER_MIN_LENGTH
    for line in text.split('\n'):
        normalized = normalize_identifier(line)
        if exp in normalized:
            return True
        if not fuzzy or len(normalized) < len(exp) - 1:
            continue
        for size in (len(exp) - 1, len(exp) + 1):
            for start in range(0, len(normalized) - size + 1):
                window = normalized[start:start + size]
                # a shorter window must keep both ends, else it is just a truncated neighbour
                if size < len(exp) and (window[0] != exp[0] or window[-1] != exp[-1]):
                    continue
                if within_one_gap(exp, window):
                    return True
    return False


# ----------------------------------------------------------------------
# Amounts
# ----------------------------------------------------------------------

def amount_tolerance(expected: float) -> float:
    return max(AMOUNT_ABSOLUTE_TOLERANCE, abs(expected) * AMOUNT_RELATIVE_TOLERANCE)


def amounts_match(expected: Optional[float], actual: Optional[float]) -> bool:
    if expected is None or actual is None:
        return False
    try:
        expected, actual = float(expected), float(actual)
    except (TypeError, ValueError):
        return False
    return abs(expected - actual) <= amount_tolerance(expected)


def closest_amount(expected: float, amounts: Sequence[float]) -> Optional[float]:
    """The amount within tolerance of ``expected`` nearest to it, if any."""
    matching = [a for a in amounts if amounts_match(expected, a)]
    if not matching:
        return None
    return min(matching, key=lambda a: abs(a - expected))


# ----------------------------------------------------------------------
# Names
# ----------------------------------------------------------------------

def name_tokens(value: Optional[str]) -> List[str]:
    tokens = re.findall(r'[a-z0-9]+', (value or '').lower())
    return [t for t in tokens if len(t) > 1 and t not in NAME_STOPWORDS]


def _token_present(token: str, pool: Sequence[str]) -> bool:
    if token in pool:
        return True
    if len(token) < 4:
        return False
    return any(
        abs(len(token) - len(other)) <= 2 and SequenceMatcher(None, token, other).ratio() >= TOKEN_SIMILARITY
        for other in pool
    )


def token_coverage(expected: Optional[str], text: Optional[str]) -> float:
    """Share of the expected name's tokens found (fuzzily) in ``text``."""
    expected_tokens = name_tokens(expected)
    if not expected_tokens:
        return 0.0
    pool = name_tokens(text)
    if not pool:
        return 0.0
    found = sum(1 for token in expected_tokens if _token_present(token, pool))
    return found / len(expected_tokens)


def names_match(expected: Optional[str], actual: Optional[str], min_coverage: float = 0.6) -> bool:
    """Token coverage, or overall similarity for short or reordered names."""
    if not expected or not actual:
        return False
    if token_coverage(expected, actual) >= min_coverage:
        return True
    a = ' '.join(name_tokens(expected))
    b = ' '.join(name_tokens(actual))
    return bool(a and b) and SequenceMatcher(None, a, b).ratio() >= TOKEN_SIMILARITY


def name_in_text(expected: Optional[str], text: Optional[str], min_coverage: float = 0.6) -> bool:
    """Whether a name is present anywhere in the recognized text."""
    if not expected or not text:
        return False
    if token_coverage(expected, text) >= min_coverage:
        return True
    return any(names_match(expected, line, min_coverage) for line in text.split('\n') if line.strip())


def best_matching_line(expected: Optional[str], text: Optional[str]) -> Optional[str]:
    """Line of ``text`` with the highest token coverage of ``expected``."""
    if not expected or not text:
        return None
    best, best_score = None, 0.0
    for line in text.split('\n'):
        line = line.strip()
        if not line:
            continue
        score = token_coverage(expected, line)
        if score > best_score:
            best, best_score = line, score
    return best


def parse_expected_amount(value) -> Optional[float]:
    """Caller-supplied amount as a float ('₹1,499' and 1499 alike), or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value == value else None
    cleaned = re.sub(r'(?i)₹|rs\.?|inr|,|\s', '', str(value))
    try:
        return float(cleaned)
    except ValueError:
        return None
