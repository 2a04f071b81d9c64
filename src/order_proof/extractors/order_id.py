# ============================================================================
# src/order_proof/extractors/order_id.py
# ============================================================================
"""
Order Identifier Extraction

Scans recognized text line by line and collects scored candidates:
- labeled ids ("Order ID: ...") and the line after a bare label
- per-platform shapes from the pattern table
- spaced / OCR-noisy digit runs rebuilt into the dominant platform's
  dashed format when the digit count matches exactly
- generic alphanumeric ids on order-keyword lines

Scoring:
    +4  found on or right after an order-keyword line
    +2  contains a separator
    +2  mixes letters and digits
    +N  platform shape bonus (<= 10)
    +1  the exact string occurs verbatim in the text

Lines about tracking, shipments, invoices and payment references are
dropped before scanning unless they also carry an order keyword, in which
case only the order part of the line is kept.
"""

import re
from typing import Dict, Iterable, List, Optional

from ..core.types import FieldCandidate
from .platform_patterns import PLATFORM_PATTERNS, coercion_targets, score_platform

ORDER_KEYWORD_RE = re.compile(r'order\s*(?:id|no\.?|number|#)', re.IGNORECASE)
EXCLUDED_LINE_RE = re.compile(
    r'tracking|shipment|\bawb\b|invoice|transaction|\butr\b|\bupi\b|'
    r'\bref(?:erence)?\b\s*(?:no|id|number|#)?|payment\s*(?:id|ref)',
    re.IGNORECASE,
)
ORDER_LABEL_RE = re.compile(
    r'order\s*(?:id|no\.?|number|#)\s*[:\-#.]?\s*#?\s*([A-Z0-9][A-Z0-9\-_/]{5,39})',
    re.IGNORECASE,
)
GENERIC_ID_RE = re.compile(r'\b[A-Z0-9][A-Z0-9\-]{6,38}[A-Z0-9]\b', re.IGNORECASE)
DIGIT_RUN_RE = re.compile(r'(?<![A-Za-z0-9])[0-9OoIlSBZ](?:[ \t\-.]?[0-9OoIlSBZ]){7,30}(?![A-Za-z0-9])')

UUID_RE = re.compile(r'^[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}$', re.IGNORECASE)
HEX24_RE = re.compile(r'^[0-9a-f]{24}$', re.IGNORECASE)
DATE_LIKE_RE = re.compile(r'^\d{1,4}[\-/.]\d{1,2}[\-/.]\d{2,4}$')
INTERNAL_PREFIXES = ('E2E-', 'SYS')
INTERNAL_MARKERS = ('MOBO', 'BUZZMA')

MIN_ID_LENGTH = 4
MAX_ID_LENGTH = 64

# Characters OCR commonly reads in place of digits.
DIGIT_CONFUSIONS = str.maketrans({'O': '0', 'o': '0', 'I': '1', 'l': '1', 'S': '5', 'B': '8', 'Z': '2'})


def normalize_digit_confusions(value: str) -> str:
    return value.translate(DIGIT_CONFUSIONS)


def sanitize_order_id(value: object) -> Optional[str]:
    """
    Trim and validate a candidate id. Returns None for internal/system
    identifiers (UUIDs, 24-hex ids, internal markers), date-like values,
    values without a digit, and values outside 4-64 characters.
    """
    if not isinstance(value, str):
        return None
    raw = value.strip().strip('.,:;#()[]')
    if not raw:
        return None
    upper = raw.upper()
    if upper.startswith(INTERNAL_PREFIXES) or any(marker in upper for marker in INTERNAL_MARKERS):
        return None
    if UUID_RE.match(raw) or HEX24_RE.match(raw) or DATE_LIKE_RE.match(raw):
        return None
    if not (MIN_ID_LENGTH <= len(raw) <= MAX_ID_LENGTH):
        return None
    if not any(ch.isdigit() for ch in raw):
        return None
    return raw


def is_excluded_line(line: str) -> bool:
    return bool(EXCLUDED_LINE_RE.search(line))


def has_order_keyword(line: str) -> bool:
    return bool(ORDER_KEYWORD_RE.search(line))


def order_segment(line: str) -> Optional[str]:
    """
    The part of a line that may hold an order id. Excluded lines keep only
    the span from the order keyword up to the next excluded word, so
    "Order ID: X | Transaction ID: Y" yields "Order ID: X |".
    """
    if not is_excluded_line(line):
        return line
    keyword = ORDER_KEYWORD_RE.search(line)
    if not keyword:
        return None
    excluded = EXCLUDED_LINE_RE.search(line, keyword.end())
    segment = line[keyword.start():excluded.start() if excluded else len(line)].strip()
    return segment or None


class OrderIdExtractor:
    """Competitive scoring over order-id candidates."""

    def candidates(self, text: str) -> List[FieldCandidate]:
        """All candidates, best first (score, then length)."""
        lines = [line.strip() for line in (text or '').replace('\r', '\n').split('\n')]
        lines = [order_segment(line) for line in lines if line]
        lines = [line for line in lines if line]
        scan_text = '\n'.join(lines)
        targets = coercion_targets(text or '')
        found: Dict[str, FieldCandidate] = {}

        def push(value: Optional[str], near_keyword: bool) -> None:
            sanitized = sanitize_order_id(value)
            if not sanitized:
                return
            candidate = self._score(sanitized, near_keyword, scan_text)
            existing = found.get(candidate.key)
            if existing is None or candidate.score > existing.score:
                found[candidate.key] = candidate

        for i, line in enumerate(lines):
            keyword = has_order_keyword(line)

            if keyword:
                labeled = ORDER_LABEL_RE.search(line)
                if labeled:
                    push(self._coerce(labeled.group(1), targets) or labeled.group(1), True)
                for run in self._coerced_runs(line, targets):
                    push(run, True)
                for match in GENERIC_ID_RE.finditer(line):
                    push(match.group(0), True)

                # label on one line, value on the next
                if i + 1 < len(lines) and not has_order_keyword(lines[i + 1]):
                    following = lines[i + 1]
                    for value in self._platform_matches(following, targets):
                        push(value, True)
                    for run in self._coerced_runs(following, targets):
                        push(run, True)
                    generic = GENERIC_ID_RE.search(following)
                    if generic:
                        push(generic.group(0), True)

            for value in self._platform_matches(line, targets):
                push(value, keyword)

        for run in self._coerced_runs(scan_text, targets):
            push(run, False)

        return sorted(found.values(), key=lambda c: (c.score, len(c.value)), reverse=True)

    def extract(self, text: str) -> Optional[FieldCandidate]:
        ranked = self.candidates(text)
        return ranked[0] if ranked else None

    # ------------------------------------------------------------------

    @staticmethod
    def _score(value: str, near_keyword: bool, text: str) -> FieldCandidate:
        upper = value.upper()
        score = 0
        if near_keyword:
            score += 4
        if re.search(r'[\-_/]', upper):
            score += 2
        if re.search(r'\d', upper) and re.search(r'[A-Z]', upper):
            score += 2
        bonus, platform = score_platform(upper)
        score += bonus
        if value.lower() in text.lower():
            score += 1
        return FieldCandidate(
            value=value,
            score=score,
            has_label_context=near_keyword,
            matched_platform_pattern=platform,
        )

    @staticmethod
    def _platform_matches(line: str, targets) -> Iterable[str]:
        for row in PLATFORM_PATTERNS:
            for match in row.pattern.finditer(line):
                value = match.group(0)
                yield OrderIdExtractor._coerce(value, targets) or value

    @staticmethod
    def _coerce(value: str, targets) -> Optional[str]:
        """Rebuild a digit-only (after confusion fixes) value into a dashed format."""
        normalized = normalize_digit_confusions(value)
        digits = re.sub(r'[^0-9]', '', normalized)
        if len(digits) != len(re.sub(r'[\s\-._/]', '', normalized)):
            return None
        for row in targets:
            rebuilt = row.canonicalize(digits)
            if rebuilt:
                return rebuilt
        return None

    @staticmethod
    def _coerced_runs(text: str, targets) -> List[str]:
        runs = []
        for match in DIGIT_RUN_RE.finditer(text):
            chunk = match.group(0)
            if not any(ch.isdigit() for ch in chunk):
                continue
            rebuilt = OrderIdExtractor._coerce(chunk, targets)
            if rebuilt:
                runs.append(rebuilt)
        return runs


def order_id_digit_segments(order_id: Optional[str]) -> List[str]:
    """Digit groups of an id, e.g. '408-1234567-7654321' -> ['408', '1234567', '7654321']."""
    if not order_id:
        return []
    return re.findall(r'\d+', normalize_digit_confusions(order_id))


def order_id_digits(order_id: Optional[str]) -> str:
    return ''.join(order_id_digit_segments(order_id))
