# ============================================================================
# src/order_proof/extractors/text_fields.py
# ============================================================================
"""
Order date, seller and product name extraction.

Each field is looked up by label first, then by heuristic scoring over all
lines. Product names are the noisiest: a line must clear MIN_PRODUCT_SCORE
and survive a final rejection pass (URLs, delivery status, bare platform
names, navigation chrome, addresses).
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from .platform_patterns import PLATFORM_NAMES

MONTHS = r'(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?'

DATE_PATTERNS = (
    re.compile(r'\b\d{4}-\d{1,2}-\d{1,2}\b'),
    re.compile(r'\b\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}\b'),
    re.compile(rf'\b\d{{1,2}}(?:st|nd|rd|th)?\s+{MONTHS},?\s+\d{{2,4}}\b', re.IGNORECASE),
    re.compile(rf'\b{MONTHS}\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}\b', re.IGNORECASE),
)
DATE_LABEL_RE = re.compile(
    r'order(?:ed)?\s*(?:placed|date|on)|placed\s*on|date\s*of\s*(?:order|purchase)|'
    r'purchase\s*date|booked\s*on|order\s*confirmed\s*on',
    re.IGNORECASE,
)
DATE_FORMATS = (
    '%Y-%m-%d', '%d/%m/%Y', '%d-%m-%Y', '%d.%m.%Y', '%d/%m/%y', '%d-%m-%y', '%d.%m.%y',
    '%d %B %Y', '%d %b %Y', '%d %B %y', '%d %b %y', '%B %d %Y', '%b %d %Y',
)

SELLER_LABEL_RE = re.compile(r'(?:sold\s*by|seller(?:\s*name)?|fulfilled\s*by)\s*[:\-]?\s*', re.IGNORECASE)
SELLER_STOP_RE = re.compile(
    r'\s*(?:\||·|•|return|replacement|delivered|arriving|qty|quantity|₹|rs\.?\s*\d).*$',
    re.IGNORECASE,
)

URL_RE = re.compile(r'https?://|www\.|\b[\w\-]+\.(?:com|in|net|org|co)(?:/|\b)', re.IGNORECASE)
STATUS_RE = re.compile(
    r'\b(?:delivered|arriving|shipped|out for delivery|dispatched|cancell?ed|returned|refund(?:ed)?|'
    r'order placed|order confirmed|return window|expected by|in transit|packed|'
    r'not yet shipped|return (?:closed|eligible)|replacement)\b',
    re.IGNORECASE,
)
NAVIGATION_RE = re.compile(
    r'^(?:home|cart|account|orders?|search|menu|back|help|sign in|log ?in|your orders|'
    r'order details|order summary|my orders|wishlist|track (?:package|order)|buy it again|'
    r'write a (?:product )?review|view (?:order|invoice)|download invoice|need help\??|'
    r'share|view all|see all|categories|profile|returns? ?& ?orders|contact us)\b',
    re.IGNORECASE,
)
ADDRESS_RE = re.compile(
    r'\b\d{6}\b|\b(?:road|rd\.|street|st\.|nagar|colony|sector|apartment|apt|flat|floor|'
    r'near|district|dist\.|tehsil|village|lane|block|phase|layout|cross|main road|'
    r'maharashtra|karnataka|delhi|tamil nadu|uttar pradesh|gujarat|telangana|kerala|'
    r'west bengal|rajasthan|haryana|punjab|india)\b',
    re.IGNORECASE,
)
CATEGORY_RE = re.compile(r'\s(?:>|›|»)\s|(?:\s\|\s.*){2,}')
LABEL_LINE_RE = re.compile(
    r'^\s*(?:order\s*(?:id|no|number|#|total|date)|total|amount|price|qty|quantity|sold\s*by|'
    r'seller|payment|date|invoice|ship(?:ping)?\s*(?:to|address)|deliver(?:y|ing)?\s*(?:to|address)|'
    r'subtotal|grand\s*total|you\s*pa(?:id|y)|mrp|discount|coupon|gst|tax)\b',
    re.IGNORECASE,
)
CURRENCY_RE = re.compile(r'₹|\brs\.?\s*\d|\binr\b', re.IGNORECASE)
BRACKETS_RE = re.compile(r'\([^)]{2,}\)|\[[^\]]{2,}\]')

PRODUCT_KEYWORDS = (
    'pack', 'set', 'combo', 'ml', 'kg', 'gm', 'gb', 'cm', 'inch', 'cotton', 'shirt', 't-shirt',
    'kurta', 'saree', 'dress', 'jeans', 'shoes', 'sneakers', 'sandals', 'watch', 'smartwatch',
    'phone', 'mobile', 'earbuds', 'headphones', 'earphones', 'speaker', 'charger', 'cable',
    'bottle', 'bag', 'backpack', 'cream', 'serum', 'shampoo', 'lipstick', 'perfume', 'book',
    'toy', 'laptop', 'case', 'cover', 'mixer', 'bluetooth', 'wireless', 'women', 'men', 'kids',
    'unisex', 'black', 'white', 'blue', 'red', 'green', 'size', 'capsules', 'tablets', 'oil',
    'powder', 'face wash', 'trimmer', 'stainless', 'steel', 'led',
)
MIN_PRODUCT_SCORE = 5


@dataclass
class TextFieldCandidate:
    value: str
    score: int


# ----------------------------------------------------------------------
# Dates
# ----------------------------------------------------------------------

def find_date(text: str) -> Optional[str]:
    for pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def normalize_date(raw: str) -> str:
    """ISO YYYY-MM-DD when parseable (day-first for numeric dates), else the raw text."""
    cleaned = re.sub(r'(\d)(?:st|nd|rd|th)\b', r'\1', raw.strip(), flags=re.IGNORECASE)
    cleaned = re.sub(r'[,.](?=\s)|\.$', '', cleaned)
    cleaned = re.sub(r'\bsept\b', 'Sep', cleaned, flags=re.IGNORECASE)
    cleaned = ' '.join(cleaned.split())
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue
    return raw.strip()


def extract_order_date(text: str) -> Optional[TextFieldCandidate]:
    lines = [line.strip() for line in (text or '').split('\n') if line.strip()]
    for i, line in enumerate(lines):
        label = DATE_LABEL_RE.search(line)
        if not label:
            continue
        raw = find_date(line[label.end():])
        if raw is None and i + 1 < len(lines):
            raw = find_date(lines[i + 1])
        if raw:
            return TextFieldCandidate(normalize_date(raw), 3)

    for line in lines:
        if STATUS_RE.search(line):
            continue  # delivery / return dates are not the order date
        raw = find_date(line)
        if raw:
            return TextFieldCandidate(normalize_date(raw), 1)
    return None


# ----------------------------------------------------------------------
# Seller
# ----------------------------------------------------------------------

def _clean_seller(value: str) -> Optional[str]:
    value = SELLER_STOP_RE.sub('', value).strip(' :-,.')
    if len(value) < 2 or len(value) > 80 or not re.search(r'[A-Za-z]{2,}', value):
        return None
    if SELLER_LABEL_RE.fullmatch(value) or LABEL_LINE_RE.match(value) or URL_RE.search(value):
        return None
    return value


def extract_seller(text: str) -> Optional[TextFieldCandidate]:
    lines = [line.strip() for line in (text or '').split('\n') if line.strip()]
    for i, line in enumerate(lines):
        label = SELLER_LABEL_RE.search(line)
        if not label:
            continue
        same_line = _clean_seller(line[label.end():])
        if same_line:
            return TextFieldCandidate(same_line, 3)
        if i + 1 < len(lines):
            next_line = _clean_seller(lines[i + 1])
            if next_line:
                return TextFieldCandidate(next_line, 2)
    return None


# ----------------------------------------------------------------------
# Product name
# ----------------------------------------------------------------------

def is_rejected_product_name(value: Optional[str]) -> bool:
    """True for values that are URLs, status phrases, platform names, navigation or addresses."""
    if not value or not value.strip():
        return True
    name = value.strip()
    lowered = name.lower().strip(' .:-')
    if URL_RE.search(name):
        return True
    if lowered in PLATFORM_NAMES:
        return True
    if NAVIGATION_RE.match(lowered) and len(lowered.split()) <= 4:
        return True
    if STATUS_RE.search(name) and len(name.split()) <= 8:
        return True
    if ADDRESS_RE.search(name) and re.search(r'\b\d{6}\b', name):
        return True
    return not re.search(r'[A-Za-z]{3,}', name)


def score_product_line(lines: List[str], i: int) -> int:
    line = lines[i]
    length = len(line)
    if length < 6 or length > 200:
        return -100

    score = 0
    if 15 <= length <= 150:
        score += 2
    if length >= 25:
        score += 1
    lowered = line.lower()
    keyword_hits = sum(1 for keyword in PRODUCT_KEYWORDS if re.search(rf'\b{re.escape(keyword)}\b', lowered))
    if keyword_hits:
        score += 2 + (1 if keyword_hits >= 2 else 0)
    if BRACKETS_RE.search(line):
        score += 2
    if len(line.split()) >= 3:
        score += 1

    neighbours = lines[max(0, i - 2):i] + lines[i + 1:i + 3]
    if any(CURRENCY_RE.search(n) or SELLER_LABEL_RE.search(n) for n in neighbours):
        score += 2

    if URL_RE.search(line):
        score -= 10
    if ADDRESS_RE.search(line):
        score -= 5
    if CATEGORY_RE.search(line):
        score -= 4
    if NAVIGATION_RE.match(lowered):
        score -= 6
    if STATUS_RE.search(line):
        score -= 6
    if LABEL_LINE_RE.match(line):
        score -= 5
    if CURRENCY_RE.search(line):
        score -= 3
    digits = sum(ch.isdigit() for ch in line)
    if digits / max(1, len(line.replace(' ', ''))) > 0.4:
        score -= 4
    return score


def extract_product_name(text: str) -> Optional[TextFieldCandidate]:
    lines = [line.strip() for line in (text or '').split('\n') if line.strip()]
    best: Optional[TextFieldCandidate] = None
    for i, line in enumerate(lines):
        score = score_product_line(lines, i)
        if score < MIN_PRODUCT_SCORE:
            continue
        if best is None or score > best.score:
            best = TextFieldCandidate(line, score)
    if best and is_rejected_product_name(best.value):
        return None
    return best
