# ============================================================================
# src/order_proof/extractors/platform_patterns.py
# ============================================================================
"""
Marketplace Order-ID Shapes

Data table of per-platform order identifier patterns. Each row carries the
score bonus a candidate earns for matching the shape exactly, the brand
keywords used to guess which marketplace a screenshot came from, and (for
all-digit dashed formats) the digit groups used to rebuild a spaced or
noisy digit run into the canonical form.

Adding a marketplace means adding a row; nothing else iterates patterns.
"""

import re
from dataclasses import dataclass
from typing import Optional, Pattern, Tuple


@dataclass(frozen=True)
class PlatformPattern:
    platform: str
    pattern: Pattern
    bonus: int
    keywords: Tuple[str, ...] = ()
    canonical_groups: Optional[Tuple[int, ...]] = None

    @property
    def digit_count(self) -> Optional[int]:
        return sum(self.canonical_groups) if self.canonical_groups else None

    def fullmatch(self, value: str) -> bool:
        return bool(self.pattern.fullmatch(value.strip().upper()))

    def canonicalize(self, digits: str) -> Optional[str]:
        """Rebuild an exact-length digit string into the dashed format."""
        if not self.canonical_groups or len(digits) != self.digit_count:
            return None
        parts, start = [], 0
        for size in self.canonical_groups:
            parts.append(digits[start:start + size])
            start += size
        return '-'.join(parts)


def _p(regex: str) -> Pattern:
    return re.compile(regex, re.IGNORECASE)


PLATFORM_PATTERNS: Tuple[PlatformPattern, ...] = (
    PlatformPattern("amazon", _p(r'\b\d{3}-\d{7}-\d{7}\b'), 10,
                    ("amazon", "amzn", "appario", "cloudtail"), (3, 7, 7)),
    PlatformPattern("flipkart", _p(r'\bOD\d{6,}\b'), 9, ("flipkart", "ekart", "supercoin")),
    PlatformPattern("ebay", _p(r'\b\d{2}-\d{5}-\d{5}\b'), 8, ("ebay",), (2, 5, 5)),
    PlatformPattern("myntra", _p(r'\b(?:MYN|MNT|ORD)\d{6,}\b'), 8, ("myntra",)),
    PlatformPattern("meesho", _p(r'\b(?:MSH|MEESHO)\d{6,}\b'), 8, ("meesho",)),
    PlatformPattern("ajio", _p(r'\bFN\d{7,12}\b'), 7, ("ajio",)),
    PlatformPattern("nykaa", _p(r'\bNYK[A-Z]{0,3}\d{6,}\b'), 7, ("nykaa",)),
    PlatformPattern("tatacliq", _p(r'\b(?:TCQ|TCL)\d{8,}\b'), 7, ("tata cliq", "tatacliq", "cliq")),
    PlatformPattern("croma", _p(r'\bCRM\d{6,}\b'), 7, ("croma",)),
    PlatformPattern("purplle", _p(r'\bPUR\d{6,}\b'), 7, ("purplle",)),
    PlatformPattern("snapdeal", _p(r'\bSD\d{8,}\b'), 6, ("snapdeal",)),
    PlatformPattern("jiomart", _p(r'\bJM\d{8,}\b'), 6, ("jiomart", "jio mart")),
    PlatformPattern("reliancedigital", _p(r'\bRD\d{8,}\b'), 6, ("reliance digital", "reliancedigital")),
    PlatformPattern("bigbasket", _p(r'\bBB\d{8,}\b'), 6, ("bigbasket", "big basket")),
    PlatformPattern("firstcry", _p(r'\bFC\d{8,}\b'), 6, ("firstcry",)),
    PlatformPattern("lenskart", _p(r'\bLK\d{6,}\b'), 6, ("lenskart",)),
    PlatformPattern("pepperfry", _p(r'\bPF\d{8,}\b'), 6, ("pepperfry",)),
    PlatformPattern("shopclues", _p(r'\bSC\d{8,}\b'), 6, ("shopclues",)),
)

PLATFORMS_BY_NAME = {row.platform: row for row in PLATFORM_PATTERNS}

# Bare brand names, used to reject "Amazon" / "Flipkart" read as a product name.
PLATFORM_NAMES = frozenset(
    keyword for row in PLATFORM_PATTERNS for keyword in (row.platform,) + row.keywords
) | frozenset({"amazon.in", "flipkart.com", "amazon prime", "prime"})

DEFAULT_PLATFORM = "amazon"


def score_platform(value: str) -> Tuple[int, Optional[str]]:
    """Best (bonus, platform) whose shape ``value`` matches exactly."""
    best_bonus, best_name = 0, None
    for row in PLATFORM_PATTERNS:
        if row.bonus > best_bonus and row.fullmatch(value):
            best_bonus, best_name = row.bonus, row.platform
    return best_bonus, best_name


def detect_dominant_platform(text: str) -> Optional[str]:
    """Marketplace whose brand keywords appear most often in ``text``."""
    lowered = (text or '').lower()
    counts = {}
    for row in PLATFORM_PATTERNS:
        hits = sum(lowered.count(keyword) for keyword in row.keywords)
        if hits:
            counts[row.platform] = hits
    if not counts:
        return None
    return max(counts, key=counts.get)


def coercion_targets(text: str) -> Tuple[PlatformPattern, ...]:
    """
    Platforms a noisy digit run may be rebuilt into: the dominant platform
    when it has a dashed digit format, otherwise the default one.
    """
    dominant = detect_dominant_platform(text)
    if dominant and PLATFORMS_BY_NAME[dominant].canonical_groups:
        return (PLATFORMS_BY_NAME[dominant],)
    return (PLATFORMS_BY_NAME[DEFAULT_PLATFORM],)
