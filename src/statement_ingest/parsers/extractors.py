"""Title and merchant extraction from transaction narrations.

Each extractor is an ordered chain of named matchers. A matcher returns the
extracted text or None, and the first non-empty result wins.
"""

import re
from typing import Callable, List, Optional, Tuple


Matcher = Callable[[str], Optional[str]]

DEFAULT_MAX_LENGTH = 50
FALLBACK_WORD_COUNT = 3
UNKNOWN_MERCHANT = "Unknown"


def regex_matcher(pattern: str, flags: int = 0) -> Matcher:
    """Build a matcher returning the first capture group of ``pattern``"""
    compiled = re.compile(pattern, flags)

    def match(description: str) -> Optional[str]:
        found = compiled.search(description)
        if found and found.group(1) and found.group(1).strip():
            return found.group(1).strip()
        return None

    return match


def first_words(description: str, count: int = FALLBACK_WORD_COUNT) -> str:
    return ' '.join(description.split()[:count])


TITLE_MATCHERS: List[Tuple[str, Matcher]] = [
    ('upi', regex_matcher(r'UPI/([^/]+)', re.IGNORECASE)),
    ('neft', regex_matcher(r'NEFT[^-]*-([^-]+)', re.IGNORECASE)),
    ('auto_debit', regex_matcher(r'ATD/(.+)', re.IGNORECASE)),
    ('leading_segment', regex_matcher(r'^([^/]+)')),
]

MERCHANT_MATCHERS: List[Tuple[str, Matcher]] = [
    ('upi', regex_matcher(r'UPI/([A-Z0-9]+)/')),
    ('pos', regex_matcher(r'POS/([A-Z0-9\s]+)/')),
    ('neft', regex_matcher(r'NEFT/([A-Z0-9\s]+)/')),
    ('name_with_reference', regex_matcher(r'([A-Z\s]+)\s*-\s*[0-9]+$')),
]


def run_matchers(description: str, matchers: List[Tuple[str, Matcher]]) -> Optional[Tuple[str, str]]:
    """Return ``(matcher_name, text)`` for the first matcher that fires"""
    for name, matcher in matchers:
        result = matcher(description)
        if result:
            return name, result
    return None


def extract_title(description: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Derive a short display title for a transaction"""
    desc = (description or "").strip()
    matched = run_matchers(desc, TITLE_MATCHERS)
    if matched:
        return matched[1][:max_length]
    return first_words(desc)[:max_length]


def extract_merchant(description: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Best-effort merchant name from a narration"""
    desc = (description or "").strip()
    matched = run_matchers(desc, MERCHANT_MATCHERS)
    if matched:
        return matched[1][:max_length]
    return first_words(desc)[:max_length] or UNKNOWN_MERCHANT
