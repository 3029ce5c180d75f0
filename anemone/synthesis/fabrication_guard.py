"""Fabrication guard: catches numeric claims the model did not fetch.

A numeric claim is a number next to a balance/health/currency word, in
either order, in English or Chinese. Text with a claim but no command
marker (or a reply produced without any data being fetched) is a policy
violation and is replaced, never returned verbatim. The patterns are a
heuristic and can be swapped through the constructor.
"""

import re
from typing import Iterable, List, Optional, Pattern

from anemone.planning.markers import has_command_marker

_NUMBER = r"\d[\d,]*(?:\.\d+)?"

DEFAULT_CLAIM_PATTERNS = (
    # balance is 12.5 / health: 80
    rf"(?<![a-z])(?:balance|health|hp)(?![a-z])[^\d\n]{{0,16}}?{_NUMBER}",
    # SUI 3 / USD: 10 / $10; a currency name counts only with the value right after it
    rf"(?:(?<![a-z])(?:sui|usdc?)(?![a-z])|\$)\s*[:=]?\s*{_NUMBER}",
    # 12.5 SUI / 10 USD / 3 dollars / 1000 mist
    rf"{_NUMBER}\s*(?:sui|usdc?|dollars?|mist)(?![a-z])",
    # 余额是 12 / 健康值 80 / 代币 3
    rf"(?:余额|健康值?|血量|代币)[^\d\n]{{0,8}}?{_NUMBER}",
    # 12 SUI / 10 美元
    rf"{_NUMBER}\s*(?:个)?\s*(?:美元|美金|枚)",
)

COERCED_REPLY = (
    "I have not fetched any data for that, so I can't give you a number. "
    "Ask me to check it and I will look it up."
)


class FabricationGuard:
    """Detects unfetched numeric claims."""

    def __init__(self, patterns: Optional[Iterable[str]] = None, coerced_reply: str = COERCED_REPLY):
        sources = list(patterns) if patterns is not None else list(DEFAULT_CLAIM_PATTERNS)
        self._patterns: List[Pattern[str]] = [re.compile(p, re.IGNORECASE) for p in sources]
        self.coerced_reply = coerced_reply

    def find_numeric_claims(self, text: Optional[str]) -> List[str]:
        if not text:
            return []
        claims: List[str] = []
        for pattern in self._patterns:
            claims.extend(match.group(0) for match in pattern.finditer(text))
        return claims

    def has_numeric_claim(self, text: Optional[str]) -> bool:
        return any(pattern.search(text) for pattern in self._patterns) if text else False

    def is_violation(self, text: Optional[str]) -> bool:
        """Numeric claim without any accompanying command marker."""
        return self.has_numeric_claim(text) and not has_command_marker(text)
