"""Visit statistics over raw access log text.

IPs are found with a plain dotted-quad pattern: four groups of one to three
digits. Octets are not range checked, so ``999.1.1.1`` counts as an address.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

IP_PATTERN = re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b", re.ASCII)

MARK_OPEN = "<mark>"
MARK_CLOSE = "</mark>"


@dataclass
class LogStats:
    total: int = 0
    counts: Dict[str, int] = field(default_factory=dict)  # ip -> hits, first-seen order

    @property
    def unique(self) -> int:
        return len(self.counts)


def split_lines(text: str) -> List[str]:
    # only "\n" ends an entry; a User-Agent may carry \x85 or \u2028
    return [line for line in text.split("\n") if line.strip()]


def first_ip(line: str) -> Optional[str]:
    m = IP_PATTERN.search(line)
    return m.group(0) if m else None


def analyze(text: str) -> LogStats:
    stats = LogStats()
    for line in split_lines(text):
        stats.total += 1
        ip = first_ip(line)
        if ip is None:
            continue
        stats.counts[ip] = stats.counts.get(ip, 0) + 1
    return stats


def top_ips(stats: LogStats, limit: Optional[int] = None) -> List[Tuple[str, int]]:
    """IPs by descending hit count. ``sorted`` is stable, so ties keep first-seen order."""
    ranked = sorted(stats.counts.items(), key=lambda item: item[1], reverse=True)
    return ranked if limit is None else ranked[:limit]


def filter_lines(text: str, needle: str) -> List[str]:
    lines = split_lines(text)
    if not needle:
        return lines
    return [line for line in lines if needle in line]


def mark(line: str, needle: str, open_tag: str = MARK_OPEN, close_tag: str = MARK_CLOSE) -> str:
    """HTML-escape ``line`` and wrap each literal occurrence of ``needle``."""
    if not needle:
        return html.escape(line)
    parts = line.split(needle)
    marked = f"{open_tag}{html.escape(needle)}{close_tag}"
    return marked.join(html.escape(part) for part in parts)
