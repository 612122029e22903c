from __future__ import annotations

from collections.abc import Sequence

"""Row label predicates used by the structural sheet parsers.

Labels in the report sheets are typed by hand and drift in case, spacing and
punctuation over the years, so every test here is a case-insensitive
substring check. Keeping them as small named functions lets each heuristic be
tested on its own.
"""

__all__ = [
    "PHONE_METRIC_SEQUENCE",
    "PLATFORM_PATTERNS",
    "is_phone_non_name",
    "is_phone_group",
    "section_role",
    "is_productivity_count_label",
    "match_platform",
    "marketing_metric",
]

PHONE_METRIC_SEQUENCE = ("inbound", "outbound", "missed")
_PHONE_NON_NAMES = {"inbound", "outbound", "missed", "total", "team", "average"}

# Checked in order, first substring hit wins ("google ads" -> "google").
PLATFORM_PATTERNS: tuple[tuple[str, str], ...] = (
    ("google", "google_ads"),
    ("google ads", "google_ads"),
    ("meta", "meta_ads"),
    ("facebook", "meta_ads"),
    ("meta/facebook", "meta_ads"),
    ("bing", "bing_ads"),
    ("bing ads", "bing_ads"),
    ("tiktok", "tiktok_ads"),
    ("seo", "seo"),
)


def is_phone_non_name(label: str) -> bool:
    """True for metric and summary labels that can never be a staff name."""
    lower = label.strip().lower()
    return lower in _PHONE_NON_NAMES or "total" in lower


def is_phone_group(following: Sequence[str]) -> bool:
    """True when the three labels after a name read inbound, outbound, missed."""
    if len(following) < len(PHONE_METRIC_SEQUENCE):
        return False
    return all(
        expected in label.strip().lower()
        for expected, label in zip(PHONE_METRIC_SEQUENCE, following, strict=False)
    )


def section_role(label: str) -> str | None:
    """Role announced by a Productivity section header, if ``label`` is one."""
    lower = label.lower()
    if "certifier" in lower:
        return "certifier"
    if "cadet" in lower:
        return "cadet"
    return None


def is_productivity_count_label(label: str) -> bool:
    return label.strip().endswith("#")


def match_platform(label: str) -> str | None:
    lower = label.strip().lower()
    if not lower:
        return None
    for pattern, platform in PLATFORM_PATTERNS:
        if pattern in lower:
            return platform
    return None


def marketing_metric(label: str) -> str | None:
    """Classify a marketing row label as impressions/clicks/cost/conversions."""
    lower = label.strip().lower()
    if "impression" in lower:
        return "impressions"
    if "click" in lower:
        return "clicks"
    if "cost" in lower or "spend" in lower:
        return "cost"
    if "conversion" in lower or "lead" in lower or "enquir" in lower:
        return "conversions"
    return None
