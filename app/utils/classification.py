"""
Classification and display helpers shared by models, services and the API.

Pure functions only; nothing here touches the database or Flask.

Risk scoring:
    calculate_risk_score(p, i) = p × i  (1–25 on the 1–5 scales)
    risk_level(score):  ≤5 Low, ≤10 Medium, ≤15 High, else Critical
"""

from datetime import date, datetime

# ── Risk ─────────────────────────────────────────────────────────────────────

RISK_LEVEL_LOW = "Low"
RISK_LEVEL_MEDIUM = "Medium"
RISK_LEVEL_HIGH = "High"
RISK_LEVEL_CRITICAL = "Critical"

RISK_LEVELS = (RISK_LEVEL_LOW, RISK_LEVEL_MEDIUM, RISK_LEVEL_HIGH, RISK_LEVEL_CRITICAL)


def calculate_risk_score(probability: int, impact: int) -> int:
    """Risk score = probability × impact. The only scoring formula in the system."""
    return int(probability) * int(impact)


def risk_level(score: int | float) -> str:
    if score <= 5:
        return RISK_LEVEL_LOW
    if score <= 10:
        return RISK_LEVEL_MEDIUM
    if score <= 15:
        return RISK_LEVEL_HIGH
    return RISK_LEVEL_CRITICAL


# ── Status / priority colours (CSS utility classes) ─────────────────────────

NEUTRAL_COLOR = "bg-gray-100 text-gray-800"

STATUS_COLORS = {
    "PLANNING": "bg-gray-100 text-gray-800",
    "IN_PROGRESS": "bg-blue-100 text-blue-800",
    "UAT": "bg-yellow-100 text-yellow-800",
    "DONE": "bg-green-100 text-green-800",
    "CANCELLED": "bg-red-100 text-red-800",
    "TODO": "bg-gray-100 text-gray-800",
    "BLOCKED": "bg-red-100 text-red-800",
    "PENDING": "bg-yellow-100 text-yellow-800",
    "APPROVED": "bg-green-100 text-green-800",
    "REJECTED": "bg-red-100 text-red-800",
}

PRIORITY_COLORS = {
    "LOW": "bg-gray-100 text-gray-800",
    "MEDIUM": "bg-blue-100 text-blue-800",
    "HIGH": "bg-orange-100 text-orange-800",
    "URGENT": "bg-red-100 text-red-800",
    "CRITICAL": "bg-red-100 text-red-800",
}


def status_color(status: str | None) -> str:
    return STATUS_COLORS.get((status or "").upper(), NEUTRAL_COLOR)


def priority_color(priority: str | None) -> str:
    return PRIORITY_COLORS.get((priority or "").upper(), NEUTRAL_COLOR)


# ── Formatting ───────────────────────────────────────────────────────────────

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def format_currency(amount: int | float | None) -> str:
    """Format as USD with en-US grouping and no cents: 1234567 → "$1,234,567"."""
    value = float(amount or 0)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.0f}"


def format_currency_compact(amount: int | float | None) -> str:
    """Compact USD for large values: 2500000 → "$2.5M", 1200000000 → "$1.2B".

    Values below one million fall back to ``format_currency``.
    """
    value = float(amount or 0)
    magnitude = abs(value)
    sign = "-" if value < 0 else ""
    for threshold, suffix in ((1_000_000_000_000, "T"), (1_000_000_000, "B"), (1_000_000, "M")):
        if magnitude >= threshold:
            scaled = f"{magnitude / threshold:.1f}".rstrip("0").rstrip(".")
            return f"{sign}${scaled}{suffix}"
    return format_currency(value)


def format_date(value: date | datetime | str | None) -> str:
    """Format as "Mon d, yyyy" (e.g. "Mar 5, 2025"). Empty string when absent."""
    if not value:
        return ""
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return f"{_MONTHS[value.month - 1]} {value.day}, {value.year}"


# ── Progress / WBS ───────────────────────────────────────────────────────────

def calculate_progress(completed: int, total: int) -> int:
    """Percentage of completed items rounded half-up to an int; 0 for an empty set."""
    if not total:
        return 0
    return int(completed * 100 / total + 0.5)
