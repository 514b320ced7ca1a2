from __future__ import annotations

# Column names as they exist in financial_data (mixed Malay/English).
MONTH_COLUMNS: tuple[str, ...] = (
    "januari",
    "februari",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)

MONTH_NAMES: tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

MONTH_ABBREVIATIONS: tuple[str, ...] = tuple(name[:3] for name in MONTH_NAMES)


def month_column(month: int) -> str:
    """Map month number 1..12 to its financial_data column."""
    if month < 1 or month > 12:
        raise ValueError(f"month out of range: {month}")
    return MONTH_COLUMNS[month - 1]


def month_name(month: int) -> str:
    if month < 1 or month > 12:
        raise ValueError(f"month out of range: {month}")
    return MONTH_NAMES[month - 1]
