"""Static palettes, status styles and field constants."""

from __future__ import annotations

import re

MERGE_TYPE_ACCOUNT = "account"

# Merge colors recycle once more groups exist than there are entries.
MERGE_COLORS: tuple[str, ...] = ("red", "blue", "green", "yellow", "purple", "pink")

MERGE_COLOR_STYLES: dict[str, str] = {
    "red": "bold #ffffff on #b23a48",
    "blue": "bold #ffffff on #2f6db5",
    "green": "bold #0b1f0f on #5fbf72",
    "yellow": "bold #1f1a0b on #e8c547",
    "purple": "bold #ffffff on #7a4fb5",
    "pink": "bold #1f0b16 on #e89ac7",
}

PROJECT_STATUS_STYLES: dict[str, str] = {
    "rejected": "bold #ffffff on #b23a48",
    "complete": "bold #0b1f0f on #5fbf72",
    "partial": "bold #1f1a0b on #e8c547",
    "pending": "bold #ffffff on #5a5a5a",
}

UNKNOWN_PROJECT_ID = "unknown"
UNKNOWN_PROJECT_NAME = "Unnamed project"

INVOICE_NUMBER_PATTERN = re.compile(r"^[A-Za-z]{2}-\d{8}$")

VERIFICATION_PENDING = "pending"
VERIFICATION_REJECTED = "rejected"
