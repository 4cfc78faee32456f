"""Engine configuration utilities."""

from .settings import (
    DEFAULT_PROJECTION_MONTHS,
    UNCATEGORIZED_LABEL,
    UNNAMED_LABEL,
    Settings,
    get_settings,
)

__all__ = [
    "DEFAULT_PROJECTION_MONTHS",
    "UNCATEGORIZED_LABEL",
    "UNNAMED_LABEL",
    "Settings",
    "get_settings",
]
