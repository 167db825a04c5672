"""Brochure Engine tool module.

Exposes configuration reading and the PDF dependency probe."""

from BrochureEngine.utils.config import Settings, settings, print_config
from BrochureEngine.utils.dependency_check import check_pango_available, log_dependency_status

__all__ = [
    "Settings",
    "settings",
    "print_config",
    "check_pango_available",
    "log_dependency_status",
]
