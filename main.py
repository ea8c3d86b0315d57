"""Cloud Function Entry Point - Root Module.

This is the root-level entry point for Google Cloud Functions.
It imports from the crimealert package.
"""

from crimealert.main import (
    location_fix,
    monitoring_control,
)

__all__ = [
    "location_fix",
    "monitoring_control",
]
