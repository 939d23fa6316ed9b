"""Clients for collaborators outside the process."""

from compliance_kernel.integrations.checkfix_client import (
    CheckFixClient,
    HttpCheckFixClient,
    StaticCheckFixClient,
    parse_report,
)

__all__ = [
    "CheckFixClient",
    "HttpCheckFixClient",
    "StaticCheckFixClient",
    "parse_report",
]
