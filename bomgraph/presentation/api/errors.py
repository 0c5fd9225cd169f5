"""
Plain-data rendering of domain errors.
"""

from typing import Any, Dict

from bomgraph.domain.shared.exceptions import DomainException


def error_payload(exc: DomainException) -> Dict[str, Any]:
    """Render a domain exception as ``{"error", "detail", "details"}``."""
    return {
        'error': exc.code,
        'detail': exc.message,
        'details': exc.details,
    }
