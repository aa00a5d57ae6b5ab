"""
API Module
"""
from .dependencies import get_analytics_service, get_currency_converter, get_status_resolver

__all__ = [
    "get_analytics_service",
    "get_currency_converter",
    "get_status_resolver",
]
