"""
Label catalog for period labels and fallback labels.
"""

from typing import Dict

LOCALES: Dict[str, Dict[str, str]] = {
    "en": {
        "day_format": "%d.%m.",
        "week_format": "Week {week}, starting {start:%d.%m.}",
        "month_format": "%m/%Y",
        "year_format": "%Y",
        "unknown_payment": "Unknown payment",
        "unknown_shipping": "Unknown shipping",
        "unknown_status": "Unknown status",
        "unknown_product": "Unknown product",
        "unknown_postal_code": "Unknown postal code",
        "unknown_city": "Unknown city",
        "untitled_product": "Untitled",
        "product_code": "Product {code}",
    },
    "cs": {
        "day_format": "%d.%m.",
        "week_format": "Týden {week}, začátek {start:%d.%m.}",
        "month_format": "%m/%Y",
        "year_format": "%Y",
        "unknown_payment": "Neznámá platba",
        "unknown_shipping": "Neznámá doprava",
        "unknown_status": "Neznámý stav",
        "unknown_product": "Neznámý produkt",
        "unknown_postal_code": "Neznámé PSČ",
        "unknown_city": "Neznámé město",
        "untitled_product": "Bez názvu",
        "product_code": "Produkt {code}",
    },
}

DEFAULT_LOCALE = "en"


def get_labels(locale: str) -> Dict[str, str]:
    """Return the label set for a locale, falling back to the default."""
    return LOCALES.get((locale or "").lower(), LOCALES[DEFAULT_LOCALE])
