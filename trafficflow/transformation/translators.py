"""
Display Term Translation

Maps raw GA4 / BigQuery vocabulary (mediums, device categories, genders)
to the Spanish labels shown on the dashboard.
"""

from typing import Dict, Optional

TERM_TRANSLATIONS: Dict[str, str] = {
    "organic": "Orgánico",
    "referral": "Referencia",
    "(none)": "Directo",
    "(direct)": "Directo",
    "cpc": "Pago (CPC)",
    "email": "Email",
    "social": "Social",
    "desktop": "Escritorio",
    "mobile": "Móvil",
    "tablet": "Tablet",
    "male": "Hombre",
    "female": "Mujer",
    "unknown": "Desconocido",
}


def translate_term(term: Optional[str]) -> str:
    """
    Translate a backend term to its display label.

    Lookup is case-insensitive; unknown terms are returned unchanged and
    empty or missing terms become an empty string.
    """
    if not term:
        return ""
    return TERM_TRANSLATIONS.get(term.lower(), term)
