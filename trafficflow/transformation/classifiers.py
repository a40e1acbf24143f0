"""
Traffic Classification Rules

Buckets raw sessions along the two axes of the flow graph:
- Source categorization: (source, medium) -> SourceCategory
- Page grouping: landing page path -> PageGroup

Both classifiers are ordered rule lists evaluated top to bottom; the first
matching rule wins and every input maps to exactly one bucket.
"""

import re
from typing import Optional, Sequence, Tuple
from urllib.parse import urlsplit

from .models import PageGroup, SourceCategory

PAID_MEDIUM_MARKERS = ("cpc", "ppc", "paid")
PAID_SOURCE_MARKERS = ("ads",)
SOCIAL_MEDIUM_MARKERS = ("social",)
SOCIAL_SOURCE_MARKERS = ("facebook", "instagram", "twitter", "linkedin", "tiktok", "pinterest")

# Evaluated against the whole path, in order
FULL_PATH_RULES: Tuple[Tuple[PageGroup, Tuple[str, ...]], ...] = (
    (PageGroup.CART, ("cart", "carrito", "basket", "cesta")),
    (PageGroup.CHECKOUT, ("checkout", "payment", "pago", "compra", "order", "pedido")),
    (PageGroup.CONTACT, ("contact", "contacto", "ayuda", "help", "support", "soporte")),
    (
        PageGroup.PROMOTION,
        ("promo", "offer", "oferta", "descuento", "discount", "sale", "landing", "campaign", "campana"),
    ),
    (
        PageGroup.CATALOG,
        (
            "product", "producto", "collection", "coleccion", "category", "categoria",
            "shop", "tienda", "catalog", "catalogo",
            # product lines
            "zapatilla", "zapato", "calzado", "shoe", "ropa", "clothing", "accesorio", "accessory",
            # e-commerce URL patterns
            "/p/", "/item/", "-nb-",
        ),
    ),
)

# Product codes embedded in catalog URLs
PRODUCT_CODE_PATTERN = re.compile(r"\d{3,}")

# Evaluated against the first path segment only, in order
FIRST_SEGMENT_RULES: Tuple[Tuple[PageGroup, Tuple[str, ...]], ...] = (
    (PageGroup.BLOG, ("blog", "article", "news", "noticia")),
    (PageGroup.ABOUT, ("about", "nosotros", "company", "empresa")),
    (PageGroup.ACCOUNT, ("login", "signin", "account", "cuenta", "profile", "perfil")),
    (PageGroup.SEARCH, ("search", "buscar", "busqueda")),
)


def _contains_any(value: str, markers: Sequence[str]) -> bool:
    return any(marker in value for marker in markers)


def categorize_source(source: Optional[str], medium: Optional[str]) -> SourceCategory:
    """
    Classify a (source, medium) pair into a traffic origin category.

    Matching is case-insensitive substring search; missing values are
    treated as empty strings. Direct and referral traffic fall through to
    ORGANIC.

    Args:
        source: GA4 session source (e.g. "google", "instagram.com")
        medium: GA4 session medium (e.g. "cpc", "organic", "(none)")

    Returns:
        SourceCategory for the pair
    """
    source_lower = (source or "").lower()
    medium_lower = (medium or "").lower()

    if _contains_any(medium_lower, PAID_MEDIUM_MARKERS) or _contains_any(source_lower, PAID_SOURCE_MARKERS):
        return SourceCategory.AD_CAMPAIGNS

    if _contains_any(medium_lower, SOCIAL_MEDIUM_MARKERS) or _contains_any(source_lower, SOCIAL_SOURCE_MARKERS):
        return SourceCategory.SOCIAL_MEDIA

    return SourceCategory.ORGANIC


def group_page(path: Optional[str]) -> PageGroup:
    """
    Classify a landing page path into a site section.

    Args:
        path: URL path, ideally already stripped of scheme and host

    Returns:
        PageGroup for the path
    """
    if not path or path == "/":
        return PageGroup.HOME

    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return PageGroup.HOME

    full_path = path.lower()

    for page_group, markers in FULL_PATH_RULES:
        if _contains_any(full_path, markers):
            return page_group

    if PRODUCT_CODE_PATTERN.search(full_path):
        return PageGroup.CATALOG

    first_segment = "/" + segments[0].lower()
    for page_group, markers in FIRST_SEGMENT_RULES:
        if _contains_any(first_segment, markers):
            return page_group

    return PageGroup.OTHER


def extract_path(landing_page: str) -> str:
    """
    Return the path component of an absolute URL.

    Values that are not absolute URLs (plain paths, "(not set)", garbage)
    are returned unchanged.
    """
    try:
        parts = urlsplit(landing_page)
    except ValueError:
        return landing_page

    if not parts.scheme or not parts.netloc:
        return landing_page

    return parts.path or "/"
