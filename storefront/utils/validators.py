import re
from urllib.parse import urlparse

from storefront.constants import PRODUCT_CATEGORIES, PRODUCT_TYPES


def clean_product_name(name: str) -> str:
    t = (name or "").strip()
    if not t:
        raise ValueError("Product name is required")
    if len(t) > 127:
        raise ValueError("Product name must be 127 characters or less")
    t = re.sub(r"[^\w\s\-.,'!?()&]", "", t)
    if not t:
        raise ValueError("Product name contains only invalid characters")
    return t


def clean_product_description(description: str) -> str:
    t = (description or "").strip()
    if not t:
        raise ValueError("Product description is required")
    if len(t) > 256:
        raise ValueError("Product description must be 256 characters or less")
    t = re.sub(r"[^\w\s\-.,'!?()&$%]", "", t)
    if not t:
        raise ValueError("Product description contains only invalid characters")
    return t


def require_https_url(url: str, name: str = "URL") -> str:
    t = (url or "").strip()
    if not t.startswith("https://"):
        raise ValueError(f"{name} is required and must use HTTPS protocol")
    if not urlparse(t).netloc:
        raise ValueError(f"Invalid URL format provided: {t}")
    return t


def require_product_type(v: str) -> str:
    if v not in PRODUCT_TYPES:
        raise ValueError(f"Invalid product type: {v}. Must be one of: {', '.join(PRODUCT_TYPES)}")
    return v


def require_product_category(v: str) -> str:
    if v not in PRODUCT_CATEGORIES:
        raise ValueError(f"Invalid category: {v}. Must be one of: {', '.join(PRODUCT_CATEGORIES)}")
    return v
