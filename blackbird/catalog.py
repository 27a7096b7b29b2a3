# blackbird/catalog.py
"""
Product catalog. Exactly one default (freeform-price) product exists; its
price is typed in per booking and it can never be switched off.
"""

import logging
from sqlalchemy import select

from . import config
from .errors import ConflictError, NotFoundError, ValidationError
from .models import Product

log = logging.getLogger(__name__)

DEFAULT_LOCKED = "Default product cannot be deactivated"


def _price(value) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValidationError("base_price must be a number")
    if price != price or price < 0:  # NaN or negative
        raise ValidationError("base_price must be a positive number")
    return price


def _ensure_unique_name(s, name: str, exclude_id: int = None):
    q = select(Product.id).where(Product.name == name)
    if exclude_id is not None:
        q = q.where(Product.id != exclude_id)
    if s.execute(q).first():
        raise ConflictError(f"Product '{name}' already exists")


def seed_default_product(s) -> Product:
    existing = get_default_product(s)
    if existing:
        return existing
    product = Product(name=config.DEFAULT_PRODUCT_NAME, base_price=0, is_default=True, is_active=True)
    s.add(product)
    s.flush()
    log.info(f"[catalog] seeded default product {product.name!r}")
    return product


def get_default_product(s):
    return s.execute(select(Product).where(Product.is_default.is_(True))).scalar_one_or_none()


def create_product(s, data: dict) -> Product:
    name = str(data.get("name") or "").strip()
    if not name or data.get("base_price") is None:
        raise ValidationError("name and base_price are required")
    price = _price(data["base_price"])
    _ensure_unique_name(s, name)

    product = Product(
        name=name,
        base_price=price,
        is_active=bool(data["is_active"]) if data.get("is_active") is not None else True,
        is_default=False,
    )
    s.add(product)
    s.flush()
    log.info(f"[catalog] product {product.id} created ({name}, {price})")
    return product


def list_products(s, is_active=None):
    q = select(Product)
    if is_active is not None:
        q = q.where(Product.is_active.is_(bool(is_active)))
    q = q.order_by(Product.is_default.desc(), Product.created_at.desc(), Product.id.desc())
    return s.execute(q).scalars().all()


def get_product(s, product_id) -> Product:
    product = s.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def update_product(s, product_id, data: dict) -> Product:
    product = get_product(s, product_id)

    if data.get("is_active") is not None and not bool(data["is_active"]) and product.is_default:
        raise ValidationError(DEFAULT_LOCKED)

    if data.get("name") is not None:
        name = str(data["name"]).strip()
        if not name:
            raise ValidationError("name cannot be empty")
        _ensure_unique_name(s, name, exclude_id=product.id)
        product.name = name
    if data.get("base_price") is not None:
        product.base_price = _price(data["base_price"])
    if data.get("is_active") is not None:
        product.is_active = bool(data["is_active"])

    s.flush()
    return product


def update_product_status(s, product_id, is_active) -> Product:
    if is_active is None:
        raise ValidationError("is_active is required")
    product = get_product(s, product_id)
    if product.is_default and not bool(is_active):
        raise ValidationError(DEFAULT_LOCKED)
    product.is_active = bool(is_active)
    s.flush()
    return product
