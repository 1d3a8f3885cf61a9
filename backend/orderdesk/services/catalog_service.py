# backend/orderdesk/services/catalog_service.py
"""
Catalog Service with Multi-Tenant Support

MULTI-TENANT: Categories and products are scoped directly by org_id. A
category or product of another organization behaves exactly like a
missing one (NotFoundError).

DELETION POLICY:
- A product referenced by any order item cannot be deleted; order history
  and return pricing depend on it.
- A category that still holds products cannot be deleted.
Both raise ConflictError (409).
"""
from __future__ import annotations

import math

from flask import current_app

from ..context import TenantContext
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, OrderItem, Product, ProductMapping

PRODUCT_MUTABLE_FIELDS = {"name", "category_id", "price_cents", "cost_cents", "stock", "image_url"}


# =============================================================================
# CATEGORIES
# =============================================================================

def list_categories(ctx: TenantContext) -> list[Category]:
    return (
        db.session.query(Category)
        .filter_by(org_id=ctx.org_id)
        .order_by(Category.name.asc(), Category.id.asc())
        .all()
    )


def get_category(ctx: TenantContext, category_id: int) -> Category:
    category = db.session.query(Category).filter_by(id=category_id, org_id=ctx.org_id).first()
    if not category:
        raise NotFoundError("Category not found")
    return category


def _clean_category_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > 120:
        raise ValidationError("name exceeds max length 120")
    return name


def _ensure_category_name_free(org_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category.id).filter(
        Category.org_id == org_id,
        db.func.lower(Category.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError(f"Category '{name}' already exists")


def create_category(ctx: TenantContext, name: str) -> Category:
    name = _clean_category_name(name)
    _ensure_category_name_free(ctx.org_id, name)

    category = Category(org_id=ctx.org_id, name=name)
    db.session.add(category)
    db.session.commit()
    return category


def rename_category(ctx: TenantContext, category_id: int, name: str) -> Category:
    category = get_category(ctx, category_id)
    name = _clean_category_name(name)
    _ensure_category_name_free(ctx.org_id, name, exclude_id=category.id)

    category.name = name
    db.session.commit()
    return category


def delete_category(ctx: TenantContext, category_id: int) -> None:
    category = get_category(ctx, category_id)

    in_use = db.session.query(Product.id).filter_by(org_id=ctx.org_id, category_id=category.id).first()
    if in_use:
        raise ConflictError("Category still has products and cannot be deleted")

    db.session.delete(category)
    db.session.commit()


# =============================================================================
# PRODUCTS
# =============================================================================

def apply_product_patch(product: Product, patch: dict) -> None:
    for key, value in patch.items():
        if key not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(product, key, value)


def _require_category(org_id: int, category_id) -> None:
    if category_id is None:
        return
    exists = db.session.query(Category.id).filter_by(id=category_id, org_id=org_id).first()
    if not exists:
        raise NotFoundError("Category not found")


def list_products(
    ctx: TenantContext,
    page_index: int = 0,
    page_size: int = 10,
    search: str | None = None,
    category_id: int | None = None,
) -> dict:
    """Tenant-scoped product listing, sorted by name, with the same meta shape as orders."""
    query = db.session.query(Product).filter(Product.org_id == ctx.org_id)

    if search:
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)

    total = query.count()
    products = (
        query.order_by(Product.name.asc(), Product.id.asc())
        .offset(page_index * page_size)
        .limit(page_size)
        .all()
    )

    return {
        "meta": {
            "total": total,
            "pageIndex": page_index,
            "pageSize": page_size,
            "pageCount": math.ceil(total / page_size) if page_size else 0,
        },
        "data": [p.to_dict() for p in products],
    }


def get_product(ctx: TenantContext, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, org_id=ctx.org_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def create_product(ctx: TenantContext, patch: dict) -> Product:
    """Create a product from a validated patch dict (see validation.validate_payload)."""
    _require_category(ctx.org_id, patch.get("category_id"))

    product = Product(org_id=ctx.org_id)
    apply_product_patch(product, patch)
    db.session.add(product)
    db.session.commit()

    current_app.logger.info("Product %s created (org=%s)", product.id, ctx.org_id)
    return product


def update_product(ctx: TenantContext, product_id: int, patch: dict) -> Product:
    product = get_product(ctx, product_id)
    if "category_id" in patch:
        _require_category(ctx.org_id, patch["category_id"])

    apply_product_patch(product, patch)
    db.session.commit()
    return product


def delete_product(ctx: TenantContext, product_id: int) -> None:
    product = get_product(ctx, product_id)

    referenced = db.session.query(OrderItem.id).filter_by(product_id=product.id).first()
    if referenced:
        raise ConflictError("Product is referenced by existing orders and cannot be deleted")

    db.session.query(ProductMapping).filter_by(org_id=ctx.org_id, product_id=product.id).delete()
    db.session.delete(product)
    db.session.commit()

    current_app.logger.info("Product %s deleted (org=%s)", product_id, ctx.org_id)
