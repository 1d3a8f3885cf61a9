# Overview: Flask API routes for categories and products; parses input and returns JSON responses.

# backend/orderdesk/routes/catalog.py
"""
Catalog API routes

Reads are open to every authenticated user (the POS needs the menu).
Writes require OWNER or ADMIN.
"""

from flask import Blueprint, request

from ..decorators import require_auth, require_roles
from ..models import Product
from ..models.auth import MANAGER_ROLES
from ..responses import json_body, ok
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    coerce_int,
    enforce_rules_product,
    parse_pagination,
    validate_payload,
)


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")
products_bp = Blueprint("products", __name__, url_prefix="/api/products")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category_id", "price_cents", "cost_cents", "stock", "image_url"},
    required_on_create={"name", "price_cents"},
)


# =============================================================================
# CATEGORIES
# =============================================================================

@categories_bp.get("")
@require_auth
def list_categories_route(ctx):
    return ok([c.to_dict() for c in catalog_service.list_categories(ctx)])


@categories_bp.post("")
@require_auth
@require_roles(*MANAGER_ROLES)
def create_category_route(ctx):
    category = catalog_service.create_category(ctx, json_body().get("name"))
    return ok(category.to_dict(), status=201, message="Category created")


@categories_bp.put("/<int:category_id>")
@require_auth
@require_roles(*MANAGER_ROLES)
def rename_category_route(ctx, category_id: int):
    category = catalog_service.rename_category(ctx, category_id, json_body().get("name"))
    return ok(category.to_dict(), message="Category updated")


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_roles(*MANAGER_ROLES)
def delete_category_route(ctx, category_id: int):
    catalog_service.delete_category(ctx, category_id)
    return ok(None, message="Category deleted")


# =============================================================================
# PRODUCTS
# =============================================================================

@products_bp.get("")
@require_auth
def list_products_route(ctx):
    page_index, page_size = parse_pagination(request.args)
    category_id = request.args.get("category_id") or request.args.get("categoryId")
    result = catalog_service.list_products(
        ctx,
        page_index=page_index,
        page_size=page_size,
        search=request.args.get("search") or None,
        category_id=coerce_int(category_id, "category_id") if category_id else None,
    )
    return ok(result["data"], meta=result["meta"])


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(ctx, product_id: int):
    return ok(catalog_service.get_product(ctx, product_id).to_dict())


@products_bp.post("")
@require_auth
@require_roles(*MANAGER_ROLES)
def create_product_route(ctx):
    patch = validate_payload(model=Product, payload=json_body(), policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    product = catalog_service.create_product(ctx, patch)
    return ok(product.to_dict(), status=201, message="Product created")


@products_bp.put("/<int:product_id>")
@require_auth
@require_roles(*MANAGER_ROLES)
def update_product_route(ctx, product_id: int):
    patch = validate_payload(model=Product, payload=json_body(), policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)
    product = catalog_service.update_product(ctx, product_id, patch)
    return ok(product.to_dict(), message="Product updated")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_roles(*MANAGER_ROLES)
def delete_product_route(ctx, product_id: int):
    catalog_service.delete_product(ctx, product_id)
    return ok(None, message="Product deleted")
