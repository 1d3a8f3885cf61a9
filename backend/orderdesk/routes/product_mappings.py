# Overview: Flask API routes for external product mappings used by webhook ingestion.

from flask import Blueprint, request

from ..decorators import require_auth, require_roles
from ..errors import ValidationError
from ..models.auth import MANAGER_ROLES
from ..responses import json_body, ok
from ..services import product_mapping_service
from ..validation import coerce_int


product_mappings_bp = Blueprint("product_mappings", __name__, url_prefix="/api/product-mappings")


def _external_id(data: dict):
    value = data.get("external_product_id", data.get("externalProductId"))
    return str(value) if value is not None else None


@product_mappings_bp.get("")
@require_auth
def list_mappings_route(ctx):
    mappings = product_mapping_service.list_mappings(ctx, source=request.args.get("source") or None)
    return ok([m.to_dict() for m in mappings])


@product_mappings_bp.get("/<int:mapping_id>")
@require_auth
def get_mapping_route(ctx, mapping_id: int):
    return ok(product_mapping_service.get_mapping(ctx, mapping_id).to_dict())


@product_mappings_bp.post("")
@require_auth
@require_roles(*MANAGER_ROLES)
def create_mapping_route(ctx):
    data = json_body()
    product_id = data.get("product_id", data.get("productId"))
    if product_id is None:
        raise ValidationError("product_id is required")
    mapping = product_mapping_service.create_mapping(
        ctx,
        external_product_id=_external_id(data),
        product_id=coerce_int(product_id, "product_id"),
        source=data.get("source"),
    )
    return ok(mapping.to_dict(), status=201, message="Product mapping created")


@product_mappings_bp.put("/<int:mapping_id>")
@require_auth
@require_roles(*MANAGER_ROLES)
def update_mapping_route(ctx, mapping_id: int):
    data = json_body()
    product_id = data.get("product_id", data.get("productId"))
    mapping = product_mapping_service.update_mapping(
        ctx,
        mapping_id,
        external_product_id=_external_id(data),
        product_id=coerce_int(product_id, "product_id") if product_id is not None else None,
        source=data.get("source"),
    )
    return ok(mapping.to_dict(), message="Product mapping updated")


@product_mappings_bp.delete("/<int:mapping_id>")
@require_auth
@require_roles(*MANAGER_ROLES)
def delete_mapping_route(ctx, mapping_id: int):
    product_mapping_service.delete_mapping(ctx, mapping_id)
    return ok(None, message="Product mapping deleted")
