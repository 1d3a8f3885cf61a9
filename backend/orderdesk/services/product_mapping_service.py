# Overview: Registry translating external product ids (per source) into local products.

"""
Product Mapping Service

WHY: External channels (delivery apps, marketplaces) send their own product
identifiers. Each organization maps (external_product_id, source) to one of
its products before webhook orders can be ingested.
"""

from __future__ import annotations

from flask import current_app

from ..context import TenantContext
from ..errors import ConflictError, MappingNotFoundError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, ProductMapping


def _normalize_source(source: str | None) -> str:
    return (source or "WEBHOOK").strip().upper()


def _require_product(org_id: int, product_id) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, org_id=org_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def get_internal_product_id(org_id: int, external_product_id: str, source: str) -> int:
    """Resolve a mapped product id or raise MappingNotFoundError."""
    mapping = db.session.query(ProductMapping).filter_by(
        org_id=org_id,
        external_product_id=external_product_id,
        source=_normalize_source(source),
    ).first()
    if not mapping:
        raise MappingNotFoundError(external_product_id, _normalize_source(source))
    return mapping.product_id


def list_mappings(ctx: TenantContext, source: str | None = None) -> list[ProductMapping]:
    query = db.session.query(ProductMapping).filter_by(org_id=ctx.org_id)
    if source:
        query = query.filter_by(source=_normalize_source(source))
    return query.order_by(ProductMapping.source, ProductMapping.external_product_id).all()


def get_mapping(ctx: TenantContext, mapping_id: int) -> ProductMapping:
    mapping = db.session.query(ProductMapping).filter_by(id=mapping_id, org_id=ctx.org_id).first()
    if not mapping:
        raise NotFoundError("Product mapping not found")
    return mapping


def _ensure_unique(org_id: int, external_product_id: str, source: str, exclude_id: int | None = None) -> None:
    query = db.session.query(ProductMapping.id).filter_by(
        org_id=org_id,
        external_product_id=external_product_id,
        source=source,
    )
    if exclude_id is not None:
        query = query.filter(ProductMapping.id != exclude_id)
    if query.first():
        raise ConflictError(
            f"Mapping for external product {external_product_id} (source: {source}) already exists"
        )


def create_mapping(ctx: TenantContext, external_product_id: str, product_id: int, source: str | None = None) -> ProductMapping:
    external_product_id = (external_product_id or "").strip()
    if not external_product_id:
        raise ValidationError("external_product_id is required")
    source = _normalize_source(source)

    _require_product(ctx.org_id, product_id)
    _ensure_unique(ctx.org_id, external_product_id, source)

    mapping = ProductMapping(
        org_id=ctx.org_id,
        external_product_id=external_product_id,
        source=source,
        product_id=product_id,
    )
    db.session.add(mapping)
    db.session.commit()

    current_app.logger.info(
        "Product mapping %s:%s -> product %s created (org=%s)",
        source, external_product_id, product_id, ctx.org_id,
    )
    return mapping


def update_mapping(
    ctx: TenantContext,
    mapping_id: int,
    *,
    external_product_id: str | None = None,
    product_id: int | None = None,
    source: str | None = None,
) -> ProductMapping:
    mapping = get_mapping(ctx, mapping_id)

    new_external = external_product_id.strip() if external_product_id is not None else mapping.external_product_id
    new_source = _normalize_source(source) if source is not None else mapping.source
    if not new_external:
        raise ValidationError("external_product_id cannot be empty")

    if product_id is not None:
        _require_product(ctx.org_id, product_id)
        mapping.product_id = product_id

    if (new_external, new_source) != (mapping.external_product_id, mapping.source):
        _ensure_unique(ctx.org_id, new_external, new_source, exclude_id=mapping.id)
        mapping.external_product_id = new_external
        mapping.source = new_source

    db.session.commit()
    return mapping


def delete_mapping(ctx: TenantContext, mapping_id: int) -> None:
    mapping = get_mapping(ctx, mapping_id)
    db.session.delete(mapping)
    db.session.commit()
    current_app.logger.info("Product mapping %s deleted (org=%s)", mapping_id, ctx.org_id)
