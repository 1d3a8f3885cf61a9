from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999
MAX_LINE_QUANTITY = 1_000_000
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10


# =============================================================================
# PATCH SENTINELS
# =============================================================================

class _Sentinel:
    """Marker distinct from None and from every real value."""
    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return self.name

    def __bool__(self) -> bool:
        return False


# Key absent from the request: keep the stored value
UNSET = _Sentinel("UNSET")
# Key present with null: reset the stored value to its default
CLEAR = _Sentinel("CLEAR")


# =============================================================================
# REQUEST SHAPES
# =============================================================================

@dataclass(frozen=True)
class OrderLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class ReturnLine:
    order_item_id: int
    quantity: int


@dataclass(frozen=True)
class CreateOrderRequest:
    items: list[OrderLine]
    name: str | None = None
    payment_method: str | None = None
    discount_cents: int = 0


@dataclass(frozen=True)
class OrderItemsPatch:
    """
    Replacement item set for an IN_PROCESS order.

    name / discount_cents: UNSET keeps the order's value, CLEAR resets it
    ("Order" / 0), anything else is the new value.
    """
    items: list[OrderLine]
    name: Any = UNSET
    discount_cents: Any = UNSET


@dataclass(frozen=True)
class StatusPatch:
    status: Any = UNSET


@dataclass(frozen=True)
class ReturnRequest:
    order_id: int
    items: list[ReturnLine]


@dataclass(frozen=True)
class WebhookOrderLine:
    external_product_id: str
    quantity: int


@dataclass(frozen=True)
class WebhookOrderRequest:
    items: list[WebhookOrderLine]
    source: str = "WEBHOOK"
    name: str | None = None
    external_order_id: str | None = None
    discount_cents: int = 0


@dataclass(frozen=True)
class WebhookCancelRequest:
    external_order_id: str
    source: str = "WEBHOOK"


# =============================================================================
# SCALAR COERCION
# =============================================================================

def coerce_int(value: Any, field_name: str) -> int:
    """
    Strict integer coercion for JSON input.

    Rejects booleans, floats, scientific notation and decimals so that
    "2.5" units or 1e3 cents never sneak into stock arithmetic.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field_name} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field_name} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field_name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field_name} must be an integer, not a decimal")
    raise ValidationError(f"{field_name} must be an integer")


def _pick(data: dict, *keys: str) -> Any:
    """First present key wins; external payloads may use camelCase."""
    for key in keys:
        if key in data:
            return data[key]
    return UNSET


def _require_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _optional_text(value: Any, field_name: str, max_length: int = 255) -> str | None:
    if value is UNSET or value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field_name} exceeds max length {max_length}")
    return value or None


def _discount(value: Any, field_name: str = "discount_cents") -> int:
    discount = coerce_int(value, field_name)
    if discount < 0:
        raise ValidationError(f"{field_name} must be >= 0")
    if discount > MAX_PRICE_CENTS:
        raise ValidationError(f"{field_name} cannot exceed {MAX_PRICE_CENTS}")
    return discount


def _parse_lines(raw: Any, id_keys: tuple[str, ...], label: str, errors: list[str]) -> list[tuple[Any, int]]:
    if raw is UNSET or raw is None:
        errors.append(f"{label} must contain at least one item")
        return []
    if not isinstance(raw, list) or not raw:
        errors.append(f"{label} must contain at least one item")
        return []

    parsed: list[tuple[Any, int]] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            errors.append(f"items[{index}] must be an object")
            continue
        ident = _pick(entry, *id_keys)
        if ident is UNSET or ident is None:
            errors.append(f"items[{index}].{id_keys[0]} is required")
            continue
        raw_quantity = entry.get("quantity")
        if raw_quantity is None:
            errors.append(f"items[{index}].quantity is required")
            continue
        try:
            quantity = coerce_int(raw_quantity, f"items[{index}].quantity")
        except ValidationError as e:
            errors.append(str(e))
            continue
        if quantity < 1:
            errors.append(f"items[{index}].quantity must be at least 1")
            continue
        if quantity > MAX_LINE_QUANTITY:
            errors.append(f"items[{index}].quantity cannot exceed {MAX_LINE_QUANTITY}")
            continue
        parsed.append((ident, quantity))
    return parsed


def _parse_order_lines(raw: Any, errors: list[str]) -> list[OrderLine]:
    lines = []
    for ident, quantity in _parse_lines(raw, ("product_id", "productId"), "Order", errors):
        try:
            lines.append(OrderLine(product_id=coerce_int(ident, "product_id"), quantity=quantity))
        except ValidationError as e:
            errors.append(str(e))
    return lines


def _raise_if(errors: list[str]) -> None:
    if errors:
        raise ValidationError(errors[0], errors=errors)


# =============================================================================
# ORDER PAYLOADS
# =============================================================================

def parse_create_order(payload: Any) -> CreateOrderRequest:
    data = _require_object(payload)
    errors: list[str] = []

    items = _parse_order_lines(_pick(data, "items"), errors)

    name = payment_method = None
    discount = 0
    try:
        name = _optional_text(_pick(data, "name"), "name")
        payment_method = _optional_text(_pick(data, "payment_method", "paymentMethod"), "payment_method", 32)
        raw_discount = _pick(data, "discount_cents", "discount")
        if raw_discount is not UNSET and raw_discount is not None:
            discount = _discount(raw_discount)
    except ValidationError as e:
        errors.append(str(e))

    _raise_if(errors)
    return CreateOrderRequest(
        items=items,
        name=name,
        payment_method=payment_method.upper() if payment_method else None,
        discount_cents=discount,
    )


def parse_items_patch(payload: Any) -> OrderItemsPatch:
    data = _require_object(payload)
    errors: list[str] = []

    items = _parse_order_lines(_pick(data, "items"), errors)

    name: Any = UNSET
    discount: Any = UNSET
    try:
        raw_name = _pick(data, "name")
        if raw_name is None:
            name = CLEAR
        elif raw_name is not UNSET:
            name = _optional_text(raw_name, "name") or UNSET

        raw_discount = _pick(data, "discount_cents", "discount")
        if raw_discount is None:
            discount = CLEAR
        elif raw_discount is not UNSET:
            discount = _discount(raw_discount)
    except ValidationError as e:
        errors.append(str(e))

    _raise_if(errors)
    return OrderItemsPatch(items=items, name=name, discount_cents=discount)


def parse_status_patch(payload: Any) -> StatusPatch:
    data = _require_object(payload)
    raw = _pick(data, "status")
    if raw is UNSET or raw is None:
        return StatusPatch()
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("status must be a string")
    return StatusPatch(status=raw.strip().upper())


def parse_return_request(payload: Any) -> ReturnRequest:
    data = _require_object(payload)
    errors: list[str] = []

    order_id = None
    raw_order_id = _pick(data, "order_id", "orderId")
    if raw_order_id is UNSET or raw_order_id is None:
        errors.append("order_id is required")
    else:
        try:
            order_id = coerce_int(raw_order_id, "order_id")
        except ValidationError as e:
            errors.append(str(e))

    lines = []
    for ident, quantity in _parse_lines(_pick(data, "items"), ("order_item_id", "orderItemId"), "Return", errors):
        try:
            lines.append(ReturnLine(order_item_id=coerce_int(ident, "order_item_id"), quantity=quantity))
        except ValidationError as e:
            errors.append(str(e))

    _raise_if(errors)
    return ReturnRequest(order_id=order_id, items=lines)


def parse_pagination(args) -> tuple[int, int]:
    """pageIndex >= 0 (default 0), pageSize 1-100 (default 10)."""
    errors = []
    page_index, page_size = 0, DEFAULT_PAGE_SIZE

    raw_index = args.get("pageIndex", args.get("page_index"))
    if raw_index not in (None, ""):
        try:
            page_index = coerce_int(raw_index, "pageIndex")
        except ValidationError as e:
            errors.append(str(e))
        else:
            if page_index < 0:
                errors.append("pageIndex must be >= 0")

    raw_size = args.get("pageSize", args.get("page_size"))
    if raw_size not in (None, ""):
        try:
            page_size = coerce_int(raw_size, "pageSize")
        except ValidationError as e:
            errors.append(str(e))
        else:
            if page_size < 1 or page_size > MAX_PAGE_SIZE:
                errors.append(f"pageSize must be 1-{MAX_PAGE_SIZE}")

    _raise_if(errors)
    return page_index, page_size


# =============================================================================
# WEBHOOK PAYLOADS
# =============================================================================

def _source(data: dict) -> str:
    source = _optional_text(_pick(data, "source"), "source", 64)
    return source.upper() if source else "WEBHOOK"


def parse_webhook_order(payload: Any) -> WebhookOrderRequest:
    data = _require_object(payload)
    errors: list[str] = []

    raw_items = _pick(data, "items")
    if raw_items is UNSET or not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Invalid payload: items required")

    lines = []
    for ident, quantity in _parse_lines(raw_items, ("external_product_id", "externalProductId"), "Order", errors):
        lines.append(WebhookOrderLine(external_product_id=str(ident).strip(), quantity=quantity))

    source, name, external_order_id, discount = "WEBHOOK", None, None, 0
    try:
        source = _source(data)
        name = _optional_text(_pick(data, "name"), "name")
        external_order_id = _optional_text(
            _pick(data, "external_order_id", "externalOrderId"), "external_order_id"
        )
        raw_discount = _pick(data, "discount_cents", "discount")
        if raw_discount is not UNSET and raw_discount is not None:
            discount = _discount(raw_discount)
    except ValidationError as e:
        errors.append(str(e))

    _raise_if(errors)
    return WebhookOrderRequest(
        items=lines,
        source=source,
        name=name,
        external_order_id=external_order_id,
        discount_cents=discount,
    )


def parse_webhook_cancel(payload: Any) -> WebhookCancelRequest:
    data = _require_object(payload)
    external_order_id = _optional_text(
        _pick(data, "external_order_id", "externalOrderId"), "external_order_id"
    )
    if not external_order_id:
        raise ValidationError("Invalid payload: externalOrderId required")
    return WebhookCancelRequest(external_order_id=external_order_id, source=_source(data))


# =============================================================================
# MODEL-DRIVEN PAYLOADS (catalog, users)
# =============================================================================

@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: Any,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    payload = _require_object(payload)

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Business rules that are not captured by SQLAlchemy metadata alone."""
    for key in ("price_cents", "cost_cents"):
        if key in patch and patch[key] is not None:
            if patch[key] < 0:
                raise ValidationError(f"{key} must be >= 0")
            if patch[key] > MAX_PRICE_CENTS:
                raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")

    if "stock" in patch and patch["stock"] is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")
