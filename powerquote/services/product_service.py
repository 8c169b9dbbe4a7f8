from __future__ import annotations

import io
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from sqlmodel import Session, select

from powerquote.core.errors import ProductImportError, ServiceError
from powerquote.core.part_numbers import chassis_slot_count, chassis_type_of
from powerquote.core.roles import ADMIN, MASTER, RequestContext, assert_role
from powerquote.server.models import PartNumberCode, PartNumberConfig, Product, utcnow
from powerquote.server.schemas.product import PartNumberCodeIn, PartNumberConfigIn, ProductIn, ProductUpdate

log = logging.getLogger("powerquote.products")

ADMIN_ROLES = (ADMIN, MASTER)

IMPORT_COLUMNS = [
    "id",
    "name",
    "display_name",
    "product_level",
    "parent_product_id",
    "type",
    "chassis_type",
    "price",
    "cost",
    "enabled",
    "part_number",
    "action",
]


# ==============================
# LOOKUP
# ==============================

def get_product(session: Session, product_id: str, enabled_only: bool = False) -> Product:
    product = session.get(Product, product_id)
    if product is None or (enabled_only and not product.enabled):
        raise ServiceError(404, f"Product {product_id} not found")
    return product


def list_products(
    session: Session,
    level: Optional[int] = None,
    parent_id: Optional[str] = None,
    include_disabled: bool = False,
) -> List[Product]:
    stmt = select(Product)
    if level is not None:
        stmt = stmt.where(Product.product_level == level)
    if parent_id is not None:
        stmt = stmt.where(Product.parent_product_id == parent_id)
    if not include_disabled:
        stmt = stmt.where(Product.enabled == True)  # noqa: E712
    return list(session.exec(stmt.order_by(Product.product_level, Product.name)).all())


def product_tree(session: Session, include_disabled: bool = False) -> List[Dict[str, Any]]:
    """
    Nested level 1 -> level 4 tree.

    A disabled node hides its whole subtree unless include_disabled is set.
    """
    products = list_products(session, include_disabled=include_disabled)
    children: Dict[Optional[str], List[Product]] = {}
    for p in products:
        children.setdefault(p.parent_product_id, []).append(p)

    def node(p: Product) -> Dict[str, Any]:
        data = p.model_dump(exclude={"created_at", "updated_at"})
        data["children"] = [node(c) for c in children.get(p.id, [])]
        return data

    return [node(p) for p in children.get(None, []) if p.product_level == 1]


# ==============================
# CREATE / UPDATE
# ==============================

def _check_parent(session: Session, level: int, parent_id: Optional[str]) -> None:
    if level == 1:
        if parent_id:
            raise ServiceError(400, "Level 1 products cannot have a parent")
        return
    if not parent_id:
        raise ServiceError(400, f"Level {level} products need a parent_product_id")
    parent = session.get(Product, parent_id)
    if parent is None:
        raise ServiceError(400, f"Parent product {parent_id} not found")
    if parent.product_level != level - 1:
        raise ServiceError(
            400,
            f"Parent {parent_id} is level {parent.product_level}, expected level {level - 1}",
        )


def create_product(session: Session, context: RequestContext, payload: ProductIn) -> Product:
    assert_role(context, ADMIN_ROLES)
    if session.get(Product, payload.id) is not None:
        raise ServiceError(400, f"Product {payload.id} already exists")
    _check_parent(session, payload.product_level, payload.parent_product_id)

    product = Product(**payload.model_dump())
    session.add(product)
    session.commit()
    session.refresh(product)
    log.info("Product %s (level %s) created by %s", product.id, product.product_level, context.user_id)
    return product


def update_product(session: Session, context: RequestContext, product_id: str, payload: ProductUpdate) -> Product:
    assert_role(context, ADMIN_ROLES)
    product = get_product(session, product_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(product, key, value)
    product.updated_at = utcnow()
    session.add(product)
    session.commit()
    session.refresh(product)
    return product


# ==============================
# PART NUMBER CONFIG
# ==============================

def get_part_number_config(session: Session, chassis_id: str) -> Optional[PartNumberConfig]:
    return session.get(PartNumberConfig, chassis_id)


def get_code_map(session: Session, chassis_id: str) -> Dict[str, PartNumberCode]:
    rows = session.exec(select(PartNumberCode).where(PartNumberCode.level2_product_id == chassis_id)).all()
    return {row.level3_product_id: row for row in rows}


# these may be cleared with an explicit null, every other field ignores it
NULLABLE_CONFIG_FIELDS = ("remote_display_code",)
NULLABLE_CODE_FIELDS = ("standard_position", "notes")


def _set_fields(row: Any, data: Dict[str, Any], nullable: tuple) -> None:
    for key, value in data.items():
        if value is None and key not in nullable:
            continue
        setattr(row, key, value)


def save_part_number_config(
    session: Session,
    context: RequestContext,
    chassis_id: str,
    payload: PartNumberConfigIn,
) -> PartNumberConfig:
    assert_role(context, ADMIN_ROLES)
    chassis = get_product(session, chassis_id)
    if chassis.product_level != 2:
        raise ServiceError(400, "Part number config belongs to a level 2 chassis")

    data = payload.model_dump(exclude_unset=True)
    cfg = session.get(PartNumberConfig, chassis_id)
    if cfg is None:
        slot_count = data.get("slot_count") or chassis_slot_count(chassis)
        if not slot_count:
            raise ServiceError(400, f"slot_count is required, chassis {chassis_id} has no slot count")
        cfg = PartNumberConfig(
            level2_product_id=chassis_id,
            prefix=f"QTMS-{chassis_type_of(chassis)}-",
            slot_count=slot_count,
        )
    _set_fields(cfg, data, NULLABLE_CONFIG_FIELDS)
    session.add(cfg)
    session.commit()
    session.refresh(cfg)
    return cfg


def save_part_number_code(
    session: Session,
    context: RequestContext,
    chassis_id: str,
    card_id: str,
    payload: PartNumberCodeIn,
) -> PartNumberCode:
    assert_role(context, ADMIN_ROLES)
    get_product(session, chassis_id)
    get_product(session, card_id)

    row = get_code_map(session, chassis_id).get(card_id)
    if row is None:
        row = PartNumberCode(level2_product_id=chassis_id, level3_product_id=card_id)
    _set_fields(row, payload.model_dump(exclude_unset=True), NULLABLE_CODE_FIELDS)
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


# ==============================
# BULK IMPORT / EXPORT
# ==============================

def read_product_frame(source: Union[str, Path, bytes], filename: Optional[str] = None) -> pd.DataFrame:
    """
    Reads a CSV or Excel sheet into a DataFrame.

    source can be a path or raw bytes (upload); filename decides the format
    for bytes.
    """
    if isinstance(source, bytes):
        name, handle = filename or "", io.BytesIO(source)
    else:
        name, handle = filename or str(source), source
    try:
        if name.lower().endswith((".xlsx", ".xls")):
            return pd.read_excel(handle, dtype=object)
        return pd.read_csv(handle, dtype=object, keep_default_na=False)
    except (ValueError, pd.errors.ParserError) as e:
        raise ProductImportError(f"Could not read product sheet: {e}") from e


def _cell(row: Dict[str, Any], key: str) -> Any:
    value = row.get(key)
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in ("0", "false", "no", "n")


def import_products(session: Session, context: RequestContext, frame: pd.DataFrame) -> Dict[str, Any]:
    """
    Upserts products from a sheet.

    Strategy per row:
      1) id is required, product_level must be 1..4, cost and price must be
         non-negative numbers -> otherwise the row is reported and skipped
      2) action == "delete" soft-deletes (enabled = False)
      3) existing id -> update, new id -> insert (parent checked against
         rows already in the database, so list parents before children)
    """
    assert_role(context, ADMIN_ROLES)
    frame = frame.rename(columns=lambda c: str(c).strip().lower())
    missing = {"id", "name", "product_level"} - set(frame.columns)
    if missing:
        raise ProductImportError(f"Missing columns: {', '.join(sorted(missing))}")

    result: Dict[str, Any] = {"created": 0, "updated": 0, "disabled": 0, "errors": []}

    for idx, row in enumerate(frame.to_dict(orient="records"), start=2):
        product_id = _cell(row, "id")
        if product_id is None:
            result["errors"].append(f"Row {idx}: missing id ({_cell(row, 'name') or 'unknown'})")
            continue
        product_id = str(product_id).strip()

        if str(_cell(row, "action") or "").lower() == "delete":
            existing = session.get(Product, product_id)
            if existing is not None:
                existing.enabled = False
                existing.updated_at = utcnow()
                session.add(existing)
                result["disabled"] += 1
            continue

        try:
            level = int(float(_cell(row, "product_level")))
        except (TypeError, ValueError, OverflowError):
            level = 0
        if level not in (1, 2, 3, 4):
            result["errors"].append(f"Row {idx}: invalid product_level for {product_id}")
            continue

        try:
            cost = float(_cell(row, "cost") or 0)
            price = float(_cell(row, "price") or 0)
        except (TypeError, ValueError):
            result["errors"].append(f"Row {idx}: invalid cost or price for {product_id}")
            continue
        if not (math.isfinite(cost) and math.isfinite(price)):
            result["errors"].append(f"Row {idx}: cost and price must be finite for {product_id}")
            continue
        if cost < 0 or price < 0:
            result["errors"].append(f"Row {idx}: negative cost or price for {product_id}")
            continue

        parent_id = _cell(row, "parent_product_id")
        parent_id = str(parent_id).strip() if parent_id is not None else None
        try:
            _check_parent(session, level, parent_id)
        except ServiceError as e:
            result["errors"].append(f"Row {idx}: {e.message}")
            continue

        fields = {
            "name": str(_cell(row, "name") or product_id),
            "display_name": _cell(row, "display_name"),
            "product_level": level,
            "parent_product_id": parent_id,
            "type": _cell(row, "type"),
            "chassis_type": _cell(row, "chassis_type"),
            "price": price,
            "cost": cost,
            "enabled": _as_bool(_cell(row, "enabled")),
            "part_number": _cell(row, "part_number"),
        }

        existing = session.get(Product, product_id)
        if existing is None:
            session.add(Product(id=product_id, **fields))
            result["created"] += 1
        else:
            for key, value in fields.items():
                setattr(existing, key, value)
            existing.updated_at = utcnow()
            session.add(existing)
            result["updated"] += 1
        # parents must be visible to the following rows
        session.flush()

    session.commit()
    log.info(
        "Product import by %s: %s created, %s updated, %s disabled, %s errors",
        context.user_id,
        result["created"],
        result["updated"],
        result["disabled"],
        len(result["errors"]),
    )
    return result


def export_products(session: Session, include_disabled: bool = True) -> pd.DataFrame:
    rows = [
        {col: getattr(p, col, None) for col in IMPORT_COLUMNS if col != "action"}
        for p in list_products(session, include_disabled=include_disabled)
    ]
    return pd.DataFrame(rows, columns=[c for c in IMPORT_COLUMNS if c != "action"])
