"""
Loads a YAML catalog into the database.

Catalog layout (all sections optional):

    settings:
      finance_margin_limit: 25
      quote_id_prefix: QLT
    profiles:            [{id, email, first_name, last_name, role, ...}]
    products:            [{id, name, product_level, parent_product_id, ...}]
    part_number_configs: [{level2_product_id, prefix, slot_count, ...}]
    part_number_codes:   [{level2_product_id, level3_product_id, template, ...}]

Rows are upserted by primary key, so seeding twice is harmless. Products are
written in file order: list parents before their children.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from sqlmodel import Session, select

from powerquote.server.models import AppSetting, PartNumberCode, PartNumberConfig, Product, Profile, utcnow
from powerquote.services.settings_service import FINANCE_MARGIN_LIMIT_KEY, QUOTE_ID_PREFIX_KEY

log = logging.getLogger("powerquote.seed")

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parents[1] / "knowledge" / "catalog" / "powerquote_catalog.yaml"

SECTIONS = ("settings", "profiles", "products", "part_number_configs", "part_number_codes")


def load_catalog(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    path = Path(path) if path is not None else DEFAULT_CATALOG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Catalog not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Invalid catalog in {path}: root must be a mapping")
    for section in SECTIONS[1:]:
        if not isinstance(data.get(section, []), list):
            raise ValueError(f"Invalid catalog in {path}: '{section}' must be a list")
    return data


def _upsert(session: Session, model, key: Any, row: Dict[str, Any]):
    obj = session.get(model, key)
    if obj is None:
        obj = model(**row)
    else:
        for field, value in row.items():
            setattr(obj, field, value)
    session.add(obj)
    return obj


def _put_setting(session: Session, key: str, value: Any) -> None:
    _upsert(session, AppSetting, key, {"key": key, "value": value, "updated_by": "seed", "updated_at": utcnow()})


def seed_catalog(session: Session, catalog: Dict[str, Any]) -> Dict[str, int]:
    counts = {section: 0 for section in SECTIONS}

    settings_block = catalog.get("settings") or {}
    if "finance_margin_limit" in settings_block:
        _put_setting(session, FINANCE_MARGIN_LIMIT_KEY, {
            "percent": float(settings_block["finance_margin_limit"]),
            "currency": settings_block.get("currency"),
            "updatedBy": "seed",
            "updatedAt": utcnow().isoformat(),
        })
        counts["settings"] += 1
    if settings_block.get("quote_id_prefix"):
        _put_setting(session, QUOTE_ID_PREFIX_KEY, str(settings_block["quote_id_prefix"]))
        counts["settings"] += 1

    for row in catalog.get("profiles") or []:
        _upsert(session, Profile, row["id"], row)
        counts["profiles"] += 1

    for row in catalog.get("products") or []:
        _upsert(session, Product, row["id"], row)
        # children look their parent up in the same run
        session.flush()
        counts["products"] += 1

    for row in catalog.get("part_number_configs") or []:
        _upsert(session, PartNumberConfig, row["level2_product_id"], row)
        counts["part_number_configs"] += 1

    for row in catalog.get("part_number_codes") or []:
        existing = session.exec(
            select(PartNumberCode).where(
                PartNumberCode.level2_product_id == row["level2_product_id"],
                PartNumberCode.level3_product_id == row["level3_product_id"],
            )
        ).first()
        if existing is None:
            session.add(PartNumberCode(**row))
        else:
            for field, value in row.items():
                setattr(existing, field, value)
            session.add(existing)
        counts["part_number_codes"] += 1

    session.commit()
    log.info("Catalog seeded: %s", ", ".join(f"{k}={v}" for k, v in counts.items()))
    return counts
