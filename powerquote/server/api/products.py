from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from sqlmodel import Session

from powerquote.core.roles import RequestContext
from powerquote.server.api.deps import get_context, http_errors
from powerquote.server.db.session import get_session
from powerquote.server.schemas.product import PartNumberCodeIn, PartNumberConfigIn, ProductIn, ProductUpdate
from powerquote.services import product_service

router = APIRouter(prefix="/products", tags=["products"])


# ==============================
# CATALOG
# ==============================

@router.get("/tree", summary="Level 1 -> 4 product hierarchy")
def product_tree(
    include_disabled: bool = False,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    return product_service.product_tree(session, include_disabled=include_disabled)


@router.get("", summary="List products")
@router.get("/", include_in_schema=False)
def list_products(
    level: Optional[int] = None,
    parent_id: Optional[str] = None,
    include_disabled: bool = False,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    return product_service.list_products(session, level=level, parent_id=parent_id, include_disabled=include_disabled)


# ==============================
# BULK IMPORT / EXPORT
# ==============================

@router.post("/import", summary="Upsert products from a CSV or Excel sheet")
async def import_products(
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty upload")
    with http_errors():
        frame = product_service.read_product_frame(content, filename=file.filename)
        return product_service.import_products(session, context, frame)


@router.get("/export", summary="Catalog as CSV, same columns as the import")
def export_products(
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    frame = product_service.export_products(session)
    return Response(
        content=frame.to_csv(index=False),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="products.csv"'},
    )


# ==============================
# SINGLE PRODUCT
# ==============================

@router.post("", status_code=201)
def create_product(
    payload: ProductIn,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        return product_service.create_product(session, context, payload)


@router.get("/{product_id}")
def get_product(
    product_id: str,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        return product_service.get_product(session, product_id)


@router.patch("/{product_id}")
def update_product(
    product_id: str,
    payload: ProductUpdate,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        return product_service.update_product(session, context, product_id, payload)


# ==============================
# PART NUMBER CONFIG
# ==============================

@router.get("/{chassis_id}/part-number-config")
def get_part_number_config(
    chassis_id: str,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    cfg = product_service.get_part_number_config(session, chassis_id)
    codes = product_service.get_code_map(session, chassis_id)
    return {
        "config": cfg,
        "codes": {card_id: row for card_id, row in codes.items()},
    }


@router.put("/{chassis_id}/part-number-config")
def put_part_number_config(
    chassis_id: str,
    payload: PartNumberConfigIn,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        return product_service.save_part_number_config(session, context, chassis_id, payload)


@router.put("/{chassis_id}/part-number-codes/{card_id}")
def put_part_number_code(
    chassis_id: str,
    card_id: str,
    payload: PartNumberCodeIn,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    with http_errors():
        return product_service.save_part_number_code(session, context, chassis_id, card_id, payload)
