from fastapi import APIRouter, Request
from fastapi.routing import APIRoute

from powerquote.core.roles import DEFAULT_ROLES

router = APIRouter(tags=["system"])


@router.get("/health")
def health():
    return {"message": "ok"}


@router.get("/roles")
def list_roles():
    return [vars(r) for r in DEFAULT_ROLES]


@router.get("/__debug/routes")
def list_routes(request: Request):
    out = []
    for r in request.app.routes:
        if isinstance(r, APIRoute):
            fn = r.endpoint
            out.append({
                "path": r.path,
                "methods": sorted(list(r.methods or [])),
                "name": r.name,
                "endpoint": f"{getattr(fn, '__module__', '?')}.{getattr(fn, '__name__', '?')}",
            })
    return out
