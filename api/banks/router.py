"""
Bank catalog API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query, Request, Response, status

from auth import dependencies as auth_dependencies

from . import schemas
from .service import CatalogService

router = APIRouter()


def get_catalog_service(request: Request) -> CatalogService:
    service = getattr(request.app.state, "catalog_service", None)
    if service is None:
        raise RuntimeError("Catalog service is not initialized. Check the app lifespan.")
    return service


def _no_content() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _only_active(raw: str | None) -> bool:
    # Omitted means true; otherwise only the literal "true" counts.
    return raw is None or raw == "true"


@router.get("/banks")
async def list_banks(
    only_active: str | None = Query(default=None, alias="onlyActive"),
    q: str | None = Query(default=None),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    service: CatalogService = Depends(get_catalog_service),
) -> list[dict]:
    banks = await service.list_for_user(
        int(current_user["id"]),
        only_active=_only_active(only_active),
        query=q,
    )
    return [b.to_dict() for b in banks]


@router.get("/banks/overrides")
async def list_overrides(
    current_user: dict = Depends(auth_dependencies.get_current_user),
    service: CatalogService = Depends(get_catalog_service),
) -> dict:
    codes = await service.inactive_codes(int(current_user["id"]))
    return {"inactiveCodes": codes}


@router.post("/banks/overrides/{code}/inactivate", status_code=status.HTTP_204_NO_CONTENT)
async def inactivate_bank(
    code: int = Path(..., gt=0, le=schemas.MAX_BANK_CODE),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    service: CatalogService = Depends(get_catalog_service),
) -> Response:
    await service.inactivate(int(current_user["id"]), code)
    return _no_content()


@router.delete("/banks/overrides/{code}/inactivate", status_code=status.HTTP_204_NO_CONTENT)
async def reactivate_bank(
    code: int = Path(..., gt=0, le=schemas.MAX_BANK_CODE),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    service: CatalogService = Depends(get_catalog_service),
) -> Response:
    await service.reactivate(int(current_user["id"]), code)
    return _no_content()


# POST rather than DELETE-with-body: some clients drop DELETE bodies.
@router.post("/banks/overrides/bulk/reactivate", status_code=status.HTTP_204_NO_CONTENT)
async def bulk_reactivate(
    request: schemas.BulkCodesRequest,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    service: CatalogService = Depends(get_catalog_service),
) -> Response:
    await service.bulk_reactivate(int(current_user["id"]), request.codes)
    return _no_content()


@router.post("/banks/overrides/inactivate-all", status_code=status.HTTP_204_NO_CONTENT)
async def inactivate_all(
    current_user: dict = Depends(auth_dependencies.get_current_user),
    service: CatalogService = Depends(get_catalog_service),
) -> Response:
    await service.inactivate_all(int(current_user["id"]))
    return _no_content()


@router.post("/banks/overrides/reactivate-all", status_code=status.HTTP_204_NO_CONTENT)
async def reactivate_all(
    current_user: dict = Depends(auth_dependencies.get_current_user),
    service: CatalogService = Depends(get_catalog_service),
) -> Response:
    await service.reactivate_all(int(current_user["id"]))
    return _no_content()


@router.post("/banks/refresh")
async def refresh_banks(
    _: dict = Depends(auth_dependencies.get_current_user),
    service: CatalogService = Depends(get_catalog_service),
) -> dict:
    snapshot = await service.refresh_catalog()
    return {
        "status": "REFRESH_SCHEDULED",
        "count": len(snapshot),
        "fetchedAt": snapshot.fetched_at.isoformat(),
    }


@router.get("/banks/_cache")
async def cache_status(
    _: dict = Depends(auth_dependencies.get_current_user),
    service: CatalogService = Depends(get_catalog_service),
) -> dict:
    return await service.check_cache()
