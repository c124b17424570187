from typing import Any

from fastapi import APIRouter, Depends

from commission_tracker.config.carrier_catalog import CarrierCatalog, get_carrier_catalog

router = APIRouter(prefix="/api/catalog", tags=["Catalog"])


@router.get("/carriers")
async def list_carriers(catalog: CarrierCatalog = Depends(get_carrier_catalog)) -> dict[str, Any]:
    return {
        "names": catalog.carrier_names(),
        "carriers": [entry.to_dict() for entry in catalog.carriers],
    }


@router.get("/products")
async def list_products(
    carrier: str, catalog: CarrierCatalog = Depends(get_carrier_catalog)
) -> dict[str, Any]:
    return {"carrier": carrier, "products": catalog.products_for(carrier)}
