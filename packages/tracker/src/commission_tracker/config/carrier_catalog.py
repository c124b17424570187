"""Carrier and product reference data (``carriers.yaml``)."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "carriers.yaml"


@dataclass(frozen=True)
class CarrierProducts:
    carrier: str
    products: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"carrier": self.carrier, "products": list(self.products)}


@dataclass(frozen=True)
class CarrierCatalog:
    carriers: tuple[CarrierProducts, ...]

    def carrier_names(self) -> list[str]:
        return [entry.carrier for entry in self.carriers]

    def products_for(self, carrier: str) -> list[str]:
        """Products offered by ``carrier``; empty for a carrier not in the catalog."""
        for entry in self.carriers:
            if entry.carrier == carrier:
                return list(entry.products)
        return []


def parse_carrier_catalog(data: Any) -> CarrierCatalog:
    """Validate raw YAML data and build a CarrierCatalog."""
    if not isinstance(data, dict) or not isinstance(data.get("carriers"), list):
        raise ValueError("carrier catalog must be a mapping with a 'carriers' list")

    entries = []
    seen: set[str] = set()
    for idx, item in enumerate(data["carriers"]):
        label = f"carriers[{idx}]"
        if not isinstance(item, dict):
            raise ValueError(f"{label} must be a mapping")
        name = str(item.get("carrier") or "").strip()
        if not name:
            raise ValueError(f"{label}.carrier is required")
        if name in seen:
            raise ValueError(f"{label} lists {name!r} twice")
        products = item.get("products") or []
        if not isinstance(products, list):
            raise ValueError(f"{label}.products must be a list")
        seen.add(name)
        entries.append(
            CarrierProducts(
                carrier=name,
                products=tuple(str(product).strip() for product in products if str(product).strip()),
            )
        )
    return CarrierCatalog(carriers=tuple(entries))


def load_carrier_catalog(path: Path | None = None) -> CarrierCatalog:
    raw = Path(path or DEFAULT_CATALOG_PATH).read_text(encoding="utf-8")
    return parse_carrier_catalog(yaml.safe_load(raw))


@lru_cache
def get_carrier_catalog() -> CarrierCatalog:
    return load_carrier_catalog()
