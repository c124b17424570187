"""Tests for the carrier and product catalog."""

import pytest
import yaml

from commission_tracker.config.carrier_catalog import (
    get_carrier_catalog,
    load_carrier_catalog,
    parse_carrier_catalog,
)

GTL = "GTL - Guarantee Trust Life"


class TestCarrierCatalog:
    def test_packaged_catalog(self):
        catalog = get_carrier_catalog()
        assert catalog.carrier_names() == [GTL]
        assert catalog.products_for(GTL) == ["Preferred", "Standard", "Graded", "Guaranteed Issue"]

    def test_unknown_carrier_has_no_products(self):
        assert get_carrier_catalog().products_for("Acme Life") == []

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "carriers.yaml"
        path.write_text(
            yaml.safe_dump(
                {"carriers": [{"carrier": " Acme Life ", "products": ["Term Life", " "]}]}
            ),
            encoding="utf-8",
        )
        catalog = load_carrier_catalog(path)
        assert catalog.carrier_names() == ["Acme Life"]
        assert catalog.products_for("Acme Life") == ["Term Life"]

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"carriers": "GTL"},
            {"carriers": [{"products": ["Standard"]}]},
            {"carriers": [{"carrier": GTL}, {"carrier": GTL}]},
            {"carriers": [{"carrier": GTL, "products": "Standard"}]},
        ],
    )
    def test_rejects_malformed_data(self, data):
        with pytest.raises(ValueError):
            parse_carrier_catalog(data)
