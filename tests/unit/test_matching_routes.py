"""
API tests for the matching and mapping routes.

Run: pytest tests/unit/test_matching_routes.py -v
"""

from unittest.mock import patch

import pytest

from tests.factories import EmissionFactorFactory, MappingFactory, NACEEmissionFactorFactory


VAT_NUMBER = "SE556036079301"


def _transaction(**overrides) -> dict:
    return {
        "id": "txn-1",
        "supplier_name": "Vattenfall AB",
        "amount": 2300,
        **overrides
    }


@pytest.fixture
def client(test_client_with_repository, repository):
    repository.add_factor(
        EmissionFactorFactory.build(
            id="wind-se",
            exiobase_product_name="Electricity by wind",
            emission_factor_kgco2e_per_eur=0.012,
        )
    )
    return test_client_with_repository


class TestMatchEndpoint:
    """POST /api/matching/match"""

    def test_vat_match_with_emissions(self, client, repository):
        repository.add_vat_entry(MappingFactory.vat_entry(VAT_NUMBER))

        response = client.post("/api/matching/match", json={
            "transaction": _transaction(vat_number=VAT_NUMBER, description="Electricity, wind")
        })

        assert response.status_code == 200
        data = response.json()
        assert data["method"] == "vat_lookup"
        assert data["tier"] == 1
        assert data["fallback_applied"] is False
        assert data["emission_factor"]["id"] == "wind-se"
        assert data["emission_factor"]["kind"] == "exact"
        assert data["emissions"] == pytest.approx(27.6)

    def test_unmatched(self, client):
        response = client.post("/api/matching/match", json={
            "transaction": _transaction(supplier_name="Mystery Vendor")
        })

        assert response.status_code == 200
        data = response.json()
        assert data["method"] == "none"
        assert data["tier"] is None
        assert data["emission_factor"] is None

    def test_foreign_currency_without_rate(self, client, repository):
        repository.add_vat_entry(MappingFactory.vat_entry(VAT_NUMBER))

        response = client.post("/api/matching/match", json={
            "transaction": _transaction(vat_number=VAT_NUMBER, currency="SEK")
        })

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "EXCHANGE_RATE_REQUIRED"

    def test_database_failure(self, client, repository):
        repository.fail_on("get_supplier_mapping")

        response = client.post("/api/matching/match", json={"transaction": _transaction()})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "DATABASE_ERROR"

    def test_invalid_transaction(self, client):
        response = client.post("/api/matching/match", json={
            "transaction": {"id": "txn-1", "supplier_name": "", "amount": 10}
        })

        assert response.status_code == 422


class TestBatchEndpoint:
    """POST /api/matching/batch"""

    def test_batch_statistics(self, client, repository):
        repository.add_vat_entry(MappingFactory.vat_entry(VAT_NUMBER))

        response = client.post("/api/matching/batch", json={
            "transactions": [
                _transaction(id="t-1", vat_number=VAT_NUMBER),
                _transaction(id="t-2", supplier_name="Mystery Vendor"),
            ]
        })

        assert response.status_code == 200
        data = response.json()
        assert data["results"]["t-1"]["tier"] == 1
        assert data["results"]["t-2"]["method"] == "none"
        assert data["statistics"]["match_rate"] == "50.0%"
        assert data["errors"] == {}

    def test_empty_batch(self, client):
        response = client.post("/api/matching/batch", json={"transactions": []})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "EMPTY_BATCH"


class TestResolveEndpoint:
    """GET /api/matching/resolve"""

    def test_exact_with_hint(self, client):
        response = client.get("/api/matching/resolve", params={
            "nace_code": "35.11",
            "country_code": "se",
            "description": "wind power",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["tier"] == 1
        assert data["reasoning"] == "Exact match: SE + NACE 35.11 + wind"

    def test_sector_average(self, client, repository):
        repository.add_nace_factor(NACEEmissionFactorFactory.build(nace_code="62.01"))

        response = client.get("/api/matching/resolve", params={"nace_code": "62.01"})

        data = response.json()
        assert data["tier"] == 4
        assert data["factor"]["kind"] == "sector_average"
        assert data["factor"]["country_code"] == "XX"

    def test_miss_is_not_an_error(self, client):
        response = client.get("/api/matching/resolve", params={"nace_code": "01.11"})

        assert response.status_code == 200
        assert response.json()["factor"] is None
        assert response.json()["tier"] is None


class TestMappingEndpoints:
    """POST /api/mappings/*"""

    def test_create_supplier_mapping(self, client, repository):
        response = client.post("/api/mappings/suppliers", json={
            "supplier_name": "Fortum Oy",
            "nace_code": "35.11",
        })

        assert response.status_code == 201
        assert response.json()["supplier_name_normalized"] == "fortum"
        assert "fortum" in repository.supplier_mappings

    def test_account_mapping_unknown_factor(self, client):
        response = client.post("/api/mappings/accounts", json={
            "company_id": "company-1",
            "account_code": "5020",
            "emission_factor_id": "missing",
        })

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "EMISSION_FACTOR_NOT_FOUND"

    def test_account_mapping_then_match(self, client):
        client.post("/api/mappings/accounts", json={
            "company_id": "company-1",
            "account_code": "5020",
            "emission_factor_id": "wind-se",
        })

        response = client.post("/api/matching/match", json={
            "transaction": _transaction(supplier_name="Someone", account_code="5020"),
            "company_id": "company-1",
        })

        data = response.json()
        assert data["method"] == "account_mapping"
        assert data["confidence"] == pytest.approx(0.85)

    def test_cache_vat(self, client):
        response = client.post("/api/mappings/vat-cache", json={
            "vat_number": "DE123456789",
            "nace_code": "35.11",
        })

        assert response.status_code == 201
        assert response.json()["country_code"] == "DE"


class TestRootEndpoints:
    """App-level endpoints."""

    def test_root_lists_routers(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["endpoints"]["matching"] == "/api/matching"

    def test_health_without_database_is_degraded(self, test_client):
        with patch("main.check_connection", return_value={"status": "unhealthy", "error": "not configured"}):
            response = test_client.get("/health")

        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "degraded"
        assert data["matcher"] == {"enable_learning": True, "cache_vat": True, "base_currency": "EUR"}
