"""API tests for the formula endpoints."""

import pytest
from httpx import AsyncClient


class TestFormulasApi:
    """Tests for /api/formulas."""

    @pytest.mark.asyncio
    async def test_upsert_and_list(self, client: AsyncClient):
        response = await client.post(
            "/api/formulas",
            json={"column_name": "Total", "expression": "Precio * Cantidad"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["column_name"] == "Total"
        assert data["error"] is None

        await client.post("/api/formulas", json={"column_name": "Rota", "expression": "1 +"})
        await client.post("/api/formulas", json={"column_name": "A", "expression": "B"})
        await client.post("/api/formulas", json={"column_name": "B", "expression": "A"})

        response = await client.get("/api/formulas")
        assert response.status_code == 200
        data = response.json()
        assert [f["column_name"] for f in data["formulas"]] == ["A", "B", "Rota", "Total"]
        assert set(data["errors"]) == {"Rota"}
        assert data["cyclic_columns"] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_invalid_expression_reports_error(self, client: AsyncClient):
        response = await client.post(
            "/api/formulas", json={"column_name": "Rota", "expression": "Precio *"}
        )
        assert response.status_code == 200
        assert "Invalid formula syntax" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_null_expression_is_passthrough(self, client: AsyncClient):
        response = await client.post(
            "/api/formulas", json={"column_name": "Notas", "expression": None}
        )
        assert response.status_code == 200
        assert response.json()["expression"] == ""

    @pytest.mark.asyncio
    async def test_missing_column_name(self, client: AsyncClient):
        response = await client.post("/api/formulas", json={"expression": "1"})
        assert response.status_code == 422
