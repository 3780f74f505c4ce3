"""API tests for the pre-production endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from dflexsync.core.exceptions import BulkUpdateError
from dflexsync.models.preproduccion import (
    PreproduccionFormula,
    PreproduccionSql,
    PreproduccionValores,
)
from dflexsync.services.preproduccion import PreproduccionService


class TestSyncEndpoint:
    """Tests for POST /api/sync/pre-produccion."""

    @pytest.mark.asyncio
    async def test_sync_is_accepted_and_processed(
        self, client: AsyncClient, db_session, sync_queue
    ):
        db_session.add(PreproduccionFormula(column_name="Total", expression="Precio * Cantidad"))
        await db_session.commit()

        response = await client.post(
            "/api/sync/pre-produccion",
            json={
                "rows": [
                    {"NV": 100, "ID": 1, "Precio": 10, "Cantidad": 3, "PARANTES_Descripcion": "40x60"},
                    {"NV": 100, "ID": 1, "Precio": 10, "Cantidad": 4, "PARANTES_Descripcion": "40x60"},
                    {"NV": 900, "ID": 2},
                    {"NV": None},
                ]
            },
        )

        assert response.status_code == 202
        data = response.json()
        assert data["finished"] == 1
        assert data["accepted"] == 2
        assert data["pending"] == 1

        await sync_queue.join()

        response = await client.get("/api/pre-produccion-valores", params={"nv": 100})
        assert response.status_code == 200
        rows = response.json()["rows"]
        assert len(rows) == 1
        assert rows[0]["Total"] == 40
        assert rows[0]["lado_mas_alto"] == 60
        assert rows[0]["Cantidad"] == 4

        result = await db_session.execute(select(PreproduccionSql.nv))
        assert result.scalars().all() == [100]

    @pytest.mark.asyncio
    async def test_sync_with_no_rows(self, client: AsyncClient):
        response = await client.post("/api/sync/pre-produccion", json={"rows": []})
        assert response.status_code == 202
        assert response.json() == {"accepted": 0, "finished": 0, "pending": 0}


class TestDefinitiveRowsEndpoint:
    """Tests for GET /api/pre-produccion-valores."""

    @pytest.mark.asyncio
    async def test_merged_rows(self, client: AsyncClient, db_session):
        db_session.add_all(
            [
                PreproduccionSql(nv=5, data={"NV": 5, "Nombre": "Jose", "Edad": 40}),
                PreproduccionValores(nv=5, data={"Nombre": "Juan"}),
                PreproduccionValores(nv=6, data={"Nombre": "Ana"}),
            ]
        )
        await db_session.commit()

        response = await client.get("/api/pre-produccion-valores")

        assert response.status_code == 200
        assert response.json() == {
            "count": 2,
            "rows": [
                {"NV": 5, "Nombre": "Juan", "Edad": 40},
                {"NV": 6, "Nombre": "Ana"},
            ],
        }

    @pytest.mark.asyncio
    async def test_partida_and_date_range(self, client: AsyncClient, db_session):
        db_session.add_all(
            [
                PreproduccionSql(nv=1, data={"PARTIDA": "P1"}),
                PreproduccionSql(nv=2, data={"PARTIDA": "P1"}),
                PreproduccionValores(nv=1, data={"inicio_prod_imput": "2024-03-05"}),
                PreproduccionValores(nv=2, data={"inicio_prod_imput": "2024-05-05"}),
            ]
        )
        await db_session.commit()

        response = await client.get(
            "/api/pre-produccion-valores",
            params={"partida": "P1", "fecha_desde": "2024-03-01", "fecha_hasta": "2024-03-31"},
        )

        assert response.status_code == 200
        assert response.json()["rows"] == [
            {"NV": 1, "PARTIDA": "P1", "inicio_prod_imput": "2024-03-05"}
        ]

    @pytest.mark.asyncio
    async def test_inverted_date_range(self, client: AsyncClient):
        response = await client.get(
            "/api/pre-produccion-valores",
            params={"fecha_desde": "2024-03-31", "fecha_hasta": "2024-03-01"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DATE_RANGE"

    @pytest.mark.asyncio
    async def test_invalid_nv(self, client: AsyncClient):
        response = await client.get("/api/pre-produccion-valores", params={"nv": 0})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_raw_rows(self, client: AsyncClient, db_session):
        db_session.add_all(
            [
                PreproduccionSql(nv=1, data={"NV": 1, "x": 1}),
                PreproduccionValores(nv=1, data={"x": 2}),
            ]
        )
        await db_session.commit()

        response = await client.get("/api/pre-produccion-sql", params={"nv": 1})

        assert response.status_code == 200
        assert response.json()["rows"] == [{"NV": 1, "x": 1}]

    @pytest.mark.asyncio
    async def test_raw_rows_store_failure(self, client: AsyncClient, db_session, monkeypatch):
        async def failing_execute(stmt, *args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(db_session, "execute", failing_execute)

        response = await client.get("/api/pre-produccion-sql", params={"partida": "P1"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "DATABASE_ERROR"


class TestBulkUpdateEndpoint:
    """Tests for POST /api/pre-produccion-valores/bulk-update."""

    @pytest.mark.asyncio
    async def test_bulk_update(self, client: AsyncClient, db_session):
        db_session.add(PreproduccionValores(nv=1, data={"a": 1}))
        await db_session.commit()

        response = await client.post(
            "/api/pre-produccion-valores/bulk-update",
            json={
                "updates": [
                    {"nv": 1, "changes": {"b": 2}},
                    {"nv": "x", "changes": {"b": 2}},
                    {"nv": 2, "changes": {"__proto__": {"polluted": True}}},
                ]
            },
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "applied": 1, "skipped": 2}

        response = await client.get("/api/pre-produccion-valores", params={"nv": 1})
        assert response.json()["rows"] == [{"NV": 1, "a": 1, "b": 2}]

    @pytest.mark.asyncio
    async def test_empty_updates(self, client: AsyncClient):
        for body in ({"updates": []}, {}):
            response = await client.post("/api/pre-produccion-valores/bulk-update", json=body)
            assert response.status_code == 400
            assert response.json()["error"]["code"] == "EMPTY_UPDATES"

    @pytest.mark.asyncio
    async def test_rolled_back_update(self, client: AsyncClient, monkeypatch):
        async def failing_bulk_update(self, updates):
            raise BulkUpdateError()

        monkeypatch.setattr(PreproduccionService, "bulk_update", failing_bulk_update)

        response = await client.post(
            "/api/pre-produccion-valores/bulk-update",
            json={"updates": [{"nv": 1, "changes": {"a": 1}}]},
        )

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "BULK_UPDATE_FAILED"
        assert error["details"] == {"applied": 0, "skipped": 0}
