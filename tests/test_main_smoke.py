# tests/test_main_smoke.py
from __future__ import annotations

import pytest

pytestmark = [pytest.mark.asyncio, pytest.mark.smoke]


async def test_openapi_endpoint_alive(client):
    """确认 /openapi.json 可用且核心路由已挂载。"""
    r = await client.get("/openapi.json")
    assert r.status_code == 200
    paths = r.json()["paths"]
    for p in (
        "/scan/process",
        "/scan/decode",
        "/completions",
        "/completions/{completion_id}/payload",
        "/documents/{doc_type}/{doc_id}",
        "/metrics",
    ):
        assert p in paths, p


async def test_health(client):
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
