import asyncio
from starlette.requests import Request
from starlette.responses import Response

import app.api as api_module


def _request(path="/"):
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "query_string": b"",
    }
    return Request(scope)


def test_security_headers_applied():
    async def run_test():
        async def call_next(_request: Request) -> Response:
            return Response()

        resp = await api_module.add_security_headers(_request(), call_next)

        assert resp.status_code == 200
        headers = resp.headers
        assert headers.get("X-Content-Type-Options") == "nosniff"
        assert headers.get("X-Frame-Options") == "SAMEORIGIN"
        assert "default-src 'none'" in (headers.get("Content-Security-Policy") or "")

    asyncio.run(run_test())


def test_security_headers_preserve_existing_csp():
    async def run_test():
        async def call_next(_request: Request) -> Response:
            resp = Response()
            resp.headers["Content-Security-Policy"] = "default-src 'self'"
            return resp

        resp = await api_module.add_security_headers(_request(), call_next)

        # Existing CSP should not be overridden; other headers still set
        assert resp.headers["Content-Security-Policy"] == "default-src 'self'"
        assert resp.headers.get("X-Content-Type-Options") == "nosniff"

    asyncio.run(run_test())


def test_security_headers_full_app_with_testclient(monkeypatch):
    from fastapi.testclient import TestClient

    monkeypatch.delenv("EBIRD_API_KEY", raising=False)
    with TestClient(api_module.app) as client:
        resp = client.get("/health")

    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert resp.headers.get("X-Frame-Options") == "SAMEORIGIN"


def test_cors_allows_configured_origin(monkeypatch):
    from fastapi.testclient import TestClient

    monkeypatch.delenv("EBIRD_API_KEY", raising=False)
    with TestClient(api_module.app) as client:
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})

    assert resp.headers.get("access-control-allow-origin") == "http://localhost:5173"
