import pytest

from fastapi import FastAPI, Query
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel

from labeler.api.error_handlers import DEFAULT_ERROR_CODE, register_exception_handlers
from labeler.api.response_middleware import SuccessEnvelopeMiddleware
from labeler.api.response_utils import REQUEST_ID_HEADER
from labeler.core.exceptions import (
    EmbeddingUnavailableError,
    RateLimitedError,
    RecordNotFoundError,
    RetrievalUnavailableError,
    ValidationError,
)


@pytest.fixture
def app() -> FastAPI:
    fastapi_app = FastAPI()
    fastapi_app.add_middleware(SuccessEnvelopeMiddleware)
    register_exception_handlers(fastapi_app)

    @fastapi_app.get("/record")
    async def record_endpoint():
        raise RecordNotFoundError("transaction not found")

    @fastapi_app.get("/invalid")
    async def invalid_endpoint():
        raise ValidationError("limit must be between 1 and 100")

    @fastapi_app.get("/rate-limited")
    async def rate_limited_endpoint():
        raise RateLimitedError("Embedding provider rate limit exceeded")

    @fastapi_app.get("/embedding-down")
    async def embedding_down_endpoint():
        raise EmbeddingUnavailableError("Embedding provider unavailable")

    @fastapi_app.get("/store-down")
    async def store_down_endpoint():
        raise RetrievalUnavailableError("Similarity search timed out")

    @fastapi_app.get("/crash")
    async def crash_endpoint():
        raise RuntimeError("secret connection string")

    @fastapi_app.get("/success")
    async def success_endpoint():
        return {"ok": True}

    @fastapi_app.get("/query-validation")
    async def query_validation_endpoint(q: str = Query(..., min_length=1)):
        return {"q": q}

    class Item(BaseModel):
        name: str

    @fastapi_app.post("/body-validation")
    async def body_validation_endpoint(item: Item):
        return item

    return fastapi_app


@pytest.fixture
async def client(app: FastAPI):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.mark.asyncio
async def test_record_not_found_envelope(client: AsyncClient) -> None:
    response = await client.get("/record")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["error"]["code"] == "RecordNotFoundError"
    assert body["error"]["message"] == "transaction not found"
    assert body["feedback"] == []
    assert "meta" in body


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path, status_code, code",
    [
        ("/invalid", 400, "ValidationError"),
        ("/rate-limited", 429, "RateLimitedError"),
        ("/embedding-down", 503, "EmbeddingUnavailableError"),
        ("/store-down", 503, "RetrievalUnavailableError"),
    ],
)
async def test_domain_errors_map_to_status(
    client: AsyncClient, path: str, status_code: int, code: str
) -> None:
    response = await client.get(path)

    assert response.status_code == status_code
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == code


@pytest.mark.asyncio
async def test_rate_limited_carries_retry_hint(client: AsyncClient) -> None:
    response = await client.get("/rate-limited")

    assert response.json()["error"]["hint"]


@pytest.mark.asyncio
async def test_unexpected_error_envelope(client: AsyncClient) -> None:
    response = await client.get("/crash")

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == DEFAULT_ERROR_CODE
    assert "secret" not in body["error"]["message"]
    assert body["data"] is None


@pytest.mark.asyncio
async def test_success_response_envelope(client: AsyncClient) -> None:
    response = await client.get("/success", headers={REQUEST_ID_HEADER: "req-123"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {"ok": True}
    assert body["error"] is None
    assert body["feedback"] == []
    assert response.headers[REQUEST_ID_HEADER] == "req-123"


@pytest.mark.asyncio
async def test_query_validation_error_envelope(client: AsyncClient) -> None:
    response = await client.get("/query-validation", params={"q": ""})

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["error"]["code"] == "ValidationError"
    assert "String should have at least" in body["error"]["message"]
    assert body["error"].get("details")


@pytest.mark.asyncio
async def test_body_validation_error_envelope(client: AsyncClient) -> None:
    response = await client.post("/body-validation", json={})

    assert response.status_code == 422
    body = response.json()
    assert body["error"]["code"] == "ValidationError"
    assert "Field required" in body["error"]["message"]
    assert body["error"].get("details")
