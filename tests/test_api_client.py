import httpx
import jwt
import pytest

from models.planner import ErrorKind
from services.api_client import ApiClient, ApiError, TokenStore
from tests.conftest import BASE_URL, TOKEN


def client_for(handler, token=TOKEN):
    return ApiClient(TokenStore(token), base_url=BASE_URL, transport=httpx.MockTransport(handler))


async def test_attaches_bearer_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"data": []})

    client = client_for(handler)
    payload = await client.get("/api/predefine/cities")

    assert payload == {"data": []}
    assert seen[0].headers["Authorization"] == f"Bearer {TOKEN}"
    await client.close()


async def test_missing_token_fails_without_sending():
    seen = []
    client = client_for(lambda r: seen.append(r) or httpx.Response(200, json={}), token=None)

    with pytest.raises(ApiError) as exc:
        await client.get("/api/predefine/cities")

    assert exc.value.kind is ErrorKind.UNAUTHORIZED
    assert seen == []


@pytest.mark.parametrize(
    "status,body,kind",
    [
        (401, {"message": "jwt expired"}, ErrorKind.UNAUTHORIZED),
        (403, {"message": "Insufficient credits to generate a plan"}, ErrorKind.INSUFFICIENT_CREDITS),
        (403, {"error": "INSUFFICIENT CREDITS"}, ErrorKind.INSUFFICIENT_CREDITS),
        (403, {"message": "Forbidden"}, ErrorKind.UNKNOWN),
        (429, {}, ErrorKind.RATE_LIMITED),
        (500, {"message": "boom"}, ErrorKind.SERVER_ERROR),
        (503, {}, ErrorKind.SERVER_ERROR),
        (422, {"message": "bad city", "field": "cityName"}, ErrorKind.VALIDATION),
        (404, {"message": "Not found"}, ErrorKind.UNKNOWN),
    ],
)
async def test_error_classification(status, body, kind):
    client = client_for(lambda r: httpx.Response(status, json=body))

    with pytest.raises(ApiError) as exc:
        await client.post("/api/travelPlan", json={})

    assert exc.value.kind is kind
    assert exc.value.status == status


async def test_validation_error_keeps_field_and_message():
    client = client_for(lambda r: httpx.Response(400, json={"message": "cityName is required", "param": "cityName"}))

    with pytest.raises(ApiError) as exc:
        await client.post("/api/travelPlan", json={})

    assert exc.value.message == "cityName is required"
    assert exc.value.field == "cityName"


async def test_non_json_error_body_uses_generic_message():
    client = client_for(lambda r: httpx.Response(502, text="<html>Bad gateway</html>"))

    with pytest.raises(ApiError) as exc:
        await client.get("/api/predefine/cities")

    assert exc.value.kind is ErrorKind.SERVER_ERROR
    assert exc.value.message == "Request failed"


async def test_transport_error_is_unknown():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = client_for(handler)

    with pytest.raises(ApiError) as exc:
        await client.get("/api/predefine/cities")

    assert exc.value.kind is ErrorKind.UNKNOWN
    assert exc.value.message.startswith("Network error")


async def test_invalid_json_success_body():
    client = client_for(lambda r: httpx.Response(200, text="not json"))

    with pytest.raises(ApiError) as exc:
        await client.get("/api/predefine/cities")

    assert exc.value.message == "Invalid response from server"


async def test_list_body_is_wrapped():
    client = client_for(lambda r: httpx.Response(200, json=[1, 2]))
    assert await client.get("/x") == {"data": [1, 2]}


def test_current_user_id_reads_id_claim():
    assert client_for(lambda r: None).current_user_id() == "user-42"


@pytest.mark.parametrize(
    "token",
    ["not-a-jwt", jwt.encode({"sub": "someone"}, "k", algorithm="HS256")],
)
def test_current_user_id_rejects_unusable_tokens(token):
    with pytest.raises(ApiError) as exc:
        client_for(lambda r: None, token=token).current_user_id()
    assert exc.value.kind is ErrorKind.UNAUTHORIZED


def test_token_store_treats_empty_token_as_missing():
    assert TokenStore("").get() is None
    assert TokenStore(None).get() is None
    assert TokenStore("abc").get() == "abc"
