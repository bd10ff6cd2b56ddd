import asyncio

import httpx
import pytest

from onlinebank.client import (
    ACCESS_DENIED_MESSAGE,
    SERVER_ERROR_MESSAGE,
    BankApiClient,
    RequestCancelled,
    request_key,
)
from onlinebank.main import app
from onlinebank.seed import ADMIN_EMAIL, ADMIN_PASSWORD, SAMPLE_ACCOUNT_NUMBER


def _envelope(data=None, message=None):
    return {"success": True, "message": message, "data": data, "errors": None}


def test_request_key_includes_params_and_body():
    assert request_key("GET", "/a") == "get|/a||"
    assert request_key("get", "/a", {"x": 1}) != request_key("get", "/a", {"x": 2})
    assert request_key("post", "/a", None, {"b": 1, "a": 2}) == request_key("post", "/a", None, {"a": 2, "b": 1})


def test_identical_request_cancels_earlier_one():
    seen = []

    async def handler(request):
        seen.append(str(request.url))
        await asyncio.sleep(0.05)
        return httpx.Response(200, json=_envelope(len(seen)))

    async def scenario():
        async with BankApiClient(base_url="http://bank.test/api", transport=httpx.MockTransport(handler)) as api:
            first = asyncio.ensure_future(api.get("/account/my-accounts"))
            await asyncio.sleep(0)
            second = await api.get("/account/my-accounts")
            with pytest.raises(RequestCancelled):
                await first
            assert api.pending_count == 0
            return second

    result = asyncio.run(scenario())
    assert result["success"] is True


def test_different_requests_run_side_by_side():
    async def handler(request):
        await asyncio.sleep(0.01)
        return httpx.Response(200, json=_envelope(request.url.params.get("page")))

    async def scenario():
        async with BankApiClient(base_url="http://bank.test/api", transport=httpx.MockTransport(handler)) as api:
            return await asyncio.gather(api.get("/transaction/all", {"page": 1}), api.get("/transaction/all", {"page": 2}))

    first, second = asyncio.run(scenario())
    assert (first["data"], second["data"]) == ("1", "2")


def test_error_responses_are_normalised():
    events = []
    responses = {
        "/api/missing": httpx.Response(404, json={"detail": "nope"}),
        "/api/bad": httpx.Response(400, json={"message": "Bad amount", "errors": {"amount": ["too big"]}}),
        "/api/forbidden": httpx.Response(403, text="forbidden"),
        "/api/boom": httpx.Response(500),
        "/api/gateway": httpx.Response(502),
    }

    def handler(request):
        return responses[request.url.path]

    async def scenario():
        api = BankApiClient(base_url="http://bank.test/api", transport=httpx.MockTransport(handler),
                            on_error=events.append)
        try:
            return [await api.get(path) for path in ("/missing", "/bad", "/forbidden", "/boom", "/gateway")]
        finally:
            await api.close()

    missing, bad, forbidden, boom, gateway = asyncio.run(scenario())
    assert missing == {"success": False, "message": "Resource not found.", "data": None,
                       "errors": None, "originalStatus": 404}
    assert bad["message"] == "Bad amount" and bad["errors"] == {"amount": ["too big"]}
    assert forbidden["message"] == "Access denied."
    assert boom["message"] == "Internal server error."
    assert gateway["message"] == "Bad gateway."
    assert events == [ACCESS_DENIED_MESSAGE, SERVER_ERROR_MESSAGE, SERVER_ERROR_MESSAGE]


def test_unauthorized_envelope_clears_token():
    expired = []

    def handler(request):
        assert request.headers["Authorization"] == "Bearer stale"
        return httpx.Response(200, json={"success": False, "message": "Token has expired", "data": None,
                                         "errors": None, "originalStatus": 401})

    async def scenario():
        async with BankApiClient(base_url="http://bank.test/api", token="stale",
                                 transport=httpx.MockTransport(handler), on_unauthorized=expired.append) as api:
            result = await api.get("/auth/profile")
            return result, api.token

    result, token = asyncio.run(scenario())
    assert result["originalStatus"] == 401
    assert result["message"] == "Token has expired"
    assert token is None
    assert expired == ["Session expired. Please login again."]


def test_client_against_app():
    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with BankApiClient(base_url="http://testserver/api", transport=transport) as api:
            login = await api.login(ADMIN_EMAIL, ADMIN_PASSWORD)
            accounts = await api.my_accounts()
            same = await api.transfer({"from_account_number": SAMPLE_ACCOUNT_NUMBER,
                                       "to_account_number": SAMPLE_ACCOUNT_NUMBER, "amount": 11})
            return login, accounts, same, api.token

    login, accounts, same, token = asyncio.run(scenario())
    assert login["success"] is True and token
    assert SAMPLE_ACCOUNT_NUMBER in [a["account_number"] for a in accounts["data"]]
    assert same == {"success": False, "message": "Cannot transfer to the same account", "data": None,
                    "errors": None, "originalStatus": 400}
