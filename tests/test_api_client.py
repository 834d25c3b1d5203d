import httpx
import pytest

from jsonmirror.api_client import (ApiClientError, JsonSourceClient,
                                   ResourceNotFoundError)
from jsonmirror.models import HttpConfig

URL = "https://example.test/users.json"


def make_client(handler, max_retries=2):
    sleeps = []
    client = JsonSourceClient(
        HttpConfig(timeout=1.0, max_retries=max_retries, backoff_factor=0.5, backoff_max=1.0),
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
    )
    return client, sleeps


def test_fetch_returns_decoded_json():
    client, _ = make_client(lambda request: httpx.Response(200, json=[{"id": 1}]))

    with client:
        assert client.fetch(URL) == [{"id": 1}]


def test_server_errors_are_retried_with_backoff():
    responses = iter([httpx.Response(503), httpx.Response(429), httpx.Response(200, json={"id": 1})])
    client, sleeps = make_client(lambda request: next(responses))

    with client:
        assert client.fetch(URL) == {"id": 1}

    assert sleeps == [0.5, 1.0]


def test_not_found_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404, text="missing")

    client, sleeps = make_client(handler)
    with client, pytest.raises(ResourceNotFoundError):
        client.fetch(URL)

    assert len(calls) == 1
    assert sleeps == []


def test_client_errors_raise_api_client_error():
    client, _ = make_client(lambda request: httpx.Response(400, text="bad"))

    with client, pytest.raises(ApiClientError):
        client.fetch(URL)


def test_transport_errors_give_up_after_retries():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client, sleeps = make_client(handler, max_retries=1)
    with client, pytest.raises(ApiClientError):
        client.fetch(URL)

    assert len(sleeps) == 1


def test_invalid_json_is_an_api_client_error():
    client, _ = make_client(lambda request: httpx.Response(200, text="not json"))

    with client, pytest.raises(ApiClientError):
        client.fetch(URL)


def test_fetch_requires_context_manager():
    client, _ = make_client(lambda request: httpx.Response(200, json={}))

    with pytest.raises(ApiClientError):
        client.fetch(URL)
