"""Tests for FederationRequester."""

import json

import httpx
import pytest

from versia_federation import (
    FederationConfig,
    FederationRequester,
    ResponseError,
    SignatureConstructor,
    SignatureValidator,
    generate_keypair,
    load_public_key,
)

ACTOR = "https://example.com/users/6a18f2c3-120e-4949-bda4-2aa4c8264d51"


def make_transport(status_code=200, payload=None, text=None):
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        if payload is not None:
            return httpx.Response(status_code, json=payload)
        return httpx.Response(status_code, text=text or "")

    return httpx.MockTransport(handler), sent


def test_requester_init_defaults():
    requester = FederationRequester("https://bob.org")
    assert requester.url == httpx.URL("https://bob.org")
    assert requester.signature_constructor is None


async def test_requests_are_signed_and_verifiable():
    private_b64, public_b64 = generate_keypair()
    signer = SignatureConstructor.from_base64_key(private_b64, ACTOR)
    transport, sent = make_transport(payload={"ok": True})

    async with FederationRequester("https://bob.org", signer, transport=transport) as requester:
        output = await requester.post("/inbox", json={"type": "Note", "content": "hi"})

    assert output.ok
    assert output.data == {"ok": True}

    request = sent[0]
    assert request.url == httpx.URL("https://bob.org/inbox")
    assert request.headers["Versia-Signed-By"] == ACTOR
    assert request.headers["Accept"] == "application/json"
    assert request.headers["Content-Type"] == "application/json; charset=utf-8"
    assert json.loads(request.content) == {"type": "Note", "content": "hi"}

    validator = SignatureValidator(load_public_key(public_b64))
    assert await validator.validate_request(request)


async def test_unsigned_requester_sends_plain_request():
    transport, sent = make_transport(text="hello")

    async with FederationRequester("https://bob.org", transport=transport) as requester:
        output = await requester.get("/.well-known/versia")

    assert output.data == "hello"
    assert "Versia-Signature" not in sent[0].headers
    assert sent[0].headers["User-Agent"].startswith("versia-federation/")


async def test_error_response_raises_response_error():
    transport, _ = make_transport(status_code=404, payload={"error": "User not found"})

    async with FederationRequester("https://bob.org", transport=transport) as requester:
        with pytest.raises(ResponseError, match="User not found") as exc_info:
            await requester.get("/users/1")

    error = exc_info.value
    assert error.status_code == 404
    assert error.output.ok is False
    assert error.output.data == {"error": "User not found"}
    assert error.output.request.url == httpx.URL("https://bob.org/users/1")


async def test_error_response_without_json_uses_reason():
    transport, _ = make_transport(status_code=500, text="boom")

    async with FederationRequester("https://bob.org", transport=transport) as requester:
        with pytest.raises(ResponseError, match=r"Request failed \(500\): Internal Server Error"):
            await requester.delete("/notes/1")


async def test_from_config():
    private_b64, public_b64 = generate_keypair()
    config = FederationConfig(
        base_url="https://bob.org",
        signed_by=ACTOR,
        private_key=private_b64,
        user_agent="test-agent/1.0",
    )
    transport, sent = make_transport(payload={})

    async with FederationRequester.from_config(config, transport=transport) as requester:
        await requester.put("/users/1", json={"display_name": "Bob"})

    assert sent[0].headers["User-Agent"] == "test-agent/1.0"
    assert await config.signature_validator(public_b64).validate_request(sent[0])


def test_from_config_requires_base_url():
    with pytest.raises(ValueError, match="base_url"):
        FederationRequester.from_config(FederationConfig())


async def test_global_catch_sees_errors_before_they_are_raised():
    caught = []
    transport, _ = make_transport(status_code=401, payload={"message": "Bad signature"})

    async with FederationRequester(
        "https://bob.org", transport=transport, global_catch=caught.append
    ) as requester:
        with pytest.raises(ResponseError) as exc_info:
            await requester.post("/inbox", json={"type": "Note"})

    assert caught == [exc_info.value]
    assert caught[0].status_code == 401


async def test_global_catch_not_called_on_success():
    caught = []
    transport, _ = make_transport(payload={"ok": True})

    async with FederationRequester(
        "https://bob.org", transport=transport, global_catch=caught.append
    ) as requester:
        await requester.get("/users/1")

    assert caught == []


async def test_get_url_one_shot():
    transport, sent = make_transport(payload={"type": "User"})

    output = await FederationRequester.get_url(
        "https://bob.org/users/1?extended=true", transport=transport
    )

    assert output.data == {"type": "User"}
    assert sent[0].method == "GET"
    assert sent[0].url == httpx.URL("https://bob.org/users/1?extended=true")
    assert "Versia-Signature" not in sent[0].headers


async def test_post_url_one_shot_signed():
    private_b64, public_b64 = generate_keypair()
    signer = SignatureConstructor.from_base64_key(private_b64, ACTOR)
    transport, sent = make_transport(payload={})

    await FederationRequester.post_url(
        "https://bob.org:8443/inbox",
        {"type": "Follow"},
        signature_constructor=signer,
        transport=transport,
    )

    assert sent[0].url == httpx.URL("https://bob.org:8443/inbox")
    assert json.loads(sent[0].content) == {"type": "Follow"}
    validator = SignatureValidator(load_public_key(public_b64))
    assert await validator.validate_request(sent[0])


async def test_one_shot_requires_absolute_url():
    with pytest.raises(ValueError, match="absolute URL"):
        await FederationRequester.get_url("/users/1")
