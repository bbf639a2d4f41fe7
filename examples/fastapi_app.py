"""Example: FastAPI inbox that verifies Versia signatures and dispatches entities."""

import httpx
from fastapi import FastAPI, HTTPException, Request

from versia_federation import (
    HandlerTable,
    MissingTypeError,
    SignatureError,
    SignatureValidator,
    parse_body,
)

app = FastAPI(title="My Versia Server")

# Public keys of known actors, normally fetched from their profiles
KNOWN_KEYS = {
    "https://bob.org/users/6a18f2c3-120e-4949-bda4-2aa4c8264d51": "BASE64_SPKI_PUBLIC_KEY",
}


class AcceptAll:
    """Stand-in validator. Plug in real schema validation here."""

    def validate(self, kind, data):
        return data


async def on_note(note):
    print(f"New note from {note.get('author')}: {note.get('content')}")
    return {"status": "accepted"}


async def on_follow(follow):
    print(f"{follow.get('author')} wants to follow {follow.get('followee')}")
    return {"status": "accepted"}


@app.post("/inbox")
async def inbox(request: Request):
    """Shared inbox - requires a valid Versia signature."""
    body = await request.body()
    signed_by = request.headers.get("Versia-Signed-By")
    public_key = KNOWN_KEYS.get(signed_by)
    if public_key is None:
        raise HTTPException(status_code=401, detail="Unknown signer")

    validator = SignatureValidator.from_base64_key(public_key, max_age=300)
    signed_request = httpx.Request(
        request.method, str(request.url), headers=request.headers.raw, content=body
    )

    try:
        valid = await validator.validate_request(signed_request)
    except SignatureError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if not valid:
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        result = await parse_body(
            await request.json(),
            AcceptAll(),
            HandlerTable(note=on_note, follow=on_follow),
        )
    except MissingTypeError as e:
        raise HTTPException(status_code=422, detail=e.message)

    return result or {"status": "ignored"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
