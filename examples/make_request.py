"""Example: Send a signed Note to another Versia server."""

import asyncio

from versia_federation import FederationRequester, ResponseError, SignatureConstructor


async def main():
    signer = SignatureConstructor.from_base64_key(
        "YOUR_PKCS8_PRIVATE_KEY_HERE",
        "https://example.com/users/6a18f2c3-120e-4949-bda4-2aa4c8264d51",
    )

    async with FederationRequester("https://bob.org", signer) as requester:
        try:
            output = await requester.post(
                "/inbox",
                json={
                    "type": "Note",
                    "id": "9a8928b6-2526-4979-aab1-ef2f88cd5700",
                    "author": signer.signed_by,
                    "content": {"text/plain": {"content": "Hello from my server!"}},
                },
            )
        except ResponseError as e:
            print(f"\n✗ Request failed: {e}")
            return

        print("\n✓ Request successful!")
        print(output.data)


if __name__ == "__main__":
    asyncio.run(main())
