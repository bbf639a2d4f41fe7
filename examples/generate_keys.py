#!/usr/bin/env python3
"""Generate an Ed25519 keypair for a Versia actor."""

from versia_federation import generate_keypair


def main():
    private_key, public_key = generate_keypair()

    print("Private key (PKCS8, base64) - STORE SECURELY:")
    print(f"  {private_key}")
    print("\nPublic key (SPKI, base64) - publish on the actor profile:")
    print(f"  {public_key}")


if __name__ == "__main__":
    main()
