"""
Name: Bearer Token Generation

Responsibilities:
  - Mint unguessable, URL-safe tokens for invitations and share links

Notes:
  - `secrets` (CSPRNG); tokens are bearer credentials
"""

import secrets

DEFAULT_TOKEN_BYTES = 24


def generate_token(num_bytes: int = DEFAULT_TOKEN_BYTES) -> str:
    """URL-safe token with `num_bytes` of entropy."""
    return secrets.token_urlsafe(num_bytes)
