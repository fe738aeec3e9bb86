# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/oidc_debug

"""
Signing key and ID token minting for the mock provider.

The embedded key is a 1024-bit RSA test fixture. It must never sign anything
outside of tests.
"""

import base64
import binascii
import time
from typing import Any

from authlib.jose import RSAKey, jwt
from authlib.jose.errors import JoseError
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from oidc_debug.exceptions import SigningKeyError

# base64 PKCS8 DER
TEST_SIGNING_KEY = (
    "MIICdgIBADANBgkqhkiG9w0BAQEFAASCAmAwggJcAgEAAoGBAMFHqgKhS4nHlTE5P0IauictV+9TtSVgIiC+aWVDqc41hNE1b30Tk/rTNv7AR1gV"
    "GnF0YCnxQ4o59b5KQriJmXFmPs/P8exyLXxDDEEQ34aSwJOTxBKKg/0U2JRmAA8QwAxa3jBg7X7ijMRR3hqWmjnd/kt4nn0uC0QnRSY6t6SRAgMB"
    "AAECgYB9RCAYokcd3f+ArpSkGERr3cRvNTZjKeIUjLQsUGU+Y4tYOCSw0L6IwtmS1DWpDcxcmcs1g8t9S8FMej6x8WRDa4HpSDbriU7wK1Om2hIn"
    "1izm0fNT6QJBhD4hY6mhXatrAy7CRa9jEoDU0pxh2NpxFm7apoLURSVq8BkCqFY1UQJBAPlse9wWjgwKebmRP6HqUr6NRR472z1nblokAeMVpLzK"
    "ekRrzPvuUa1PApzt9WazgUsVSlWBCu+rfSxBAFCRV3UCQQDGYDsMRXiLBQQsv75JlwSWMgjoVb13yEDw3eVqQLX40z4K42YxxlSn5RWZ23CDF1qT"
    "jKUhtTQLXOPJboiR2pEtAkEAz44+477BJbPx50G/OfXMNVVJlwcoQci4Q7qC930jQRcc96LdSSfgP9/nxL8f3v6xMNHesZhYiWijGRheMq0/oQJA"
    "KPtKV4+mhnnD0gbOpd9H+Etf4beMy8kX+Wqt8VRrA3uIbrFptFC3vnOqEb3usXZKpP7CQoNvvAU1nbBzEEaqBQJAJbsctoC7k0BUsLFASyXkJqpl"
    "CDmzukvfd4wmbRHlivmLqbMORvLHccYZHqwfSjUQ5pGWPXM4sNx4O2WibBu+xQ=="
)

AUDIENCE = "http://target.test/"
SUBJECT = "someone@test"
GROUPS = ["devs@test", "users@test"]
NOT_BEFORE_DELAY = 5 * 60
LIFETIME = 10 * 60


def load_signing_key(encoded: str = TEST_SIGNING_KEY) -> RSAKey:
    """
    Parses a base64 PKCS8 DER RSA private key.

    Raises:
        SigningKeyError: If the value is not base64, not PKCS8 DER, or not an RSA key.
    """
    try:
        der = base64.b64decode(encoded, validate=True)
        private_key = serialization.load_der_private_key(der, password=None)
    except (binascii.Error, ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningKeyError(str(e) or type(e).__name__) from e

    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise SigningKeyError(f"expected an RSA private key, got {type(private_key).__name__}")

    return RSAKey.import_key(private_key)


def id_token_claims(issuer: str, now: int | None = None) -> dict[str, Any]:
    now = int(time.time()) if now is None else now
    return {
        "iss": issuer,
        "aud": AUDIENCE,
        "iat": now,
        "nbf": now + NOT_BEFORE_DELAY,
        "exp": now + LIFETIME,
        "sub": SUBJECT,
        "group": list(GROUPS),
    }


def mint_id_token(key: RSAKey, issuer: str, now: int | None = None) -> str:
    """
    Signs a PS256 ID token for the fixed test subject.

    Raises:
        SigningKeyError: If signing fails.
    """
    header = {"alg": "PS256", "typ": "JWT"}
    try:
        token = jwt.encode(header, id_token_claims(issuer, now), key)
    except (JoseError, ValueError) as e:
        raise SigningKeyError(f"could not sign jwt : {e}") from e
    return token.decode("ascii")
