"""
OAuth 1.0a request signing (HMAC-SHA1) for the X API.

sign() and signature_base_string() are pure; authorization_header() adds a
fresh nonce and timestamp, so every request must build its own header.
"""

import base64
import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import quote


@dataclass(frozen=True)
class XCredentials:
    api_key: str
    api_secret: str
    access_token: str
    access_token_secret: str

    def is_complete(self) -> bool:
        return all((self.api_key, self.api_secret, self.access_token, self.access_token_secret))


def percent_encode(value) -> str:
    """RFC 3986 encoding: only unreserved characters stay literal."""
    return quote(str(value), safe="-._~")


def normalize_params(params: Dict[str, str]) -> str:
    """Encode, sort by key then value, and join as k=v pairs."""
    encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in params.items())
    return "&".join(f"{k}={v}" for k, v in encoded)


def signature_base_string(method: str, url: str, params: Dict[str, str]) -> str:
    """METHOD&encoded(url)&encoded(normalized params)."""
    return "&".join([
        method.upper(),
        percent_encode(url),
        percent_encode(normalize_params(params)),
    ])


def oauth_params(credentials: XCredentials, nonce: str, timestamp: str) -> Dict[str, str]:
    return {
        "oauth_consumer_key": credentials.api_key,
        "oauth_nonce": nonce,
        "oauth_signature_method": "HMAC-SHA1",
        "oauth_timestamp": timestamp,
        "oauth_token": credentials.access_token,
        "oauth_version": "1.0",
    }


def sign(method: str, url: str, params: Dict[str, str], credentials: XCredentials,
         nonce: str, timestamp: str) -> str:
    """
    HMAC-SHA1 signature of a request.

    Args:
        method: HTTP method
        url: Base URL without query string
        params: Query and form parameters covered by the signature
        credentials: Consumer and token keys
        nonce: Per-request nonce
        timestamp: Unix timestamp string

    Returns:
        Base64 signature
    """
    all_params = {**params, **oauth_params(credentials, nonce, timestamp)}
    base = signature_base_string(method, url, all_params)
    key = f"{percent_encode(credentials.api_secret)}&{percent_encode(credentials.access_token_secret)}"
    digest = hmac.new(key.encode("utf-8"), base.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def authorization_header(method: str, url: str, params: Dict[str, str], credentials: XCredentials,
                         nonce: Optional[str] = None, timestamp: Optional[str] = None) -> str:
    """Authorization header value for one request."""
    nonce = nonce or secrets.token_hex(16)
    timestamp = timestamp or str(int(time.time()))

    header_params = oauth_params(credentials, nonce, timestamp)
    header_params["oauth_signature"] = sign(method, url, params, credentials, nonce, timestamp)

    return "OAuth " + ", ".join(
        f'{percent_encode(k)}="{percent_encode(v)}"' for k, v in sorted(header_params.items())
    )
