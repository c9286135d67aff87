"""
OAuth 1.0a signing tests against the published HMAC-SHA1 example.
"""

from tasipulse.scripts.oauth import (
    XCredentials,
    authorization_header,
    percent_encode,
    sign,
    signature_base_string,
)

CREDENTIALS = XCredentials(
    api_key="dpf43f3p2l4k3l03",
    api_secret="kd94hf93k423kf44",
    access_token="nnch734d00sl2jdk",
    access_token_secret="pfkkdhi9sl3r4s00",
)
URL = "http://photos.example.net/photos"
PARAMS = {"file": "vacation.jpg", "size": "original"}
NONCE = "kllo9940pd9333jh"
TIMESTAMP = "1191242096"


def test_signature_base_string():
    params = {
        **PARAMS,
        "oauth_consumer_key": CREDENTIALS.api_key,
        "oauth_nonce": NONCE,
        "oauth_signature_method": "HMAC-SHA1",
        "oauth_timestamp": TIMESTAMP,
        "oauth_token": CREDENTIALS.access_token,
        "oauth_version": "1.0",
    }
    assert signature_base_string("GET", URL, params) == (
        "GET&http%3A%2F%2Fphotos.example.net%2Fphotos&file%3Dvacation.jpg"
        "%26oauth_consumer_key%3Ddpf43f3p2l4k3l03%26oauth_nonce%3Dkllo9940pd9333jh"
        "%26oauth_signature_method%3DHMAC-SHA1%26oauth_timestamp%3D1191242096"
        "%26oauth_token%3Dnnch734d00sl2jdk%26oauth_version%3D1.0%26size%3Doriginal"
    )


def test_sign_matches_known_vector():
    assert sign("GET", URL, PARAMS, CREDENTIALS, NONCE, TIMESTAMP) == "tR3+Ty81lMeYAr/Fid0kMTYa/WM="


def test_sign_is_pure():
    first = sign("POST", URL, PARAMS, CREDENTIALS, NONCE, TIMESTAMP)
    assert sign("POST", URL, PARAMS, CREDENTIALS, NONCE, TIMESTAMP) == first
    assert sign("GET", URL, PARAMS, CREDENTIALS, NONCE, TIMESTAMP) != first


def test_authorization_header():
    header = authorization_header("GET", URL, PARAMS, CREDENTIALS, nonce=NONCE, timestamp=TIMESTAMP)
    assert header.startswith("OAuth ")
    assert 'oauth_signature="tR3%2BTy81lMeYAr%2FFid0kMTYa%2FWM%3D"' in header
    assert 'oauth_nonce="kllo9940pd9333jh"' in header
    # Request parameters are signed but not sent in the header
    assert "file=" not in header


def test_percent_encode_reserved_characters():
    assert percent_encode("a b&c=d~e") == "a%20b%26c%3Dd~e"
    assert percent_encode("أ") == "%D8%A3"


def test_incomplete_credentials():
    assert CREDENTIALS.is_complete()
    assert not XCredentials("k", "s", "", "ts").is_complete()
