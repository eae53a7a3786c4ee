"""
Unit tests for OAuth 1.0a HMAC-SHA1 signing
"""

import re

import pytest

from auth.credentials import OAuthToken
from auth.signing import (
    SigningContext,
    authorization_header,
    protocol_parameters,
    sign,
    signature_base_string,
    signing_key,
)
from conftest import parse_oauth_header

pytestmark = [pytest.mark.unit, pytest.mark.signing]

# Worked example from the X developer documentation ("Creating a signature")
DOC_CONSUMER = OAuthToken("xvz1evFS4wEEPTGEFPHBog", "kAcSOqF21Fu85e7zjz7ZN2U4ZRhfV3WpwPAoE3Z7kBw")
DOC_TOKEN = OAuthToken("370773112-GmHxMAgYyLbNEtIKZeRNFsMKPR9EyMZeS9weJAEb", "LswwdoUaIvS8ltyTt5jkRh4J50vUPVVHtR2YPi5kE")
DOC_CONTEXT = SigningContext(
    http_method="POST",
    base_url="https://api.twitter.com/1.1/statuses/update.json",
    timestamp="1318622958",
    nonce="kYjzVBB8Y0ZFabxSWbWovY3uYSQ2pTgmZeNu2VS4cg",
)
DOC_PARAMS = {
    "status": "Hello Ladies + Gentlemen, a signed OAuth request!",
    "include_entities": "true",
}


@pytest.fixture
def context():
    return SigningContext(
        http_method="GET",
        base_url="https://api.x.com/2/users/me",
        timestamp="1700000000",
        nonce="0123456789abcdef0123456789abcdef",
    )


class TestSignature:
    """Test the signature computation"""

    def test_documented_example(self):
        """Test the signature against the documented worked example"""
        assert sign(DOC_PARAMS, DOC_CONTEXT, DOC_CONSUMER, DOC_TOKEN) == "hCtSmYh+iHYCEqBWrE7C7hYmtUk="

    def test_documented_base_string(self):
        """Test the base string against the documented worked example"""
        params = list(protocol_parameters(DOC_CONTEXT, DOC_CONSUMER, DOC_TOKEN).items())
        params.extend(DOC_PARAMS.items())
        base = signature_base_string("post", DOC_CONTEXT.base_url, params)
        assert base.startswith(
            "POST&https%3A%2F%2Fapi.twitter.com%2F1.1%2Fstatuses%2Fupdate.json&"
            "include_entities%3Dtrue%26oauth_consumer_key%3Dxvz1evFS4wEEPTGEFPHBog%26"
        )
        assert base.endswith(
            "oauth_version%3D1.0%26status%3DHello%2520Ladies%2520%252B%2520Gentlemen"
            "%252C%2520a%2520signed%2520OAuth%2520request%2521"
        )

    def test_deterministic(self, context, full_credentials):
        """Test that identical inputs produce identical signatures"""
        params = {"user.fields": "id,name"}
        first = sign(params, context, full_credentials.consumer, full_credentials.token)
        second = sign(dict(params), context, full_credentials.consumer, full_credentials.token)
        assert first == second

    @pytest.mark.parametrize("field,value", [
        ("http_method", "POST"),
        ("base_url", "https://api.x.com/2/users/me2"),
        ("timestamp", "1700000001"),
        ("nonce", "0123456789abcdef0123456789abcdee"),
        ("extra_params", {"oauth_verifier": "abc123"}),
    ])
    def test_any_context_change_changes_signature(self, context, full_credentials, field, value):
        """Test that changing a single context field changes the signature"""
        changed = SigningContext(**{**context.__dict__, field: value})
        consumer, token = full_credentials.consumer, full_credentials.token
        assert sign(None, context, consumer, token) != sign(None, changed, consumer, token)

    def test_query_param_change_changes_signature(self, context, full_credentials):
        """Test that changing a query parameter value changes the signature"""
        consumer, token = full_credentials.consumer, full_credentials.token
        assert sign({"max_results": "10"}, context, consumer, token) != sign({"max_results": "11"}, context, consumer, token)

    def test_secret_change_changes_signature(self, context):
        """Test that the consumer and token secrets are part of the key"""
        consumer = OAuthToken("key", "secret")
        token = OAuthToken("token", "token-secret")
        base = sign(None, context, consumer, token)
        assert base != sign(None, context, OAuthToken("key", "secret2"), token)
        assert base != sign(None, context, consumer, OAuthToken("token", "token-secret2"))

    def test_signing_key_without_token(self):
        """Test that the key ends with a bare ampersand when there is no token secret"""
        assert signing_key("c s") == "c%20s&"
        assert signing_key("c", "t!") == "c&t%21"


class TestProtocolParameters:
    """Test the oauth_* parameter set"""

    def test_token_is_omitted_without_token(self, context):
        """Test that oauth_token is only present when a token is given"""
        params = protocol_parameters(context, OAuthToken("key", "secret"))
        assert "oauth_token" not in params
        assert params["oauth_signature_method"] == "HMAC-SHA1"
        assert params["oauth_version"] == "1.0"

    def test_extra_params_are_included(self):
        """Test that oauth_callback is carried as a protocol parameter"""
        context = SigningContext.create("POST", "https://api.x.com/oauth/request_token",
                                        {"oauth_callback": "http://localhost:3456/callback"})
        params = protocol_parameters(context, OAuthToken("key", "secret"))
        assert params["oauth_callback"] == "http://localhost:3456/callback"


class TestSigningContext:
    """Test per-request context creation"""

    def test_fresh_nonce_per_context(self):
        """Test that every context gets its own 16-byte hex nonce"""
        nonces = {SigningContext.create("GET", "https://api.x.com/2/users/me").nonce for _ in range(50)}
        assert len(nonces) == 50
        assert all(re.fullmatch(r"[0-9a-f]{32}", nonce) for nonce in nonces)

    def test_timestamp_is_integer_seconds(self):
        """Test that the timestamp is a whole number of seconds"""
        context = SigningContext.create("GET", "https://api.x.com/2/users/me")
        assert context.timestamp.isdigit()


class TestAuthorizationHeader:
    """Test the Authorization header rendering"""

    def test_header_format(self, context, full_credentials):
        """Test that parameters are quoted, sorted and comma-separated"""
        header = authorization_header({"user.fields": "id"}, context, full_credentials.consumer, full_credentials.token)
        params = parse_oauth_header(header)

        assert list(params) == sorted(params)
        assert list(params) == [
            "oauth_consumer_key",
            "oauth_nonce",
            "oauth_signature",
            "oauth_signature_method",
            "oauth_timestamp",
            "oauth_token",
            "oauth_version",
        ]
        assert params["oauth_consumer_key"] == "test-consumer-key"
        assert params["oauth_token"] == "test-access-token"
        # Query parameters are signed but not sent in the header
        assert "user.fields" not in params

    def test_signature_is_percent_encoded(self, context, full_credentials):
        """Test that the base64 signature is percent-encoded in the header"""
        from urllib.parse import unquote

        query = {"user.fields": "id"}
        header = authorization_header(query, context, full_credentials.consumer, full_credentials.token)
        encoded = parse_oauth_header(header)["oauth_signature"]

        assert "+" not in encoded and "/" not in encoded and "=" not in encoded
        assert unquote(encoded) == sign(query, context, full_credentials.consumer, full_credentials.token)

    def test_callback_is_encoded(self):
        """Test that oauth_callback appears percent-encoded"""
        context = SigningContext.create("POST", "https://api.x.com/oauth/request_token",
                                        {"oauth_callback": "http://localhost:3456/callback"})
        header = authorization_header(None, context, OAuthToken("key", "secret"))
        assert 'oauth_callback="http%3A%2F%2Flocalhost%3A3456%2Fcallback"' in header
        assert "oauth_token=" not in header
