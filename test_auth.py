"""
Authentication Tests

Validates the four authentication methods:
1. Precedence and companion-field validation
2. Refresh token and JWT bearer grants against the token endpoint
3. Password login through the SOAP helper
4. Login endpoint selection and private key loading
"""

import asyncio
import time

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from connectors.salesforce.sf_auth import (
    JWT_BEARER_GRANT,
    SalesforceAuthenticator,
    build_jwt_assertion,
    load_private_key,
    select_auth_method,
)
from connectors.salesforce.sf_client import login_domain, login_url
from connectors.salesforce.sf_config import SalesforceConfig
from connectors.salesforce.sf_errors import (
    SalesforceAuthenticationError,
    SalesforceConfigurationError,
    SalesforceTransportError,
)
from connectors.salesforce.sf_models import AuthMethod

URL = "https://acme.my.salesforce.com"


class FakeTokenClient:
    """Records token endpoint requests and replays one response."""

    def __init__(self, response):
        self.response = response
        self.requests = []

    async def post_form(self, url, form):
        self.requests.append((url, dict(form)))
        return self.response


def record_transport(instance_url, access_token, api_version, client_id):
    return {"instance_url": instance_url, "access_token": access_token, "api_version": api_version}


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def pem(key, fmt=serialization.PrivateFormat.PKCS8) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=fmt,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


class TestSelectAuthMethod:

    def test_access_token_wins(self):
        config = SalesforceConfig(url=URL, access_token="tok", refresh_token="r", username="u", password="p")
        assert select_auth_method(config) == AuthMethod.ACCESS_TOKEN

    def test_refresh_token_before_jwt(self):
        config = SalesforceConfig(
            url=URL, refresh_token="r", client_id="cid", client_secret="cs",
            private_key="key", username="u",
        )
        assert select_auth_method(config) == AuthMethod.REFRESH_TOKEN

    def test_jwt_before_password(self):
        config = SalesforceConfig(url=URL, private_key_file="/k.pem", username="u", client_id="cid", password="p")
        assert select_auth_method(config) == AuthMethod.JWT

    def test_password(self):
        assert select_auth_method(SalesforceConfig(url=URL, username="u", password="p")) == AuthMethod.PASSWORD

    @pytest.mark.parametrize("config,missing", [
        (SalesforceConfig(access_token="tok"), "url"),
        (SalesforceConfig(url=URL, refresh_token="r", client_secret="cs"), "client_id"),
        (SalesforceConfig(url=URL, refresh_token="r", client_id="cid"), "client_secret"),
        (SalesforceConfig(url=URL, private_key="k", client_id="cid"), "username"),
        (SalesforceConfig(url=URL, private_key="k", username="u"), "client_id"),
        (SalesforceConfig(username="u", password="p"), "url"),
    ])
    def test_missing_companion_field(self, config, missing):
        with pytest.raises(SalesforceConfigurationError, match=f"'{missing}'"):
            select_auth_method(config)

    def test_nothing_configured(self):
        with pytest.raises(SalesforceConfigurationError, match="No valid authentication credentials"):
            select_auth_method(SalesforceConfig(url=URL, username="u"))


class TestAccessTokenFlow:

    def test_no_network_call(self):
        tokens = FakeTokenClient({})
        config = SalesforceConfig(url=URL + "/", access_token="00Dxx!token")
        auth = SalesforceAuthenticator(config, token_client=tokens, transport_factory=record_transport)

        session = asyncio.run(auth.authenticate())

        assert tokens.requests == []
        assert session.auth_method == AuthMethod.ACCESS_TOKEN
        assert session.instance_url == URL
        assert session.transport["access_token"] == "00Dxx!token"
        assert session.client_id == "sfql"


class TestRefreshTokenFlow:

    def config(self):
        return SalesforceConfig(url=URL, refresh_token="5Aep861", client_id="cid", client_secret="cs")

    def test_posts_refresh_grant(self):
        tokens = FakeTokenClient({"access_token": "new-token", "instance_url": "https://acme2.my.salesforce.com"})
        auth = SalesforceAuthenticator(self.config(), token_client=tokens, transport_factory=record_transport)

        session = asyncio.run(auth.authenticate())

        url, form = tokens.requests[0]
        assert url == f"{URL}/services/oauth2/token"
        assert form == {
            "grant_type": "refresh_token",
            "refresh_token": "5Aep861",
            "client_id": "cid",
            "client_secret": "cs",
        }
        assert session.access_token == "new-token"
        assert session.instance_url == "https://acme2.my.salesforce.com"
        assert session.auth_method == AuthMethod.REFRESH_TOKEN

    def test_missing_instance_url_falls_back_to_config(self):
        tokens = FakeTokenClient({"access_token": "new-token"})
        auth = SalesforceAuthenticator(self.config(), token_client=tokens, transport_factory=record_transport)
        assert asyncio.run(auth.authenticate()).instance_url == URL

    def test_oauth_error(self):
        tokens = FakeTokenClient({"error": "invalid_grant", "error_description": "expired access/refresh token"})
        auth = SalesforceAuthenticator(self.config(), token_client=tokens, transport_factory=record_transport)

        with pytest.raises(SalesforceAuthenticationError, match="invalid_grant"):
            asyncio.run(auth.authenticate())

    def test_missing_access_token(self):
        tokens = FakeTokenClient({"instance_url": URL})
        auth = SalesforceAuthenticator(self.config(), token_client=tokens, transport_factory=record_transport)

        with pytest.raises(SalesforceTransportError):
            asyncio.run(auth.authenticate())

    def test_error_list_body(self):
        tokens = FakeTokenClient([{"errorCode": "INVALID_SESSION_ID", "message": "Session expired or invalid"}])
        auth = SalesforceAuthenticator(self.config(), token_client=tokens, transport_factory=record_transport)

        with pytest.raises(SalesforceAuthenticationError, match="INVALID_SESSION_ID"):
            asyncio.run(auth.authenticate())

    @pytest.mark.parametrize("body", ["ok", 42, None])
    def test_body_that_is_not_an_object(self, body):
        tokens = FakeTokenClient(body)
        auth = SalesforceAuthenticator(self.config(), token_client=tokens, transport_factory=record_transport)

        with pytest.raises(SalesforceTransportError):
            asyncio.run(auth.authenticate())


class TestJwtFlow:

    def test_posts_signed_assertion(self, rsa_key):
        tokens = FakeTokenClient({"access_token": "jwt-token", "instance_url": URL})
        config = SalesforceConfig(url=URL, username="user@acme.com", client_id="cid", private_key=pem(rsa_key))
        auth = SalesforceAuthenticator(config, token_client=tokens, transport_factory=record_transport)

        session = asyncio.run(auth.authenticate())

        url, form = tokens.requests[0]
        assert url == "https://login.salesforce.com/services/oauth2/token"
        assert form["grant_type"] == JWT_BEARER_GRANT
        claims = jwt.decode(
            form["assertion"],
            rsa_key.public_key(),
            algorithms=["RS256"],
            audience="https://login.salesforce.com",
        )
        assert claims["iss"] == "cid"
        assert claims["sub"] == "user@acme.com"
        assert session.access_token == "jwt-token"
        assert session.auth_method == AuthMethod.JWT

    def test_sandbox_uses_test_endpoint(self, rsa_key):
        tokens = FakeTokenClient({"access_token": "jwt-token", "instance_url": URL})
        config = SalesforceConfig(
            url="https://acme--dev.sandbox.my.salesforce.com",
            username="user@acme.com.dev",
            client_id="cid",
            private_key=pem(rsa_key),
        )
        auth = SalesforceAuthenticator(config, token_client=tokens, transport_factory=record_transport)

        asyncio.run(auth.authenticate())
        assert tokens.requests[0][0] == "https://test.salesforce.com/services/oauth2/token"

    def test_assertion_expires_in_three_minutes(self, rsa_key):
        now = time.time()
        assertion = build_jwt_assertion("cid", "u", "https://login.salesforce.com", pem(rsa_key), now=now)
        claims = jwt.decode(assertion, options={"verify_signature": False})
        assert claims["exp"] == int(now) + 180

    def test_pkcs1_key_accepted(self, rsa_key):
        key = pem(rsa_key, serialization.PrivateFormat.TraditionalOpenSSL)
        assert "BEGIN RSA PRIVATE KEY" in key
        assertion = build_jwt_assertion("cid", "u", "https://login.salesforce.com", key)
        assert jwt.get_unverified_header(assertion)["alg"] == "RS256"

    def test_garbage_key_rejected(self):
        with pytest.raises(SalesforceConfigurationError, match="Failed to parse private key"):
            build_jwt_assertion("cid", "u", "https://login.salesforce.com", "not a key")

    def test_non_rsa_key_rejected(self):
        key = pem(ec.generate_private_key(ec.SECP256R1()))
        with pytest.raises(SalesforceConfigurationError, match="not an RSA key"):
            build_jwt_assertion("cid", "u", "https://login.salesforce.com", key)


class TestPasswordFlow:

    def test_calls_soap_login(self):
        seen = {}

        async def login(**kwargs):
            seen.update(kwargs)
            return "00Dxx!session", "https://acme.my.salesforce.com"

        config = SalesforceConfig(url=URL, username="u", password="p", token="sectok", api_version="60.0")
        auth = SalesforceAuthenticator(config, login=login, transport_factory=record_transport)

        session = asyncio.run(auth.authenticate())

        assert seen["username"] == "u"
        assert seen["password"] == "p"
        assert seen["security_token"] == "sectok"
        assert seen["api_version"] == "60.0"
        assert session.access_token == "00Dxx!session"
        assert session.api_version == "60.0"

    def test_security_token_optional(self):
        seen = {}

        async def login(**kwargs):
            seen.update(kwargs)
            return "sid", URL

        auth = SalesforceAuthenticator(
            SalesforceConfig(url=URL, username="u", password="p"),
            login=login,
            transport_factory=record_transport,
        )
        asyncio.run(auth.authenticate())
        assert seen["security_token"] == ""

    def test_rejected_credentials(self):
        async def login(**kwargs):
            raise SalesforceAuthenticationError("INVALID_LOGIN: Invalid username, password, security token")

        auth = SalesforceAuthenticator(SalesforceConfig(url=URL, username="u", password="bad"), login=login)
        with pytest.raises(SalesforceAuthenticationError, match="INVALID_LOGIN"):
            asyncio.run(auth.authenticate())


class TestLoginEndpoints:

    @pytest.mark.parametrize("url,expected", [
        ("https://na01.salesforce.com", "https://login.salesforce.com"),
        ("https://mycompany--dev.sandbox.my.salesforce.com", "https://test.salesforce.com"),
        ("https://cs42.salesforce.com", "https://test.salesforce.com"),
        ("https://test.salesforce.com", "https://test.salesforce.com"),
        ("https://mycompany.my.salesforce.com", "https://login.salesforce.com"),
    ])
    def test_login_url(self, url, expected):
        assert login_url(url) == expected

    @pytest.mark.parametrize("url,expected", [
        ("https://mycompany.my.salesforce.com", "mycompany.my"),
        ("https://mycompany--dev.sandbox.my.salesforce.com/", "mycompany--dev.sandbox.my"),
        ("https://test.salesforce.com", "test"),
        ("https://mycompany.example.com", "login"),
    ])
    def test_login_domain(self, url, expected):
        assert login_domain(url) == expected


class TestPrivateKeyLoading:

    def test_inline_wins_over_file(self, tmp_path):
        key_file = tmp_path / "server.key"
        key_file.write_text("from-file")
        assert load_private_key("inline", str(key_file)) == "inline"

    def test_file(self, tmp_path):
        key_file = tmp_path / "server.key"
        key_file.write_text("from-file")
        assert load_private_key(None, str(key_file)) == "from-file"

    def test_missing_file(self, tmp_path):
        with pytest.raises(SalesforceConfigurationError, match="Failed to read private key file"):
            load_private_key(None, str(tmp_path / "missing.key"))

    def test_neither(self):
        with pytest.raises(SalesforceConfigurationError):
            load_private_key(None, None)
