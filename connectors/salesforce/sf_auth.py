"""Salesforce Authentication.

Builds an authenticated SalesforceSession from a SalesforceConfig.
Exactly one method is used, selected by precedence:

1. access_token   - pre-issued bearer token, no network call, not renewable
2. refresh_token  - OAuth2 refresh grant against <url>/services/oauth2/token
3. private_key    - OAuth2 JWT bearer grant (RS256) against the login endpoint
4. password       - SOAP username/password login through simple-salesforce

Each method validates its companion fields and raises
SalesforceConfigurationError naming the one that is missing.
"""

import json
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import aiohttp
import jwt
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from connectors.salesforce.sf_client import SalesforceTransport, login_url, password_login
from connectors.salesforce.sf_config import SalesforceConfig
from connectors.salesforce.sf_errors import (
    SalesforceAuthenticationError,
    SalesforceConfigurationError,
    SalesforceError,
    SalesforceTransportError,
)
from connectors.salesforce.sf_models import AuthMethod, SalesforceSession
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics

logger = get_logger(__name__)

TOKEN_PATH = "/services/oauth2/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
JWT_LIFETIME_SECONDS = 3 * 60

TransportFactory = Callable[[str, str, str, str], Any]
PasswordLogin = Callable[..., Awaitable[Tuple[str, str]]]


# =============================================================================
# Token Endpoint
# =============================================================================

class TokenEndpointClient:
    """Posts OAuth2 form requests to a Salesforce token endpoint.

    Replaceable in tests with any object exposing
    `async post_form(url, form) -> dict`.
    """

    async def post_form(self, url: str, form: Dict[str, str]) -> Any:
        """POST a url-encoded form and return the decoded JSON body.

        Raises:
            SalesforceAuthenticationError: Non-JSON error response
            SalesforceTransportError: Network failure or unparseable success body
        """
        try:
            async with aiohttp.ClientSession() as http:
                async with http.post(
                    url,
                    data=form,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                ) as response:
                    status = response.status
                    body = await response.text()
        except aiohttp.ClientError as e:
            raise SalesforceTransportError(f"Token request to {url} failed: {e}") from e

        try:
            return json.loads(body)
        except ValueError:
            if status >= 400:
                raise SalesforceAuthenticationError(f"Token request failed: {status} - {body}")
            raise SalesforceTransportError(f"Token response from {url} is not JSON")


# =============================================================================
# Helpers
# =============================================================================

def _is_set(value: Optional[str]) -> bool:
    return bool(value)


def select_auth_method(config: SalesforceConfig) -> AuthMethod:
    """Pick the authentication method for a config.

    Raises:
        SalesforceConfigurationError: A method was selected but one of its
            companion fields is missing, or no method is configured at all.
    """
    def require(method: str, **fields: Optional[str]) -> None:
        for name, value in fields.items():
            if not _is_set(value):
                raise SalesforceConfigurationError(f"{method} auth requires '{name}' to be set")

    if _is_set(config.access_token):
        require("access_token", url=config.url)
        return AuthMethod.ACCESS_TOKEN

    if _is_set(config.refresh_token):
        require(
            "refresh_token",
            url=config.url,
            client_id=config.client_id,
            client_secret=config.client_secret,
        )
        return AuthMethod.REFRESH_TOKEN

    if _is_set(config.private_key) or _is_set(config.private_key_file):
        require("jwt", url=config.url, username=config.username, client_id=config.client_id)
        return AuthMethod.JWT

    if _is_set(config.username) and _is_set(config.password):
        require("password", url=config.url)
        return AuthMethod.PASSWORD

    raise SalesforceConfigurationError(
        "No valid authentication credentials configured; provide access_token, "
        "refresh_token with client_id/client_secret, private_key/private_key_file, "
        "or username/password"
    )


def load_private_key(private_key: Optional[str], private_key_file: Optional[str]) -> str:
    """Return the PEM text, preferring the inline key over the file."""
    if private_key:
        return private_key
    if private_key_file:
        try:
            return Path(private_key_file).read_text()
        except OSError as e:
            raise SalesforceConfigurationError(
                f"Failed to read private key file {private_key_file!r}: {e}"
            ) from e
    raise SalesforceConfigurationError("Either private_key or private_key_file must be set")


def build_jwt_assertion(
    client_id: str,
    username: str,
    audience: str,
    private_key_pem: str,
    now: Optional[float] = None,
) -> str:
    """Sign the JWT bearer assertion (RS256).

    Accepts PKCS#1 ("BEGIN RSA PRIVATE KEY") and PKCS#8 ("BEGIN PRIVATE
    KEY") encodings.
    """
    try:
        key = load_pem_private_key(private_key_pem.encode("utf-8"), password=None)
    except (ValueError, TypeError) as e:
        raise SalesforceConfigurationError(f"Failed to parse private key: {e}") from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise SalesforceConfigurationError("Private key is not an RSA key")

    issued = int(now if now is not None else time.time())
    claims = {
        "iss": client_id,
        "sub": username,
        "aud": audience,
        "exp": issued + JWT_LIFETIME_SECONDS,
    }
    return jwt.encode(claims, key, algorithm="RS256")


def _default_transport(instance_url: str, access_token: str, api_version: str, client_id: str):
    return SalesforceTransport(instance_url, access_token, api_version, client_id=client_id)


# =============================================================================
# Authenticator
# =============================================================================

class SalesforceAuthenticator:
    """Runs the configured authentication method and returns a session.

    Usage:
        auth = SalesforceAuthenticator(config)
        session = await auth.authenticate()
    """

    def __init__(
        self,
        config: SalesforceConfig,
        token_client: Optional[TokenEndpointClient] = None,
        transport_factory: Optional[TransportFactory] = None,
        login: Optional[PasswordLogin] = None,
    ):
        self.config = config
        self.token_client = token_client or TokenEndpointClient()
        self.transport_factory = transport_factory or _default_transport
        self.login = login or password_login

    @property
    def method(self) -> AuthMethod:
        return select_auth_method(self.config)

    async def authenticate(self) -> SalesforceSession:
        """Authenticate with the configured method.

        Raises:
            SalesforceConfigurationError: Incomplete configuration
            SalesforceAuthenticationError: Credentials rejected
            SalesforceTransportError: Network failure
        """
        method = select_auth_method(self.config)
        metrics = get_metrics()

        with with_correlation(connection=self.config.name, auth_method=method.value):
            logger.debug("Authenticating")
            try:
                if method == AuthMethod.ACCESS_TOKEN:
                    access_token, instance_url = self.config.access_token, self.config.instance_url
                elif method == AuthMethod.REFRESH_TOKEN:
                    access_token, instance_url = await self._refresh_token_flow()
                elif method == AuthMethod.JWT:
                    access_token, instance_url = await self._jwt_flow()
                else:
                    access_token, instance_url = await self._password_flow()
            except SalesforceError as e:
                metrics.record_auth_failure(method.value)
                logger.warning("Authentication failed", extra_fields={"error": str(e)})
                raise

            metrics.record_authentication(method.value)
            logger.info("Authenticated", extra_fields={"instance_url": instance_url})

        client_id = self.config.effective_client_id
        return SalesforceSession(
            access_token=access_token,
            instance_url=instance_url,
            api_version=self.config.api_version,
            client_id=client_id,
            auth_method=method,
            transport=self.transport_factory(instance_url, access_token, self.config.api_version, client_id),
        )

    async def _exchange(self, url: str, form: Dict[str, str], method: AuthMethod) -> Tuple[str, str]:
        """POST a token grant and pull access_token / instance_url from the reply."""
        result = await self.token_client.post_form(url, form)

        # REST-style error bodies are a list of {errorCode, message}
        if isinstance(result, list):
            first = result[0] if result and isinstance(result[0], dict) else {}
            raise SalesforceAuthenticationError(
                f"Salesforce OAuth error: {first.get('errorCode', 'UNKNOWN')}: {first.get('message', '')}",
                method=method.value,
            )
        if not isinstance(result, dict):
            raise SalesforceTransportError("Token response is not a JSON object")

        if "error" in result:
            raise SalesforceAuthenticationError(
                f"Salesforce OAuth error: {result['error']}: {result.get('error_description', '')}",
                method=method.value,
            )

        access_token = result.get("access_token")
        instance_url = result.get("instance_url")
        if not access_token:
            raise SalesforceTransportError("Token response missing access_token")
        if not instance_url:
            if method == AuthMethod.REFRESH_TOKEN:
                instance_url = self.config.instance_url
            else:
                raise SalesforceTransportError("Token response missing instance_url")
        return access_token, instance_url.rstrip("/")

    async def _refresh_token_flow(self) -> Tuple[str, str]:
        # The refresh token itself is never rotated here
        form = {
            "grant_type": "refresh_token",
            "refresh_token": self.config.refresh_token,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }
        url = f"{self.config.instance_url}{TOKEN_PATH}"
        return await self._exchange(url, form, AuthMethod.REFRESH_TOKEN)

    async def _jwt_flow(self) -> Tuple[str, str]:
        pem = load_private_key(self.config.private_key, self.config.private_key_file)
        audience = login_url(self.config.url)
        assertion = build_jwt_assertion(self.config.client_id, self.config.username, audience, pem)
        form = {"grant_type": JWT_BEARER_GRANT, "assertion": assertion}
        return await self._exchange(f"{audience}{TOKEN_PATH}", form, AuthMethod.JWT)

    async def _password_flow(self) -> Tuple[str, str]:
        # Security token is optional when the caller's IP is trusted by the org
        return await self.login(
            url=self.config.instance_url,
            username=self.config.username,
            password=self.config.password,
            security_token=self.config.token or "",
            api_version=self.config.api_version,
            client_id=self.config.effective_client_id,
        )
