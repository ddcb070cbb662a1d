"""Salesforce connection configuration.

Configuration is loaded once per connection and never mutated. Exactly one
authentication method is used, chosen by precedence over which credential
fields are set (see sf_auth.select_auth_method).

Environment variables (SalesforceConfig.from_env):
- SALESFORCE_URL: Instance URL (e.g. "https://mycompany.my.salesforce.com")
- SALESFORCE_USERNAME / SALESFORCE_PASSWORD / SALESFORCE_TOKEN: SOAP login
- SALESFORCE_ACCESS_TOKEN: Pre-issued bearer token
- SALESFORCE_REFRESH_TOKEN: OAuth2 refresh token
- SALESFORCE_CLIENT_ID / SALESFORCE_CLIENT_SECRET: Connected app credentials
- SALESFORCE_PRIVATE_KEY / SALESFORCE_PRIVATE_KEY_FILE: JWT bearer signing key
- SALESFORCE_API_VERSION: REST API version (default "59.0")
- SALESFORCE_OBJECTS: Comma-separated object types to expose
- SALESFORCE_NAMING_CONVENTION: "snake_case" (default) or "api_native"
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from dotenv import load_dotenv

from connectors.salesforce.sf_errors import SalesforceConfigurationError
from connectors.salesforce.sf_naming import NamingConvention

DEFAULT_API_VERSION = "59.0"
DEFAULT_CLIENT_ID = "sfql"

ENV_PREFIX = "SALESFORCE_"


def _parse_objects(value: Union[None, str, Iterable[str]]) -> Tuple[str, ...]:
    """Accept a list or a comma-separated string of object types."""
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return tuple(item.strip() for item in items if item and item.strip())


def _parse_convention(value: Union[None, str, NamingConvention]) -> NamingConvention:
    if value is None or value == "":
        return NamingConvention.SNAKE_CASE
    try:
        return NamingConvention(value)
    except ValueError:
        allowed = [c.value for c in NamingConvention]
        raise SalesforceConfigurationError(
            f"Invalid naming_convention {value!r}. Allowed: {allowed}"
        )


@dataclass(frozen=True)
class SalesforceConfig:
    """Credentials and behaviour for one Salesforce connection.

    Attributes:
        name: Connection name, used in the session cache key and logs
        url: Instance URL
        username: Login username (password and JWT flows)
        password: Login password
        token: Security token appended to the password
        access_token: Pre-issued bearer token (cannot be refreshed)
        refresh_token: OAuth2 refresh token
        client_id: Connected app consumer key
        client_secret: Connected app consumer secret
        private_key: PEM private key for the JWT bearer flow
        private_key_file: Path to a PEM private key
        api_version: REST API version without the "v"
        objects: Object types exposed as tables in addition to the static ones
        naming_convention: Column naming convention
    """
    name: str = "salesforce"
    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    token: Optional[str] = field(default=None, repr=False)
    access_token: Optional[str] = field(default=None, repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    client_id: Optional[str] = None
    client_secret: Optional[str] = field(default=None, repr=False)
    private_key: Optional[str] = field(default=None, repr=False)
    private_key_file: Optional[str] = None
    api_version: str = DEFAULT_API_VERSION
    objects: Tuple[str, ...] = ()
    naming_convention: NamingConvention = NamingConvention.SNAKE_CASE

    @property
    def identity(self) -> str:
        """Key the connection's session is cached under."""
        return f"{self.name}:{self.url or ''}:{self.username or ''}"

    @property
    def effective_client_id(self) -> str:
        return self.client_id or DEFAULT_CLIENT_ID

    @property
    def instance_url(self) -> Optional[str]:
        """URL without a trailing slash."""
        return self.url.rstrip("/") if self.url else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SalesforceConfig":
        """Build a config from a host-provided mapping.

        Unknown keys raise SalesforceConfigurationError so that typos in a
        connection block do not silently fall through to another auth method.
        """
        known = set(cls.__dataclass_fields__.keys())
        unknown = sorted(set(data.keys()) - known)
        if unknown:
            raise SalesforceConfigurationError(f"Unknown configuration keys: {unknown}")

        values = {k: v for k, v in data.items() if v is not None}
        values["objects"] = _parse_objects(data.get("objects"))
        values["naming_convention"] = _parse_convention(data.get("naming_convention"))
        values["api_version"] = str(data.get("api_version") or DEFAULT_API_VERSION)
        return cls(**values)

    @classmethod
    def from_env(cls, name: str = "salesforce", env_file: Optional[Path] = None) -> "SalesforceConfig":
        """Build a config from SALESFORCE_* environment variables.

        A .env file is loaded first when present. Variables already set in
        the process environment win over the file.
        """
        env_path = env_file or Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        def env(key: str) -> Optional[str]:
            value = os.getenv(ENV_PREFIX + key)
            return value if value else None

        return cls.from_dict({
            "name": name,
            "url": env("URL"),
            "username": env("USERNAME"),
            "password": env("PASSWORD"),
            "token": env("TOKEN"),
            "access_token": env("ACCESS_TOKEN"),
            "refresh_token": env("REFRESH_TOKEN"),
            "client_id": env("CLIENT_ID"),
            "client_secret": env("CLIENT_SECRET"),
            "private_key": env("PRIVATE_KEY"),
            "private_key_file": env("PRIVATE_KEY_FILE"),
            "api_version": env("API_VERSION"),
            "objects": env("OBJECTS"),
            "naming_convention": env("NAMING_CONVENTION"),
        })
