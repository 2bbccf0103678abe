"""Credential resolution for QuickBooks Online calls.

Two policies decide which (access token, realm ID) pair governs a call:

- env: one fixed credential read from settings on first use and cached
- gateway: a fresh credential read from each call's HTTP headers

A resolver never writes anything to process state. The credential it returns
is handed straight to the QBOClient built for that call, so concurrent calls
from different tenants cannot see each other's tokens.
"""

import logging
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, SecretStr

from qbo_mcp.core.config import Settings, settings as default_settings
from qbo_mcp.core.errors import MissingCredentialsError

logger = logging.getLogger(__name__)


ACCESS_TOKEN_ENV = "QBO_ACCESS_TOKEN"
REALM_ID_ENV = "QBO_REALM_ID"
ACCESS_TOKEN_HEADER = "X-Qbo-Access-Token"
REALM_ID_HEADER = "X-Qbo-Realm-Id"


class TenantCredential(BaseModel):
    """Access token and realm (company) ID for one QuickBooks Online tenant."""

    model_config = ConfigDict(frozen=True)

    access_token: SecretStr
    realm_id: str


class CredentialResolver:
    """Base class for credential policies."""

    policy: str = ""

    def resolve(self, headers: Optional[Mapping[str, str]] = None) -> TenantCredential:
        """Return the credential governing a call.

        Args:
            headers: Transport-level headers of the inbound call, if any

        Raises:
            MissingCredentialsError: If the policy cannot produce both values
        """
        raise NotImplementedError


class FixedCredentialResolver(CredentialResolver):
    """Resolves every call to the process-wide credential from settings."""

    policy = "env"

    def __init__(self, config: Optional[Settings] = None):
        self._config = config or default_settings
        self._credential: Optional[TenantCredential] = None

    def resolve(self, headers: Optional[Mapping[str, str]] = None) -> TenantCredential:
        if self._credential is None:
            access_token = self._config.qbo_access_token
            realm_id = self._config.qbo_realm_id

            missing = []
            if not access_token:
                missing.append(ACCESS_TOKEN_ENV)
            if not realm_id:
                missing.append(REALM_ID_ENV)
            if missing:
                raise MissingCredentialsError(missing, source="environment")

            self._credential = TenantCredential(
                access_token=access_token,
                realm_id=realm_id,
            )
            logger.info("Loaded QuickBooks Online credentials from environment")

        return self._credential


class HeaderCredentialResolver(CredentialResolver):
    """Resolves each call from its own X-Qbo-* headers; nothing is cached."""

    policy = "gateway"

    def resolve(self, headers: Optional[Mapping[str, str]] = None) -> TenantCredential:
        # Header names are case-insensitive on the wire
        normalized = {k.lower(): v for k, v in (headers or {}).items()}
        access_token = normalized.get(ACCESS_TOKEN_HEADER.lower())
        realm_id = normalized.get(REALM_ID_HEADER.lower())

        missing = []
        if not access_token:
            missing.append(ACCESS_TOKEN_HEADER)
        if not realm_id:
            missing.append(REALM_ID_HEADER)
        if missing:
            raise MissingCredentialsError(missing, source="request headers")

        return TenantCredential(access_token=access_token, realm_id=realm_id)


def create_credential_resolver(
    policy: Optional[str] = None,
    config: Optional[Settings] = None,
) -> CredentialResolver:
    """Build the resolver for a policy name.

    Args:
        policy: "env" or "gateway"; defaults to the configured auth_mode
        config: Optional settings override

    Returns:
        CredentialResolver for the policy

    Raises:
        ValueError: If the policy name is not recognised
    """
    config = config or default_settings
    policy = policy or config.auth_mode

    if policy == FixedCredentialResolver.policy:
        return FixedCredentialResolver(config)
    if policy == HeaderCredentialResolver.policy:
        return HeaderCredentialResolver()
    raise ValueError(f"Unknown credential policy: {policy}")
