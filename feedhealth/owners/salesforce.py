"""
Salesforce Owner Resolver
=========================

Looks up the Client Success Manager responsible for a magazine. The
access token is exchanged from a long-lived refresh token once and
refreshed when Salesforce rejects it.
"""

from dataclasses import dataclass
from typing import Optional

import requests

from ..config.settings import OwnerSettings
from ..utils.exceptions import CredentialError, ErrorCode, OwnerLookupError
from ..utils.logging import get_logger_for_component

OWNER_QUERY = (
    "SELECT Client_Success_Manager__r.Email from Magazine__c "
    "where Inactive__c = false AND Name like '{magazine}'"
)


@dataclass
class OwnerLookupResult:
    """What the grouper needs from a resolver query."""
    magazine: str
    total_size: int
    owner_email: Optional[str] = None


def escape_soql_literal(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_owner_query(magazine: str) -> str:
    return OWNER_QUERY.format(magazine=escape_soql_literal(magazine))


def _first_owner_email(records) -> Optional[str]:
    if not records:
        return None
    manager = records[0].get("Client_Success_Manager__r") or {}
    return manager.get("Email") or manager.get("email")


class SalesforceOwnerResolver:
    """Resolves magazine names to owner emails through the Salesforce REST API."""

    def __init__(self, settings: OwnerSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()
        self.logger = get_logger_for_component("owner_resolver")
        self._access_token: Optional[str] = None

    @property
    def query_url(self) -> str:
        return f"{self.settings.instance_url or ''}v{self.settings.api_version}/query/"

    def authenticate(self) -> str:
        """Exchange the refresh token for an access token.

        Raises:
            CredentialError: if the exchange fails for any reason
        """
        data = {
            "grant_type": "refresh_token",
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
            "refresh_token": self.settings.refresh_token,
        }

        try:
            response = self.session.post(
                self.settings.token_url, data=data, timeout=self.settings.request_timeout
            )
        except requests.RequestException as e:
            raise CredentialError(f"Access token request failed: {e}") from e

        if response.status_code // 100 != 2:
            raise CredentialError(
                f"Access token request rejected with HTTP {response.status_code}",
                context={"status": response.status_code, "body": response.text[:500]},
            )

        try:
            token = response.json()["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise CredentialError(f"Access token response could not be decoded: {e}") from e

        if not token:
            raise CredentialError("Access token response contained an empty token")

        self._access_token = token
        self.logger.debug("Obtained owner resolver access token")
        return token

    def lookup(self, magazine: str) -> OwnerLookupResult:
        """Query the owners of a magazine.

        Raises:
            CredentialError: token exchange failed
            OwnerLookupError: the query failed (recoverable unless the
                response itself is malformed or the request is rejected)
        """
        token = self._access_token or self.authenticate()

        try:
            response = self.session.get(
                self.query_url,
                params={"q": build_owner_query(magazine)},
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
                timeout=self.settings.request_timeout,
            )
        except requests.RequestException as e:
            raise OwnerLookupError(f"Owner query failed for {magazine}: {e}", magazine=magazine) from e

        if response.status_code == 401:
            # Expired token, the retry re-authenticates
            self._access_token = None
            raise OwnerLookupError(
                f"Owner query for {magazine} unauthorized, token refreshed on next attempt",
                magazine=magazine,
            )

        if response.status_code // 100 != 2:
            raise OwnerLookupError(
                f"Owner query for {magazine} returned HTTP {response.status_code}: {response.text[:500]}",
                magazine=magazine,
                recoverable=response.status_code >= 500 or response.status_code == 429,
            )

        try:
            payload = response.json()
            total_size = int(payload.get("totalSize", 0))
            owner_email = _first_owner_email(payload.get("records")) if total_size == 1 else None
        except (ValueError, TypeError, AttributeError) as e:
            raise OwnerLookupError(
                f"Owner query response for {magazine} could not be decoded: {e}",
                magazine=magazine,
                error_code=ErrorCode.OWNER_INVALID_RESPONSE,
                recoverable=False,
            ) from e

        return OwnerLookupResult(
            magazine=magazine,
            total_size=total_size,
            owner_email=owner_email,
        )
