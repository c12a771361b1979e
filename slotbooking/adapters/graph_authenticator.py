"""
Microsoft Graph API authentication using MSAL (client credentials flow).
"""

from __future__ import annotations

import logging
from typing import Optional

import msal

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class GraphAuthenticator:
    """
    Obtains application tokens for Microsoft Graph.

    The booking service runs unattended, so it authenticates as the Azure AD
    application itself. MSAL keeps issued tokens in its in-memory cache and
    returns them until they expire.
    """

    SCOPES = ["https://graph.microsoft.com/.default"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        client_secret: str,
        authority_url: str | None = None,
    ):
        """
        Initialize the authenticator.

        Args:
            client_id: Azure AD application (client) ID
            tenant_id: Azure AD tenant ID
            client_secret: Application client secret
            authority_url: Optional custom authority URL
        """
        self.client_id = client_id
        self.tenant_id = tenant_id
        self._client_secret = client_secret
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"
        self._app: Optional[msal.ConfidentialClientApplication] = None

    def _application(self) -> msal.ConfidentialClientApplication:
        # Created lazily: MSAL contacts the authority when it is constructed
        if self._app is None:
            try:
                self._app = msal.ConfidentialClientApplication(
                    client_id=self.client_id,
                    client_credential=self._client_secret,
                    authority=self.authority,
                )
            except Exception as exc:
                raise AuthenticationError(f"Failed to initialise MSAL client: {exc}") from exc
        return self._app

    def get_access_token(self) -> str:
        """
        Get a valid access token, from the MSAL cache or a new request.

        Raises:
            AuthenticationError: If authentication fails
        """
        result = self._application().acquire_token_for_client(scopes=self.SCOPES)

        if not result or "access_token" not in result:
            error = (result or {}).get("error_description", "Unknown error")
            raise AuthenticationError(f"Authentication failed: {error}")

        return result["access_token"]
