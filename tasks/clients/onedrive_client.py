import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from django.conf import settings
from requests.exceptions import HTTPError, RequestException

from dispatch_core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.microsoft.com/v1.0"
TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
DELEGATED_SCOPE = "offline_access files.readwrite openid profile"
APP_SCOPE = "https://graph.microsoft.com/.default"

BACKOFF_FACTOR = 2
RETRY_DELAY_SECONDS = 1
RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class OneDriveClient:
    """
    Archives POD documents in OneDrive through Microsoft Graph.

    With a refresh token configured the delegated flow is used and files
    land in the signed-in user's drive (/me/drive). Otherwise the app-only
    client-credentials flow uploads to ONEDRIVE_USER_ID's drive.
    """

    def __init__(self,
                 client_id: Optional[str] = None,
                 client_secret: Optional[str] = None,
                 tenant_id: Optional[str] = None,
                 refresh_token: Optional[str] = None,
                 redirect_uri: Optional[str] = None,
                 user_id: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.client_id = client_id or settings.ONEDRIVE_CLIENT_ID
        self.client_secret = client_secret or settings.ONEDRIVE_CLIENT_SECRET
        self.tenant_id = tenant_id or settings.ONEDRIVE_TENANT_ID
        self.refresh_token = refresh_token or settings.ONEDRIVE_REFRESH_TOKEN
        self.redirect_uri = redirect_uri or settings.ONEDRIVE_REDIRECT_URI
        self.user_id = user_id or settings.ONEDRIVE_USER_ID
        self.session = session or requests.Session()
        self.max_retries = settings.ONEDRIVE_MAX_RETRIES

    @property
    def uses_delegated_flow(self) -> bool:
        return bool(self.refresh_token)

    def _drive_root(self) -> str:
        if self.uses_delegated_flow:
            return f"{GRAPH_URL}/me/drive"
        if not self.user_id:
            raise UpstreamError("ONEDRIVE_USER_ID is required for app-only uploads")
        return f"{GRAPH_URL}/users/{self.user_id}/drive"

    def get_access_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise UpstreamError("ONEDRIVE_CLIENT_ID and ONEDRIVE_CLIENT_SECRET must be set")

        data = {'client_id': self.client_id, 'client_secret': self.client_secret}
        if self.uses_delegated_flow:
            url = TOKEN_URL.format(tenant='common')
            data.update(grant_type='refresh_token', refresh_token=self.refresh_token, scope=DELEGATED_SCOPE)
            if self.redirect_uri:
                data['redirect_uri'] = self.redirect_uri
        else:
            if not self.tenant_id:
                raise UpstreamError("ONEDRIVE_TENANT_ID is required for app-only uploads")
            url = TOKEN_URL.format(tenant=self.tenant_id)
            data.update(grant_type='client_credentials', scope=APP_SCOPE)

        payload = self._request('post', url, data=data, timeout=settings.ONEDRIVE_TOKEN_TIMEOUT_SECONDS)
        token = payload.get('access_token')
        if not token:
            raise UpstreamError("Token endpoint returned no access_token")
        return token

    def upload_pdf(self, content: bytes, path: str) -> str:
        """
        Upload ``content`` to ``path`` (relative to the drive root) and
        return an anonymous view link for it.
        """
        token = self.get_access_token()
        drive_root = self._drive_root()
        headers = {'Authorization': f'Bearer {token}'}

        item = self._request(
            'put',
            f"{drive_root}/root:/{quote(path)}:/content",
            data=content,
            headers={**headers, 'Content-Type': 'application/pdf'},
            timeout=settings.ONEDRIVE_UPLOAD_TIMEOUT_SECONDS,
        )
        item_id = item.get('id')
        if not item_id:
            raise UpstreamError("Upload response did not include an item id", details=item)

        link = self._request(
            'post',
            f"{drive_root}/items/{item_id}/createLink",
            json={'type': 'view', 'scope': 'anonymous'},
            headers=headers,
            timeout=settings.ONEDRIVE_TOKEN_TIMEOUT_SECONDS,
        )
        web_url = (link.get('link') or {}).get('webUrl')
        if not web_url:
            raise UpstreamError("createLink response did not include a webUrl", details=link)

        logger.info(f"Uploaded POD to OneDrive: {path}")
        return web_url

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Send a Graph/token request, retrying rate limits, 5xx and transport errors."""
        last_error = None
        for attempt in range(self.max_retries):
            try:
                response = self.session.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()
            except HTTPError as http_err:
                status = http_err.response.status_code if http_err.response is not None else None
                logger.error(f"OneDrive HTTP error: {http_err} - Status: {status}")
                last_error = http_err
                if status not in RETRYABLE_STATUS:
                    break
            except ValueError as json_err:
                # requests raises a JSONDecodeError that is also a RequestException
                logger.error(f"OneDrive returned a non-JSON body: {json_err}")
                raise UpstreamError("OneDrive returned an unreadable response", details=str(json_err))
            except RequestException as req_err:
                logger.error(f"OneDrive request exception: {req_err}")
                last_error = req_err

            if attempt < self.max_retries - 1:
                sleep_time = RETRY_DELAY_SECONDS * (BACKOFF_FACTOR ** attempt)
                logger.info(f"Retrying OneDrive request in {sleep_time:.2f} seconds...")
                time.sleep(sleep_time)

        raise UpstreamError(f"OneDrive request to {url} failed", details=str(last_error))
