"""
Imgur API client for screenshot-imgur-sync.

This module handles all interactions with the Imgur API: exchanging an
authorization code for tokens, refreshing the short-lived access token,
and uploading queued images.

Uploads are queued with ``add_to_queue``. When the user is logged in and
the access token has expired, a single token refresh is started and the
queue is drained once it completes. Network calls run on a worker pool,
so none of the public methods block on the network.
"""

import os
import time
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

import requests

from config import config
from settings_store import SettingsStore, USERNAME_KEY, REFRESH_TOKEN_KEY


logger = logging.getLogger(__name__)

# All file types accepted by the Imgur API
ALLOWED_FILE_TYPES = ('jpg', 'jpeg', 'gif', 'png', 'apng', 'tiff', 'bmp', 'pdf', 'xcf')

ACCESS_TOKEN_LIFETIME = 60 * 60  # seconds, Imgur access tokens are valid for 1 hour
DEFAULT_DESCRIPTION = 'Uploaded by mac2imgur! (https://mileswd.com/mac2imgur)'
UPLOAD_CANCELLED_ERROR = 'The upload was cancelled because the uploader is shutting down'


class ImgurAuthError(Exception):
    """Imgur did not issue the requested tokens."""


@dataclass
class UploadRequest:
    """A single image waiting to be uploaded.

    After the upload attempt exactly one of ``link`` or ``error`` is set and
    ``callback`` is invoked once with the request itself.
    """
    image_path: str
    image_data: bytes
    callback: Callable[['UploadRequest'], None]
    description: str = ''
    link: Optional[str] = None
    error: Optional[str] = None


def is_allowed_file_type(path: Union[str, Path]) -> bool:
    """Check whether the file extension is one Imgur accepts."""
    extension = os.path.splitext(str(path))[1].lstrip('.').lower()
    return extension in ALLOWED_FILE_TYPES


class ImgurClient:
    """Client for interacting with the Imgur API."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        store: Optional[SettingsStore] = None,
        api_url: Optional[str] = None,
        timeout: Optional[int] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        """
        Initialize the Imgur client.

        Args:
            client_id: Imgur application client id
            client_secret: Imgur application client secret
            store: Persistent store for the username and refresh token
            api_url: API base URL (uses config default if None)
            timeout: HTTP timeout in seconds (uses config default if None)
            executor: Executor that runs network calls (a thread pool is created if None)
        """
        self.logger = logging.getLogger(__name__)
        self.client_id = client_id
        self.client_secret = client_secret
        self.store = store or SettingsStore()
        self.api_url = (api_url or config.base_url).rstrip('/') + '/'
        self.timeout = timeout or config.upload_timeout

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=config.upload_workers,
            thread_name_prefix='imgur-upload'
        )

        # Guards the queue, the refresh flag and the access token with its expiry
        self._lock = threading.RLock()
        self._upload_queue: List[UploadRequest] = []
        self._authentication_in_progress = False
        self._access_token: Optional[str] = None
        self._token_expiry: Optional[float] = None

    @property
    def token_url(self) -> str:
        """The OAuth2 token endpoint."""
        return f"{self.api_url}oauth2/token"

    @property
    def upload_url(self) -> str:
        """The image upload endpoint."""
        return f"{self.api_url}3/upload"

    @property
    def authorization_url(self) -> str:
        """URL the user visits to obtain a PIN for ``authenticate``."""
        return f"{self.api_url}oauth2/authorize?client_id={self.client_id}&response_type=pin"

    @property
    def username(self) -> Optional[str]:
        """The username of the currently authenticated user, if any."""
        return self.store.get(USERNAME_KEY)

    @property
    def is_authenticated(self) -> bool:
        """True when a username and refresh token are both stored."""
        return self.store.get(USERNAME_KEY) is not None and self.store.get(REFRESH_TOKEN_KEY) is not None

    @property
    def access_token(self) -> Optional[str]:
        with self._lock:
            return self._access_token

    @property
    def access_token_is_valid(self) -> bool:
        """True while the cached access token is inside its one hour lifetime."""
        with self._lock:
            if self._access_token is None or self._token_expiry is None:
                return False
            return time.time() < self._token_expiry

    def _set_access_token(self, token: Optional[str]) -> None:
        with self._lock:
            self._access_token = token
            self._token_expiry = time.time() + ACCESS_TOKEN_LIFETIME

    def _notify(self, callback: Optional[Callable], *args: Any) -> None:
        """Invoke a user callback, logging anything it raises."""
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            self.logger.error(f"Callback {callback!r} raised: {e}", exc_info=True)

    def _token_request(self, parameters: dict) -> dict:
        """
        POST to the token endpoint and return the decoded JSON body.

        Raises:
            ImgurAuthError: On network errors, non-2xx responses or non-JSON bodies
        """
        try:
            response = requests.post(self.token_url, json=parameters, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise ImgurAuthError(f"Token request timed out after {self.timeout} seconds") from e
        except requests.exceptions.RequestException as e:
            raise ImgurAuthError(f"Network error during token request: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ImgurAuthError(f"Token request failed with status {response.status_code}")

        content_type = response.headers.get('content-type', '')
        if 'application/json' not in content_type:
            raise ImgurAuthError(f"Unexpected content type from token endpoint: {content_type!r}")

        try:
            payload = response.json()
        except ValueError as e:
            raise ImgurAuthError(f"Invalid JSON from token endpoint: {e}") from e

        if not isinstance(payload, dict):
            raise ImgurAuthError("Unexpected response from token endpoint")
        return payload

    def authenticate(
        self,
        code: str,
        on_success: Callable[[], None],
        on_failure: Optional[Callable[[ImgurAuthError], None]] = None,
    ) -> Future:
        """
        Exchange an authorization code (PIN) for Imgur tokens.

        On success the access token is cached, the username and refresh
        token are persisted and ``on_success`` is called. On failure
        ``on_failure`` receives the error. Returns immediately.
        """
        parameters = {
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'grant_type': 'authorization_code',
            'code': code,
        }
        return self._executor.submit(self._exchange_code, parameters, on_success, on_failure)

    def _exchange_code(self, parameters: dict, on_success, on_failure) -> None:
        try:
            payload = self._token_request(parameters)
            refresh_token = payload.get('refresh_token')
            if not isinstance(refresh_token, str):
                raise ImgurAuthError("Token response did not contain a refresh token")
        except ImgurAuthError as e:
            self.logger.error(f"An error occurred while attempting to obtain tokens from a pin: {e}")
            self._notify(on_failure, e)
            return

        access_token = payload.get('access_token')
        self._set_access_token(access_token if isinstance(access_token, str) else None)
        self.store.set(USERNAME_KEY, payload.get('account_username'))
        self.store.set(REFRESH_TOKEN_KEY, refresh_token)
        self.logger.info(f"Authenticated as Imgur user: {payload.get('account_username')}")
        self._notify(on_success)

    def request_access_token(
        self,
        on_success: Callable[[], None],
        on_failure: Optional[Callable[[ImgurAuthError], None]] = None,
    ) -> Future:
        """
        Obtain a new access token using the persisted refresh token.

        A failed refresh keeps whatever access token is currently cached.
        """
        return self._executor.submit(self._refresh_access_token, on_success, on_failure)

    def _refresh_access_token(self, on_success, on_failure) -> None:
        try:
            refresh_token = self.store.get(REFRESH_TOKEN_KEY)
            if refresh_token is None:
                raise ImgurAuthError("No refresh token is stored")

            payload = self._token_request({
                'client_id': self.client_id,
                'client_secret': self.client_secret,
                'grant_type': 'refresh_token',
                'refresh_token': refresh_token,
            })
            access_token = payload.get('access_token')
            if not isinstance(access_token, str):
                raise ImgurAuthError("Token response did not contain an access token")
        except ImgurAuthError as e:
            self.logger.error(f"An error occurred while requesting a new access token: {e}")
            self._notify(on_failure, e)
            return

        self._set_access_token(access_token)
        self.logger.debug("Obtained a new access token")
        self._notify(on_success)

    def delete_credentials(self) -> None:
        """Forget the logged-in account, including the cached access token."""
        self.store.remove(USERNAME_KEY, REFRESH_TOKEN_KEY)
        with self._lock:
            self._access_token = None
            self._token_expiry = None
        self.logger.info("Deleted Imgur credentials")

    def add_to_queue(self, upload: UploadRequest) -> None:
        """
        Queue an image for upload.

        If a token refresh is needed and none is running, one is started
        and the queue is drained when it finishes. If a refresh is already
        running, that refresh drains this request too.
        """
        with self._lock:
            self._upload_queue.append(upload)
            needs_token = self.is_authenticated and not self.access_token_is_valid
            if needs_token:
                if self._authentication_in_progress:
                    return
                self._authentication_in_progress = True

        if needs_token:
            self.logger.debug("Access token missing or expired, refreshing before upload")
            try:
                self.request_access_token(self._refresh_succeeded, self._refresh_failed)
            except RuntimeError as e:
                # The worker pool has been shut down
                self._refresh_failed(ImgurAuthError(f"The uploader is shutting down: {e}"))
        else:
            self.process_queue()

    def _refresh_succeeded(self) -> None:
        with self._lock:
            self._authentication_in_progress = False
        self.process_queue()

    def _refresh_failed(self, error: ImgurAuthError) -> None:
        with self._lock:
            self._authentication_in_progress = False
            pending, self._upload_queue = self._upload_queue, []

        for upload in pending:
            upload.error = f"Unable to obtain an Imgur access token: {error}"
            self._finish(upload)

    def process_queue(self) -> None:
        """Upload every queued image. The queue is emptied before any upload starts."""
        with self._lock:
            pending, self._upload_queue = self._upload_queue, []

        for index, upload in enumerate(pending):
            try:
                self._executor.submit(self.attempt_upload, upload)
            except RuntimeError as e:
                self.logger.error(f"Cannot start uploads, the worker pool has been shut down: {e}")
                for cancelled in pending[index:]:
                    cancelled.error = UPLOAD_CANCELLED_ERROR
                    self._finish(cancelled)
                return

    def _authorization_header(self) -> str:
        token = self.access_token
        if token and self.is_authenticated:
            return f"Client-Bearer {token}"
        return f"Client-ID {self.client_id}"

    def attempt_upload(self, upload: UploadRequest) -> None:
        """
        Upload a single image and report the outcome through its callback.

        Args:
            upload: The request to upload; its ``link`` or ``error`` is set
        """
        name = os.path.basename(upload.image_path)
        title, extension = os.path.splitext(name)

        files = {
            'image': (f".{extension.lstrip('.')}", upload.image_data, 'application/octet-stream')
        }
        data = {
            'title': title,
            'description': upload.description or DEFAULT_DESCRIPTION,
        }

        try:
            self.logger.info(f"Uploading image to Imgur: {upload.image_path}")
            response = requests.post(
                self.upload_url,
                files=files,
                data=data,
                headers={'Authorization': self._authorization_header()},
                timeout=self.timeout
            )
            self._handle_upload_response(upload, response)

        except requests.exceptions.Timeout:
            upload.error = f"The upload timed out after {self.timeout} seconds"

        except requests.exceptions.RequestException as e:
            upload.error = f"A network error occurred while uploading: {e}"

        except Exception as e:
            self.logger.error(f"Unexpected error uploading {name}: {e}", exc_info=True)
            upload.error = f"An unexpected error occurred while uploading: {e}"

        if upload.error:
            self.logger.error(f"An error occurred while attempting to upload {name}: {upload.error}")
        else:
            self.logger.info(f"Uploaded {name} to {upload.link}")

        self._finish(upload)

    def _handle_upload_response(self, upload: UploadRequest, response: requests.Response) -> None:
        try:
            payload = response.json()
        except ValueError:
            payload = None

        data = payload.get('data') if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            data = {}

        link = data.get('link')
        if 200 <= response.status_code < 300 and isinstance(link, str):
            # Update link provided by API to HTTPS if necessary
            if link.startswith('http:'):
                link = 'https:' + link[len('http:'):]
            upload.link = link
            return

        error = data.get('error')
        if isinstance(error, str):
            upload.error = f'Imgur responded with the following error: "{error}"'
        elif not 200 <= response.status_code < 300:
            upload.error = f"Imgur returned HTTP status {response.status_code}"
        else:
            upload.error = "Imgur returned an invalid response"

    def _finish(self, upload: UploadRequest) -> None:
        self._notify(upload.callback, upload)

    def close(self) -> None:
        """Wait for running network calls and release the worker pool."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)
