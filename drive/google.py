"""Drive v3 REST client built on ``requests``."""
from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

import requests

from .auth import TokenSource
from .client import DriveClient
from .errors import DriveAuthError, DriveError
from .types import FOLDER_MIME_TYPE, AccountInfo, DriveFile

LOGGER = logging.getLogger("attendance.drive.google")

_FILE_FIELDS = "id,name,mimeType,createdTime,modifiedTime,size"
_PAGE_SIZE = 1000


class GoogleDriveClient(DriveClient):
    """Talk to Google Drive through its JSON REST endpoints."""

    def __init__(
        self,
        token_source: Optional[TokenSource],
        *,
        api_url: str = "https://www.googleapis.com/drive/v3",
        upload_url: str = "https://www.googleapis.com/upload/drive/v3",
        discovery_url: Optional[str] = "https://www.googleapis.com/discovery/v1/apis/drive/v3/rest",
        timeout_s: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__()
        self._token_source = token_source
        self._api_url = api_url.rstrip("/")
        self._upload_url = upload_url.rstrip("/")
        self._discovery_url = discovery_url
        self._timeout = timeout_s
        self._http = session or requests.Session()
        self._token: Optional[str] = None
        self._discovery: Dict[str, Any] = {}

    @classmethod
    def from_settings(
        cls,
        drive_settings: Mapping[str, Any],
        token_source: Optional[TokenSource],
        *,
        session: Optional[requests.Session] = None,
    ) -> "GoogleDriveClient":
        return cls(
            token_source,
            api_url=str(drive_settings.get("api_url")),
            upload_url=str(drive_settings.get("upload_url")),
            discovery_url=drive_settings.get("discovery_url"),
            timeout_s=float(drive_settings.get("timeout_s") or 30),
            session=session,
        )

    # ------------------------------------------------------------------
    def _request(
        self,
        method: str,
        url: str,
        *,
        authorized: bool = True,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> requests.Response:
        merged: Dict[str, str] = dict(headers or {})
        if authorized:
            if not self._token:
                raise DriveAuthError("no active session token")
            merged["Authorization"] = f"Bearer {self._token}"
        try:
            response = self._http.request(method, url, headers=merged, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise DriveError(f"{method} {url} failed: {exc}") from exc
        if response.status_code == 401 and authorized:
            self._token = None
            if self._token_source is not None:
                self._token_source.invalidate()
            self._mark_signed_out()
            raise DriveAuthError(f"{method} {url} rejected the session token")
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise DriveError(f"{method} {url} returned {response.status_code}") from exc
        return response

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise DriveError("response was not valid JSON") from exc
        if not isinstance(payload, dict):
            raise DriveError("unexpected response payload")
        return payload

    # ------------------------------------------------------------------
    def _initialize(self) -> None:
        if not self._discovery_url:
            return
        response = self._request("GET", self._discovery_url, authorized=False)
        discovery = self._json(response)
        resources = discovery.get("resources")
        if not isinstance(resources, dict) or "files" not in resources:
            raise DriveError("discovery document does not describe the files resource")
        self._discovery = discovery

    def _authenticate(self) -> AccountInfo:
        if self._token_source is None:
            raise DriveAuthError("drive credentials are not configured")
        try:
            self._token = self._token_source.fetch_token(self._http)
        except requests.RequestException as exc:
            raise DriveAuthError(str(exc)) from exc
        response = self._request("GET", f"{self._api_url}/about", params={"fields": "user"})
        user = self._json(response).get("user") or {}
        return AccountInfo(
            id=str(user.get("permissionId") or ""),
            display_name=str(user.get("displayName") or ""),
            email=str(user.get("emailAddress") or ""),
        )

    def _revoke(self) -> None:
        token, self._token = self._token, None
        if token and self._token_source is not None:
            self._token_source.revoke(self._http, token)

    def _create_folder(self, name: str, parent_id: Optional[str]) -> str:
        metadata: Dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            metadata["parents"] = [parent_id]
        response = self._request("POST", f"{self._api_url}/files", params={"fields": "id"}, json=metadata)
        folder_id = self._json(response).get("id")
        if not folder_id:
            raise DriveError("folder create returned no id")
        LOGGER.info("drive folder created: %s", folder_id)
        return str(folder_id)

    def _upload_file(self, name: str, content: bytes, mime_type: str, folder_id: Optional[str]) -> str:
        metadata: Dict[str, Any] = {"name": name}
        if folder_id:
            metadata["parents"] = [folder_id]
        boundary = f"attendance-{uuid.uuid4().hex}"
        body = b"".join(
            [
                f"--{boundary}\r\n".encode("ascii"),
                b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
                json.dumps(metadata).encode("utf-8"),
                f"\r\n--{boundary}\r\n".encode("ascii"),
                f"Content-Type: {mime_type}\r\n\r\n".encode("ascii"),
                content,
                f"\r\n--{boundary}--".encode("ascii"),
            ]
        )
        response = self._request(
            "POST",
            f"{self._upload_url}/files",
            params={"uploadType": "multipart", "fields": "id"},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            data=body,
        )
        file_id = self._json(response).get("id")
        if not file_id:
            raise DriveError("upload returned no id")
        LOGGER.info("drive file uploaded: %s (%s)", name, file_id)
        return str(file_id)

    def _update_file(self, file_id: str, content: bytes, mime_type: str) -> None:
        self._request(
            "PATCH",
            f"{self._upload_url}/files/{file_id}",
            params={"uploadType": "media"},
            headers={"Content-Type": mime_type},
            data=content,
        )
        LOGGER.info("drive file updated: %s", file_id)

    def _list_files(self, query: str) -> List[DriveFile]:
        files: List[DriveFile] = []
        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {
                "q": query,
                "fields": f"nextPageToken,files({_FILE_FIELDS})",
                "orderBy": "modifiedTime desc",
                "pageSize": _PAGE_SIZE,
            }
            if page_token:
                params["pageToken"] = page_token
            payload = self._json(self._request("GET", f"{self._api_url}/files", params=params))
            for entry in payload.get("files") or []:
                if isinstance(entry, dict):
                    files.append(DriveFile.from_api(entry))
            page_token = payload.get("nextPageToken")
            if not page_token:
                return files

    def _download_file(self, file_id: str) -> bytes:
        response = self._request("GET", f"{self._api_url}/files/{file_id}", params={"alt": "media"})
        return response.content

    def _delete_file(self, file_id: str) -> None:
        self._request("DELETE", f"{self._api_url}/files/{file_id}")
        LOGGER.info("drive file deleted: %s", file_id)


__all__ = ["GoogleDriveClient"]
