"""Session-oriented remote drive client contract."""
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, TypeVar

from .errors import DriveError
from .query import in_parent, join, name_equals, not_trashed
from .types import JSON_MIME_TYPE, AccountInfo, AuthState, DriveFile, RemoteSession

LOGGER = logging.getLogger("attendance.drive")

T = TypeVar("T")


class DriveClient:
    """Authentication state plus best-effort file operations.

    Subclasses implement the underscore-prefixed hooks and raise
    :class:`DriveError` on failure. The public methods never raise: data
    operations attempt an implicit sign-in and degrade to ``None``, ``False``
    or an empty list so background callers can treat remote trouble as a
    skipped step.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._state = AuthState.UNAUTHENTICATED
        self._account: Optional[AccountInfo] = None
        self._initialized = False

    # ------------------------------------------------------------------
    def _initialize(self) -> None:
        raise NotImplementedError

    def _authenticate(self) -> AccountInfo:
        raise NotImplementedError

    def _revoke(self) -> None:
        return None

    def _create_folder(self, name: str, parent_id: Optional[str]) -> str:
        raise NotImplementedError

    def _upload_file(self, name: str, content: bytes, mime_type: str, folder_id: Optional[str]) -> str:
        raise NotImplementedError

    def _update_file(self, file_id: str, content: bytes, mime_type: str) -> None:
        raise NotImplementedError

    def _list_files(self, query: str) -> List[DriveFile]:
        raise NotImplementedError

    def _download_file(self, file_id: str) -> bytes:
        raise NotImplementedError

    def _delete_file(self, file_id: str) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def session(self) -> RemoteSession:
        with self._lock:
            return RemoteSession(authenticated=self.is_signed_in(), account=self._account)

    def initialize(self) -> bool:
        with self._lock:
            if self._initialized:
                return True
            try:
                self._initialize()
            except DriveError as exc:
                LOGGER.error("drive initialize failed: %s", exc)
                return False
            self._initialized = True
            LOGGER.info("drive client initialized")
            return True

    def sign_in(self) -> bool:
        with self._lock:
            if not self.initialize():
                return False
            if self._state is AuthState.AUTHENTICATED:
                return True
            self._state = AuthState.AUTHENTICATING
            try:
                account = self._authenticate()
            except DriveError as exc:
                self._state = AuthState.UNAUTHENTICATED
                self._account = None
                LOGGER.error("drive sign-in failed: %s", exc)
                return False
            self._account = account
            self._state = AuthState.AUTHENTICATED
            LOGGER.info("drive signed in as %s", account.email or account.id)
            return True

    def sign_out(self) -> None:
        with self._lock:
            if self._state is not AuthState.AUTHENTICATED:
                self._state = AuthState.UNAUTHENTICATED
                return
            try:
                self._revoke()
            except DriveError as exc:
                LOGGER.warning("drive sign-out revoke failed: %s", exc)
            self._state = AuthState.UNAUTHENTICATED
            self._account = None
            LOGGER.info("drive signed out")

    def is_signed_in(self) -> bool:
        return self._state is AuthState.AUTHENTICATED

    def user_info(self) -> Optional[AccountInfo]:
        if not self.is_signed_in():
            return None
        return self._account

    def _mark_signed_out(self) -> None:
        with self._lock:
            self._state = AuthState.UNAUTHENTICATED
            self._account = None

    # ------------------------------------------------------------------
    def _call(self, operation: str, default: T, func: Callable[[], T]) -> T:
        if not self.is_signed_in() and not self.sign_in():
            LOGGER.warning("drive %s skipped: not signed in", operation)
            return default
        try:
            return func()
        except DriveError as exc:
            LOGGER.error("drive %s failed: %s", operation, exc)
            return default

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> Optional[str]:
        return self._call("create_folder", None, lambda: self._create_folder(name, parent_id))

    def upload_file(
        self,
        name: str,
        content: bytes,
        mime_type: str = JSON_MIME_TYPE,
        folder_id: Optional[str] = None,
    ) -> Optional[str]:
        return self._call("upload_file", None, lambda: self._upload_file(name, content, mime_type, folder_id))

    def update_file(self, file_id: str, content: bytes, mime_type: str = JSON_MIME_TYPE) -> bool:
        def _run() -> bool:
            self._update_file(file_id, content, mime_type)
            return True

        return self._call("update_file", False, _run)

    def search_files(self, folder_id: Optional[str] = None, query: Optional[str] = None) -> Optional[List[DriveFile]]:
        """Return ``None`` instead of ``[]`` when the listing itself failed."""

        search = join(in_parent(folder_id) if folder_id else None, query, not_trashed())

        def _run() -> List[DriveFile]:
            files = self._list_files(search)
            return sorted(files, key=lambda item: item.modified_at, reverse=True)

        return self._call("list_files", None, _run)

    def list_files(self, folder_id: Optional[str] = None, query: Optional[str] = None) -> List[DriveFile]:
        return self.search_files(folder_id, query) or []

    def download_file(self, file_id: str) -> Optional[bytes]:
        return self._call("download_file", None, lambda: self._download_file(file_id))

    def delete_file(self, file_id: str) -> bool:
        def _run() -> bool:
            self._delete_file(file_id)
            return True

        return self._call("delete_file", False, _run)

    def find_file_by_name(self, name: str, folder_id: Optional[str] = None) -> Optional[DriveFile]:
        files = self.list_files(folder_id, name_equals(name))
        return files[0] if files else None


__all__ = ["DriveClient"]
