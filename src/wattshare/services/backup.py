"""Client for manual cloud backups on a JSON hosting service."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any

import aiohttp

from wattshare.core.snapshot import LedgerSnapshot, decode_snapshot, loads, snapshot_to_dict

logger = logging.getLogger(__name__)

_URL_ID_PATTERNS = (
    re.compile(r"/api/json/([a-zA-Z0-9]+)"),
    re.compile(r"/get/([a-zA-Z0-9]+)"),
)


class BackupError(Exception):
    """Custom exception for backup failures."""


class BackupNotFoundError(BackupError):
    """No backup exists under the given id."""


@dataclass(frozen=True)
class BackupHandle:
    """Where a backup lives and the key needed to overwrite it."""

    backup_id: str
    edit_key: str | None


def extract_backup_id(value: str) -> str:
    """Accepts either a bare id or a pasted hosting URL and returns the id."""
    value = value.strip()
    for pattern in _URL_ID_PATTERNS:
        match = pattern.search(value)
        if match:
            return match.group(1)
    return value


class BackupService:
    """Saves and loads ledger snapshots to and from the hosting API."""

    def __init__(
        self,
        api_url: str,
        timeout_seconds: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self._api_url = api_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        session = self._get_session()
        try:
            async with session.request(method, url, timeout=self._timeout, **kwargs) as response:
                if response.status == 404:
                    raise BackupNotFoundError("Backup not found. Check the backup id.")
                if response.status >= 400:
                    raise BackupError(f"Backup service answered with status {response.status}.")
                return await response.text()
        except asyncio.TimeoutError as exc:
            raise BackupError("The backup service did not answer in time.") from exc
        except aiohttp.ClientError as exc:
            raise BackupError(f"Could not reach the backup service: {exc}") from exc

    async def save(
        self,
        snapshot: LedgerSnapshot,
        backup_id: str | None = None,
        edit_key: str | None = None,
    ) -> BackupHandle:
        """
        Uploads a snapshot.

        Without ``backup_id`` a new backup is created and its id and edit
        key are returned. Overwriting an existing backup needs its edit key.
        """
        payload = json.dumps(snapshot_to_dict(snapshot), ensure_ascii=False)

        if backup_id:
            backup_id = extract_backup_id(backup_id)
            if not edit_key:
                raise BackupError("An edit key is required to update an existing backup.")
            await self._request(
                "PUT",
                f"{self._api_url}/{backup_id}",
                json={"editKey": edit_key, "data": payload},
            )
            logger.info(f"Backup {backup_id} updated with {len(snapshot.bills)} bills.")
            return BackupHandle(backup_id=backup_id, edit_key=edit_key)

        body = await self._request(
            "POST",
            f"{self._api_url}/save",
            data=payload,
            headers={"Content-Type": "application/json"},
        )
        try:
            created = json.loads(body)
            handle = BackupHandle(backup_id=created["id"], edit_key=created.get("editKey"))
        except (ValueError, KeyError, TypeError) as exc:
            raise BackupError("Backup service returned an unexpected response.") from exc
        logger.info(f"Backup {handle.backup_id} created with {len(snapshot.bills)} bills.")
        return handle

    async def load(self, backup_id: str) -> LedgerSnapshot:
        """
        Downloads and validates a backup.

        Raises ``MalformedBackupError`` when the document does not have the
        expected shape; nothing is applied to any ledger here.
        """
        backup_id = extract_backup_id(backup_id)
        if not backup_id:
            raise BackupError("A backup id is required.")

        body = await self._request("GET", f"{self._api_url}/{backup_id}/raw")
        try:
            data = loads(body)
            # Some backups were stored as a JSON string holding the document.
            if isinstance(data, str):
                data = loads(data)
        except ValueError as exc:
            raise BackupError("Backup content is not valid JSON.") from exc

        snapshot = decode_snapshot(data)
        logger.info(f"Backup {backup_id} loaded with {len(snapshot.bills)} bills.")
        return snapshot
