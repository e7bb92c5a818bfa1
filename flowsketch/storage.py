"""Persistence collaborators: diagram stores and image storage.

Two diagram stores share the :class:`DiagramStore` protocol. The Supabase
store keeps one ``diagrams`` row per user (the most recently updated row is
the one loaded and updated); the local store writes a single JSON file.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

import httpx

from .document import DiagramDocument
from .errors import PersistenceError, TransportError, ValidationError

logger = logging.getLogger(__name__)

DIAGRAMS_TABLE = "diagrams"
IMAGE_BUCKET = "diagram-images"
DEFAULT_TITLE = "Untitled Diagram"


@dataclass(frozen=True)
class Session:
    """An authenticated user for the remote collaborators."""

    user_id: Optional[str] = None
    access_token: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return bool(self.user_id and self.access_token)


class DiagramStore(Protocol):
    def save(
        self,
        document: DiagramDocument,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        ...

    def load(self) -> Optional[DiagramDocument]:
        ...


class LocalDiagramStore:
    """Keep the diagram in one pretty-printed JSON file."""

    def __init__(self, path: str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(
        self,
        document: DiagramDocument,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        try:
            if self._path.parent and not self._path.parent.exists():
                self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(document.to_dict(), f, ensure_ascii=False, indent=2)
        except OSError as exc:
            raise PersistenceError(f"Failed to save diagram: {exc}") from exc
        logger.info("Diagram saved to %s", self._path)

    def load(self) -> Optional[DiagramDocument]:
        if not self._path.exists():
            return None
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return DiagramDocument.from_dict(data)
        except OSError as exc:
            raise PersistenceError(f"Failed to load diagram: {exc}") from exc
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            raise PersistenceError(f"Corrupted diagram file: {exc}") from exc


class _SupabaseResource:
    """Shared plumbing for the Supabase REST and storage endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: Session,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._session = session
        self._client = client if client is not None else httpx.Client(timeout=timeout)

    @property
    def session(self) -> Session:
        return self._session

    def _headers(self) -> Dict[str, str]:
        if not self._session.is_active:
            raise PersistenceError("Not signed in")
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._session.access_token}",
        }

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc
        if not response.is_success:
            raise PersistenceError(f"{method} {url} failed: {response.status_code} - {response.text}")
        return response

    def close(self) -> None:
        self._client.close()


class SupabaseDiagramStore(_SupabaseResource):
    """Save and load the user's latest diagram through PostgREST."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._diagram_id: Optional[str] = None

    @property
    def diagram_id(self) -> Optional[str]:
        return self._diagram_id

    @property
    def _table_url(self) -> str:
        return f"{self._base_url}/rest/v1/{DIAGRAMS_TABLE}"

    def load(self) -> Optional[DiagramDocument]:
        """Load the most recently updated diagram for the session's user."""
        headers = self._headers()
        response = self._send(
            "GET",
            self._table_url,
            headers=headers,
            params={
                "select": "id,diagram_data",
                "user_id": f"eq.{self._session.user_id}",
                "order": "updated_at.desc",
                "limit": "1",
            },
        )
        try:
            rows = response.json()
        except ValueError as exc:
            raise PersistenceError(f"Invalid response from diagram store: {exc}") from exc
        if not rows:
            return None

        row = rows[0]
        try:
            document = DiagramDocument.from_dict(row.get("diagram_data"))
        except ValidationError as exc:
            raise PersistenceError(f"Stored diagram is invalid: {exc}") from exc
        self._diagram_id = str(row["id"])
        logger.info("Loaded diagram %s", self._diagram_id)
        return document

    def save(
        self,
        document: DiagramDocument,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """Update the known row, or insert a new one and remember its id."""
        headers = self._headers()
        now = datetime.now(timezone.utc).isoformat()
        if self._diagram_id is not None:
            body: Dict[str, Any] = {"diagram_data": document.to_dict(), "updated_at": now}
            if title is not None:
                body["title"] = title
            if description is not None:
                body["description"] = description
            self._send(
                "PATCH",
                self._table_url,
                headers=headers,
                params={"id": f"eq.{self._diagram_id}"},
                json=body,
            )
            logger.info("Updated diagram %s", self._diagram_id)
            return

        body = {
            "user_id": self._session.user_id,
            "title": title or DEFAULT_TITLE,
            "description": description,
            "diagram_data": document.to_dict(),
        }
        response = self._send(
            "POST",
            self._table_url,
            headers={**headers, "Prefer": "return=representation"},
            json=body,
        )
        try:
            self._diagram_id = str(response.json()[0]["id"])
        except (ValueError, LookupError, TypeError) as exc:
            raise PersistenceError(f"Insert did not return the new diagram id: {exc}") from exc
        logger.info("Created diagram %s", self._diagram_id)


class SupabaseImageStorage(_SupabaseResource):
    """Upload images to the public ``diagram-images`` bucket."""

    def __init__(self, *args: Any, clock: Callable[[], float] = time.time, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._clock = clock

    def object_key(self, file_name: str) -> str:
        extension = os.path.splitext(file_name)[1].lstrip(".").lower() or "png"
        return f"{self._session.user_id}/{int(self._clock() * 1000)}.{extension}"

    def public_url(self, key: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{IMAGE_BUCKET}/{key}"

    def upload(self, path: str) -> str:
        """Upload a local image file and return its public URL."""
        headers = self._headers()
        try:
            with open(path, "rb") as f:
                payload = f.read()
        except OSError as exc:
            raise PersistenceError(f"Failed to read image: {exc}") from exc

        key = self.object_key(path)
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        self._send(
            "POST",
            f"{self._base_url}/storage/v1/object/{IMAGE_BUCKET}/{key}",
            headers={
                **headers,
                "Content-Type": content_type,
                "cache-control": "max-age=3600",
                "x-upsert": "false",
            },
            content=payload,
        )
        url = self.public_url(key)
        logger.info("Uploaded image to %s", url)
        return url
