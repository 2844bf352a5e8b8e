"""Blob storage for uploaded design files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Sequence
from urllib.parse import quote

import httpx

from teeds.errors import StorageError


class BlobStore:
    def remove(self, paths: Iterable[str]) -> None:
        raise NotImplementedError

    def public_url(self, path: str) -> str:
        raise NotImplementedError


def clean_storage_path(path: str) -> str:
    cleaned = str(path or "").strip().lstrip("/")
    if not cleaned or ".." in Path(cleaned).parts:
        raise StorageError(f"Invalid storage path: {path!r}")
    return cleaned


class LocalBlobStore(BlobStore):
    def __init__(self, root: str, public_base_url: str | None = None) -> None:
        self.root = Path(root)
        self.public_base_url = (public_base_url or "/storage").rstrip("/")

    def remove(self, paths: Iterable[str]) -> None:
        for path in paths:
            target = self.root / clean_storage_path(path)
            try:
                os.remove(target)
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise StorageError(f"Unable to remove {path}: {exc}") from exc

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{quote(clean_storage_path(path))}"


class HttpBlobStore(BlobStore):
    def __init__(
        self,
        api_url: str,
        api_key: str,
        bucket: str = "designs",
        public_base_url: str | None = None,
        http_client: httpx.Client | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.public_base_url = (public_base_url or f"{self.api_url}/object/public/{bucket}").rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._owns_client = http_client is None
        self.client = http_client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def remove(self, paths: Iterable[str]) -> None:
        prefixes: Sequence[str] = [clean_storage_path(path) for path in paths]
        if not prefixes:
            return
        try:
            response = self.client.request(
                "DELETE",
                f"{self.api_url}/object/{self.bucket}",
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                json={"prefixes": list(prefixes)},
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise StorageError("Storage request timed out") from exc
        except httpx.HTTPError as exc:
            raise StorageError(f"Storage request failed: {exc}") from exc
        if response.status_code >= 400:
            raise StorageError(f"Storage returned error {response.status_code}")

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{quote(clean_storage_path(path))}"
