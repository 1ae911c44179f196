"""Durable blob storage for generated clips and JSON state documents."""

import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class StoredObject:
    url: str
    path: str


class BlobStorage(ABC):
    """Path-addressed object storage. Paths use forward slashes."""

    @abstractmethod
    def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        """Write (or overwrite) an object and return its public location."""
        ...

    @abstractmethod
    def download(self, path: str) -> Optional[bytes]:
        """Return object bytes, or None if it does not exist."""
        ...

    @abstractmethod
    def list(self, prefix: str = "") -> List[str]:
        """List object paths under a prefix."""
        ...

    @abstractmethod
    def delete(self, path: str) -> None:
        ...

    def put_json(self, path: str, payload: Any) -> StoredObject:
        data = json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
        return self.upload(path, data, "application/json")

    def get_json(self, path: str, default: Any = None) -> Any:
        raw = self.download(path)
        if raw is None:
            return default
        return json.loads(raw.decode("utf-8"))


class LocalBlobStorage(BlobStorage):
    """Stores objects as files under a base directory."""

    def __init__(self, base_dir: str, public_base_url: Optional[str] = None):
        self._base_dir = os.path.abspath(base_dir)
        os.makedirs(self._base_dir, exist_ok=True)
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def _full_path(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self._base_dir, *path.strip("/").split("/")))
        if os.path.commonpath([full, self._base_dir]) != self._base_dir:
            raise ValueError(f"Path escapes storage root: {path}")
        return full

    def public_url(self, path: str) -> str:
        path = path.strip("/")
        if self._public_base_url:
            return f"{self._public_base_url}/{path}"
        return "file://" + self._full_path(path)

    def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        full = self._full_path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        # Write then rename so readers never see a partial document
        tmp = f"{full}.tmp"
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, full)
        return StoredObject(url=self.public_url(path), path=path.strip("/"))

    def download(self, path: str) -> Optional[bytes]:
        full = self._full_path(path)
        if not os.path.exists(full):
            return None
        with open(full, "rb") as f:
            return f.read()

    def list(self, prefix: str = "") -> List[str]:
        paths = []
        for root, _dirs, files in os.walk(self._base_dir):
            for name in files:
                if name.endswith(".tmp"):
                    continue
                rel = os.path.relpath(os.path.join(root, name), self._base_dir)
                rel = rel.replace(os.sep, "/")
                if rel.startswith(prefix):
                    paths.append(rel)
        return sorted(paths)

    def delete(self, path: str) -> None:
        full = self._full_path(path)
        if os.path.exists(full):
            os.remove(full)


class SupabaseBlobStorage(BlobStorage):
    """Objects in a public Supabase Storage bucket."""

    def __init__(self, client, bucket: str):
        self._client = client
        self._bucket = bucket

    def _bucket_api(self):
        return self._client.storage.from_(self._bucket)

    def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        path = path.strip("/")
        self._bucket_api().upload(
            path,
            data,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        url = self._bucket_api().get_public_url(path)
        return StoredObject(url=url, path=path)

    def download(self, path: str) -> Optional[bytes]:
        path = path.strip("/")
        folder, _, name = path.rpartition("/")
        matches = self._bucket_api().list(folder, {"search": name, "limit": 100})
        if name not in {entry.get("name") for entry in matches}:
            return None
        return self._bucket_api().download(path)

    def list(self, prefix: str = "") -> List[str]:
        folder = prefix.strip("/")
        entries = self._bucket_api().list(folder, {"limit": 1000})
        base = f"{folder}/" if folder else ""
        # Entries without an id are folders
        return sorted(f"{base}{e['name']}" for e in entries if e.get("id"))

    def delete(self, path: str) -> None:
        self._bucket_api().remove([path.strip("/")])
