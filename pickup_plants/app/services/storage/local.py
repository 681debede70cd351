from pathlib import Path
from uuid import uuid4

from pickup_plants.app.services.storage.base import StorageProvider


class LocalStorageProvider(StorageProvider):
    def __init__(self, media_root: Path, url_prefix: str = "/media/"):
        self.media_root = media_root
        self.url_prefix = url_prefix
        self.media_root.mkdir(parents=True, exist_ok=True)

    def save_image(self, data: bytes, filename: str) -> str:
        extension = Path(filename or "upload").suffix.lower()
        name = f"{uuid4().hex}{extension}"
        destination = self.media_root / name
        destination.write_bytes(data)
        return f"{self.url_prefix}{name}"

    def delete_image(self, url: str) -> None:
        if not url.startswith(self.url_prefix):
            return
        name = url[len(self.url_prefix) :]
        path = self.media_root / name
        if path.exists():
            path.unlink()
