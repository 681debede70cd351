from abc import ABC, abstractmethod
from io import BytesIO

from PIL import Image, UnidentifiedImageError


class InvalidImageError(ValueError):
    pass


def verify_image(data: bytes) -> str:
    """Check that ``data`` decodes as an image; returns the Pillow format name."""
    if not data:
        raise InvalidImageError("Empty image upload")
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
            return (img.format or "").upper()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise InvalidImageError("Unrecognized image file") from exc


class StorageProvider(ABC):
    @abstractmethod
    def save_image(self, data: bytes, filename: str) -> str:  # pragma: no cover - interface
        """Persist the image and return the URL recipes should reference."""
        raise NotImplementedError

    @abstractmethod
    def delete_image(self, url: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError
