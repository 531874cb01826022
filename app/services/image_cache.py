import logging
import os
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


def derive_file_name(image_url: str) -> str:
    """Return the trailing path segment of an image URL."""
    return os.path.basename(urlsplit(image_url).path)


class ImageCache:
    """Flat on-disk store of image payloads, one file per name."""

    def __init__(self, root: str):
        self.root = root

    def _path(self, name: str) -> str:
        if not name or name in (".", "..") or "/" in name or os.sep in name:
            raise ValueError(f"Invalid cache file name: {name!r}")
        return os.path.join(self.root, name)

    def save(self, name: str, data: bytes) -> str:
        os.makedirs(self.root, exist_ok=True)
        file_path = self._path(name)
        with open(file_path, "wb") as f:
            f.write(data)
        return file_path

    def load(self, name: str) -> bytes | None:
        file_path = self._path(name)
        if not os.path.exists(file_path):
            return None
        with open(file_path, "rb") as f:
            return f.read()

    def delete(self, name: str) -> bool:
        try:
            file_path = self._path(name)
        except ValueError:
            logger.warning("Refusing to delete cached image %r", name)
            return False
        if not os.path.exists(file_path):
            return False
        try:
            os.remove(file_path)
        except OSError as e:
            logger.warning("Could not delete cached image %s: %s", file_path, e)
            return False
        return True
