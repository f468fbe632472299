import asyncio
from pathlib import Path, PurePosixPath
from typing import Optional

from ..core.config import settings
from ..core.logging import logger


class StorageService:
    """
    Local object storage for crawl artifacts.

    Objects are addressed by POSIX-style keys (``screenshots/{host}/{id}.png``)
    and served back to clients under ``public_path``.
    """

    def __init__(self, base_dir: Optional[str] = None, public_path: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.STORAGE_DIR)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.public_path = "/" + (public_path or settings.STORAGE_PUBLIC_PATH).strip("/")

    def absolute_path(self, key: str) -> Path:
        """
        Resolve a storage key to a path under ``base_dir``.

        Raises:
            ValueError: If the key is absolute or escapes the storage root
        """
        relative = PurePosixPath(key)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid storage key: {key}")
        return self.base_dir.joinpath(*relative.parts)

    def public_url(self, key: str) -> str:
        return f"{self.public_path}/{PurePosixPath(key).as_posix()}"

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            f.write(data)

    async def put(self, key: str, data: bytes) -> str:
        """
        Store ``data`` under ``key``, replacing any previous object.

        Returns:
            Public URL of the stored object
        """
        target = self.absolute_path(key)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write, target, data)
        logger.debug(f"Stored {len(data)} bytes at {target}")
        return self.public_url(key)
