"""Local file storage implementation."""
import hashlib
import logging
from pathlib import Path

import aiofiles

from bookhive.domain.repositories import IStorageService

logger = logging.getLogger(__name__)


class LocalStorageService(IStorageService):
    """Content-addressable file storage on the local filesystem."""

    def __init__(self, base_path: str = "./storage"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    async def save_file(self, file_content: bytes, filename: str) -> str:
        try:
            file_hash = hashlib.sha256(file_content).hexdigest()
            storage_dir = self.base_path / file_hash[:2]
            storage_dir.mkdir(parents=True, exist_ok=True)

            file_path = storage_dir / f"{file_hash}_{Path(filename).name}"

            async with aiofiles.open(file_path, "wb") as f:
                await f.write(file_content)

            logger.info(f"File saved: {file_path.name}, size: {len(file_content)} bytes")
            return file_path.relative_to(self.base_path).as_posix()

        except OSError as e:
            logger.error(f"Failed to save file {filename}: {str(e)}", exc_info=True)
            raise

    async def get_file(self, file_path: str) -> bytes:
        full_path = (self.base_path / file_path).resolve()
        if self.base_path.resolve() not in full_path.parents:
            raise FileNotFoundError(file_path)
        try:
            async with aiofiles.open(full_path, "rb") as f:
                content = await f.read()
            logger.debug(f"File retrieved: {file_path}, size: {len(content)} bytes")
            return content
        except FileNotFoundError:
            logger.error(f"File not found: {file_path}")
            raise
