import os
import uuid
import aiofiles
import structlog
from pathlib import Path
from typing import Optional

logger = structlog.get_logger()


class StorageService:
    """
    Blob store on local disk, addressed by opaque identifiers.
    Raw uploads and generated reports live in separate directories.
    """

    def __init__(self, root_dir: str):
        self.root = Path(root_dir)

    def _path_for(self, blob_id: str) -> Path:
        # Blob ids are generated here; anything with a path separator is foreign
        if not blob_id or os.sep in blob_id or "/" in blob_id or blob_id in (".", ".."):
            raise ValueError(f"Invalid blob id: {blob_id!r}")
        return self.root / blob_id

    @staticmethod
    def new_blob_id(suffix: str = "") -> str:
        return f"{uuid.uuid4().hex}{suffix}"

    async def save(self, content: bytes, suffix: str = "", blob_id: Optional[str] = None) -> str:
        """
        Write bytes under a fresh (or given) id and return the id.
        """
        self.root.mkdir(parents=True, exist_ok=True)
        blob_id = blob_id or self.new_blob_id(suffix)
        file_path = self._path_for(blob_id)

        async with aiofiles.open(file_path, 'wb') as f:
            await f.write(content)

        logger.info("blob_saved", store=str(self.root), blob_id=blob_id, size_bytes=len(content))
        return blob_id

    async def read(self, blob_id: str) -> bytes:
        async with aiofiles.open(self._path_for(blob_id), 'rb') as f:
            return await f.read()

    def exists(self, blob_id: Optional[str]) -> bool:
        if not blob_id:
            return False
        try:
            return self._path_for(blob_id).is_file()
        except ValueError:
            return False

    def local_path(self, blob_id: str) -> str:
        return str(self._path_for(blob_id))

    async def delete(self, blob_id: Optional[str]) -> bool:
        if not self.exists(blob_id):
            return False
        os.remove(self._path_for(blob_id))
        logger.info("blob_deleted", store=str(self.root), blob_id=blob_id)
        return True
