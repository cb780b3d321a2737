import asyncio
import logging
import mimetypes
import os
import uuid
from typing import Optional

from app.core import config

logger = logging.getLogger(__name__)

BUCKET = "food-images"
PUBLIC_PREFIX = "/storage"


class ImageStorage:
    """
    로컬 디렉터리 기반 이미지 저장소.
    STORAGE_DIR/food-images/ 아래에 저장하고 /storage 경로로 공개 URL을 제공합니다.
    """

    def __init__(self, root_dir: Optional[str] = None, public_base_url: Optional[str] = None):
        self.root_dir = root_dir or config.STORAGE_DIR
        self.public_base_url = (public_base_url or config.PUBLIC_BASE_URL).rstrip("/")

    @property
    def bucket_dir(self) -> str:
        return os.path.join(self.root_dir, BUCKET)

    def public_url(self, name: str) -> str:
        return f"{self.public_base_url}{PUBLIC_PREFIX}/{BUCKET}/{name}"

    def path_from_url(self, url: str) -> Optional[str]:
        """공개 URL에서 버킷 내 파일 이름을 꺼냅니다. 형식이 다르면 None."""
        marker = f"{PUBLIC_PREFIX}/{BUCKET}/"
        if not url or marker not in url:
            return None
        name = url.split(marker, 1)[1]
        # 버킷 밖으로 나가는 경로는 허용하지 않음
        if not name or "/" in name or "\\" in name or name.startswith("."):
            return None
        return name

    def _write(self, name: str, data: bytes):
        os.makedirs(self.bucket_dir, exist_ok=True)
        with open(os.path.join(self.bucket_dir, name), "wb") as f:
            f.write(data)

    def _remove(self, name: str):
        os.remove(os.path.join(self.bucket_dir, name))

    async def upload(self, data: bytes, content_type: Optional[str]) -> str:
        ext = mimetypes.guess_extension(content_type or "") or ".jpg"
        name = f"{uuid.uuid4().hex}{ext}"
        await asyncio.to_thread(self._write, name, data)
        logger.info(f"🖼️ 이미지 저장 완료: {name} ({len(data)} bytes)")
        return self.public_url(name)

    async def delete(self, url: str):
        name = self.path_from_url(url)
        if name is None:
            raise FileNotFoundError(f"저장소 URL 형식이 아닙니다: {url}")
        await asyncio.to_thread(self._remove, name)
        logger.info(f"🗑️ 이미지 삭제 완료: {name}")


image_storage = ImageStorage()
