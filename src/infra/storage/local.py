import uuid
from io import BytesIO
from pathlib import Path

from fastapi import HTTPException, UploadFile
from PIL import Image, UnidentifiedImageError

# Pillow 포맷 → (MIME, 저장 확장자)
IMAGE_FORMATS = {
    "JPEG": ("image/jpeg", ".jpg"),
    "PNG": ("image/png", ".png"),
    "WEBP": ("image/webp", ".webp"),
}
ALLOWED_TYPES = {mime for mime, _ in IMAGE_FORMATS.values()}

MAX_SIZE = 10 * 1024 * 1024  # 10MB
CHUNK_SIZE = 1024 * 1024  # 1MB

# 상품 사진 규격 (썸네일/배너 등 극단적 비율 제외)
MIN_SIDE = 256
MAX_PIXELS = 25_000_000
MAX_ASPECT_RATIO = 4.0


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=400, detail=message)


class LocalStorage:
    """로컬 파일 시스템 저장소 구현체. S3Storage로 교체 가능.

    업로드 원본은 save()로 검증 후 저장하고, 파이프라인 결과물은 save_bytes()로 저장한다.
    모든 경로는 base_dir 기준 상대 경로이며 base_dir 밖을 가리킬 수 없다.
    """

    def __init__(self, base_dir: Path, base_url: str = "/static"):
        self.base_dir = base_dir
        self.base_url = base_url

    async def save(
        self, file: UploadFile, subdir: str = "original", filename: str | None = None
    ) -> str:
        """업로드 이미지 검증 후 저장 (확장자는 실제 포맷 기준)

        Raises:
            HTTPException(400): 파일 형식, 크기, 이미지 규격 위반 시
        """
        if not file.content_type or file.content_type not in ALLOWED_TYPES:
            raise _bad_request(f"지원하지 않는 파일 형식: {file.content_type or '알 수 없음'}")
        if file.size is not None and file.size > MAX_SIZE:
            raise _bad_request(f"파일 크기 초과: {file.size} bytes (최대 {MAX_SIZE} bytes)")

        content = await self._read_with_size_limit(file)
        mime, ext = self._inspect(content)
        if mime != file.content_type:
            raise _bad_request(f"파일 형식 불일치: 헤더 {file.content_type}, 실제 {mime}")

        relative_path = f"{subdir}/{filename or uuid.uuid4().hex}{ext}"
        return self.save_bytes(content, relative_path)

    def save_bytes(self, data: bytes, relative_path: str) -> str:
        """내부 생성 파일 저장 (결과 이미지, 마스크 등 - 검증 없음)"""
        save_path = self._resolve(relative_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)
        save_path.write_bytes(data)
        return relative_path

    def read_bytes(self, relative_path: str) -> bytes:
        """Raises:
        FileNotFoundError: 파일 없음
        """
        return self._resolve(relative_path).read_bytes()

    def get_url(self, relative_path: str) -> str:
        return f"{self.base_url}/{relative_path}"

    def exists(self, relative_path: str) -> bool:
        return self._resolve(relative_path).exists()

    def delete(self, relative_path: str) -> bool:
        file_path = self._resolve(relative_path)
        if not file_path.exists():
            return False
        file_path.unlink()
        return True

    def _resolve(self, relative_path: str) -> Path:
        """Raises:
        ValueError: base_dir 밖을 가리키는 경로
        """
        root = self.base_dir.resolve()
        path = (root / relative_path).resolve()
        if not path.is_relative_to(root):
            raise ValueError(f"저장소 밖 경로: {relative_path}")
        return path

    def _inspect(self, content: bytes) -> tuple[str, str]:
        """실제 이미지 포맷과 상품 사진 규격 확인

        Returns:
            (MIME, 확장자)
        """
        try:
            with Image.open(BytesIO(content)) as img:
                fmt = img.format or ""
                width, height = img.size
        except (UnidentifiedImageError, OSError) as e:
            raise _bad_request("유효하지 않은 이미지 파일") from e

        if fmt not in IMAGE_FORMATS:
            raise _bad_request(f"지원하지 않는 이미지 포맷: {fmt or '알 수 없음'}")

        if min(width, height) < MIN_SIDE:
            raise _bad_request(f"이미지 크기 부족: {width}x{height} (최소 {MIN_SIDE}px)")
        if width * height > MAX_PIXELS:
            raise _bad_request(
                f"총 픽셀수 초과: {width}x{height} = {width * height} (최대 {MAX_PIXELS})"
            )
        ratio = max(width, height) / min(width, height)
        if ratio > MAX_ASPECT_RATIO:
            raise _bad_request(f"가로/세로 비율 초과: {ratio:.2f} (최대 {MAX_ASPECT_RATIO})")

        return IMAGE_FORMATS[fmt]

    async def _read_with_size_limit(self, file: UploadFile) -> bytes:
        chunks: list[bytes] = []
        total_size = 0

        while chunk := await file.read(CHUNK_SIZE):
            total_size += len(chunk)
            if total_size > MAX_SIZE:
                raise _bad_request(f"파일 크기 초과: {total_size}+ bytes (최대 {MAX_SIZE} bytes)")
            chunks.append(chunk)

        return b"".join(chunks)
