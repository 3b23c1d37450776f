"""
Artifact service: decode, validate and persist uploaded images, record their
metadata and serve paginated listings.
"""
import base64
import binascii
import io
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from PIL import Image

from . import models
from .errors import DecodeError, ImageFormatError, StorageError
from .filesystem import Filesystem, WRITE_CREATE, DEFAULT_PERM
from .repository import ArtifactRepository
from .schemas import ArtifactInput

ARTIFACT_DIR = "containerFiles/artifacts/"
FILE_TYPE = ".jpeg"
IMAGE_FORMAT = "JPEG"
# Pillow reports multi-picture JPEGs from cameras as MPO
ACCEPTED_FORMATS = ("JPEG", "MPO")
ENCODE_QUALITY = 100
MAX_NAME_ATTEMPTS = 5

logger = logging.getLogger(__name__)


def generate_file_name(ext: str, now_ns: Optional[int] = None) -> str:
    """UTC timestamp with nine fractional digits, e.g. '2024-01-02 03:04:05.000000042.jpeg'"""
    if now_ns is None:
        now_ns = time.time_ns()
    secs, nanos = divmod(now_ns, 1_000_000_000)
    stamp = datetime.fromtimestamp(secs, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    return f"{stamp}.{nanos:09d}{ext}"


def access_url(file_name: str) -> str:
    return "/image?source=" + file_name


def decode_payload(data: str) -> bytes:
    # line breaks from MIME-wrapped encoders are not part of the data
    data = data.replace("\r", "").replace("\n", "")
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"invalid base64 payload: {e}") from e


def decode_image(raw: bytes) -> Image.Image:
    try:
        im = Image.open(io.BytesIO(raw))
        im.load()
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise ImageFormatError(f"not a valid image: {e}") from e
    if im.format not in ACCEPTED_FORMATS:
        raise ImageFormatError(f"unsupported image format: {im.format}")
    return im


def encode_image(im: Image.Image) -> bytes:
    buf = io.BytesIO()
    try:
        im.save(buf, format=IMAGE_FORMAT, quality=ENCODE_QUALITY)
    except (OSError, ValueError) as e:
        raise ImageFormatError(f"could not encode image: {e}") from e
    return buf.getvalue()


class ArtifactService:
    def __init__(self, fs: Filesystem, repository: ArtifactRepository):
        self.fs = fs
        self.repository = repository

    def ingest(self, entry: ArtifactInput) -> Tuple[str, str]:
        """
        Decode an uploaded image and write it to the filesystem.

        Returns:
            (access URL, file extension)

        Raises:
            DecodeError, ImageFormatError, StorageError
        """
        raw = decode_payload(entry.file)
        data = encode_image(decode_image(raw))
        file_name = self._write(data)
        logger.info(f"Saved file to fs name={file_name!r} bytes={len(data)}")
        return access_url(file_name), FILE_TYPE

    def _write(self, data: bytes) -> str:
        last_ns = None
        for _ in range(MAX_NAME_ATTEMPTS):
            now_ns = time.time_ns()
            if last_ns is not None and now_ns <= last_ns:
                now_ns = last_ns + 1
            last_ns = now_ns
            file_name = generate_file_name(FILE_TYPE, now_ns)
            path = ARTIFACT_DIR + file_name
            try:
                f = self.fs.open(path, WRITE_CREATE, DEFAULT_PERM)
            except FileExistsError:
                logger.warning(f"file name collision name={file_name!r}, retrying")
                continue
            except OSError as e:
                raise StorageError(f"could not open {path}: {e}") from e

            try:
                with f:
                    f.write(data)
            except OSError as e:
                self.fs.remove(path)
                raise StorageError(f"could not write {path}: {e}") from e
            return file_name

        raise StorageError(f"no free file name after {MAX_NAME_ATTEMPTS} attempts")

    def list(self, page: int) -> List[models.ArtifactRecord]:
        if page <= 0:
            page = 1
        return self.repository.retrieve_list(page)

    def record(
        self,
        url: str,
        file_type: str,
        upload_date_time: Optional[datetime] = None,
    ) -> models.ArtifactRecord:
        entry = models.ArtifactRecord(
            url=url,
            file_type=file_type,
            upload_date_time=upload_date_time or datetime.now(timezone.utc),
        )
        return self.repository.create(entry)

    def upload(self, entry: ArtifactInput) -> models.ArtifactRecord:
        """Ingest then record; nothing is recorded if ingestion fails"""
        url, file_type = self.ingest(entry)
        return self.record(url, file_type)
