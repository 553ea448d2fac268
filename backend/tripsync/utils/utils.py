import logging
import secrets
from pathlib import Path
from uuid import uuid4

from fastapi import UploadFile

from ..config import settings

logger = logging.getLogger(__name__)


def generate_urlsafe(nbytes: int = 24) -> str:
    return secrets.token_urlsafe(nbytes)


def generate_filename(format: str) -> str:
    return f"{uuid4()}.{format}"


def silence_http_logging():
    for name in ("httpx", "httpcore", "multipart", "python_multipart"):
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging():
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def receipts_trip_folder_path(trip_id: int) -> Path:
    return Path(settings.RECEIPTS_FOLDER) / str(trip_id)


async def save_receipt(trip_id: int, file: UploadFile) -> str | None:
    content = await file.read()
    if not content or len(content) > settings.RECEIPT_MAX_SIZE:
        return None

    suffix = Path(file.filename or "").suffix.lstrip(".").lower() or "bin"
    filename = generate_filename(suffix)
    folder = receipts_trip_folder_path(trip_id)
    folder.mkdir(parents=True, exist_ok=True)
    try:
        (folder / filename).write_bytes(content)
    except OSError:
        logger.exception("Could not store receipt for trip %s", trip_id)
        return None
    return filename


def remove_receipt(trip_id: int, filename: str):
    try:
        (receipts_trip_folder_path(trip_id) / filename).unlink(missing_ok=True)
    except OSError:
        logger.warning("Could not remove receipt %s of trip %s", filename, trip_id)
