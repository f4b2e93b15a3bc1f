"""Upload Service - Reads uploaded question photos"""

import logging
import os
import uuid
from dataclasses import dataclass

from werkzeug.utils import secure_filename

# Configure logging
logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.webp', '.heic', '.heif', '.gif'}


@dataclass
class UploadedImage:
    data: bytes
    mime_type: str
    # Generated reference stored with the solution; the file itself is not kept
    reference: str


def read_upload(file_storage) -> UploadedImage:
    """
    Read an uploaded photo into memory.

    Args:
        file_storage: werkzeug FileStorage from request.files

    Returns:
        UploadedImage with the bytes, MIME type and a generated reference name

    Raises:
        ValueError: If the file is empty or not an image
    """
    mime_type = (file_storage.mimetype or '').lower()
    if not mime_type.startswith('image/'):
        raise ValueError(f"Unsupported file type: {mime_type or 'unknown'}")

    data = file_storage.read()
    if not data:
        raise ValueError("Uploaded file is empty")

    _, extension = os.path.splitext(secure_filename(file_storage.filename or ''))
    extension = extension.lower()
    if extension not in ALLOWED_EXTENSIONS:
        extension = ''

    reference = f"{uuid.uuid4().hex}{extension}"
    logger.info(f"Received upload {reference} ({mime_type}, {len(data)} bytes)")

    return UploadedImage(data=data, mime_type=mime_type, reference=reference)
