# app/uploads.py
import logging

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from fastapi import UploadFile

from .config import CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET, MAX_AVATAR_BYTES
from .errors import UploadFailed

logger = logging.getLogger(__name__)


def configure_cloudinary() -> None:
    """Налаштовує Cloudinary зі змінних середовища."""
    cloudinary.config(
        cloud_name=CLOUDINARY_CLOUD_NAME,
        api_key=CLOUDINARY_API_KEY,
        api_secret=CLOUDINARY_API_SECRET,
    )


def is_image(file: UploadFile) -> bool:
    return bool(file.content_type) and file.content_type.startswith("image/")


def upload_avatar(contact_id: str, file: UploadFile) -> str:
    """
    Завантажує аватар контакту до Cloudinary.

    Args:
        contact_id (str): Ідентифікатор контакту.
        file (UploadFile): Файл зображення.

    Returns:
        str: Пряме посилання на зображення (secure_url).

    Raises:
        ValueError: Якщо файл не є зображенням або завеликий.
        UploadFailed: Якщо Cloudinary не прийняв файл.
    """
    if not is_image(file):
        raise ValueError("Please upload an image file.")
    data = file.file.read()
    if len(data) > MAX_AVATAR_BYTES:
        raise ValueError("Image is too large.")
    try:
        result = cloudinary.uploader.upload(
            data,
            folder=f"avatars/{contact_id}",
            overwrite=True,
            resource_type="image",
        )
    except CloudinaryError as error:
        logger.exception("Error uploading avatar for contact %s", contact_id)
        raise UploadFailed() from error
    url = result.get("secure_url")
    if not url:
        raise UploadFailed()
    logger.info("Uploaded avatar for contact %s", contact_id)
    return url
