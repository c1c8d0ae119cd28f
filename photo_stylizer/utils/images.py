"""Image payload utilities: data URLs, validation and downscaling."""

import base64
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple
from PIL import Image, UnidentifiedImageError

from .logger import get_logger
from .errors import InputError, ImageProcessingError, UnsupportedFormatError

logger = get_logger(__name__)

IMAGE_CONSTRAINTS = {
    "max_file_size": 10 * 1024 * 1024,  # 10MB
    "allowed_types": ("image/jpeg", "image/png", "image/webp"),
    "max_dimensions": (2048, 2048),
}

DEFAULT_MIME_TYPE = "image/jpeg"


def extract_base64_payload(image_data: str) -> str:
    """
    Return the base64 payload of an embeddable image.

    A value containing a comma is treated as a data URL and everything after
    the first comma is returned; anything else is already raw base64.
    """
    if "," in image_data:
        return image_data.split(",", 1)[1]
    return image_data


def split_data_url(image_data: str) -> Tuple[Optional[str], str]:
    """
    Split a data URL into (mime_type, payload).

    Raw base64 yields a mime type of None.
    """
    if "," not in image_data:
        return None, image_data

    header, payload = image_data.split(",", 1)
    mime_type = None
    if header.startswith("data:"):
        mime_type = header[len("data:"):].split(";", 1)[0] or None
    return mime_type, payload


def to_data_url(payload: str, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """Wrap a base64 payload as a data URL."""
    return f"data:{mime_type};base64,{payload}"


def base64_to_bytes(base64_string: str) -> bytes:
    """
    Convert base64 string (or data URL) to bytes.

    Raises:
        ImageProcessingError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(extract_base64_payload(base64_string), validate=True)
    except ValueError as e:
        raise ImageProcessingError(f"Invalid image data format: {e}")


def bytes_to_base64(image_bytes: bytes) -> str:
    """Convert image bytes to base64 string."""
    return base64.b64encode(image_bytes).decode('utf-8')


def detect_mime_type(image_bytes: bytes) -> str:
    """
    Detect the MIME type of raw image bytes.

    Raises:
        ImageProcessingError: If the bytes are not a readable image
    """
    try:
        image = Image.open(BytesIO(image_bytes))
    except (UnidentifiedImageError, OSError) as e:
        raise ImageProcessingError(f"Failed to read image: {e}")

    mime_type = Image.MIME.get(image.format)
    if not mime_type:
        raise UnsupportedFormatError(f"Unknown image format: {image.format}")
    return mime_type


def validate_image(image_bytes: bytes, mime_type: Optional[str] = None) -> str:
    """
    Check file size and type against IMAGE_CONSTRAINTS.

    Args:
        image_bytes: Raw image bytes
        mime_type: Declared MIME type; detected from the bytes when omitted

    Returns:
        The validated MIME type

    Raises:
        InputError: If the file is too large
        UnsupportedFormatError: If the type is not allowed
    """
    max_size = IMAGE_CONSTRAINTS["max_file_size"]
    if len(image_bytes) > max_size:
        raise InputError(
            f"File size must be smaller than {max_size // 1024 // 1024}MB"
        )

    mime_type = mime_type or detect_mime_type(image_bytes)
    if mime_type not in IMAGE_CONSTRAINTS["allowed_types"]:
        raise UnsupportedFormatError("Only JPEG, PNG and WebP formats are supported")

    return mime_type


def get_image_dimensions(image_bytes: bytes) -> Tuple[int, int]:
    """
    Get width and height of an image.

    Raises:
        ImageProcessingError: If image cannot be read
    """
    try:
        image = Image.open(BytesIO(image_bytes))
        return image.size
    except (UnidentifiedImageError, OSError) as e:
        raise ImageProcessingError(f"Failed to read image dimensions: {e}")


def resize_image(
    image_bytes: bytes,
    max_width: int = 1024,
    max_height: int = 1024,
    quality: int = 80,
) -> str:
    """
    Downscale an image to fit the bounds and re-encode it as JPEG.

    Aspect ratio is preserved and small images are never upscaled.

    Args:
        image_bytes: Raw image bytes
        max_width: Maximum width in pixels
        max_height: Maximum height in pixels
        quality: JPEG quality 1-100

    Returns:
        JPEG data URL

    Raises:
        ImageProcessingError: If the image cannot be decoded
    """
    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageProcessingError(f"Failed to read image: {e}")

    # JPEG has no alpha channel
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    width, height = image.size
    ratio = min(max_width / width, max_height / height, 1.0)
    new_width = max(1, round(width * ratio))
    new_height = max(1, round(height * ratio))

    if ratio < 1.0:
        image = image.resize((new_width, new_height), Image.LANCZOS)
        logger.info(
            f"Resized image from {width}x{height} to {new_width}x{new_height}",
            extra={
                "original_width": width,
                "original_height": height,
                "new_width": new_width,
                "new_height": new_height,
            }
        )

    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return to_data_url(bytes_to_base64(buffer.getvalue()), "image/jpeg")


def load_photo(path: Path) -> str:
    """
    Read a photo from disk, validate it and return a downscaled JPEG data URL.

    Raises:
        InputError: If the file is missing, too large or of an unsupported type
    """
    path = Path(path)
    if not path.is_file():
        raise InputError(f"Photo not found: {path}")

    image_bytes = path.read_bytes()
    validate_image(image_bytes)
    return resize_image(image_bytes)


def save_data_url(image_url: str, path: Path) -> Path:
    """Decode a data URL and write the image bytes to path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(base64_to_bytes(image_url))
    return path
