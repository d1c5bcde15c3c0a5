import logging
import mimetypes
from pathlib import Path

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

KEY_SUFFIX_LENGTH = 5


def mime_from_extension(filepath: Path | str) -> str | None:
    return mimetypes.guess_type(str(filepath), strict=False)[0]


def mime_from_content(filepath: Path) -> str | None:
    """Sniff the file content, works for images but not for text based formats like .js/.json"""
    try:
        with Image.open(filepath) as img:
            return img.get_format_mimetype()
    except (UnidentifiedImageError, OSError):
        return None


def mime_from_key_suffix(remote_key: str, length: int = KEY_SUFFIX_LENGTH) -> str | None:
    """Guess from the last characters of the remote key only, catches short extensions like .svg

    Fragile for longer extensions or keys without extension, kept for compatibility.
    """
    # the leading underscore keeps a bare ".svg" from being taken as the basename
    return mimetypes.guess_type(f"_{remote_key[-length:]}", strict=False)[0]


def resolve_content_type(local_path: Path, remote_key: str) -> str | None:
    mime = mime_from_extension(local_path)

    if not mime:
        mime = mime_from_content(local_path)

    if not mime:
        mime = mime_from_key_suffix(remote_key)

    logger.debug(f"content-type of {local_path} resolved to {mime}")

    return mime
