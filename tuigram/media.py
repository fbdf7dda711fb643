"""
Media helpers: turning picked files into storable data URIs and turning
stored images or videos into ASCII art the terminal can show.
"""
import base64
import binascii
import hashlib
import io
import logging
import mimetypes
import os
import tempfile
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Optional, Tuple

import cv2
import requests
from PIL import Image, UnidentifiedImageError

from .errors import TransportError, ValidationError

logger = logging.getLogger("tuigram.media")

ASCII_CHARS = " .:-=+*#%@"
FETCH_TIMEOUT = 5.0


def guess_content_type(path) -> str:
    content_type, _ = mimetypes.guess_type(str(path))
    return content_type or "application/octet-stream"


def read_upload(path) -> Tuple[bytes, str]:
    """Read an image or video picked for upload.

    Raises ValidationError when nothing usable was picked and TransportError
    when the file cannot be read or is not a valid image.
    """
    if not path or not str(path).strip():
        raise ValidationError("Please choose an image or video file.")
    path = Path(str(path).strip()).expanduser()
    content_type = guess_content_type(path)
    if not content_type.startswith(("image/", "video/")):
        raise ValidationError(f"{path.name} is not an image or video file.")

    try:
        data = path.read_bytes()
    except OSError as e:
        logger.warning("media: could not read %s: %s", path, e)
        raise TransportError(f"Could not read {path.name}: {e.strerror or e}") from e

    if content_type.startswith("image/"):
        try:
            Image.open(io.BytesIO(data)).verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            logger.warning("media: %s failed image verification: %s", path, e)
            raise TransportError(f"{path.name} is not a valid image.") from e
    return data, content_type


def to_data_uri(data: bytes, content_type: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def file_to_data_uri(path) -> Tuple[str, str]:
    data, content_type = read_upload(path)
    return to_data_uri(data, content_type), content_type


def parse_data_uri(uri: str) -> Tuple[bytes, str]:
    """Split a base64 data URI into (bytes, content type)."""
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise ValueError("not a base64 data URI")
    content_type = header[len("data:"):].split(";", 1)[0] or "application/octet-stream"
    try:
        return base64.b64decode(payload, validate=True), content_type
    except binascii.Error as e:
        raise ValueError(f"bad base64 payload: {e}") from e


def image_to_ascii(image: Image.Image, width: int = 40) -> str:
    """Render an image as lines of ASCII characters, brighter pixels denser."""
    image = image.convert("L")
    w, h = image.size
    if w == 0 or h == 0:
        return ""
    # Terminal cells are roughly twice as tall as they are wide.
    height = max(1, int(h / w * width * 0.5))
    image = image.resize((width, height))
    pixels = image.tobytes()
    scale = len(ASCII_CHARS) - 1
    lines = []
    for row in range(height):
        chunk = pixels[row * width:(row + 1) * width]
        lines.append("".join(ASCII_CHARS[p * scale // 255] for p in chunk))
    return "\n".join(lines)


def _first_video_frame(data: bytes, content_type: str) -> Image.Image:
    suffix = mimetypes.guess_extension(content_type) or ".mp4"
    fd, tmp_name = tempfile.mkstemp(suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        video = cv2.VideoCapture(tmp_name)
        try:
            ok, frame = video.read()
        finally:
            video.release()
        if not ok:
            raise ValueError("video has no readable frames")
        return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
    finally:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass


def _load_media(image_url: str) -> Tuple[bytes, str]:
    if image_url.startswith("data:"):
        return parse_data_uri(image_url)
    resp = requests.get(image_url, timeout=FETCH_TIMEOUT)
    resp.raise_for_status()
    content_type = resp.headers.get("Content-Type", "").split(";", 1)[0]
    return resp.content, content_type or guess_content_type(image_url)


PREVIEW_CACHE_SIZE = 128

# Rendered previews keyed by (sha1 of the url, width). Failures are not kept
# so a preview that could not be fetched is tried again next time.
_previews: "OrderedDict[Tuple[str, int], str]" = OrderedDict()
_previews_lock = threading.Lock()


def clear_preview_cache() -> None:
    with _previews_lock:
        _previews.clear()


def ascii_art(image_url: str, width: int = 40) -> Optional[str]:
    """ASCII preview of a stored image or video, or None when it cannot be drawn."""
    if not image_url:
        return None
    key = (hashlib.sha1(image_url.encode("utf-8")).hexdigest(), width)
    with _previews_lock:
        art = _previews.get(key)
        if art is not None:
            _previews.move_to_end(key)
            return art
    try:
        data, content_type = _load_media(image_url)
        if content_type.startswith("video/"):
            image = _first_video_frame(data, content_type)
        else:
            image = Image.open(io.BytesIO(data))
        art = image_to_ascii(image, width)
    except (ValueError, OSError, requests.RequestException, cv2.error) as e:
        logger.warning("media: no preview for %.60s: %s", image_url, e)
        return None
    with _previews_lock:
        _previews[key] = art
        while len(_previews) > PREVIEW_CACHE_SIZE:
            _previews.popitem(last=False)
    return art
