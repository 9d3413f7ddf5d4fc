import base64
import logging
import mimetypes
import random
import uuid
from urllib.parse import urlparse

import pymupdf
import requests
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

logger = logging.getLogger(__name__)

SAMPLE_IMAGES = [
    'https://picsum.photos/800/600?random=1',
    'https://picsum.photos/800/600?random=2',
    'https://picsum.photos/800/600?random=3',
    'https://picsum.photos/800/600?random=4',
    'https://picsum.photos/800/600?random=5',
]

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.gif', '.webp')
FETCH_TIMEOUT = 30
DEFAULT_MIME_TYPE = "image/jpeg"


class ImageLoadError(Exception):
    """The image could not be stored or fetched."""


def sample_image_url():
    return random.choice(SAMPLE_IMAGES)


def _is_media_url(url):
    return bool(settings.MEDIA_URL) and url.startswith(settings.MEDIA_URL)


def validate_image_url(url):
    url = (url or "").strip()
    if not url:
        raise ImageLoadError("Enter an image URL or upload an image.")
    if _is_media_url(url):
        return url
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ImageLoadError("Failed to load image. Please check the URL.")
    return url


def mime_type_for(name, fallback=DEFAULT_MIME_TYPE):
    guessed, _ = mimetypes.guess_type(urlparse(name).path)
    if guessed and guessed.startswith("image/"):
        return guessed
    return fallback


def render_pdf_first_page(pdf_bytes):
    """Render page one of a PDF to PNG bytes at 2x zoom."""
    try:
        with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:
            if len(doc) == 0:
                raise ImageLoadError("PDF contains no pages")
            pix = doc[0].get_pixmap(matrix=pymupdf.Matrix(2, 2))
            return pix.tobytes("png")
    except ImageLoadError:
        raise
    except Exception as e:
        raise ImageLoadError(f"Could not read PDF: {e}") from e


def save_upload(upload):
    """Store an uploaded image (or first PDF page) and return its media URL."""
    name = (upload.name or "").lower()
    data = upload.read()

    if name.endswith(".pdf"):
        data = render_pdf_first_page(data)
        extension = ".png"
    elif name.endswith(IMAGE_EXTENSIONS):
        extension = "." + name.rsplit(".", 1)[-1]
    else:
        raise ImageLoadError("Upload an image (PNG, JPG, GIF, WEBP) or a PDF.")

    path = default_storage.save(f"quiz_images/{uuid.uuid4().hex}{extension}", ContentFile(data))
    logger.info(f"Stored uploaded image at {path}")
    return default_storage.url(path)


class ImageSource:
    """An image referenced by URL whose bytes are fetched on first use."""

    def __init__(self, url, data=None, mime_type=None):
        self.url = url
        self._data = data
        self._mime_type = mime_type

    @classmethod
    def from_url(cls, url):
        return cls(validate_image_url(url))

    @property
    def mime_type(self):
        return self._mime_type or mime_type_for(self.url)

    def read(self):
        if self._data is None:
            self._data = self._fetch()
        return self._data

    def _fetch(self):
        if _is_media_url(self.url):
            path = self.url[len(settings.MEDIA_URL):]
            try:
                with default_storage.open(path, "rb") as fh:
                    return fh.read()
            except OSError as e:
                raise ImageLoadError(f"Failed to process image: {e}") from e

        try:
            response = requests.get(self.url, timeout=FETCH_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ImageLoadError(f"Failed to fetch image: {e}") from e

        content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        if not self._mime_type and content_type.startswith("image/"):
            self._mime_type = content_type
        return response.content

    def as_base64(self):
        return base64.b64encode(self.read()).decode("utf-8")

    def as_data_url(self):
        encoded = self.as_base64()
        return f"data:{self.mime_type};base64,{encoded}"
