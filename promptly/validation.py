"""
Upload Validation for Prompt Generation Images
Checks declared type, detected content type, byte size and pixel dimensions
"""

import io
import re
import warnings
from dataclasses import dataclass
from typing import List, Optional, Tuple
from PIL import Image, UnidentifiedImageError
from defusedxml import DefusedXmlException
from defusedxml.ElementTree import ParseError, fromstring

from .exceptions import UploadValidationError

# Configuration
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MIN_DIMENSIONS = (100, 100)
MAX_DIMENSIONS = (10000, 10000)

ALLOWED_MIME_TYPES = {
    'image/jpeg': 'jpg',
    'image/jpg': 'jpg',
    'image/pjpeg': 'jpg',
    'image/png': 'png',
    'image/gif': 'gif',
    'image/svg+xml': 'svg',
}
PILLOW_FORMATS = {'JPEG': 'jpg', 'PNG': 'png', 'GIF': 'gif'}
CANONICAL_MIME_TYPES = {'jpg': 'image/jpeg', 'png': 'image/png', 'gif': 'image/gif', 'svg': 'image/svg+xml'}
ALLOWED_TYPES_LABEL = 'jpeg, png, jpg, gif, svg'

SVG_LENGTH = re.compile(r'^\s*([0-9]*\.?[0-9]+)\s*(px)?\s*$')


@dataclass
class UploadedImage:
    content: bytes
    filename: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class ImageInfo:
    extension: str
    width: Optional[int]
    height: Optional[int]

    @property
    def mime_type(self) -> str:
        return CANONICAL_MIME_TYPES[self.extension]


def _svg_dimensions(content: bytes) -> Tuple[bool, Optional[int], Optional[int]]:
    """Return (is_svg, width, height); sizes are None when the document has none"""
    if not content.lstrip(b'\xef\xbb\xbf \t\r\n').startswith(b'<'):
        return False, None, None
    try:
        root = fromstring(content)
    except (ParseError, DefusedXmlException):
        return False, None, None
    if root.tag not in ('svg', '{http://www.w3.org/2000/svg}svg'):
        return False, None, None

    width, height = root.get('width'), root.get('height')
    w = SVG_LENGTH.match(width) if width else None
    h = SVG_LENGTH.match(height) if height else None
    if w and h:
        return True, round(float(w.group(1))), round(float(h.group(1)))

    view_box = root.get('viewBox')
    if view_box:
        parts = view_box.replace(',', ' ').split()
        if len(parts) == 4:
            try:
                return True, round(float(parts[2])), round(float(parts[3]))
            except ValueError:
                pass
    return True, None, None


def _raster_info(content: bytes) -> Tuple[Optional[str], Optional[int], Optional[int], bool]:
    """Return (pillow format, width, height, too_large) for a raster payload"""
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', Image.DecompressionBombWarning)
            with Image.open(io.BytesIO(content)) as img:
                fmt = img.format
                width, height = img.size
                img.verify()
        return fmt, width, height, False
    except Image.DecompressionBombError:
        # Pillow refuses anything above twice its pixel budget, far past our max
        return None, None, None, True
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return None, None, None, False


def validate_image(upload: UploadedImage) -> ImageInfo:
    """Validate an uploaded image, collecting one message per violated rule."""
    errors: List[str] = []

    if upload.size > MAX_FILE_SIZE:
        errors.append(f"The image field must not be greater than {MAX_FILE_SIZE // 1024} kilobytes.")

    declared = (upload.content_type or '').split(';')[0].strip().lower()
    is_svg, width, height = _svg_dimensions(upload.content)
    too_large = False
    if is_svg:
        detected = 'svg'
    else:
        fmt, width, height, too_large = _raster_info(upload.content)
        detected = PILLOW_FORMATS.get(fmt)
        if fmt is None and not too_large:
            errors.append("The image field must be an image.")

    if declared not in ALLOWED_MIME_TYPES or not (too_large or detected == ALLOWED_MIME_TYPES[declared]):
        errors.append(f"The image field must be a file of type: {ALLOWED_TYPES_LABEL}.")

    if too_large:
        errors.append("The image field has invalid image dimensions.")
    elif width is not None and height is not None and not (
        MIN_DIMENSIONS[0] <= width <= MAX_DIMENSIONS[0] and MIN_DIMENSIONS[1] <= height <= MAX_DIMENSIONS[1]
    ):
        errors.append("The image field has invalid image dimensions.")

    if errors:
        raise UploadValidationError({'image': errors})

    return ImageInfo(extension=detected, width=width, height=height)
