"""
Image pipeline: re-encode raster images to WebP.

SVG passes through untouched. WebP input passes through unless
``passthrough_webp`` is disabled. Everything Pillow can decode is converted.
"""

import io
import logging
from urllib.parse import urlparse

from PIL import Image, UnidentifiedImageError

from .errors import UnsupportedImageFormat

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 80


def is_svg(location):
    """SVG is decided by extension alone, matching the output name chosen at discovery."""
    return bool(location) and urlparse(location).path.lower().endswith('.svg')


class ImagePipeline:
    def __init__(self, quality=DEFAULT_QUALITY, passthrough_webp=True):
        self.quality = quality
        self.passthrough_webp = passthrough_webp

    @property
    def fingerprint(self):
        return f"webp:q{self.quality}:passthrough={int(bool(self.passthrough_webp))}"

    def transform(self, data, location=None):
        """
        Produce the optimized bytes for one image.

        Args:
            data: Source bytes
            location: Path or URL; an ``.svg`` extension passes the bytes through

        Returns:
            Output bytes

        Raises:
            UnsupportedImageFormat: Pillow cannot decode the input
        """
        if is_svg(location):
            logger.debug(f"image: {location} is SVG, passing through")
            return data

        try:
            with Image.open(io.BytesIO(data)) as img:
                if img.format == 'WEBP' and self.passthrough_webp:
                    logger.debug(f"image: {location} is already WebP, passing through")
                    return data
                return self._encode_webp(img)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise UnsupportedImageFormat(f"cannot decode image: {e}", location)

    def _encode_webp(self, img):
        out = io.BytesIO()
        animated = getattr(img, 'is_animated', False)
        if animated:
            img.save(out, 'WEBP', save_all=True, quality=self.quality)
        else:
            if img.mode not in ('RGB', 'RGBA'):
                has_alpha = img.mode in ('LA', 'PA') or 'transparency' in img.info
                img = img.convert('RGBA' if has_alpha else 'RGB')
            img.save(out, 'WEBP', quality=self.quality)
        return out.getvalue()
