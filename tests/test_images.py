"""Tests for image processing functionality."""

import io
import os
import sys

import pytest
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from conftest import make_png
from hyperref_pkg.errors import UnsupportedImageFormat
from hyperref_pkg.images import ImagePipeline, is_svg

SVG = b'<svg xmlns="http://www.w3.org/2000/svg" width="1" height="1"/>'


class TestImagePipeline:
    """Test cases for image processing functionality."""

    def create_test_image(self, format='PNG', size=(10, 10), mode='RGB', color='red'):
        """Create a test image in memory."""
        img = Image.new(mode, size, color=color)
        img_bytes = io.BytesIO()
        img.save(img_bytes, format=format)
        return img_bytes.getvalue()

    def decode(self, data):
        img = Image.open(io.BytesIO(data))
        img.load()
        return img

    def test_png_to_webp(self):
        result = ImagePipeline().transform(make_png(), 'cat.png')
        img = self.decode(result)
        assert img.format == 'WEBP'
        assert img.size == (4, 4)

    def test_jpeg_to_webp(self):
        result = ImagePipeline().transform(self.create_test_image('JPEG'), 'cat.jpg')
        assert self.decode(result).format == 'WEBP'

    def test_alpha_is_preserved(self):
        data = self.create_test_image('PNG', mode='RGBA', color=(255, 0, 0, 128))
        img = self.decode(ImagePipeline().transform(data, 'a.png'))
        assert img.mode == 'RGBA'

    def test_palette_image_is_converted(self):
        data = self.create_test_image('GIF', mode='P', color=1)
        img = self.decode(ImagePipeline().transform(data, 'a.gif'))
        assert img.format == 'WEBP'

    def test_animated_gif_keeps_frames(self):
        frames = [Image.new('RGB', (8, 8), color=c) for c in ('red', 'blue', 'green')]
        out = io.BytesIO()
        frames[0].save(out, 'GIF', save_all=True, append_images=frames[1:], duration=100, loop=0)

        img = self.decode(ImagePipeline().transform(out.getvalue(), 'spin.gif'))
        assert img.format == 'WEBP'
        assert getattr(img, 'n_frames', 1) == 3

    def test_webp_passthrough(self):
        data = self.create_test_image('WEBP')
        assert ImagePipeline().transform(data, 'a.webp') == data

    def test_webp_reencoded_without_passthrough(self):
        data = self.create_test_image('WEBP', size=(64, 64))
        result = ImagePipeline(quality=10, passthrough_webp=False).transform(data, 'a.webp')
        assert self.decode(result).format == 'WEBP'

    def test_svg_passthrough_by_extension(self):
        assert ImagePipeline().transform(SVG, 'logo.svg') == SVG

    def test_svg_without_extension_is_not_passed_through(self):
        with pytest.raises(UnsupportedImageFormat):
            ImagePipeline().transform(SVG, 'https://example.com/logo')

    def test_fingerprint_tracks_settings(self):
        assert ImagePipeline(80).fingerprint == ImagePipeline(80).fingerprint
        assert ImagePipeline(80).fingerprint != ImagePipeline(60).fingerprint
        assert ImagePipeline(passthrough_webp=False).fingerprint != ImagePipeline().fingerprint

    def test_deterministic_output(self):
        data = self.create_test_image('PNG', size=(32, 32), color='blue')
        pipeline = ImagePipeline()
        assert pipeline.transform(data, 'a.png') == pipeline.transform(data, 'a.png')

    def test_unsupported_data(self):
        with pytest.raises(UnsupportedImageFormat) as exc:
            ImagePipeline().transform(b'this is not an image', 'asset:notes.png')
        assert exc.value.source == 'asset:notes.png'

    def test_truncated_image(self):
        data = self.create_test_image('PNG', size=(64, 64))
        with pytest.raises(UnsupportedImageFormat):
            ImagePipeline().transform(data[:len(data) // 2], 'half.png')


class TestIsSvg:
    def test_extension_with_query(self):
        assert is_svg('https://example.com/logo.svg?v=2')

    def test_raster(self):
        assert not is_svg('cat.png')

    def test_content_is_not_sniffed(self):
        assert not is_svg('https://example.com/logo')

    def test_fragment_is_ignored(self):
        assert is_svg('https://example.com/logo.svg#mark')
