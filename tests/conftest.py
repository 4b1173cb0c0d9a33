"""Test configuration and fixtures for hyperref tests."""

import io
import os
import shutil
import sys
import tempfile
import threading
from pathlib import Path
from unittest.mock import Mock

import pytest
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from hyperref_pkg.errors import FetchError

PRELUDE = """<!DOCTYPE html>
<html>
<head>
<title>@@@SLOT_TITLE@@@</title>
@@@SLOT_STYLES@@@
</head>
<body>
@@@IF_DATE@@@<p class="date">@@@SLOT_DATE@@@</p>@@@END_DATE@@@
@@@IF_TIME_TO_READ@@@<p class="ttr">@@@SLOT_TIME_TO_READ@@@</p>@@@END_TIME_TO_READ@@@
<main>@@@SLOT_CONTENT@@@</main>
</body>
</html>
"""


class FakeFetcher:
    """Serves canned responses and counts requests per URL."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = {}
        self._lock = threading.Lock()

    def fetch(self, url, fonts=False):
        with self._lock:
            self.calls[url] = self.calls.get(url, 0) + 1
        if url not in self.responses:
            raise FetchError("HTTP request failed: 404 Not Found", url)
        return self.responses[url]

    def close(self):
        pass


def make_png(color='red', size=(4, 4), mode='RGB'):
    img = Image.new(mode, size, color=color)
    out = io.BytesIO()
    img.save(out, 'PNG')
    return out.getvalue()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def site(temp_dir):
    """
    A minimal site: src/, lib/ with a prelude and style chunks, assets/ and
    an index page. Returns a dict of paths.
    """
    root = Path(temp_dir)
    src = root / 'src'
    lib = root / 'lib'
    chunks = lib / 'style-chunks'
    assets = root / 'assets'
    for directory in (src, chunks, lib / 'themes', assets):
        directory.mkdir(parents=True)

    (lib / 'prelude.html').write_text(PRELUDE, encoding='utf-8')
    (chunks / '_global.css').write_text("body { margin: 0; }\n", encoding='utf-8')
    (chunks / 'paragraph.css').write_text("p { line-height: 1.5; }\n", encoding='utf-8')
    (chunks / 'h1.css').write_text("h1 { font-size: 2em; }\n", encoding='utf-8')
    (src / 'index.md').write_text("---\ntitle: Home\n---\n\n# Home\n\nWelcome.\n", encoding='utf-8')

    return {
        'root': str(root),
        'src': str(src),
        'lib': str(lib),
        'chunks': str(chunks),
        'assets': str(assets),
        'out': str(root / 'out'),
        'state': str(root / '.hyperref-state.json'),
    }


@pytest.fixture
def write_page(site):
    """Write a Markdown document under src/."""
    def write(relpath, body, title='Page', extra=''):
        path = Path(site['src']) / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"---\ntitle: {title}\n{extra}---\n\n{body}", encoding='utf-8')
        return str(path)
    return write


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def make_builder(site, fake_fetcher):
    """Factory for a SiteBuilder over the ``site`` fixture."""
    from hyperref_pkg.core import SiteBuilder

    def make(**kwargs):
        options = dict(
            source_dir=site['src'],
            output_dir=site['out'],
            lib_dir=site['lib'],
            assets_dir=site['assets'],
            state_file=site['state'],
            concurrency=4,
            fetcher=fake_fetcher,
        )
        options.update(kwargs)
        return SiteBuilder(**options)
    return make


@pytest.fixture
def mock_session():
    """Create a mock requests session."""
    session = Mock()
    session.timeout = 30
    session.headers = {}
    return session


@pytest.fixture
def sample_image_data():
    """Sample image data for testing."""
    return make_png()
