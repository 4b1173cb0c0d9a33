"""
Font pipeline: inline webfont stylesheets and localize their font files.

A style chunk requests a webfont with a comment directive::

    /* @webfont https://fonts.googleapis.com/css2?family=Quicksand:wght@400;700 */

The stylesheet is fetched once per run, every ``url(...)`` it references is
downloaded to ``fonts/<hash><ext>`` and rewritten, and the directive is
replaced by the resulting CSS.
"""

import logging
import os
import re
from urllib.parse import urljoin, urlparse

from .errors import FetchError, FontFetchError
from .graph import font_stylesheet_id, font_file_id
from .utils import short_hash

logger = logging.getLogger(__name__)

WEBFONT_DIRECTIVE_RE = re.compile(r'/\*\s*@webfont\s+(\S+?)\s*\*/')
FONT_URL_RE = re.compile(r'url\(\s*([\'"]?)([^\'")]+)\1\s*\)')


def find_webfont_directives(css):
    """Stylesheet URLs named by webfont directives, in order, without duplicates."""
    urls = []
    for match in WEBFONT_DIRECTIVE_RE.finditer(css):
        if match.group(1) not in urls:
            urls.append(match.group(1))
    return urls


def font_output_name(url):
    ext = os.path.splitext(urlparse(url).path)[1].lower()
    return f"fonts/{short_hash(url)}{ext}"


class FontBundle:
    """Rewritten stylesheet text plus the font files it now points at."""

    def __init__(self, url, css, files=None, degraded=False):
        self.url = url
        self.css = css
        self.files = files or []
        self.degraded = degraded

    @property
    def outputs(self):
        return [output for _, output in self.files]


class FontPipeline:
    def __init__(self, fetcher, cache, tolerate_failures=False, on_font_file=None):
        """
        Args:
            fetcher: Fetch collaborator
            cache: Shared AssetCache
            tolerate_failures: Keep external references instead of failing
            on_font_file: Callable(stylesheet_url, font_url, output, data), run once per font file
        """
        self.fetcher = fetcher
        self.cache = cache
        self.tolerate_failures = tolerate_failures
        self.on_font_file = on_font_file

    def expand(self, css, source=None):
        """Replace every webfont directive in ``css`` with the localized stylesheet."""
        def replace(match):
            return self.load(match.group(1), source).css
        return WEBFONT_DIRECTIVE_RE.sub(replace, css)

    def load(self, url, source=None):
        return self.cache.get_or_build(font_stylesheet_id(url), lambda: self._build(url, source))

    def _build(self, url, source):
        logger.info(f"Fetching webfont stylesheet {url}")
        try:
            stylesheet = self.fetcher.fetch(url, fonts=True).decode('utf-8')
        except (FetchError, UnicodeDecodeError) as e:
            if not self.tolerate_failures:
                raise FontFetchError(f"cannot fetch webfont stylesheet {url}: {e}", source)
            logger.warning(f"Keeping external webfont stylesheet {url}: {e}")
            return FontBundle(url, f'@import url("{url}");', degraded=True)

        files = []
        failures = []

        def localize(match):
            quote, src = match.group(1), match.group(2).strip()
            if src.startswith('data:'):
                return match.group(0)
            font_url = urljoin(url, src)
            try:
                output = self.cache.get_or_build(font_file_id(font_url),
                                                 lambda: self._fetch_font_file(url, font_url))
            except FontFetchError as e:
                if not self.tolerate_failures:
                    failures.append(e)
                    return match.group(0)
                logger.warning(f"Keeping external font file {font_url}: {e.message}")
                return f"url({quote}{font_url}{quote})"
            if (font_url, output) not in files:
                files.append((font_url, output))
            return f"url(/{output})"

        css = FONT_URL_RE.sub(localize, stylesheet)
        if failures:
            raise failures[0]
        return FontBundle(url, css.strip(), files)

    def _fetch_font_file(self, stylesheet_url, font_url):
        try:
            data = self.fetcher.fetch(font_url, fonts=True)
        except FetchError as e:
            raise FontFetchError(f"cannot fetch font file {font_url}: {e}", stylesheet_url)
        output = font_output_name(font_url)
        if self.on_font_file is not None:
            self.on_font_file(stylesheet_url, font_url, output, data)
        return output
