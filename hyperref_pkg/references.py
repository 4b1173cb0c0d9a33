"""
Reference resolution.

Every link and image URL met while rendering goes through
``ReferenceResolver.resolve``, which classifies it by scheme into one of the
four ``ReferenceKind`` variants and computes the URL written into the page:

    page:about          -> /about.html        (PAGE)
    asset:img/cat.png   -> /images/<h>.webp   (ASSET, always optimized)
    https://x/cat.png   -> /images/<h>.webp   (RAW_OPTIMIZED, images only)
    https-noprocess://x -> https://x          (RAW_UNOPTIMIZED, left alone)
"""

import enum
import os
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote

from .errors import UnresolvedReference
from .graph import page_id, asset_id, remote_image_id
from .images import is_svg
from .utils import SHORT_HASH_LENGTH, file_hash, short_hash, is_within, relative_posix

PAGE_SCHEMES = ('page', 'hyperref')
ASSET_SCHEME = 'asset'
FETCH_SCHEMES = ('http', 'https')
NOPROCESS_SUFFIX = '-noprocess'
CONTENT_EXTENSION = '.md'

SCHEME_RE = re.compile(r'^([A-Za-z][A-Za-z0-9+.\-]*):(.*)$', re.DOTALL)


class ReferenceKind(enum.Enum):
    PAGE = 'page'
    ASSET = 'asset'
    RAW_OPTIMIZED = 'raw'
    RAW_UNOPTIMIZED = 'raw-noprocess'


@dataclass(frozen=True)
class Reference:
    """A typed edge from a document to whatever one of its URLs points at."""
    kind: ReferenceKind
    target: str
    href: str
    source: Optional[str] = None
    location: Optional[str] = None
    output: Optional[str] = None

    @property
    def optimize(self):
        return self.kind in (ReferenceKind.ASSET, ReferenceKind.RAW_OPTIMIZED)

    @property
    def in_graph(self):
        return self.kind is not ReferenceKind.RAW_UNOPTIMIZED

    @property
    def embeds(self):
        """Whether the source's output depends on the target's content."""
        return self.kind in (ReferenceKind.ASSET, ReferenceKind.RAW_OPTIMIZED)


def image_output_name(key, location):
    """Output path for an image; SVG keeps its format, everything else becomes WebP."""
    ext = '.svg' if is_svg(location) else '.webp'
    return f"images/{key}{ext}"


def split_scheme(url):
    match = SCHEME_RE.match(url)
    if not match:
        return None, url
    return match.group(1).lower(), match.group(2)


class ReferenceResolver:
    """Maps scheme-qualified URLs to canonical node identities."""

    def __init__(self, source_root, assets_root):
        self.source_root = os.path.realpath(source_root)
        self.assets_root = os.path.realpath(assets_root) if assets_root else None

    def resolve(self, url, source_path, embed=False, source=None):
        """
        Resolve one URL found in a document.

        Args:
            url: URL exactly as written in the Markdown
            source_path: Filesystem path of the referencing document
            embed: True for images, False for hyperlinks
            source: Node id of the referencing document

        Returns:
            A Reference, or None if the URL is a plain link left untouched

        Raises:
            UnresolvedReference: a local target cannot be found
        """
        url = url.strip()
        scheme, rest = split_scheme(url)
        if scheme is None:
            return None

        if scheme in PAGE_SCHEMES:
            return self._resolve_page(url, rest, source_path, source)
        if scheme == ASSET_SCHEME:
            return self._resolve_asset(url, rest, source)
        if scheme.endswith(NOPROCESS_SUFFIX):
            base_scheme = scheme[:-len(NOPROCESS_SUFFIX)]
            if base_scheme in PAGE_SCHEMES or base_scheme == ASSET_SCHEME:
                raise UnresolvedReference(f"{base_scheme}: references cannot opt out of processing: {url}", source)
            literal = f"{base_scheme}:{rest}"
            return Reference(ReferenceKind.RAW_UNOPTIMIZED, literal, literal, source=source)
        if not embed:
            # external hyperlink, rendered as written
            return None
        if scheme in FETCH_SCHEMES:
            key = short_hash(url)
            output = image_output_name(key, url)
            return Reference(ReferenceKind.RAW_OPTIMIZED, remote_image_id(url), '/' + output,
                             source=source, location=url, output=output)
        raise UnresolvedReference(f"cannot fetch {scheme}: content: {url}", source)

    def _resolve_page(self, url, rest, source_path, source):
        path_part, _, fragment = rest.partition('#')
        path_part = unquote(path_part)
        if not path_part:
            raise UnresolvedReference(f"empty page reference: {url}", source)

        if path_part.startswith('/'):
            base_dir = self.source_root
            relative = path_part.lstrip('/')
        else:
            base_dir = os.path.dirname(os.path.abspath(source_path))
            relative = path_part
        if not relative or relative.endswith('/'):
            relative += 'index'

        stem, ext = os.path.splitext(relative)
        if ext.lower() in (CONTENT_EXTENSION, '.html', '.htm'):
            relative = stem
        candidate = os.path.realpath(os.path.join(base_dir, relative + CONTENT_EXTENSION))

        if not is_within(self.source_root, candidate):
            raise UnresolvedReference(f"page reference escapes the source root: {url}", source)
        if not os.path.isfile(candidate):
            raise UnresolvedReference(f"no such page: {url}", source)

        relpath = relative_posix(candidate, self.source_root)
        href = '/' + os.path.splitext(relpath)[0] + '.html'
        if fragment:
            href += '#' + fragment
        return Reference(ReferenceKind.PAGE, page_id(relpath), href, source=source, location=candidate)

    def _resolve_asset(self, url, rest, source):
        if self.assets_root is None:
            raise UnresolvedReference(f"no assets root configured for {url}", source)
        relative = unquote(rest.partition('#')[0]).lstrip('/')
        if not relative:
            raise UnresolvedReference(f"empty asset reference: {url}", source)
        candidate = os.path.realpath(os.path.join(self.assets_root, relative))
        if not is_within(self.assets_root, candidate):
            raise UnresolvedReference(f"asset reference escapes the assets root: {url}", source)
        if not os.path.isfile(candidate):
            raise UnresolvedReference(f"no such asset: {url}", source)

        relpath = relative_posix(candidate, self.assets_root)
        output = image_output_name(file_hash(candidate)[:SHORT_HASH_LENGTH], candidate)
        return Reference(ReferenceKind.ASSET, asset_id(relpath), '/' + output,
                         source=source, location=candidate, output=output)
