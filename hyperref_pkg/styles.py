"""
Style pipeline: resolve named style chunks and assemble a page's styles.

Pages collect style names while rendering (``paragraph``, ``link``, ...).
Each name maps to a CSS file under the chunk root: explicitly through the
configured ``styles`` map, ``global`` to the global file, anything else to
``<name>.css``.
"""

import logging
import os
import re

import csscompressor

from .errors import SourceError, StyleChunkNotFound
from .utils import is_within

logger = logging.getLogger(__name__)

GLOBAL_STYLE = 'global'
DEFAULT_GLOBAL_FILE = '_global.css'
IMPORT_RULE_RE = re.compile(r'''@import\s+(?:url\([^)]*\)|"[^"]*"|'[^']*')[^;]*;[ \t]*\n?''')


def order_style_names(names):
    """``global`` first, then every other name in first-required order."""
    ordered = [GLOBAL_STYLE]
    for name in names:
        if name not in ordered:
            ordered.append(name)
    return ordered


def hoist_imports(css):
    """Move every ``@import`` rule to the top, where CSS requires it."""
    imports = []
    for match in IMPORT_RULE_RE.finditer(css):
        rule = match.group(0).strip()
        if rule not in imports:
            imports.append(rule)
    if not imports:
        return css
    rest = IMPORT_RULE_RE.sub('', css).strip('\n')
    return '\n'.join(imports + ([rest] if rest else []))


class StylePipeline:
    def __init__(self, chunks_root, style_map=None, global_file=DEFAULT_GLOBAL_FILE, minify=False, font_pipeline=None):
        self.chunks_root = os.path.realpath(chunks_root) if chunks_root else None
        self.style_map = dict(style_map or {})
        self.global_file = global_file or DEFAULT_GLOBAL_FILE
        self.minify = minify
        self.font_pipeline = font_pipeline

    def resolve(self, name):
        """
        Find the chunk file for a style name.

        Returns:
            Absolute path, or None for a default-named chunk that does not exist

        Raises:
            StyleChunkNotFound: an explicitly configured chunk is missing
        """
        if self.chunks_root is None:
            return None
        explicit = name in self.style_map or (name == GLOBAL_STYLE and self.global_file != DEFAULT_GLOBAL_FILE)
        if name in self.style_map:
            filename = self.style_map[name]
        elif name == GLOBAL_STYLE:
            filename = self.global_file
        else:
            filename = f"{name}.css"

        path = os.path.realpath(os.path.join(self.chunks_root, filename))
        if not is_within(self.chunks_root, path):
            raise StyleChunkNotFound(f"style chunk '{name}' resolves outside the chunk root: {filename}")
        if os.path.isfile(path):
            return path
        if explicit:
            raise StyleChunkNotFound(f"style chunk '{name}' not found: {path}")
        logger.debug(f"styles: no chunk file for '{name}', skipping")
        return None

    def read_chunk(self, path):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except UnicodeDecodeError as e:
            raise SourceError(f"style chunk is not valid UTF-8: {path}: {e}")

    def collect(self, names, source=None):
        """
        Concatenate the chunks a page needs into one ``<style>`` block.

        Args:
            names: Style names in the order the renderer first required them
            source: Page identity for error messages

        Returns:
            The ``<style>`` element text
        """
        parts = []
        for name in order_style_names(names):
            path = self.resolve(name)
            if path is None:
                continue
            css = self.read_chunk(path)
            if self.font_pipeline is not None:
                css = self.font_pipeline.expand(css, source)
            parts.append(css.strip('\n'))

        css = hoist_imports('\n'.join(parts))
        if self.minify:
            css = csscompressor.compress(css)
        return f"<style>\n{css}\n</style>"
