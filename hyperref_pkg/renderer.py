"""
Content renderer: one Markdown document in, HTML plus discovered references out.
"""

import logging

from .errors import HyperrefError, MissingFrontMatter, SourceError
from .frontmatter import FrontMatter, parse_front_matter
from .graph import page_id
from .utils import content_hash, relative_posix
from .markdown_renderer import render_markdown

logger = logging.getLogger(__name__)


class Document:
    """A content document and everything derived from rendering it."""

    def __init__(self, node_id, path, raw, front_matter, body, keep=False):
        self.id = node_id
        self.path = path
        self.raw = raw
        self.front_matter = front_matter
        self.body = body
        self.keep = keep
        self.html = None
        self.styles = []
        self.references = []

    @property
    def content_hash(self):
        return content_hash(self.raw)

    @property
    def output(self):
        """Output path relative to the output root (``a/b.md`` -> ``a/b.html``)."""
        relpath = self.id.split(':', 1)[1]
        if relpath.endswith('.md'):
            relpath = relpath[:-len('.md')]
        return relpath + '.html'


class ContentRenderer:
    def __init__(self, source_root, resolver, highlighter=None):
        self.source_root = source_root
        self.resolver = resolver
        self.highlighter = highlighter

    def load(self, path, keep=False):
        """
        Read a document and parse its front matter.

        The keep file may omit front matter since it is never emitted.
        """
        node_id = page_id(relative_posix(path, self.source_root))
        try:
            with open(path, 'r', encoding='utf-8') as f:
                raw = f.read()
        except (IOError, OSError, UnicodeDecodeError) as e:
            raise SourceError(f"cannot read document: {e}", node_id)
        raw = raw.lstrip('\ufeff')

        try:
            front_matter, body = parse_front_matter(raw, node_id)
        except MissingFrontMatter:
            if not keep:
                raise
            front_matter, body = FrontMatter(title=''), raw
        return Document(node_id, path, raw, front_matter, body, keep=keep)

    def render(self, path, keep=False):
        """
        Render a document, resolving every reference it makes.

        Raises on the first unresolved reference: a document either renders
        completely or not at all.
        """
        document = self.load(path, keep)
        references = []

        def resolve(url, embed):
            reference = self.resolver.resolve(url, document.path, embed=embed, source=document.id)
            if reference is None:
                return None
            references.append(reference)
            return reference.href

        highlight = self.highlighter.highlight if self.highlighter else None
        try:
            html, styles = render_markdown(document.body, resolve, highlight)
        except HyperrefError:
            raise
        except Exception as e:
            raise SourceError(f"Markdown rendering failed: {e}", document.id)

        document.html = html
        document.styles = styles
        document.references = references
        logger.debug(f"rendered {document.id}: {len(references)} references, styles {styles}")
        return document
