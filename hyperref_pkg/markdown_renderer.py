"""
Markdown to HTML with mistune.

The renderer hands every link and image URL to a resolution callback and
records which style chunks the produced markup needs.
"""

import mistune

PLUGINS = ['table', 'task_lists', 'strikethrough']


class HyperrefRenderer(mistune.HTMLRenderer):
    """HTML renderer that routes URLs through ``resolve`` and tracks style names."""

    def __init__(self, resolve, highlight=None):
        super().__init__(escape=False)
        self.resolve = resolve
        self.highlight = highlight
        self.styles = []

    def require(self, name):
        if name not in self.styles:
            self.styles.append(name)

    def link(self, text, url, title=None):
        self.require('link')
        href = self.resolve(url, False)
        return super().link(text, url if href is None else href, title)

    def image(self, text, url, title=None):
        self.require('image')
        src = self.resolve(url, True)
        return super().image(text, url if src is None else src, title)

    def paragraph(self, text):
        self.require('paragraph')
        return super().paragraph(text)

    def heading(self, text, level, **attrs):
        if level == 1:
            self.require('h1')
        return super().heading(text, level, **attrs)

    def block_code(self, code, info=None):
        self.require('code')
        language = info.strip().split(None, 1)[0] if info and info.strip() else None
        if self.highlight is None:
            return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>\n'.format(mistune.escape(code))
        return self.highlight(code, language)

    def table(self, text):
        self.require('table')
        return '<table>\n' + text + '</table>\n'


def render_markdown(text, resolve, highlight=None):
    """
    Render Markdown text.

    Args:
        text: Markdown body (front matter already removed)
        resolve: Callable(url, embed) -> replacement URL or None to keep it
        highlight: Callable(code, language) -> HTML for fenced code blocks

    Returns:
        Tuple of (html, style names in first-required order)
    """
    renderer = HyperrefRenderer(resolve, highlight)
    parser = mistune.create_markdown(renderer=renderer, plugins=PLUGINS)
    html = parser(text)
    return html, list(renderer.styles)
