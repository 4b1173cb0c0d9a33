"""
Syntax highlighting of fenced code blocks with Pygments.

Themes come from three places, first match wins:

1. YAML theme files in the configured theme directory
2. YAML themes bundled with the package (``hyperref_pkg/themes``)
3. Pygments' built-in styles

A YAML theme maps token categories to Pygments style strings::

    background: "#fbfaf7"
    styles:
      Comment: "italic #8a8a8a"
      Keyword: "bold #7a3e9d"
      Name.Function: "#2c5d8a"
"""

import html
import logging
import os

import yaml
from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.style import Style
from pygments.styles import get_all_styles, get_style_by_name
from pygments.token import string_to_tokentype
from pygments.util import ClassNotFound

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_THEME = 'default'
BUNDLED_THEMES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'themes')
THEME_EXTENSIONS = ('.yml', '.yaml')


def plain_code_block(code):
    return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>\n'.format(html.escape(code))


def load_theme_file(path):
    """Build a Pygments ``Style`` subclass from a YAML theme definition."""
    name = os.path.splitext(os.path.basename(path))[0]
    try:
        with open(path, 'r', encoding='utf-8') as f:
            definition = yaml.safe_load(f) or {}
    except (IOError, OSError) as e:
        raise ConfigurationError(f"cannot read theme {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in theme {path}: {e}")

    if not isinstance(definition, dict) or not isinstance(definition.get('styles', {}), dict):
        raise ConfigurationError(f"theme {path} must be a mapping with a 'styles' mapping")

    styles = {}
    for category, style in definition.get('styles', {}).items():
        category = str(category)
        if category.startswith('Token.'):
            category = category[len('Token.'):]
        try:
            styles[string_to_tokentype(category)] = str(style or '')
        except AttributeError:
            raise ConfigurationError(f"unknown token category '{category}' in theme {path}")

    attrs = {'styles': styles}
    if definition.get('background'):
        attrs['background_color'] = str(definition['background'])
    if definition.get('highlight'):
        attrs['highlight_color'] = str(definition['highlight'])
    try:
        return type(f"{name.title().replace('-', '').replace('_', '')}Style", (Style,), attrs)
    except (ValueError, AssertionError) as e:
        raise ConfigurationError(f"invalid style in theme {path}: {e}")


class ThemeRegistry:
    def __init__(self, theme_dir=None):
        self.theme_dir = theme_dir

    def _theme_files(self, directory):
        if not directory or not os.path.isdir(directory):
            return {}
        return {
            os.path.splitext(filename)[0]: os.path.join(directory, filename)
            for filename in sorted(os.listdir(directory))
            if filename.endswith(THEME_EXTENSIONS)
        }

    def names(self):
        names = set(get_all_styles())
        names.update(self._theme_files(BUNDLED_THEMES_DIR))
        names.update(self._theme_files(self.theme_dir))
        return sorted(names)

    def path(self, name):
        """Theme file defining ``name``, or None for a Pygments built-in or unknown name."""
        for directory in (self.theme_dir, BUNDLED_THEMES_DIR):
            path = self._theme_files(directory).get(name)
            if path:
                return path
        return None

    def get(self, name):
        """
        Look up a theme by name.

        Returns:
            A Pygments Style subclass

        Raises:
            ConfigurationError: no theme has that name
        """
        path = self.path(name)
        if path:
            logger.debug(f"highlight: loading theme {name} from {path}")
            return load_theme_file(path)
        try:
            return get_style_by_name(name)
        except ClassNotFound:
            raise ConfigurationError(f"unknown syntax theme '{name}' (available: {', '.join(self.names())})")


class Highlighter:
    """Renders fenced code blocks as inline-styled HTML."""

    def __init__(self, style):
        self.formatter = HtmlFormatter(style=style, noclasses=True)

    def highlight(self, code, language=None):
        if not language:
            return plain_code_block(code)
        try:
            lexer = get_lexer_by_name(language, stripnl=False)
        except ClassNotFound:
            logger.debug(f"highlight: unsupported language '{language}', rendering as plain text")
            return plain_code_block(code)
        return pygments_highlight(code, lexer, self.formatter)
