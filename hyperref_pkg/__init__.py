"""
hyperref - a static site build planner and asset pipeline.

hyperref renders a tree of Markdown documents into HTML pages, starting from
an entry point and following only the pages and assets that are actually
reachable from it. Images are converted to WebP, webfonts are downloaded and
inlined, style chunks are assembled per page, and a build manifest keeps
incremental runs down to what changed.
"""

__version__ = "1.0.0"

from .core import SiteBuilder, BuildReport, BuildFailure
from .errors import HyperrefError, ConfigurationError
from .settings import HyperrefSettings

__all__ = ['SiteBuilder', 'BuildReport', 'BuildFailure', 'HyperrefError', 'ConfigurationError', 'HyperrefSettings']
