"""
Exception types raised while planning and building a site.

Per-node errors (front matter, references, image and font transforms, style
chunks) are collected by the builder and reported together at the end of a
run. Shell and configuration errors are global and abort the run.
"""


class HyperrefError(Exception):
    """Base class for every error raised by hyperref."""

    def __init__(self, message, source=None):
        super().__init__(message)
        self.message = message
        self.source = source

    @property
    def kind(self):
        return type(self).__name__

    def __str__(self):
        if self.source:
            return f"{self.source}: {self.message}"
        return self.message


class MissingFrontMatter(HyperrefError):
    pass


class InvalidFrontMatter(HyperrefError):
    pass


class UnresolvedReference(HyperrefError):
    pass


class UnsupportedImageFormat(HyperrefError):
    pass


class FetchError(HyperrefError):
    pass


class FontFetchError(HyperrefError):
    pass


class StyleChunkNotFound(HyperrefError):
    pass


class SourceError(HyperrefError):
    """A source document cannot be read or rendered."""


class OutputError(HyperrefError):
    pass


class BuildError(HyperrefError):
    """An unexpected error while building one node."""


class ConfigurationError(HyperrefError):
    """Invalid settings, missing entry point or unknown theme. Fatal."""


class ShellTemplateError(ConfigurationError):
    """The page shell cannot be compiled. Fatal, since every page uses it."""


class MissingRequiredSlot(ShellTemplateError):
    pass


class UnknownSlot(ShellTemplateError):
    pass


class UnbalancedBlock(ShellTemplateError):
    pass
