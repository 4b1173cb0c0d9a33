"""Output writer: materializes pages and assets under the output root."""

import logging
import os

from .errors import OutputError
from .utils import is_within

logger = logging.getLogger(__name__)


class OutputWriter:
    def __init__(self, output_dir):
        self.output_dir = os.path.abspath(output_dir)

    def path_for(self, relpath):
        path = os.path.normpath(os.path.join(self.output_dir, relpath))
        # Refuse anything that would land outside the output root
        if not is_within(self.output_dir, path) or os.path.realpath(path) == os.path.realpath(self.output_dir):
            raise OutputError(f"path traversal attempt detected: {relpath}")
        return path

    def exists(self, relpath):
        try:
            return os.path.isfile(self.path_for(relpath))
        except OutputError:
            return False

    def write(self, relpath, data):
        """Write text or bytes to ``relpath``, creating parent directories."""
        path = self.path_for(relpath)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        mode, kwargs = ('w', {'encoding': 'utf-8'}) if isinstance(data, str) else ('wb', {})
        try:
            with open(path, mode, **kwargs) as f:
                f.write(data)
        except (IOError, OSError, PermissionError) as e:
            raise OutputError(f"failed to write {path}: {e}", relpath)
        logger.debug(f"wrote {relpath}")
        return path

    def prune(self, relpaths):
        """Delete stale outputs and any directories they leave empty."""
        removed = []
        for relpath in relpaths:
            try:
                path = self.path_for(relpath)
            except OutputError as e:
                logger.warning(f"Not pruning {relpath}: {e.message}")
                continue
            if not os.path.isfile(path):
                continue
            try:
                os.remove(path)
            except (IOError, OSError, PermissionError) as e:
                logger.error(f"Failed to remove stale output {path}: {e}")
                continue
            removed.append(relpath)
            logger.debug(f"pruned {relpath}")
            self._remove_empty_parents(os.path.dirname(path))
        return removed

    def _remove_empty_parents(self, directory):
        root = os.path.realpath(self.output_dir)
        while os.path.realpath(directory) != root and is_within(root, directory):
            try:
                os.rmdir(directory)
            except OSError:
                break
            directory = os.path.dirname(directory)
