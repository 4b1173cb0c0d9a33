"""Hashing and path helpers shared by the planner and the pipelines."""

import hashlib
import os

SHORT_HASH_LENGTH = 16


def content_hash(data):
    """SHA-256 hex digest of bytes or text."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def short_hash(data):
    return content_hash(data)[:SHORT_HASH_LENGTH]


def file_hash(path):
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for block in iter(lambda: f.read(65536), b''):
            digest.update(block)
    return digest.hexdigest()


def is_within(root, path):
    """True if ``path`` is ``root`` or lies below it (both made absolute)."""
    root = os.path.realpath(root)
    path = os.path.realpath(path)
    try:
        return os.path.commonpath([root, path]) == root
    except ValueError:
        # different drives on Windows
        return False


def relative_posix(path, root):
    return os.path.relpath(os.path.realpath(path), os.path.realpath(root)).replace(os.sep, '/')


def resolve_path(path, base_dir):
    """Expand ``~`` and make ``path`` absolute relative to ``base_dir``."""
    if path is None:
        return None
    path = os.path.expanduser(str(path))
    if not os.path.isabs(path):
        path = os.path.join(base_dir, path)
    return os.path.normpath(path)
