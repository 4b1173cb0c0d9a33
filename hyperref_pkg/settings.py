#!/usr/bin/env python3
"""
Settings loader for hyperref.
Reads a build configuration from a YAML or JSON file.
"""

import json
import os
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigurationError
from .utils import resolve_path


class HyperrefSettings:
    """Load and resolve hyperref configuration settings."""

    DEFAULT_SETTINGS = {
        # roots
        'source': 'src',
        'lib': 'lib',
        'assets': 'assets',
        'output': 'out',
        # inputs, defaulting to files inside the roots
        'index': None,
        'keep': None,
        'prelude': None,
        # styles
        'style_chunks': None,
        'global_style': '_global.css',
        'styles': {},
        # syntax highlighting
        'theme_dir': None,
        'theme': 'default',
        # build
        'concurrency': 4,
        'state_file': None,
        'image_quality': 80,
        'passthrough_webp': True,
        'tolerate_font_failures': False,
        'minify_styles': False,
        'log_dir': None,
    }

    CONFIG_FILES = ['hyperref.yml', 'hyperref.yaml', 'hyperref.json']

    PATH_KEYS = ('source', 'lib', 'assets', 'output', 'index', 'keep', 'prelude',
                 'style_chunks', 'theme_dir', 'state_file', 'log_dir')

    def __init__(self, config_path: str = None):
        """
        Args:
            config_path: Configuration file. Defaults to the first of
                CONFIG_FILES found in the current directory.
        """
        self.config_path = config_path
        self.settings = dict(self.DEFAULT_SETTINGS)

    def find_config_file(self, directory: str = None) -> Optional[str]:
        directory = directory or os.getcwd()
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(directory, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from the configuration file, merged over the defaults.

        Raises:
            ConfigurationError: no config file, or it cannot be parsed
        """
        config_path = self.config_path or self.find_config_file()
        if not config_path:
            raise ConfigurationError(f"no configuration file found (looked for {', '.join(self.CONFIG_FILES)})")
        self.config_path = os.path.abspath(config_path)

        loaded = self._load_config_file(self.config_path)
        unknown = sorted(set(loaded) - set(self.DEFAULT_SETTINGS))
        if unknown:
            raise ConfigurationError(f"unknown settings: {', '.join(unknown)}", self.config_path)
        self.settings.update(loaded)
        self._validate()
        return dict(self.settings)

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    data = yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    data = json.load(f) or {}
                else:
                    raise ConfigurationError(f"unsupported config file format: {file_ext}", config_path)
        except FileNotFoundError:
            raise ConfigurationError("configuration file not found", config_path)
        except PermissionError:
            raise ConfigurationError("permission denied reading configuration file", config_path)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML in configuration file: {e}", config_path)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"invalid JSON in configuration file: {e}", config_path)
        except (IOError, OSError) as e:
            raise ConfigurationError(f"error reading configuration file: {e}", config_path)

        if not isinstance(data, dict):
            raise ConfigurationError("configuration must be a mapping", config_path)
        return data

    def _validate(self):
        styles = self.settings.get('styles') or {}
        if not isinstance(styles, dict) or not all(isinstance(v, str) for v in styles.values()):
            raise ConfigurationError("'styles' must map style names to file names", self.config_path)
        self.settings['styles'] = {str(k): v for k, v in styles.items()}

        for key in ('concurrency', 'image_quality'):
            value = self.settings.get(key)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"'{key}' must be a positive integer", self.config_path)
        if self.settings['image_quality'] > 100:
            raise ConfigurationError("'image_quality' must be between 1 and 100", self.config_path)

        for key in ('passthrough_webp', 'tolerate_font_failures', 'minify_styles'):
            if not isinstance(self.settings.get(key), bool):
                raise ConfigurationError(f"'{key}' must be true or false", self.config_path)

    def resolve(self) -> Dict[str, Any]:
        """
        Resolve every path setting relative to the config file's directory
        and fill in the defaults that live inside the roots.
        """
        base_dir = os.path.dirname(self.config_path) if self.config_path else os.getcwd()
        resolved = dict(self.settings)
        for key in self.PATH_KEYS:
            resolved[key] = resolve_path(resolved.get(key), base_dir)

        source, lib = resolved['source'], resolved['lib']
        resolved['index'] = resolved['index'] or os.path.join(source, 'index.md')
        resolved['keep'] = resolved['keep'] or os.path.join(source, '_keep.md')
        resolved['prelude'] = resolved['prelude'] or os.path.join(lib, 'prelude.html')
        resolved['style_chunks'] = resolved['style_chunks'] or os.path.join(lib, 'style-chunks')
        resolved['theme_dir'] = resolved['theme_dir'] or os.path.join(lib, 'themes')
        resolved['state_file'] = resolved['state_file'] or os.path.join(base_dir, '.hyperref-state.json')
        return resolved

    def create_sample_config(self, directory: str = None, file_format: str = 'yml') -> str:
        """
        Write a starter configuration file.

        Args:
            directory: Where to write it (defaults to the current directory)
            file_format: 'yml', 'yaml' or 'json'

        Returns:
            Path of the created file
        """
        if file_format not in ('yml', 'yaml', 'json'):
            raise ConfigurationError(f"unsupported config file format: {file_format}")
        directory = directory or os.getcwd()
        config_path = os.path.join(directory, f'hyperref.{file_format}')
        if os.path.exists(config_path):
            raise ConfigurationError("configuration file already exists", config_path)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# hyperref configuration\n\n")
                    f.write("# Roots, relative to this file\n")
                    f.write("source: src\n")
                    f.write("lib: lib\n")
                    f.write("assets: assets\n")
                    f.write("output: out\n\n")
                    f.write("# Entry point and keep file (default: index.md and _keep.md in source)\n")
                    f.write("index: null\n")
                    f.write("keep: null\n\n")
                    f.write("# Page shell (default: lib/prelude.html)\n")
                    f.write("prelude: null\n\n")
                    f.write("# Style chunks (default root: lib/style-chunks)\n")
                    f.write("style_chunks: null\n")
                    f.write("global_style: _global.css\n")
                    f.write("styles: {}\n\n")
                    f.write("# Syntax highlighting theme (Pygments style or a YAML theme in lib/themes)\n")
                    f.write("theme: default\n\n")
                    f.write("# Build settings\n")
                    f.write("concurrency: 4\n")
                    f.write("image_quality: 80\n")
                    f.write("passthrough_webp: true\n")
                    f.write("tolerate_font_failures: false\n")
                    f.write("minify_styles: false\n")
                    f.write("log_dir: null\n")
                else:
                    json.dump(self.DEFAULT_SETTINGS, f, indent=2)
                    f.write('\n')
        except (IOError, OSError) as e:
            raise ConfigurationError(f"error writing configuration file: {e}", config_path)

        return config_path
