#!/usr/bin/env python3
"""
Command-line interface for hyperref.
"""

import argparse
import os
import sys

from . import __version__
from .core import SiteBuilder
from .errors import ConfigurationError
from .settings import HyperrefSettings


def create_starter_structure(directory):
    """Create the source and lib directories a fresh config points at."""
    samples = {
        os.path.join('src', 'index.md'): (
            "---\n"
            "title: Home\n"
            "---\n\n"
            "# Welcome\n\n"
            "This site is built with hyperref. See the [about page](page:about).\n"
        ),
        os.path.join('src', 'about.md'): (
            "---\n"
            "title: About\n"
            "date: 01/01/2024\n"
            "time_to_read: 1 minute\n"
            "---\n\n"
            "Back to the [home page](page:/index).\n"
        ),
        os.path.join('lib', 'prelude.html'): (
            "<!DOCTYPE html>\n"
            "<html>\n"
            "<head>\n"
            "<meta charset=\"utf-8\">\n"
            "<title>@@@SLOT_TITLE@@@</title>\n"
            "@@@SLOT_STYLES@@@\n"
            "</head>\n"
            "<body>\n"
            "@@@IF_DATE@@@<p class=\"date\">@@@SLOT_DATE@@@</p>@@@END_DATE@@@\n"
            "@@@IF_TIME_TO_READ@@@<p class=\"ttr\">@@@SLOT_TIME_TO_READ@@@</p>@@@END_TIME_TO_READ@@@\n"
            "<main>\n@@@SLOT_CONTENT@@@</main>\n"
            "</body>\n"
            "</html>\n"
        ),
        os.path.join('lib', 'style-chunks', '_global.css'): "body { margin: 0 auto; max-width: 40em; }\n",
        os.path.join('lib', 'style-chunks', 'paragraph.css'): "p { line-height: 1.5; }\n",
    }
    for directory_name in ('src', 'assets', os.path.join('lib', 'style-chunks'), os.path.join('lib', 'themes')):
        os.makedirs(os.path.join(directory, directory_name), exist_ok=True)

    for relpath, content in samples.items():
        path = os.path.join(directory, relpath)
        if os.path.exists(path):
            print(f"File already exists: {relpath}")
            continue
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        print(f"Created {relpath}")


def build_parser():
    parser = argparse.ArgumentParser(prog='hyperref', description='hyperref - static site build planner')
    parser.add_argument('config', nargs='?',
                        help='Configuration file (default: hyperref.yml, hyperref.yaml or hyperref.json)')
    parser.add_argument('--force', action='store_true',
                        help='Rebuild every reachable page and asset, ignoring the build manifest')
    parser.add_argument('--jobs', '-j', type=int,
                        help='Number of worker threads (overrides concurrency)')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file and starter structure')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    # Handle init command
    if args.init:
        directory = os.path.dirname(os.path.abspath(args.config)) if args.config else os.getcwd()
        try:
            config_path = HyperrefSettings().create_sample_config(directory, args.init)
        except ConfigurationError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Created sample configuration file: {config_path}")
        print("\nCreating starter project structure...")
        create_starter_structure(directory)
        print("\nEdit the configuration and content, then run 'hyperref' to build your site.")
        return 0

    if args.jobs is not None and args.jobs < 1:
        print("Error: --jobs must be at least 1", file=sys.stderr)
        return 1

    builder = None
    try:
        settings_loader = HyperrefSettings(args.config)
        settings_loader.load_settings()
        settings = settings_loader.resolve()
        if args.jobs is not None:
            settings['concurrency'] = args.jobs

        builder = SiteBuilder.from_settings(settings)
        report = builder.build(force=args.force)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if builder is not None:
            builder.cleanup()

    if not report.success:
        print(report.summary(), file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
