import json
import os
import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime

from .cache import AssetCache
from .errors import BuildError, ConfigurationError, HyperrefError, OutputError, StyleChunkNotFound
from .fetch import Fetcher
from .fonts import FontPipeline, find_webfont_directives
from .graph import (DependencyGraph, NodeKind, page_id, style_id, font_stylesheet_id, font_file_id, shell_id)
from .highlight import Highlighter, ThemeRegistry, DEFAULT_THEME
from .images import ImagePipeline, DEFAULT_QUALITY
from .manifest import BuildState
from .references import ReferenceKind, ReferenceResolver
from .renderer import ContentRenderer
from .shell import load_shell
from .styles import StylePipeline, DEFAULT_GLOBAL_FILE, order_style_names
from .utils import content_hash, file_hash, relative_posix
from .writer import OutputWriter

LOGGER_NAME = 'hyperref_pkg'


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Starting site build",
            "Planned",
            "Fetching webfont stylesheet",
            "Site build completed in",
            "Pages written:",
            "Assets written:",
            "Stale outputs pruned:",
            "Build failed",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


class BuildFailure:
    def __init__(self, node, kind, message):
        self.node = node
        self.kind = kind
        self.message = message

    def __eq__(self, other):
        return isinstance(other, BuildFailure) and (self.node, self.kind, self.message) == (other.node, other.kind, other.message)

    def __repr__(self):
        return f"BuildFailure({self.node!r}, {self.kind}, {self.message!r})"

    def __str__(self):
        return f"{self.kind} in {self.node}: {self.message}"


class BuildReport:
    """Outcome of one run."""

    def __init__(self):
        self.plan = None
        self.failures = []
        self.pages_written = []
        self.assets_written = []
        self.pruned = []
        self.committed = False
        self.elapsed = 0.0

    @property
    def success(self):
        return not self.failures

    def failed_nodes(self):
        return {failure.node for failure in self.failures}

    def summary(self):
        lines = [f"{len(self.failures)} node(s) failed:"]
        for failure in self.failures:
            lines.append(f"  - {failure}")
        return '\n'.join(lines)


class BuildRun:
    """
    State of a single build: graph, cache, rendered documents and failures.

    Created at the start of ``SiteBuilder.build`` and discarded afterwards.
    """

    def __init__(self, builder, shell, highlighter, state, force):
        self.builder = builder
        self.logger = builder.logger
        self.shell = shell
        self.shell_id = shell_id(os.path.basename(builder.prelude))
        self.shell_hash = builder.page_fingerprint(shell)
        self.state = state
        self.force = force
        self.graph = DependencyGraph()
        self.cache = AssetCache()
        self.writer = OutputWriter(builder.output_dir)
        self.documents = {}
        self.report = BuildReport()
        self._lock = threading.Lock()

        self.resolver = ReferenceResolver(builder.source_dir, builder.assets_dir)
        self.renderer = ContentRenderer(builder.source_dir, self.resolver, highlighter)
        self.images = ImagePipeline(builder.image_quality, builder.passthrough_webp)
        self.fonts = FontPipeline(builder.fetcher, self.cache, builder.tolerate_font_failures,
                                  on_font_file=self._write_font_file)
        self.styles = StylePipeline(builder.style_chunks_dir, builder.styles, builder.global_style,
                                    builder.minify_styles, font_pipeline=self.fonts)

    def fail(self, node_id, error):
        failure = BuildFailure(node_id, error.kind, error.message)
        with self._lock:
            if failure not in self.report.failures:
                self.report.failures.append(failure)
        self.logger.error(f"{error.kind} in {node_id}: {error.message}")

    # discovery

    def roots(self):
        roots = [page_id(relative_posix(self.builder.index, self.builder.source_dir))]
        if self.builder.keep and os.path.isfile(self.builder.keep):
            roots.append(page_id(relative_posix(self.builder.keep, self.builder.source_dir)))
        return roots

    def discover(self):
        """Render every page reachable from the entry point and keep file, building the graph."""
        queue = deque([(self.builder.index, False)])
        if self.builder.keep and os.path.isfile(self.builder.keep):
            queue.append((self.builder.keep, True))
        else:
            self.logger.debug(f"no keep file at {self.builder.keep}")

        self.graph.add_node(self.shell_id, NodeKind.SHELL, self.shell_hash, location=self.builder.prelude)

        seen = set()
        while queue:
            path, keep = queue.popleft()
            node_id = page_id(relative_posix(path, self.builder.source_dir))
            if node_id in seen:
                continue
            seen.add(node_id)

            node = self.graph.add_node(node_id, NodeKind.PAGE, location=path)
            node.keep = keep
            if not keep:
                self.graph.add_edge(node_id, self.shell_id, embeds=True)
            try:
                document = self.renderer.render(path, keep=keep)
            except HyperrefError as e:
                self.fail(node_id, e)
                continue

            self.documents[node_id] = document
            node.content_hash = document.content_hash
            node.outputs = [] if keep else [document.output]

            for reference in document.references:
                target = self._add_reference(document, reference)
                if target is not None:
                    queue.append((target, False))
            self._add_styles(document)

    def _add_reference(self, document, reference):
        """Record one reference as a graph edge; returns a page path to visit, if any."""
        kind = reference.kind
        if kind is ReferenceKind.PAGE:
            self.graph.add_node(reference.target, NodeKind.PAGE, location=reference.location)
            self.graph.add_edge(document.id, reference.target, embeds=False)
            return reference.location
        if kind is ReferenceKind.ASSET:
            source_hash = file_hash(reference.location)
        elif kind is ReferenceKind.RAW_OPTIMIZED:
            source_hash = content_hash(reference.location)
        elif kind is ReferenceKind.RAW_UNOPTIMIZED:
            return None
        else:
            raise AssertionError(f"unhandled reference kind {kind}")
        # re-encoding settings are part of the identity of the optimized bytes
        source_hash = content_hash(f"{source_hash}:{self.images.fingerprint}")
        self.graph.add_node(reference.target, NodeKind.IMAGE, source_hash,
                            location=reference.location, outputs=[reference.output])
        self.graph.add_edge(document.id, reference.target, embeds=True)
        return None

    def _add_styles(self, document):
        for name in order_style_names(document.styles):
            try:
                path = self.styles.resolve(name)
                if path is None:
                    continue
                chunk_id = style_id(relative_posix(path, self.builder.style_chunks_dir))
                is_new = chunk_id not in self.graph
                chunk_hash = file_hash(path)
                directives = find_webfont_directives(self.styles.read_chunk(path)) if is_new else []
            except HyperrefError as e:
                self.fail(document.id, e)
                continue
            except (IOError, OSError) as e:
                self.fail(document.id, StyleChunkNotFound(f"cannot read style chunk '{name}': {e}", document.id))
                continue
            self.graph.add_node(chunk_id, NodeKind.STYLE_CHUNK, chunk_hash, location=path)
            self.graph.add_edge(document.id, chunk_id, embeds=True)
            for url in directives:
                font_id = font_stylesheet_id(url)
                self.graph.add_node(font_id, NodeKind.FONT_STYLESHEET, content_hash(url), location=url)
                self.graph.add_edge(chunk_id, font_id, embeds=True)

    # building

    def plan(self):
        plan = self.graph.plan(self.roots(), None if self.force else self.state,
                               force=self.force, output_exists=self.writer.exists)
        self.report.plan = plan
        self.logger.info(f"Planned {len(plan.dirty)} of {len(plan.reachable)} reachable nodes for rebuild")
        return plan

    def build(self, plan):
        """Run every dirty image, webfont and page task on the worker pool."""
        failed = self.report.failed_nodes()
        tasks = []
        for node_id in sorted(plan.dirty):
            node = self.graph[node_id]
            if node.kind is NodeKind.IMAGE:
                tasks.append((node_id, self.build_image, node))
            elif node.kind is NodeKind.FONT_STYLESHEET:
                tasks.append((node_id, self.build_font_stylesheet, node))
            elif node.kind is NodeKind.PAGE and not node.keep and node_id in self.documents and node_id not in failed:
                tasks.append((node_id, self.build_page, self.documents[node_id]))

        with ThreadPoolExecutor(max_workers=self.builder.concurrency) as executor:
            futures = {executor.submit(task, arg): node_id for node_id, task, arg in tasks}
            for future in as_completed(futures):
                node_id = futures[future]
                try:
                    future.result()
                except HyperrefError as e:
                    self.fail(node_id, e)
                except (IOError, OSError) as e:
                    self.fail(node_id, OutputError(str(e), node_id))
                except Exception as e:
                    self.logger.debug(f"unexpected error building {node_id}", exc_info=True)
                    self.fail(node_id, BuildError(f"{type(e).__name__}: {e}", node_id))

    def build_image(self, node):
        def transform():
            if node.location.startswith(('http://', 'https://')):
                data = self.builder.fetcher.fetch(node.location)
            else:
                with open(node.location, 'rb') as f:
                    data = f.read()
            return self.images.transform(data, node.location)

        data = self.cache.get_or_build(node.id, transform)
        for output in node.outputs:
            self.writer.write(output, data)
            with self._lock:
                self.report.assets_written.append(output)

    def build_font_stylesheet(self, node):
        bundle = self.fonts.load(node.location, node.id)
        for font_url, output in bundle.files:
            file_id = font_file_id(font_url)
            self.graph.add_node(file_id, NodeKind.FONT_FILE, content_hash(font_url),
                                location=font_url, outputs=[output])
            self.graph.add_edge(node.id, file_id, embeds=True)
        node.outputs = bundle.outputs

    def _write_font_file(self, stylesheet_url, font_url, output, data):
        self.writer.write(output, data)
        with self._lock:
            self.report.assets_written.append(output)

    def build_page(self, document):
        styles = self.styles.collect(document.styles, document.id)
        html = self.shell.render(document.html, styles, document.front_matter)
        self.writer.write(document.output, html)
        with self._lock:
            self.report.pages_written.append(document.output)

    # finishing

    def record_state(self, plan):
        failed = self.report.failed_nodes()
        for node_id in sorted(plan.reachable):
            node = self.graph[node_id]
            if node_id in plan.dirty and node_id not in failed:
                self.state.record(node_id, node.kind.value, node.content_hash, node.outputs)
            elif node_id not in plan.dirty:
                self.state.carry_over(node_id)

    def finish(self, plan):
        """Prune stale outputs and commit the manifest, but only after a clean run."""
        if not self.report.success:
            self.logger.error(f"Build failed: {len(self.report.failures)} node(s) failed; "
                              "manifest not committed and stale outputs kept")
            return
        self.record_state(plan)
        self.report.pruned = self.writer.prune(self.state.stale_outputs())
        self.state.commit()
        self.report.committed = True


class SiteBuilder:
    def __init__(self, source_dir, output_dir, lib_dir=None, assets_dir=None, index=None, keep=None,
                 prelude=None, style_chunks_dir=None, styles=None, global_style=DEFAULT_GLOBAL_FILE,
                 theme_dir=None, theme=DEFAULT_THEME, concurrency=4, state_file=None,
                 image_quality=DEFAULT_QUALITY, passthrough_webp=True, tolerate_font_failures=False,
                 minify_styles=False, log_dir=None, fetcher=None):
        self.source_dir = os.path.abspath(source_dir)
        self.output_dir = os.path.abspath(output_dir)
        self.lib_dir = os.path.abspath(lib_dir) if lib_dir else self.source_dir
        self.assets_dir = os.path.abspath(assets_dir) if assets_dir else None
        self.index = os.path.abspath(index) if index else os.path.join(self.source_dir, 'index.md')
        self.keep = os.path.abspath(keep) if keep else os.path.join(self.source_dir, '_keep.md')
        self.prelude = os.path.abspath(prelude) if prelude else os.path.join(self.lib_dir, 'prelude.html')
        self.style_chunks_dir = os.path.abspath(style_chunks_dir) if style_chunks_dir else os.path.join(self.lib_dir, 'style-chunks')
        self.styles = dict(styles or {})
        self.global_style = global_style
        self.theme_dir = os.path.abspath(theme_dir) if theme_dir else os.path.join(self.lib_dir, 'themes')
        self.theme = theme
        self.concurrency = max(1, int(concurrency))
        self.state_file = state_file or os.path.join(os.path.dirname(self.output_dir), '.hyperref-state.json')
        self.image_quality = image_quality
        self.passthrough_webp = passthrough_webp
        self.tolerate_font_failures = tolerate_font_failures
        self.minify_styles = minify_styles
        self.log_dir = log_dir

        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or Fetcher()

        self.setup_logging()

    @classmethod
    def from_settings(cls, settings, fetcher=None):
        """Create a builder from resolved ``HyperrefSettings``."""
        return cls(
            source_dir=settings['source'],
            output_dir=settings['output'],
            lib_dir=settings['lib'],
            assets_dir=settings['assets'],
            index=settings['index'],
            keep=settings['keep'],
            prelude=settings['prelude'],
            style_chunks_dir=settings['style_chunks'],
            styles=settings['styles'],
            global_style=settings['global_style'],
            theme_dir=settings['theme_dir'],
            theme=settings['theme'],
            concurrency=settings['concurrency'],
            state_file=settings['state_file'],
            image_quality=settings['image_quality'],
            passthrough_webp=settings['passthrough_webp'],
            tolerate_font_failures=settings['tolerate_font_failures'],
            minify_styles=settings['minify_styles'],
            log_dir=settings['log_dir'],
            fetcher=fetcher,
        )

    def page_fingerprint(self, shell):
        """Hash of the page shell and of every setting that changes rendered pages."""
        theme_path = ThemeRegistry(self.theme_dir).path(self.theme)
        settings = {
            'shell': shell.source_hash,
            'styles': self.styles,
            'global_style': self.global_style,
            'theme': self.theme,
            'theme_file': file_hash(theme_path) if theme_path else None,
            'minify_styles': self.minify_styles,
            'tolerate_font_failures': self.tolerate_font_failures,
        }
        return content_hash(json.dumps(settings, sort_keys=True))

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(console_handler)

            # File handler for all logs
            if self.log_dir:
                os.makedirs(self.log_dir, exist_ok=True)
                log_filename = datetime.now().strftime('hyperref_%Y-%m-%d_%H-%M-%S.log')
                file_handler = logging.FileHandler(os.path.join(self.log_dir, log_filename))
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
                self.logger.addHandler(file_handler)

    def build(self, force=False):
        """
        Run one build.

        Args:
            force: Rebuild every reachable node, ignoring the manifest

        Returns:
            BuildReport; per-node failures are collected there

        Raises:
            ConfigurationError: missing entry point, bad shell or unknown theme
        """
        start_time = time.time()
        self.logger.info("Starting site build...")

        if not os.path.isfile(self.index):
            raise ConfigurationError("entry point not found", self.index)
        shell = load_shell(self.prelude)
        highlighter = Highlighter(ThemeRegistry(self.theme_dir).get(self.theme))
        state = BuildState.load(self.state_file)

        run = BuildRun(self, shell, highlighter, state, force)
        run.discover()
        plan = run.plan()
        run.build(plan)
        run.finish(plan)

        report = run.report
        report.elapsed = time.time() - start_time
        self.logger.info(f"Site build completed in {report.elapsed:.6f} seconds.")
        self.logger.info(f"Pages written: {len(report.pages_written)}")
        self.logger.info(f"Assets written: {len(report.assets_written)}")
        self.logger.info(f"Stale outputs pruned: {len(report.pruned)}")
        return report

    def cleanup(self):
        """Close the fetch session if this builder created it."""
        if self._owns_fetcher:
            self.fetcher.close()
