"""
Dependency graph and reachability planner.

Nodes are documents and assets keyed by a string identity (``page:index.md``,
``asset:img/cat.png``, ``style:link.css``, ``shell:prelude.html``, ...).
Edges are discovered while rendering. The graph may contain cycles; every
traversal keeps a visited set.
"""

import enum
import logging
import threading
from collections import deque

logger = logging.getLogger(__name__)


class NodeKind(enum.Enum):
    PAGE = 'page'
    IMAGE = 'image'
    STYLE_CHUNK = 'style'
    FONT_STYLESHEET = 'fontcss'
    FONT_FILE = 'font'
    SHELL = 'shell'


def page_id(relpath):
    return f"page:{relpath}"


def asset_id(relpath):
    return f"asset:{relpath}"


def remote_image_id(url):
    return f"image:{url}"


def style_id(relpath):
    return f"style:{relpath}"


def font_stylesheet_id(url):
    return f"fontcss:{url}"


def font_file_id(url):
    return f"font:{url}"


def shell_id(name):
    return f"shell:{name}"


class Node:
    def __init__(self, node_id, kind, content_hash=None, location=None, outputs=None, keep=False):
        self.id = node_id
        self.kind = kind
        self.content_hash = content_hash
        self.location = location
        self.outputs = list(outputs or [])
        self.keep = keep
        self.edges = []
        self.reachable = False
        self.dirty = False

    def __repr__(self):
        return f"Node({self.id!r}, {self.kind.value})"


class Edge:
    def __init__(self, target, embeds):
        self.target = target
        self.embeds = embeds

    def __eq__(self, other):
        return isinstance(other, Edge) and (self.target, self.embeds) == (other.target, other.embeds)

    def __hash__(self):
        return hash((self.target, self.embeds))

    def __repr__(self):
        return f"Edge({self.target!r}, embeds={self.embeds})"


class BuildPlan:
    """What a run will (re)build, derived from the graph and the last manifest."""

    def __init__(self, reachable, dirty, emitted, force):
        self.reachable = reachable
        self.dirty = dirty
        self.emitted = emitted
        self.force = force

    def needs_build(self, node_id):
        return node_id in self.dirty

    def __repr__(self):
        return (f"BuildPlan(reachable={len(self.reachable)}, dirty={len(self.dirty)}, "
                f"emitted={len(self.emitted)}, force={self.force})")


class DependencyGraph:
    """Directed graph of documents and assets; mutation is lock-protected."""

    def __init__(self):
        self.nodes = {}
        self._lock = threading.RLock()

    def __contains__(self, node_id):
        return node_id in self.nodes

    def __getitem__(self, node_id):
        return self.nodes[node_id]

    def __len__(self):
        return len(self.nodes)

    def add_node(self, node_id, kind, content_hash=None, location=None, outputs=None, keep=False):
        """Add a node, or return the existing one with the same identity."""
        with self._lock:
            node = self.nodes.get(node_id)
            if node is None:
                node = Node(node_id, kind, content_hash, location, outputs, keep)
                self.nodes[node_id] = node
                logger.debug(f"graph: new {kind.value} node {node_id}")
            return node

    def add_edge(self, source, target, embeds):
        """Add an edge; both endpoints must exist. Duplicate edges are ignored."""
        with self._lock:
            if source not in self.nodes or target not in self.nodes:
                raise KeyError(f"edge {source} -> {target} references an unknown node")
            edge = Edge(target, embeds)
            edges = self.nodes[source].edges
            if edge not in edges:
                edges.append(edge)
            return edge

    def successors(self, node_id, embeds_only=False):
        return [e.target for e in self.nodes[node_id].edges if e.embeds or not embeds_only]

    def compute_reachable(self, roots):
        """Mark every node reachable from ``roots``; returns the reachable ids."""
        with self._lock:
            for node in self.nodes.values():
                node.reachable = False
            visited = set()
            queue = deque(r for r in roots if r in self.nodes)
            while queue:
                node_id = queue.popleft()
                if node_id in visited:
                    continue
                visited.add(node_id)
                self.nodes[node_id].reachable = True
                for edge in self.nodes[node_id].edges:
                    if edge.target not in visited:
                        queue.append(edge.target)
            return visited

    def used(self, node_id):
        """A node is emitted if it is reachable and is not the keep file."""
        node = self.nodes.get(node_id)
        return node is not None and node.reachable and not node.keep

    def _reverse_embedding_edges(self):
        reverse = {}
        for node in self.nodes.values():
            if not node.reachable:
                continue
            for edge in node.edges:
                if edge.embeds:
                    reverse.setdefault(edge.target, []).append(node.id)
        return reverse

    def plan(self, roots, state=None, force=False, output_exists=None):
        """
        Decide which reachable nodes must be rebuilt this run.

        Args:
            roots: Entry point and keep-file node ids
            state: BuildState from the previous successful run (or None)
            force: Rebuild every reachable node, ignoring recorded hashes
            output_exists: Callable(relpath) -> bool used to detect deleted outputs

        Returns:
            BuildPlan
        """
        with self._lock:
            reachable = self.compute_reachable(roots)
            for node in self.nodes.values():
                node.dirty = False

            if force or state is None:
                seeds = set(reachable)
            else:
                seeds = {node_id for node_id in reachable
                         if self._is_stale(self.nodes[node_id], state, output_exists)}

            # a changed chunk, font or image re-triggers every page embedding it
            dirty = set()
            reverse = self._reverse_embedding_edges()
            queue = deque(seeds)
            while queue:
                node_id = queue.popleft()
                if node_id in dirty:
                    continue
                dirty.add(node_id)
                queue.extend(reverse.get(node_id, ()))

            for node_id in dirty:
                self.nodes[node_id].dirty = True
            emitted = {node_id for node_id in reachable if not self.nodes[node_id].keep}
            plan = BuildPlan(reachable, dirty, emitted, force)
            logger.debug(f"planner: {plan}")
            return plan

    def _is_stale(self, node, state, output_exists):
        record = state.get(node.id)
        if record is None:
            return True
        if node.content_hash is None or record.get('hash') != node.content_hash:
            return True
        if output_exists is not None:
            for output in record.get('outputs', []):
                if not output_exists(output):
                    return True
        return False
