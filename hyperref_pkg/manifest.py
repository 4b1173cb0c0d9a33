"""
Persisted build state.

The manifest records, per node, the content hash and the output files of the
last successful run. It is read when a run starts and replaced atomically
only when a run finishes without failures.
"""

import json
import logging
import os
import tempfile

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1


class BuildState:
    def __init__(self, path, nodes=None):
        self.path = path
        self.previous = dict(nodes or {})
        self.current = {}

    @classmethod
    def load(cls, path):
        """
        Load the manifest at ``path``.

        A missing, unreadable or foreign manifest yields an empty state, which
        makes the planner treat every node as new.
        """
        if not path or not os.path.exists(path):
            return cls(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (IOError, OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable build manifest {path}: {e}")
            return cls(path)
        if not isinstance(data, dict) or data.get('version') != MANIFEST_VERSION or not isinstance(data.get('nodes'), dict):
            logger.warning(f"Ignoring build manifest {path} with unexpected format")
            return cls(path)
        return cls(path, data['nodes'])

    def get(self, node_id):
        return self.previous.get(node_id)

    def record(self, node_id, kind, content_hash, outputs):
        self.current[node_id] = {
            'kind': kind,
            'hash': content_hash,
            'outputs': sorted(set(outputs)),
        }

    def carry_over(self, node_id):
        """Keep the previous record for a node that was reachable but not rebuilt."""
        if node_id in self.previous and node_id not in self.current:
            self.current[node_id] = self.previous[node_id]

    def outputs(self, records):
        return {output for record in records.values() for output in record.get('outputs', [])}

    def stale_outputs(self):
        """Files written by the previous run that no current node owns."""
        return sorted(self.outputs(self.previous) - self.outputs(self.current))

    def commit(self):
        """Atomically write the current records; call only after a successful run."""
        if not self.path:
            return
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        payload = {'version': MANIFEST_VERSION, 'nodes': dict(sorted(self.current.items()))}
        fd, temp_path = tempfile.mkstemp(prefix='.hyperref-', suffix='.json', dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2)
                f.write('\n')
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
        self.previous = dict(self.current)
        logger.debug(f"committed build manifest {self.path} ({len(self.current)} nodes)")
