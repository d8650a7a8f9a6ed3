"""
Signal graph for DuoMix.
An arena of nodes addressed by integer handles, with explicit edges.
render() evaluates every node once per block in topological order; a node's
input is the sum of the outputs of everything connected into it.
The graph also owns the sample clock that all scheduling is expressed in.
"""
from __future__ import annotations
import logging
from collections import defaultdict
from typing import Optional
import numpy as np

from .errors import GraphError
from .types import StereoArray

logger = logging.getLogger("DuoMix")


class Node:
    """Base class for a processing stage. Input and output are (frames, 2)."""
    name = "node"

    def process(self, block: StereoArray, start_sample: int) -> StereoArray:
        return block

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class SignalGraph:
    """Directed acyclic graph of processing nodes plus a sample clock."""

    def __init__(self, samplerate: int) -> None:
        self.samplerate = samplerate
        self._nodes: dict[int, Node] = {}
        self._edges: set[tuple[int, int]] = set()
        self._next_handle = 0
        self._order: Optional[list[int]] = None
        self.current_sample = 0
        self.destination = self.add(Node())

    # --- Clock ---

    def now(self) -> float:
        """Current graph time in seconds (start of the next block)."""
        return self.current_sample / self.samplerate

    def seconds_to_samples(self, seconds: float) -> int:
        return int(round(seconds * self.samplerate))

    # --- Arena ---

    def add(self, node: Node) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._nodes[handle] = node
        self._order = None
        return handle

    def node(self, handle: int) -> Node:
        try:
            return self._nodes[handle]
        except KeyError:
            raise GraphError(f"Unknown node handle {handle}") from None

    def remove(self, handle: int) -> Node:
        if handle == self.destination:
            raise GraphError("The destination node cannot be removed")
        node = self.node(handle)
        self._edges = {e for e in self._edges if handle not in e}
        del self._nodes[handle]
        self._order = None
        return node

    def __contains__(self, handle: int) -> bool:
        return handle in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    # --- Edges ---

    def connect(self, src: int, dst: int) -> None:
        self.node(src)
        self.node(dst)
        if src == dst:
            raise GraphError("A node cannot feed itself")
        edge = (src, dst)
        if edge in self._edges:
            return
        self._edges.add(edge)
        try:
            self._order = self._topological_order()
        except GraphError:
            self._edges.discard(edge)
            self._order = None
            raise

    def chain(self, *handles: int) -> None:
        """Connect handles in series."""
        for src, dst in zip(handles, handles[1:]):
            self.connect(src, dst)

    def disconnect(self, src: int, dst: Optional[int] = None) -> None:
        """Remove one edge, or every outgoing edge of src when dst is None."""
        self.node(src)
        if dst is None:
            self._edges = {e for e in self._edges if e[0] != src}
        else:
            self._edges.discard((src, dst))
        self._order = None

    def is_connected(self, src: int, dst: int) -> bool:
        return (src, dst) in self._edges

    def inputs_of(self, handle: int) -> list[int]:
        return sorted(s for s, d in self._edges if d == handle)

    def _topological_order(self) -> list[int]:
        indegree = {h: 0 for h in self._nodes}
        children: dict[int, list[int]] = defaultdict(list)
        for src, dst in self._edges:
            indegree[dst] += 1
            children[src].append(dst)

        ready = sorted(h for h, d in indegree.items() if d == 0)
        order = []
        while ready:
            h = ready.pop(0)
            order.append(h)
            for child in sorted(children[h]):
                indegree[child] -= 1
                if indegree[child] == 0:
                    ready.append(child)

        if len(order) != len(self._nodes):
            raise GraphError("Connection would create a cycle")
        return order

    # --- Rendering ---

    def render(self, frames: int) -> StereoArray:
        """Render one block and advance the clock. Returns the destination output."""
        if self._order is None:
            self._order = self._topological_order()

        start = self.current_sample
        inputs: dict[int, list[int]] = defaultdict(list)
        for src, dst in self._edges:
            inputs[dst].append(src)

        outputs: dict[int, StereoArray] = {}
        for handle in self._order:
            sources = inputs.get(handle)
            if sources:
                block = outputs[sources[0]].copy()
                for src in sources[1:]:
                    block += outputs[src]
            else:
                block = np.zeros((frames, 2), dtype=np.float32)
            outputs[handle] = self._nodes[handle].process(block, start)

        self.current_sample += frames
        return outputs[self.destination]
