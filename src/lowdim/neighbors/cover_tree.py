# src/lowdim/neighbors/cover_tree.py
"""
Exact k-nearest-neighbor search with a cover tree.

Reference: Beygelzimer, Kakade & Langford (2006), "Cover Trees for Nearest
Neighbor"; insertion follows the simplified tree of Izbicki & Shelton (2015).

Each node at level l covers its children within base**l. Every node also
tracks the exact largest distance to any of its descendants (maxdist),
which is what the branch-and-bound query prunes on. Points at distance 0
from an existing node are stored as duplicates of that node rather than as
an ever-deeper chain of children.
"""

from __future__ import annotations

import heapq
import math
from typing import List, Optional, Tuple

import numpy as np

from ..callbacks import Callbacks
from .brute_force import brute_force_neighbors

DEFAULT_BASE = 1.3
# deeper trees mean the distance scale spans too many orders of magnitude
# for the covering radii to bound anything useful
MAX_DEPTH = 512
_SLACK = 1e-12


class _Node:
    __slots__ = ("index", "level", "children", "duplicates", "maxdist")

    def __init__(self, index: int, level: Optional[int]):
        self.index = index
        self.level = level
        self.children: List["_Node"] = []
        self.duplicates: List[int] = []
        self.maxdist = 0.0


class CoverTree:
    def __init__(self, callbacks: Callbacks, base: float = DEFAULT_BASE):
        if base <= 1.0:
            raise ValueError(f"cover tree base must be > 1, got {base}")
        self.callbacks = callbacks
        self.base = float(base)
        self._log_base = math.log(self.base)
        self.root: Optional[_Node] = None
        self.depth = 0
        for i in range(callbacks.n):
            self._insert(i)

    # ---------- construction ----------

    def _covdist(self, node: _Node) -> float:
        return self.base ** node.level

    def _level_for(self, d: float) -> int:
        return int(math.ceil(math.log(d) / self._log_base))

    def _distances(self, i: int, nodes: List[_Node]) -> np.ndarray:
        cols = [node.index for node in nodes]
        return self.callbacks.distance_matrix([i], cols)[0]

    def _insert(self, p: int) -> None:
        if self.root is None:
            self.root = _Node(p, level=None)
            return

        root = self.root
        d = float(self._distances(p, [root])[0])
        if d == 0.0:
            root.duplicates.append(p)
            return
        if root.level is None or d > self._covdist(root):
            # only the root may grow; raising its level keeps all invariants
            root.level = self._level_for(d) if root.level is None else max(root.level, self._level_for(d))
            while self._covdist(root) < d:
                root.level += 1

        node, d_node, depth = root, d, 0
        while True:
            node.maxdist = max(node.maxdist, d_node)
            depth += 1
            if node.children:
                dc = self._distances(p, node.children)
                zero = np.flatnonzero(dc == 0.0)
                if zero.size:
                    node.children[int(zero[0])].duplicates.append(p)
                    break
                nxt = None
                for child, dist in zip(node.children, dc):
                    if dist <= self._covdist(child):
                        nxt, d_next = child, float(dist)
                        break
                if nxt is not None:
                    node, d_node = nxt, d_next
                    continue
            node.children.append(_Node(p, level=node.level - 1))
            depth += 1
            break
        self.depth = max(self.depth, depth)

    @property
    def degenerate(self) -> bool:
        """True when the covering radii cannot bound query candidates."""
        if self.root is None or not self.root.children:
            return True
        return self.depth > MAX_DEPTH

    # ---------- queries ----------

    def query(self, q: int, k: int) -> np.ndarray:
        """k nearest neighbors of dataset object q (q itself excluded)."""
        root = self.root
        # max-heap of the current best k under (distance, index)
        best: List[Tuple[float, int]] = []

        def worst() -> float:
            return -best[0][0] if len(best) == k else math.inf

        def consider(idx: int, d: float) -> None:
            if idx == q:
                return
            item = (-d, -idx)
            if len(best) < k:
                heapq.heappush(best, item)
            elif item > best[0]:
                heapq.heapreplace(best, item)

        d_root = float(self._distances(q, [root])[0])
        stack = [(d_root, root)]
        while stack:
            d_node, node = stack.pop()
            if d_node - node.maxdist > worst() + _SLACK:
                continue
            consider(node.index, d_node)
            if node.duplicates:
                dd = self.callbacks.distance_matrix([q], node.duplicates)[0]
                for idx, d in zip(node.duplicates, dd):
                    consider(idx, float(d))
            if not node.children:
                continue
            dc = self._distances(q, node.children)
            # farthest first so the nearest child is expanded next
            order = np.argsort(-dc, kind="stable")
            bound = worst()
            for pos in order:
                child = node.children[int(pos)]
                d_child = float(dc[pos])
                if d_child - child.maxdist > bound + _SLACK:
                    continue
                stack.append((d_child, child))

        items = sorted((-neg_d, -neg_i) for neg_d, neg_i in best)
        return np.array([idx for _, idx in items], dtype=np.int64)


def cover_tree_neighbors(callbacks: Callbacks, k: int, base: float = DEFAULT_BASE) -> np.ndarray:
    tree = CoverTree(callbacks, base=base)
    if tree.degenerate:
        # fall back to exhaustive comparison
        return brute_force_neighbors(callbacks, k)
    out = np.empty((callbacks.n, k), dtype=np.int64)
    for i in range(callbacks.n):
        out[i] = tree.query(i, k)
    return out
