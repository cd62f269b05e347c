"""Adjacency (dual) graph of a covering: which cells share a boundary segment."""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import GeometryError
from .geometry import GeometryContext, Point, Polygon

Segment = Tuple[Point, Point]


class DualGraph:
    """
    Symmetric N x N table of shared edges.

    Entry (i, j) holds the two endpoints of the segment shared by cells i and
    j. A missing edge is stored as non-finite coordinates; an entry whose first
    endpoint is finite but second is not records a single touching point.
    """

    def __init__(self, n_regions: int):
        if n_regions < 0:
            raise GeometryError("Number of regions cannot be negative")
        self.n_regions = n_regions
        self._endpoints = np.full((n_regions, n_regions, 2, 2), np.inf)

    def reset(self):
        self._endpoints.fill(np.inf)

    def set_entry(self, i: int, j: int, first: Optional[Point] = None, second: Optional[Point] = None):
        """Record endpoints for the pair (i, j) and its mirror."""
        entry = np.full((2, 2), np.inf)
        if first is not None:
            entry[0] = (first.x, first.y)
        if second is not None:
            entry[1] = (second.x, second.y)
        self._endpoints[i, j] = entry
        self._endpoints[j, i] = entry

    def __getitem__(self, key) -> Segment:
        i, j = key
        (x0, y0), (x1, y1) = self._endpoints[i, j]
        return Point(float(x0), float(y0)), Point(float(x1), float(y1))

    def has_edge(self, i: int, j: int) -> bool:
        return bool(np.all(np.isfinite(self._endpoints[i, j])))

    def edge(self, i: int, j: int) -> Optional[Segment]:
        """Shared segment between cells i and j, or None."""
        return self[i, j] if self.has_edge(i, j) else None

    def neighbors(self, i: int) -> List[int]:
        return [j for j in range(self.n_regions) if j != i and self.has_edge(i, j)]

    def shared_edges(self) -> List[Tuple[int, int, Segment]]:
        """All (i, j, segment) with i < j."""
        return [
            (i, j, self[i, j])
            for i in range(self.n_regions)
            for j in range(i + 1, self.n_regions)
            if self.has_edge(i, j)
        ]

    def is_symmetric(self) -> bool:
        a = self._endpoints
        b = np.swapaxes(a, 0, 1)
        return bool(np.all((a == b) | (np.isinf(a) & np.isinf(b))))


def build_dual_graph(
    covering: Sequence[Polygon],
    context: GeometryContext,
    graph: Optional[DualGraph] = None,
) -> DualGraph:
    """
    Find the boundary segment shared by every pair of cells.

    Edges of cell i are scanned against edges of cell j; a pair qualifies when
    both endpoints of j's edge are collinear with i's edge, and their overlap
    is recorded. The first overlap with two distinct endpoints wins.

    Args:
        covering: Cell polygons
        context: Geometry context for the collinearity predicates
        graph: Existing graph to refill (must match the covering's size)

    Returns:
        The filled DualGraph
    """
    if graph is None:
        graph = DualGraph(len(covering))
    elif graph.n_regions != len(covering):
        raise GeometryError("DualGraph has inconsistent sizes")
    graph.reset()

    edges = [list(polygon.edges()) for polygon in covering]
    for i in range(len(covering)):
        for j in range(i + 1, len(covering)):
            _scan_pair(graph, i, j, edges[i], edges[j], context)
    return graph


def _scan_pair(graph: DualGraph, i: int, j: int, edges_i, edges_j, context: GeometryContext):
    for pi1, pi2 in edges_i:
        for pj1, pj2 in edges_j:
            if not (context.are_collinear(pi1, pi2, pj1) and context.are_collinear(pi1, pi2, pj2)):
                continue
            overlap = context.collinear_intersection(pi1, pi2, pj1, pj2)
            if not overlap:
                graph.set_entry(i, j)
            elif len(overlap) == 1:
                graph.set_entry(i, j, overlap[0])
            else:
                graph.set_entry(i, j, overlap[0], overlap[1])
                return
