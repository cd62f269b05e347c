"""
Iteration trace recording.

The engine emits an IterationSnapshot whenever it rebuilds the diagram.
TraceWriter turns snapshots into two text streams:

- centers: one ``x,y`` row per region
- partition: one row per region of space-separated ``x,y`` vertex pairs

Each snapshot block ends with a blank line in both streams.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Tuple

from .geometry import Point, Polygon


@dataclass(frozen=True)
class IterationSnapshot:
    """State of the engine right after a diagram rebuild."""

    stage: str  # initial, diagram, centers_seeded, weights, centers or final
    outer_iteration: int
    inner_iteration: int
    centers: Tuple[Point, ...]
    covering: Tuple[Polygon, ...]
    volume_error: Optional[float] = field(default=None)


def _fmt(value: float) -> str:
    return f"{value:.10g}"


def format_centers(centers: Sequence[Point]) -> str:
    return "".join(f"{_fmt(c.x)},{_fmt(c.y)}\n" for c in centers)


def format_covering(covering: Sequence[Polygon]) -> str:
    rows = []
    for polygon in covering:
        rows.append("".join(f"{_fmt(p.x)},{_fmt(p.y)} " for p in polygon.vertices) + "\n")
    return "".join(rows)


class TraceWriter:
    """Observer that writes every snapshot to a centers stream and a partition stream."""

    def __init__(self, centers_stream: TextIO, partition_stream: TextIO):
        self.centers_stream = centers_stream
        self.partition_stream = partition_stream
        self.snapshots_written = 0
        self._owned: List[TextIO] = []

    @classmethod
    def open(cls, centers_path, partition_path) -> "TraceWriter":
        """Create a writer that owns two freshly truncated files."""
        centers_file = open(Path(centers_path), "w", encoding="utf-8")
        try:
            partition_file = open(Path(partition_path), "w", encoding="utf-8")
        except OSError:
            centers_file.close()
            raise
        writer = cls(centers_file, partition_file)
        writer._owned = [centers_file, partition_file]
        return writer

    def __call__(self, snapshot: IterationSnapshot):
        self.centers_stream.write(format_centers(snapshot.centers) + "\n")
        self.partition_stream.write(format_covering(snapshot.covering) + "\n")
        self.snapshots_written += 1

    def close(self):
        for stream in self._owned:
            stream.close()
        self._owned = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
