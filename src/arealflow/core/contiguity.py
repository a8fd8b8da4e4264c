"""Queen contiguity graph construction.

Two areal units are queen neighbours when their boundaries share at least one
vertex (within the vertex tolerance). Shared edges imply shared endpoints, so
rook neighbours are always queen neighbours as well.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Hashable, Iterable, Iterator, Mapping, Sequence
from typing import Any, cast

import numpy as np
import polars as pl
from shapely import STRtree, geometry

from arealflow.core.errors import DuplicateUnit, InvalidGeometry
from arealflow.core.geometry import DEFAULT_VERTEX_TOLERANCE, VertexSet, extract_vertices
from arealflow.core.utils import find_duplicates, get_logger

logger = get_logger(__name__)

UnitId = Hashable


class NeighborGraph:
    """
    Undirected neighbour graph over areal unit ids.

    Ids keep their input order, and every neighbour list is ordered by the
    neighbour's input position, so two graphs built from the same input are
    equal element by element.

    Attributes:
        ids: Unit ids in input order
        invalid_ids: Units isolated because their geometry was invalid
    """

    def __init__(
        self,
        ids: Sequence[UnitId],
        neighbors: Mapping[UnitId, Iterable[UnitId]],
        *,
        invalid_ids: Iterable[UnitId] = (),
    ) -> None:
        """
        Initialize a NeighborGraph.

        Args:
            ids: Unit ids in input order
            neighbors: Adjacency lists keyed by unit id (missing ids are islands)
            invalid_ids: Ids whose geometry failed normalisation

        Raises:
            DuplicateUnit: If ids repeat
            ValueError: If adjacency references unknown ids or contains self-edges
        """
        self._ids = tuple(ids)
        duplicates = find_duplicates(self._ids)
        if duplicates:
            raise DuplicateUnit(duplicates)

        self._position = {unit_id: pos for pos, unit_id in enumerate(self._ids)}

        unknown = [unit_id for unit_id in neighbors if unit_id not in self._position]
        if unknown:
            raise ValueError(f"Adjacency references unknown unit ids: {unknown[:10]}")

        adjacency: dict[UnitId, tuple[UnitId, ...]] = {}
        for unit_id in self._ids:
            row = set(neighbors.get(unit_id, ()))
            if unit_id in row:
                raise ValueError(f"Self-edge on unit {unit_id!r} is not allowed")
            missing = [n for n in row if n not in self._position]
            if missing:
                raise ValueError(f"Unit {unit_id!r} has unknown neighbours: {missing[:10]}")
            adjacency[unit_id] = tuple(sorted(row, key=self._position.__getitem__))
        self._neighbors = adjacency

        invalid = set(invalid_ids)
        self.invalid_ids = tuple(unit_id for unit_id in self._ids if unit_id in invalid)

    @property
    def ids(self) -> tuple[UnitId, ...]:
        return self._ids

    @property
    def n(self) -> int:
        """Number of units (nodes), islands included."""
        return len(self._ids)

    @property
    def adjacency(self) -> dict[UnitId, tuple[UnitId, ...]]:
        """Copy of the adjacency lists in id order."""
        return dict(self._neighbors)

    def neighbors(self, unit_id: UnitId) -> tuple[UnitId, ...]:
        """Return the neighbours of *unit_id* or raise KeyError."""
        return self._neighbors[unit_id]

    def degree(self, unit_id: UnitId) -> int:
        return len(self._neighbors[unit_id])

    @property
    def cardinalities(self) -> dict[UnitId, int]:
        """Degree of every unit."""
        return {unit_id: len(row) for unit_id, row in self._neighbors.items()}

    @property
    def isolates(self) -> tuple[UnitId, ...]:
        """Units with no neighbours."""
        return tuple(unit_id for unit_id, row in self._neighbors.items() if not row)

    @property
    def n_edges(self) -> int:
        """Number of undirected edges."""
        return sum(1 for _ in self.edges())

    def edges(self) -> Iterator[tuple[UnitId, UnitId]]:
        """Yield each undirected edge once as (earlier, later) in input order."""
        seen: set[tuple[int, int]] = set()
        for unit_id in self._ids:
            i = self._position[unit_id]
            for neighbor in self._neighbors[unit_id]:
                j = self._position[neighbor]
                key = (i, j) if i < j else (j, i)
                if key in seen:
                    continue
                seen.add(key)
                yield (self._ids[key[0]], self._ids[key[1]])

    def is_symmetric(self) -> bool:
        """Check that every edge is recorded in both directions."""
        for unit_id, row in self._neighbors.items():
            for neighbor in row:
                if unit_id not in self._neighbors[neighbor]:
                    return False
        return True

    @property
    def component_labels(self) -> dict[UnitId, int]:
        """Connected component label per unit; islands form their own component."""
        labels: dict[UnitId, int] = {}
        label = 0
        for start in self._ids:
            if start in labels:
                continue
            labels[start] = label
            queue = deque([start])
            while queue:
                current = queue.popleft()
                for neighbor in self._neighbors[current]:
                    if neighbor not in labels:
                        labels[neighbor] = label
                        queue.append(neighbor)
            label += 1
        return labels

    @property
    def n_components(self) -> int:
        labels = self.component_labels
        return len(set(labels.values()))

    def to_edge_index(self) -> np.ndarray:
        """Directed edges as a (2, n_directed_edges) array of input positions (COO)."""
        sources: list[int] = []
        targets: list[int] = []
        for unit_id in self._ids:
            i = self._position[unit_id]
            for neighbor in self._neighbors[unit_id]:
                sources.append(i)
                targets.append(self._position[neighbor])
        return np.array([sources, targets], dtype=np.int64).reshape(2, -1)

    def to_frame(self) -> pl.DataFrame:
        """Long-format adjacency with one row per directed edge."""
        focal: list[Any] = []
        neighbor: list[Any] = []
        for unit_id in self._ids:
            for other in self._neighbors[unit_id]:
                focal.append(unit_id)
                neighbor.append(other)
        return pl.DataFrame({"focal": focal, "neighbor": neighbor})

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._position

    def __iter__(self) -> Iterator[UnitId]:
        return iter(self._ids)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NeighborGraph):
            return NotImplemented
        return (
            self._ids == other._ids
            and self._neighbors == other._neighbors
            and self.invalid_ids == other.invalid_ids
        )

    def __repr__(self) -> str:
        return (
            f"NeighborGraph(n={self.n}, edges={self.n_edges}, "
            f"islands={len(self.isolates)}, invalid={len(self.invalid_ids)})"
        )


def build_queen_graph(
    ids: Sequence[UnitId],
    geometries: Sequence[Any],
    *,
    tolerance: float = DEFAULT_VERTEX_TOLERANCE,
    prefilter: bool = True,
) -> NeighborGraph:
    """
    Build a queen contiguity graph from unit boundaries.

    Args:
        ids: Unique unit ids
        geometries: Boundaries aligned with *ids*
        tolerance: Vertex-equality tolerance in coordinate units
        prefilter: Restrict exact vertex checks to units whose bounding boxes
            overlap (STRtree). With ``False`` every pair is checked.

    Returns:
        Symmetric NeighborGraph without self-edges

    Raises:
        DuplicateUnit: If ids repeat (checked before any geometry work)
        ValueError: If ids and geometries differ in length or tolerance is invalid
    """
    ids = list(ids)
    geometries = list(geometries)
    if len(ids) != len(geometries):
        raise ValueError(
            f"Got {len(ids)} unit ids but {len(geometries)} geometries; they must align"
        )

    duplicates = find_duplicates(ids)
    if duplicates:
        raise DuplicateUnit(duplicates)

    vertex_sets: list[VertexSet | None] = []
    invalid_ids: list[UnitId] = []
    for unit_id, geom in zip(ids, geometries):
        try:
            vertex_sets.append(extract_vertices(geom, tolerance, unit_id=unit_id))
        except InvalidGeometry as exc:
            logger.warning("Isolating unit with invalid geometry: %s", exc)
            invalid_ids.append(unit_id)
            vertex_sets.append(None)

    valid_positions = [pos for pos, vs in enumerate(vertex_sets) if vs is not None]

    if prefilter:
        candidates = _bbox_candidate_pairs(vertex_sets, valid_positions, tolerance)
    else:
        candidates = _all_pairs(valid_positions)

    adjacency: list[set[int]] = [set() for _ in ids]
    n_checked = 0
    for i, j in candidates:
        n_checked += 1
        left, right = vertex_sets[i], vertex_sets[j]
        if left is not None and right is not None and left.shares_vertex(right):
            adjacency[i].add(j)
            adjacency[j].add(i)

    neighbors = {ids[i]: [ids[j] for j in sorted(row)] for i, row in enumerate(adjacency)}
    graph = NeighborGraph(ids, neighbors, invalid_ids=invalid_ids)

    logger.info(
        "Built queen contiguity graph: %d units, %d edges, %d islands (%d candidate pairs checked)",
        graph.n,
        graph.n_edges,
        len(graph.isolates),
        n_checked,
    )
    return graph


def _all_pairs(positions: Sequence[int]) -> Iterator[tuple[int, int]]:
    for a, i in enumerate(positions):
        for j in positions[a + 1 :]:
            yield (i, j)


def _bbox_candidate_pairs(
    vertex_sets: Sequence[VertexSet | None],
    positions: Sequence[int],
    tolerance: float,
) -> list[tuple[int, int]]:
    """Pairs of units whose tolerance-expanded bounding boxes intersect."""
    if len(positions) < 2:
        return []

    boxes = []
    for pos in positions:
        minx, miny, maxx, maxy = cast(VertexSet, vertex_sets[pos]).bounds
        boxes.append(
            geometry.box(minx - tolerance, miny - tolerance, maxx + tolerance, maxy + tolerance)
        )

    tree = STRtree(boxes)
    query_idx, tree_idx = tree.query(boxes, predicate="intersects")

    pairs = {
        (positions[a], positions[b])
        for a, b in zip(query_idx.tolist(), tree_idx.tolist())
        if a < b
    }
    logger.debug(
        "STRtree prefilter kept %d of %d possible pairs",
        len(pairs),
        len(positions) * (len(positions) - 1) // 2,
    )
    return sorted(pairs)
