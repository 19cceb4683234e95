from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

from catan_server.engine.state import Tile


CORNERS = 6


def site_id(tile_id: int, index: int) -> str:
    return f"{tile_id}-{index % CORNERS}"


def parse_site_id(sid: str) -> Tuple[int, int]:
    """Split a ``<tileId>-<index>`` vertex or edge id.

    Raises ValueError for anything that is not two non-negative integers with the
    index in 0..5.
    """
    if not isinstance(sid, str):
        raise ValueError(f"site id must be str, got {type(sid).__name__}")
    tile_part, sep, index_part = sid.partition("-")
    if not sep or not tile_part.isdigit() or not index_part.isdigit():
        raise ValueError(f"malformed site id: {sid!r}")
    index = int(index_part)
    if index >= CORNERS:
        raise ValueError(f"corner index out of range: {sid!r}")
    return int(tile_part), index


def adjacent_vertices(vid: str) -> List[str]:
    t, c = parse_site_id(vid)
    return [site_id(t, c - 1), site_id(t, c + 1)]


def adjacent_edges(vid: str) -> List[str]:
    t, c = parse_site_id(vid)
    return [site_id(t, c - 1), site_id(t, c)]


def connected_vertices(eid: str) -> List[str]:
    t, e = parse_site_id(eid)
    return [site_id(t, e), site_id(t, e + 1)]


def adjacent_tiles(vid: str) -> List[int]:
    # vertices are scoped to their owning tile; neighbouring hexes are not resolved
    t, _c = parse_site_id(vid)
    return [t]


@dataclass(frozen=True)
class Topology:
    vertices: Tuple[str, ...]
    edges: Tuple[str, ...]
    vertex_neighbors: Dict[str, Tuple[str, ...]]
    vertex_edges: Dict[str, Tuple[str, ...]]
    vertex_tiles: Dict[str, Tuple[int, ...]]
    edge_vertices: Dict[str, Tuple[str, ...]]

    def has_vertex(self, vid: object) -> bool:
        return isinstance(vid, str) and vid in self.vertex_neighbors

    def has_edge(self, eid: object) -> bool:
        return isinstance(eid, str) and eid in self.edge_vertices


def build_topology(tiles: List[Tile]) -> Topology:
    vertices: List[str] = []
    edges: List[str] = []
    v_neighbors: Dict[str, Tuple[str, ...]] = {}
    v_edges: Dict[str, Tuple[str, ...]] = {}
    v_tiles: Dict[str, Tuple[int, ...]] = {}
    e_vertices: Dict[str, Tuple[str, ...]] = {}

    for t in tiles:
        if not t.is_land:
            continue
        for i in range(CORNERS):
            vid = site_id(t.id, i)
            vertices.append(vid)
            v_neighbors[vid] = tuple(adjacent_vertices(vid))
            v_edges[vid] = tuple(adjacent_edges(vid))
            v_tiles[vid] = tuple(adjacent_tiles(vid))

            eid = site_id(t.id, i)
            edges.append(eid)
            e_vertices[eid] = tuple(connected_vertices(eid))

    return Topology(
        vertices=tuple(vertices),
        edges=tuple(edges),
        vertex_neighbors=v_neighbors,
        vertex_edges=v_edges,
        vertex_tiles=v_tiles,
        edge_vertices=e_vertices,
    )
