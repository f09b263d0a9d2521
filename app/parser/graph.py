"""
Minimal directed graph over token indices with unweighted shortest paths.

Only path length matters for relations between noun chunks, so a breadth-first
search replaces Dijkstra.
"""

from collections import deque


class DependencyGraph:
    def __init__(self) -> None:
        self._edges: dict[int, dict[int, int]] = {}

    def add_edge(self, source: int, target: int, weight: int = 1) -> None:
        if weight <= 0:
            raise ValueError(f"Edge weight must be positive, got {weight}")
        self._edges.setdefault(source, {})[target] = weight
        self._edges.setdefault(target, {})

    def __contains__(self, node: int) -> bool:
        return node in self._edges

    def shortest_path(self, source: int, target: int) -> list[int] | None:
        """
        Return the nodes from source to target inclusive, [source] when they are
        equal, or None when target is unreachable.
        """
        if source == target:
            return [source]
        if source not in self._edges or target not in self._edges:
            return None

        previous: dict[int, int] = {source: source}
        queue = deque([source])
        while queue:
            node = queue.popleft()
            for neighbour in self._edges[node]:
                if neighbour in previous:
                    continue
                previous[neighbour] = node
                if neighbour == target:
                    path = [target]
                    while path[-1] != source:
                        path.append(previous[path[-1]])
                    path.reverse()
                    return path
                queue.append(neighbour)
        return None
