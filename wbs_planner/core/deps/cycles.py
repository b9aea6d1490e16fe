from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from wbs_planner.core.model import PlanItem


class CycleDetector:
    """Directed predecessor graph: edge predecessor -> successor."""

    def __init__(self, items: Iterable[PlanItem]) -> None:
        self._graph: dict[str, set[str]] = defaultdict(set)
        for item in items:
            if item.is_deleted:
                continue
            for pred in item.predecessors:
                self._graph[pred.id].add(item.id)

    def add_edge(self, successor_id: str, predecessor_id: str) -> None:
        self._graph[predecessor_id].add(successor_id)

    def remove_edge(self, successor_id: str, predecessor_id: str) -> None:
        targets = self._graph.get(predecessor_id)
        if targets is not None:
            targets.discard(successor_id)

    def has_edge(self, successor_id: str, predecessor_id: str) -> bool:
        return successor_id in self._graph.get(predecessor_id, ())

    def would_create_cycle(self, successor_id: str, predecessor_id: str) -> bool:
        """True if adding `predecessor_id -> successor_id` closes a loop.

        Runs DFS from the proposed edge's source over the existing graph plus the
        proposed edge; the graph itself is left untouched.
        """
        if successor_id == predecessor_id:
            return True

        def neighbors(node: str) -> Iterable[str]:
            out = self._graph.get(node, set())
            if node == predecessor_id:
                return list(out) + [successor_id]
            return out

        visited: set[str] = set()
        on_stack: set[str] = set()
        # iterative DFS; each frame is (node, remaining neighbours)
        stack: list[tuple[str, list[str]]] = [(predecessor_id, list(neighbors(predecessor_id)))]
        visited.add(predecessor_id)
        on_stack.add(predecessor_id)
        while stack:
            node, pending = stack[-1]
            if not pending:
                stack.pop()
                on_stack.discard(node)
                continue
            nxt = pending.pop()
            if nxt in on_stack:
                return True
            if nxt in visited:
                continue
            visited.add(nxt)
            on_stack.add(nxt)
            stack.append((nxt, list(neighbors(nxt))))
        return False

    def find_cycles(self) -> list[list[str]]:
        """Every distinct cycle path found by a full DFS, e.g. ["a", "b", "a"]."""
        WHITE, GRAY, BLACK = 0, 1, 2
        nodes = set(self._graph.keys())
        for targets in self._graph.values():
            nodes.update(targets)
        state: dict[str, int] = {n: WHITE for n in nodes}
        stack: list[str] = []
        emitted: set[str] = set()
        out: list[list[str]] = []

        def dfs(u: str) -> None:
            state[u] = GRAY
            stack.append(u)
            for v in sorted(self._graph.get(u, ())):
                if state[v] == GRAY:
                    idx = stack.index(v)
                    cycle = stack[idx:] + [v]
                    key = "->".join(cycle)
                    if key not in emitted:
                        emitted.add(key)
                        out.append(cycle)
                elif state[v] == WHITE:
                    dfs(v)
            stack.pop()
            state[u] = BLACK

        for n in sorted(nodes):
            if state[n] == WHITE:
                dfs(n)
        return out
