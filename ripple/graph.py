"""In-memory symbol dependency graph with bounded reachability queries.

Nodes are :class:`~ripple.models.Symbol` values keyed by their identity
key ``file:name:kind``.  Edges are typed and directed; an edge ``B -> A``
means "B depends on A", so B is a *dependent* of A and A is a
*dependency* of B.

Invariants kept by every mutation:

- both endpoints of an edge are present as nodes;
- at most one edge exists per ``(from-key, to-key, type)`` triple;
- the outgoing/incoming indexes hold exactly the edges in ``_edges``.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Set, Tuple

from .config import DEFAULT_MAX_DEPTH
from .models import GraphEdge, Symbol

EdgeTriple = Tuple[str, str, str]


class DependencyGraph:
    """Symbol nodes plus typed directed edges between them."""

    def __init__(self) -> None:
        self._nodes: Dict[str, Symbol] = {}
        self._edges: Dict[EdgeTriple, GraphEdge] = {}
        self._outgoing: Dict[str, List[GraphEdge]] = {}
        self._incoming: Dict[str, List[GraphEdge]] = {}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_node(self, symbol: Symbol) -> None:
        key = symbol.key
        if key in self._nodes:
            return
        self._nodes[key] = symbol
        self._outgoing[key] = []
        self._incoming[key] = []

    def replace_node(self, symbol: Symbol) -> None:
        """Store *symbol* as the current version of its identity, keeping edges."""
        if symbol.key in self._nodes:
            self._nodes[symbol.key] = symbol
        else:
            self.add_node(symbol)

    def add_edge(self, edge: GraphEdge) -> bool:
        """Insert *edge*, adding missing endpoints.  Returns False on duplicate."""
        self.add_node(edge.source)
        self.add_node(edge.target)
        triple = edge.triple
        if triple in self._edges:
            return False
        self._edges[triple] = edge
        self._outgoing[triple[0]].append(edge)
        self._incoming[triple[1]].append(edge)
        return True

    def remove_node(self, symbol: Symbol) -> bool:
        return self.remove_key(symbol.key)

    def remove_key(self, key: str) -> bool:
        if key not in self._nodes:
            return False
        touching = self._outgoing.pop(key, []) + self._incoming.pop(key, [])
        for edge in touching:
            src, dst, _ = edge.triple
            if self._edges.pop(edge.triple, None) is None:
                continue  # self-loop already handled
            if src != key and src in self._outgoing:
                self._outgoing[src] = [e for e in self._outgoing[src] if e.triple != edge.triple]
            if dst != key and dst in self._incoming:
                self._incoming[dst] = [e for e in self._incoming[dst] if e.triple != edge.triple]
        del self._nodes[key]
        return True

    def remove_edge(self, edge: GraphEdge) -> bool:
        triple = edge.triple
        if self._edges.pop(triple, None) is None:
            return False
        src, dst, _ = triple
        self._outgoing[src] = [e for e in self._outgoing[src] if e.triple != triple]
        self._incoming[dst] = [e for e in self._incoming[dst] if e.triple != triple]
        return True

    def clear(self) -> None:
        self._nodes.clear()
        self._edges.clear()
        self._outgoing.clear()
        self._incoming.clear()

    # ------------------------------------------------------------------
    # One-hop queries
    # ------------------------------------------------------------------

    def get_dependents(self, symbol: Symbol) -> List[Symbol]:
        """Distinct symbols with an edge pointing to *symbol*."""
        return self._distinct(e.source.key for e in self._incoming.get(symbol.key, ()))

    def get_dependencies(self, symbol: Symbol) -> List[Symbol]:
        """Distinct symbols that *symbol* has an edge pointing to."""
        return self._distinct(e.target.key for e in self._outgoing.get(symbol.key, ()))

    def get_edges_for_symbol(self, symbol: Symbol) -> List[GraphEdge]:
        """All edges touching *symbol*, incoming first."""
        key = symbol.key
        incoming = list(self._incoming.get(key, ()))
        outgoing = [e for e in self._outgoing.get(key, ()) if e.target.key != key]
        return incoming + outgoing

    def get_incoming_edges(self, symbol: Symbol) -> List[GraphEdge]:
        return list(self._incoming.get(symbol.key, ()))

    def get_outgoing_edges(self, symbol: Symbol) -> List[GraphEdge]:
        return list(self._outgoing.get(symbol.key, ()))

    # ------------------------------------------------------------------
    # Transitive queries
    # ------------------------------------------------------------------

    def get_transitive_dependents(
        self, symbol: Symbol, max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> List[Symbol]:
        """Everything that depends on *symbol* within *max_depth* hops."""
        return self._reach(symbol, max_depth, self.get_dependents)

    def get_transitive_dependencies(
        self, symbol: Symbol, max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> List[Symbol]:
        """Everything *symbol* depends on within *max_depth* hops."""
        return self._reach(symbol, max_depth, self.get_dependencies)

    @staticmethod
    def _reach(
        origin: Symbol,
        max_depth: int,
        step: Callable[[Symbol], List[Symbol]],
    ) -> List[Symbol]:
        # Breadth-first worklist: each symbol is emitted once, at the hop
        # where it is first discovered.  The origin is never emitted.
        seen: Set[str] = {origin.key}
        result: List[Symbol] = []
        queue: Deque[Tuple[Symbol, int]] = deque([(origin, 0)])
        while queue:
            current, depth = queue.popleft()
            if depth >= max_depth:
                continue
            for nxt in step(current):
                if nxt.key in seen:
                    continue
                seen.add(nxt.key)
                result.append(nxt)
                queue.append((nxt, depth + 1))
        return result

    # ------------------------------------------------------------------
    # Introspection / export
    # ------------------------------------------------------------------

    def get_node(self, key: str) -> Optional[Symbol]:
        return self._nodes.get(key)

    def has_node(self, symbol: Symbol) -> bool:
        return symbol.key in self._nodes

    def all_nodes(self) -> List[Symbol]:
        return list(self._nodes.values())

    def all_edges(self) -> List[GraphEdge]:
        return list(self._edges.values())

    def nodes_for_file(self, file_path: str) -> List[Symbol]:
        return [s for s in self._nodes.values() if s.file_path == file_path]

    def edges_from_file(self, file_path: str) -> List[GraphEdge]:
        """Edges whose location lies in *file_path*."""
        return [e for e in self._edges.values() if e.location.file == file_path]

    def to_json(self) -> Dict[str, Any]:
        return {
            "nodes": [s.to_dict() for s in self._nodes.values()],
            "edges": [e.to_dict() for e in self._edges.values()],
        }

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def _distinct(self, keys: Iterable[str]) -> List[Symbol]:
        seen: Set[str] = set()
        out: List[Symbol] = []
        for key in keys:
            if key in seen:
                continue
            seen.add(key)
            node = self._nodes.get(key)
            if node is not None:
                out.append(node)
        return out
