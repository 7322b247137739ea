"""
corereloc/ordering.py
═════════════════════

Cycle classification and deterministic emission ordering.

Given a ``TypeGraph``, produce a linear sequence of forward declarations
and full definitions such that

    - for every STRONG edge A → B, B's definition precedes A's definition;
    - for every WEAK edge A → B, B's definition or a forward declaration
      of B precedes A's definition.

Algorithm
─────────
1. *Followed* edges: every STRONG edge, every WEAK edge not reached
   through a function prototype, and every edge whose target is a
   typedef (typedef names cannot be forward-declared).
2. STRONG edges alone must be acyclic; a strong cycle (including a
   strong self-loop) is an ``IllegalCycleError``.
3. Tarjan SCC over the followed edges.  Inside each non-trivial SCC a
   cycle is located by DFS in declaration order and broken at its
   earliest breakable WEAK edge (key: source declaration index, then
   edge insertion order).  An edge is breakable when its target can be
   forward-declared.  Repeat until the SCC is acyclic.
4. DFS post-order over the remaining DAG, roots and successors taken in
   declaration / edge order.  Right before a definition is emitted,
   every not-yet-declared target of a broken or unfollowed edge gets a
   forward declaration.

Every step iterates in declaration order, so identical input yields an
identical order and identical break edges.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import (
    Callable,
    Dict,
    Hashable,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeVar,
)

from .errors import IllegalCycleError
from .type_graph import Edge, EdgeKind, TypeGraph
from .type_model import TypeId, TypeKind

logger = logging.getLogger(__name__)

N = TypeVar("N", bound=Hashable)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 0 — STRONGLY CONNECTED COMPONENTS
# ═══════════════════════════════════════════════════════════════════════════

def tarjan_scc(
    nodes: Iterable[N],
    successors: Callable[[N], Iterable[N]],
) -> List[List[N]]:
    """Compute SCCs using Tarjan's algorithm.

    Returns a list of SCCs in reverse topological order (successors
    before predecessors).  Nodes are visited in the order given, so the
    result is deterministic for a deterministic *nodes* / *successors*.
    The walk keeps its own stack of ``(node, successor iterator)``
    frames; its depth is not bounded by the interpreter's recursion
    limit.
    """
    counter = 0
    stack: List[N] = []
    lowlink: Dict[N, int] = {}
    index: Dict[N, int] = {}
    on_stack: Set[N] = set()
    result: List[List[N]] = []

    def visit(v: N) -> Tuple[N, Iterator[N]]:
        nonlocal counter
        index[v] = lowlink[v] = counter
        counter += 1
        stack.append(v)
        on_stack.add(v)
        return v, iter(successors(v))

    for root in nodes:
        if root in index:
            continue
        work = [visit(root)]
        while work:
            v, it = work[-1]
            for w in it:
                if w not in index:
                    work.append(visit(w))
                    break
                if w in on_stack:
                    lowlink[v] = min(lowlink[v], index[w])
            else:
                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[v])
                if lowlink[v] == index[v]:
                    scc: List[N] = []
                    while True:
                        w = stack.pop()
                        on_stack.discard(w)
                        scc.append(w)
                        if w == v:
                            break
                    result.append(scc)

    return result


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — RESULT TYPES
# ═══════════════════════════════════════════════════════════════════════════

class EntryKind(Enum):
    FORWARD = "forward"
    DEFINITION = "definition"


@dataclass(frozen=True, slots=True)
class OrderEntry:
    kind: EntryKind
    type_id: TypeId
    name: str

    @property
    def is_forward(self) -> bool:
        return self.kind is EntryKind.FORWARD

    def __str__(self) -> str:
        if self.kind is EntryKind.FORWARD:
            return f"fwd({self.name})"
        return self.name


@dataclass(frozen=True)
class EmissionOrder:
    """
    The linear declaration order for one declaration set.

    ``break_edges`` lists the WEAK edges the orderer chose to satisfy
    with a forward declaration, in the order they were chosen.
    """
    entries: Tuple[OrderEntry, ...]
    break_edges: Tuple[Edge, ...] = ()

    def __iter__(self) -> Iterator[OrderEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def definition_index(self, type_id: TypeId) -> Optional[int]:
        for i, e in enumerate(self.entries):
            if e.type_id == type_id and e.kind is EntryKind.DEFINITION:
                return i
        return None

    def declaration_index(self, type_id: TypeId) -> Optional[int]:
        """Position of the first entry (forward or definition) for *type_id*."""
        for i, e in enumerate(self.entries):
            if e.type_id == type_id:
                return i
        return None

    def definitions(self) -> List[TypeId]:
        return [e.type_id for e in self.entries if e.kind is EntryKind.DEFINITION]

    def names(self) -> List[str]:
        """``["fwd(struct t2)", "struct t1", "struct t2"]``"""
        return [str(e) for e in self.entries]

    def violations(self, graph: TypeGraph) -> List[str]:
        """Every edge this order fails to honour (empty for a valid order)."""
        problems: List[str] = []
        for e in graph.edges:
            if e.is_self_loop:
                continue
            src = self.definition_index(e.source)
            if src is None:
                continue
            src_name = graph[e.source].display_name
            dst_name = graph[e.target].display_name
            if e.is_strong:
                dst = self.definition_index(e.target)
                if dst is None or dst > src:
                    problems.append(f"{dst_name} must be defined before {src_name}")
            else:
                dst = self.declaration_index(e.target)
                if dst is None or dst > src:
                    problems.append(f"{dst_name} must be declared before {src_name}")
        return problems


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — CYCLE CLASSIFIER
# ═══════════════════════════════════════════════════════════════════════════

class CycleClassifier:
    """
    Decides which edges the orderer follows and which WEAK edges it
    breaks.
    """

    def __init__(self, graph: TypeGraph) -> None:
        self.graph = graph
        self._declarable: List[TypeId] = graph.declarable_ids()

    # ── edge selection ───────────────────────────────────────────────

    def is_followed(self, edge: Edge) -> bool:
        if edge.is_strong:
            return True
        if self.graph[edge.target].kind is TypeKind.TYPEDEF:
            return True
        return not edge.through_func_proto

    def is_breakable(self, edge: Edge) -> bool:
        return not edge.is_strong and self.graph[edge.target].is_forward_declarable

    def followed_edges(self, type_id: TypeId) -> List[Edge]:
        """Followed out-edges of *type_id*, weak self-loops excluded."""
        return [
            e for e in self.graph.out_edges(type_id)
            if self.is_followed(e) and not (e.is_self_loop and not e.is_strong)
        ]

    def _break_key(self, edge: Edge) -> Tuple[int, int]:
        return (self.graph[edge.source].decl_index, edge.seq)

    # ── strong cycles ────────────────────────────────────────────────

    def check_strong_cycles(self) -> None:
        """Raise ``IllegalCycleError`` if STRONG edges alone form a cycle."""
        g = self.graph
        for tid in self._declarable:
            for e in g.out_edges(tid, EdgeKind.STRONG):
                if e.is_self_loop:
                    name = g[tid].display_name
                    raise IllegalCycleError(
                        f"{name} contains itself by value (via '{e.via}')",
                        cycle=[name, name],
                        type_name=name,
                        type_id=tid,
                    )

        sccs = tarjan_scc(self._declarable, lambda v: g.successors(v, EdgeKind.STRONG))
        for scc in sccs:
            if len(scc) > 1:
                cycle = self._describe(self._find_cycle(scc, self._strong_successors))
                raise IllegalCycleError(
                    "by-value embedding cycle: " + " → ".join(cycle),
                    cycle=cycle,
                    type_name=cycle[0],
                )

    def _strong_successors(self, type_id: TypeId) -> List[Edge]:
        return self.graph.out_edges(type_id, EdgeKind.STRONG)

    # ── weak cycle breaking ──────────────────────────────────────────

    def select_break_edges(self) -> List[Edge]:
        """
        Choose the WEAK edges to replace by forward declarations.

        Deterministic: SCCs are processed in Tarjan order over
        declaration-ordered roots; inside an SCC, cycles are found by DFS
        in declaration order and broken at their earliest breakable edge.
        """
        broken: Set[Tuple[TypeId, TypeId]] = set()
        chosen: List[Edge] = []

        def live(type_id: TypeId) -> List[Edge]:
            return [e for e in self.followed_edges(type_id)
                    if (e.source, e.target) not in broken]

        def live_targets(type_id: TypeId) -> List[TypeId]:
            return [e.target for e in live(type_id)]

        pending = [scc for scc in tarjan_scc(self._declarable, live_targets) if len(scc) > 1]
        while pending:
            scc = pending.pop(0)
            members = set(scc)

            def inside(type_id: TypeId) -> List[Edge]:
                return [e for e in live(type_id) if e.target in members]

            cycle = self._find_cycle(scc, inside)
            if not cycle:
                continue
            candidates = [e for e in cycle if self.is_breakable(e)]
            if not candidates:
                names = self._describe(cycle)
                raise IllegalCycleError(
                    "dependency cycle cannot be broken by a forward declaration: "
                    + " → ".join(names),
                    cycle=names,
                    type_name=names[0],
                )
            edge = min(candidates, key=self._break_key)
            broken.add((edge.source, edge.target))
            chosen.append(edge)
            logger.info(
                "breaking cycle at %s → %s (member '%s'): forward-declaring %s",
                self.graph[edge.source].display_name,
                self.graph[edge.target].display_name,
                edge.via,
                self.graph[edge.target].display_name,
            )
            ordered = sorted(scc, key=lambda t: self.graph[t].decl_index)
            sub = tarjan_scc(ordered, lambda v: [e.target for e in inside(v)])
            pending[:0] = [s for s in sub if len(s) > 1]
        return chosen

    # ── helpers ──────────────────────────────────────────────────────

    def _find_cycle(
        self,
        scc: Sequence[TypeId],
        out: Callable[[TypeId], List[Edge]],
    ) -> List[Edge]:
        """Return the edges of one cycle inside *scc* (first found by DFS
        from the earliest-declared member), or ``[]``."""
        members = set(scc)
        start_order = sorted(scc, key=lambda t: self.graph[t].decl_index)
        done: Set[TypeId] = set()

        for start in start_order:
            if start in done:
                continue
            path: List[Edge] = []
            on_path: Dict[TypeId, int] = {start: 0}
            stack: List[Tuple[TypeId, Iterator[Edge]]] = [
                (start, iter([e for e in out(start) if e.target in members]))
            ]
            while stack:
                node, it = stack[-1]
                edge = next(it, None)
                if edge is None:
                    stack.pop()
                    on_path.pop(node, None)
                    done.add(node)
                    if path:
                        path.pop()
                    continue
                if edge.target in on_path:
                    return path[on_path[edge.target]:] + [edge]
                if edge.target in done:
                    continue
                path.append(edge)
                on_path[edge.target] = len(path)
                stack.append(
                    (edge.target, iter([e for e in out(edge.target) if e.target in members]))
                )
        return []

    def _describe(self, cycle: Sequence[Edge]) -> List[str]:
        if not cycle:
            return []
        names = [self.graph[e.source].display_name for e in cycle]
        names.append(self.graph[cycle[-1].target].display_name)
        return names


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — ORDERER
# ═══════════════════════════════════════════════════════════════════════════

class Orderer:
    """
    Produce the ``EmissionOrder`` for a ``TypeGraph``.

    Usage::

        order = Orderer(graph).order()
        print(order.names())
    """

    def __init__(self, graph: TypeGraph) -> None:
        self.graph = graph
        self.classifier = CycleClassifier(graph)

    def order(self) -> EmissionOrder:
        g = self.graph
        cls = self.classifier
        cls.check_strong_cycles()
        break_edges = cls.select_break_edges()
        broken = {(e.source, e.target) for e in break_edges}

        entries: List[OrderEntry] = []
        declared: Set[TypeId] = set()
        defined: Set[TypeId] = set()

        def declare(type_id: TypeId) -> None:
            if type_id in declared:
                return
            declared.add(type_id)
            entries.append(OrderEntry(EntryKind.FORWARD, type_id, g[type_id].display_name))

        def emit(type_id: TypeId) -> None:
            for e in g.out_edges(type_id):
                if e.is_self_loop or e.target in defined:
                    continue
                if (e.source, e.target) in broken or not cls.is_followed(e):
                    if g[e.target].is_forward_declarable:
                        declare(e.target)
            node = g[type_id]
            declared.add(type_id)
            defined.add(type_id)
            if node.kind is TypeKind.FWD:
                # opaque tag: its forward declaration is all there is
                entries.append(OrderEntry(EntryKind.FORWARD, type_id, node.display_name))
            else:
                entries.append(OrderEntry(EntryKind.DEFINITION, type_id, node.display_name))

        def deps(type_id: TypeId) -> List[TypeId]:
            return [
                e.target for e in cls.followed_edges(type_id)
                if (e.source, e.target) not in broken and not e.is_self_loop
            ]

        visiting: Set[TypeId] = set()
        for root in g.declarable_ids():
            if root in defined:
                continue
            stack: List[Tuple[TypeId, Iterator[TypeId]]] = [(root, iter(deps(root)))]
            visiting.add(root)
            while stack:
                node, it = stack[-1]
                nxt = next(it, None)
                if nxt is None:
                    stack.pop()
                    visiting.discard(node)
                    if node in declared and g[node].kind is TypeKind.FWD:
                        defined.add(node)
                        continue
                    emit(node)
                    continue
                if nxt in defined or nxt in visiting:
                    continue
                visiting.add(nxt)
                stack.append((nxt, iter(deps(nxt))))

        order = EmissionOrder(tuple(entries), tuple(break_edges))
        logger.debug("emission order: %s", ", ".join(order.names()))
        return order


def emission_order(graph: TypeGraph) -> EmissionOrder:
    """Convenience wrapper: ``Orderer(graph).order()``."""
    return Orderer(graph).order()
