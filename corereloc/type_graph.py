"""
corereloc/type_graph.py
═══════════════════════

Type dependency graph construction and querying.

The builder binds a ``DeclarationSet`` into an arena of immutable
``TypeNode``s and classifies every dependency between *declarable*
types (named struct/union/enum tags, typedefs, bare forward tags):

    ┌─────────────────────────────────────────────────────────────────┐
    │  Edge Kinds                                                     │
    │    STRONG — target must be complete before source is complete   │
    │             (by-value member, array element)                    │
    │    WEAK   — a declaration of target is enough                   │
    │             (pointer member, function prototype param/return)   │
    └─────────────────────────────────────────────────────────────────┘

Rules:

    - Qualifiers and typedefs are transparent: a by-value use of a
      typedef also yields a STRONG edge to the named tag underneath it.
    - Anonymous struct/union bodies are defined inline wherever they
      are used, so their by-value members impose STRONG edges on the
      enclosing declarable type, even when the body itself is reached
      through a pointer or a function prototype.
    - Anonymous members are flattened into the enclosing member-name
      namespace for lookup only (``TypeGraph.lookup_member``); indices
      and layout are untouched.

Usage example::

    from corereloc.type_graph import TypeGraphBuilder, EdgeKind

    graph = TypeGraphBuilder().build(decls)
    for edge in graph.out_edges(graph.find_tag("struct", "t2")):
        print(edge)
    print(graph.to_dot())
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from .config import DEFAULT_CONFIG, TargetConfig
from .errors import (
    AmbiguousFieldError,
    DuplicateDefinitionError,
    UnresolvedTypeError,
)
from .type_model import (
    TAG_KINDS,
    VOID_ID,
    ArrayDecl,
    Declaration,
    DeclarationSet,
    EnumDecl,
    FuncProtoDecl,
    FwdDecl,
    IntDecl,
    Member,
    Param,
    PtrDecl,
    QualifiedDecl,
    StructDecl,
    TypedefDecl,
    TypeId,
    TypeKind,
    TypeNode,
    TypeRef,
    UnionDecl,
    VoidDecl,
    tag_keyword,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 0 — EDGE KINDS
# ═══════════════════════════════════════════════════════════════════════════

class EdgeKind(Enum):
    """
    Classification of dependency edges.

        STRONG — by-value embedding; the target's full definition must
                 precede the source's full definition.
        WEAK   — by-reference use; a forward declaration of the target
                 is enough.
    """
    STRONG = auto()
    WEAK = auto()


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — EDGE DATA STRUCTURE
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Edge:
    """
    A single dependency edge.

    Attributes
    ----------
    source : TypeId
        The declarable type that has the dependency.
    target : TypeId
        The declarable type it depends on.
    kind : EdgeKind
        STRONG or WEAK.
    via : str
        The member (or ``"<typedef>"``) through which the dependency
        was first found; used for diagnostics and break-edge logging.
    through_func_proto : bool
        True when every path to the target goes through a function
        prototype parameter or return type.
    seq : int
        Insertion order; the deterministic tie-breaker.
    """
    source: TypeId
    target: TypeId
    kind: EdgeKind
    via: str = ""
    through_func_proto: bool = False
    seq: int = 0

    @property
    def is_strong(self) -> bool:
        return self.kind is EdgeKind.STRONG

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target

    def __repr__(self) -> str:
        v = f" [{self.via}]" if self.via else ""
        return f"Edge({self.source}→{self.target} {self.kind.name}{v})"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — THE GRAPH
# ═══════════════════════════════════════════════════════════════════════════

class TypeGraph:
    """
    The type arena plus its classified dependency edges.

    Immutable once built: every query is read-only, so one graph may be
    shared by any number of concurrent resolvers.
    """

    def __init__(
        self,
        nodes: Sequence[TypeNode],
        edges: Sequence[Edge],
        config: TargetConfig = DEFAULT_CONFIG,
    ) -> None:
        self.nodes: Tuple[TypeNode, ...] = tuple(nodes)
        self.edges: Tuple[Edge, ...] = tuple(edges)
        self.config = config

        out_edges: Dict[TypeId, List[Edge]] = defaultdict(list)
        in_edges: Dict[TypeId, List[Edge]] = defaultdict(list)
        for e in self.edges:
            out_edges[e.source].append(e)
            in_edges[e.target].append(e)
        self._out: Dict[TypeId, Tuple[Edge, ...]] = {k: tuple(v) for k, v in out_edges.items()}
        self._in: Dict[TypeId, Tuple[Edge, ...]] = {k: tuple(v) for k, v in in_edges.items()}

        name_index: Dict[str, List[TypeId]] = defaultdict(list)
        for n in self.nodes:
            if n.name:
                name_index[n.name].append(n.id)
        self._name_index: Dict[str, Tuple[TypeId, ...]] = {
            k: tuple(v) for k, v in name_index.items()
        }

    # ── Arena access ──────────────────────────────────────────────────

    def __getitem__(self, type_id: TypeId) -> TypeNode:
        return self.nodes[type_id]

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[TypeNode]:
        return iter(self.nodes)

    def node(self, type_id: TypeId) -> TypeNode:
        return self.nodes[type_id]

    def declarable_ids(self) -> List[TypeId]:
        """Ids of every node that gets its own emission-order entry,
        in declaration order."""
        decl = [n for n in self.nodes if n.is_declarable and n.decl_index >= 0]
        decl.sort(key=lambda n: (n.decl_index, n.id))
        return [n.id for n in decl]

    # ── Edge queries ──────────────────────────────────────────────────

    def out_edges(self, type_id: TypeId, kind: Optional[EdgeKind] = None) -> List[Edge]:
        """Return outgoing edges, optionally filtered by kind."""
        edges = self._out.get(type_id, ())
        if kind is None:
            return list(edges)
        return [e for e in edges if e.kind is kind]

    def in_edges(self, type_id: TypeId, kind: Optional[EdgeKind] = None) -> List[Edge]:
        """Return incoming edges, optionally filtered by kind."""
        edges = self._in.get(type_id, ())
        if kind is None:
            return list(edges)
        return [e for e in edges if e.kind is kind]

    def successors(self, type_id: TypeId, kind: Optional[EdgeKind] = None) -> List[TypeId]:
        return [e.target for e in self.out_edges(type_id, kind)]

    def edge_between(self, source: TypeId, target: TypeId) -> Optional[Edge]:
        for e in self._out.get(source, ()):
            if e.target == target:
                return e
        return None

    # ── Name index ────────────────────────────────────────────────────

    def find_by_name(self, name: str, kind: Optional[TypeKind] = None) -> List[TypeId]:
        """Every type id carrying *name*, optionally restricted to one kind."""
        ids = self._name_index.get(name, ())
        if kind is None:
            return list(ids)
        return [i for i in ids if self.nodes[i].kind is kind]

    def find_tag(self, keyword: str, name: str) -> TypeId:
        """``find_tag("struct", "S")`` → id of ``struct S`` (definition
        preferred over a bare forward declaration)."""
        kind = TAG_KINDS[keyword]
        fwd: Optional[TypeId] = None
        for i in self._name_index.get(name, ()):
            n = self.nodes[i]
            if n.kind is kind:
                return i
            if n.kind is TypeKind.FWD and n.fwd_kind is kind:
                fwd = i
        if fwd is not None:
            return fwd
        raise UnresolvedTypeError(
            f"no {keyword} named '{name}' in graph", type_name=f"{keyword} {name}"
        )

    def find_typedef(self, name: str) -> TypeId:
        for i in self._name_index.get(name, ()):
            if self.nodes[i].kind is TypeKind.TYPEDEF:
                return i
        raise UnresolvedTypeError(f"no typedef named '{name}' in graph", type_name=name)

    # ── Modifier / typedef transparency ───────────────────────────────

    def skip_mods(self, type_id: TypeId) -> TypeId:
        """Strip const/volatile/restrict."""
        node = self.nodes[type_id]
        while node.kind is TypeKind.QUALIFIED:
            node = self.nodes[node.target]
        return node.id

    def skip_mods_and_typedefs(self, type_id: TypeId) -> TypeId:
        """Strip qualifiers and typedefs down to the underlying type."""
        node = self.nodes[type_id]
        while node.kind in (TypeKind.QUALIFIED, TypeKind.TYPEDEF):
            node = self.nodes[node.target]
        return node.id

    def resolve(self, type_id: TypeId) -> TypeNode:
        return self.nodes[self.skip_mods_and_typedefs(type_id)]

    def members_of(self, type_id: TypeId) -> Optional[Tuple[Member, ...]]:
        """Members of a struct/union (qualifiers and typedefs skipped),
        or ``None`` for any other kind."""
        node = self.resolve(type_id)
        if node.is_composite:
            return node.members
        return None

    # ── Flattened member lookup ───────────────────────────────────────

    def lookup_member(self, type_id: TypeId, name: str) -> Optional[Tuple[Member, ...]]:
        """
        Find *name* among the members of a struct/union, descending into
        anonymous struct/union members.

        Direct named members are checked first, then each anonymous
        member in declaration order.  Returns the chain of members from
        the outer level down to the named one (anonymous pass-throughs
        included), or ``None`` when the name is absent.  Raises
        ``AmbiguousFieldError`` when two sibling anonymous members both
        contain the name.
        """
        if not name:
            return None
        root = self.skip_mods_and_typedefs(type_id)
        found: Dict[TypeId, Optional[Tuple[Member, ...]]] = {}
        expanded: Set[TypeId] = set()
        stack: List[TypeId] = [root]
        while stack:
            tid = stack[-1]
            if tid in found:
                stack.pop()
                continue
            members = self.members_of(tid)
            if members is None:
                found[tid] = None
                stack.pop()
                continue
            direct = next((m for m in members if m.name == name), None)
            if direct is not None:
                found[tid] = (direct,)
                stack.pop()
                continue

            anon = [
                (m, self.skip_mods_and_typedefs(m.type_id))
                for m in members
                if m.is_anonymous and self.members_of(m.type_id) is not None
            ]
            if tid not in expanded:
                expanded.add(tid)
                stack.extend(
                    inner for _, inner in reversed(anon)
                    if inner not in found and inner not in expanded
                )
                continue

            matches = [(m,) + found[inner] for m, inner in anon if found.get(inner)]
            if len(matches) > 1:
                owner = self.nodes[tid]
                raise AmbiguousFieldError(
                    f"field '{name}' is reachable through {len(matches)} anonymous "
                    f"members of {owner.display_name}",
                    paths=[[m.index for m in chain] for chain in matches],
                    type_name=owner.display_name,
                    type_id=owner.id,
                    member=name,
                )
            found[tid] = matches[0] if matches else None
            stack.pop()
        return found[root]

    def flattened_names(self, type_id: TypeId) -> List[str]:
        """Every member name reachable by a plain ``.name`` step."""
        out: List[str] = []
        stack: List[Iterator[Member]] = [iter(self.members_of(type_id) or ())]
        while stack:
            m = next(stack[-1], None)
            if m is None:
                stack.pop()
            elif m.name:
                out.append(m.name)
            elif self.members_of(m.type_id) is not None:
                stack.append(iter(self.members_of(m.type_id)))
        return out

    # ── Statistics ────────────────────────────────────────────────────

    def statistics(self) -> Dict[str, Any]:
        """Return a dict with summary statistics."""
        by_kind: Dict[str, int] = defaultdict(int)
        for n in self.nodes:
            by_kind[n.kind.name.lower()] += 1
        return {
            "total_nodes": len(self.nodes),
            "declarable_nodes": len(self.declarable_ids()),
            "total_edges": len(self.edges),
            "strong_edges": sum(1 for e in self.edges if e.is_strong),
            "weak_edges": sum(1 for e in self.edges if not e.is_strong),
            "self_loops": sum(1 for e in self.edges if e.is_self_loop),
            "nodes_by_kind": dict(by_kind),
        }

    # ── Serialisation ─────────────────────────────────────────────────

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation of the declarable types."""
        lines = ["digraph TypeGraph {"]
        lines.append("  rankdir=BT;")
        if title:
            lines.append(f'  label="{title}";')
        lines.append('  node [shape=box, fontname="Helvetica", fontsize=10];')

        kind_attrs = {
            TypeKind.STRUCT:  'style=filled, fillcolor="#ddeeff"',
            TypeKind.UNION:   'style=filled, fillcolor="#e8ddff"',
            TypeKind.ENUM:    'style=filled, fillcolor="#fff3cd"',
            TypeKind.TYPEDEF: 'style=filled, fillcolor="#ccffcc", shape=ellipse',
            TypeKind.FWD:     'style=dashed',
        }
        for i in self.declarable_ids():
            n = self.nodes[i]
            attrs = kind_attrs.get(n.kind, "")
            escaped = n.display_name.replace('"', '\\"')
            lines.append(f'  "{n.id}" [label="{escaped}", {attrs}];')

        for e in self.edges:
            attrs = "" if e.is_strong else ", style=dashed"
            label = e.via.replace('"', '\\"')
            lines.append(
                f'  "{e.source}" -> "{e.target}" [label="{label}"{attrs}];'
            )
        lines.append("}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"TypeGraph(nodes={len(self.nodes)}, edges={len(self.edges)})"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — BUILDER
# ═══════════════════════════════════════════════════════════════════════════

def _builtin_int_types(config: TargetConfig) -> Dict[str, Tuple[int, bool]]:
    """C base type spellings → (size, signed) for *config*'s data model."""
    long_size = config.pointer_size
    table = {
        "char": (1, True),
        "signed char": (1, True),
        "unsigned char": (1, False),
        "_Bool": (1, False),
        "bool": (1, False),
        "short": (2, True),
        "short int": (2, True),
        "signed short": (2, True),
        "unsigned short": (2, False),
        "unsigned short int": (2, False),
        "int": (4, True),
        "signed": (4, True),
        "signed int": (4, True),
        "unsigned": (4, False),
        "unsigned int": (4, False),
        "long": (long_size, True),
        "long int": (long_size, True),
        "signed long": (long_size, True),
        "unsigned long": (long_size, False),
        "unsigned long int": (long_size, False),
        "long long": (8, True),
        "long long int": (8, True),
        "unsigned long long": (8, False),
        "unsigned long long int": (8, False),
    }
    return table


class TypeGraphBuilder:
    """
    Bind a ``DeclarationSet`` into a ``TypeGraph``.

    Type ids follow declaration order (id 0 is ``void``); C base types
    that are referenced by spelling but not declared get ids after every
    declaration.  Forward declarations of a tag that is defined somewhere
    in the set are bound to that definition and get no node of their
    own.
    """

    def __init__(self, config: TargetConfig = DEFAULT_CONFIG) -> None:
        self.config = config

    def build(self, decls: DeclarationSet) -> TypeGraph:
        state = _BuildState(decls, self.config)
        state.index_names()
        state.allocate_ids()
        state.bind_nodes()
        edges = _EdgeCollector(state.nodes).collect()
        graph = TypeGraph(state.nodes, edges, self.config)
        logger.debug("built %r from %d declarations", graph, len(decls))
        return graph


class _BuildState:
    """Scratch state for one ``TypeGraphBuilder.build`` call."""

    def __init__(self, decls: DeclarationSet, config: TargetConfig) -> None:
        self.decls = decls
        self.config = config
        self.builtins = _builtin_int_types(config)
        # name → decl index
        self.tag_defs: Dict[str, int] = {}
        self.tag_fwds: Dict[str, int] = {}
        self.ordinary: Dict[str, int] = {}
        # decl index → type id
        self.decl_ids: Dict[int, TypeId] = {}
        self.nodes: List[TypeNode] = [TypeNode(id=VOID_ID, kind=TypeKind.VOID)]
        self.builtin_ids: Dict[str, TypeId] = {}

    # ── pass 1: names ────────────────────────────────────────────────

    def index_names(self) -> None:
        for idx, decl in enumerate(self.decls):
            if isinstance(decl, (StructDecl, UnionDecl, EnumDecl)) and decl.name:
                self._define_tag(decl.name, idx)
            elif isinstance(decl, FwdDecl):
                if decl.kind not in TAG_KINDS:
                    raise UnresolvedTypeError(
                        f"forward declaration of unknown kind '{decl.kind}'",
                        type_name=decl.name,
                    )
                self.tag_fwds.setdefault(decl.name, idx)
            elif isinstance(decl, (TypedefDecl, IntDecl)):
                self._define_ordinary(decl.name, idx)

        for name, fwd_idx in self.tag_fwds.items():
            fwd_kind = TAG_KINDS[self.decls[fwd_idx].kind]
            def_idx = self.tag_defs.get(name)
            if def_idx is not None and _decl_kind(self.decls[def_idx]) is not fwd_kind:
                raise DuplicateDefinitionError(
                    f"'{name}' forward-declared as {tag_keyword(fwd_kind)} but defined as "
                    f"{tag_keyword(_decl_kind(self.decls[def_idx]))}",
                    type_name=name,
                )

    def _define_tag(self, name: str, idx: int) -> None:
        prev = self.tag_defs.get(name)
        if prev is not None:
            raise DuplicateDefinitionError(
                f"tag '{name}' defined twice (declarations #{prev} and #{idx})",
                type_name=name,
            )
        self.tag_defs[name] = idx

    def _define_ordinary(self, name: str, idx: int) -> None:
        prev = self.ordinary.get(name)
        if prev is None:
            self.ordinary[name] = idx
        elif self.decls[prev] != self.decls[idx]:
            raise DuplicateDefinitionError(
                f"'{name}' defined twice with different types "
                f"(declarations #{prev} and #{idx})",
                type_name=name,
            )

    # ── pass 2: ids ──────────────────────────────────────────────────

    def allocate_ids(self) -> None:
        next_id = 1
        fwd_ids: Dict[str, TypeId] = {}
        for idx, decl in enumerate(self.decls):
            if isinstance(decl, FwdDecl):
                if decl.name in self.tag_defs:
                    continue          # bound to the definition in bind_nodes
                if decl.name in fwd_ids:
                    self.decl_ids[idx] = fwd_ids[decl.name]
                    continue
                fwd_ids[decl.name] = next_id
            elif isinstance(decl, (TypedefDecl, IntDecl)) and self.ordinary[decl.name] != idx:
                continue              # identical redefinition
            self.decl_ids[idx] = next_id
            next_id += 1

        for idx, decl in enumerate(self.decls):
            if isinstance(decl, FwdDecl) and decl.name in self.tag_defs:
                self.decl_ids[idx] = self.decl_ids[self.tag_defs[decl.name]]
            elif isinstance(decl, (TypedefDecl, IntDecl)) and idx not in self.decl_ids:
                self.decl_ids[idx] = self.decl_ids[self.ordinary[decl.name]]

        self.nodes.extend([None] * (next_id - 1))  # type: ignore[list-item]

    # ── pass 3: nodes ────────────────────────────────────────────────

    def bind_nodes(self) -> None:
        bound: Set[TypeId] = set()
        for idx, decl in enumerate(self.decls):
            tid = self.decl_ids[idx]
            if tid in bound:
                continue
            if isinstance(decl, FwdDecl) and decl.name in self.tag_defs:
                continue
            bound.add(tid)
            self.nodes[tid] = self._make_node(tid, idx, decl)

    def _make_node(self, tid: TypeId, idx: int, decl: Declaration) -> TypeNode:
        if isinstance(decl, VoidDecl):
            return TypeNode(id=tid, kind=TypeKind.VOID, decl_index=idx)
        if isinstance(decl, IntDecl):
            return TypeNode(id=tid, kind=TypeKind.INT, name=decl.name, decl_index=idx,
                            size=decl.size, signed=decl.signed)
        if isinstance(decl, PtrDecl):
            return TypeNode(id=tid, kind=TypeKind.PTR, decl_index=idx,
                            target=self.resolve_ref(decl.target, idx))
        if isinstance(decl, ArrayDecl):
            return TypeNode(id=tid, kind=TypeKind.ARRAY, decl_index=idx,
                            target=self.resolve_ref(decl.element, idx), length=decl.length)
        if isinstance(decl, (StructDecl, UnionDecl)):
            members = tuple(
                Member(
                    name=m.name,
                    type_id=self.resolve_ref(m.type, idx),
                    index=i,
                    bit_size=m.bit_size,
                    bit_offset=m.bit_offset,
                    aligned=m.aligned,
                    packed=m.packed,
                )
                for i, m in enumerate(decl.members)
            )
            return TypeNode(id=tid, kind=decl.kind, name=decl.name, decl_index=idx,
                            members=members, packed=decl.packed, aligned=decl.aligned,
                            explicit_size=decl.size)
        if isinstance(decl, EnumDecl):
            return TypeNode(id=tid, kind=TypeKind.ENUM, name=decl.name, decl_index=idx,
                            size=decl.size or self.config.default_enum_size,
                            signed=decl.signed, values=tuple(decl.values))
        if isinstance(decl, FwdDecl):
            return TypeNode(id=tid, kind=TypeKind.FWD, name=decl.name, decl_index=idx,
                            fwd_kind=TAG_KINDS[decl.kind])
        if isinstance(decl, TypedefDecl):
            return TypeNode(id=tid, kind=TypeKind.TYPEDEF, name=decl.name, decl_index=idx,
                            target=self.resolve_ref(decl.target, idx))
        if isinstance(decl, QualifiedDecl):
            return TypeNode(id=tid, kind=TypeKind.QUALIFIED, decl_index=idx,
                            qualifier=decl.qualifier,
                            target=self.resolve_ref(decl.target, idx))
        if isinstance(decl, FuncProtoDecl):
            params = tuple(Param(p.name, self.resolve_ref(p.type, idx)) for p in decl.params)
            return TypeNode(id=tid, kind=TypeKind.FUNC_PROTO, decl_index=idx,
                            target=self.resolve_ref(decl.return_type, idx),
                            params=params, variadic=decl.variadic)
        raise TypeError(f"unsupported declaration: {decl!r}")

    # ── reference resolution ─────────────────────────────────────────

    def resolve_ref(self, ref: TypeRef, from_idx: int) -> TypeId:
        if isinstance(ref, int):
            if ref not in self.decl_ids:
                raise UnresolvedTypeError(
                    f"declaration #{from_idx} refers to missing declaration #{ref}",
                    type_name=f"#{ref}",
                )
            return self.decl_ids[ref]

        spelled = " ".join(ref.split())
        if spelled == "void":
            return VOID_ID

        keyword, _, tag = spelled.partition(" ")
        if keyword in TAG_KINDS and tag:
            return self._resolve_tag(TAG_KINDS[keyword], tag, spelled)

        idx = self.ordinary.get(spelled)
        if idx is not None:
            return self.decl_ids[idx]
        if spelled in self.builtins:
            return self._builtin(spelled)
        raise UnresolvedTypeError(
            f"type '{spelled}' is referenced but never declared", type_name=spelled
        )

    def _resolve_tag(self, kind: TypeKind, tag: str, spelled: str) -> TypeId:
        idx = self.tag_defs.get(tag)
        if idx is None:
            idx = self.tag_fwds.get(tag)
            if idx is not None and TAG_KINDS[self.decls[idx].kind] is not kind:
                idx = None
        elif _decl_kind(self.decls[idx]) is not kind:
            raise UnresolvedTypeError(
                f"'{spelled}' refers to a {tag_keyword(_decl_kind(self.decls[idx]))}",
                type_name=spelled,
            )
        if idx is None:
            raise UnresolvedTypeError(
                f"tag '{spelled}' is referenced but never defined", type_name=spelled
            )
        return self.decl_ids[idx]

    def _builtin(self, spelled: str) -> TypeId:
        tid = self.builtin_ids.get(spelled)
        if tid is None:
            size, signed = self.builtins[spelled]
            tid = len(self.nodes)
            self.nodes.append(TypeNode(id=tid, kind=TypeKind.INT, name=spelled,
                                       size=size, signed=signed))
            self.builtin_ids[spelled] = tid
        return tid


def _decl_kind(decl: Declaration) -> TypeKind:
    if isinstance(decl, StructDecl):
        return TypeKind.STRUCT
    if isinstance(decl, UnionDecl):
        return TypeKind.UNION
    return TypeKind.ENUM


# ═══════════════════════════════════════════════════════════════════════════
#  PART 4 — EDGE CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════

class _EdgeCollector:
    """Walk every declarable node's definition and classify its uses."""

    def __init__(self, nodes: Sequence[TypeNode]) -> None:
        self.nodes = nodes
        self.edges: List[Edge] = []
        self._by_pair: Dict[Tuple[TypeId, TypeId], int] = {}

    def collect(self) -> List[Edge]:
        declarable = sorted(
            (n for n in self.nodes if n.is_declarable),
            key=lambda n: (n.decl_index, n.id),
        )
        for node in declarable:
            if node.is_composite:
                for m in node.members:
                    self._walk(node.id, m.type_id, EdgeKind.STRONG, m.name or "<anon>")
            elif node.kind is TypeKind.TYPEDEF:
                self._walk(node.id, node.target, EdgeKind.WEAK, "<typedef>")
        return self.edges

    def _walk(self, source: TypeId, type_id: TypeId, strength: EdgeKind, via: str) -> None:
        # (type, strength, via, in_proto); strength None closes an anonymous body
        stack: List[Tuple[TypeId, Optional[EdgeKind], str, bool]] = [
            (type_id, strength, via, False)
        ]
        open_bodies: Set[TypeId] = set()
        while stack:
            type_id, strength, via, in_proto = stack.pop()
            if strength is None:
                open_bodies.discard(type_id)
                continue
            node = self.nodes[type_id]
            kind = node.kind

            if kind is TypeKind.QUALIFIED:
                stack.append((node.target, strength, via, in_proto))
            elif kind is TypeKind.TYPEDEF:
                self._add(source, type_id, strength, via, in_proto)
                if strength is EdgeKind.STRONG:
                    self._strong_through_typedef(source, node.target, via)
            elif kind is TypeKind.PTR:
                stack.append((node.target, EdgeKind.WEAK, via, in_proto))
            elif kind is TypeKind.ARRAY:
                # array of an incomplete element type is never valid
                stack.append((node.target, EdgeKind.STRONG, via, in_proto))
            elif kind is TypeKind.FUNC_PROTO:
                uses = [(node.target, EdgeKind.WEAK, via, True)]
                uses += [(p.type_id, EdgeKind.WEAK, via, True) for p in node.params]
                stack.extend(reversed(uses))
            elif node.is_forward_declarable:
                self._add(source, type_id, strength, via, in_proto)
            elif node.is_composite:
                # anonymous body, defined inline right here
                if type_id in open_bodies:
                    continue
                open_bodies.add(type_id)
                stack.append((type_id, None, via, in_proto))
                stack.extend(reversed([
                    (m.type_id, EdgeKind.STRONG, m.name or via, False) for m in node.members
                ]))

    def _strong_through_typedef(self, source: TypeId, type_id: TypeId, via: str) -> None:
        node = self.nodes[type_id]
        while node.kind in (TypeKind.QUALIFIED, TypeKind.TYPEDEF):
            if node.kind is TypeKind.TYPEDEF:
                self._add(source, node.id, EdgeKind.STRONG, via, False)
            node = self.nodes[node.target]
        if node.is_forward_declarable:
            self._add(source, node.id, EdgeKind.STRONG, via, False)

    def _add(
        self,
        source: TypeId,
        target: TypeId,
        kind: EdgeKind,
        via: str,
        in_proto: bool,
    ) -> None:
        key = (source, target)
        pos = self._by_pair.get(key)
        if pos is None:
            edge = Edge(source, target, kind, via, in_proto, seq=len(self.edges))
            self._by_pair[key] = len(self.edges)
            self.edges.append(edge)
            logger.debug("edge %s → %s %s via %s%s",
                         self.nodes[source].display_name,
                         self.nodes[target].display_name,
                         kind.name, via, " (func proto)" if in_proto else "")
            return

        old = self.edges[pos]
        upgraded = old
        if kind is EdgeKind.STRONG and old.kind is EdgeKind.WEAK:
            upgraded = replace(upgraded, kind=EdgeKind.STRONG, via=via)
        if old.through_func_proto and not in_proto:
            upgraded = replace(upgraded, through_func_proto=False)
        if upgraded is not old:
            self.edges[pos] = upgraded
