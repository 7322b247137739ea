"""
corereloc/relocator.py
══════════════════════

CO-RE field relocation: re-resolve a field access, written against one
type layout, in a structurally similar but differently laid out target.

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────┐
│  access expression  "s->p.q"                                            │
│          │  parse_access_expression()                                   │
│          ▼                                                              │
│  CORERelocationResolver.resolve(root, expr)        (one graph)          │
│          │  name lookup through anonymous members, array steps          │
│          ▼                                                              │
│  RelocationResult(path=0:0:1:2:0, byte_offset, byte_size, bits…)        │
│                                                                         │
│  Relocator(local, target).relocate(local_type, "0:0:1:2:0")             │
│          │  accessors_from_path()  →  name-based accessors              │
│          │  candidates by essential name (``foo___v2`` ≡ ``foo``)       │
│          ▼                                                              │
│  Relocation(local spec/offset, target spec/offset, matches)             │
└─────────────────────────────────────────────────────────────────────────┘

Access path encoding:
    - element 0: index into the root value (0 unless the root is used as
      an array: ``s[1].x``)
    - one element per member level, anonymous pass-through levels
      included
    - array steps append the literal element index

Typedefs and qualifiers never add an element.

Resolution is purely structural, by member name and type shape.  A miss
(``FieldNotFoundError`` and the other ``RelocationError``s) is a normal
outcome: ``try_resolve`` returns it as a ``RelocationOutcome`` and
``resolve_first`` uses it to fall back to an alternative expression.

Resolvers and relocators hold no mutable state after construction and
may be shared between threads.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .access_expr import (
    AccessExpression,
    FieldStep,
    parse_access_expression,
)
from .errors import (
    AccessPathOverflowError,
    AmbiguousCandidateError,
    CoreRelocError,
    FieldNotFoundError,
    IncompleteTypeError,
    InvalidAccessError,
    LayoutError,
    NoCandidateError,
    RelocationError,
)
from .layout import LayoutComputer, LayoutTable, MemberLayout, TypeLayout
from .type_graph import TypeGraph
from .type_model import Member, TypeId, TypeKind, TypeNode

logger = logging.getLogger(__name__)

PATH_DELIMITER = ":"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — ACCESS PATH
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AccessPath:
    """Canonical integer encoding of an access; ``str()`` gives ``"0:1:2"``."""
    elements: Tuple[int, ...]

    def __post_init__(self) -> None:
        if not self.elements:
            raise ValueError("an access path has at least the root element")
        for e in self.elements:
            if e < 0:
                raise ValueError(f"negative access path element: {e}")

    @classmethod
    def parse(cls, text: str) -> AccessPath:
        """``AccessPath.parse("0:1:2")``"""
        try:
            return cls(tuple(int(p) for p in text.strip().split(PATH_DELIMITER)))
        except ValueError as exc:
            raise ValueError(f"malformed access path {text!r}: {exc}") from exc

    @classmethod
    def coerce(cls, value: Union[AccessPath, str, Sequence[int]]) -> AccessPath:
        if isinstance(value, AccessPath):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        return cls(tuple(value))

    def check_width(self, max_value: int) -> AccessPath:
        """Raise ``AccessPathOverflowError`` unless every element fits."""
        for pos, e in enumerate(self.elements):
            if e > max_value:
                raise AccessPathOverflowError(
                    f"access path element #{pos} ({e}) exceeds {max_value:#x}"
                )
        return self

    @property
    def root_index(self) -> int:
        return self.elements[0]

    def __iter__(self) -> Iterator[int]:
        return iter(self.elements)

    def __len__(self) -> int:
        return len(self.elements)

    def __getitem__(self, index: int) -> int:
        return self.elements[index]

    def __str__(self) -> str:
        return PATH_DELIMITER.join(str(e) for e in self.elements)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — RESULT TYPES
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FieldAccessor:
    """A named member step: member *index* of composite *type_id*."""
    type_id: TypeId
    index: int
    name: str

    def __str__(self) -> str:
        return f"field:[{self.type_id}].#{self.index}('{self.name}')"


@dataclass(frozen=True)
class ArrayAccessor:
    """An element step into *type_id* (the root or an array's element type)."""
    type_id: TypeId
    index: int

    def __str__(self) -> str:
        return f"array:*[{self.type_id}] + {self.index}"


Accessor = Union[FieldAccessor, ArrayAccessor]


@dataclass(frozen=True)
class RelocationResult:
    """
    Where an access lands in one particular layout.

    ``byte_offset`` is measured from the start of the root value.  For a
    bitfield, ``byte_offset`` / ``byte_size`` describe the storage unit
    holding it, ``bit_offset`` is its first bit within that unit and
    ``bit_size`` its width; both are ``None`` otherwise.
    """
    root_type_id: TypeId
    path: AccessPath
    type_id: TypeId
    byte_offset: int
    byte_size: int
    member_name: str = ""
    member_offset: int = 0
    bit_offset: Optional[int] = None
    bit_size: Optional[int] = None
    signed: bool = False

    @property
    def is_bitfield(self) -> bool:
        return self.bit_size is not None

    @property
    def spec(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class RelocationOutcome:
    """Either a result or the ``RelocationError`` explaining the miss."""
    result: Optional[RelocationResult] = None
    error: Optional[RelocationError] = None

    @property
    def ok(self) -> bool:
        return self.result is not None

    def unwrap(self) -> RelocationResult:
        if self.result is None:
            raise self.error
        return self.result


class RelocationKind(Enum):
    BYTE_OFFSET = "byte_off"
    BYTE_SIZE = "byte_sz"
    FIELD_EXISTS = "field_exists"
    SIGNED = "signed"
    LSHIFT_U64 = "lshift_u64"
    RSHIFT_U64 = "rshift_u64"
    TYPE_EXISTS = "type_exists"
    TYPE_SIZE = "type_size"

    @property
    def is_type_based(self) -> bool:
        return self in (RelocationKind.TYPE_EXISTS, RelocationKind.TYPE_SIZE)


@dataclass(frozen=True)
class Relocation:
    """A local access re-resolved against a target graph."""
    local_type_id: TypeId
    local: RelocationResult
    target_type_id: TypeId
    target: RelocationResult
    matched_ids: Tuple[TypeId, ...] = field(default=())

    @property
    def local_spec(self) -> AccessPath:
        return self.local.path

    @property
    def target_spec(self) -> AccessPath:
        return self.target.path

    def __str__(self) -> str:
        return (
            f"[{self.local_type_id}] + {self.local.byte_offset} ({self.local.spec}) --> "
            f"[{self.target_type_id}] + {self.target.byte_offset} ({self.target.spec})"
        )


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — RESOLVER (one graph)
# ═══════════════════════════════════════════════════════════════════════════

AccessLike = Union[str, AccessExpression]


class CORERelocationResolver:
    """
    Resolve access expressions and access paths against one ``TypeGraph``.

    Usage::

        resolver = CORERelocationResolver(graph)
        res = resolver.resolve(graph.find_tag("struct", "S"), "s->p.q")
        str(res.path)          # '0:0:1:2:0'
    """

    def __init__(self, graph: TypeGraph, layouts: Optional[LayoutTable] = None) -> None:
        self.graph = graph
        self.config = graph.config
        self.layouts = layouts if layouts is not None else LayoutComputer(graph).compute_all()

    # ── root handling ────────────────────────────────────────────────

    def _root(self, root: TypeId) -> TypeNode:
        """The value type an access starts from: qualifiers, typedefs and
        one level of pointer are looked through (``s->x`` ≡ ``s[0].x``)."""
        node = self.graph.resolve(root)
        if node.kind is TypeKind.PTR:
            node = self.graph.resolve(node.target)
        return node

    def _layout(self, type_id: TypeId) -> TypeLayout:
        try:
            return self.layouts[type_id]
        except KeyError:
            node = self.graph[type_id]
            raise IncompleteTypeError(
                f"{node.display_name} has no layout",
                type_name=node.display_name, type_id=type_id,
            ) from None

    def _signed(self, type_id: TypeId) -> bool:
        node = self.graph.resolve(type_id)
        return node.kind in (TypeKind.INT, TypeKind.ENUM) and node.signed

    # ── source expressions ───────────────────────────────────────────

    def resolve(self, root: TypeId, expression: AccessLike) -> RelocationResult:
        """
        Walk *expression* (``"s->p.q"`` or an ``AccessExpression``) from
        the *root* type and return where it lands.

        Raises ``FieldNotFoundError`` when a named step exists nowhere in
        the current level (anonymous members included),
        ``AmbiguousFieldError`` when it exists in two sibling anonymous
        members, and ``InvalidAccessError`` when a step does not fit the
        shape of the type it is applied to.
        """
        expr = expression
        if not isinstance(expr, AccessExpression):
            expr = parse_access_expression(expr)

        start = self._root(root)
        walk = _Walk(self, start, expr.root_index)
        for step in expr.steps[1:]:
            if isinstance(step, FieldStep):
                walk.field(step.name)
            else:
                walk.index(step.index)
        result = walk.finish()
        logger.debug("resolved %s on %s → %s (+%d, %d bytes)",
                     expr, start.display_name, result.path,
                     result.byte_offset, result.byte_size)
        return result

    def try_resolve(self, root: TypeId, expression: AccessLike) -> RelocationOutcome:
        """Like ``resolve`` but misses come back as a value."""
        try:
            return RelocationOutcome(result=self.resolve(root, expression))
        except RelocationError as exc:
            return RelocationOutcome(error=exc)

    def resolve_first(
        self,
        root: TypeId,
        expressions: Iterable[AccessLike],
    ) -> RelocationResult:
        """
        Try alternative expressions in order; return the first that
        resolves.  When none does, the last miss is raised.
        """
        last: Optional[RelocationError] = None
        for expr in expressions:
            outcome = self.try_resolve(root, expr)
            if outcome.ok:
                return outcome.result
            logger.debug("alternative %s does not resolve: %s", expr, outcome.error)
            last = outcome.error
        if last is None:
            raise ValueError("resolve_first() needs at least one expression")
        raise last

    # ── access paths ─────────────────────────────────────────────────

    def _path_member(self, node: TypeNode, path: AccessPath, pos: int) -> Member:
        index = path.elements[pos]
        if index >= len(node.members):
            raise InvalidAccessError(
                f"access path {path} element #{pos}: {node.display_name} "
                f"has no member #{index}",
                type_name=node.display_name, type_id=node.id,
            )
        m = node.members[index]
        if not m.name and self.graph.members_of(m.type_id) is None:
            raise InvalidAccessError(
                f"access path {path} element #{pos}: member #{index} of "
                f"{node.display_name} is an anonymous bitfield",
                type_name=node.display_name, type_id=node.id,
            )
        return m

    def resolve_path(self, root: TypeId, path: Union[AccessPath, str, Sequence[int]]) -> RelocationResult:
        """Offset / size denoted by an already encoded access path."""
        path = AccessPath.coerce(path)
        start = self._root(root)
        walk = _Walk(self, start, path.root_index)
        for pos, element in enumerate(path.elements[1:], start=1):
            node = self.graph.resolve(walk.current)
            if node.is_composite:
                walk.member(self._path_member(node, path, pos))
            elif node.kind is TypeKind.ARRAY:
                walk.index(element)
            else:
                raise InvalidAccessError(
                    f"access path {path} element #{pos}: {node.display_name} "
                    "must be struct/union/array",
                    type_name=node.display_name, type_id=node.id,
                )
        return walk.finish()

    def accessors_from_path(
        self,
        root: TypeId,
        path: Union[AccessPath, str, Sequence[int]],
    ) -> List[Accessor]:
        """
        Turn an access path into name-based accessors: anonymous member
        levels are dropped, named members keep their name, array steps
        keep their index.
        """
        path = AccessPath.coerce(path)
        g = self.graph
        cur = self._root(root).id
        out: List[Accessor] = [ArrayAccessor(cur, path.root_index)]
        for pos, element in enumerate(path.elements[1:], start=1):
            node = g.resolve(cur)
            if node.is_composite:
                m = self._path_member(node, path, pos)
                if m.name:
                    out.append(FieldAccessor(node.id, element, m.name))
                cur = g.skip_mods_and_typedefs(m.type_id)
            elif node.kind is TypeKind.ARRAY:
                cur = g.skip_mods_and_typedefs(node.target)
                out.append(ArrayAccessor(cur, element))
            else:
                raise InvalidAccessError(
                    f"access path {path} element #{pos}: {node.display_name} "
                    "must be struct/union/array",
                    type_name=node.display_name, type_id=node.id,
                )
        return out

    def describe_path(self, root: TypeId, path: Union[AccessPath, str, Sequence[int]]) -> str:
        """``"struct S[1].y[2].x[3].t2"``; anonymous levels print ``.<anon>``."""
        path = AccessPath.coerce(path)
        g = self.graph
        node = self._root(root)
        if not node.is_composite:
            raise InvalidAccessError(
                f"access path root {node.display_name} must be struct/union",
                type_name=node.display_name, type_id=node.id,
            )
        parts = [node.display_name]
        if path.root_index > 0:
            parts.append(f"[{path.root_index}]")
        for pos, element in enumerate(path.elements[1:], start=1):
            if node.is_composite:
                m = self._path_member(node, path, pos)
                parts.append(f".{m.name or '<anon>'}")
                node = g.resolve(m.type_id)
            elif node.kind is TypeKind.ARRAY:
                parts.append(f"[{element}]")
                node = g.resolve(node.target)
            else:
                raise InvalidAccessError(
                    f"access path {path}: {node.display_name} must be struct/union/array",
                    type_name=node.display_name, type_id=node.id,
                )
        return "".join(parts)


class _Walk:
    """Accumulates path elements and offsets while descending one type."""

    def __init__(self, resolver: CORERelocationResolver, start: TypeNode, root_index: int) -> None:
        self.r = resolver
        self.g = resolver.graph
        self.root_id = start.id
        self.current: TypeId = start.id
        self.path: List[int] = [root_index]
        self.offset = 0
        if root_index:
            self.offset = root_index * self.r._layout(start.id).size
        self.container_offset = 0
        self.last_member: Optional[MemberLayout] = None
        self.name = ""

    def field(self, name: str) -> None:
        node = self.g.resolve(self.current)
        if not node.is_composite:
            raise InvalidAccessError(
                f"cannot access field '{name}' of non-composite {node.display_name}",
                type_name=node.display_name, type_id=node.id, member=name,
            )
        chain = self.g.lookup_member(node.id, name)
        if chain is None:
            raise FieldNotFoundError(
                f"{node.display_name} has no field '{name}'",
                type_name=node.display_name, type_id=node.id, member=name,
            )
        for m in chain:
            self.member(m)

    def member(self, m: Member) -> None:
        owner = self.g.resolve(self.current)
        layout = self.r._layout(owner.id)
        ml = layout.member(m.index)
        self.container_offset = self.offset
        self.offset += ml.byte_offset
        self.path.append(m.index)
        self.current = m.type_id
        self.last_member = ml
        self.name = m.name

    def index(self, idx: int) -> None:
        node = self.g.resolve(self.current)
        if node.kind is not TypeKind.ARRAY:
            raise InvalidAccessError(
                f"cannot index non-array {node.display_name} with [{idx}]",
                type_name=node.display_name, type_id=node.id,
            )
        if (
            self.r.config.check_array_bounds
            and node.length is not None
            and idx >= node.length
        ):
            raise InvalidAccessError(
                f"index [{idx}] out of bounds for {node.length}-element array",
                type_name=node.display_name, type_id=node.id,
            )
        self.offset += idx * self.r._layout(node.target).size
        self.path.append(idx)
        self.current = node.target
        self.last_member = None

    def finish(self) -> RelocationResult:
        path = AccessPath(tuple(self.path)).check_width(self.r.config.max_path_value)
        ml = self.last_member
        signed = self.r._signed(self.current)
        if ml is not None and not ml.is_loadable:
            raise InvalidAccessError(
                f"bitfield '{self.name}' does not fit in any 8-byte aligned load",
                type_name=self.g[self.root_id].display_name,
                type_id=self.root_id,
                member=self.name,
            )
        if ml is not None and ml.is_bitfield:
            return RelocationResult(
                root_type_id=self.root_id,
                path=path,
                type_id=self.current,
                byte_offset=self.container_offset + ml.unit_offset,
                byte_size=ml.unit_size,
                member_name=self.name,
                member_offset=ml.unit_offset,
                bit_offset=ml.unit_bit_offset,
                bit_size=ml.bit_size,
                signed=signed,
            )
        if ml is not None:
            size = ml.size
            member_offset = ml.byte_offset
        else:
            size = self.r._layout(self.current).size
            member_offset = 0
        return RelocationResult(
            root_type_id=self.root_id,
            path=path,
            type_id=self.current,
            byte_offset=self.offset,
            byte_size=size,
            member_name=self.name,
            member_offset=member_offset,
            signed=signed,
        )


# ═══════════════════════════════════════════════════════════════════════════
#  PART 4 — CROSS-GRAPH RELOCATION
# ═══════════════════════════════════════════════════════════════════════════

_FLAVOR_SEP = re.compile(r"(?<=[^_])___(?=[^_])")


def essential_name(name: str) -> str:
    """``"task_struct___v510"`` → ``"task_struct"``; the last ``___``
    separator starts the flavor suffix."""
    matches = list(_FLAVOR_SEP.finditer(name))
    if not matches:
        return name
    return name[: matches[-1].start()]


class Relocator:
    """
    Re-resolve accesses recorded against a *local* graph in a *target*
    graph, picking target types by essential name.

    Usage::

        reloc = Relocator(local_graph, target_graph)
        r = reloc.relocate(local_graph.find_tag("struct", "S"), "0:0:1:2:0")
        r.target.byte_offset
    """

    def __init__(
        self,
        local: Union[TypeGraph, CORERelocationResolver],
        target: Union[TypeGraph, CORERelocationResolver],
    ) -> None:
        self.local = local if isinstance(local, CORERelocationResolver) else CORERelocationResolver(local)
        self.target = target if isinstance(target, CORERelocationResolver) else CORERelocationResolver(target)

    # ── candidates ───────────────────────────────────────────────────

    def candidates(self, local_type_id: TypeId) -> List[TypeId]:
        """Target types with the local type's kind and essential name."""
        local = self.local.graph[local_type_id]
        if not local.name:
            return []
        wanted = essential_name(local.name)
        out: List[TypeId] = []
        for node in self.target.graph:
            if node.kind is local.kind and node.name and essential_name(node.name) == wanted:
                out.append(node.id)
        return out

    def _kinds_compatible(self, local_id: TypeId, target_id: TypeId) -> bool:
        lk = self.local.graph.resolve(local_id).kind
        tk = self.target.graph.resolve(target_id).kind
        return lk is tk or (lk is TypeKind.STRUCT and tk is TypeKind.UNION)

    def _target_path(self, accessors: Sequence[Accessor], target_id: TypeId) -> AccessPath:
        tg = self.target.graph
        first = accessors[0]
        if not isinstance(first, ArrayAccessor):
            raise InvalidAccessError(f"first accessor must be an array access, is {first}")
        spec = [first.index]
        cur = self.target._root(target_id).id

        for acc in accessors[1:]:
            node = tg.resolve(cur)
            if isinstance(acc, ArrayAccessor):
                if node.kind is not TypeKind.ARRAY:
                    raise InvalidAccessError(
                        f"accessor {acc}: target {node.display_name} must be an array",
                        type_name=node.display_name, type_id=node.id,
                    )
                spec.append(acc.index)
                cur = tg.skip_mods_and_typedefs(node.target)
                continue

            if not node.is_composite:
                raise InvalidAccessError(
                    f"accessor {acc}: target {node.display_name} must be struct/union",
                    type_name=node.display_name, type_id=node.id, member=acc.name,
                )
            chain = tg.lookup_member(node.id, acc.name)
            if chain is None:
                raise FieldNotFoundError(
                    f"target {node.display_name} has no field '{acc.name}'",
                    type_name=node.display_name, type_id=node.id, member=acc.name,
                )
            local_member = self.local.graph.resolve(acc.type_id).members[acc.index]
            found = chain[-1]
            if not self._kinds_compatible(local_member.type_id, found.type_id):
                lk = self.local.graph.resolve(local_member.type_id).kind.name.lower()
                tk = tg.resolve(found.type_id).kind.name.lower()
                raise InvalidAccessError(
                    f"incompatible types for field '{acc.name}': local {lk}, target {tk}",
                    type_name=node.display_name, type_id=node.id, member=acc.name,
                )
            spec.extend(m.index for m in chain)
            cur = tg.skip_mods_and_typedefs(found.type_id)
        return AccessPath(tuple(spec))

    # ── relocation ───────────────────────────────────────────────────

    def relocate(
        self,
        local_type_id: TypeId,
        spec: Union[AccessPath, str, Sequence[int]],
    ) -> Relocation:
        """
        Relocate the local access *spec* on *local_type_id*.

        Every candidate that accepts the access is a match; matches must
        agree on the offset (``AmbiguousCandidateError`` otherwise).  No
        match at all is a ``NoCandidateError``.
        """
        local_path = AccessPath.coerce(spec)
        local_res = self.local.resolve_path(local_type_id, local_path)
        accessors = self.local.accessors_from_path(local_type_id, local_path)
        logger.debug("accessors for [%d] %s: %s", local_type_id, local_path,
                     ", ".join(str(a) for a in accessors))

        best: Optional[Tuple[TypeId, RelocationResult]] = None
        matched: List[TypeId] = []
        last_miss: Optional[CoreRelocError] = None
        for cand in self.candidates(local_type_id):
            logger.debug("matching [%d] to target [%d]", local_type_id, cand)
            try:
                targ_path = self._target_path(accessors, cand)
                targ_res = self.target.resolve_path(cand, targ_path)
            except (RelocationError, LayoutError) as exc:
                logger.debug("target [%d] rejected: %s", cand, exc)
                last_miss = exc
                continue
            if best is not None and targ_res.byte_offset != best[1].byte_offset:
                logger.warning(
                    "ambiguous relocation of [%d] %s: [%d] +%d vs [%d] +%d",
                    local_type_id, local_path, best[0], best[1].byte_offset,
                    cand, targ_res.byte_offset,
                )
                raise AmbiguousCandidateError(
                    f"ambiguous offset for local type [{local_type_id}] spec {local_path}: "
                    f"target [{best[0]}] +{best[1].byte_offset} ({best[1].path}) vs "
                    f"[{cand}] +{targ_res.byte_offset} ({targ_res.path})",
                    type_name=self.local.graph[local_type_id].display_name,
                    type_id=local_type_id,
                )
            if best is None:
                best = (cand, targ_res)
            matched.append(cand)

        if best is None:
            name = self.local.graph[local_type_id].display_name
            detail = f": {last_miss}" if last_miss is not None else ""
            raise NoCandidateError(
                f"no target candidate for {name} spec {local_path}{detail}",
                type_name=name,
                type_id=local_type_id,
                member=last_miss.member if last_miss is not None else "",
            ) from last_miss
        return Relocation(
            local_type_id=local_type_id,
            local=local_res,
            target_type_id=best[0],
            target=best[1],
            matched_ids=tuple(matched),
        )

    def relocate_expression(self, local_root: TypeId, expression: AccessLike) -> Relocation:
        """Resolve *expression* locally, then relocate its access path."""
        local_res = self.local.resolve(local_root, expression)
        root_id = self.local._root(local_root).id
        return self.relocate(root_id, local_res.path)

    # ── relocation values ────────────────────────────────────────────

    def value_of(
        self,
        kind: RelocationKind,
        local_type_id: TypeId,
        spec: Union[AccessPath, str, Sequence[int]] = "0",
    ) -> int:
        """The value a relocation of *kind* patches into the program."""
        if kind is RelocationKind.TYPE_EXISTS:
            return 1 if self.candidates(local_type_id) else 0
        if kind is RelocationKind.TYPE_SIZE:
            cands = self.candidates(local_type_id)
            if not cands:
                name = self.local.graph[local_type_id].display_name
                raise NoCandidateError(f"no target candidate for {name}",
                                       type_name=name, type_id=local_type_id)
            return self.target._layout(cands[0]).size
        if kind is RelocationKind.FIELD_EXISTS:
            try:
                self.relocate(local_type_id, spec)
            except RelocationError:
                return 0
            return 1

        res = self.relocate(local_type_id, spec).target
        if kind is RelocationKind.BYTE_OFFSET:
            return res.byte_offset
        if kind is RelocationKind.BYTE_SIZE:
            return res.byte_size
        if kind is RelocationKind.SIGNED:
            return int(res.signed)

        bit_size = res.bit_size if res.is_bitfield else res.byte_size * 8
        bit_in_unit = res.bit_offset if res.is_bitfield else 0
        if kind is RelocationKind.LSHIFT_U64:
            if self.target.config.little_endian:
                return 64 - (bit_in_unit + bit_size)
            return (8 - res.byte_size) * 8 + bit_in_unit
        if kind is RelocationKind.RSHIFT_U64:
            return 64 - bit_size
        raise ValueError(f"unknown relocation kind: {kind}")
