"""
corereloc/layout.py
═══════════════════

Byte/bit layout of every type in a ``TypeGraph``.

Rules follow the System V / GCC conventions:

    ┌──────────────┬───────────────────────────────────────────────────┐
    │ int          │ size = declared; align = min(size, pointer size)  │
    │ enum         │ size = underlying width; align = size              │
    │ pointer      │ size = align = pointer size                        │
    │ array        │ element size × length; align = element align       │
    │ struct       │ members at aligned offsets, size padded to align  │
    │ union        │ every member at offset 0; size = max, padded       │
    │ typedef/cv   │ layout of the underlying type                      │
    └──────────────┴───────────────────────────────────────────────────┘

Bitfields are packed into storage units as wide as their declared type:
a field that would cross the unit containing the current position
starts at the next position aligned to the type's natural alignment.
A zero-width bitfield rounds the position up to that alignment.
Unnamed bitfields take space but do not raise the struct's alignment.
``packed`` removes all padding (alignment 1); ``aligned(N)`` raises the
alignment of a member or of the whole type.

Layouts compiled elsewhere can be described exactly: an explicit member
``bit_offset`` or struct ``size`` is honoured after being checked for
consistency.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .errors import (
    AttributeConflictError,
    BitfieldWidthError,
    CircularLayoutError,
    IncompleteTypeError,
    LayoutError,
)
from .type_graph import TypeGraph
from .type_model import Member, TypeId, TypeKind, TypeNode

logger = logging.getLogger(__name__)


def align_up(value: int, alignment: int) -> int:
    return (value + alignment - 1) // alignment * alignment


def align_down(value: int, alignment: int) -> int:
    return value // alignment * alignment


def _is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — LAYOUT RECORDS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class MemberLayout:
    """
    Placement of one struct/union member.

    For a bitfield, ``unit_offset`` / ``unit_size`` describe the smallest
    naturally aligned load (1, 2, 4 or 8 bytes, starting from the
    declared type's width) that contains every bit of the field, and
    ``unit_bit_offset`` is the field's first bit inside that load.
    A packed field that no such load covers keeps its placement but gets
    ``unit_size == 0``; it cannot be relocated.
    """
    index: int
    name: str
    type_id: TypeId
    bit_offset: int
    size: int
    bit_size: Optional[int] = None
    unit_offset: int = 0
    unit_size: int = 0

    @property
    def byte_offset(self) -> int:
        return self.bit_offset // 8

    @property
    def is_bitfield(self) -> bool:
        return self.bit_size is not None

    @property
    def unit_bit_offset(self) -> int:
        return self.bit_offset - self.unit_offset * 8

    @property
    def is_loadable(self) -> bool:
        return not self.is_bitfield or self.unit_size > 0


@dataclass(frozen=True, slots=True)
class TypeLayout:
    type_id: TypeId
    name: str
    size: int
    alignment: int
    members: Tuple[MemberLayout, ...] = ()

    def member(self, index: int) -> MemberLayout:
        return self.members[index]

    def member_by_name(self, name: str) -> Optional[MemberLayout]:
        for m in self.members:
            if m.name == name:
                return m
        return None


class LayoutTable:
    """Outcome of ``LayoutComputer.compute_all()``: layouts plus per-type
    errors for the types that have none."""

    def __init__(
        self,
        layouts: Dict[TypeId, TypeLayout],
        errors: Dict[TypeId, LayoutError],
    ) -> None:
        self.layouts = dict(layouts)
        self.errors = dict(errors)

    def __getitem__(self, type_id: TypeId) -> TypeLayout:
        if type_id in self.errors:
            raise self.errors[type_id]
        return self.layouts[type_id]

    def __contains__(self, type_id: object) -> bool:
        return type_id in self.layouts

    def __iter__(self) -> Iterator[TypeLayout]:
        return iter(self.layouts.values())

    def __len__(self) -> int:
        return len(self.layouts)

    def get(self, type_id: TypeId) -> Optional[TypeLayout]:
        return self.layouts.get(type_id)

    def size_of(self, type_id: TypeId) -> int:
        return self[type_id].size

    @property
    def ok(self) -> bool:
        return not self.errors

    def __repr__(self) -> str:
        return f"LayoutTable(layouts={len(self.layouts)}, errors={len(self.errors)})"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — COMPUTER
# ═══════════════════════════════════════════════════════════════════════════

_UNSIZED = (TypeKind.VOID, TypeKind.FUNC_PROTO, TypeKind.FWD)


class LayoutComputer:
    """
    Compute ``TypeLayout``s for one graph.

    Results (and failures) are memoised per computer; the graph itself is
    never modified.
    """

    def __init__(self, graph: TypeGraph) -> None:
        self.graph = graph
        self.config = graph.config
        self._done: Dict[TypeId, TypeLayout] = {}
        self._failed: Dict[TypeId, LayoutError] = {}
        self._in_progress: Set[TypeId] = set()

    # ── public API ────────────────────────────────────────────────────

    def compute(self, type_id: TypeId) -> TypeLayout:
        """Layout of *type_id*; raises a ``LayoutError`` subclass.

        Embedded types are laid out first, in post-order from an explicit
        stack, so nesting depth never turns into Python recursion.
        """
        if type_id in self._done:
            return self._done[type_id]
        if type_id in self._failed:
            raise self._failed[type_id]
        for dep in self._pending_dependencies(type_id):
            try:
                self._compute_one(dep)
            except LayoutError:
                continue          # memoised; re-raised when the owner needs it
        return self._compute_one(type_id)

    def _layout_deps(self, type_id: TypeId) -> List[TypeId]:
        node = self.graph[type_id]
        if node.kind in (TypeKind.TYPEDEF, TypeKind.QUALIFIED, TypeKind.ARRAY):
            return [node.target]
        if node.is_composite:
            return [m.type_id for m in node.members]
        return []

    def _pending_dependencies(self, type_id: TypeId) -> List[TypeId]:
        """Not yet computed types embedded in *type_id*, innermost first."""
        seen: Set[TypeId] = {type_id}
        order: List[TypeId] = []
        stack: List[Tuple[TypeId, Iterator[TypeId]]] = [
            (type_id, iter(self._layout_deps(type_id)))
        ]
        while stack:
            tid, it = stack[-1]
            nxt = next(it, None)
            if nxt is None:
                stack.pop()
                if tid != type_id:
                    order.append(tid)
                continue
            if (
                nxt in seen
                or nxt in self._done
                or nxt in self._failed
                or nxt in self._in_progress
            ):
                continue
            seen.add(nxt)
            stack.append((nxt, iter(self._layout_deps(nxt))))
        return order

    def _compute_one(self, type_id: TypeId) -> TypeLayout:
        if type_id in self._done:
            return self._done[type_id]
        if type_id in self._failed:
            raise self._failed[type_id]
        node = self.graph[type_id]
        if type_id in self._in_progress:
            raise CircularLayoutError(
                f"{node.display_name} contains itself by value",
                type_name=node.display_name,
                type_id=type_id,
            )
        self._in_progress.add(type_id)
        try:
            layout = self._compute(node)
        except LayoutError as exc:
            self._failed[type_id] = exc
            raise
        finally:
            self._in_progress.discard(type_id)
        self._done[type_id] = layout
        logger.debug("layout %s: size=%d align=%d",
                     node.display_name, layout.size, layout.alignment)
        return layout

    def size_of(self, type_id: TypeId) -> int:
        return self.compute(type_id).size

    def align_of(self, type_id: TypeId) -> int:
        return self.compute(type_id).alignment

    def compute_all(self) -> LayoutTable:
        """Lay out every sized type; failures are collected per type."""
        layouts: Dict[TypeId, TypeLayout] = {}
        errors: Dict[TypeId, LayoutError] = {}
        for node in self.graph:
            if node.kind in _UNSIZED:
                continue
            if node.kind is TypeKind.ARRAY and node.length is None:
                continue          # sized only as a trailing member
            try:
                layouts[node.id] = self.compute(node.id)
            except LayoutError as exc:
                errors[node.id] = exc
                logger.warning("no layout for %s: %s", node.display_name, exc)
        return LayoutTable(layouts, errors)

    # ── per-kind rules ────────────────────────────────────────────────

    def _compute(self, node: TypeNode) -> TypeLayout:
        kind = node.kind
        name = node.display_name
        if kind in _UNSIZED:
            raise IncompleteTypeError(
                f"{name} has no size", type_name=name, type_id=node.id
            )
        if kind is TypeKind.INT:
            return TypeLayout(node.id, name, node.size,
                              min(node.size, self.config.max_int_alignment) or 1)
        if kind is TypeKind.ENUM:
            return TypeLayout(node.id, name, node.size, node.size)
        if kind is TypeKind.PTR:
            ps = self.config.pointer_size
            return TypeLayout(node.id, name, ps, ps)
        if kind in (TypeKind.TYPEDEF, TypeKind.QUALIFIED):
            inner = self.compute(node.target)
            return TypeLayout(node.id, name, inner.size, inner.alignment, inner.members)
        if kind is TypeKind.ARRAY:
            if node.length is None:
                raise IncompleteTypeError(
                    f"array of unknown length outside a trailing struct member ({name})",
                    type_name=name,
                    type_id=node.id,
                )
            elem = self.compute(node.target)
            return TypeLayout(node.id, name, elem.size * node.length, elem.alignment)
        if kind is TypeKind.STRUCT:
            return self._struct(node)
        return self._union(node)

    def _member_type(self, owner: TypeNode, m: Member, trailing: bool) -> Tuple[int, int]:
        """(size, alignment) of a member's type; a trailing unknown-length
        array is a flexible array member of size 0."""
        target = self.graph[self.graph.skip_mods_and_typedefs(m.type_id)]
        if (
            trailing
            and owner.kind is TypeKind.STRUCT
            and target.kind is TypeKind.ARRAY
            and target.length is None
        ):
            elem = self.compute(target.target)
            return 0, elem.alignment
        try:
            inner = self.compute(m.type_id)
        except IncompleteTypeError as exc:
            if exc.type_id == m.type_id or exc.type_id == target.id:
                raise IncompleteTypeError(
                    f"member '{m.name or '<anon>'}' of {owner.display_name} "
                    f"has incomplete type {target.display_name}",
                    type_name=owner.display_name,
                    type_id=owner.id,
                    member=m.name,
                ) from exc
            raise
        return inner.size, inner.alignment

    def _check_bitfield(self, owner: TypeNode, m: Member, size: int) -> None:
        target = self.graph.resolve(m.type_id)
        if target.kind not in (TypeKind.INT, TypeKind.ENUM):
            raise BitfieldWidthError(
                f"bitfield '{m.name or '<anon>'}' of {owner.display_name} "
                f"has non-integer type {target.display_name}",
                type_name=owner.display_name, type_id=owner.id, member=m.name,
            )
        if m.bit_size < 0 or m.bit_size > size * 8:
            raise BitfieldWidthError(
                f"bitfield '{m.name or '<anon>'}' of {owner.display_name} is "
                f"{m.bit_size} bits wide but its type has {size * 8}",
                type_name=owner.display_name, type_id=owner.id, member=m.name,
            )
        if m.bit_size == 0 and m.name:
            raise BitfieldWidthError(
                f"zero-width bitfield '{m.name}' of {owner.display_name} must be unnamed",
                type_name=owner.display_name, type_id=owner.id, member=m.name,
            )

    def _member_alignment(self, owner: TypeNode, m: Member, natural: int) -> int:
        if m.aligned is not None and not _is_power_of_two(m.aligned):
            raise AttributeConflictError(
                f"aligned({m.aligned}) on '{m.name}' of {owner.display_name} "
                "is not a power of two",
                type_name=owner.display_name, type_id=owner.id, member=m.name,
            )
        align = 1 if (owner.packed or m.packed) else natural
        if m.aligned is not None:
            align = max(align, m.aligned)
        return align

    def _struct(self, node: TypeNode) -> TypeLayout:
        pos = 0              # bits
        max_align = 1
        out: List[MemberLayout] = []
        last = len(node.members) - 1

        for i, m in enumerate(node.members):
            size, natural = self._member_type(node, m, trailing=(i == last))
            align = self._member_alignment(node, m, natural)

            if m.is_bitfield:
                self._check_bitfield(node, m, size)
                width = m.bit_size
                if m.bit_offset is not None:
                    off = m.bit_offset
                elif width == 0:
                    off = align_up(pos, natural * 8)
                elif node.packed or m.packed:
                    off = pos
                else:
                    unit_start = align_down(pos, natural * 8)
                    off = pos
                    if pos + width > unit_start + size * 8:
                        off = align_up(pos, natural * 8)
                pos = off + width
                if m.name and width:
                    max_align = max(max_align, align)
                out.append(self._bitfield_layout(node, m, off, size))
                continue

            if m.bit_offset is not None:
                off = m.bit_offset
                if off % (align * 8) != 0:
                    raise AttributeConflictError(
                        f"member '{m.name or '<anon>'}' of {node.display_name} at bit "
                        f"{off} violates its {align}-byte alignment",
                        type_name=node.display_name, type_id=node.id, member=m.name,
                    )
            else:
                off = align_up(pos, align * 8)
            pos = off + size * 8
            max_align = max(max_align, align)
            out.append(MemberLayout(m.index, m.name, m.type_id, off, size))

        return self._finish(node, pos, max_align, tuple(out))

    def _union(self, node: TypeNode) -> TypeLayout:
        extent = 0
        max_align = 1
        out: List[MemberLayout] = []
        for m in node.members:
            size, natural = self._member_type(node, m, trailing=False)
            align = self._member_alignment(node, m, natural)
            off = m.bit_offset or 0
            if m.is_bitfield:
                self._check_bitfield(node, m, size)
                extent = max(extent, off + m.bit_size)
                if m.name and m.bit_size:
                    max_align = max(max_align, align)
                out.append(self._bitfield_layout(node, m, off, size))
                continue
            extent = max(extent, off + size * 8)
            max_align = max(max_align, align)
            out.append(MemberLayout(m.index, m.name, m.type_id, off, size))
        return self._finish(node, extent, max_align, tuple(out))

    def _finish(
        self,
        node: TypeNode,
        extent_bits: int,
        max_align: int,
        members: Tuple[MemberLayout, ...],
    ) -> TypeLayout:
        name = node.display_name
        if node.aligned is not None and not _is_power_of_two(node.aligned):
            raise AttributeConflictError(
                f"aligned({node.aligned}) on {name} is not a power of two",
                type_name=name, type_id=node.id,
            )
        align = 1 if node.packed else max_align
        if node.aligned is not None:
            align = max(align, node.aligned)

        extent = align_up(extent_bits, 8) // 8
        size = align_up(extent, align)
        if node.explicit_size is not None:
            if node.explicit_size < extent:
                raise AttributeConflictError(
                    f"{name} declares size {node.explicit_size} but its members "
                    f"need {extent} bytes",
                    type_name=name, type_id=node.id,
                )
            if not node.packed and node.explicit_size % align != 0:
                raise AttributeConflictError(
                    f"{name} declares size {node.explicit_size}, not a multiple "
                    f"of its {align}-byte alignment",
                    type_name=name, type_id=node.id,
                )
            size = node.explicit_size
        return TypeLayout(node.id, name, size, align, members)

    def _bitfield_layout(
        self,
        owner: TypeNode,
        m: Member,
        bit_offset: int,
        type_size: int,
    ) -> MemberLayout:
        unit_size = max(type_size, 1)
        unit_offset = align_down(bit_offset // 8, unit_size)
        while bit_offset + m.bit_size - unit_offset * 8 > unit_size * 8:
            if unit_size >= 8:
                # packed field straddling an 8-byte boundary: placed, not loadable
                logger.debug("bitfield '%s' of %s has no aligned load unit",
                             m.name or "<anon>", owner.display_name)
                unit_offset, unit_size = bit_offset // 8, 0
                break
            unit_size *= 2
            unit_offset = align_down(bit_offset // 8, unit_size)
        return MemberLayout(
            m.index, m.name, m.type_id, bit_offset, type_size,
            bit_size=m.bit_size, unit_offset=unit_offset, unit_size=unit_size,
        )


def compute_layouts(graph: TypeGraph) -> LayoutTable:
    """Convenience wrapper: ``LayoutComputer(graph).compute_all()``."""
    return LayoutComputer(graph).compute_all()
