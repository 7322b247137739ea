"""
corereloc/c_dumper.py
═════════════════════

Render an ``EmissionOrder`` as compilable C declarations.

Declarators are produced by unwinding the type chain from the
outermost modifier (pointer, array, function prototype, qualifier) to
the base type, then emitting it base-first: the reverse of the usual
"unscrambling C declarations" reading.  Pointers to arrays and to
function prototypes get the parenthesised ``(*name)[N]`` /
``(*name)(args)`` forms; ``const``/``volatile``/``restrict`` that apply
to a pointer follow the ``*``, the others precede the base type.

Anonymous struct/union/enum types are printed inline where they are
used.
"""

from __future__ import annotations

from typing import List, Optional

from .ordering import EmissionOrder, EntryKind, Orderer
from .type_graph import TypeGraph
from .type_model import TypeId, TypeKind, TypeNode, tag_keyword

_INDENT = "\t"


def _sep(name: str) -> str:
    return " " if name else ""


class CDumper:
    """
    Usage::

        text = CDumper(graph, Orderer(graph).order()).dump()
    """

    def __init__(self, graph: TypeGraph, order: EmissionOrder) -> None:
        self.graph = graph
        self.order = order
        self._out: List[str] = []

    def dump(self) -> str:
        self._out = []
        for entry in self.order:
            node = self.graph[entry.type_id]
            if entry.kind is EntryKind.FORWARD:
                kind = node.tag_kind
                self._out.append(f"{tag_keyword(kind)} {node.name};\n\n")
                continue
            self._emit_definition(node)
            self._out.append(";\n\n")
        return "".join(self._out)

    def declaration(self, type_id: TypeId, name: str = "") -> str:
        """C declarator text for a single object of *type_id* named *name*."""
        saved, self._out = self._out, []
        try:
            self._emit_type_decl(type_id, name, 0)
            return "".join(self._out)
        finally:
            self._out = saved

    # ── definitions ───────────────────────────────────────────────────

    def _emit_definition(self, node: TypeNode) -> None:
        if node.kind is TypeKind.TYPEDEF:
            self._out.append("typedef ")
            self._emit_type_decl(node.target, node.name, 0)
        elif node.kind is TypeKind.ENUM:
            self._emit_enum_def(node, 0)
        else:
            self._emit_composite_def(node, 0)

    def _emit_composite_def(self, node: TypeNode, lvl: int) -> None:
        w = self._out
        w.append(f"{tag_keyword(node.kind)}{_sep(node.name)}{node.name} {{")
        for m in node.members:
            w.append("\n" + _INDENT * (lvl + 1))
            self._emit_type_decl(m.type_id, m.name, lvl + 1)
            if m.bit_size is not None:
                w.append(f": {m.bit_size}")
            if m.packed:
                w.append(" __attribute__((packed))")
            if m.aligned is not None:
                w.append(f" __attribute__((aligned({m.aligned})))")
            w.append(";")
        w.append("\n" + _INDENT * lvl + "}")
        if node.packed:
            w.append(" __attribute__((packed))")
        if node.aligned is not None:
            w.append(f" __attribute__((aligned({node.aligned})))")

    def _emit_enum_def(self, node: TypeNode, lvl: int) -> None:
        w = self._out
        w.append(f"enum{_sep(node.name)}{node.name} {{")
        for name, value in node.values:
            w.append(f"\n{_INDENT * (lvl + 1)}{name} = {value},")
        w.append("\n" + _INDENT * lvl + "}")

    # ── declarators ───────────────────────────────────────────────────

    def _emit_type_decl(self, type_id: TypeId, fname: str, lvl: int) -> None:
        chain: List[TypeNode] = []
        node = self.graph[type_id]
        while node.kind in (TypeKind.PTR, TypeKind.QUALIFIED,
                            TypeKind.ARRAY, TypeKind.FUNC_PROTO):
            chain.append(node)
            node = self.graph[node.target]
        chain.append(node)
        self._emit_type_chain(chain, fname, lvl)

    def _emit_type_chain(self, chain: List[TypeNode], fname: str, lvl: int) -> None:
        w = self._out
        # a lone pointer left over from a func proto / array prints as (*name)
        last_was_ptr = True
        while chain:
            node = chain.pop()
            kind = node.kind
            if kind is TypeKind.PTR:
                w.append("*" if last_was_ptr else " *")
            elif kind is TypeKind.QUALIFIED:
                w.append(f" {node.qualifier.value}")
            elif kind is TypeKind.ARRAY:
                self._emit_non_ptr_mods(chain)
                self._emit_nested(chain, fname, last_was_ptr, lvl)
                w.append(f"[{'' if node.length is None else node.length}]")
                return
            elif kind is TypeKind.FUNC_PROTO:
                self._emit_non_ptr_mods(chain)
                self._emit_nested(chain, fname, last_was_ptr, lvl)
                w.append("(")
                for i, p in enumerate(node.params):
                    if i:
                        w.append(", ")
                    self._emit_type_decl(p.type_id, p.name, lvl)
                if node.variadic:
                    w.append(", ..." if node.params else "...")
                elif not node.params:
                    w.append("void")
                w.append(")")
                return
            else:
                self._emit_non_ptr_mods(chain)
                self._emit_base(node, lvl)
            last_was_ptr = kind is TypeKind.PTR
        self._emit_name(fname, last_was_ptr)

    def _emit_nested(
        self,
        chain: List[TypeNode],
        fname: str,
        last_was_ptr: bool,
        lvl: int,
    ) -> None:
        if not chain:
            self._emit_name(fname, last_was_ptr)
            return
        self._out.append(" (")
        self._emit_type_chain(chain, fname, lvl)
        self._out.append(")")

    def _emit_base(self, node: TypeNode, lvl: int) -> None:
        w = self._out
        kind = node.kind
        if kind is TypeKind.VOID:
            w.append("void")
        elif kind in (TypeKind.STRUCT, TypeKind.UNION):
            if node.name:
                w.append(node.display_name)
            else:
                self._emit_composite_def(node, lvl)
        elif kind is TypeKind.ENUM:
            if node.name:
                w.append(node.display_name)
            else:
                self._emit_enum_def(node, lvl)
        else:
            # INT, TYPEDEF and FWD print by name
            w.append(node.display_name)

    def _emit_name(self, fname: str, last_was_ptr: bool) -> None:
        if last_was_ptr:
            self._out.append(fname)
        else:
            self._out.append(_sep(fname) + fname)

    def _emit_non_ptr_mods(self, chain: List[TypeNode]) -> None:
        while chain and chain[-1].kind is TypeKind.QUALIFIED:
            self._out.append(f"{chain.pop().qualifier.value} ")


def dump_c(graph: TypeGraph, order: Optional[EmissionOrder] = None) -> str:
    """Convenience wrapper; orders *graph* first when *order* is omitted."""
    if order is None:
        order = Orderer(graph).order()
    return CDumper(graph, order).dump()
