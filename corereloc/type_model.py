"""
corereloc/type_model.py
═══════════════════════

The in-memory C type model: declarations handed in by a C frontend and
the immutable ``TypeNode`` arena entries they are bound into.

We model C types as a tagged term algebra:

    τ ::= void
        | int(name, size, signed)         (integer / char / bool)
        | ptr(τ)                          (pointer to τ)
        | array(τ, n)                     (array of τ, length n or unknown)
        | struct(tag, [m_i])              (struct, tag may be anonymous)
        | union(tag, [m_i])               (union, tag may be anonymous)
        | enum(tag, width, values)        (enumeration)
        | fwd(kind, tag)                  (forward declaration, never defined)
        | typedef(name, τ)                (typedef alias)
        | qualified(q, τ)                 (const / volatile / restrict)
        | func_proto(τ_ret, [τ_1, …, τ_n])

Declarations refer to each other through a ``TypeRef``: either the
integer position of an (anonymous) declaration in the same
``DeclarationSet``, or a spelled name:

    "struct foo" / "union bar" / "enum E"   → tag namespace
    "u32" / "unsigned int" / "void"         → ordinary identifiers

Nodes refer to each other by integer id only, so self-referential and
mutually referential types are ordinary graph edges.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, List, Optional, Sequence, Tuple, Union

TypeId = int
TypeRef = Union[int, str]

VOID_ID: TypeId = 0


class TypeKind(Enum):
    """Discriminant for the type term algebra."""
    VOID = auto()
    INT = auto()
    PTR = auto()
    ARRAY = auto()
    STRUCT = auto()
    UNION = auto()
    ENUM = auto()
    FWD = auto()          # declared, never defined
    TYPEDEF = auto()
    QUALIFIED = auto()    # const / volatile / restrict
    FUNC_PROTO = auto()


class Qualifier(Enum):
    CONST = "const"
    VOLATILE = "volatile"
    RESTRICT = "restrict"


TAG_KINDS = {
    "struct": TypeKind.STRUCT,
    "union": TypeKind.UNION,
    "enum": TypeKind.ENUM,
}

_KIND_KEYWORD = {kind: kw for kw, kind in TAG_KINDS.items()}


def tag_keyword(kind: TypeKind) -> str:
    """``TypeKind.STRUCT`` → ``"struct"``."""
    return _KIND_KEYWORD[kind]


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — DECLARATIONS (frontend input)
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MemberDecl:
    """
    One member of a struct/union declaration.

    ``bit_size`` is ``None`` for an ordinary member and the declared
    width for a bitfield (``0`` for ``int :0;``).  ``bit_offset`` is only
    set when the declaration describes an already compiled layout.
    """
    name: str
    type: TypeRef
    bit_size: Optional[int] = None
    bit_offset: Optional[int] = None
    aligned: Optional[int] = None
    packed: bool = False


@dataclass(frozen=True)
class ParamDecl:
    name: str
    type: TypeRef


@dataclass(frozen=True)
class VoidDecl:
    pass


@dataclass(frozen=True)
class IntDecl:
    name: str
    size: int
    signed: bool = True


@dataclass(frozen=True)
class PtrDecl:
    target: TypeRef


@dataclass(frozen=True)
class ArrayDecl:
    element: TypeRef
    length: Optional[int] = None


@dataclass(frozen=True)
class StructDecl:
    name: str = ""
    members: Tuple[MemberDecl, ...] = ()
    packed: bool = False
    aligned: Optional[int] = None
    size: Optional[int] = None

    kind = TypeKind.STRUCT


@dataclass(frozen=True)
class UnionDecl:
    name: str = ""
    members: Tuple[MemberDecl, ...] = ()
    packed: bool = False
    aligned: Optional[int] = None
    size: Optional[int] = None

    kind = TypeKind.UNION


@dataclass(frozen=True)
class EnumDecl:
    name: str = ""
    values: Tuple[Tuple[str, int], ...] = ()
    size: Optional[int] = None
    signed: bool = True


@dataclass(frozen=True)
class FwdDecl:
    """Forward declaration ``struct foo;``. ``kind`` is ``"struct"``, ``"union"`` or ``"enum"``."""
    kind: str
    name: str


@dataclass(frozen=True)
class TypedefDecl:
    name: str
    target: TypeRef


@dataclass(frozen=True)
class QualifiedDecl:
    qualifier: Qualifier
    target: TypeRef


@dataclass(frozen=True)
class FuncProtoDecl:
    return_type: TypeRef = "void"
    params: Tuple[ParamDecl, ...] = ()
    variadic: bool = False


Declaration = Union[
    VoidDecl, IntDecl, PtrDecl, ArrayDecl, StructDecl, UnionDecl,
    EnumDecl, FwdDecl, TypedefDecl, QualifiedDecl, FuncProtoDecl,
]


class DeclarationSet:
    """
    An ordered collection of declarations for one compilation unit.

    Order matters: it is the tie-breaker for every deterministic choice
    the orderer makes.
    """

    def __init__(self, decls: Sequence[Declaration] = ()) -> None:
        self._decls: List[Declaration] = []
        for d in decls:
            self.add(d)

    def add(self, decl: Declaration) -> int:
        """Append *decl*; return its position (usable as a ``TypeRef``)."""
        self._decls.append(decl)
        return len(self._decls) - 1

    def __getitem__(self, index: int) -> Declaration:
        return self._decls[index]

    def __iter__(self) -> Iterator[Declaration]:
        return iter(self._decls)

    def __len__(self) -> int:
        return len(self._decls)

    def __repr__(self) -> str:
        return f"DeclarationSet({len(self._decls)} declarations)"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — ARENA NODES
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Member:
    """A bound struct/union member.  An empty name means anonymous."""
    name: str
    type_id: TypeId
    index: int
    bit_size: Optional[int] = None
    bit_offset: Optional[int] = None
    aligned: Optional[int] = None
    packed: bool = False

    @property
    def is_anonymous(self) -> bool:
        return not self.name

    @property
    def is_bitfield(self) -> bool:
        return self.bit_size is not None


@dataclass(frozen=True, slots=True)
class Param:
    name: str
    type_id: TypeId


@dataclass(frozen=True, slots=True)
class TypeNode:
    """
    A node in the type arena.

    Kind-specific attributes:
      - INT:        size, signed
      - PTR:        target = pointee
      - ARRAY:      target = element; length = n or None
      - STRUCT/UNION: members; packed / aligned / explicit_size
      - ENUM:       size, signed, values
      - FWD:        fwd_kind = STRUCT / UNION / ENUM
      - TYPEDEF:    target = aliased type
      - QUALIFIED:  target, qualifier
      - FUNC_PROTO: target = return type; params; variadic
    """
    id: TypeId
    kind: TypeKind
    name: str = ""
    decl_index: int = -1
    size: int = 0
    signed: bool = False
    target: TypeId = VOID_ID
    length: Optional[int] = None
    members: Tuple[Member, ...] = ()
    params: Tuple[Param, ...] = ()
    values: Tuple[Tuple[str, int], ...] = ()
    packed: bool = False
    aligned: Optional[int] = None
    explicit_size: Optional[int] = None
    fwd_kind: Optional[TypeKind] = None
    qualifier: Optional[Qualifier] = None
    variadic: bool = False

    # ── Query helpers ─────────────────────────────────────────────────

    @property
    def is_composite(self) -> bool:
        return self.kind in (TypeKind.STRUCT, TypeKind.UNION)

    @property
    def is_anonymous(self) -> bool:
        return not self.name

    @property
    def is_forward_declarable(self) -> bool:
        """Only named struct/union/enum tags can be forward-declared."""
        if self.kind is TypeKind.FWD:
            return True
        return self.kind in (TypeKind.STRUCT, TypeKind.UNION, TypeKind.ENUM) and bool(self.name)

    @property
    def is_declarable(self) -> bool:
        """Does this node get its own entry in an emission order?"""
        return self.is_forward_declarable or (self.kind is TypeKind.TYPEDEF)

    @property
    def tag_kind(self) -> Optional[TypeKind]:
        if self.kind is TypeKind.FWD:
            return self.fwd_kind
        if self.kind in (TypeKind.STRUCT, TypeKind.UNION, TypeKind.ENUM):
            return self.kind
        return None

    @property
    def display_name(self) -> str:
        """``struct foo``, ``union <anon>``, ``u32``, ``int``…"""
        tag = self.tag_kind
        if tag is not None:
            return f"{tag_keyword(tag)} {self.name or '<anon>'}"
        if self.kind is TypeKind.VOID:
            return "void"
        if self.name:
            return self.name
        return f"<{self.kind.name.lower()} #{self.id}>"

    def __repr__(self) -> str:
        return f"TypeNode(#{self.id} {self.kind.name} {self.display_name!r})"


def member_decls(*specs: Union[MemberDecl, Tuple]) -> Tuple[MemberDecl, ...]:
    """
    Shorthand: ``member_decls(("a", "int"), ("b", "int", 3))``. Each item is a tuple
    of ``(name, type[, bit_size])`` or ready ``MemberDecl`` objects.
    """
    out: List[MemberDecl] = []
    for spec in specs:
        if isinstance(spec, MemberDecl):
            out.append(spec)
        elif len(spec) == 2:
            out.append(MemberDecl(spec[0], spec[1]))
        elif len(spec) == 3:
            out.append(MemberDecl(spec[0], spec[1], bit_size=spec[2]))
        else:
            raise ValueError(f"bad member spec: {spec!r}")
    return tuple(out)
