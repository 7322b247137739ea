# tests/conftest.py
"""
Shared fixtures: declaration sets mirroring small C translation units
(lists, mutual structs, ordering cases, bitfields, relocation structs).
"""

import pytest

from corereloc.config import TargetConfig
from corereloc.type_graph import TypeGraphBuilder
from corereloc.type_model import (
    ArrayDecl,
    DeclarationSet,
    FuncProtoDecl,
    FwdDecl,
    MemberDecl,
    ParamDecl,
    PtrDecl,
    QualifiedDecl,
    Qualifier,
    StructDecl,
    TypedefDecl,
    UnionDecl,
    member_decls,
)

CONST = Qualifier.CONST
VOLATILE = Qualifier.VOLATILE


def build(decls, **config):
    """Build a graph, optionally with a non-default TargetConfig."""
    cfg = TargetConfig(**config) if config else TargetConfig()
    return TypeGraphBuilder(cfg).build(decls)


# ---------------------------------------------------------------------------
#  struct t1 { const struct t2 *t; };  struct t2 { struct t1 t; };
# ---------------------------------------------------------------------------

def make_mixed_cycle():
    d = DeclarationSet()
    c = d.add(QualifiedDecl(CONST, "struct t2"))
    p = d.add(PtrDecl(c))
    d.add(StructDecl("t1", member_decls(("t", p))))
    d.add(StructDecl("t2", member_decls(("t", "struct t1"))))
    return d


@pytest.fixture
def mixed_cycle_decls():
    return make_mixed_cycle()


@pytest.fixture
def mixed_cycle_graph():
    return build(make_mixed_cycle())


# ---------------------------------------------------------------------------
#  struct s2 { struct s3 a; };  struct s4 { struct s3 *a; };  struct s3 {};
# ---------------------------------------------------------------------------

@pytest.fixture
def siblings_graph():
    d = DeclarationSet()
    d.add(StructDecl("s2", member_decls(("a", "struct s3"))))
    p = d.add(PtrDecl("struct s3"))
    d.add(StructDecl("s4", member_decls(("a", p))))
    d.add(StructDecl("s3"))
    return build(d)


# ---------------------------------------------------------------------------
#  ordering.c
# ---------------------------------------------------------------------------

def make_ordering():
    d = DeclarationSet()
    d.add(FwdDecl("struct", "s1"))
    fp1 = d.add(FuncProtoDecl("void", (ParamDecl("", "struct s1"),)))
    d.add(TypedefDecl("f1", d.add(PtrDecl(fp1))))
    fp2 = d.add(FuncProtoDecl("struct s1"))
    d.add(TypedefDecl("f2", d.add(PtrDecl(fp2))))
    d.add(FwdDecl("struct", "s2"))
    d.add(StructDecl("s4", member_decls(("a", d.add(PtrDecl("struct s3"))))))
    d.add(StructDecl("s3", member_decls(("x1", d.add(PtrDecl("struct s2"))))))
    d.add(StructDecl("s2", member_decls(("a", "struct s3"))))
    d.add(FwdDecl("struct", "t1"))
    d.add(TypedefDecl("t1_t", "struct t1"))
    ct2 = d.add(QualifiedDecl(CONST, "struct t2"))
    d.add(StructDecl("t1", member_decls(("t", d.add(PtrDecl(ct2))))))
    d.add(StructDecl("t2", member_decls(("t", "t1_t"))))
    return d


@pytest.fixture
def ordering_graph():
    return build(make_ordering())


# ---------------------------------------------------------------------------
#  cycles.c
# ---------------------------------------------------------------------------

def make_cycles():
    d = DeclarationSet()
    plh = d.add(PtrDecl("struct list_head"))
    d.add(StructDecl("list_head", member_decls(("next", plh), ("prev", plh))))
    phn = d.add(PtrDecl("struct hlist_node"))
    d.add(StructDecl("hlist_head", member_decls(("first", phn))))
    pphn = d.add(PtrDecl(phn))
    d.add(StructDecl("hlist_node", member_decls(("next", phn), ("pprev", pphn))))

    d.add(FwdDecl("struct", "a"))
    d.add(StructDecl("b", member_decls(("p", d.add(PtrDecl("struct a"))))))
    d.add(StructDecl("a", member_decls(("p", d.add(PtrDecl("struct b"))))))

    cx = d.add(QualifiedDecl(CONST, "struct X"))
    cpcx = d.add(QualifiedDecl(CONST, d.add(PtrDecl(cx))))
    arr = d.add(ArrayDecl(cpcx, 10))
    px = d.add(PtrDecl("struct X"))
    anon = d.add(StructDecl("", member_decls(("x1", px))))
    d.add(StructDecl("X", member_decls(("arr", arr), ("", anon), ("y", "struct Y"))))
    py = d.add(PtrDecl("struct Y"))
    d.add(StructDecl("Y", member_decls(("x2", px), ("y2", py))))
    return d


@pytest.fixture
def cycles_graph():
    return build(make_cycles())


# ---------------------------------------------------------------------------
#  bitfields.c
# ---------------------------------------------------------------------------

def make_bitfields():
    d = DeclarationSet()
    d.add(StructDecl("s", (
        MemberDecl("", "unsigned int", bit_size=4),
        MemberDecl("a", "int", bit_size=4),
        MemberDecl("", "long", bit_size=57),
        MemberDecl("c", "long"),
    )))
    d.add(StructDecl("empty"))
    inner = d.add(StructDecl("", member_decls(("x", "char"), ("y", "int")), packed=True))
    d.add(StructDecl("p", (
        MemberDecl("", "unsigned int", bit_size=4),
        MemberDecl("a", "int", bit_size=4),
        MemberDecl("c", "long"),
        MemberDecl("d", inner),
    ), packed=True))
    d.add(UnionDecl("u", (
        MemberDecl("a", "int", bit_size=4),
        MemberDecl("b", "char"),
        MemberDecl("c", "char", bit_size=1),
    )))
    return d


@pytest.fixture
def bitfields_decls():
    return make_bitfields()


@pytest.fixture
def bitfields_graph():
    return build(make_bitfields())


# ---------------------------------------------------------------------------
#  relocs.c — struct T, typedef W, struct V, struct S
# ---------------------------------------------------------------------------

def make_relocs():
    d = DeclarationSet()
    d.add(StructDecl("T", member_decls(("t1", "int"), ("t2", "int"))))
    d.add(TypedefDecl("W", d.add(StructDecl("", member_decls(("x", "int"))))))

    ci = d.add(QualifiedDecl(CONST, "int"))
    e = d.add(StructDecl("", member_decls(("c", "char"), ("d", "int"))))
    p = d.add(StructDecl("", member_decls(("q", "long"), ("r", "int"))))
    p2 = d.add(StructDecl("", member_decls(("q2", "long"), ("r2", "int"))))
    inner = d.add(UnionDecl("", member_decls(("b", "char"), ("e", e), ("p", p), ("p2", p2))))
    outer = d.add(UnionDecl("", member_decls(("a", ci), ("", d.add(QualifiedDecl(CONST, inner))))))
    cv_outer = d.add(QualifiedDecl(CONST, d.add(QualifiedDecl(VOLATILE, outer))))

    f = d.add(ArrayDecl("struct T", 4))
    g = d.add(PtrDecl(d.add(QualifiedDecl(CONST, "char"))))
    h = d.add(PtrDecl(d.add(FuncProtoDecl("void", (ParamDecl("", "int"),)))))
    d.add(StructDecl("V", member_decls(("g", g), ("h", h))))
    y_elem = d.add(StructDecl("", member_decls(("x", d.add(ArrayDecl("struct T", 5))))))
    y = d.add(ArrayDecl(y_elem, 4))
    d.add(StructDecl("S", member_decls(
        ("", cv_outer), ("f", f), ("v", "struct V"), ("w", "W"), ("y", y),
    )))
    d.add(PtrDecl("struct S"))
    return d


@pytest.fixture
def relocs_decls():
    return make_relocs()


@pytest.fixture
def relocs_graph():
    return build(make_relocs())


def make_relocs_target():
    """A later layout of struct S: a leading field, a smaller inner
    union, and no ``w``."""
    d = DeclarationSet()
    d.add(StructDecl("T", member_decls(("t1", "int"), ("t2", "int"))))
    p = d.add(StructDecl("", member_decls(("q", "long"), ("r", "int"))))
    inner = d.add(UnionDecl("", member_decls(("b", "char"), ("p", p))))
    outer = d.add(UnionDecl("", member_decls(("a", "int"), ("", inner))))
    f = d.add(ArrayDecl("struct T", 4))
    d.add(StructDecl("S", member_decls(("pad", "long"), ("", outer), ("f", f))))
    return d


@pytest.fixture
def relocs_target_decls():
    return make_relocs_target()


@pytest.fixture
def relocs_target_graph():
    return build(make_relocs_target())


@pytest.fixture
def build_graph():
    """The ``build`` helper, for tests that assemble their own declarations."""
    return build
