# tests/test_type_graph.py
"""
Tests for graph construction: name binding, builtin base types,
STRONG/WEAK edge classification and the graph query helpers.
"""

import pytest

from corereloc.errors import (
    AmbiguousFieldError,
    DuplicateDefinitionError,
    UnresolvedTypeError,
)
from corereloc.type_graph import EdgeKind, TypeGraphBuilder
from corereloc.type_model import (
    ArrayDecl,
    DeclarationSet,
    FuncProtoDecl,
    FwdDecl,
    IntDecl,
    MemberDecl,
    ParamDecl,
    PtrDecl,
    StructDecl,
    TypedefDecl,
    TypeKind,
    UnionDecl,
    member_decls,
)


class TestBinding:
    """Declarations are bound into an arena in declaration order."""

    def test_ids_follow_declaration_order(self, mixed_cycle_graph):
        g = mixed_cycle_graph
        t1 = g.find_tag("struct", "t1")
        t2 = g.find_tag("struct", "t2")
        assert g[0].kind is TypeKind.VOID
        assert t1 < t2
        assert g.declarable_ids() == [t1, t2]

    def test_forward_declaration_binds_to_definition(self, build_graph):
        d = DeclarationSet()
        fwd = d.add(FwdDecl("struct", "A"))
        p = d.add(PtrDecl(fwd))
        d.add(StructDecl("A", member_decls(("next", p))))
        g = build_graph(d)
        ids = g.find_by_name("A")
        assert len(ids) == 1
        assert g[ids[0]].kind is TypeKind.STRUCT
        assert g[g[ids[0]].members[0].type_id].target == ids[0]

    def test_opaque_tag_stays_forward(self, build_graph):
        d = DeclarationSet()
        d.add(FwdDecl("struct", "opaque"))
        g = build_graph(d)
        node = g[g.find_tag("struct", "opaque")]
        assert node.kind is TypeKind.FWD
        assert node.fwd_kind is TypeKind.STRUCT
        assert node.display_name == "struct opaque"

    def test_builtin_types_are_created_on_demand(self, build_graph):
        d = DeclarationSet()
        d.add(StructDecl("s", member_decls(("a", "unsigned int"), ("b", "long"))))
        g = build_graph(d, pointer_size=4)
        s = g[g.find_tag("struct", "s")]
        a, b = (g[m.type_id] for m in s.members)
        assert (a.name, a.size, a.signed) == ("unsigned int", 4, False)
        assert (b.name, b.size, b.signed) == ("long", 4, True)
        assert a.id > s.id

    def test_declared_int_shadows_builtin_spelling(self, build_graph):
        d = DeclarationSet()
        d.add(IntDecl("u32", 4, signed=False))
        d.add(TypedefDecl("__u32", "u32"))
        g = build_graph(d)
        td = g[g.find_typedef("__u32")]
        assert g[td.target].name == "u32"

    def test_identical_typedef_redefinition_is_accepted(self, build_graph):
        d = DeclarationSet()
        d.add(TypedefDecl("u8", "unsigned char"))
        d.add(TypedefDecl("u8", "unsigned char"))
        g = build_graph(d)
        assert len(g.find_by_name("u8", TypeKind.TYPEDEF)) == 1


class TestStructuralErrors:
    """Whole-set failures raised while building."""

    def test_unknown_tag(self, build_graph):
        d = DeclarationSet()
        d.add(StructDecl("a", member_decls(("b", "struct nope"))))
        with pytest.raises(UnresolvedTypeError) as exc_info:
            build_graph(d)
        assert exc_info.value.type_name == "struct nope"

    def test_unknown_ordinary_name(self, build_graph):
        d = DeclarationSet()
        d.add(TypedefDecl("x_t", "not_a_type"))
        with pytest.raises(UnresolvedTypeError):
            build_graph(d)

    def test_missing_declaration_index(self, build_graph):
        d = DeclarationSet()
        d.add(PtrDecl(7))
        with pytest.raises(UnresolvedTypeError):
            build_graph(d)

    def test_tag_defined_twice(self, build_graph):
        d = DeclarationSet()
        d.add(StructDecl("A"))
        d.add(StructDecl("A"))
        with pytest.raises(DuplicateDefinitionError):
            build_graph(d)

    def test_typedef_redefined_differently(self, build_graph):
        d = DeclarationSet()
        d.add(TypedefDecl("t", "int"))
        d.add(TypedefDecl("t", "long"))
        with pytest.raises(DuplicateDefinitionError):
            build_graph(d)

    def test_forward_kind_mismatch(self, build_graph):
        d = DeclarationSet()
        d.add(FwdDecl("union", "A"))
        d.add(StructDecl("A"))
        with pytest.raises(DuplicateDefinitionError):
            build_graph(d)

    def test_tag_spelled_with_wrong_keyword(self, build_graph):
        d = DeclarationSet()
        d.add(StructDecl("A"))
        d.add(StructDecl("B", member_decls(("a", "union A"))))
        with pytest.raises(UnresolvedTypeError):
            build_graph(d)


class TestEdgeClassification:
    """STRONG for by-value embedding, WEAK for by-reference use."""

    def test_mixed_pair(self, mixed_cycle_graph):
        g = mixed_cycle_graph
        t1 = g.find_tag("struct", "t1")
        t2 = g.find_tag("struct", "t2")
        e12 = g.edge_between(t1, t2)
        e21 = g.edge_between(t2, t1)
        assert e12.kind is EdgeKind.WEAK and e12.via == "t"
        assert e21.kind is EdgeKind.STRONG

    def test_array_element_is_strong(self, build_graph):
        d = DeclarationSet()
        d.add(StructDecl("B"))
        arr = d.add(ArrayDecl("struct B", 3))
        d.add(StructDecl("A", member_decls(("arr", arr))))
        g = build_graph(d)
        e = g.edge_between(g.find_tag("struct", "A"), g.find_tag("struct", "B"))
        assert e.is_strong

    def test_array_of_pointers_is_weak(self, cycles_graph):
        g = cycles_graph
        x = g.find_tag("struct", "X")
        self_edge = g.edge_between(x, x)
        assert self_edge.kind is EdgeKind.WEAK
        assert self_edge.is_self_loop

    def test_typedef_by_value_reaches_the_tag(self, ordering_graph):
        g = ordering_graph
        t2 = g.find_tag("struct", "t2")
        assert g.edge_between(t2, g.find_typedef("t1_t")).is_strong
        assert g.edge_between(t2, g.find_tag("struct", "t1")).is_strong

    def test_typedef_itself_is_weak(self, ordering_graph):
        g = ordering_graph
        e = g.edge_between(g.find_typedef("t1_t"), g.find_tag("struct", "t1"))
        assert e.kind is EdgeKind.WEAK
        assert e.via == "<typedef>"

    def test_function_prototype_edges(self, ordering_graph):
        g = ordering_graph
        s1 = g.find_tag("struct", "s1")
        for name in ("f1", "f2"):
            e = g.edge_between(g.find_typedef(name), s1)
            assert e.kind is EdgeKind.WEAK
            assert e.through_func_proto

    def test_anonymous_body_in_prototype_is_strong(self, build_graph):
        d = DeclarationSet()
        d.add(StructDecl("s0"))
        anon = d.add(StructDecl("", member_decls(("a", "struct s0"))))
        fp = d.add(FuncProtoDecl(anon))
        d.add(StructDecl("s2", member_decls(("a", d.add(PtrDecl(fp))))))
        g = build_graph(d)
        e = g.edge_between(g.find_tag("struct", "s2"), g.find_tag("struct", "s0"))
        assert e.kind is EdgeKind.STRONG
        assert not e.through_func_proto

    def test_one_edge_per_pair_upgraded_to_strong(self, build_graph):
        d = DeclarationSet()
        d.add(StructDecl("B"))
        p = d.add(PtrDecl("struct B"))
        d.add(StructDecl("A", member_decls(("ptr", p), ("val", "struct B"))))
        g = build_graph(d)
        a, b = g.find_tag("struct", "A"), g.find_tag("struct", "B")
        out = g.out_edges(a)
        assert len(out) == 1
        assert out[0].is_strong and out[0].via == "val"
        assert g.in_edges(b, EdgeKind.STRONG) == out

    def test_plain_param_keeps_func_proto_flag_until_direct_use(self, build_graph):
        d = DeclarationSet()
        fp = d.add(FuncProtoDecl("void", (ParamDecl("x", "struct late"),)))
        p_late = d.add(PtrDecl("struct late"))
        d.add(StructDecl("user", member_decls(("cb", d.add(PtrDecl(fp))), ("l", p_late))))
        d.add(StructDecl("late", member_decls(("x", "int"))))
        g = build_graph(d)
        e = g.edge_between(g.find_tag("struct", "user"), g.find_tag("struct", "late"))
        assert not e.through_func_proto


class TestQueries:
    """Lookup helpers on a built graph."""

    def test_find_tag_unknown(self, mixed_cycle_graph):
        with pytest.raises(UnresolvedTypeError):
            mixed_cycle_graph.find_tag("union", "t1")

    def test_lookup_through_anonymous_members(self, relocs_graph):
        g = relocs_graph
        s = g.find_tag("struct", "S")
        chain = g.lookup_member(s, "p")
        assert [m.index for m in chain] == [0, 1, 2]
        assert [m.name for m in chain] == ["", "", "p"]

    def test_lookup_through_typedef(self, relocs_graph):
        g = relocs_graph
        w = g.find_typedef("W")
        assert [m.name for m in g.lookup_member(w, "x")] == ["x"]

    def test_lookup_missing(self, relocs_graph):
        g = relocs_graph
        assert g.lookup_member(g.find_tag("struct", "S"), "nope") is None
        assert g.lookup_member(g.find_tag("struct", "S"), "") is None

    def test_lookup_ambiguous(self, build_graph):
        d = DeclarationSet()
        u1 = d.add(UnionDecl("", member_decls(("x", "int"))))
        u2 = d.add(UnionDecl("", member_decls(("x", "long"))))
        d.add(StructDecl("A", member_decls(("", u1), ("", u2))))
        g = build_graph(d)
        with pytest.raises(AmbiguousFieldError) as exc_info:
            g.lookup_member(g.find_tag("struct", "A"), "x")
        assert exc_info.value.paths == [[0, 0], [1, 0]]

    def test_direct_member_wins_over_anonymous(self, build_graph):
        d = DeclarationSet()
        u = d.add(UnionDecl("", member_decls(("x", "int"))))
        d.add(StructDecl("A", member_decls(("", u), ("x", "long"))))
        g = build_graph(d)
        chain = g.lookup_member(g.find_tag("struct", "A"), "x")
        assert [m.index for m in chain] == [1]

    def test_flattened_names(self, relocs_graph):
        g = relocs_graph
        names = g.flattened_names(g.find_tag("struct", "S"))
        assert names[:6] == ["a", "b", "e", "p", "p2", "f"]
        assert names[-3:] == ["v", "w", "y"]

    def test_deeply_nested_anonymous_members(self, build_graph):
        n = 3000
        d = DeclarationSet()
        d.add(StructDecl("tail", member_decls(("v", "int"))))
        inner = d.add(StructDecl("", member_decls(
            ("x", "int"), ("t", d.add(PtrDecl("struct tail"))),
        )))
        for _ in range(n - 1):
            inner = d.add(StructDecl("", member_decls(("", inner))))
        d.add(StructDecl("deep", member_decls(("", inner))))
        g = build_graph(d)
        deep = g.find_tag("struct", "deep")
        tail = g.find_tag("struct", "tail")

        chain = g.lookup_member(deep, "x")
        assert len(chain) == n + 1
        assert chain[-1].name == "x"
        assert all(m.name == "" for m in chain[:-1])
        assert g.flattened_names(deep) == ["x", "t"]
        assert g.edge_between(deep, tail).kind is EdgeKind.WEAK

    def test_skip_mods(self, relocs_graph):
        g = relocs_graph
        s = g[g.find_tag("struct", "S")]
        anon = s.members[0].type_id
        assert g[anon].kind is TypeKind.QUALIFIED
        assert g[g.skip_mods(anon)].kind is TypeKind.UNION
        w = s.members[3].type_id
        assert g[g.skip_mods(w)].kind is TypeKind.TYPEDEF
        assert g.resolve(w).kind is TypeKind.STRUCT

    def test_members_of_non_composite(self, relocs_graph):
        assert relocs_graph.members_of(relocs_graph.find_typedef("W")) is not None
        assert relocs_graph.members_of(0) is None

    def test_statistics(self, cycles_graph):
        stats = cycles_graph.statistics()
        assert stats["declarable_nodes"] == 7
        assert stats["total_edges"] == stats["strong_edges"] + stats["weak_edges"]
        assert stats["strong_edges"] == 1
        assert stats["self_loops"] == 4

    def test_to_dot(self, mixed_cycle_graph):
        dot = mixed_cycle_graph.to_dot("mixed")
        assert dot.startswith("digraph TypeGraph {")
        assert 'label="mixed"' in dot
        assert "style=dashed" in dot
        assert dot.rstrip().endswith("}")

    def test_builder_is_reusable(self, mixed_cycle_decls):
        builder = TypeGraphBuilder()
        g1 = builder.build(mixed_cycle_decls)
        g2 = builder.build(mixed_cycle_decls)
        assert g1.nodes == g2.nodes
        assert g1.edges == g2.edges


class TestMemberDecls:

    def test_shorthand(self):
        ms = member_decls(("a", "int"), ("b", "int", 3), MemberDecl("c", "char"))
        assert ms[1].bit_size == 3
        assert ms[2].name == "c"

    def test_bad_shorthand(self):
        with pytest.raises(ValueError):
            member_decls(("a",))
