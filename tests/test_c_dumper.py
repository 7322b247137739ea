# tests/test_c_dumper.py
"""
Tests for rendering an emission order back to C: declarator syntax,
forward declarations, inline anonymous bodies and attributes.
"""

from corereloc.c_dumper import CDumper, dump_c
from corereloc.ordering import Orderer
from corereloc.type_model import (
    ArrayDecl,
    DeclarationSet,
    EnumDecl,
    FuncProtoDecl,
    MemberDecl,
    ParamDecl,
    PtrDecl,
    QualifiedDecl,
    Qualifier,
    StructDecl,
    TypedefDecl,
    TypeKind,
    member_decls,
)


def _declaration(graph, kind, text_name=""):
    """Render the first node of *kind* as a declaration of *text_name*."""
    tid = next(n.id for n in graph if n.kind is kind)
    return CDumper(graph, Orderer(graph).order()).declaration(tid, text_name)


class TestDump:

    def test_mixed_cycle(self, mixed_cycle_graph):
        assert dump_c(mixed_cycle_graph) == (
            "struct t2;\n\n"
            "struct t1 {\n\tconst struct t2 *t;\n};\n\n"
            "struct t2 {\n\tstruct t1 t;\n};\n\n"
        )

    def test_function_pointer_typedefs(self, ordering_graph):
        text = dump_c(ordering_graph)
        assert text.startswith("struct s1;\n\n")
        assert "typedef void (*f1)(struct s1);\n\n" in text
        assert "typedef struct s1 (*f2)(void);\n\n" in text
        assert "typedef struct t1 t1_t;\n\n" in text

    def test_inline_anonymous_body(self, cycles_graph):
        text = dump_c(cycles_graph)
        assert (
            "struct X {\n"
            "\tconst struct X * const arr[10];\n"
            "\tstruct {\n\t\tstruct X *x1;\n\t};\n"
            "\tstruct Y y;\n"
            "};\n\n"
        ) in text

    def test_bitfields_and_packing(self, bitfields_graph):
        text = dump_c(bitfields_graph)
        assert (
            "struct p {\n"
            "\tunsigned int: 4;\n"
            "\tint a: 4;\n"
            "\tlong c;\n"
            "\tstruct {\n\t\tchar x;\n\t\tint y;\n\t} __attribute__((packed)) d;\n"
            "} __attribute__((packed));\n\n"
        ) in text
        assert "union u {\n\tint a: 4;\n\tchar b;\n\tchar c: 1;\n};\n\n" in text

    def test_attributes(self, build_graph):
        d = DeclarationSet()
        d.add(StructDecl("al", (
            MemberDecl("a", "char"),
            MemberDecl("b", "char", aligned=8),
        ), aligned=16))
        assert dump_c(build_graph(d)) == (
            "struct al {\n"
            "\tchar a;\n"
            "\tchar b __attribute__((aligned(8)));\n"
            "} __attribute__((aligned(16)));\n\n"
        )

    def test_enum(self, build_graph):
        d = DeclarationSet()
        d.add(EnumDecl("mode", (("A", 0), ("B", 1))))
        assert dump_c(build_graph(d)) == "enum mode {\n\tA = 0,\n\tB = 1,\n};\n\n"

    def test_explicit_order(self, mixed_cycle_graph):
        order = Orderer(mixed_cycle_graph).order()
        assert dump_c(mixed_cycle_graph, order) == CDumper(mixed_cycle_graph, order).dump()


class TestDeclarators:

    def test_pointer_to_array(self, build_graph):
        d = DeclarationSet()
        d.add(PtrDecl(d.add(ArrayDecl("int", 4))))
        assert _declaration(build_graph(d), TypeKind.PTR, "pa") == "int (*pa)[4]"

    def test_array_of_function_pointers(self, build_graph):
        d = DeclarationSet()
        fp = d.add(FuncProtoDecl())
        d.add(ArrayDecl(d.add(PtrDecl(fp)), 2))
        assert _declaration(build_graph(d), TypeKind.ARRAY, "fns") == "void (*fns[2])(void)"

    def test_variadic_prototype(self, build_graph):
        d = DeclarationSet()
        cc = d.add(QualifiedDecl(Qualifier.CONST, "char"))
        fmt = d.add(PtrDecl(cc))
        fp = d.add(FuncProtoDecl("int", (ParamDecl("fmt", fmt),), variadic=True))
        d.add(TypedefDecl("printf_t", fp))
        assert dump_c(build_graph(d)) == "typedef int printf_t(const char *fmt, ...);\n\n"

    def test_const_pointer(self, build_graph):
        d = DeclarationSet()
        d.add(QualifiedDecl(Qualifier.CONST, d.add(PtrDecl("int"))))
        assert _declaration(build_graph(d), TypeKind.QUALIFIED, "p") == "int * const p"

    def test_unnamed_declaration(self, relocs_graph):
        v = relocs_graph[relocs_graph.find_tag("struct", "V")]
        dumper = CDumper(relocs_graph, Orderer(relocs_graph).order())
        assert dumper.declaration(v.members[1].type_id, "h") == "void (*h)(int)"
        assert dumper.declaration(v.members[0].type_id) == "const char *"

    def test_declaration_keeps_dump_buffer(self, mixed_cycle_graph):
        dumper = CDumper(mixed_cycle_graph, Orderer(mixed_cycle_graph).order())
        before = dumper.dump()
        dumper.declaration(mixed_cycle_graph.find_tag("struct", "t1"), "x")
        assert dumper.dump() == before


def test_members_shorthand_renders(build_graph):
    d = DeclarationSet()
    d.add(StructDecl("pt", member_decls(("x", "int"), ("y", "int"))))
    assert dump_c(build_graph(d)) == "struct pt {\n\tint x;\n\tint y;\n};\n\n"
