# tests/test_package.py
"""
Tests for the package namespace: re-exports, the one-call analysis
helper and package metadata.
"""

import corereloc


class TestNamespace:

    def test_core_names_exported(self):
        for name in ("TypeGraphBuilder", "Orderer", "LayoutComputer",
                     "CORERelocationResolver", "Relocator", "parse_access_expression"):
            assert name in corereloc.__all__
            assert hasattr(corereloc, name)

    def test_addon_exported(self):
        assert corereloc.dump_c is corereloc.c_dumper.dump_c

    def test_list_submodules(self):
        mods = corereloc.list_submodules()
        assert mods == sorted(mods)
        assert "relocator" in mods and "c_dumper" in mods

    def test_package_info(self):
        info = corereloc.package_info()
        assert info["version"] == corereloc.__version__
        assert info["missing_submodules"] == []

    def test_metadata(self):
        assert corereloc.__license__ == "MIT"
        assert corereloc.__version__.count(".") == 2


class TestAnalyse:

    def test_quick_start(self):
        decls = corereloc.DeclarationSet()
        ptr = decls.add(corereloc.PtrDecl("struct t2"))
        decls.add(corereloc.StructDecl("t1", corereloc.member_decls(("t", ptr))))
        decls.add(corereloc.StructDecl("t2", corereloc.member_decls(("t", "struct t1"))))
        graph, order, layouts = corereloc.analyse(decls)
        assert order.names() == ["fwd(struct t2)", "struct t1", "struct t2"]
        assert layouts.ok
        assert layouts.size_of(graph.find_tag("struct", "t2")) == 8

    def test_config_is_passed_through(self, relocs_decls):
        cfg = corereloc.TargetConfig(pointer_size=4)
        graph, order, layouts = corereloc.analyse(relocs_decls, cfg)
        assert graph.config is cfg
        assert order.violations(graph) == []
        v = graph.find_tag("struct", "V")
        assert layouts.size_of(v) == 8

    def test_uses_submodules_not_namespace(self, monkeypatch, relocs_decls):
        monkeypatch.delattr(corereloc, "TypeGraphBuilder")
        monkeypatch.delattr(corereloc, "LayoutComputer")
        graph, order, layouts = corereloc.analyse(relocs_decls)
        assert order.violations(graph) == []
        assert layouts.size_of(graph.find_tag("struct", "S")) > 0
