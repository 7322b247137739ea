"""
corereloc — Type Graph Analysis for CO-RE Field Relocation
==========================================================

This package analyses C type declarations the way a "Compile Once, Run
Everywhere" loader needs them: it builds a dependency graph between the
declared types, orders them for emission with forward declarations
where pointer cycles require them, computes ABI layouts (including
bitfield storage units), and re-resolves source field accesses against
a differently laid out target.

Core modules
------------
errors
    Error taxonomy with stable ``CRL-xxxx`` codes.
config
    ``TargetConfig`` data model and logging setup.
type_model
    Declarations (frontend input) and immutable ``TypeNode`` arena entries.
type_graph
    ``TypeGraphBuilder``: binds declarations, classifies STRONG/WEAK edges.
ordering
    Cycle classification and deterministic emission order.
layout
    Size, alignment and bitfield packing.
access_expr
    Parser for ``s->p.q`` style access expressions.
relocator
    Access paths, field resolution and cross-graph relocation.

Addon modules
-------------
c_dumper
    Renders an emission order back to C declarations.

Quick start
-----------
>>> from corereloc import (DeclarationSet, PtrDecl, StructDecl, member_decls,
...                        TypeGraphBuilder, Orderer)
>>> decls = DeclarationSet()
>>> ptr = decls.add(PtrDecl("struct t2"))
>>> _ = decls.add(StructDecl("t1", member_decls(("t", ptr))))
>>> _ = decls.add(StructDecl("t2", member_decls(("t", "struct t1"))))
>>> graph = TypeGraphBuilder().build(decls)
>>> Orderer(graph).order().names()
['fwd(struct t2)', 'struct t1', 'struct t2']

Package layout
--------------
::

    corereloc/
    ├── __init__.py            ← this file
    ├── errors.py
    ├── config.py
    ├── type_model.py
    ├── type_graph.py
    ├── ordering.py
    ├── layout.py
    ├── access_expr.py
    ├── relocator.py
    └── c_dumper.py
"""

from __future__ import annotations

import importlib
import logging
import sys
import warnings
from typing import TYPE_CHECKING, List, Optional, Tuple

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__author__ = "corereloc contributors"
__license__ = "MIT"

__all__: List[str] = []          # populated incrementally below

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal registry: (module_name, list_of_names_to_import)
#
#   CORE  — always imported; failure is fatal
#   ADDON — imported eagerly but failure only warns (package still usable)
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "CoreRelocError",
        "ErrorCode",
        "ErrorCodes",
        "ErrorCategory",
        "StructuralError",
        "UnresolvedTypeError",
        "DuplicateDefinitionError",
        "IllegalCycleError",
        "LayoutError",
        "IncompleteTypeError",
        "AttributeConflictError",
        "CircularLayoutError",
        "BitfieldWidthError",
        "RelocationError",
        "FieldNotFoundError",
        "AmbiguousFieldError",
        "InvalidAccessError",
        "NoCandidateError",
        "AmbiguousCandidateError",
        "AccessExpressionError",
        "AccessPathOverflowError",
    ],
    "config": [
        "TargetConfig",
        "DEFAULT_CONFIG",
        "configure_logging",
    ],
    "type_model": [
        "TypeKind",
        "Qualifier",
        "TypeNode",
        "Member",
        "Param",
        "DeclarationSet",
        "MemberDecl",
        "ParamDecl",
        "VoidDecl",
        "IntDecl",
        "PtrDecl",
        "ArrayDecl",
        "StructDecl",
        "UnionDecl",
        "EnumDecl",
        "FwdDecl",
        "TypedefDecl",
        "QualifiedDecl",
        "FuncProtoDecl",
        "member_decls",
    ],
    "type_graph": [
        "TypeGraph",
        "TypeGraphBuilder",
        "Edge",
        "EdgeKind",
    ],
    "ordering": [
        "Orderer",
        "CycleClassifier",
        "EmissionOrder",
        "OrderEntry",
        "EntryKind",
        "emission_order",
        "tarjan_scc",
    ],
    "layout": [
        "LayoutComputer",
        "LayoutTable",
        "TypeLayout",
        "MemberLayout",
        "compute_layouts",
    ],
    "access_expr": [
        "AccessExpression",
        "IndexStep",
        "FieldStep",
        "parse_access_expression",
    ],
    "relocator": [
        "AccessPath",
        "CORERelocationResolver",
        "Relocator",
        "Relocation",
        "RelocationResult",
        "RelocationOutcome",
        "RelocationKind",
        "FieldAccessor",
        "ArrayAccessor",
        "essential_name",
    ],
}

_ADDON_MODULES = {
    "c_dumper": [
        "CDumper",
        "dump_c",
    ],
}


# ---------------------------------------------------------------------------
# Import helper
# ---------------------------------------------------------------------------

def _import_names(
    module_rel_name: str,
    names: List[str],
    *,
    fatal: bool = True,
) -> None:
    """Import *names* from a submodule and bind them in the package namespace.

    Parameters
    ----------
    module_rel_name:
        Module name relative to this package (e.g. ``"layout"``).
    names:
        Public names to re-export.
    fatal:
        If *True*, an ``ImportError`` propagates.  Otherwise a warning is
        issued and the names are skipped.
    """
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        if fatal:
            raise ImportError(
                f"corereloc: required submodule '{module_rel_name}' "
                f"failed to import: {exc}"
            ) from exc
        warnings.warn(
            f"corereloc: optional submodule '{module_rel_name}' "
            f"could not be imported ({exc}); related symbols will be unavailable.",
            ImportWarning,
            stacklevel=2,
        )
        _log.debug("Skipped optional module %s: %s", module_rel_name, exc)
        return

    current_module = sys.modules[__name__]
    for name in names:
        obj = getattr(mod, name, None)
        if obj is None:
            msg = f"corereloc.{module_rel_name} does not export '{name}'"
            if fatal:
                raise AttributeError(msg)
            _log.warning(msg)
            continue
        setattr(current_module, name, obj)
        __all__.append(name)

    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names, fatal=True)

for _mod, _names in _ADDON_MODULES.items():
    _import_names(_mod, _names, fatal=False)

del _mod, _names


# ---------------------------------------------------------------------------
# Package-level utilities
# ---------------------------------------------------------------------------

def list_submodules() -> List[str]:
    """Return the names of all submodules in the package (core + addon)."""
    return sorted(set(list(_CORE_MODULES.keys()) + list(_ADDON_MODULES.keys())))


def analyse(
    decls: DeclarationSet,
    config: Optional[TargetConfig] = None,
) -> Tuple[TypeGraph, EmissionOrder, LayoutTable]:
    """Build, order and lay out *decls* in one call.

    Returns ``(graph, order, layouts)``.
    """
    from .config import DEFAULT_CONFIG
    from .layout import LayoutComputer
    from .ordering import Orderer
    from .type_graph import TypeGraphBuilder

    graph = TypeGraphBuilder(config or DEFAULT_CONFIG).build(decls)
    order = Orderer(graph).order()
    layouts = LayoutComputer(graph).compute_all()
    return graph, order, layouts


def package_info() -> dict:
    """Return a dict of metadata about the installed package."""
    loaded = []
    missing = []
    for mod_name in list_submodules():
        fq = f"{__name__}.{mod_name}"
        if fq in sys.modules:
            loaded.append(mod_name)
        else:
            missing.append(mod_name)

    return {
        "package": __name__,
        "version": __version__,
        "python": sys.version,
        "loaded_submodules": loaded,
        "missing_submodules": missing,
        "all_exports": list(__all__),
    }


__all__ += ["list_submodules", "analyse", "package_info", "__version__"]

# ---------------------------------------------------------------------------
# TYPE_CHECKING block for IDEs and type checkers
# ---------------------------------------------------------------------------

if TYPE_CHECKING:
    from .errors import (
        CoreRelocError as CoreRelocError,
        ErrorCode as ErrorCode,
        ErrorCodes as ErrorCodes,
        ErrorCategory as ErrorCategory,
        StructuralError as StructuralError,
        UnresolvedTypeError as UnresolvedTypeError,
        DuplicateDefinitionError as DuplicateDefinitionError,
        IllegalCycleError as IllegalCycleError,
        LayoutError as LayoutError,
        IncompleteTypeError as IncompleteTypeError,
        AttributeConflictError as AttributeConflictError,
        CircularLayoutError as CircularLayoutError,
        BitfieldWidthError as BitfieldWidthError,
        RelocationError as RelocationError,
        FieldNotFoundError as FieldNotFoundError,
        AmbiguousFieldError as AmbiguousFieldError,
        InvalidAccessError as InvalidAccessError,
        NoCandidateError as NoCandidateError,
        AmbiguousCandidateError as AmbiguousCandidateError,
        AccessExpressionError as AccessExpressionError,
        AccessPathOverflowError as AccessPathOverflowError,
    )
    from .config import (
        TargetConfig as TargetConfig,
        DEFAULT_CONFIG as DEFAULT_CONFIG,
        configure_logging as configure_logging,
    )
    from .type_model import (
        TypeKind as TypeKind,
        Qualifier as Qualifier,
        TypeNode as TypeNode,
        Member as Member,
        Param as Param,
        DeclarationSet as DeclarationSet,
        MemberDecl as MemberDecl,
        ParamDecl as ParamDecl,
        VoidDecl as VoidDecl,
        IntDecl as IntDecl,
        PtrDecl as PtrDecl,
        ArrayDecl as ArrayDecl,
        StructDecl as StructDecl,
        UnionDecl as UnionDecl,
        EnumDecl as EnumDecl,
        FwdDecl as FwdDecl,
        TypedefDecl as TypedefDecl,
        QualifiedDecl as QualifiedDecl,
        FuncProtoDecl as FuncProtoDecl,
        member_decls as member_decls,
    )
    from .type_graph import (
        TypeGraph as TypeGraph,
        TypeGraphBuilder as TypeGraphBuilder,
        Edge as Edge,
        EdgeKind as EdgeKind,
    )
    from .ordering import (
        Orderer as Orderer,
        CycleClassifier as CycleClassifier,
        EmissionOrder as EmissionOrder,
        OrderEntry as OrderEntry,
        EntryKind as EntryKind,
        emission_order as emission_order,
        tarjan_scc as tarjan_scc,
    )
    from .layout import (
        LayoutComputer as LayoutComputer,
        LayoutTable as LayoutTable,
        TypeLayout as TypeLayout,
        MemberLayout as MemberLayout,
        compute_layouts as compute_layouts,
    )
    from .access_expr import (
        AccessExpression as AccessExpression,
        IndexStep as IndexStep,
        FieldStep as FieldStep,
        parse_access_expression as parse_access_expression,
    )
    from .relocator import (
        AccessPath as AccessPath,
        CORERelocationResolver as CORERelocationResolver,
        Relocator as Relocator,
        Relocation as Relocation,
        RelocationResult as RelocationResult,
        RelocationOutcome as RelocationOutcome,
        RelocationKind as RelocationKind,
        FieldAccessor as FieldAccessor,
        ArrayAccessor as ArrayAccessor,
        essential_name as essential_name,
    )
    from .c_dumper import (
        CDumper as CDumper,
        dump_c as dump_c,
    )
