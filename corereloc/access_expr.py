"""
corereloc/access_expr.py
════════════════════════

Parser for source-form field access expressions, the argument of a
relocated read such as ``R(s->p.q)`` or ``R(s[1].y[2].x[3].t2)``.

Grammar (Parsimonious PEG)::

    access      = _ address? root step* _
    root        = arrow_root / plain_root
    arrow_root  = identifier _ "->" _ identifier _
    plain_root  = identifier _ index?
    step        = member_step / index
    member_step = "." _ identifier _

``->`` is only accepted right after the root variable: a relocated
access never crosses a pointer.  ``s->x`` and ``s.x`` both address
element 0 of the root, so every parsed expression starts with an
``IndexStep``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple, Union

from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from .errors import AccessExpressionError


# ═══════════════════════════════════════════════════════════════════
#  PART 1 — GRAMMAR
# ═══════════════════════════════════════════════════════════════════

ACCESS_GRAMMAR = Grammar(r'''
    access      = _ address? root step* _
    address     = "&" _
    root        = arrow_root / plain_root
    arrow_root  = identifier _ "->" _ identifier _
    plain_root  = identifier _ index?
    step        = member_step / index
    member_step = "." _ identifier _
    index       = "[" _ integer _ "]" _
    integer     = ~r"0[xX][0-9a-fA-F]+|[0-9]+"
    identifier  = ~r"[a-zA-Z_][a-zA-Z0-9_]*"
    _           = ~r"\s*"
''')


# ═══════════════════════════════════════════════════════════════════
#  PART 2 — AST
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class IndexStep:
    index: int

    def __str__(self) -> str:
        return f"[{self.index}]"


@dataclass(frozen=True)
class FieldStep:
    name: str
    arrow: bool = False

    def __str__(self) -> str:
        return f"{'->' if self.arrow else '.'}{self.name}"


AccessStep = Union[IndexStep, FieldStep]


@dataclass(frozen=True)
class AccessExpression:
    """``root`` plus steps; ``steps[0]`` is always the root ``IndexStep``."""
    root: str
    steps: Tuple[AccessStep, ...]
    address_of: bool = False

    @property
    def root_index(self) -> int:
        return self.steps[0].index

    @property
    def field_names(self) -> List[str]:
        return [s.name for s in self.steps if isinstance(s, FieldStep)]

    def __str__(self) -> str:
        head = "&" if self.address_of else ""
        first, rest = self.steps[0], self.steps[1:]
        if rest and isinstance(rest[0], FieldStep) and rest[0].arrow:
            return head + self.root + "".join(str(s) for s in rest)
        root = self.root if first.index == 0 else f"{self.root}{first}"
        return head + root + "".join(str(s) for s in rest)


# ═══════════════════════════════════════════════════════════════════
#  PART 3 — VISITOR
# ═══════════════════════════════════════════════════════════════════

class AccessExpressionBuilder(NodeVisitor):
    """Transforms the Parsimonious parse tree into an ``AccessExpression``."""

    grammar = ACCESS_GRAMMAR

    def generic_visit(self, node, visited_children):
        return visited_children or node

    def visit_access(self, node, visited_children):
        _, address, (root, head_steps), steps, _ = visited_children
        if not isinstance(steps, list):
            steps = []
        return AccessExpression(
            root=root,
            steps=tuple(head_steps) + tuple(steps),
            address_of=isinstance(address, list),
        )

    def visit_root(self, node, visited_children):
        return visited_children[0]

    def visit_arrow_root(self, node, visited_children):
        name, _, _, _, field, _ = visited_children
        return name, [IndexStep(0), FieldStep(field, arrow=True)]

    def visit_plain_root(self, node, visited_children):
        name, _, index = visited_children
        first = index[0] if isinstance(index, list) else 0
        return name, [IndexStep(first)]

    def visit_step(self, node, visited_children):
        step = visited_children[0]
        return IndexStep(step) if isinstance(step, int) else step

    def visit_member_step(self, node, visited_children):
        _, _, name, _ = visited_children
        return FieldStep(name)

    def visit_index(self, node, visited_children):
        _, _, value, _, _, _ = visited_children
        return value

    def visit_integer(self, node, visited_children):
        text = node.text
        if text[:2] in ("0x", "0X"):
            return int(text, 16)
        return int(text, 10)

    def visit_identifier(self, node, visited_children):
        return node.text


def parse_access_expression(text: str) -> AccessExpression:
    """
    Parse ``"s->p.q"`` / ``"&s[1].y[2].x[3].t2"`` into an
    ``AccessExpression``.

    Raises ``AccessExpressionError`` (with the failing position) when the
    text is not a valid access expression.
    """
    try:
        return AccessExpressionBuilder().parse(text)
    except ParseError as exc:
        raise AccessExpressionError(
            f"invalid access expression {text!r} at column {exc.pos}",
            text=text,
            position=exc.pos,
        ) from exc
    except VisitationError as exc:
        raise AccessExpressionError(
            f"invalid access expression {text!r}: {exc}", text=text
        ) from exc
