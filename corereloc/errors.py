"""
corereloc/errors.py
═══════════════════

Error taxonomy for the type-graph / layout / relocation pipeline.

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────┐
│  CoreRelocError (base)                                                  │
│  ├── StructuralError       - whole declaration set is unusable          │
│  │   ├── UnresolvedTypeError                                            │
│  │   ├── DuplicateDefinitionError                                       │
│  │   └── IllegalCycleError                                              │
│  ├── LayoutError           - one type has no layout                     │
│  │   ├── IncompleteTypeError                                            │
│  │   ├── AttributeConflictError                                         │
│  │   ├── CircularLayoutError                                            │
│  │   └── BitfieldWidthError                                             │
│  ├── RelocationError       - expected, recoverable misses               │
│  │   ├── FieldNotFoundError                                             │
│  │   ├── AmbiguousFieldError                                            │
│  │   ├── InvalidAccessError                                             │
│  │   ├── NoCandidateError                                               │
│  │   └── AmbiguousCandidateError                                        │
│  ├── AccessExpressionError - malformed source access expression         │
│  └── AccessPathOverflowError                                            │
└─────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each error carries a code ``CRL-XXXX``:
  - 1000-1999: structural errors
  - 2000-2999: layout errors
  - 3000-3999: relocation misses
  - 4000-4999: access expression / access path errors

Structural errors abort the analysis of the whole unit. Layout errors
are fatal for the type they name only. Relocation errors are a normal
outcome for callers that test a target for an optional field.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Any, Dict, List, Optional, Sequence


@unique
class ErrorCategory(Enum):
    """Which part of the pipeline rejected the input."""
    STRUCTURAL = "structural"
    LAYOUT = "layout"
    RELOCATION = "relocation"
    ACCESS = "access"


@dataclass(frozen=True)
class ErrorCode:
    """A stable error identifier, e.g. ``CRL-1001``."""
    number: int
    name: str
    category: ErrorCategory

    def __str__(self) -> str:
        return f"CRL-{self.number:04d}"


class ErrorCodes:
    """Registry of every code raised by the package."""
    UNRESOLVED_TYPE = ErrorCode(1001, "unresolved-type", ErrorCategory.STRUCTURAL)
    DUPLICATE_DEFINITION = ErrorCode(1002, "duplicate-definition", ErrorCategory.STRUCTURAL)
    ILLEGAL_CYCLE = ErrorCode(1003, "illegal-cycle", ErrorCategory.STRUCTURAL)

    INCOMPLETE_TYPE = ErrorCode(2001, "incomplete-type", ErrorCategory.LAYOUT)
    ATTRIBUTE_CONFLICT = ErrorCode(2002, "attribute-conflict", ErrorCategory.LAYOUT)
    CIRCULAR_LAYOUT = ErrorCode(2003, "circular-layout", ErrorCategory.LAYOUT)
    BITFIELD_WIDTH = ErrorCode(2004, "bitfield-width", ErrorCategory.LAYOUT)

    FIELD_NOT_FOUND = ErrorCode(3001, "field-not-found", ErrorCategory.RELOCATION)
    AMBIGUOUS_FIELD = ErrorCode(3002, "ambiguous-field", ErrorCategory.RELOCATION)
    INVALID_ACCESS = ErrorCode(3003, "invalid-access", ErrorCategory.RELOCATION)
    NO_CANDIDATE = ErrorCode(3004, "no-candidate", ErrorCategory.RELOCATION)
    AMBIGUOUS_CANDIDATE = ErrorCode(3005, "ambiguous-candidate", ErrorCategory.RELOCATION)

    ACCESS_EXPRESSION = ErrorCode(4001, "access-expression", ErrorCategory.ACCESS)
    ACCESS_PATH_OVERFLOW = ErrorCode(4002, "access-path-overflow", ErrorCategory.ACCESS)


# ═══════════════════════════════════════════════════════════════════════════
#  BASE EXCEPTION
# ═══════════════════════════════════════════════════════════════════════════

class CoreRelocError(Exception):
    """
    Base exception for every error raised by ``corereloc``.

    Carries the offending type / member identity so diagnostics can name
    what went wrong without re-deriving it from the message.
    """

    default_code: ErrorCode = ErrorCodes.UNRESOLVED_TYPE

    def __init__(
        self,
        message: str,
        *,
        code: Optional[ErrorCode] = None,
        type_name: str = "",
        type_id: Optional[int] = None,
        member: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.type_name = type_name
        self.type_id = type_id
        self.member = member

    @property
    def category(self) -> ErrorCategory:
        return self.code.category

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view used by reporting tools."""
        return {
            "code": str(self.code),
            "name": self.code.name,
            "category": self.category.value,
            "message": self.message,
            "type_name": self.type_name,
            "type_id": self.type_id,
            "member": self.member,
        }

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


# ───────────────────────────────────────────────────────────────────────────
# STRUCTURAL ERRORS
# ───────────────────────────────────────────────────────────────────────────

class StructuralError(CoreRelocError):
    """The declaration set as a whole cannot be analysed."""


class UnresolvedTypeError(StructuralError):
    """A tag or typedef name is referenced but never declared."""
    default_code = ErrorCodes.UNRESOLVED_TYPE


class DuplicateDefinitionError(StructuralError):
    """A tag or typedef name is defined more than once."""
    default_code = ErrorCodes.DUPLICATE_DEFINITION


class IllegalCycleError(StructuralError):
    """A dependency cycle that no forward declaration can break."""
    default_code = ErrorCodes.ILLEGAL_CYCLE

    def __init__(self, message: str, cycle: Sequence[str] = (), **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.cycle: List[str] = list(cycle)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["cycle"] = list(self.cycle)
        return d


# ───────────────────────────────────────────────────────────────────────────
# LAYOUT ERRORS
# ───────────────────────────────────────────────────────────────────────────

class LayoutError(CoreRelocError):
    """No layout can be computed for one particular type."""
    default_code = ErrorCodes.INCOMPLETE_TYPE


class IncompleteTypeError(LayoutError):
    """Size of a type is needed but the type is incomplete."""
    default_code = ErrorCodes.INCOMPLETE_TYPE


class AttributeConflictError(LayoutError):
    """Packing/alignment attributes contradict an embedded member's layout."""
    default_code = ErrorCodes.ATTRIBUTE_CONFLICT


class CircularLayoutError(LayoutError):
    """A type contains itself by value."""
    default_code = ErrorCodes.CIRCULAR_LAYOUT


class BitfieldWidthError(LayoutError):
    """Bitfield wider than its declared type, or declared on a non-integer."""
    default_code = ErrorCodes.BITFIELD_WIDTH


# ───────────────────────────────────────────────────────────────────────────
# RELOCATION ERRORS
# ───────────────────────────────────────────────────────────────────────────

class RelocationError(CoreRelocError):
    """The access cannot be satisfied against this target."""
    default_code = ErrorCodes.INVALID_ACCESS


class FieldNotFoundError(RelocationError):
    """A named step exists nowhere in the current level's members."""
    default_code = ErrorCodes.FIELD_NOT_FOUND


class AmbiguousFieldError(RelocationError):
    """Two sibling anonymous members both contain the requested name."""
    default_code = ErrorCodes.AMBIGUOUS_FIELD

    def __init__(self, message: str, paths: Sequence[Sequence[int]] = (), **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.paths = [list(p) for p in paths]


class InvalidAccessError(RelocationError):
    """An access step does not fit the shape of the type it is applied to."""
    default_code = ErrorCodes.INVALID_ACCESS


class NoCandidateError(RelocationError):
    """No same-named target type accepted the access."""
    default_code = ErrorCodes.NO_CANDIDATE


class AmbiguousCandidateError(RelocationError):
    """Several target candidates matched with different offsets."""
    default_code = ErrorCodes.AMBIGUOUS_CANDIDATE


# ───────────────────────────────────────────────────────────────────────────
# ACCESS EXPRESSION / PATH ERRORS
# ───────────────────────────────────────────────────────────────────────────

class AccessExpressionError(CoreRelocError):
    """A source-form access expression could not be parsed."""
    default_code = ErrorCodes.ACCESS_EXPRESSION

    def __init__(self, message: str, text: str = "", position: int = -1, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.text = text
        self.position = position


class AccessPathOverflowError(CoreRelocError, ValueError):
    """An access path element does not fit the relocation record's width."""
    default_code = ErrorCodes.ACCESS_PATH_OVERFLOW
