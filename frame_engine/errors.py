# frame_engine/errors.py
"""
ERROR TAXONOMY
==============

Every failure the engine can detect is one of these exceptions. They are
raised where the problem is found (section calculator, assembler, solver,
post-processor) and caught at the analyze() boundary, where they become
Diagnostic records on an AnalysisResult with is_valid=False.

    FrameAnalysisError
    ├── InputError
    │   ├── InvalidNodeReferenceError
    │   ├── DegenerateElementError
    │   ├── UnsupportedSectionKind
    │   ├── InvalidPropertyError
    │   └── InvalidLoadError
    ├── NumericError
    │   ├── SingularMatrixError
    │   └── NumericOverflowError
    └── ConfigurationError
"""

from typing import Optional


class FrameAnalysisError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, element_id=None, node_id=None):
        super().__init__(message)
        self.message = message
        self.element_id = element_id
        self.node_id = node_id

    @property
    def code(self) -> str:
        return type(self).__name__


class InputError(FrameAnalysisError):
    """The structure description is inconsistent or incomplete."""


class InvalidNodeReferenceError(InputError):
    """An element or load points at a node id that does not exist."""


class DegenerateElementError(InputError):
    """An element has (numerically) zero length."""


class UnsupportedSectionKind(InputError):
    """Section kind tag has no property derivation."""

    def __init__(self, kind: Optional[str], element_id=None):
        super().__init__(f"Unsupported section kind: {kind!r}", element_id=element_id)
        self.kind = kind


class InvalidPropertyError(InputError):
    """A material or section value is missing, non-numeric or non-positive."""


class InvalidLoadError(InputError):
    """A load has an unknown kind or axis."""


class NumericError(FrameAnalysisError):
    """The numeric solution failed or produced unusable values."""


class SingularMatrixError(NumericError):
    """Reduced stiffness matrix is not positive definite (mechanism)."""


class NumericOverflowError(NumericError):
    """NaN or Infinity found in the solution or recovered quantities."""


class ConfigurationError(FrameAnalysisError):
    """Analysis settings are inconsistent or out of range."""
