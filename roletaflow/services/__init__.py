"""
Service layer for the RoletaFlow operator console.

This package contains the reconciliation of the vehicle roster with the
readings of an operation day, the offline write-behind queue and the
submission workflow that ties them together.
"""

from .operator_console import OperatorConsole, build_console
from .reconciliation import ReconciliationEngine
from .submission import SubmissionWorkflow

__all__ = ["OperatorConsole", "build_console", "ReconciliationEngine", "SubmissionWorkflow"]
