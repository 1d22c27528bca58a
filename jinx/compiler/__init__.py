"""
Template compiler: AST to resumable step functions.
"""

from .expressions import ExpressionCompiler, constant_step
from .generator import CodeGenerator
from .unit import BodyStep, ExprStep, RenderUnit

__all__ = [
    "CodeGenerator",
    "ExpressionCompiler",
    "RenderUnit",
    "BodyStep",
    "ExprStep",
    "constant_step",
]
