"""
Compiled form of a template.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, FrozenSet, List, Mapping, Optional

from ..runtime.context import BlockFunc, Frame
from ..runtime.steps import Step

# Statement step: `step(frame, buf)`; expression step: `step(frame)`.
BodyStep = Callable[[Frame, List[str]], Step]
ExprStep = Callable[[Frame], Step]


@dataclass(frozen=True)
class RenderUnit:
    """
    Result of compiling one template.

    Holds no render state, so a unit is shared by every render of its
    template, concurrent ones included.

    Attributes:
        name: Template name
        filename: Source filename, if any
        root: Statement step of the template body
        blocks: Hoisted blocks by name
        required: Names of blocks declared `required`
    """
    name: Optional[str]
    filename: Optional[str]
    root: BodyStep
    blocks: Mapping[str, BlockFunc] = field(default_factory=dict)
    required: FrozenSet[str] = frozenset()


__all__ = ["RenderUnit", "BodyStep", "ExprStep"]
