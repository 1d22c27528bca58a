"""
Render-time support for compiled templates.
"""

from .context import BlockReference, Context, EvalContext, Frame, TemplateReference, call_value
from .loops import FilteredStepIterator, LoopBreak, LoopContext, LoopContinue
from .macros import Macro
from .steps import (
    EXHAUSTED,
    Step,
    StepCallable,
    StepIterator,
    Suspend,
    SuspendKind,
    drain,
    drive_async,
    drive_sync,
    resolve,
)
from .undefined import ChainableUndefined, StrictUndefined, Undefined, is_undefined
from .utils import (
    DEFAULT_GLOBALS,
    Cycler,
    Joiner,
    Namespace,
    PassArg,
    markup_join,
    pass_context,
    pass_environment,
    pass_eval_context,
    str_join,
    to_output,
)

__all__ = [
    "Context",
    "EvalContext",
    "Frame",
    "BlockReference",
    "TemplateReference",
    "call_value",
    "LoopContext",
    "FilteredStepIterator",
    "LoopBreak",
    "LoopContinue",
    "Macro",
    "EXHAUSTED",
    "Step",
    "StepCallable",
    "StepIterator",
    "Suspend",
    "SuspendKind",
    "drain",
    "drive_async",
    "drive_sync",
    "resolve",
    "Undefined",
    "ChainableUndefined",
    "StrictUndefined",
    "is_undefined",
    "DEFAULT_GLOBALS",
    "Cycler",
    "Joiner",
    "Namespace",
    "PassArg",
    "markup_join",
    "pass_context",
    "pass_environment",
    "pass_eval_context",
    "str_join",
    "to_output",
]
