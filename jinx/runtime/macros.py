"""
Macros and `{% call %}` callers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, List, Sequence, Tuple

from markupsafe import Markup

from .context import Frame
from .steps import Step, StepCallable
from .utils import str_join

if TYPE_CHECKING:
    from ..environment import Environment

ExprStep = Callable[[Frame], Step]
BodyStep = Callable[[Frame, List[str]], Step]


class Macro(StepCallable):
    """
    A macro defined in a template.

    The macro keeps its defining frame by reference; every call runs the
    body in a fresh child frame of it. Defaults are evaluated at call time
    in that frame so they may refer to earlier parameters.

    Args:
        environment: Owning environment
        body: Statement step of the macro body
        name: Macro name (`caller` for call blocks)
        arguments: Parameter names
        defaults: Expression steps for the trailing parameters
        frame: Defining frame
        catch_kwargs: Body references `kwargs`
        catch_varargs: Body references `varargs`
        caller: Body references `caller`
    """

    def __init__(
        self,
        environment: "Environment",
        body: BodyStep,
        name: str,
        arguments: Sequence[str],
        defaults: Sequence[ExprStep],
        frame: Frame,
        catch_kwargs: bool,
        catch_varargs: bool,
        caller: bool,
    ):
        self._environment = environment
        self._body = body
        self._defaults = tuple(defaults)
        self._frame = frame
        self._default_autoescape = frame.eval_ctx.autoescape
        self.name = name
        self.arguments: Tuple[str, ...] = tuple(arguments)
        self.catch_kwargs = catch_kwargs
        self.catch_varargs = catch_varargs
        self.caller = caller
        self.explicit_caller = "caller" in self.arguments

    @property
    def defaults(self) -> Tuple[ExprStep, ...]:
        return self._defaults

    def step_call(self, *args: Any, **kwargs: Any) -> Step:
        frame = self._frame.child()
        count = len(self.arguments)
        first_default = count - len(self._defaults)

        if len(args) > count and not self.catch_varargs:
            raise TypeError(f"macro {self.name!r} takes no more than {count} argument(s)")

        for index, name in enumerate(self.arguments):
            if index < len(args):
                value = args[index]
            elif name in kwargs:
                value = kwargs.pop(name)
            elif index >= first_default:
                value = yield from self._defaults[index - first_default](frame)
            else:
                value = self._environment.undefined(f"parameter {name!r} was not provided", name=name)
            frame.vars[name] = value

        if self.caller and not self.explicit_caller:
            caller = kwargs.pop("caller", None)
            if caller is None:
                caller = self._environment.undefined("No caller defined", name="caller")
            frame.vars["caller"] = caller

        if self.catch_kwargs:
            frame.vars["kwargs"] = kwargs
        elif kwargs:
            if "caller" in kwargs:
                raise TypeError(
                    f"macro {self.name!r} was invoked with two values for the special "
                    "caller argument. This is most likely a bug."
                )
            raise TypeError(f"macro {self.name!r} takes no keyword argument {next(iter(kwargs))!r}")

        if self.catch_varargs:
            frame.vars["varargs"] = tuple(args[count:])

        buf: List[str] = []
        yield from self._body(frame, buf)
        rv = str_join(buf)
        if self._default_autoescape:
            return Markup(rv)
        return rv

    def __repr__(self) -> str:
        name = "anonymous" if self.name is None else repr(self.name)
        return f"<{type(self).__name__} {name}>"


__all__ = [
    "Macro",
]
