from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import EnvironmentConfig, load_config, load_vars
from .environment import Environment
from .errors import JinxUserError
from .loaders import FileSystemLoader
from .nodes import dump
from .version import tool_version


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="jinx",
        description="Render text templates",
        add_help=True,
    )
    p.add_argument("-v", "--version", action="version", version=f"%(prog)s {tool_version()}")
    p.add_argument("--verbose", action="store_true", help="debug logging to stderr (same as JINX_DEBUG=1)")
    sub = p.add_subparsers(dest="cmd", required=True)

    # Arguments shared by every subcommand that needs an environment
    def add_env_options(sp: argparse.ArgumentParser) -> None:
        sp.add_argument(
            "--search-path",
            action="append",
            metavar="DIR",
            help="template directory (repeatable; overrides search_path of the config)",
        )
        sp.add_argument(
            "--config",
            metavar="FILE",
            help="YAML environment configuration",
        )

    def add_template(sp: argparse.ArgumentParser) -> None:
        sp.add_argument(
            "template",
            help="template name on the search path, a template file, or - for stdin",
        )

    sp_render = sub.add_parser("render", help="Render a template to stdout")
    add_template(sp_render)
    add_env_options(sp_render)
    sp_render.add_argument(
        "--var",
        action="append",
        metavar="KEY=VALUE",
        help="render variable (repeatable; wins over --vars)",
    )
    sp_render.add_argument("--vars", metavar="FILE", help="YAML mapping of render variables")
    sp_render.add_argument("--async", dest="use_async", action="store_true", help="render in asynchronous mode")
    sp_render.add_argument("-o", "--output", metavar="FILE", help="write the output to FILE")

    sp_tokens = sub.add_parser("tokens", help="Dump the token stream of a template")
    add_template(sp_tokens)
    add_env_options(sp_tokens)

    sp_ast = sub.add_parser("ast", help="Dump the parsed AST of a template")
    add_template(sp_ast)
    add_env_options(sp_ast)

    sp_list = sub.add_parser("list", help="List the templates on the search path")
    add_env_options(sp_list)
    sp_list.add_argument(
        "--extension",
        action="append",
        metavar="EXT",
        help="only templates with this file extension (repeatable)",
    )

    return p


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose or os.environ.get("JINX_DEBUG") else logging.WARNING
    logging.basicConfig(level=level, format="[%(levelname)s] %(name)s: %(message)s", stream=sys.stderr)


def _parse_vars(specs: Optional[List[str]]) -> Dict[str, str]:
    """Parse `KEY=VALUE` pairs."""
    result: Dict[str, str] = {}
    for spec in specs or ():
        if "=" not in spec:
            raise ValueError(f"Invalid variable '{spec}'. Expected 'KEY=VALUE'")
        key, value = spec.split("=", 1)
        result[key.strip()] = value
    return result


def _build_environment(ns: argparse.Namespace, **overrides: Any) -> Environment:
    config = load_config(ns.config) if ns.config else EnvironmentConfig()
    if ns.search_path:
        config = config.model_copy(update={"search_path": [str(Path(p).resolve()) for p in ns.search_path]})
    return config.create_environment(**overrides)


def _locate(env: Environment, template: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Map the template argument to `(name, source)`.

    Stdin gives a source without a name. Without a search path the
    argument is a file path whose directory becomes the search path.
    """
    if template == "-":
        return None, sys.stdin.read()
    if env.loader is None:
        path = Path(template)
        env.loader = FileSystemLoader(path.parent)
        return path.name, None
    return template, None


def _source_of(env: Environment, template: str) -> Tuple[Optional[str], str]:
    name, source = _locate(env, template)
    if source is None:
        source, _, _ = env.loader.get_source(env, name)
    return name, source


def _render(ns: argparse.Namespace) -> int:
    overrides = {"enable_async": True} if ns.use_async else {}
    env = _build_environment(ns, **overrides)
    name, source = _locate(env, ns.template)
    template = env.from_string(source) if source is not None else env.get_template(name)

    variables: Dict[str, Any] = load_vars(ns.vars) if ns.vars else {}
    variables.update(_parse_vars(ns.var))
    output = template.render(variables)

    if ns.output:
        Path(ns.output).write_text(output, encoding="utf-8")
    else:
        sys.stdout.write(output)
    return 0


def _tokens(ns: argparse.Namespace) -> int:
    env = _build_environment(ns)
    name, source = _source_of(env, ns.template)
    for token in env.lex(source, name):
        sys.stdout.write(f"{token.line}:{token.column}\t{token.type.name}\t{token.value!r}\n")
    return 0


def _ast(ns: argparse.Namespace) -> int:
    env = _build_environment(ns)
    name, source = _source_of(env, ns.template)
    sys.stdout.write(dump(env.parse(source, name)) + "\n")
    return 0


def _list(ns: argparse.Namespace) -> int:
    env = _build_environment(ns)
    if env.loader is None:
        raise ValueError("No search path given (use --search-path or a config with search_path)")
    for name in env.list_templates(extensions=ns.extension):
        sys.stdout.write(name + "\n")
    return 0


_COMMANDS = {
    "render": _render,
    "tokens": _tokens,
    "ast": _ast,
    "list": _list,
}


def main(argv: Optional[List[str]] = None) -> int:
    ns = _build_parser().parse_args(argv)
    _setup_logging(ns.verbose)

    try:
        return _COMMANDS[ns.cmd](ns)
    except JinxUserError as e:
        sys.stderr.write(str(e).rstrip() + "\n")
        return 2
    except ValueError as e:
        sys.stderr.write(str(e).rstrip() + "\n")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
