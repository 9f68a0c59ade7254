"""
Template substitution — render command and source templates.

Templates are Jinja2 text evaluated against a plain context mapping.
Undefined variables are errors, never empty strings.

Two argument-vector modes (see policy.profile):
  - ``str`` template: render once, then ``str.split()`` the result.
  - ``list`` template: render each element, one argument per element.
"""
from os import PathLike
from typing import Any, List, Mapping, Sequence, Union

from jinja2 import Environment, StrictUndefined, TemplateError, UndefinedError

from extender.errors import TemplateResolutionError

_env = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)


def _normalize(value: Any) -> Any:
    """Paths render as their string form; lists are normalized element-wise."""
    if isinstance(value, PathLike):
        return str(value.__fspath__())
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def render_text(template: str, context: Mapping[str, Any]) -> str:
    """
    Render *template* against *context* and return the text.

    Raises
    ------
    TemplateResolutionError
        If the template references an undefined variable or does not parse.
    """
    values = {k: _normalize(v) for k, v in context.items()}
    try:
        return _env.from_string(template).render(values)
    except UndefinedError as e:
        raise TemplateResolutionError(
            f"Unresolved variable in template {template!r}: {e.message}"
        ) from e
    except TemplateError as e:
        raise TemplateResolutionError(f"Invalid template {template!r}: {e}") from e


def render_each(templates: Sequence[str], context: Mapping[str, Any]) -> List[str]:
    """Render every template independently; output length equals input length."""
    return [render_text(t, context) for t in templates]


def render_args(
    template: Union[str, Sequence[str]],
    context: Mapping[str, Any],
) -> List[str]:
    """
    Render a command template into an argument vector.

    A single string is rendered and then split on whitespace, so a
    substituted value containing a space ends up as several arguments.
    A list is rendered element by element without any splitting.
    """
    if isinstance(template, str):
        return render_text(template, context).split()
    return render_each(list(template), context)
