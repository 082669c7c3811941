"""Jinja2 rendering of page fragments and the shared layout."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from formatting import (
    escape_html,
    format_currency,
    get_noun_plural_form,
    relative_time,
    remaining_time,
)

TEMPLATES_DIR = Path(__file__).with_name("templates")
LAYOUT_TEMPLATE = "layout.html"


def build_environment(root: Path = TEMPLATES_DIR) -> Environment:
    """Create a Jinja2 environment rooted at ``root`` with the display filters registered."""

    environment = Environment(
        loader=FileSystemLoader(str(root)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    environment.filters["price"] = format_currency
    environment.filters["esc"] = escape_html
    environment.filters["ago"] = relative_time
    environment.globals["plural"] = get_noun_plural_form
    environment.globals["remaining_time"] = remaining_time
    return environment


_environment = build_environment()


def include_template(
    name: str,
    data: Optional[Mapping[str, object]] = None,
    *,
    environment: Optional[Environment] = None,
) -> str:
    """Render ``name`` from the templates folder with ``data`` as its variables.

    Raises ``jinja2.TemplateNotFound`` when the template does not exist.
    """

    env = environment or _environment
    template = env.get_template(name)
    return template.render(dict(data or {}))


def render_page(
    name: str,
    data: Optional[Mapping[str, object]] = None,
    *,
    title: str,
    environment: Optional[Environment] = None,
    **layout_data: object,
) -> str:
    """Render a content fragment and wrap it in the layout."""

    content = include_template(name, data, environment=environment)
    layout_context = dict(layout_data)
    layout_context["title"] = title
    layout_context["content"] = Markup(content)
    return include_template(LAYOUT_TEMPLATE, layout_context, environment=environment)
