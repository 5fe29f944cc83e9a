"""api-cli templating - strict {{name}} substitution against a flat scope."""

import re

from api_cli.errors import TemplateRenderError

# {{name}} with optional inner whitespace. Names may contain anything but
# braces and whitespace, so dotted or dashed keys are looked up verbatim.
PLACEHOLDER_RE = re.compile(r"\{\{\s*([^{}\s]+)\s*\}\}")


def render(template: str, scope: dict[str, str]) -> str:
    """Render every {{name}} placeholder in *template* from *scope*.

    Strict: a name missing from scope raises TemplateRenderError instead of
    rendering as an empty string. Text outside placeholders is kept as is.
    """

    def _replace(m: re.Match) -> str:
        name = m.group(1)
        if name not in scope:
            raise TemplateRenderError(name, template)
        return scope[name]

    return PLACEHOLDER_RE.sub(_replace, template)

