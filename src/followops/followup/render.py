from __future__ import annotations

import re
from collections.abc import Mapping

from followops.domain.models import Lead
from followops.domain.stages import product_name

# Matches {{ name }} or {name}; anything else (unclosed braces, spaces inside
# single braces) is left as literal text.
PLACEHOLDER_RE = re.compile(r"\{\{\s*(?P<double>\w+)\s*\}\}|\{(?P<single>\w+)\}")


def placeholder_values(lead: Lead, days_since: int) -> dict[str, str]:
    return {
        "nome": lead.first_name,
        "produto": product_name(lead.product),
        "dias": str(days_since),
    }


def render(body: str, values: Mapping[str, str]) -> str:
    """Substitute known placeholders and leave unknown ones untouched."""

    def _replace(match: re.Match) -> str:
        key = match.group("double") or match.group("single")
        if key in values:
            return values[key]
        return match.group(0)

    return PLACEHOLDER_RE.sub(_replace, body)


def render_for_lead(body: str, lead: Lead, days_since: int) -> str:
    return render(body, placeholder_values(lead, days_since))
