"""Substitution of %%VARIABLE%% tokens in Dockerfile templates."""

from __future__ import annotations

import re
from typing import Dict, Mapping

from .bundle import Bundle
from .errors import TemplateVariableError

TOKEN_PATTERN = re.compile(r"%%([A-Za-z_][A-Za-z0-9_]*)%%")


def template_variables(bundle: Bundle) -> Dict[str, str]:
    """The variables available to templates; RESIN_* are the legacy spellings."""
    return {
        "RESIN_ARCH": bundle.architecture,
        "RESIN_MACHINE_NAME": bundle.device_type,
        "BALENA_ARCH": bundle.architecture,
        "BALENA_MACHINE_NAME": bundle.device_type,
    }


def process_template(content: str, variables: Mapping[str, str]) -> str:
    """
    Replaces every %%NAME%% token in ``content``.

    Raises:
        TemplateVariableError: A token names a variable missing from ``variables``.
    """

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key not in variables:
            raise TemplateVariableError(key)
        return variables[key]

    return TOKEN_PATTERN.sub(_replace, content)


def render_dockerfile(contents: bytes, bundle: Bundle) -> str:
    # Bytes outside UTF-8 pass through the substitution untouched
    return process_template(
        contents.decode("utf-8", "surrogateescape"), template_variables(bundle)
    )
