"""Prompt templates with `{{name}}` placeholders."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

DEFAULT_TEMPLATE = """\
Answer the question using only the context below.
If the context does not contain the answer, say that you do not know.
Question: {{question}}
Context:
{{context}}"""


@dataclass(frozen=True)
class PromptTemplate:
    text: str = DEFAULT_TEMPLATE

    @property
    def variables(self) -> frozenset[str]:
        return frozenset(_PLACEHOLDER_RE.findall(self.text))

    def render(self, **values: Any) -> str:
        missing = self.variables - set(values)
        if missing:
            raise ValueError(f"missing prompt variables: {sorted(missing)}")
        unknown = set(values) - self.variables
        if unknown:
            raise ValueError(f"unknown prompt variables: {sorted(unknown)}")
        return _PLACEHOLDER_RE.sub(lambda match: str(values[match.group(1)]), self.text)
