"""
Instruction templates per model.

Layout on disk:
    <prompts_dir>/<template-set>/match.md
    <prompts_dir>/<template-set>/match.justification.md   (optional)
    <prompts_dir>/<template-set>/bonus.md

A cheaper model variant reuses its stronger sibling's template set through
TEMPLATE_ALIASES. Adding a variant is a table edit.
"""

import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

TEMPLATE_ALIASES: dict[str, str] = {
    "o4-mini": "o3",
    "gpt-5-mini": "gpt-5",
    "gpt-5-nano": "gpt-5",
}

MATCH_TEMPLATE = "match.md"
MATCH_JUSTIFICATION_TEMPLATE = "match.justification.md"
BONUS_TEMPLATE = "bonus.md"


def resolve_template_set(model: str) -> str:
    """Template set id for a model (identity unless aliased)."""
    return TEMPLATE_ALIASES.get(model, model)


class InstructionsTemplateProvider:
    """Loads instruction templates from the prompts directory."""

    def __init__(self, prompts_dir: Union[str, Path]):
        self.prompts_dir = Path(prompts_dir)

    def _template_dir(self, model: str) -> Path:
        return self.prompts_dir / resolve_template_set(model)

    def match_template_path(self, model: str, include_justification: bool = False) -> Path:
        directory = self._template_dir(model)
        if include_justification:
            justification_path = directory / MATCH_JUSTIFICATION_TEMPLATE
            if justification_path.exists():
                return justification_path
            logger.debug(
                f"No {MATCH_JUSTIFICATION_TEMPLATE} for {model}, falling back to {MATCH_TEMPLATE}"
            )
        return directory / MATCH_TEMPLATE

    def bonus_template_path(self, model: str) -> Path:
        return self._template_dir(model) / BONUS_TEMPLATE

    def load_match_template(self, model: str, include_justification: bool = False) -> tuple[str, Path]:
        path = self.match_template_path(model, include_justification)
        return self._read(path), path

    def load_bonus_template(self, model: str) -> tuple[str, Path]:
        path = self.bonus_template_path(model)
        return self._read(path), path

    @staticmethod
    def _read(path: Path) -> str:
        if not path.exists():
            raise FileNotFoundError(f"Instructions template not found: {path}")
        return path.read_text(encoding="utf-8")
