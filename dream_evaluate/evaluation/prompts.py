"""Scoring-rubric prompt loading and rendering."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jinja2
import yaml

from dream_evaluate.models import EvaluationRequest

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
DEFAULT_TEMPLATE = TEMPLATE_DIR / "dream_evaluation.yaml"

_env = jinja2.Environment(undefined=jinja2.StrictUndefined, keep_trailing_newline=False, autoescape=False)


@dataclass
class PromptSpec:
    """Metadata and template content for the evaluation prompt.

    Parameters
    ----------
    name : str
        Unique prompt identifier.
    version : str
        Version string recorded with every evaluation.
    description : str
        Human-readable description.
    dimensions : list[str]
        Names of scoring dimensions this prompt expects.
    system_template : str
        Jinja2 template for the system message.
    user_template : str
        Jinja2 template for the user message.
    """

    name: str
    version: str
    description: str = ""
    dimensions: list[str] = field(default_factory=list)
    system_template: str = ""
    user_template: str = ""


@dataclass(frozen=True)
class RenderedPrompt:
    """System and user text ready for a provider call."""

    system: str
    user: str
    version: str

    @property
    def messages(self) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]

    @property
    def content_hash(self) -> str:
        """Stable hash identifying the exact prompt sent."""
        return hashlib.sha256((self.system + self.user).encode("utf-8")).hexdigest()[:16]


def load_prompt_spec(path: str | Path = DEFAULT_TEMPLATE) -> PromptSpec:
    """Load a PromptSpec from a YAML file.

    Parameters
    ----------
    path : str | Path
        Path to a YAML prompt template file.

    Returns
    -------
    PromptSpec

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    """
    path = Path(path)
    if not path.exists():
        msg = f"Prompt template not found: {path}"
        raise FileNotFoundError(msg)

    with open(path, encoding="utf-8") as fh:
        data: dict[str, Any] = yaml.safe_load(fh) or {}

    logger.debug("Loaded prompt template %s", path)
    return PromptSpec(
        name=data.get("name", "unknown"),
        version=str(data.get("version", "0.0")),
        description=data.get("description", ""),
        dimensions=list(data.get("dimensions", [])),
        system_template=data.get("system", ""),
        user_template=data.get("user", ""),
    )


def render(spec: PromptSpec, request: EvaluationRequest) -> RenderedPrompt:
    """Render the rubric prompt for one dream.

    Parameters
    ----------
    spec : PromptSpec
        Prompt template.
    request : EvaluationRequest
        Dream to evaluate.

    Returns
    -------
    RenderedPrompt
    """
    variables = {
        "title": request.title,
        "description": request.description,
        "category": request.category,
        "original_prompt": request.original_prompt,
    }
    return RenderedPrompt(
        system=_env.from_string(spec.system_template).render(**variables).strip(),
        user=_env.from_string(spec.user_template).render(**variables).strip(),
        version=spec.version,
    )
