"""Extraction and validation of the strict-JSON scoring contract."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dream_evaluate.errors import ResponseParseError, ResponseValidationError
from dream_evaluate.models import DimensionScores

_decoder = json.JSONDecoder()


class ScoreResponse(BaseModel):
    """Fields a provider must return, all scores within ``[0, 100]``.

    ``overallScore`` and ``impossibilityScore`` may be present in the reply
    but are ignored; both are recomputed from the dimensions. Scores and
    confidence must be JSON numbers; strings and booleans are rejected.
    """

    model_config = ConfigDict(extra="ignore")

    comprehension: float = Field(alias="comprehensionScore", ge=0, le=100, strict=True)
    quality: float = Field(alias="qualityScore", ge=0, le=100, strict=True)
    innovation: float = Field(alias="innovationScore", ge=0, le=100, strict=True)
    feasibility: float = Field(alias="feasibilityScore", ge=0, le=100, strict=True)
    confidence: float = Field(ge=0, le=100, strict=True)
    reasoning: str = Field(strict=True)

    def dimension_scores(self) -> DimensionScores:
        return DimensionScores(
            comprehension=self.comprehension,
            quality=self.quality,
            innovation=self.innovation,
            feasibility=self.feasibility,
        )


def extract_json_object(text: str) -> dict[str, Any]:
    """Return the first balanced JSON object embedded in *text*.

    Models often wrap the JSON in prose or code fences; every ``{`` is tried
    as a starting point until one decodes to an object.

    Raises
    ------
    ResponseParseError
        If no JSON object can be decoded.
    """
    start = text.find("{")
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except (ValueError, RecursionError):
            # malformed, too deeply nested, or an oversized integer literal
            pass
        else:
            if isinstance(value, dict):
                return value
        start = text.find("{", start + 1)

    msg = "No JSON object found in provider response"
    raise ResponseParseError(msg, raw_text=text)


def parse_score_response(text: str) -> ScoreResponse:
    """Extract and validate a scoring reply.

    Parameters
    ----------
    text : str
        Raw provider output.

    Returns
    -------
    ScoreResponse

    Raises
    ------
    ResponseParseError
        If no JSON object is present.
    ResponseValidationError
        If a required field is missing or a score is outside ``[0, 100]``.
    """
    data = extract_json_object(text)
    try:
        return ScoreResponse.model_validate(data)
    except ValidationError as exc:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        msg = "Invalid evaluation response: " + "; ".join(errors)
        raise ResponseValidationError(msg, errors=errors) from exc
