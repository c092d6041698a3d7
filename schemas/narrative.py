from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Tuple, get_args

from pydantic import BaseModel, Field, field_validator

NARRATIVE_SCHEMA_VERSION = "2"

Sentiment = Literal["up", "down", "flat", "unknown"]
SENTIMENTS: Tuple[str, ...] = get_args(Sentiment)

MIN_SECTIONS = 2
MAX_SECTIONS = 6
MAX_CITATIONS = 10


def _not_blank(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("must not be blank")
    return v


class Section(BaseModel):
    heading: str
    body: str

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("heading", "body")
    @classmethod
    def require_text(cls, v: str) -> str:
        return _not_blank(v)


class Citation(BaseModel):
    label: str
    url: str

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("label", "url")
    @classmethod
    def require_text(cls, v: str) -> str:
        return _not_blank(v)


class NarrativeBody(BaseModel):
    """What the model must produce."""
    title: str
    updatedLabel: str
    sentiment: Sentiment
    sections: List[Section] = Field(min_length=MIN_SECTIONS, max_length=MAX_SECTIONS)
    citations: List[Citation] = Field(max_length=MAX_CITATIONS)

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("title", "updatedLabel")
    @classmethod
    def require_text(cls, v: str) -> str:
        return _not_blank(v)


class NarrativeDocument(NarrativeBody):
    """What the API returns: the validated body plus the echoed symbol."""
    symbol: str


@dataclass(frozen=True)
class NarrativeSchema:
    """
    The structural contract shared by request construction and validation.
    `json_schema()` is sent to the model as a strict response format;
    `validate()` checks whatever comes back against the same definition.
    """
    name: str = "insight"
    version: str = NARRATIVE_SCHEMA_VERSION

    def json_schema(self) -> Dict[str, Any]:
        def obj(props: Dict[str, Any]) -> Dict[str, Any]:
            return {
                "type": "object",
                "additionalProperties": False,
                "properties": props,
                "required": list(props.keys()),
            }

        return obj({
            "title": {"type": "string"},
            "updatedLabel": {"type": "string"},
            "sentiment": {"type": "string", "enum": list(SENTIMENTS)},
            "sections": {
                "type": "array",
                "minItems": MIN_SECTIONS,
                "maxItems": MAX_SECTIONS,
                "items": obj({
                    "heading": {"type": "string"},
                    "body": {"type": "string"},
                }),
            },
            "citations": {
                "type": "array",
                "maxItems": MAX_CITATIONS,
                "items": obj({
                    "label": {"type": "string"},
                    "url": {"type": "string"},
                }),
            },
        })

    def response_format(self) -> Dict[str, Any]:
        return {
            "type": "json_schema",
            "json_schema": {
                "name": f"{self.name}_v{self.version}",
                "schema": self.json_schema(),
                "strict": True,
            },
        }

    def validate(self, data: Any) -> NarrativeBody:
        return NarrativeBody.model_validate(data)


NARRATIVE_SCHEMA = NarrativeSchema()
