from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .config import HARD_MAX_BATCH_SIZE


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


Score = Annotated[float, Field(allow_inf_nan=False)]
# Untracked detail fields: scalars are wrapped, not rejected.
DetailList = Annotated[List[Any], BeforeValidator(_as_list)]
Justification = Annotated[str, BeforeValidator(_as_text)]
IterationStatus = Literal["success", "placeholder"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuantitativeScores(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    communication_score: Score
    persuasiveness_score: Score
    professionalism_score: Score
    call_objective_score: Score
    language_quality_score: Score
    overall_score: Score
    communication_justification: Justification = ""
    persuasiveness_justification: Justification = ""
    professionalism_justification: Justification = ""
    call_objective_justification: Justification = ""
    language_quality_justification: Justification = ""


class WordUsage(CamelModel):
    count: Any = 0
    instances: DetailList = Field(default_factory=list)
    percentage: Score = 0.0
    citation: DetailList = Field(default_factory=list)


class SentenceStarters(CamelModel):
    most_used: DetailList = Field(default_factory=list)
    repetition_count: Any = 0
    variety_score: Score = 0.0
    citation: DetailList = Field(default_factory=list)


class LanguageAnalysis(CamelModel):
    filler_words: WordUsage = Field(default_factory=WordUsage)
    weak_words: WordUsage = Field(default_factory=WordUsage)
    sentence_starters: SentenceStarters = Field(default_factory=SentenceStarters)


class IterationPayload(CamelModel):
    """Shape a model response must have to count as a genuine iteration result."""

    # Extra top-level keys (qualitative notes, recommendations) are kept verbatim.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    quantitative: QuantitativeScores
    language_analysis: LanguageAnalysis


class IterationResult(IterationPayload):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    iteration: int
    status: IterationStatus
    error: Optional[str] = None

    @classmethod
    def from_payload(cls, iteration: int, payload: IterationPayload) -> IterationResult:
        return cls.model_validate(
            {
                **payload.model_dump(by_alias=True),
                "iteration": iteration,
                "status": "success",
            }
        )

    @classmethod
    def placeholder(cls, iteration: int, error: Optional[str] = None) -> IterationResult:
        return cls(
            iteration=iteration,
            status="placeholder",
            error=error,
            quantitative=QuantitativeScores(
                communication_score=0,
                communication_justification="Sample communication assessment",
                persuasiveness_score=0,
                persuasiveness_justification="Sample persuasiveness assessment",
                professionalism_score=0,
                professionalism_justification="Sample professionalism assessment",
                call_objective_score=0,
                call_objective_justification="Sample objective assessment",
                language_quality_score=0,
                language_quality_justification="Sample language quality assessment",
                overall_score=0,
            ),
            language_analysis=LanguageAnalysis(),
        )

    @property
    def is_placeholder(self) -> bool:
        return self.status == "placeholder"


class EvaluationRequest(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        protected_namespaces=(),
    )

    system_prompt: str
    user_prompt: str
    model_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("modelId", "model", "model_id"),
    )
    iteration_count: int = Field(
        ge=1,
        validation_alias=AliasChoices("iterationCount", "iterations", "iteration_count"),
    )
    batch_size: int = Field(
        default=5,
        validation_alias=AliasChoices("batchSize", "batch_size"),
    )

    @field_validator("batch_size", mode="after")
    @classmethod
    def clamp_batch_size(cls, value: int) -> int:
        return min(max(value, 1), HARD_MAX_BATCH_SIZE)

    @field_validator("model_id", mode="before")
    @classmethod
    def normalize_model_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        text_value = str(value).strip()
        return text_value if text_value else None


class StatisticalSummary(CamelModel):
    mean: float
    median: float
    mode: List[float]
    standard_deviation: float
    variance: float
    min: float
    max: float
    range: float


class EvaluationResults(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    iterations: int
    raw_results: List[IterationResult]
    statistics: Dict[str, StatisticalSummary]
    placeholder_count: int = 0


class QualitativeEvaluation(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    output_quality: str = ""
    objective_fulfillment: str = ""
    hallucination_check: str = ""
    reflection: str = ""
    overall_score: float = 0
    recommendations: List[Any] = Field(default_factory=list)


class LLMOutputRequest(CamelModel):
    system_prompt: str
    user_prompt: str
    model: Optional[str] = None


class QualitativeRequest(CamelModel):
    original_prompt: str
    llm_output: str
    system_prompt: str = ""
