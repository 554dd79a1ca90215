"""
Filter catalog for radar logic trees.

Every leaf of a radar's ``view`` or ``checks`` names one of the filters
registered here. A filter is either pushdown-capable (it can be written
as a SQL predicate over ``runs`` columns) or evaluator-backed (it needs
to look at the loaded run in Python, e.g. regex scans for PII or calls
to the external scoring service), and sometimes both. When both exist
the pushdown path is preferred.

Params are validated structurally with one pydantic model per filter.
The registry is built once at import time and is never mutated.
"""

from __future__ import annotations

import operator as op
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy import and_, false, func, not_, or_
from sqlalchemy.sql.elements import ColumnElement

from ..core.errors import FilterParamsError
from ..models.run import Run
from .scoring import get_scoring_client


Operator = Literal["gt", "gte", "lt", "lte", "eq"]
TextField = Literal["input", "output", "any"]

_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "gt": op.gt,
    "gte": op.ge,
    "lt": op.lt,
    "lte": op.le,
    "eq": op.eq,
}


def compare(left: Any, operator: str, right: Any) -> Any:
    """Apply a params operator to a SQL column or a plain Python value."""
    return _OPERATORS[operator](left, right)


@dataclass
class EvaluationOutcome:
    passed: bool
    details: Any = None


PredicateBuilder = Callable[[BaseModel], ColumnElement[bool]]
Evaluator = Callable[[Run, BaseModel], Awaitable[EvaluationOutcome]]


@dataclass(frozen=True)
class FilterDefinition:
    id: str
    params_model: type[BaseModel]
    predicate_builder: Optional[PredicateBuilder] = None
    evaluator: Optional[Evaluator] = None

    def __post_init__(self) -> None:
        if self.predicate_builder is None and self.evaluator is None:
            raise ValueError(f"Filter {self.id!r} needs a predicate builder or an evaluator")

    @property
    def supports_pushdown(self) -> bool:
        return self.predicate_builder is not None

    @property
    def supports_evaluation(self) -> bool:
        return self.evaluator is not None

    def parse_params(self, params: dict | None) -> BaseModel:
        try:
            return self.params_model.model_validate(params or {})
        except ValidationError as exc:
            raise FilterParamsError(self.id, str(exc)) from exc

    def build_predicate(self, params: dict | None) -> ColumnElement[bool]:
        if self.predicate_builder is None:
            raise TypeError(f"Filter {self.id!r} has no SQL predicate")
        return self.predicate_builder(self.parse_params(params))

    async def evaluate(self, run: Run, params: dict | None) -> EvaluationOutcome:
        if self.evaluator is None:
            raise TypeError(f"Filter {self.id!r} has no evaluator")
        return await self.evaluator(run, self.parse_params(params))


class FilterRegistry:
    """Ordered, read-only mapping of filter id to definition."""

    def __init__(self, definitions: Iterable[FilterDefinition]) -> None:
        self._filters: Dict[str, FilterDefinition] = {}
        for definition in definitions:
            if definition.id in self._filters:
                raise ValueError(f"Duplicate filter id {definition.id!r}")
            self._filters[definition.id] = definition

    def lookup(self, filter_id: str) -> Optional[FilterDefinition]:
        return self._filters.get(filter_id)

    def ids(self) -> List[str]:
        return list(self._filters)

    def __contains__(self, filter_id: object) -> bool:
        return filter_id in self._filters

    def __iter__(self) -> Iterator[FilterDefinition]:
        return iter(self._filters.values())

    def __len__(self) -> int:
        return len(self._filters)


class _Params(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Pushdown filters
# ---------------------------------------------------------------------------


class TypeParams(_Params):
    type: str


class StatusParams(_Params):
    status: str


class ModelParams(_Params):
    names: List[str]


class UsersParams(_Params):
    users: List[str]


class DurationParams(_Params):
    operator: Operator = "gt"
    duration: int  # milliseconds


class TokensParams(_Params):
    field: Literal["prompt", "completion", "total"] = "total"
    operator: Operator = "gt"
    tokens: int


class CostParams(_Params):
    operator: Operator = "gt"
    cost: float


class DateParams(_Params):
    operator: Literal["before", "after"]
    date: datetime


class SearchParams(_Params):
    field: TextField = "any"
    type: Literal["contains", "not_contains"] = "contains"
    text: str = Field(min_length=1)


class MetadataParams(_Params):
    key: str = Field(min_length=1)
    value: str


def _type_sql(p: TypeParams) -> ColumnElement[bool]:
    return Run.type == p.type


def _status_sql(p: StatusParams) -> ColumnElement[bool]:
    return Run.status == p.status


def _model_sql(p: ModelParams) -> ColumnElement[bool]:
    if not p.names:
        return false()
    return Run.name.in_(p.names)


def _users_sql(p: UsersParams) -> ColumnElement[bool]:
    if not p.users:
        return false()
    return Run.user_id.in_(p.users)


def _duration_sql(p: DurationParams) -> ColumnElement[bool]:
    return compare(Run.duration_ms, p.operator, p.duration)


def _tokens_sql(p: TokensParams) -> ColumnElement[bool]:
    if p.field == "prompt":
        column = Run.prompt_tokens
    elif p.field == "completion":
        column = Run.completion_tokens
    else:
        column = func.coalesce(Run.prompt_tokens, 0) + func.coalesce(Run.completion_tokens, 0)
    return compare(column, p.operator, p.tokens)


def _cost_sql(p: CostParams) -> ColumnElement[bool]:
    return compare(Run.cost, p.operator, p.cost)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _date_sql(p: DateParams) -> ColumnElement[bool]:
    cutoff = _naive_utc(p.date)
    if p.operator == "before":
        return Run.created_at < cutoff
    return Run.created_at > cutoff


def _text_columns(field: str) -> list:
    if field == "input":
        return [Run.input]
    if field == "output":
        return [Run.output]
    return [Run.input, Run.output]


def _search_sql(p: SearchParams) -> ColumnElement[bool]:
    contains = or_(*(column.icontains(p.text, autoescape=True) for column in _text_columns(p.field)))
    if p.type == "contains":
        return contains
    # NULL text never contains anything.
    return and_(
        *(
            or_(column.is_(None), not_(column.icontains(p.text, autoescape=True)))
            for column in _text_columns(p.field)
        )
    )


def _metadata_sql(p: MetadataParams) -> ColumnElement[bool]:
    return Run.meta[p.key].as_string() == p.value


# ---------------------------------------------------------------------------
# Evaluator filters
# ---------------------------------------------------------------------------


class PiiParams(_Params):
    field: TextField = "output"
    type: Literal["contains", "not_contains"] = "contains"


class RegexParams(_Params):
    field: TextField = "output"
    pattern: str = Field(min_length=1)
    type: Literal["matches", "not_matches"] = "matches"

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regular expression: {exc}") from exc
        return value


class LengthParams(_Params):
    field: TextField = "output"
    operator: Operator = "gt"
    length: int = Field(ge=0)


class SentimentParams(_Params):
    field: TextField = "output"
    min_score: float = 0.0


class ToneParams(_Params):
    field: TextField = "output"
    persona: str = Field(min_length=1)


EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
PHONE_RE = re.compile(r"(?<!\w)(?:\+?\d{1,3}[\s.-]?)?(?:\(\d{2,4}\)|\d{2,4})[\s.-]?\d{3,4}[\s.-]?\d{3,4}(?!\w)")
CARD_CANDIDATE_RE = re.compile(r"(?<!\d)(?:\d[ -]?){12,18}\d(?!\d)")


def luhn_valid(digits: str) -> bool:
    total = 0
    for index, char in enumerate(reversed(digits)):
        value = int(char)
        if index % 2 == 1:
            value *= 2
            if value > 9:
                value -= 9
        total += value
    return total % 10 == 0


def find_cards(text: str) -> List[str]:
    found: List[str] = []
    for match in CARD_CANDIDATE_RE.finditer(text):
        digits = re.sub(r"[ -]", "", match.group(0))
        if 13 <= len(digits) <= 19 and luhn_valid(digits):
            found.append(match.group(0))
    return found


def _pii_evaluator(finder: Callable[[str], List[str]]) -> Evaluator:
    async def _evaluate(run: Run, p: PiiParams) -> EvaluationOutcome:
        matches = finder(run.text_field(p.field))
        hit = bool(matches)
        passed = hit if p.type == "contains" else not hit
        return EvaluationOutcome(passed=passed, details={"matches": matches} if matches else None)

    return _evaluate


async def _regex_evaluate(run: Run, p: RegexParams) -> EvaluationOutcome:
    matches = re.findall(p.pattern, run.text_field(p.field))
    hit = bool(matches)
    passed = hit if p.type == "matches" else not hit
    return EvaluationOutcome(passed=passed, details={"count": len(matches)} if matches else None)


async def _length_evaluate(run: Run, p: LengthParams) -> EvaluationOutcome:
    length = len(run.text_field(p.field))
    return EvaluationOutcome(passed=bool(compare(length, p.operator, p.length)), details={"length": length})


async def _sentiment_evaluate(run: Run, p: SentimentParams) -> EvaluationOutcome:
    reply = await get_scoring_client().score("sentiment", run.text_field(p.field))
    score = float(reply.get("score", 0.0))
    return EvaluationOutcome(passed=score >= p.min_score, details={"score": score})


async def _tone_evaluate(run: Run, p: ToneParams) -> EvaluationOutcome:
    reply = await get_scoring_client().score("tone", run.text_field(p.field), {"persona": p.persona})
    label = str(reply.get("label") or "")
    return EvaluationOutcome(
        passed=label.strip().lower() == p.persona.strip().lower(),
        details={"label": label, "reason": reply.get("reason")},
    )


DEFAULT_FILTERS: List[FilterDefinition] = [
    FilterDefinition("type", TypeParams, predicate_builder=_type_sql),
    FilterDefinition("status", StatusParams, predicate_builder=_status_sql),
    FilterDefinition("model", ModelParams, predicate_builder=_model_sql),
    FilterDefinition("users", UsersParams, predicate_builder=_users_sql),
    FilterDefinition("duration", DurationParams, predicate_builder=_duration_sql),
    FilterDefinition("tokens", TokensParams, predicate_builder=_tokens_sql),
    FilterDefinition("cost", CostParams, predicate_builder=_cost_sql),
    FilterDefinition("date", DateParams, predicate_builder=_date_sql),
    FilterDefinition("search", SearchParams, predicate_builder=_search_sql),
    FilterDefinition("metadata", MetadataParams, predicate_builder=_metadata_sql),
    FilterDefinition("email", PiiParams, evaluator=_pii_evaluator(EMAIL_RE.findall)),
    FilterDefinition("phone", PiiParams, evaluator=_pii_evaluator(PHONE_RE.findall)),
    FilterDefinition("cc", PiiParams, evaluator=_pii_evaluator(find_cards)),
    FilterDefinition("regex", RegexParams, evaluator=_regex_evaluate),
    FilterDefinition("length", LengthParams, evaluator=_length_evaluate),
    FilterDefinition("sentiment", SentimentParams, evaluator=_sentiment_evaluate),
    FilterDefinition("tone", ToneParams, evaluator=_tone_evaluate),
]

DEFAULT_REGISTRY = FilterRegistry(DEFAULT_FILTERS)
