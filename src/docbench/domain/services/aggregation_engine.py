"""Aggregation engine: executes decoded pipelines over document sequences.

Stages run strictly in the order given, each consuming the previous stage's
output. Nothing is reordered: a ``$limit`` followed by a ``$skip`` is two
independent slices applied in that sequence.

Group keys and accumulator operands are expressions: a literal, a
``"$field"`` reference, or a mapping of sub-expressions (compound keys).
Groups are emitted in order of first appearance.

Output documents never carry a stored identity field unless a ``$group`` or
``$project`` stage put one there explicitly.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from numbers import Real
from typing import Any

from docbench.domain.services.field_path import get_path
from docbench.domain.services.ordering import contains, sort_compare, sort_documents
from docbench.domain.services.query_matcher import evaluate
from docbench.domain.value_objects.identifiers import (
    FIELD_REF_PREFIX,
    ID_FIELD,
    MISSING,
    is_field_ref,
)
from docbench.domain.value_objects.pipeline import (
    Accumulator,
    AccumulatorOp,
    CountStage,
    GroupStage,
    LimitStage,
    MatchStage,
    ProjectStage,
    SkipStage,
    SortStage,
    Stage,
    parse_pipeline,
)

Document = Mapping[str, Any]

_STAGE_TYPES = (
    MatchStage,
    GroupStage,
    SortStage,
    LimitStage,
    SkipStage,
    ProjectStage,
    CountStage,
)


def evaluate_expression(document: Document, expression: Any) -> Any:
    """Resolve an expression against a document.

    ``"$field"`` resolves to the field value (``None`` if missing), a mapping
    resolves each of its values, anything else is a literal.
    """
    if is_field_ref(expression):
        value = get_path(document, expression[len(FIELD_REF_PREFIX):])
        return None if value is MISSING else value
    if isinstance(expression, Mapping):
        return {key: evaluate_expression(document, sub) for key, sub in expression.items()}
    return expression


def _group_token(value: Any) -> Any:
    """Hashable stand-in for a group key, respecting strict equality."""
    if isinstance(value, Mapping):
        return ("map", tuple((k, _group_token(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return ("seq", tuple(_group_token(v) for v in value))
    if isinstance(value, bool):
        return ("bool", value)
    try:
        hash(value)
    except TypeError:
        return ("repr", repr(value))
    return ("value", value)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


@dataclass
class _AccumulatorState:
    """Running state for one accumulator within one group."""

    spec: Accumulator
    total: float = 0
    count: int = 0
    value: Any = MISSING
    items: list[Any] = field(default_factory=list)

    def add(self, document: Document) -> None:
        op, operand = self.spec.op, self.spec.operand
        self.count += 1

        if op is AccumulatorOp.COUNT:
            return

        if op is AccumulatorOp.SUM:
            if is_field_ref(operand):
                resolved = evaluate_expression(document, operand)
                self.total += resolved if _is_number(resolved) else 0
            elif _is_number(operand):
                self.total += operand
            return

        resolved = evaluate_expression(document, operand)

        if op is AccumulatorOp.AVG:
            self.total += resolved if _is_number(resolved) else 0
        elif op is AccumulatorOp.MIN:
            if resolved is not None and (
                self.value is MISSING or sort_compare(resolved, self.value) < 0
            ):
                self.value = resolved
        elif op is AccumulatorOp.MAX:
            if resolved is not None and (
                self.value is MISSING or sort_compare(resolved, self.value) > 0
            ):
                self.value = resolved
        elif op is AccumulatorOp.ADD_TO_SET:
            if not contains(self.items, resolved):
                self.items.append(resolved)
        elif op is AccumulatorOp.PUSH:
            self.items.append(resolved)
        elif op is AccumulatorOp.FIRST:
            if self.value is MISSING:
                self.value = resolved
        elif op is AccumulatorOp.LAST:
            self.value = resolved

    def result(self) -> Any:
        op = self.spec.op
        if op is AccumulatorOp.COUNT:
            return self.count
        if op is AccumulatorOp.SUM:
            return self.total
        if op is AccumulatorOp.AVG:
            return self.total / self.count if self.count else None
        if op in (AccumulatorOp.ADD_TO_SET, AccumulatorOp.PUSH):
            return list(self.items)
        return None if self.value is MISSING else self.value


class AggregationEngine:
    """Runs aggregation pipelines over in-memory documents.

    Usage:
        engine = AggregationEngine()
        engine.run(documents, [
            {"$match": {"age": {"$gte": 25}}},
            {"$group": {"_id": None, "count": {"$sum": 1}}},
        ])
        # [{"_id": None, "count": 2}]

    Args:
        strict: Reject unknown stages, operators and accumulators instead of
            skipping them.
    """

    def __init__(self, strict: bool = False) -> None:
        self._strict = strict

    def compile(self, pipeline: Sequence[Mapping[str, Any]]) -> tuple[Stage, ...]:
        return parse_pipeline(pipeline, self._strict)

    def run(
        self,
        documents: Iterable[Document],
        pipeline: Sequence[Mapping[str, Any]] | tuple[Stage, ...],
    ) -> list[dict[str, Any]]:
        """Execute ``pipeline`` over ``documents``.

        Args:
            documents: Input documents; never mutated.
            pipeline: Stage documents or already compiled stages.

        Returns:
            The output of the last stage.
        """
        stages = pipeline if _is_compiled(pipeline) else self.compile(pipeline)
        current: list[Document] = list(documents)
        synthesized = False

        for stage in stages:
            if isinstance(stage, MatchStage):
                current = [doc for doc in current if evaluate(doc, stage.query)]
            elif isinstance(stage, GroupStage):
                current = _group(current, stage)
                synthesized = True
            elif isinstance(stage, SortStage):
                current = sort_documents(current, stage.keys)
            elif isinstance(stage, SkipStage):
                current = current[stage.count:]
            elif isinstance(stage, LimitStage):
                current = current[:stage.count]
            elif isinstance(stage, ProjectStage):
                current = [_project(doc, stage) for doc in current]
                synthesized = True
            elif isinstance(stage, CountStage):
                current = [{stage.name: len(current)}]
                synthesized = True
            else:
                raise TypeError(f"Unhandled stage type: {type(stage).__name__}")

        if synthesized:
            return [dict(doc) for doc in current]
        return [_without_identity(doc) for doc in current]


def _is_compiled(pipeline: Sequence[Any]) -> bool:
    return (
        isinstance(pipeline, tuple)
        and bool(pipeline)
        and all(isinstance(stage, _STAGE_TYPES) for stage in pipeline)
    )


def _group(documents: list[Document], stage: GroupStage) -> list[Document]:
    groups: dict[Any, tuple[Any, list[_AccumulatorState]]] = {}
    for doc in documents:
        key = evaluate_expression(doc, stage.key)
        token = _group_token(key)
        entry = groups.get(token)
        if entry is None:
            entry = (key, [_AccumulatorState(acc) for acc in stage.accumulators])
            groups[token] = entry
        for state in entry[1]:
            state.add(doc)

    output: list[Document] = []
    for key, states in groups.values():
        result: dict[str, Any] = {ID_FIELD: key}
        for state in states:
            result[state.spec.name] = state.result()
        output.append(result)
    return output


def _project(document: Document, stage: ProjectStage) -> Document:
    projected: dict[str, Any] = {}
    for name, source in stage.fields:
        if source is True:
            value = get_path(document, name)
            if value is not MISSING:
                projected[name] = value
        else:
            projected[name] = evaluate_expression(document, source)
    return projected


def _without_identity(document: Document) -> dict[str, Any]:
    return {key: value for key, value in document.items() if key != ID_FIELD}


def aggregate(
    documents: Iterable[Document],
    pipeline: Sequence[Mapping[str, Any]],
    strict: bool = False,
) -> list[dict[str, Any]]:
    """Run ``pipeline`` over ``documents`` with a throwaway engine."""
    return AggregationEngine(strict).run(documents, pipeline)
