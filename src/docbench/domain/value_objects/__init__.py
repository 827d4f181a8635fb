"""Value objects for the document engine domain.

Value objects are immutable types decoded once from the wire-shaped
documents (filters, update specs, pipelines) that cross the storage boundary.

Exports:
    Identifiers:
        - DocumentId, ID_FIELD, MISSING, is_field_ref

    Queries:
        - Query, FieldCondition, LogicalCondition and predicate variants
        - parse_query, UnsupportedOperatorError, InvalidQueryError

    Updates:
        - UpdateSpec, OperatorUpdate, ReplacementUpdate, FieldUpdate
        - parse_update, InvalidUpdateError

    Pipelines:
        - Stage variants, Accumulator, SortKey
        - parse_pipeline, parse_sort
"""

from docbench.domain.value_objects.identifiers import (
    FIELD_REF_PREFIX,
    ID_FIELD,
    MISSING,
    DocumentId,
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
    SortKey,
    SortStage,
    Stage,
    parse_pipeline,
    parse_sort,
)
from docbench.domain.value_objects.query import (
    MATCH_ALL,
    Compare,
    ComparisonOp,
    Equals,
    Exists,
    FieldCondition,
    In,
    InvalidQueryError,
    LogicalCondition,
    LogicalOp,
    NotEquals,
    NotIn,
    Predicate,
    Query,
    UnsupportedOperatorError,
    parse_query,
)
from docbench.domain.value_objects.update import (
    FieldUpdate,
    InvalidUpdateError,
    OperatorUpdate,
    ReplacementUpdate,
    UpdateOperator,
    UpdateSpec,
    parse_update,
)

__all__ = [
    # Identifiers
    "DocumentId",
    "ID_FIELD",
    "FIELD_REF_PREFIX",
    "MISSING",
    "is_field_ref",
    # Queries
    "Query",
    "MATCH_ALL",
    "FieldCondition",
    "LogicalCondition",
    "LogicalOp",
    "Predicate",
    "Equals",
    "NotEquals",
    "Compare",
    "ComparisonOp",
    "In",
    "NotIn",
    "Exists",
    "parse_query",
    "UnsupportedOperatorError",
    "InvalidQueryError",
    # Updates
    "UpdateSpec",
    "UpdateOperator",
    "OperatorUpdate",
    "ReplacementUpdate",
    "FieldUpdate",
    "parse_update",
    "InvalidUpdateError",
    # Pipelines
    "Stage",
    "MatchStage",
    "GroupStage",
    "SortStage",
    "LimitStage",
    "SkipStage",
    "ProjectStage",
    "CountStage",
    "Accumulator",
    "AccumulatorOp",
    "SortKey",
    "parse_pipeline",
    "parse_sort",
]
