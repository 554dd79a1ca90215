"""
Compile a logic tree into a single SQL predicate over ``runs``.

Only defined for trees whose every known leaf has a predicate builder;
callers check ``has_non_pushdown_leaf`` first.
"""

from __future__ import annotations

from sqlalchemy import and_, false, or_, true
from sqlalchemy.sql.elements import ColumnElement

from ..core.errors import LogicCompileError
from .filters import DEFAULT_REGISTRY, FilterRegistry
from .logic import AND, Identity, Leaf, LogicNode


def compile_logic(node: LogicNode, registry: FilterRegistry = DEFAULT_REGISTRY) -> ColumnElement[bool]:
    if isinstance(node, Identity):
        return true() if node.value else false()

    if isinstance(node, Leaf):
        definition = registry.lookup(node.id)
        if definition is None:
            # Unknown filters are default-allow.
            return true()
        if not definition.supports_pushdown:
            raise LogicCompileError(f"Filter {node.id!r} cannot be expressed in SQL")
        return definition.build_predicate(node.params)

    clauses = [compile_logic(operand, registry) for operand in node.operands]
    if node.op == AND:
        return and_(true(), *clauses)
    return or_(false(), *clauses)
