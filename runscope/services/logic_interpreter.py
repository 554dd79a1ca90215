"""
Per-run evaluation of logic trees that cannot be compiled to one SQL predicate.

Pushdown-capable leaves are still answered by the database through a
single-run existence query; evaluator leaves are awaited. ``OR`` stops
at the first passing operand. A nested ``AND`` gathers all of its
operands concurrently and does not short-circuit. The job-level entry
point ``check_run`` walks the top-level operands sequentially and stops
at the first decisive result in either direction.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from ..models.run import Run
from .filters import DEFAULT_REGISTRY, FilterRegistry
from .logic import AND, OR, Combinator, Identity, Leaf, LogicNode
from .run_store import RunStore


logger = logging.getLogger("logic_interpreter")


@dataclass
class CheckOutcome:
    passed: bool
    filter_id: Optional[str] = None
    details: Any = None

    def to_dict(self) -> dict:
        payload: dict = {"passed": self.passed}
        if self.filter_id is not None:
            payload["filterId"] = self.filter_id
        if self.details is not None:
            payload["details"] = _details_to_json(self.details)
        return payload


def _details_to_json(details: Any) -> Any:
    if isinstance(details, CheckOutcome):
        return details.to_dict()
    if isinstance(details, (list, tuple)):
        return [_details_to_json(item) for item in details]
    return details


class LogicInterpreter:
    def __init__(self, store: RunStore, registry: FilterRegistry = DEFAULT_REGISTRY) -> None:
        self.store = store
        self.registry = registry

    async def evaluate(self, run: Run, node: LogicNode) -> CheckOutcome:
        if isinstance(node, Identity):
            return CheckOutcome(passed=node.value)
        if isinstance(node, Leaf):
            return await self.evaluate_leaf(run, node)
        if node.op == OR:
            for operand in node.operands:
                result = await self.evaluate(run, operand)
                if result.passed:
                    return CheckOutcome(passed=True, details=[result])
            # Unreached operands are not run; each gets a failing placeholder.
            return CheckOutcome(passed=False, details=[CheckOutcome(passed=False) for _ in node.operands])
        results = await asyncio.gather(*(self.evaluate(run, operand) for operand in node.operands))
        return CheckOutcome(passed=all(r.passed for r in results), details=list(results))

    async def evaluate_leaf(self, run: Run, leaf: Leaf) -> CheckOutcome:
        definition = self.registry.lookup(leaf.id)
        if definition is None:
            logger.debug("Unknown filter id=%s treated as pass run_id=%s", leaf.id, run.id)
            return CheckOutcome(passed=True)
        if definition.supports_pushdown:
            predicate = definition.build_predicate(leaf.params)
            return CheckOutcome(passed=self.store.run_matches(run.id, predicate), filter_id=leaf.id)
        outcome = await definition.evaluate(run, leaf.params)
        return CheckOutcome(passed=bool(outcome.passed), filter_id=leaf.id, details=outcome.details)

    async def check_run(self, run: Run, checks: LogicNode) -> Tuple[bool, List[CheckOutcome]]:
        """Evaluate a radar's top-level checks sequentially.

        ``OR`` stops at the first pass, ``AND`` at the first failure. A
        top-level leaf is treated as a one-operand ``AND``.
        """
        if isinstance(checks, Identity):
            return checks.value, []
        if isinstance(checks, Leaf):
            checks = Combinator(AND, (checks,))

        outcomes: List[CheckOutcome] = []
        if checks.op == OR:
            for operand in checks.operands:
                result = await self.evaluate(run, operand)
                outcomes.append(result)
                if result.passed:
                    return True, outcomes
            return False, outcomes

        for operand in checks.operands:
            result = await self.evaluate(run, operand)
            outcomes.append(result)
            if not result.passed:
                return False, outcomes
        return True, outcomes
