"""
Logic trees used by radars for their scope (``view``) and ``checks``.

On the wire a tree is JSON: a combinator is a list whose head is
``"AND"`` or ``"OR"`` followed by operands, a leaf is
``{"id": <filter id>, "params": {...}}``, and a bare ``"AND"``/``"OR"``
string is an identity element (true for AND, false for OR). Parsing
turns that shape into the frozen dataclasses below so the compiler and
the interpreter never inspect raw strings or lists.

Trees are also embedded in links and saved views through ``serialize``,
which produces a deterministic URL-safe token.
"""

from __future__ import annotations

import base64
import binascii
import copy
import json
from dataclasses import dataclass, field
from typing import Any, Iterator, Union

from ..core.errors import LogicParseError

AND = "AND"
OR = "OR"
OPERATORS = (AND, OR)
# Deeper trees are rejected as malformed.
MAX_DEPTH = 64


@dataclass(frozen=True)
class Identity:
    op: str

    @property
    def value(self) -> bool:
        return self.op == AND


@dataclass(frozen=True)
class Leaf:
    id: str
    params: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Nested params never alias the caller's JSON.
        object.__setattr__(self, "params", copy.deepcopy(dict(self.params)))

    def __hash__(self) -> int:
        return hash((self.id, json.dumps(self.params, sort_keys=True, default=str)))


@dataclass(frozen=True)
class Combinator:
    op: str
    operands: tuple = ()


LogicNode = Union[Combinator, Leaf, Identity]

EMPTY_AND = Combinator(AND, ())


def _nesting_depth(value: Any) -> int:
    deepest = 0
    stack = [(value, 1)]
    while stack:
        item, depth = stack.pop()
        if isinstance(item, dict):
            children = item.values()
        elif isinstance(item, list):
            children = item
        else:
            continue
        deepest = max(deepest, depth)
        if deepest > MAX_DEPTH:
            break
        stack.extend((child, depth + 1) for child in children)
    return deepest


def parse_logic(data: Any) -> LogicNode:
    """Parse the JSON wire form of a logic tree.

    Raises ``LogicParseError`` on anything that is not a well-formed tree,
    including trees or params nested deeper than ``MAX_DEPTH``.
    """
    if _nesting_depth(data) > MAX_DEPTH:
        raise LogicParseError(f"Logic tree is nested deeper than {MAX_DEPTH} levels")
    return _parse(data)


def _parse(data: Any) -> LogicNode:
    if isinstance(data, str):
        if data not in OPERATORS:
            raise LogicParseError(f"Unknown logic operator {data!r}")
        return Identity(data)
    if isinstance(data, list):
        if not data:
            raise LogicParseError("Logic combinator must start with AND or OR")
        head, *rest = data
        if head not in OPERATORS:
            raise LogicParseError(f"Logic combinator must start with AND or OR, got {head!r}")
        return Combinator(head, tuple(_parse(item) for item in rest))
    if isinstance(data, dict):
        filter_id = data.get("id")
        if not isinstance(filter_id, str) or not filter_id:
            raise LogicParseError("Logic leaf requires a string 'id'")
        params = data.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise LogicParseError(f"Params of leaf {filter_id!r} must be an object")
        return Leaf(filter_id, params)
    raise LogicParseError(f"Unsupported logic element of type {type(data).__name__}")


def to_wire(node: LogicNode) -> Any:
    """Inverse of ``parse_logic``."""
    if isinstance(node, Identity):
        return node.op
    if isinstance(node, Leaf):
        return {"id": node.id, "params": copy.deepcopy(node.params)}
    return [node.op, *(to_wire(operand) for operand in node.operands)]


def serialize(node: LogicNode) -> str:
    payload = json.dumps(to_wire(node), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    token = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")
    return token.rstrip("=")


def deserialize(text: str) -> LogicNode:
    """Decode a ``serialize`` token. Raises ``LogicParseError`` when malformed."""
    if not isinstance(text, str) or not text:
        raise LogicParseError("Empty logic token")
    padded = text + "=" * (-len(text) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError, RecursionError) as exc:
        raise LogicParseError(f"Malformed logic token: {exc}") from exc
    return parse_logic(data)


def deserialize_or_default(text: str | None) -> LogicNode:
    """Lenient variant for request parameters: falls back to an empty AND."""
    if not text:
        return EMPTY_AND
    try:
        return deserialize(text)
    except LogicParseError:
        return EMPTY_AND


def iter_leaves(node: LogicNode) -> Iterator[Leaf]:
    if isinstance(node, Leaf):
        yield node
    elif isinstance(node, Combinator):
        for operand in node.operands:
            yield from iter_leaves(operand)


def has_non_pushdown_leaf(node: LogicNode, registry) -> bool:
    """True if any leaf references a filter that has no SQL builder.

    Identity nodes and unknown filter ids never count: unknown ids are
    default-allow and compile to ``true()``.
    """
    for leaf in iter_leaves(node):
        definition = registry.lookup(leaf.id)
        if definition is not None and not definition.supports_pushdown:
            return True
    return False
