"""Rule expression evaluator for offer item/order conditions.

Offers carry small free-text rules, for example:
- "item.CategoryID == '123'"
- "item.Price > 100"
- "order.OrderSubtotal >= 50"
- "item.SKUID in ['SKU-1', 'SKU-2']"
- "item.ProductID == 'PROD-123' and item.Quantity >= 2"

Grammar (lowest to highest precedence):
    expr       := and_expr (("or" | "OR") and_expr)*
    and_expr   := atom (("and" | "AND") atom)*
    atom       := "(" expr ")" | value OP value | value "in" "[" literals "]"
    value      := 'string' | "string" | number | true | false | root.Field

Rules are evaluated against a RuleContext holding an item and/or an order.
Only a fixed set of fields is addressable (see ITEM_FIELDS / ORDER_FIELDS);
anything else fails loudly so a misconfigured offer never silently no-ops.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Callable, Protocol, Union

from promo_engine.services.offer_model import OfferContext, OfferItem


class RuleError(RuntimeError):
    """Base error for rule parsing/evaluation."""


class RuleSyntaxError(RuleError):
    """Rule text could not be parsed."""


class RuleEvaluationError(RuleError):
    """Rule parsed but could not be evaluated against the context."""


# ============================================================
# Variable context
# ============================================================

ITEM_FIELDS: dict[str, Callable[[OfferItem], object]] = {
    "ItemID": lambda item: item.item_id,
    "SKUID": lambda item: item.sku_id,
    "CategoryID": lambda item: item.category_id,
    "Price": lambda item: item.price,
    "SalePrice": lambda item: item.sale_price,
    "Quantity": lambda item: item.quantity,
    "Subtotal": lambda item: item.subtotal,
    "ProductID": lambda item: item.product_id,
}

ORDER_FIELDS: dict[str, Callable[[OfferContext], object]] = {
    "OrderTotal": lambda order: order.order_total,
    "OrderSubtotal": lambda order: order.order_subtotal,
    "CustomerID": lambda order: order.customer_id,
}


@dataclass(frozen=True)
class RuleContext:
    """Variables visible to a rule: `item` and/or `order`."""

    item: OfferItem | None = None
    order: OfferContext | None = None

    @classmethod
    def for_item(cls, item: OfferItem, order: OfferContext) -> "RuleContext":
        return cls(item=item, order=order)

    @classmethod
    def for_order(cls, order: OfferContext) -> "RuleContext":
        return cls(order=order)

    def resolve(self, root: str, field_name: str) -> object:
        if root == "item":
            if self.item is None:
                raise RuleEvaluationError("key not found in context: item")
            getter = ITEM_FIELDS.get(field_name)
            if getter is None:
                raise RuleEvaluationError(f"unknown field: item.{field_name}")
            return getter(self.item)
        if root == "order":
            if self.order is None:
                raise RuleEvaluationError("key not found in context: order")
            order_getter = ORDER_FIELDS.get(field_name)
            if order_getter is None:
                raise RuleEvaluationError(f"unknown field: order.{field_name}")
            return order_getter(self.order)
        raise RuleEvaluationError(f"key not found in context: {root}")


class RuleEvaluator(Protocol):
    """Capability injected into the offer processor."""

    def evaluate(self, expression: str, context: RuleContext) -> bool: ...


# ============================================================
# Tokenizer
# ============================================================

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    | (?P<string>'[^']*'|"[^"]*")
    | (?P<op>>=|<=|==|!=|>|<)
    | (?P<number>[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?(?![A-Za-z_]))
    | (?P<word>[A-Za-z_][A-Za-z0-9_.]*)
    | (?P<punct>[\[\](),])
    """,
    re.VERBOSE,
)

_KEYWORDS = {"and": "AND", "AND": "AND", "or": "OR", "OR": "OR", "in": "IN"}


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    pos: int


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise RuleSyntaxError(f"unexpected character {text[pos]!r} at {pos} in: {text}")
        kind = match.lastgroup or ""
        value = match.group()
        if kind == "word" and value in _KEYWORDS:
            kind = _KEYWORDS[value]
        elif kind == "punct":
            kind = value
        if kind != "ws":
            tokens.append(_Token(kind=kind, text=value, pos=pos))
        pos = match.end()
    tokens.append(_Token(kind="eof", text="", pos=len(text)))
    return tokens


# ============================================================
# AST
# ============================================================


@dataclass(frozen=True)
class Literal:
    value: object


@dataclass(frozen=True)
class Path:
    root: str
    field: str


Operand = Union[Literal, Path]


@dataclass(frozen=True)
class Compare:
    op: str
    left: Operand
    right: Operand


@dataclass(frozen=True)
class Membership:
    left: Operand
    values: tuple[str, ...]


@dataclass(frozen=True)
class AllOf:
    terms: tuple["Node", ...]


@dataclass(frozen=True)
class AnyOf:
    terms: tuple["Node", ...]


Node = Union[Compare, Membership, AllOf, AnyOf]


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = _tokenize(text)
        self.index = 0

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def _advance(self) -> _Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _expect(self, kind: str) -> _Token:
        if self.current.kind != kind:
            raise self._error(f"expected {kind!r}")
        return self._advance()

    def _error(self, message: str) -> RuleSyntaxError:
        token = self.current
        found = token.text or "end of expression"
        return RuleSyntaxError(f"{message}, found {found!r} at {token.pos} in: {self.text}")

    def parse(self) -> Node:
        node = self._parse_or()
        if self.current.kind != "eof":
            raise self._error("unexpected token")
        return node

    def _parse_or(self) -> Node:
        terms = [self._parse_and()]
        while self.current.kind == "OR":
            self._advance()
            terms.append(self._parse_and())
        return terms[0] if len(terms) == 1 else AnyOf(tuple(terms))

    def _parse_and(self) -> Node:
        terms = [self._parse_atom()]
        while self.current.kind == "AND":
            self._advance()
            terms.append(self._parse_atom())
        return terms[0] if len(terms) == 1 else AllOf(tuple(terms))

    def _parse_atom(self) -> Node:
        if self.current.kind == "(":
            self._advance()
            node = self._parse_or()
            self._expect(")")
            return node

        left = self._parse_operand()
        if self.current.kind == "IN":
            self._advance()
            return Membership(left=left, values=self._parse_list())
        if self.current.kind == "op":
            op = self._advance().text
            return Compare(op=op, left=left, right=self._parse_operand())
        raise self._error("expected comparison operator or 'in'")

    def _parse_operand(self) -> Operand:
        token = self.current
        if token.kind == "string":
            self._advance()
            return Literal(token.text[1:-1])
        if token.kind == "number":
            self._advance()
            return Literal(Decimal(token.text))
        if token.kind == "word":
            self._advance()
            if token.text == "true":
                return Literal(True)
            if token.text == "false":
                return Literal(False)
            root, sep, field_name = token.text.partition(".")
            if not sep or not field_name:
                raise RuleSyntaxError(f"invalid path: {token.text} in: {self.text}")
            return Path(root=root, field=field_name)
        raise self._error("expected a value")

    def _parse_list(self) -> tuple[str, ...]:
        if self.current.kind != "[":
            raise self._error("invalid array syntax, expected '['")
        self._advance()
        values: list[str] = []
        while self.current.kind != "]":
            token = self._advance()
            if token.kind == "string":
                values.append(token.text[1:-1])
            elif token.kind == "number":
                values.append(format_value(Decimal(token.text)))
            elif token.kind == "word":
                values.append(token.text)
            else:
                self.index -= 1
                raise self._error("invalid array element")
            if self.current.kind == ",":
                self._advance()
            elif self.current.kind != "]":
                raise self._error("expected ',' or ']'")
        self._advance()
        return tuple(values)


@lru_cache(maxsize=1024)
def parse_rule(expression: str) -> Node:
    """Parse rule text into an immutable AST (cached by text)."""
    return _Parser(expression).parse()


# ============================================================
# Evaluation
# ============================================================


def format_value(value: object) -> str:
    """String form used by `==`, `!=` and `in`.

    Numbers drop trailing zeros so a price of 20.00 equals '20'.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        value = Decimal(repr(value))
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return str(int(value))
        return format(value.normalize(), "f")
    return str(value)


def to_decimal(value: object) -> Decimal:
    """Numeric form used by ordering comparisons."""
    if isinstance(value, bool) or value is None:
        raise RuleEvaluationError(f"value is not numeric: {format_value(value)!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            raise RuleEvaluationError(f"value is not numeric: {value!r}") from None
        if number.is_finite():
            return number
    raise RuleEvaluationError(f"value is not numeric: {value!r}")


_ORDERING: dict[str, Callable[[Decimal, Decimal], bool]] = {
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
    ">=": lambda a, b: a >= b,
    "<=": lambda a, b: a <= b,
}


def _resolve(operand: Operand, context: RuleContext) -> object:
    if isinstance(operand, Literal):
        return operand.value
    return context.resolve(operand.root, operand.field)


def _evaluate_node(node: Node, context: RuleContext) -> bool:
    if isinstance(node, AllOf):
        return all(_evaluate_node(term, context) for term in node.terms)
    if isinstance(node, AnyOf):
        return any(_evaluate_node(term, context) for term in node.terms)
    if isinstance(node, Membership):
        return format_value(_resolve(node.left, context)) in node.values

    left = _resolve(node.left, context)
    right = _resolve(node.right, context)
    if node.op == "==":
        return format_value(left) == format_value(right)
    if node.op == "!=":
        return format_value(left) != format_value(right)
    try:
        left_num = to_decimal(left)
    except RuleEvaluationError as exc:
        raise RuleEvaluationError(f"left side is not numeric: {exc}") from None
    try:
        right_num = to_decimal(right)
    except RuleEvaluationError as exc:
        raise RuleEvaluationError(f"right side is not numeric: {exc}") from None
    return _ORDERING[node.op](left_num, right_num)


class RuleExpressionEvaluator:
    """Default RuleEvaluator implementation."""

    def evaluate(self, expression: str, context: RuleContext) -> bool:
        if not expression or not expression.strip():
            return True
        return _evaluate_node(parse_rule(expression.strip()), context)


def evaluate_rule(expression: str, context: RuleContext) -> bool:
    """Evaluate `expression` with the default evaluator."""
    return RuleExpressionEvaluator().evaluate(expression, context)
