from decimal import Decimal

import pytest

from conftest import make_context, make_item
from promo_engine.services.rule_expression import (
    AllOf,
    AnyOf,
    RuleContext,
    RuleEvaluationError,
    RuleExpressionEvaluator,
    RuleSyntaxError,
    evaluate_rule,
    format_value,
    parse_rule,
)


def item_ctx(**item_fields) -> RuleContext:
    item = make_item(**item_fields)
    return RuleContext.for_item(item, make_context([item]))


def test_and_of_quantity_and_category():
    rule = "item.Quantity >= 2 and item.CategoryID == 'SHOES'"
    assert evaluate_rule(rule, item_ctx(quantity=3, category_id="SHOES")) is True
    assert evaluate_rule(rule, item_ctx(quantity=1, category_id="SHOES")) is False


def test_in_list_compares_formatted_price():
    rule = "item.Price in ['10', '20']"
    assert evaluate_rule(rule, item_ctx(price="20")) is True
    assert evaluate_rule(rule, item_ctx(price="20.00")) is True
    assert evaluate_rule(rule, item_ctx(price="15")) is False


def test_in_list_accepts_bare_numbers():
    assert evaluate_rule("item.Quantity in [2, 3.0]", item_ctx(quantity=3)) is True


def test_empty_expression_is_true():
    evaluator = RuleExpressionEvaluator()
    assert evaluator.evaluate("", RuleContext()) is True
    assert evaluator.evaluate("   ", RuleContext()) is True


@pytest.mark.parametrize(
    "rule,expected",
    [
        ("item.Price > 19.99", True),
        ("item.Price < 20", False),
        ("item.Price <= 20", True),
        ("item.Price != '20'", False),
        ("item.SKUID == \"SKU-item-1\"", True),
        ("order.OrderSubtotal >= 40", False),
        ("order.CustomerID == 'cust-1'", True),
    ],
)
def test_comparisons(rule: str, expected: bool):
    assert evaluate_rule(rule, item_ctx(price="20.00")) is expected


def test_and_binds_tighter_than_or():
    # false and false or true -> true
    rule = "item.Quantity > 5 and item.Price > 100 or item.CategoryID == 'SHOES'"
    assert evaluate_rule(rule, item_ctx(quantity=1, category_id="SHOES")) is True
    assert isinstance(parse_rule(rule), AnyOf)


def test_parentheses_override_precedence():
    rule = "item.Quantity > 5 and (item.Price > 100 or item.CategoryID == 'SHOES')"
    assert isinstance(parse_rule(rule), AllOf)
    assert evaluate_rule(rule, item_ctx(quantity=1, category_id="SHOES")) is False
    assert evaluate_rule(rule, item_ctx(quantity=6, category_id="SHOES")) is True


def test_uppercase_keywords():
    rule = "item.Quantity >= 1 AND item.Price < 5 OR item.Price == 20"
    assert evaluate_rule(rule, item_ctx(price="20")) is True


def test_string_literal_may_contain_keywords():
    ctx = item_ctx(category_id="rock and roll")
    assert evaluate_rule("item.CategoryID == 'rock and roll'", ctx) is True


def test_missing_optional_field_formats_as_empty_string():
    assert evaluate_rule("item.SalePrice == ''", item_ctx()) is True


def test_unknown_field_is_an_error():
    with pytest.raises(RuleEvaluationError, match="unknown field"):
        evaluate_rule("item.Colour == 'red'", item_ctx())


def test_item_rule_without_item_is_an_error():
    ctx = RuleContext.for_order(make_context([make_item()]))
    with pytest.raises(RuleEvaluationError, match="key not found"):
        evaluate_rule("item.Price > 1", ctx)


def test_unknown_root_is_an_error():
    with pytest.raises(RuleEvaluationError, match="key not found"):
        evaluate_rule("customer.Tier == 'gold'", item_ctx())


def test_ordering_needs_numbers():
    with pytest.raises(RuleEvaluationError, match="not numeric"):
        evaluate_rule("item.CategoryID > 5", item_ctx(category_id="SHOES"))


@pytest.mark.parametrize(
    "rule",
    [
        "item.Price",
        "item.Price >",
        "item.Price in '10'",
        "item.Price in ['10'",
        "(item.Price > 1",
        "Price > 1",
        "item.Price > 1 item.Quantity > 1",
        "item.Price ~ 1",
    ],
)
def test_malformed_rules_raise_syntax_error(rule: str):
    with pytest.raises(RuleSyntaxError):
        evaluate_rule(rule, item_ctx())


def test_format_value():
    assert format_value(Decimal("20.00")) == "20"
    assert format_value(Decimal("19.90")) == "19.9"
    assert format_value(3) == "3"
    assert format_value(True) == "true"
    assert format_value(None) == ""
    assert format_value("SHOES") == "SHOES"


def test_exponent_literals():
    assert evaluate_rule("item.Price > 1e1", item_ctx(price="20")) is True
    assert evaluate_rule("item.Price < 2.5E+1", item_ctx(price="20")) is True
    assert evaluate_rule("item.Price == 2e1", item_ctx(price="20.00")) is True
