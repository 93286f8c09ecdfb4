"""Tests for the decision Condition value object (parse and evaluate)."""

import pytest

from auditflow.domain.exceptions import ConditionSyntaxException
from auditflow.domain.value_objects.condition import Condition


class TestParse:
    """Condition.parse: '<field> <operator> <value>' strings and dict form."""

    def test_numeric_comparison(self) -> None:
        c = Condition.parse("amount > 1000")
        assert (c.field, c.operator, c.value) == ("amount", ">", 1000)

    def test_two_character_operator_is_not_split(self) -> None:
        assert Condition.parse("amount >= 10").operator == ">="
        assert Condition.parse("amount <= 10").operator == "<="

    def test_aliases_normalized(self) -> None:
        assert Condition.parse('status = "approved"').operator == "=="
        assert Condition.parse('status === "approved"').operator == "=="
        assert Condition.parse("status !== draft").operator == "!="
        assert Condition.parse("type not in ['a', 'b']").operator == "not_in"

    def test_bare_word_value_kept_as_string(self) -> None:
        assert Condition.parse("status == approved").value == "approved"

    def test_boolean_and_null_literals(self) -> None:
        assert Condition.parse("urgent == true").value is True
        assert Condition.parse("urgent == False").value is False
        assert Condition.parse("owner == null").value is None

    def test_dict_form(self) -> None:
        c = Condition.parse({"field": "amount", "operator": "===", "value": 5})
        assert (c.field, c.operator, c.value) == ("amount", "==", 5)

    def test_missing_operator_rejected(self) -> None:
        with pytest.raises(ConditionSyntaxException) as exc_info:
            Condition.parse("amount is large")
        assert exc_info.value.error_code == "CONDITION_SYNTAX_ERROR"

    def test_empty_expression_rejected(self) -> None:
        with pytest.raises(ConditionSyntaxException):
            Condition.parse("")

    def test_in_requires_list(self) -> None:
        with pytest.raises(ConditionSyntaxException, match="requires a list"):
            Condition.parse("type in 5")

    def test_dict_without_operator_rejected(self) -> None:
        with pytest.raises(ConditionSyntaxException, match="operator"):
            Condition.parse({"field": "amount", "value": 1})

    def test_default_keywords(self) -> None:
        assert Condition.is_default_keyword("else")
        assert Condition.is_default_keyword(" Default ")
        assert Condition.is_default_keyword("otherwise")
        assert not Condition.is_default_keyword("yes")
        assert not Condition.is_default_keyword(None)


class TestEvaluate:
    """Condition.evaluate against an instance metadata map."""

    def test_numeric_comparisons(self) -> None:
        c = Condition.parse("amount > 1000")
        assert c.evaluate({"amount": 1500})
        assert not c.evaluate({"amount": 1000})
        assert c.evaluate({"amount": "2500"})

    def test_equality_compares_string_forms(self) -> None:
        assert Condition.parse("year == 2025").evaluate({"year": "2025"})
        assert Condition.parse("status == approved").evaluate({"status": "approved"})
        assert not Condition.parse("status != approved").evaluate({"status": "approved"})

    def test_membership(self) -> None:
        c = Condition.parse("type in ['audit', 'review']")
        assert c.evaluate({"type": "audit"})
        assert not c.evaluate({"type": "tax"})
        assert Condition.parse("type not in ['audit']").evaluate({"type": "tax"})

    def test_unhashable_value_against_set_is_false(self) -> None:
        tags = {"tags": ["x"]}
        assert not Condition.parse("tags in {'x', 'y'}").evaluate(tags)
        assert not Condition.parse("tags not in {'x', 'y'}").evaluate(tags)
        assert not Condition.parse("owner in {'a'}").evaluate({"owner": {"id": "a"}})
        assert Condition.parse("tags in [['x'], ['y']]").evaluate(tags)

    def test_missing_field_is_false(self) -> None:
        assert not Condition.parse("amount > 10").evaluate({})
        assert not Condition.parse("status != approved").evaluate({})

    def test_incomparable_values_are_false(self) -> None:
        assert not Condition.parse("name > 5").evaluate({"name": "bob"})
        assert not Condition.parse("flag > 0").evaluate({"flag": True})

    def test_nested_custom_field(self) -> None:
        c = Condition.parse("customFields.priority == high")
        assert c.evaluate({"customFields": {"priority": "high"}})
        assert not c.evaluate({"customFields": {}})

    def test_top_level_dotted_key_wins(self) -> None:
        c = Condition.parse("risk.level == 3")
        assert c.evaluate({"risk.level": 3, "risk": {"level": 1}})
