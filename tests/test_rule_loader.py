"""
Tests for the FormulaParser and declarative RuleLoader.
"""
import json
import pytest

from loyalty_engine import (
    FormulaError, FormulaParser, InvalidAmountError, LoyaltyEngine, RuleDefinitionError, RuleLoader,
)

USER = 'declarative-user'

PURCHASE_RULES = {
    'rules': [
        {
            'name': 'Points for purchase',
            'event': 'purchase',
            'condition': 'amount > 50',
            'points': 'floor(amount)',
            'action_name': 'Purchase of ${amount}',
        },
        {
            'name': 'Big spender bonus',
            'event': 'purchase',
            'condition': 'amount >= 1000 and not refunded',
            'points': 250,
        },
    ]
}


@pytest.fixture
def parser():
    return FormulaParser()


class TestFormulaParser:
    """Tests for formula evaluation."""

    @pytest.mark.parametrize('formula,context,expected', [
        ('floor(amount)', {'amount': 75.5}, 75),
        ('ceil(amount / 10)', {'amount': 21}, 3),
        ('amount * 2 + 1', {'amount': 4}, 9),
        ('max(10, amount // 100)', {'amount': 2500}, 25),
        ('amount > 50', {'amount': 75.5}, True),
        ('10 < amount <= 20', {'amount': 25}, False),
        ('category in ["books", "music"]', {'category': 'music'}, True),
        ('channel == "web" or vip', {'channel': 'store', 'vip': True}, True),
        ('50 if vip else 10', {'vip': False}, 10),
        ('-amount', {'amount': 3}, -3),
    ])
    def test_evaluate(self, parser, formula, context, expected):
        assert parser.evaluate(formula, context) == expected

    def test_short_circuit(self, parser):
        """Test 'and' stops before evaluating a failing right side."""
        assert parser.evaluate('False and 1 / 0', {}) is False

    def test_unknown_name(self, parser):
        with pytest.raises(FormulaError, match="unknown name 'amount'") as exc_info:
            parser.evaluate('amount > 5', {})

        assert exc_info.value.formula == 'amount > 5'

    @pytest.mark.parametrize('formula', [
        '__import__("os")',
        'amount.__class__',
        'open("x")',
        '[x for x in items]',
        'lambda: 1',
        'items[0]',
    ])
    def test_rejects_unsafe_syntax(self, parser, formula):
        """Test anything beyond arithmetic, comparisons and whitelisted calls is refused."""
        with pytest.raises(FormulaError):
            parser.parse(formula)

    @pytest.mark.parametrize('formula', ['', '   ', 'amount >', 'floor(x=1)', ['amount'], {'amount': 1}, 5])
    def test_rejects_malformed(self, parser, formula):
        with pytest.raises(FormulaError):
            parser.parse(formula)

    def test_runtime_errors_wrapped(self, parser):
        with pytest.raises(FormulaError, match='division by zero'):
            parser.evaluate('amount / 0', {'amount': 1})

    def test_formula_parameters(self, parser):
        assert parser.get_formula_parameters('floor(amount * rate) + amount') == ['amount', 'rate']

    def test_custom_functions(self):
        parser = FormulaParser(functions={'double': lambda x: x * 2})
        assert parser.evaluate('double(amount)', {'amount': 4}) == 8


class TestRuleLoader:
    """Tests for building RuleSets from JSON."""

    def test_load_dict(self):
        ruleset = RuleLoader().load_dict(PURCHASE_RULES)

        assert [r.name for r in ruleset.rules_for('purchase')] == ['Points for purchase', 'Big spender bonus']

    def test_load_file(self, tmp_path):
        path = tmp_path / 'purchase.json'
        path.write_text(json.dumps(PURCHASE_RULES))

        ruleset = RuleLoader().load_file(path)

        assert len(ruleset) == 2

    def test_load_directory_sorted(self, tmp_path):
        """Test files load in name order."""
        (tmp_path / 'b.json').write_text(json.dumps([{'name': 'b', 'event': 'e', 'points': 1}]))
        (tmp_path / 'a.json').write_text(json.dumps([{'name': 'a', 'event': 'e', 'points': 1}]))
        (tmp_path / 'notes.txt').write_text('ignored')

        ruleset = RuleLoader().load_directory(tmp_path)

        assert [r.name for r in ruleset.rules_for('e')] == ['a', 'b']

    @pytest.mark.parametrize('data,message', [
        ({'rules': 'nope'}, 'expected a list'),
        ([42], 'must be an object'),
        ([{'points': 1}], "missing 'event'"),
        ([{'event': 'e'}], "missing 'points'"),
        ([{'event': 'e', 'points': 'floor('}], 'syntax error'),
        ([{'event': 'e', 'points': 1, 'condition': 'eval("1")'}], 'unknown function'),
        ([{'event': 'e', 'points': 1, 'condition': ['a']}], 'must be a string'),
    ])
    def test_invalid_definitions(self, data, message):
        with pytest.raises(RuleDefinitionError, match=message):
            RuleLoader().load_dict(data)

    def test_missing_file(self, tmp_path):
        with pytest.raises(RuleDefinitionError, match='does not exist'):
            RuleLoader().load_file(tmp_path / 'missing.json')

    def test_invalid_json(self, tmp_path):
        path = tmp_path / 'broken.json'
        path.write_text('{not json')

        with pytest.raises(RuleDefinitionError, match='not valid JSON'):
            RuleLoader().load_file(path)


class TestDeclarativeRulesInEngine:
    """Tests for declarative rules driving the engine."""

    @pytest.fixture
    def engine(self, storage, config):
        ruleset = RuleLoader().load_dict(PURCHASE_RULES)
        return LoyaltyEngine(storage, ruleset, config=config, configure_logger=False)

    @pytest.mark.asyncio
    async def test_purchase_rule(self, engine, recorder):
        engine.on('points_updated', recorder)

        await engine.trigger('purchase', USER, {'amount': 75.5, 'refunded': False})

        assert await engine.points.get_balance(USER) == 75
        assert recorder.calls[0].action == 'Purchase of $75.5'

    @pytest.mark.asyncio
    async def test_both_rules_fire(self, engine, storage, recorder):
        engine.on('points_updated', recorder)

        await engine.trigger('purchase', USER, {'amount': 1200, 'refunded': False})

        assert [c.points for c in recorder.calls] == [1200, 250]
        assert recorder.calls[1].action == 'purchase'
        assert storage.users[USER].points == 1450
        assert storage.users[USER].tier_id == 'silver'

    @pytest.mark.asyncio
    async def test_missing_payload_field(self, engine):
        """Test a payload lacking a referenced field is a formula error."""
        with pytest.raises(FormulaError):
            await engine.trigger('purchase', USER, {'amount': 1200})

    @pytest.mark.asyncio
    async def test_fractional_formula_result(self, storage, config):
        ruleset = RuleLoader().load_dict([{'event': 'order', 'points': 'amount * 0.5'}])
        engine = LoyaltyEngine(storage, ruleset, config=config, configure_logger=False)

        await engine.trigger('order', USER, {'amount': 10})
        assert await engine.points.get_balance(USER) == 5

        with pytest.raises(InvalidAmountError):
            await engine.trigger('order', USER, {'amount': 3})
