import unittest
from datetime import datetime, timezone

from neamegraph.pages.page_types import PageClassification
from neamegraph.rules.selector import (
    Rule,
    RuleSelectionError,
    rule_from_record,
    select_rule,
    specificity_keys,
)


def _rule(rid, domain=None, page_type=None, category=None, day=1, active=True):
    return Rule(
        id=rid,
        body=f"rule body {rid}",
        created_at=datetime(2025, 11, day, tzinfo=timezone.utc),
        name=f"Rule {rid}",
        domain=domain,
        page_type=page_type,
        category=category,
        active=active,
    )


class TestRuleSelector(unittest.TestCase):
    def setUp(self):
        self.page = PageClassification(domain="Beer", page_type="Beer Detail", category="Ale", path="/beers/spitfire-amber")
        self.rules = [
            _rule("global"),
            _rule("domain", "Beer"),
            _rule("type", "Beer", "Beer Detail"),
            _rule("full", "Beer", "Beer Detail", "Ale"),
            _rule("other-domain", "Pub", "Beer Detail", "Ale", day=20),
        ]

    def test_most_specific_level_wins(self):
        self.assertEqual(select_rule(self.page, self.rules).id, "full")

    def test_falls_back_one_level_at_a_time(self):
        rules = [r for r in self.rules if r.id != "full"]
        self.assertEqual(select_rule(self.page, rules).id, "type")
        rules = [r for r in rules if r.id != "type"]
        self.assertEqual(select_rule(self.page, rules).id, "domain")
        rules = [r for r in rules if r.id != "domain"]
        self.assertEqual(select_rule(self.page, rules).id, "global")

    def test_null_fields_are_not_wildcards(self):
        # (Beer, None, Ale) is never one of the keys for this page.
        rules = [_rule("gap", "Beer", None, "Ale", day=28), _rule("global")]
        self.assertEqual(select_rule(self.page, rules).id, "global")

    def test_newest_rule_wins_regardless_of_order(self):
        older = _rule("older", "Beer", "Beer Detail", "Ale", day=2)
        newer = _rule("newer", "Beer", "Beer Detail", "Ale", day=9)
        self.assertEqual(select_rule(self.page, [older, newer]).id, "newer")
        self.assertEqual(select_rule(self.page, [newer, older]).id, "newer")

    def test_equal_timestamps_resolve_the_same_way_every_time(self):
        a = _rule("a", "Beer", day=5)
        b = _rule("b", "Beer", day=5)
        self.assertEqual(select_rule(self.page, [a, b]).id, select_rule(self.page, [b, a]).id)

    def test_inactive_rules_are_ignored(self):
        rules = [_rule("full", "Beer", "Beer Detail", "Ale", active=False), _rule("domain", "Beer")]
        self.assertEqual(select_rule(self.page, rules).id, "domain")

    def test_no_match_raises(self):
        with self.assertRaises(RuleSelectionError):
            select_rule(self.page, [_rule("pub", "Pub")])

    def test_missing_domain_uses_corporate(self):
        page = PageClassification(domain=None, path="/about-us")
        keys = specificity_keys(page)
        self.assertEqual(keys[0], ("Corporate", None, None))
        self.assertEqual(keys[-1], (None, None, None))
        self.assertEqual(select_rule(page, [_rule("corp", "Corporate"), _rule("global")]).id, "corp")

    def test_identity_echoes_fields_without_body(self):
        ident = select_rule(self.page, self.rules).identity()
        self.assertEqual(ident["id"], "full")
        self.assertEqual(ident["category"], "Ale")
        self.assertNotIn("body", ident)


class TestRuleRecords(unittest.TestCase):
    def test_record_is_parsed(self):
        rule = rule_from_record(
            {
                "id": 7,
                "name": "Beer default",
                "domain": "Beer",
                "page_type": "",
                "category": None,
                "body": "Use Brand as main entity.",
                "is_active": True,
                "created_at": "2025-11-21T12:56:25Z",
            }
        )
        self.assertEqual(rule.id, "7")
        self.assertIsNone(rule.page_type)
        self.assertTrue(rule.active)
        self.assertEqual(rule.created_at, datetime(2025, 11, 21, 12, 56, 25, tzinfo=timezone.utc))

    def test_naive_timestamp_is_utc(self):
        rule = rule_from_record({"id": "x", "body": "b", "created_at": "2025-11-21 10:00:00"})
        self.assertEqual(rule.created_at.tzinfo, timezone.utc)

    def test_malformed_record_raises(self):
        with self.assertRaises(ValueError) as ctx:
            rule_from_record({"id": "x", "created_at": "2025-11-21"})
        self.assertIn("body", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
