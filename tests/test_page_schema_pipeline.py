import json
import os
import unittest
from datetime import datetime, timezone

from neamegraph.contracts.draft_graph import GraphParseError
from neamegraph.ingestion.url_utils import schema_hash
from neamegraph.pages.page_types import PageClassification
from neamegraph.pipeline.page_schema import PipelineError, build_page_schema
from neamegraph.rules.selector import Rule, RuleSelectionError


ORIGIN = "https://www.shepherdneame.co.uk"
FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")

BEER_PAGE = PageClassification(domain="Beer", page_type="Beer Detail", path="/beers/spitfire-amber", abv=3.8)


def _load(name):
    with open(os.path.join(FIXTURES, name), "r", encoding="utf-8") as f:
        return f.read()


def _rule(rid, domain=None, page_type=None):
    return Rule(
        id=rid,
        body="Brand is the main entity.",
        created_at=datetime(2025, 11, 21, tzinfo=timezone.utc),
        name=f"Rule {rid}",
        domain=domain,
        page_type=page_type,
    )


RULES = [_rule("global"), _rule("beer-detail", "Beer", "Beer Detail")]


class TestPageSchemaPipeline(unittest.TestCase):
    def test_fenced_draft_goes_through(self):
        draft = "Here is the schema:\n```json\n" + _load("beer_detail_draft.json") + "\n```"
        result = build_page_schema(
            draft_text=draft,
            classification=BEER_PAGE,
            rules=RULES,
            raw_html=_load("beer_detail.html"),
            canonical_origin=ORIGIN,
        )
        self.assertEqual(result.rule["id"], "beer-detail")
        self.assertEqual(result.schema_hash, schema_hash(result.jsonld))
        self.assertEqual(json.loads(result.jsonld), result.graph)
        self.assertTrue(result.validation.valid, msg=[i.message for i in result.validation.issues])
        self.assertTrue(result.validation.no_commerce_schema)
        self.assertEqual(result.charter_warnings, [])

        payload = result.to_dict()
        self.assertEqual(payload["charter_violations"], 0)
        self.assertEqual(payload["charter_warning_count"], 0)
        self.assertNotIn("body", payload["rule"])

    def test_same_input_same_hash(self):
        kwargs = dict(
            draft_text=_load("beer_detail_draft.json"),
            classification=BEER_PAGE,
            rules=RULES,
            raw_html=_load("beer_detail.html"),
            canonical_origin=ORIGIN,
        )
        self.assertEqual(build_page_schema(**kwargs).schema_hash, build_page_schema(**kwargs).schema_hash)

    def test_home_page_is_refused(self):
        home = PageClassification(domain="Corporate", path="/", is_home_page=True)
        with self.assertRaises(PipelineError):
            build_page_schema(draft_text="{}", classification=home, rules=RULES)

    def test_unparseable_draft_is_a_hard_error(self):
        with self.assertRaises(GraphParseError):
            build_page_schema(draft_text="Sorry, I cannot help with that.", classification=BEER_PAGE, rules=RULES)

    def test_no_rule_is_a_hard_error(self):
        with self.assertRaises(RuleSelectionError):
            build_page_schema(
                draft_text=_load("beer_detail_draft.json"),
                classification=BEER_PAGE,
                rules=[_rule("pubs", "Pub")],
            )

    def test_origin_defaults_to_organization(self):
        result = build_page_schema(draft_text=_load("corporate_draft.json"), classification=PageClassification(path="/about-us"), rules=RULES)
        website = next(n for n in result.graph["@graph"] if n.get("@type") == "WebSite")
        self.assertEqual(website["url"], ORIGIN)
        self.assertEqual(result.rule["id"], "global")


if __name__ == "__main__":
    unittest.main()
