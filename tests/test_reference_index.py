import unittest

from neamegraph.graph.nodes import is_reference, links_to
from neamegraph.graph.reference_index import ReferenceIndex


ORIGIN = "https://www.shepherdneame.co.uk"
ORG_ID = ORIGIN + "/#organization"


NODES = [
    {"@type": ["Organization", "Corporation"], "@id": ORG_ID, "name": "Shepherd Neame Limited"},
    {"@type": "WebSite", "@id": ORIGIN + "/#website", "publisher": {"@id": ORG_ID}},
    {
        "@type": "WebPage",
        "@id": ORIGIN + "/about-us#webpage",
        "publisher": {"@id": ORG_ID},
        "isPartOf": {"@id": ORIGIN + "/#website"},
        "image": {"@type": "ImageObject", "@id": ORIGIN + "/#img", "url": "https://snsites.co.uk/a.jpg"},
    },
    {"@type": "Thing", "@id": ORG_ID, "name": "Duplicate"},
    "stray",
]


class TestReferenceIndex(unittest.TestCase):
    def setUp(self):
        self.index = ReferenceIndex(NODES)

    def test_first_node_wins(self):
        self.assertEqual(self.index.get(ORG_ID)["name"], "Shepherd Neame Limited")
        self.assertIn(ORG_ID, self.index)
        self.assertEqual(len(self.index.nodes), 4)

    def test_duplicates_and_counts(self):
        self.assertEqual(self.index.duplicates(), {ORG_ID: 2})
        self.assertEqual(self.index.type_counts["Organization"], 1)
        self.assertEqual(self.index.reference_count, 3)

    def test_embedded_node_is_not_a_reference(self):
        self.assertNotIn(ORIGIN + "/#img", self.index.neighbours(ORIGIN + "/about-us#webpage"))
        self.assertFalse(is_reference(NODES[2]["image"]))
        self.assertTrue(is_reference({"@id": ORG_ID, "@type": "Organization"}))

    def test_referrers(self):
        referrers = self.index.referrers(ORG_ID)
        self.assertEqual(len(referrers), 2)
        self.assertEqual(self.index.referrers(ORG_ID, properties=("isPartOf",)), [])
        self.assertEqual(self.index.first_of_type("WebSite")["@id"], ORIGIN + "/#website")

    def test_links_to_accepts_string_ids(self):
        self.assertTrue(links_to(ORG_ID, ORG_ID))
        self.assertTrue(links_to({"@id": ORG_ID}, ORG_ID))
        self.assertFalse(links_to({"@id": ORG_ID, "name": "x"}, ORG_ID))
        self.assertTrue(links_to(["other", {"@id": ORG_ID}], ORG_ID))
        self.assertFalse(links_to([], ORG_ID))


if __name__ == "__main__":
    unittest.main()
