import os
import unittest

from neamegraph.images.resolver import (
    HERO_PRIORITY,
    LOGO_PRIORITY,
    SOURCE_INLINE,
    SOURCE_META_PRIMARY,
    EntityMatcher,
    is_blocked,
    make_candidate,
    pick_candidate,
    resolve_images,
    resolve_page_hero,
    unwrap_optimizer_url,
)


ORIGIN = "https://www.shepherdneame.co.uk"
FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")


def _html(body, head=""):
    return f"<html><head>{head}</head><body><main>{body}</main></body></html>"


def _wrapped(inner_path):
    return "/_next/image?url=https%3A%2F%2Fsnsites.co.uk%2Fsites%2Fdefault%2Ffiles%2F" + inner_path + "&amp;w=640&amp;q=75"


class TestCandidates(unittest.TestCase):
    def test_unwrap_decodes_exactly_once(self):
        src = "/_next/image?url=https%3A%2F%2Fsnsites.co.uk%2Fsites%2Fdefault%2Ffiles%2Fspitfire%2520amber-logo.png&w=640&q=75"
        c = make_candidate(src, SOURCE_INLINE, ORIGIN)
        self.assertTrue(c.is_wrapped)
        self.assertEqual(c.display_url, ORIGIN + src)
        self.assertEqual(c.inner_url, "https://snsites.co.uk/sites/default/files/spitfire%20amber-logo.png")
        self.assertEqual(c.resolved_url, c.inner_url)
        self.assertNotIn("%2520", c.resolved_url)

    def test_relative_inner_url_resolves_to_asset_host(self):
        c = make_candidate("/_next/image?url=%2Fsites%2Fdefault%2Ffiles%2Fhero.jpg&w=1080", SOURCE_INLINE, ORIGIN)
        self.assertEqual(c.inner_url, "https://snsites.co.uk/sites/default/files/hero.jpg")

    def test_wrapper_kept_when_inner_is_off_asset_host(self):
        c = make_candidate("/_next/image?url=https%3A%2F%2Fcdn.example.com%2Fa.jpg&w=64", SOURCE_INLINE, ORIGIN)
        self.assertEqual(c.resolved_url, c.display_url)

    def test_plain_url_is_not_wrapped(self):
        self.assertIsNone(unwrap_optimizer_url("https://snsites.co.uk/sites/default/files/a.jpg"))
        c = make_candidate("//snsites.co.uk/sites/default/files/a.jpg", SOURCE_INLINE, ORIGIN)
        self.assertFalse(c.is_wrapped)
        self.assertEqual(c.resolved_url, "https://snsites.co.uk/sites/default/files/a.jpg")

    def test_block_list(self):
        blocked = [
            "/themes/custom/shepherdneame/images/beers/spitfire.png",
            "https://snsites.co.uk/sites/default/files/styles/d8/public/image/old.jpg",
            "https://snsites.co.uk/sites/default/files/image/2023-03/old.jpg",
            "https://snsites.co.uk/sites/default/files/styles/sn_wysiwyg_large/x.jpg",
            "https://snsites.co.uk/sites/default/files/icons/arrow.png",
            "/sites/default/files/spitfire.jpg",
            "https://shepherdneame.co.uk/sites/default/files/spitfire-hero_1.jpg",
            "http://www.shepherdneame.co.uk/sites/default/files/spitfire-logo.png",
        ]
        for raw in blocked:
            self.assertTrue(is_blocked(make_candidate(raw, SOURCE_INLINE, ORIGIN), ORIGIN), msg=raw)

    def test_legacy_cms_path_allowed_through_optimizer(self):
        c = make_candidate(
            "/_next/image?url=https%3A%2F%2Fwww.shepherdneame.co.uk%2Fsites%2Fdefault%2Ffiles%2Fspitfire.jpg&w=64",
            SOURCE_INLINE,
            ORIGIN,
        )
        self.assertFalse(is_blocked(c, ORIGIN))


class TestResolveImages(unittest.TestCase):
    def test_fixture_page(self):
        with open(os.path.join(FIXTURES, "beer_detail.html"), "r", encoding="utf-8") as f:
            html = f.read()
        res = resolve_images(html, "Spitfire Amber", ORIGIN, entity_slug="spitfire-amber")
        self.assertEqual(res.hero.source, SOURCE_META_PRIMARY)
        self.assertEqual(
            res.hero.resolved_url,
            "https://snsites.co.uk/sites/default/files/styles/page_hero/public/spitfire-amber-hero.jpg?itok=ab12",
        )
        self.assertEqual(res.logo.resolved_url, "https://snsites.co.uk/sites/default/files/2024-01/spitfire-amber-logo.png")

    def test_logo_prefers_main_content_over_related_section(self):
        html = _html(
            '<section class="carousel"><h3>Other beers</h3>'
            f'<img src="{_wrapped("2024-01%2Fspitfire-amber-pumpclip.png")}" alt="Spitfire Amber pumpclip"></section>'
            f'<div><img src="{_wrapped("2024-01%2Fspitfire-amber-lockup.png")}" alt="Spitfire Amber"></div>'
        )
        res = resolve_images(html, "Spitfire Amber", ORIGIN)
        self.assertTrue(res.logo.resolved_url.endswith("spitfire-amber-lockup.png"))
        self.assertFalse(res.logo.in_related_section)

    def test_entity_logo_beats_generic_logo(self):
        html = _html(
            f'<img src="{_wrapped("2024-01%2Fgeneric-logo.png")}">'
            '<img src="https://snsites.co.uk/sites/default/files/2024-01/bishops_finger_badge.png">'
        )
        res = resolve_images(html, "Bishop's Finger", ORIGIN, entity_slug="bishops-finger")
        self.assertTrue(res.logo.resolved_url.endswith("bishops_finger_badge.png"))

    def test_hero_falls_back_to_entity_name_then_primary_meta(self):
        html = _html(
            '<img src="https://snsites.co.uk/sites/default/files/2024-01/misc.jpg">'
            '<img src="https://snsites.co.uk/sites/default/files/2024-01/whitstable-bay-pale.jpg">',
            head='<meta property="og:image" content="https://snsites.co.uk/sites/default/files/share.jpg">',
        )
        res = resolve_images(html, "Whitstable Bay", ORIGIN)
        self.assertTrue(res.hero.resolved_url.endswith("whitstable-bay-pale.jpg"))

        res = resolve_images(_html("", head='<meta property="og:image" content="https://snsites.co.uk/sites/default/files/share.jpg">'), "Whitstable Bay", ORIGIN)
        self.assertEqual(res.hero.resolved_url, "https://snsites.co.uk/sites/default/files/share.jpg")
        self.assertIsNone(res.logo)

    def test_wrapped_hero_beats_plain_hero(self):
        html = _html(
            '<img src="https://snsites.co.uk/sites/default/files/styles/hero_wide/a.jpg">'
            f'<img src="{_wrapped("styles%2Fpage_hero%2Fpublic%2Fb.jpg")}">'
        )
        res = resolve_images(html, "Spitfire", ORIGIN)
        self.assertTrue(res.hero.is_wrapped)
        self.assertTrue(res.hero.resolved_url.endswith("/b.jpg"))

    def test_legacy_cms_host_variants_are_never_chosen(self):
        html = _html(
            '<img src="http://www.shepherdneame.co.uk/sites/default/files/spitfire-logo.png">',
            head='<meta property="og:image" content="https://shepherdneame.co.uk/sites/default/files/spitfire-hero_1.jpg">',
        )
        res = resolve_images(html, "Spitfire", ORIGIN)
        self.assertIsNone(res.hero)
        self.assertIsNone(res.logo)

    def test_empty_html(self):
        res = resolve_images("", "Spitfire", ORIGIN)
        self.assertIsNone(res.hero)
        self.assertIsNone(res.logo)

    def test_priority_chains_are_ordered_data(self):
        self.assertEqual(HERO_PRIORITY[0][0], "primary meta tag with hero keyword")
        self.assertEqual(HERO_PRIORITY[-1][0], "primary meta tag")
        self.assertEqual(LOGO_PRIORITY[-1][0], "logo")
        c = make_candidate("https://snsites.co.uk/sites/default/files/roundel.png", SOURCE_INLINE, ORIGIN)
        label, picked = pick_candidate([c], LOGO_PRIORITY, EntityMatcher("Spitfire"))
        self.assertEqual(label, "logo in main content")
        self.assertIs(picked, c)


class TestPageHero(unittest.TestCase):
    def test_meta_image_first(self):
        with open(os.path.join(FIXTURES, "corporate.html"), "r", encoding="utf-8") as f:
            hero = resolve_page_hero(f.read(), ORIGIN)
        self.assertEqual(hero.url, "https://snsites.co.uk/sites/default/files/styles/page_hero/public/about-us-hero.jpg")

    def test_main_content_image_skips_logos(self):
        html = _html(
            '<img src="/sites/default/files/shepherd-neame-logo.png" alt="Logo">'
            '<img src="https://snsites.co.uk/sites/default/files/2023-11/brewery-yard.jpg" alt="The brewery yard">'
        )
        hero = resolve_page_hero(html, ORIGIN)
        self.assertEqual(hero.url, "https://snsites.co.uk/sites/default/files/2023-11/brewery-yard.jpg")
        self.assertEqual(hero.caption, "The brewery yard")

    def test_page_hero_style_preferred(self):
        html = _html(
            '<img src="https://snsites.co.uk/sites/default/files/2023-11/yard.jpg">'
            f'<img src="{_wrapped("styles%2Fpage_hero%2Fpublic%2Fpubs.jpg")}" alt="Pubs">'
        )
        hero = resolve_page_hero(html, ORIGIN)
        self.assertEqual(hero.url, "https://snsites.co.uk/sites/default/files/styles/page_hero/public/pubs.jpg")

    def test_nothing_found(self):
        self.assertIsNone(resolve_page_hero("", ORIGIN))
        self.assertIsNone(resolve_page_hero(_html('<img src="/icons/facebook.svg">'), ORIGIN))


if __name__ == "__main__":
    unittest.main()
