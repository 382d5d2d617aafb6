"""
Tests for HTML cleaning.
"""

from tango_crawler.fetchers.cleaning import clean_html

PAGE = """
<html>
  <head><title>Calendar</title><script>var x = 1;</script><style>.a{}</style></head>
  <body>
    <header>Site header</header>
    <nav>Home | Events</nav>
    <div class="cookie-consent">We use cookies</div>
    <main>
      <h1>Milongas this week</h1>
      <p>Milonga La Viruta   -   Friday 23:00</p>
      <div class="modal-dialog">Subscribe!</div>
    </main>
    <aside class="sidebar">Ads</aside>
    <footer>Footer text</footer>
  </body>
</html>
"""


class TestCleanHtml:
    def test_keeps_main_region_text(self):
        text = clean_html(PAGE)
        assert text == "Milongas this week Milonga La Viruta - Friday 23:00"

    def test_removes_boilerplate_when_using_body(self):
        text = clean_html(PAGE, prefer_main=False)
        assert "Milonga La Viruta" in text
        for noise in ("var x", "Site header", "Home | Events", "We use cookies", "Subscribe!", "Ads", "Footer text"):
            assert noise not in text

    def test_falls_back_to_body_without_main(self):
        assert clean_html("<html><body><p>Only  body</p></body></html>") == "Only body"

    def test_empty_main_region_falls_back_to_body(self):
        html = "<body><main> </main><div>Milonga Friday 21:00 Seoul</div></body>"
        assert clean_html(html) == "Milonga Friday 21:00 Seoul"

    def test_truncates_to_max_chars(self):
        html = "<main>" + "a" * 500 + "</main>"
        assert len(clean_html(html, max_chars=100)) == 100

    def test_default_ceiling_from_settings(self, settings):
        settings.CRAWLER_MAX_CONTENT_CHARS = 10
        assert clean_html("<main>" + "b" * 50 + "</main>") == "b" * 10

    def test_empty_html(self):
        assert clean_html("") == ""
