"""Shared fixtures."""
from datetime import date

import pytest


class FakeBrowser:
    """Stands in for HeadlessBrowser; serves canned HTML by URL."""

    def __init__(self, pages):
        self.pages = pages
        self.rendered = []
        self.options = {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def render(self, url, timeout=None, settle_seconds=0.0):
        self.rendered.append(url)
        result = self.pages[url]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_browser():
    """Return a builder producing (browser, browser_factory) for canned pages."""
    def make(pages):
        browser = FakeBrowser(pages)

        def factory(**kwargs):
            browser.options = kwargs
            return browser

        return browser, factory
    return make


@pytest.fixture
def reference_date():
    return date(2024, 6, 1)
