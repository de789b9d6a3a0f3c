"""Tests for tab selection and URL match patterns"""

import pytest

from browser_remote.errors import NoMatchingTarget
from browser_remote.host import url_matches
from browser_remote.models import decode_command
from browser_remote.resolver import TargetResolver

from dom_fakes import FakeHost, tab


def _host():
    return FakeHost([
        tab(0, "https://example.com/a", window_id=0),
        tab(1, "https://shop.example.com/cart", window_id=0, active=True),
        tab(0, "https://other.org/", window_id=1),
    ])


class TestTargetResolver:
    @pytest.mark.asyncio
    async def test_tab_url_picks_first_match(self):
        host = _host()
        command = decode_command({"type": "click", "selector": "#a", "tab_url": "example.com"})
        context = await TargetResolver(host).resolve(command)
        assert context.url == "https://example.com/a"
        assert host.queries == [{"url": ("example.com",), "active": None}]

    @pytest.mark.asyncio
    async def test_tab_index_across_windows(self):
        command = decode_command({"type": "click", "selector": "#a", "tab_index": 0})
        context = await TargetResolver(_host()).resolve(command)
        assert (context.window_id, context.index) == (0, 0)

    @pytest.mark.asyncio
    async def test_default_is_active_tab(self):
        host = _host()
        context = await TargetResolver(host).resolve(decode_command({"type": "navigate", "url": "x"}))
        assert context.url == "https://shop.example.com/cart"
        assert host.queries == [{"url": None, "active": True}]

    @pytest.mark.asyncio
    async def test_no_match(self):
        command = decode_command({"type": "click", "selector": "#a", "tab_index": 9})
        with pytest.raises(NoMatchingTarget, match="No matching tab found."):
            await TargetResolver(_host()).resolve(command)


class TestUrlMatches:
    @pytest.mark.parametrize("pattern,url,expected", [
        ("<all_urls>", "https://example.com/", True),
        ("<all_urls>", "chrome://settings/", False),
        ("*://example.com/*", "http://example.com/path?q=1", True),
        ("*://example.com/*", "ftp://example.com/", False),
        ("https://*.example.com/*", "https://shop.example.com/cart", True),
        ("https://*.example.com/*", "https://example.com/", True),
        ("https://*.example.com/*", "https://badexample.com/", False),
        ("https://example.com/app/*", "https://example.com/app/settings", True),
        ("https://example.com/app/*", "https://example.com/other", False),
        ("https://example.com/", "https://example.com", True),
        ("https://*/*", "https://anything.net/x", True),
        ("https://localhost:8080/*", "https://localhost:8080/a", True),
        ("https://localhost:8080/*", "https://localhost:9090/a", False),
        ("file:///tmp/*", "file:///tmp/page.html", True),
        ("example.com", "https://example.com/", False),
    ])
    def test_patterns(self, pattern, url, expected):
        assert url_matches(pattern, url) is expected
