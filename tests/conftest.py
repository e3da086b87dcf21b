"""Shared fixtures for FieldScraper tests."""

from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from field_scraper.config import Settings


@pytest.fixture()
def settings() -> Settings:
    """Fast settings: no backoff delay, small retry budget, in-memory cache."""
    return Settings(
        timeout=5.0,
        max_retries=3,
        retry_base_delay=0.0,
        max_retry_delay=0.0,
        user_agent="FieldScraper-Test/1.0",
        cache_backend="memory",
    )


SAMPLE_HTML = """\
<!DOCTYPE html>
<html>
<head>
    <title>Test Page</title>
    <meta charset="utf-8">
    <meta name="description" content="Page description">
    <meta name="Keywords" content="alpha, beta">
    <meta property="og:title" content="Open Graph Title">
    <meta property="og:image" content="https://example.com/image.jpg">
    <meta http-equiv="Content-Type" content="text/html; charset=utf-8">
</head>
<body>
    <h1>Main   Heading</h1>
    <div class="content main">
        <p class="intro">First&nbsp;paragraph
            spans lines</p>
        <p>Second paragraph with <a href="https://example.com/more" class="link external">a link</a>.</p>
    </div>
    <ul id="items">
        <li data-id="1">One</li>
        <li data-id="2">Two</li>
        <li>Three</li>
    </ul>
    <span class="price">$19.99</span>
</body>
</html>
"""


@pytest.fixture()
def sample_html() -> str:
    return SAMPLE_HTML


@pytest.fixture()
def document() -> BeautifulSoup:
    return BeautifulSoup(SAMPLE_HTML, "lxml")
