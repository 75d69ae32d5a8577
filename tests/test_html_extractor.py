import pytest

from searchcrawler.parsing.html_extractor import extract_links, extract_title


def test_extract_title_handles_missing_and_whitespace():
    html = "<html><head><title>  Sample Page  </title></head><body></body></html>"
    assert extract_title(html) == "Sample Page"

    html_no_title = "<html><head></head><body></body></html>"
    assert extract_title(html_no_title) == ""


@pytest.mark.parametrize(
    "href,expected",
    [
        ("/about", "https://example.com/about"),
        ("../relative", "https://example.com/relative"),
        ("https://other.example/x", "https://other.example/x"),
        ("mailto:team@example.com", "mailto:team@example.com"),
    ],
)
def test_extract_links_resolves_against_base(href, expected):
    html = f"<html><body><a href='{href}'>Link</a></body></html>"
    assert extract_links("https://example.com/base/", html) == [expected]


def test_extract_links_keeps_document_order_and_duplicates():
    html = (
        "<a href='/b'>b</a><a>no href</a><a href='  '>blank</a>"
        "<a href='/a'>a</a><a href='/b'>b again</a>"
    )
    assert extract_links("https://example.com/", html) == [
        "https://example.com/b",
        "https://example.com/a",
        "https://example.com/b",
    ]
