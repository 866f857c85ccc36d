import pytest
from src.wikicrawl.errors import BuggedPageError
from src.wikicrawl.fetch import PageExplorer, marker_detector
from src.wikicrawl.models import Page
from conftest import FakeClient, article_html

WIKIMEDIA_ERROR = "<html><head><title>Wikimedia Error</title></head></html>"

def test_marker_detector():
    is_transient = marker_detector("<title>Wikimedia Error</title>")
    assert is_transient("") is True
    assert is_transient(WIKIMEDIA_ERROR) is True
    assert is_transient(article_html(1, "France")) is False

def test_page_url(wiki_config, crawl_config):
    explorer = PageExplorer(FakeClient(), wiki_config, crawl_config)
    assert explorer.page_url(1095) == "https://fr.m.wikipedia.org/?curid=1095"

@pytest.mark.asyncio
async def test_explore_returns_links(wiki_config, crawl_config, sleep):
    page = Page(1095, "France")
    client = FakeClient({
        "https://fr.m.wikipedia.org/?curid=1095": article_html(1095, "France", [("Paris", "Paris"), ("Lyon", "Lyon")]),
    })
    explorer = PageExplorer(client, wiki_config, crawl_config, sleep=sleep)

    links = await explorer.explore(page)
    assert links == [("paris", "Paris"), ("lyon", "Lyon")]
    assert sleep.calls == []

@pytest.mark.asyncio
async def test_transient_errors_are_retried_with_growing_cooldown(wiki_config, crawl_config, sleep):
    page = Page(7, "Paris")
    url = "https://fr.m.wikipedia.org/?curid=7"
    client = FakeClient({
        url: ["", WIKIMEDIA_ERROR, WIKIMEDIA_ERROR, article_html(7, "Paris", [("Seine", "la Seine")])],
    })
    explorer = PageExplorer(client, wiki_config, crawl_config, sleep=sleep)

    links = await explorer.explore(page)
    assert links == [("seine", "la Seine")]
    assert client.requests.count(url) == 4
    assert sleep.calls == [3.0, 4.0, 5.0]

@pytest.mark.asyncio
async def test_custom_transient_detector(wiki_config, crawl_config, sleep):
    url = "https://fr.m.wikipedia.org/?curid=3"
    client = FakeClient({url: ["busy", article_html(3, "Lyon", [("Rhône", "Rhône")])]})
    explorer = PageExplorer(client, wiki_config, crawl_config, sleep=sleep,
                            is_transient=lambda body: body == "busy")

    assert await explorer.explore(Page(3, "Lyon")) == [("rhône", "Rhône")]
    assert sleep.calls == [3.0]

@pytest.mark.asyncio
async def test_page_without_links_is_bugged(wiki_config, crawl_config, sleep):
    page = Page(9, "Vide")
    client = FakeClient({"https://fr.m.wikipedia.org/?curid=9": article_html(9, "Vide")})
    explorer = PageExplorer(client, wiki_config, crawl_config, sleep=sleep)

    with pytest.raises(BuggedPageError) as excinfo:
        await explorer.explore(page)
    assert excinfo.value.page == page
    assert excinfo.value.code == "bugged_page"
