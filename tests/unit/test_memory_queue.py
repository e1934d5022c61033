"""
Unit tests for the in-memory work queue.
"""

import pytest
from scrapegate.protocols import Proxy, QueueEntryStatus, Resource
from scrapegate.storage import MemoryQueue, normalize_url


@pytest.mark.unit
class TestNormalizeUrl:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("HTTP://SiteA.com/Index.html", "http://sitea.com/Index.html"),
            ("http://sitea.com", "http://sitea.com/"),
            ("http://sitea.com/page#section", "http://sitea.com/page"),
            ("http://sitea.com/search?q=A", "http://sitea.com/search?q=A"),
            ("  http://sitea.com/x  ", "http://sitea.com/x"),
        ],
    )
    def test_normalize(self, url, expected):
        assert normalize_url(url) == expected

    @pytest.mark.parametrize("url", ["", "/relative/path", "sitea.com/page", "mailto:"])
    def test_rejects_non_absolute(self, url):
        with pytest.raises(ValueError):
            normalize_url(url)


@pytest.mark.unit
class TestMemoryQueue:
    @pytest.fixture
    def queue(self):
        return MemoryQueue(batch_size=2)

    def test_batch_size_validated(self):
        with pytest.raises(ValueError):
            MemoryQueue(batch_size=0)

    @pytest.mark.asyncio
    async def test_add_deduplicates(self, queue):
        assert await queue.add(["http://sitea.com/", "http://SITEA.com", "http://sitea.com/#top"]) == 1
        assert await queue.add(["http://sitea.com/", "http://siteb.com/"]) == 1
        assert await queue.count() == 2

    @pytest.mark.asyncio
    async def test_add_skips_invalid(self, queue):
        assert await queue.add(["not a url", "http://sitea.com/ok"]) == 1
        assert await queue.count() == 1

    @pytest.mark.asyncio
    async def test_batches_in_insertion_order_and_marks_in_progress(self, queue):
        await queue.add(["http://a.com/1", "http://a.com/2", "http://a.com/3"], depth=1)

        batch = await queue.get_resources_to_scrape(Proxy(host="proxyA", port=80))

        assert [r.url for r in batch] == ["http://a.com/1", "http://a.com/2"]
        assert all(r.depth == 1 and r.proxy is None for r in batch)
        assert queue.get_entry("http://a.com/1").status is QueueEntryStatus.IN_PROGRESS
        assert await queue.count_pending() == 1

        rest = await queue.get_resources_to_scrape()
        assert [r.url for r in rest] == ["http://a.com/3"]
        assert await queue.get_resources_to_scrape() == []

    @pytest.mark.asyncio
    async def test_completion_statuses(self, queue):
        await queue.add(["http://a.com/1", "http://a.com/2"])
        ok, failed = await queue.get_resources_to_scrape()

        await queue.resource_scraped(ok)
        await queue.resource_error(failed, RuntimeError("HTTP 500"))

        assert queue.get_entry(ok.url).status is QueueEntryStatus.SCRAPED
        assert queue.get_entry(failed.url).status is QueueEntryStatus.ERROR
        assert await queue.count_scraped() == 2
        assert await queue.count_pending() == 0

    @pytest.mark.asyncio
    async def test_error_entries_are_not_rescheduled(self, queue):
        await queue.add(["http://a.com/1"])
        (resource,) = await queue.get_resources_to_scrape()
        await queue.resource_error(resource)

        assert await queue.get_resources_to_scrape() == []

    @pytest.mark.asyncio
    async def test_completion_requires_queue_entry(self, queue):
        with pytest.raises(ValueError):
            await queue.resource_scraped(Resource(url="http://a.com/1"))

    def test_get_entry_unknown(self, queue):
        assert queue.get_entry("http://unknown.com/") is None
