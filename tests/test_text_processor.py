"""Tests for the batch text processor."""

from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from lorelink.markup import build_tag_renderer
from lorelink.services.settings import Settings
from lorelink.ui.dom import ContentDocument, inner_html
from lorelink.ui.domain.text_processor import PROCESSED_ATTR, ProcessOptions, TextBatchProcessor
from lorelink.ui.events import ContentProcessed, EventBus
from tests.helpers import ManualScheduler

PAGE = (
    '<div class="card">'
    '<p class="description">Cast {@spell Fireball|PHB} for damage.</p>'
    "<ul><li>Roll {@dice 2d6}</li></ul>"
    '<span class="text-content">{@spell Light}</span>'
    '<div class="other">{@spell Wish}</div>'
    "</div>"
)


@pytest.fixture
def document() -> ContentDocument:
    return ContentDocument(PAGE)


@pytest.fixture
def processor(document: ContentDocument, scheduler: ManualScheduler, event_bus: EventBus, settings: Settings) -> TextBatchProcessor:
    return TextBatchProcessor(
        document,
        build_tag_renderer(settings.default_source),
        scheduler,
        event_bus=event_bus,
        settings=settings,
    )


@pytest.fixture
def processed_events(event_bus: EventBus) -> list[ContentProcessed]:
    events: list[ContentProcessed] = []
    event_bus.subscribe(ContentProcessed, events.append)
    return events


# =============================================================================
# Region processing
# =============================================================================


class TestProcessRegion:
    """Matching elements are rendered once and marked processed."""

    @pytest.mark.asyncio
    async def test_renders_matching_elements(self, processor: TextBatchProcessor, document: ContentDocument) -> None:
        changed = await processor.process_region()

        assert changed == 3
        description = document.select_one(".description")
        assert description.get_text() == "Cast Fireball for damage."
        anchor = description.find("a")
        assert anchor["data-hover-type"] == "spell"
        assert anchor["data-hover-source"] == "PHB"
        assert "2d6" in document.select_one("li").get_text()
        assert document.select_one(".other").get_text() == "{@spell Wish}"

    @pytest.mark.asyncio
    async def test_display_name_elements_get_plain_names(
        self, processor: TextBatchProcessor, document: ContentDocument
    ) -> None:
        await processor.process_region()

        name = document.select_one(".text-content")
        assert inner_html(name) == "Light"

    @pytest.mark.asyncio
    async def test_processed_marker_skips_rescans(self, processor: TextBatchProcessor, document: ContentDocument) -> None:
        await processor.process_region()

        assert all(element[PROCESSED_ATTR] == "true" for element in document.select("p, li, .text-content"))
        assert not document.select_one(".other").has_attr(PROCESSED_ATTR)
        assert await processor.process_region() == 0

    @pytest.mark.asyncio
    async def test_force_reprocesses(self, processor: TextBatchProcessor, document: ContentDocument) -> None:
        await processor.process_region()
        paragraph = document.select_one("p")
        document.set_inner_html(paragraph, "{@dice 1d4}", notify=False)

        assert await processor.process_region() == 0
        assert await processor.process_region(options=ProcessOptions(force=True)) == 1
        assert 'data-roll="1d4"' in inner_html(paragraph)

    @pytest.mark.asyncio
    async def test_root_itself_is_processed(self, processor: TextBatchProcessor, document: ContentDocument) -> None:
        item = document.select_one("li")

        assert await processor.process_region(item) == 1
        assert not document.select_one("p").has_attr(PROCESSED_ATTR)

    @pytest.mark.asyncio
    async def test_innermost_elements_render_first(self) -> None:
        document = ContentDocument("<ul><li>{@dice 1d4} <p>{@condition Prone}</p></li></ul>")
        processor = TextBatchProcessor(document, build_tag_renderer(), ManualScheduler())

        await processor.process_region()

        soup = BeautifulSoup(inner_html(document.body), "html.parser")
        assert soup.select_one("li > span.rd__dice") is not None
        assert soup.select_one("li > p > a")["data-hover-name"] == "Prone"

    @pytest.mark.asyncio
    async def test_inline_formatting_toggle(self) -> None:
        document = ContentDocument("<p>**bold** move</p>")
        formatting = TextBatchProcessor(document, build_tag_renderer(), ManualScheduler())

        assert await formatting.process_region(options=ProcessOptions(formatting=False)) == 0
        assert await formatting.process_region(options=ProcessOptions(force=True)) == 1
        assert inner_html(document.select_one("p")) == "<strong>bold</strong> move"

    @pytest.mark.asyncio
    async def test_process_element_forces(self, processor: TextBatchProcessor, document: ContentDocument) -> None:
        name = document.select_one(".text-content")
        name[PROCESSED_ATTR] = "true"

        assert await processor.process_element(name)
        assert inner_html(name) == "Light"


# =============================================================================
# Observation
# =============================================================================


class TestObservation:
    """Inserted content is queued and processed on the next frame tick."""

    @pytest.mark.asyncio
    async def test_inserted_content_is_flushed_in_one_batch(
        self,
        processor: TextBatchProcessor,
        document: ContentDocument,
        scheduler: ManualScheduler,
        processed_events: list[ContentProcessed],
    ) -> None:
        processor.start()
        assert processor.observing

        document.append(document.body, "<p>{@condition Prone}</p>")
        document.append(document.body, "<li>{@dice 1d8}</li>")
        assert processor.queued == 2

        scheduler.advance(0.016)
        await processor.settle()

        assert processor.queued == 0
        assert len(scheduler.spawned) == 1
        assert processed_events == [ContentProcessed(count=2)]
        assert document.select("p")[-1].find("a")["data-hover-type"] == "condition"

    @pytest.mark.asyncio
    async def test_nested_roots_are_covered_by_ancestor(
        self,
        processor: TextBatchProcessor,
        document: ContentDocument,
        scheduler: ManualScheduler,
        processed_events: list[ContentProcessed],
    ) -> None:
        processor.start()
        block = document.append(document.body, '<div class="card-text">{@dice 1d6}<p>{@dice 1d8}</p></div>')[0]
        document.append(block, "<li>{@dice 1d10}</li>")
        document.append(block, "<li>{@dice 1d10}</li>")

        scheduler.advance(0.016)
        await processor.settle()

        assert processed_events == [ContentProcessed(count=4)]
        assert block[PROCESSED_ATTR] == "true"

    @pytest.mark.asyncio
    async def test_own_updates_do_not_requeue(
        self, processor: TextBatchProcessor, document: ContentDocument, scheduler: ManualScheduler
    ) -> None:
        processor.start()
        await processor.process_region()

        assert processor.queued == 0
        assert scheduler.pending() == 0

    @pytest.mark.asyncio
    async def test_stop_disconnects(
        self, processor: TextBatchProcessor, document: ContentDocument, scheduler: ManualScheduler
    ) -> None:
        processor.start()
        document.append(document.body, "<p>{@dice 1d4}</p>")

        processor.stop()
        document.append(document.body, "<p>{@dice 1d6}</p>")
        scheduler.advance(1)

        assert not processor.observing
        assert processor.queued == 0
        assert scheduler.spawned == []
