"""
Tests for index -> selector resolution
"""

import pytest

from page_server.config import SelectorConfig
from page_server.errors import SelectorAmbiguousError, StaleReferenceError, UnknownIndexError
from page_server.selector_synth import FRAME_SEPARATOR, SelectorSynthesizer
from page_server.types import ElementNode, ElementRef, Snapshot

from conftest import FakeFrame, FakePage


def describe(tag, attributes=None, nth=1, ancestors=None, host_key=None):
    return {
        "status": "ok",
        "element": {"tag": tag, "attributes": attributes or {}, "nth": nth},
        "ancestors": ancestors or [],
        "hostKey": host_key,
    }


def ancestor(tag, attributes=None, nth=1):
    return {"tag": tag, "attributes": attributes or {}, "nth": nth}


def snapshot_of(page, refs, tags, generation=1):
    nodes = [ElementNode(index=index, tag=tag) for index, tag in tags.items()]
    return Snapshot(generation=generation, page=page, url=page.url, nodes=nodes, refs=refs, text="")


@pytest.fixture
def frame():
    frame = FakeFrame()
    frame.generation = 1
    return frame


@pytest.fixture
def page(frame):
    return FakePage(frame)


class TestCandidates:
    """Candidate generation order"""

    def test_priority_order(self):
        synth = SelectorSynthesizer()
        element = {"tag": "input", "attributes": {"id": "q", "name": "q", "type": "text"}, "nth": 2}
        ancestors = [
            ancestor("form", {"data-testid": "search"}),
            ancestor("body"),
            ancestor("html"),
        ]

        assert synth.candidates(element, ancestors) == [
            "#q",
            "input",
            'input[name="q"]',
            'input[type="text"]',
            'input[name="q"][type="text"]',
            '[data-testid="search"] > input:nth-of-type(2)',
            "html:nth-of-type(1) > body:nth-of-type(1) > form:nth-of-type(1) > input:nth-of-type(2)",
        ]

    def test_ids_that_are_not_identifiers_use_attribute_form(self):
        synth = SelectorSynthesizer()

        spaced = synth.candidates({"tag": "div", "attributes": {"id": "a b"}}, [])
        quoted = synth.candidates({"tag": "div", "attributes": {"id": 'x"y'}}, [])
        numeric = synth.candidates({"tag": "div", "attributes": {"id": "1st"}}, [])

        assert spaced[0] == '[id="a b"]'
        assert quoted[0] == '[id="x\\"y"]'
        assert numeric[0] == '[id="1st"]'

    def test_bare_root_element(self):
        """No attributes and no ancestors: tag, then its nth path"""
        synth = SelectorSynthesizer()
        found = synth.candidates({"tag": "html", "attributes": {}, "nth": 1}, [])
        assert found == ["html", "html:nth-of-type(1)"]

    def test_custom_stable_attributes(self):
        synth = SelectorSynthesizer(SelectorConfig(stable_attributes=["data-e2e"]))
        found = synth.candidates({"tag": "button", "attributes": {"id": "x", "data-e2e": "buy"}}, [])
        assert found[0] == '[data-e2e="buy"]'
        assert "#x" not in found


class TestResolve:
    """Resolution against the live document"""

    @pytest.mark.asyncio
    async def test_first_unique_candidate_wins(self, frame, page):
        frame.describe[5] = describe("button", {"type": "submit"}, ancestors=[ancestor("form"), ancestor("body")])
        frame.unique[5] = 'button[type="submit"]'
        snapshot = snapshot_of(page, {1: ElementRef(frame, 5)}, {1: "button"})

        selector = await SelectorSynthesizer().resolve(snapshot, 1)

        assert selector == 'button[type="submit"]'

    @pytest.mark.asyncio
    async def test_shadow_hosts_are_chained(self, frame, page):
        """Element inside a shadow root: host segment first"""
        frame.describe[4] = describe("my-widget", {"id": "w"})
        frame.describe[7] = describe("button", {"type": "submit"}, host_key=4)
        frame.unique[7] = 'button[type="submit"]'
        snapshot = snapshot_of(page, {1: ElementRef(frame, 7)}, {1: "button"})

        selector = await SelectorSynthesizer().resolve(snapshot, 1)

        assert selector == '#w >> button[type="submit"]'

    @pytest.mark.asyncio
    async def test_iframes_are_entered(self, frame, page):
        child = FakeFrame()
        child.generation = 1
        frame.describe[3] = describe("iframe", {"id": "payment"})
        child.describe[2] = describe("input", {"name": "card"})
        child.unique[2] = 'input[name="card"]'
        ref = ElementRef(child, 2, parent=ElementRef(frame, 3))
        snapshot = snapshot_of(page, {1: ref}, {1: "input"})

        selector = await SelectorSynthesizer().resolve(snapshot, 1)

        assert selector == "#payment" + FRAME_SEPARATOR + 'input[name="card"]'

    @pytest.mark.asyncio
    async def test_unknown_index(self, frame, page):
        snapshot = snapshot_of(page, {1: ElementRef(frame, 5)}, {1: "button"})
        with pytest.raises(UnknownIndexError) as exc_info:
            await SelectorSynthesizer().resolve(snapshot, 9)
        assert not isinstance(exc_info.value, StaleReferenceError)
        assert exc_info.value.index == 9

    @pytest.mark.asyncio
    async def test_no_snapshot_taken(self):
        with pytest.raises(UnknownIndexError):
            await SelectorSynthesizer().resolve(None, 1)

    @pytest.mark.asyncio
    async def test_navigation_makes_index_stale(self, frame, page):
        frame.describe[5] = describe("button")
        snapshot = snapshot_of(page, {1: ElementRef(frame, 5)}, {1: "button"})
        frame.navigated()

        with pytest.raises(StaleReferenceError, match="navigated"):
            await SelectorSynthesizer().resolve(snapshot, 1)

    @pytest.mark.asyncio
    async def test_newer_snapshot_makes_index_stale(self, frame, page):
        frame.describe[5] = describe("button")
        snapshot = snapshot_of(page, {1: ElementRef(frame, 5)}, {1: "button"})
        frame.generation = 2

        with pytest.raises(StaleReferenceError, match="newer snapshot"):
            await SelectorSynthesizer().resolve(snapshot, 1)

    @pytest.mark.asyncio
    async def test_detached_frame_is_stale(self, frame, page):
        snapshot = snapshot_of(page, {1: ElementRef(frame, 5)}, {1: "button"})
        frame.detached = True

        with pytest.raises(StaleReferenceError, match="detached"):
            await SelectorSynthesizer().resolve(snapshot, 1)

    @pytest.mark.asyncio
    async def test_tag_mismatch_is_stale(self, frame, page):
        """The slot now holds a different kind of element"""
        frame.describe[5] = describe("div")
        snapshot = snapshot_of(page, {1: ElementRef(frame, 5)}, {1: "button"})

        with pytest.raises(StaleReferenceError):
            await SelectorSynthesizer().resolve(snapshot, 1)

    @pytest.mark.asyncio
    async def test_no_unique_candidate(self, frame, page):
        frame.describe[5] = describe("li")
        frame.unique[5] = "never-generated"
        snapshot = snapshot_of(page, {1: ElementRef(frame, 5)}, {1: "li"})

        with pytest.raises(SelectorAmbiguousError) as exc_info:
            await SelectorSynthesizer().resolve(snapshot, 1)
        assert exc_info.value.tried == 2

    @pytest.mark.asyncio
    async def test_page_wide_duplicate_falls_through_to_next_candidate(self, frame, page):
        """``button`` is alone in the document but a shadow root holds another one"""
        frame.describe[5] = describe(
            "button", ancestors=[ancestor("div", {"id": "toolbar"}), ancestor("body"), ancestor("html")]
        )
        frame.unique[5] = [
            "button",
            "#toolbar > button:nth-of-type(1)",
            "html:nth-of-type(1) > body:nth-of-type(1) > div:nth-of-type(1) > button:nth-of-type(1)",
        ]
        page.locator_counts["button"] = 2
        snapshot = snapshot_of(page, {1: ElementRef(frame, 5)}, {1: "button"})

        selector = await SelectorSynthesizer().resolve(snapshot, 1)

        assert selector == "#toolbar > button:nth-of-type(1)"

    @pytest.mark.asyncio
    async def test_every_candidate_duplicated_page_wide(self, frame, page):
        frame.describe[5] = describe("button", {"id": "ok"}, ancestors=[ancestor("body"), ancestor("html")])
        frame.unique[5] = ["#ok", "button"]
        page.locator_counts.update({"#ok": 2, "button": 3})
        snapshot = snapshot_of(page, {1: ElementRef(frame, 5)}, {1: "button"})

        with pytest.raises(SelectorAmbiguousError) as exc_info:
            await SelectorSynthesizer().resolve(snapshot, 1)
        assert exc_info.value.tried == 2

        capped = SelectorSynthesizer(SelectorConfig(max_locator_checks=1))
        with pytest.raises(SelectorAmbiguousError) as exc_info:
            await capped.resolve(snapshot, 1)
        assert exc_info.value.tried == 1

    @pytest.mark.asyncio
    async def test_unchecked_config_takes_first_root_unique_candidate(self, frame, page):
        frame.describe[5] = describe("button", {"id": "ok"})
        page.locator_counts["#ok"] = 2
        snapshot = snapshot_of(page, {1: ElementRef(frame, 5)}, {1: "button"})

        unchecked = SelectorSynthesizer(SelectorConfig(verify_with_locator=False))

        assert await unchecked.resolve(snapshot, 1) == "#ok"

    @pytest.mark.asyncio
    async def test_inner_shadow_part_varies_before_host(self, frame, page):
        frame.describe[4] = describe("my-widget", {"id": "w"}, ancestors=[ancestor("body"), ancestor("html")])
        frame.describe[7] = describe("button", {"type": "submit"}, host_key=4)
        frame.unique[4] = ["#w", "my-widget"]
        frame.unique[7] = ["button", 'button[type="submit"]']
        page.locator_counts["#w >> button"] = 2
        snapshot = snapshot_of(page, {1: ElementRef(frame, 7)}, {1: "button"})

        selector = await SelectorSynthesizer().resolve(snapshot, 1)

        assert selector == '#w >> button[type="submit"]'
