"""
Unit tests for the translation dispatcher.

The completion endpoint is replaced by the in-memory FakeCompletionClient
from conftest: by default it echoes the request text upper-cased.
"""

import asyncio

import httpx
import pytest

from pagetranslate.config import DEFAULT_BATCH_DELIMITER
from pagetranslate.core.batch_planner import BatchPlanner
from pagetranslate.core.cache import TranslationCache
from pagetranslate.core.dispatcher import TranslationDispatcher
from pagetranslate.core.exceptions import ApiRequestError
from pagetranslate.core.fragments import FragmentState, HtmlFragment
from pagetranslate.core.llm.providers import OpenAICompatibleProvider
from pagetranslate.core.rate_limiter import RateLimiter


def make_dispatcher(client, max_characters=100, delimiter=DEFAULT_BATCH_DELIMITER, rps=500, log_callback=None):
    return TranslationDispatcher(
        client=client,
        cache=TranslationCache(),
        rate_limiter=RateLimiter(rps=rps),
        planner=BatchPlanner(max_characters=max_characters, delimiter=delimiter),
        log_callback=log_callback,
    )


def fragments_of(*markups):
    return [HtmlFragment(markup, fragment_id=str(i)) for i, markup in enumerate(markups)]


def long_paragraph(sentences=12):
    return "<p>" + " ".join(f"Sentence {i} ends here." for i in range(sentences)) + "</p>"


class TestBatchDispatch:
    """Test batched requests and response reconciliation."""

    @pytest.mark.asyncio
    async def test_batch_translates_all_fragments(self, fake_client):
        """Two small fragments should go out as one batch request."""
        dispatcher = make_dispatcher(fake_client)
        fragments = fragments_of("<p>Hello</p>", "<p>World <b>again</b></p>")

        outcomes = await dispatcher.translate_fragments(fragments, "ja")

        assert len(fake_client.requests) == 1
        request = fake_client.requests[0]
        assert request['batch_delimiter'] == DEFAULT_BATCH_DELIMITER
        assert request['text'] == "<p_0>Hello</p_1>" + DEFAULT_BATCH_DELIMITER + "<p_0>World <b_1>again</b_2></p_3>"
        assert request['target_language'] == "ja"

        assert [f.get_content() for f in fragments] == ["<p>HELLO</p>", "<p>WORLD <b>AGAIN</b></p>"]
        assert all(f.state == FragmentState.APPLIED for f in fragments)
        assert all(o.succeeded and not o.cached for o in outcomes)

    @pytest.mark.asyncio
    async def test_flexible_default_delimiter(self, make_client):
        """The default delimiter is matched with surrounding whitespace and extra dashes."""
        client = make_client(["<p_0>Un</p_1>  -----DELIMITER----  <p_0>Deux</p_1>"])
        dispatcher = make_dispatcher(client)
        fragments = fragments_of("<p>One</p>", "<p>Two</p>")

        await dispatcher.translate_fragments(fragments, "fr")

        assert [f.get_content() for f in fragments] == ["<p>Un</p>", "<p>Deux</p>"]

    @pytest.mark.asyncio
    async def test_short_response_fails_last_unit(self, make_client):
        """One fewer segment than units: last unit failed, others applied."""
        client = make_client(["UN\n---DELIMITER---\nDEUX"])
        dispatcher = make_dispatcher(client)
        fragments = fragments_of("one", "two", "three")

        outcomes = await dispatcher.translate_fragments(fragments, "fr")

        assert [o.state for o in outcomes] == [FragmentState.APPLIED, FragmentState.APPLIED, FragmentState.FAILED]
        assert [f.get_content() for f in fragments] == ["UN", "DEUX", "three"]
        assert outcomes[2].error
        assert len(client.requests) == 1

    @pytest.mark.asyncio
    async def test_empty_segment_fails_only_that_unit(self, make_client):
        client = make_client(["A\n---DELIMITER---\n\n---DELIMITER---\nC"])
        dispatcher = make_dispatcher(client)
        fragments = fragments_of("a", "b", "c")

        outcomes = await dispatcher.translate_fragments(fragments, "ja")

        assert [o.state for o in outcomes] == [FragmentState.APPLIED, FragmentState.FAILED, FragmentState.APPLIED]
        assert fragments[1].get_content() == "b"

    @pytest.mark.asyncio
    async def test_empty_response_fails_whole_batch(self, make_client):
        client = make_client(["   "])
        dispatcher = make_dispatcher(client)
        fragments = fragments_of("a", "b")

        outcomes = await dispatcher.translate_fragments(fragments, "ja")

        assert all(o.state == FragmentState.FAILED for o in outcomes)
        assert [f.get_content() for f in fragments] == ["a", "b"]
        assert len(client.requests) == 1

    @pytest.mark.asyncio
    async def test_custom_delimiter_splits_exactly(self, make_client):
        client = make_client(["X|||Y"])
        dispatcher = make_dispatcher(client, delimiter="|||")
        fragments = fragments_of("x", "y")

        await dispatcher.translate_fragments(fragments, "ja")

        assert client.requests[0]['text'] == "x|||y"
        assert client.requests[0]['batch_delimiter'] == "|||"
        assert [f.get_content() for f in fragments] == ["X", "Y"]

    @pytest.mark.asyncio
    async def test_results_cached_under_encoded_text(self, fake_client):
        dispatcher = make_dispatcher(fake_client)
        await dispatcher.translate_fragments(fragments_of("<p>Hello</p>"), "ja")
        assert dispatcher.cache.get("<p_0>Hello</p_1>", "ja") == "<P_0>HELLO</P_1>"


class TestSingleAndFallback:
    """Test the single-fragment path and batch fallback."""

    @pytest.mark.asyncio
    async def test_single_unit_uses_single_mode(self, fake_client):
        dispatcher = make_dispatcher(fake_client)
        fragment = HtmlFragment("<em>Hi</em>")

        outcome = await dispatcher.translate_fragment(fragment, "ja")

        assert outcome.succeeded
        assert fake_client.requests[0]['batch_delimiter'] is None
        assert fragment.get_content() == "<em>HI</em>"

    @pytest.mark.asyncio
    async def test_transport_failure_falls_back_to_single(self, make_client):
        client = make_client([
            ApiRequestError("API request failed: 503 Service Unavailable", status_code=503),
            "<p_0>Un</p_1>",
            "<p_0>Deux</p_1>",
        ])
        log = []
        dispatcher = make_dispatcher(client, log_callback=lambda key, message: log.append(key))
        fragments = fragments_of("<p>One</p>", "<p>Two</p>")

        outcomes = await dispatcher.translate_fragments(fragments, "fr")

        assert [r['batch_delimiter'] for r in client.requests] == [DEFAULT_BATCH_DELIMITER, None, None]
        assert [r['text'] for r in client.requests[1:]] == ["<p_0>One</p_1>", "<p_0>Two</p_1>"]
        assert [f.get_content() for f in fragments] == ["<p>Un</p>", "<p>Deux</p>"]
        assert all(o.succeeded for o in outcomes)
        assert "batch_fallback" in log

    @pytest.mark.asyncio
    async def test_failed_fallback_leaves_fragments_untouched(self, failing_client):
        dispatcher = make_dispatcher(failing_client)
        fragments = fragments_of("<p>One</p>", "<p>Two</p>")

        outcomes = await dispatcher.translate_fragments(fragments, "fr")

        assert all(o.state == FragmentState.FAILED for o in outcomes)
        assert all("boom" in o.error for o in outcomes)
        assert [f.get_content() for f in fragments] == ["<p>One</p>", "<p>Two</p>"]
        assert all(f.failed for f in fragments)

    @pytest.mark.asyncio
    async def test_failed_fragment_can_be_resubmitted(self, make_client):
        client = make_client([ApiRequestError("API request failed: timeout")])
        dispatcher = make_dispatcher(client)
        fragment = HtmlFragment("<p>Retry me</p>")

        first = await dispatcher.translate_fragment(fragment, "ja")
        second = await dispatcher.translate_fragment(fragment, "ja")

        assert first.state == FragmentState.FAILED
        assert second.state == FragmentState.APPLIED
        assert fragment.get_content() == "<p>RETRY ME</p>"

    @pytest.mark.asyncio
    async def test_empty_single_response_fails(self, make_client):
        client = make_client([""])
        dispatcher = make_dispatcher(client)
        outcome = await dispatcher.translate_fragment(HtmlFragment("text"), "ja")
        assert outcome.state == FragmentState.FAILED


class TestCacheAndSkipping:
    """Test cache hits and whitespace-only fragments."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_network(self, fake_client):
        dispatcher = make_dispatcher(fake_client)
        await dispatcher.translate_fragments(fragments_of("<p>Hello</p>"), "ja")
        assert len(fake_client.requests) == 1

        again = fragments_of("<p>Hello</p>")
        outcomes = await dispatcher.translate_fragments(again, "ja")

        assert len(fake_client.requests) == 1
        assert outcomes[0].cached
        assert again[0].get_content() == "<p>HELLO</p>"
        assert again[0].state == FragmentState.APPLIED

    @pytest.mark.asyncio
    async def test_cache_is_per_language(self, fake_client):
        dispatcher = make_dispatcher(fake_client)
        await dispatcher.translate_fragments(fragments_of("Hello"), "ja")
        await dispatcher.translate_fragments(fragments_of("Hello"), "ko")
        assert len(fake_client.requests) == 2

    @pytest.mark.asyncio
    async def test_whitespace_only_skipped(self, fake_client):
        dispatcher = make_dispatcher(fake_client)
        fragments = fragments_of("   \n ", "text")

        outcomes = await dispatcher.translate_fragments(fragments, "ja")

        assert outcomes[0].state == FragmentState.SKIPPED
        assert fragments[0].state == FragmentState.SKIPPED
        assert fake_client.requests[0]['text'] == "text"

    @pytest.mark.asyncio
    async def test_applied_fragment_not_translated_again(self, make_client):
        client = make_client(["<p_0>Bonjour</p_1>", "<p_0>Hallo</p_1>"])
        dispatcher = make_dispatcher(client)
        fragment = HtmlFragment("<p>Hello</p>")

        first = await dispatcher.translate_fragment(fragment, "fr")
        second = await dispatcher.translate_fragment(fragment, "de")

        assert first.state == FragmentState.APPLIED
        assert second.state == FragmentState.SKIPPED
        assert len(client.requests) == 1
        assert fragment.get_content() == "<p>Bonjour</p>"
        assert fragment.state == FragmentState.APPLIED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", [FragmentState.QUEUED, FragmentState.TRANSLATING])
    async def test_fragment_in_flight_not_resubmitted(self, fake_client, state):
        dispatcher = make_dispatcher(fake_client)
        busy, free = fragments_of("<p>Busy</p>", "<p>Free</p>")
        busy.mark_state(state)

        outcomes = await dispatcher.translate_fragments([busy, free], "ja")

        assert [o.state for o in outcomes] == [FragmentState.SKIPPED, FragmentState.APPLIED]
        assert [r['text'] for r in fake_client.requests] == ["<p_0>Free</p_1>"]
        assert busy.state == state
        assert busy.get_content() == "<p>Busy</p>"

    @pytest.mark.asyncio
    async def test_restored_fragment_translates_again(self, fake_client):
        dispatcher = make_dispatcher(fake_client)
        fragment = HtmlFragment("<p>Hello</p>")
        await dispatcher.translate_fragment(fragment, "ja")
        fragment.restore()

        outcome = await dispatcher.translate_fragment(fragment, "ko")

        assert outcome.state == FragmentState.APPLIED
        assert len(fake_client.requests) == 2

    @pytest.mark.asyncio
    async def test_every_fragment_ends_in_final_state(self, make_client):
        client = make_client(["ONLY ONE"])
        dispatcher = make_dispatcher(client)
        fragments = fragments_of("a", " ", "b", "c")

        outcomes = await dispatcher.translate_fragments(fragments, "ja")

        assert len(outcomes) == 4
        assert [o.index for o in outcomes] == [0, 1, 2, 3]
        assert all(o.state.is_final for o in outcomes)
        assert all(f.state.is_final for f in fragments)


class TestChunkedFragments:
    """Test oversized fragments split into chunks."""

    @pytest.mark.asyncio
    async def test_chunks_reassembled_and_cached(self, fake_client):
        dispatcher = make_dispatcher(fake_client)
        markup = long_paragraph()
        fragment = HtmlFragment(markup)

        outcomes = await dispatcher.translate_fragments([fragment], "ja")

        assert outcomes[0].succeeded
        assert len(fake_client.requests) >= 3
        assert all(r['batch_delimiter'] is None for r in fake_client.requests)
        assert all(len(r['text']) <= 90 for r in fake_client.requests)
        assert fragment.get_content() == "<p>" + markup[3:-4].upper() + "</p>"
        assert len(dispatcher.assembler) == 0

        encoded = "<p_0>" + markup[3:-4] + "</p_1>"
        assert dispatcher.cache.get(encoded, "ja") is not None

    @pytest.mark.asyncio
    async def test_failed_chunk_fails_fragment(self, make_client):
        client = make_client([ApiRequestError("API request failed: 500 Internal Server Error", status_code=500)])
        dispatcher = make_dispatcher(client)
        markup = long_paragraph()
        fragment = HtmlFragment(markup)

        outcomes = await dispatcher.translate_fragments([fragment], "ja")

        assert outcomes[0].state == FragmentState.FAILED
        assert fragment.get_content() == markup
        assert len(dispatcher.assembler) == 0
        assert len(dispatcher.cache) == 0


class TestProgressAndCancellation:
    """Test progress reporting and queue cancellation."""

    @pytest.mark.asyncio
    async def test_progress_reaches_total(self, fake_client):
        dispatcher = make_dispatcher(fake_client, max_characters=30)
        calls = []
        fragments = fragments_of("first fragment here", "second fragment here", "third fragment here")

        await dispatcher.translate_fragments(fragments, "ja", progress_callback=lambda done, total: calls.append((done, total)))

        assert calls[-1] == (3, 3)
        assert [done for done, _ in calls] == sorted(done for done, _ in calls)
        assert all(total == 3 for _, total in calls)

    @pytest.mark.asyncio
    async def test_cleared_queue_fails_pending_fragments(self, fake_client):
        dispatcher = make_dispatcher(fake_client, max_characters=30, rps=1)
        fragments = fragments_of("first fragment here", "second fragment here", "third fragment here")

        task = asyncio.ensure_future(dispatcher.translate_fragments(fragments, "ja"))
        await asyncio.sleep(0.1)
        assert dispatcher.rate_limiter.clear_queue() == 2
        outcomes = await task

        assert [o.state for o in outcomes] == [FragmentState.APPLIED, FragmentState.FAILED, FragmentState.FAILED]
        assert "cancelled" in outcomes[1].error
        assert fragments[1].get_content() == "second fragment here"


class TestUnexpectedResponses:
    """Test odd 200 bodies coming through the real HTTP client."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b"[]", b'"ok"', b'{"choices": ["x"]}', b"\x80\x81"])
    async def test_pass_finishes_with_failed_fragments(self, body):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, content=body)

        client = OpenAICompatibleProvider(
            model="gpt-4o-mini", api_key="sk-test", api_endpoint="https://llm.test/v1/chat/completions",
            transport=httpx.MockTransport(handler),
        )
        dispatcher = make_dispatcher(client)
        fragments = fragments_of("<p>One</p>", "<p>Two</p>")

        outcomes = await dispatcher.translate_fragments(fragments, "fr")
        await client.close()

        assert [o.state for o in outcomes] == [FragmentState.FAILED, FragmentState.FAILED]
        assert all(f.failed for f in fragments)
        assert [f.get_content() for f in fragments] == ["<p>One</p>", "<p>Two</p>"]
        # one batch request, then one single request per fragment
        assert len(calls) == 3
