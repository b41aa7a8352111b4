from __future__ import annotations

import asyncio
import unittest
from urllib.parse import parse_qs, urlsplit

from remixer.llm_client import RemixClient, RemixConfigError, RemixErr, RemixOk
from remixer.services.store import StoreResult, StoreStatus
from remixer.services.workflow import (
    EmptyInputError,
    RemixWorkflow,
    SavedListState,
    SaveOutcome,
    UnknownVariantError,
    VariantState,
    WorkflowBusyError,
    WorkflowState,
    WorkflowStore,
    build_share_url,
)
from tests.support import SqliteStore, make_settings, provider

TEXT = "Our Q3 revenue grew 40%."


class FakeClient:
    def __init__(self, results=None, *, error: Exception | None = None, gate: asyncio.Event | None = None):
        self.results = results
        self.error = error
        self.gate = gate
        self.calls = []

    async def generate_variants(self, content, styles):
        self.calls.append((content, list(styles)))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.results is not None:
            return list(self.results)
        return [RemixOk(s, f"{s} post", {"model": "m"}) for s in styles]


class FakeStore:
    def __init__(self, save_status: StoreStatus = StoreStatus.ok, available: bool = True):
        self.save_status = save_status
        self.available = available
        self.saves = []
        self.list_calls = 0

    async def save_variant(self, original_text, remix_type, remixed_content, metadata=None):
        self.saves.append((original_text, remix_type, remixed_content, metadata))
        if self.save_status is StoreStatus.ok:
            return StoreResult(StoreStatus.ok, {"id": len(self.saves)})
        return StoreResult(self.save_status, None)

    async def get_all_remix_outputs(self):
        self.list_calls += 1
        if not self.available:
            return StoreResult(StoreStatus.unavailable, [])
        return StoreResult(StoreStatus.ok, [f"row-{i}" for i in range(len(self.saves))])


def make_workflow(client=None, store=None, styles=("storytelling", "tips")) -> RemixWorkflow:
    return RemixWorkflow(client or FakeClient(), store or FakeStore(), default_styles=styles)


class TestGenerate(unittest.IsolatedAsyncioTestCase):
    async def test_starts_idle(self) -> None:
        wf = make_workflow()
        self.assertIs(wf.state, WorkflowState.idle)
        self.assertEqual(wf.variants, [])
        self.assertIs(wf.saved_state, SavedListState.loading)

    async def test_generate_uses_default_styles_in_order(self) -> None:
        client = FakeClient()
        wf = make_workflow(client)
        variants = await wf.generate(TEXT)

        self.assertIs(wf.state, WorkflowState.ready)
        self.assertEqual(client.calls, [(TEXT, ["storytelling", "tips"])])
        self.assertEqual([v.type for v in variants], ["storytelling", "tips"])
        self.assertTrue(all(v.state is VariantState.unsaved for v in variants))
        self.assertEqual(wf.content, TEXT)

    async def test_explicit_styles_override_defaults(self) -> None:
        client = FakeClient()
        wf = make_workflow(client)
        await wf.generate(TEXT, ["question"])
        self.assertEqual(client.calls[0][1], ["question"])

    async def test_explicit_empty_styles_yield_no_variants(self) -> None:
        client = FakeClient()
        wf = make_workflow(client)
        variants = await wf.generate(TEXT, [])

        self.assertEqual(client.calls, [(TEXT, [])])
        self.assertEqual(variants, [])
        self.assertIs(wf.state, WorkflowState.ready)

    async def test_blank_input_is_rejected_without_calling_the_client(self) -> None:
        client = FakeClient()
        wf = make_workflow(client)
        for blank in ("", "   \n\t"):
            with self.assertRaises(EmptyInputError):
                await wf.generate(blank)
        self.assertEqual(client.calls, [])
        self.assertIs(wf.state, WorkflowState.idle)

    async def test_error_results_become_error_cards(self) -> None:
        client = FakeClient([
            RemixOk("storytelling", "A story", {}),
            RemixErr("tips", "http", "LLM API error: 500 - boom"),
        ])
        wf = make_workflow(client)
        variants = await wf.generate(TEXT)

        self.assertEqual(len(variants), 2)
        self.assertFalse(variants[0].is_error)
        self.assertTrue(variants[1].is_error)
        self.assertEqual(variants[1].content, "Error generating tips: LLM API error: 500 - boom")
        self.assertEqual(variants[1].metadata["error"], True)

    async def test_second_generate_while_in_flight_is_refused(self) -> None:
        gate = asyncio.Event()
        client = FakeClient(gate=gate)
        wf = make_workflow(client)

        first = asyncio.create_task(wf.generate(TEXT))
        await asyncio.sleep(0)
        self.assertIs(wf.state, WorkflowState.generating)
        with self.assertRaises(WorkflowBusyError):
            await wf.generate("something else")

        gate.set()
        await first
        self.assertIs(wf.state, WorkflowState.ready)
        self.assertEqual(len(client.calls), 1)

    async def test_config_error_restores_previous_state(self) -> None:
        wf = make_workflow(FakeClient(error=RemixConfigError("LLM API key not found")))
        with self.assertRaises(RemixConfigError):
            await wf.generate(TEXT)
        self.assertIs(wf.state, WorkflowState.idle)
        self.assertEqual(wf.variants, [])

    async def test_regenerate_replaces_the_list(self) -> None:
        wf = make_workflow()
        await wf.generate(TEXT)
        wf.hide(0)
        await wf.generate(TEXT, ["question"])
        self.assertEqual([(v.type, v.state) for v in wf.variants], [("question", VariantState.unsaved)])

    async def test_with_real_client_partial_failure(self) -> None:
        import httpx

        client = RemixClient(make_settings(), transport=provider({"tips": httpx.Response(500, text="err")}))
        wf = make_workflow(client)
        variants = await wf.generate(TEXT)
        self.assertEqual([v.type for v in variants], ["storytelling", "tips"])
        self.assertFalse(variants[0].is_error)
        self.assertTrue(variants[1].is_error)


class TestSaveAndHide(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = FakeStore()
        self.wf = make_workflow(store=self.store)
        await self.wf.generate(TEXT)

    async def test_save_is_at_most_once(self) -> None:
        self.assertIs(await self.wf.save(0), SaveOutcome.saved)
        self.assertIs(await self.wf.save(0), SaveOutcome.skipped)

        self.assertEqual(len(self.store.saves), 1)
        self.assertEqual(self.store.saves[0][:3], (TEXT, "storytelling", "storytelling post"))
        self.assertTrue(self.wf.variant(0).saved)
        self.assertFalse(self.wf.variant(1).saved)

    async def test_successful_save_refreshes_saved_list(self) -> None:
        await self.wf.save(1)
        self.assertEqual(self.store.list_calls, 1)
        self.assertIs(self.wf.saved_state, SavedListState.loaded)
        self.assertEqual(self.wf.saved, ["row-0"])

    async def test_error_cards_are_never_saved(self) -> None:
        wf = make_workflow(FakeClient([RemixErr("tips", "empty", "No content")]), self.store)
        await wf.generate(TEXT)
        self.assertIs(await wf.save(0), SaveOutcome.skipped)
        self.assertEqual(self.store.saves, [])

    async def test_failed_save_returns_to_unsaved(self) -> None:
        self.store.save_status = StoreStatus.error
        self.assertIs(await self.wf.save(0), SaveOutcome.failed)
        self.assertIs(self.wf.variant(0).state, VariantState.unsaved)
        self.assertEqual(self.store.list_calls, 0)

        self.store.save_status = StoreStatus.ok
        self.assertIs(await self.wf.save(0), SaveOutcome.saved)
        self.assertEqual(len(self.store.saves), 2)

    async def test_save_without_store_reports_unavailable(self) -> None:
        self.store.save_status = StoreStatus.unavailable
        self.assertIs(await self.wf.save(0), SaveOutcome.unavailable)
        self.assertFalse(self.wf.store_available)
        self.assertIs(self.wf.variant(0).state, VariantState.unsaved)

    async def test_hide_only_touches_one_variant(self) -> None:
        before = list(self.wf.variants)
        self.assertTrue(self.wf.hide(1))

        self.assertTrue(self.wf.variant(1).deleted)
        self.assertIs(self.wf.variant(0), before[0])
        self.assertEqual([i for i, _ in self.wf.visible_variants()], [0])
        # hidden object is still held
        self.assertEqual(self.wf.variant(1).content, "tips post")

    async def test_hidden_variants_cannot_be_saved_and_saved_cannot_be_hidden(self) -> None:
        self.wf.hide(1)
        self.assertIs(await self.wf.save(1), SaveOutcome.skipped)
        await self.wf.save(0)
        self.assertFalse(self.wf.hide(0))
        self.assertTrue(self.wf.variant(0).saved)

    async def test_unknown_index(self) -> None:
        with self.assertRaises(UnknownVariantError):
            await self.wf.save(5)
        with self.assertRaises(UnknownVariantError):
            self.wf.hide(-1)

    async def test_variant_in_flight_is_marked_saving(self) -> None:
        gate = asyncio.Event()
        seen = []
        store = self.store

        async def slow_save(*args, **kwargs):
            seen.append(self.wf.variant(0).state)
            await gate.wait()
            return StoreResult(StoreStatus.ok, {"id": 1})

        store.save_variant = slow_save
        task = asyncio.create_task(self.wf.save(0))
        await asyncio.sleep(0)
        self.assertIs(await self.wf.save(0), SaveOutcome.skipped)
        gate.set()
        self.assertIs(await task, SaveOutcome.saved)
        self.assertEqual(seen, [VariantState.saving])

    async def test_snapshot(self) -> None:
        self.wf.hide(1)
        snap = self.wf.snapshot()
        self.assertEqual(snap["state"], "ready")
        self.assertEqual(snap["variants"][1]["state"], "hidden")
        self.assertTrue(snap["variants"][1]["deleted"])
        self.assertFalse(snap["variants"][0]["saved"])


class TestSavedList(unittest.IsolatedAsyncioTestCase):
    async def test_refresh_without_store(self) -> None:
        wf = make_workflow(store=FakeStore(available=False))
        self.assertEqual(await wf.refresh_saved(), [])
        self.assertFalse(wf.store_available)
        self.assertIs(wf.saved_state, SavedListState.loaded)

    async def test_saving_the_same_variant_twice_against_a_real_database(self) -> None:
        db = SqliteStore()
        store = await db.create()
        try:
            wf = make_workflow(store=store)
            await wf.generate(TEXT)
            self.assertIs(await wf.save(0), SaveOutcome.saved)
            self.assertIs(await wf.save(0), SaveOutcome.skipped)

            self.assertEqual(len(wf.saved), 1)
            self.assertEqual(wf.saved[0].remix_type, "storytelling")
            self.assertEqual(wf.saved[0].original_content.content, TEXT)
            self.assertEqual(len((await store.get_all_remix_outputs()).value), 1)

            # second variant reuses the same original row
            await wf.save(1)
            originals = {row.original_content_id for row in wf.saved}
            self.assertEqual(len(originals), 1)
        finally:
            await db.close()


class TestShare(unittest.TestCase):
    def test_share_url_carries_text_and_page(self) -> None:
        url = build_share_url("Big news! #growth", "https://remix.example/")
        parts = urlsplit(url)
        self.assertEqual(f"{parts.scheme}://{parts.netloc}{parts.path}",
                         "https://www.linkedin.com/sharing/share-offsite/")
        query = parse_qs(parts.query)
        self.assertEqual(query["url"], ["https://remix.example/"])
        self.assertEqual(query["text"], ["Big news! #growth"])

    def test_base_with_existing_query(self) -> None:
        url = build_share_url("hi", "https://x.test/", "https://share.test/intent?mini=true")
        self.assertTrue(url.startswith("https://share.test/intent?mini=true&"))


class TestWorkflowStore(unittest.TestCase):
    def test_same_session_same_workflow(self) -> None:
        store = WorkflowStore(make_workflow)
        a = store.get_or_create("s1")
        self.assertIs(store.get_or_create("s1"), a)
        self.assertIsNot(store.get_or_create("s2"), a)
        self.assertEqual(len(store), 2)
        self.assertIsNone(store.get("missing"))

    def test_oldest_session_evicted(self) -> None:
        store = WorkflowStore(make_workflow, max_sessions=2)
        store.get_or_create("a")
        store.get_or_create("b")
        store.get_or_create("a")  # touch
        store.get_or_create("c")
        self.assertIsNone(store.get("b"))
        self.assertIsNotNone(store.get("a"))
        self.assertEqual(len(store), 2)

    def test_session_ids_are_random(self) -> None:
        self.assertNotEqual(WorkflowStore.new_session_id(), WorkflowStore.new_session_id())


if __name__ == "__main__":
    unittest.main()
