import asyncio

from src.config import ActionKind, InboxStatus
from src.core import InboxAPIException
from src.inbox.application import ActionOutcome, ActionResult, ListSynchronizer
from src.inbox.domain import EditableCitationRow

from conftest import make_raw


async def loaded(fake_api, gateway, *ids: str) -> ListSynchronizer:
    fake_api.add(*(make_raw(i) for i in ids))
    sync = ListSynchronizer(gateway)
    report = await sync.refresh()
    assert report.ok
    return sync


async def test_refresh_keeps_only_active_items(fake_api, gateway) -> None:
    fake_api.pages[(InboxStatus.PENDING, None)] = {
        "items": [make_raw("A"), make_raw("X", status=InboxStatus.APPROVED)],
        "next_cursor": None,
    }
    fake_api.add(make_raw("R", status=InboxStatus.NEEDS_REVIEW))
    sync = ListSynchronizer(gateway)

    report = await sync.refresh()

    assert report.added == 2
    assert set(sync.ids) == {"A", "R"}
    assert "X" not in sync


async def test_refresh_survives_malformed_citation_numbers(fake_api, gateway) -> None:
    fake_api.add(make_raw("A", citations=[
        {"doc_id": "D1", "page": "1e400"},
        {"doc_id": "D2", "page": float("inf")},
    ]))
    sync = ListSynchronizer(gateway)

    report = await sync.refresh()

    assert report.ok
    assert [(c.doc_id, c.page) for c in sync.get("A").citations] == [("D1", None), ("D2", None)]


async def test_refresh_passes_filters_to_every_bucket(fake_api, gateway) -> None:
    sync = ListSynchronizer(gateway)

    await sync.refresh({"tag": "billing"})

    assert {c["status"] for c in fake_api.called("list")} == {InboxStatus.PENDING, InboxStatus.NEEDS_REVIEW}
    assert all(c["filters"] == {"tag": "billing"} for c in fake_api.called("list"))
    assert sync.filters == {"tag": "billing"}


async def test_load_more_never_overwrites_present_items(fake_api, gateway) -> None:
    fake_api.pages[(InboxStatus.PENDING, None)] = {
        "items": [make_raw("A"), make_raw("B")], "next_cursor": "c1",
    }
    fake_api.pages[(InboxStatus.PENDING, "c1")] = {
        "items": [make_raw("B", question="Changed upstream?"), make_raw("C")], "next_cursor": None,
    }
    sync = ListSynchronizer(gateway)
    await sync.refresh()
    assert sync.has_more

    report = await sync.load_more()

    assert report.added == 1
    assert sync.ids == ("A", "B", "C")
    assert sync.get("B").question == "Question for B?"
    assert not sync.has_more
    assert (await sync.load_more()).outcome == ActionOutcome.NOOP


async def test_refresh_failure_keeps_previous_collection(fake_api, gateway) -> None:
    sync = await loaded(fake_api, gateway, "A")
    fake_api.fail("list", InboxAPIException("connection reset"))

    report = await sync.refresh()

    assert report.outcome == ActionOutcome.FAILURE
    assert sync.ids == ("A",)


async def test_refresh_clears_selection(fake_api, gateway) -> None:
    sync = await loaded(fake_api, gateway, "A", "B")
    sync.select_all()

    await sync.refresh()

    assert sync.selected_ids == ()


async def test_superseded_refresh_is_discarded(fake_api, gateway) -> None:
    sync = await loaded(fake_api, gateway, "A")
    gate = asyncio.Event()
    original_list = fake_api.list

    async def gated_list(status, **kwargs):
        if kwargs.get("filters") == {"tag": "old"}:
            await gate.wait()
        return await original_list(status, **kwargs)

    fake_api.list = gated_list
    first = asyncio.create_task(sync.refresh({"tag": "old"}))
    await asyncio.sleep(0)
    fake_api.add(make_raw("B"))

    second = await sync.refresh({"tag": "new"})
    gate.set()
    stale = await first

    assert second.ok and not second.superseded
    assert stale.superseded
    assert set(sync.ids) == {"A", "B"}
    assert sync.filters == {"tag": "new"}


async def test_terminal_success_removes_item(fake_api, gateway, curator) -> None:
    sync = await loaded(fake_api, gateway, "A", "B")
    sync.toggle_selection("A")

    result = await gateway.reject(sync.get("A"), curator)
    fresh = await sync.apply_result(result)

    assert fresh is None
    assert sync.ids == ("B",)
    assert sync.selected_ids == ()


async def test_attach_source_success_refetches_item(fake_api, gateway, curator) -> None:
    sync = await loaded(fake_api, gateway, "A")

    result = await gateway.attach_source(sync.get("A"), curator, [EditableCitationRow(doc_id="D7")])
    fresh = await sync.apply_result(result)

    assert fresh is not None
    assert [c.doc_id for c in fresh.citations] == ["D7"]
    assert sync.get("A") == fresh
    assert fake_api.called("get") == ["A"]


async def test_request_review_success_keeps_item_with_assignees(fake_api, gateway, curator) -> None:
    sync = await loaded(fake_api, gateway, "A")

    result = await gateway.request_review(
        sync.get("A"), curator, "Please confirm the refund window.", ["sme-1"]
    )
    fresh = await sync.apply_result(result)

    assert fresh.status == InboxStatus.NEEDS_REVIEW
    assert sync.get("A").is_assigned


async def test_not_found_removes_item(fake_api, gateway) -> None:
    sync = await loaded(fake_api, gateway, "A")

    await sync.apply_result(ActionResult(action=ActionKind.REJECT, item_id="A", outcome=ActionOutcome.NOT_FOUND))

    assert "A" not in sync


async def test_server_conflict_marks_item_stale_until_reloaded(fake_api, gateway) -> None:
    sync = await loaded(fake_api, gateway, "A")

    await sync.apply_result(ActionResult(action=ActionKind.PROMOTE, item_id="A", outcome=ActionOutcome.CONFLICT))

    assert sync.needs_resync("A")
    assert sync.stale_ids == ("A",)

    await sync.load_detail("A")

    assert not sync.needs_resync("A")


async def test_local_guard_failure_does_not_mark_stale(fake_api, gateway) -> None:
    sync = await loaded(fake_api, gateway, "A")

    await sync.apply_result(ActionResult(
        action=ActionKind.DISMISS, item_id="A", outcome=ActionOutcome.CONFLICT, network_attempted=False,
    ))

    assert not sync.needs_resync("A")
    assert "A" in sync


async def test_detail_turning_terminal_drops_item(fake_api, gateway) -> None:
    sync = await loaded(fake_api, gateway, "A")
    fake_api.items["A"]["status"] = InboxStatus.PROMOTED

    result = await sync.load_detail("A")

    assert result.ok
    assert "A" not in sync


async def test_stale_detail_response_is_discarded(fake_api, gateway) -> None:
    sync = await loaded(fake_api, gateway, "A")
    fake_api.items["A"]["question"] = "Newest question?"
    release_first = asyncio.Event()
    original_get = fake_api.get
    calls = 0

    async def slow_get(item_id):
        nonlocal calls
        calls += 1
        if calls == 1:
            await release_first.wait()
            return make_raw("A", question="Outdated question?")
        return await original_get(item_id)

    fake_api.get = slow_get
    first = asyncio.create_task(sync.load_detail("A"))
    await asyncio.sleep(0)

    latest = await sync.load_detail("A")
    release_first.set()

    assert latest.ok
    assert await first is None
    assert sync.get("A").question == "Newest question?"


async def test_bulk_partial_failure_keeps_failed_items(fake_api, gateway, curator) -> None:
    sync = await loaded(fake_api, gateway, "A", "B", "C")
    sync.select_all()
    fake_api.bulk_errors = [{"id": "B", "message": "Already processed"}]

    result = await gateway.bulk_approve(sync.selected_ids, curator)
    message = sync.apply_bulk_result(result)

    assert sync.ids == ("B",)
    assert sync.selected_ids == ()
    assert message == "2 approved, 1 failed."


async def test_bulk_request_failure_removes_nothing(fake_api, gateway, curator) -> None:
    sync = await loaded(fake_api, gateway, "A", "B")
    sync.select_all()
    fake_api.fail("bulk_reject", InboxAPIException("timeout"))

    result = await gateway.bulk_reject(sync.selected_ids, curator)
    sync.apply_bulk_result(result)

    assert sync.ids == ("A", "B")
    assert sync.selected_ids == ()


async def test_selection_ignores_unknown_ids(fake_api, gateway) -> None:
    sync = await loaded(fake_api, gateway, "A")

    assert sync.toggle_selection("missing") is False
    assert sync.toggle_selection("A") is True
    assert sync.is_selected("A")
    assert sync.toggle_selection("A") is False
    assert sync.selected_ids == ()


async def test_snapshot_is_immutable_copy(fake_api, gateway) -> None:
    sync = await loaded(fake_api, gateway, "A")

    snapshot = sync.snapshot()
    await sync.apply_result(ActionResult(action=ActionKind.REJECT, item_id="A", outcome=ActionOutcome.NOT_FOUND))

    assert isinstance(snapshot, tuple)
    assert [i.id for i in snapshot] == ["A"]
    assert "A" not in sync
