"""Tests for the canvas reconciler."""

from datetime import datetime, timezone

import pytest

from releasebeacon.formatting.canvas import parse_document_entries, render_document_snapshot
from releasebeacon.models.release import CanvasMetadata, ChangeType, ReleaseEntry
from releasebeacon.reconciler.reconciler import CREATED, EDITED, CanvasReconciler, ReconcileResult
from releasebeacon.slack.errors import ApiError
from releasebeacon.stores.state_store import InMemoryStateStore

FIXED_NOW = datetime(2024, 1, 5, tzinfo=timezone.utc)


def make_entry(version, repository_name="acme/api", **fields):
    return ReleaseEntry(version=version, release_date="Jan 5, 2024", repository_name=repository_name, **fields)


def make_reconciler(documents, state_store=None, **kwargs):
    kwargs.setdefault("retry_delay", 0)
    return CanvasReconciler(
        documents,
        metadata_store=state_store,
        entry_store=state_store,
        clock=lambda: FIXED_NOW,
        **kwargs,
    )


def entries_of(documents, document_id):
    return parse_document_entries(documents.documents[document_id])


@pytest.mark.asyncio
async def test_first_reconcile_creates_document(document_store):
    store = InMemoryStateStore()
    reconciler = make_reconciler(document_store, store)

    result = await reconciler.reconcile("#releases", make_entry("v1.0.0"))

    assert result
    assert result.action == CREATED
    assert document_store.created == [result.document_id]
    assert [e.version for e in entries_of(document_store, result.document_id)] == ["v1.0.0"]

    metadata = store.get("C0RELEASES")
    assert metadata.document_id == result.document_id
    assert metadata.channel_id == "C0RELEASES"
    assert metadata.channel_name == "releases"
    assert metadata.entry_count == 1
    assert metadata.last_updated == FIXED_NOW


@pytest.mark.asyncio
async def test_second_reconcile_edits_same_document(document_store):
    reconciler = make_reconciler(document_store)

    first = await reconciler.reconcile("releases", make_entry("v1.0.0"))
    second = await reconciler.reconcile("C0RELEASES", make_entry("v1.1.0"))

    assert second.action == EDITED
    assert second.document_id == first.document_id
    assert len(document_store.created) == 1
    assert [e.version for e in entries_of(document_store, first.document_id)] == ["v1.1.0", "v1.0.0"]


@pytest.mark.asyncio
async def test_same_version_is_recorded_twice(document_store):
    reconciler = make_reconciler(document_store)

    await reconciler.reconcile("releases", make_entry("v1.0.0"))
    result = await reconciler.reconcile("releases", make_entry("v1.0.0"))

    assert [e.version for e in entries_of(document_store, result.document_id)] == ["v1.0.0", "v1.0.0"]


@pytest.mark.asyncio
@pytest.mark.parametrize("with_store", [False, True])
async def test_retention_keeps_newest_fifty(document_store, with_store):
    store = InMemoryStateStore() if with_store else None
    reconciler = make_reconciler(document_store, store)

    for i in range(1, 52):
        result = await reconciler.reconcile("releases", make_entry(f"v1.0.{i}"))
        assert result

    entries = entries_of(document_store, result.document_id)
    assert len(entries) == 50
    assert entries[0].version == "v1.0.51"
    assert entries[-1].version == "v1.0.2"
    assert "v1.0.1" not in [e.version for e in entries]
    assert result.entry_count == 50
    if store:
        assert len(store.load_entries("C0RELEASES")) == 50


@pytest.mark.asyncio
async def test_existing_document_history_is_scraped(document_store):
    prior = [make_entry("v0.9.0", change_type=ChangeType.BREAKING, has_breaking=True), make_entry("v0.8.0")]
    document_id = document_store.add_document("C0RELEASES", render_document_snapshot("acme/api", prior), title="releases")
    reconciler = make_reconciler(document_store)

    result = await reconciler.reconcile("releases", make_entry("v1.0.0"))

    assert result.document_id == document_id
    assert result.action == EDITED
    assert entries_of(document_store, document_id) == [make_entry("v1.0.0")] + prior


@pytest.mark.asyncio
async def test_unresolvable_channel(document_store):
    reconciler = make_reconciler(document_store)

    result = await reconciler.reconcile("#does-not-exist", make_entry("v1.0.0"))

    assert not result
    assert "does-not-exist" in result.error
    assert document_store.created == []
    assert document_store.edited == []


@pytest.mark.asyncio
async def test_already_exists_race_falls_back_to_edit(document_store):
    document_store.race_document = render_document_snapshot("acme/api", [make_entry("v0.9.0")])
    reconciler = make_reconciler(document_store)

    result = await reconciler.reconcile("releases", make_entry("v1.0.0"))

    assert result
    assert result.action == EDITED
    assert document_store.created == []
    assert [e.version for e in entries_of(document_store, result.document_id)] == ["v1.0.0", "v0.9.0"]


@pytest.mark.asyncio
async def test_already_exists_but_undiscoverable(document_store):
    document_store.create_errors.append(ApiError(code="channel_canvas_already_exists"))
    reconciler = make_reconciler(document_store)

    result = await reconciler.reconcile("releases", make_entry("v1.0.0"))

    assert not result
    assert "not discoverable" in result.error
    assert document_store.documents == {}


@pytest.mark.asyncio
async def test_create_failure_reports_remediation(document_store):
    document_store.create_errors.append(ApiError(code="not_in_channel"))
    reconciler = make_reconciler(document_store)

    result = await reconciler.reconcile("releases", make_entry("v1.0.0"))

    assert result == ReconcileResult(success=False, error=result.error)
    assert "/invite" in result.error
    assert "not_in_channel" in result.error


@pytest.mark.asyncio
async def test_stale_metadata_rediscovers_live_document(document_store):
    store = InMemoryStateStore()
    store.put("C0RELEASES", CanvasMetadata(document_id="FDELETED", channel_id="C0RELEASES", last_updated=FIXED_NOW))
    live_id = document_store.add_document("C0RELEASES", render_document_snapshot("acme/api", []), title="releases")
    reconciler = make_reconciler(document_store, store)

    result = await reconciler.reconcile("releases", make_entry("v1.0.0"))

    assert result.document_id == live_id
    assert store.get("C0RELEASES").document_id == live_id


@pytest.mark.asyncio
async def test_stale_metadata_without_live_document_creates(document_store):
    store = InMemoryStateStore()
    store.put("C0RELEASES", CanvasMetadata(document_id="FDELETED", channel_id="C0RELEASES", last_updated=FIXED_NOW))
    store.save_entries("C0RELEASES", [make_entry("v0.9.0")])
    reconciler = make_reconciler(document_store, store)

    result = await reconciler.reconcile("releases", make_entry("v1.0.0"))

    assert result.action == CREATED
    assert [e.version for e in entries_of(document_store, result.document_id)] == ["v1.0.0", "v0.9.0"]
    assert store.get("C0RELEASES").document_id == result.document_id


@pytest.mark.asyncio
async def test_edit_failure_is_unsuccessful(document_store):
    document_store.add_document("C0RELEASES", render_document_snapshot("acme/api", []), title="releases")
    document_store.edit_errors.append(ApiError(code="missing_scope"))
    reconciler = make_reconciler(document_store)

    result = await reconciler.reconcile("releases", make_entry("v1.0.0"))

    assert not result
    assert "missing_scope" in result.error


@pytest.mark.asyncio
async def test_repository_scope_keeps_one_canvas_per_repository(document_store):
    store = InMemoryStateStore()
    reconciler = make_reconciler(document_store, store, scope="repository")

    api = await reconciler.reconcile("releases", make_entry("v1.0.0", repository_name="acme/api"))
    web = await reconciler.reconcile("releases", make_entry("v5.0.0", repository_name="acme/web"))
    api_again = await reconciler.reconcile("releases", make_entry("v1.1.0", repository_name="acme/api"))

    assert api.document_id != web.document_id
    assert api_again.document_id == api.document_id
    assert document_store.titles[api.document_id] == "acme/api Releases"
    assert store.get("C0RELEASES:acme/api").document_id == api.document_id
    assert store.get("C0RELEASES:acme/web").document_id == web.document_id
    assert document_store.documents[web.document_id].splitlines()[0] == "# 📦 acme/web Releases"


@pytest.mark.asyncio
async def test_channel_scope_titles_canvas_after_channel(document_store):
    reconciler = make_reconciler(document_store)

    await reconciler.reconcile("releases", make_entry("v1.0.0", repository_name="acme/api"))
    result = await reconciler.reconcile("releases", make_entry("v9.0.0", repository_name="acme/web"))

    markdown = document_store.documents[result.document_id]
    assert markdown.splitlines()[0] == "# 📦 releases Releases"
    assert [(e.version, e.repository_name) for e in entries_of(document_store, result.document_id)] == [
        ("v9.0.0", "acme/web"),
        ("v1.0.0", "acme/api"),
    ]


@pytest.mark.asyncio
async def test_result_carries_document(document_store):
    reconciler = make_reconciler(document_store)

    await reconciler.reconcile("releases", make_entry("v1.0.0"))
    result = await reconciler.reconcile("releases", make_entry("v1.1.0"))

    assert result.document.owner_channel_id == "C0RELEASES"
    assert result.document.document_id == result.document_id
    assert [e.version for e in result.document.entries] == ["v1.1.0", "v1.0.0"]
    assert result.document.last_updated == FIXED_NOW


def test_invalid_configuration(document_store):
    with pytest.raises(ValueError):
        CanvasReconciler(document_store, scope="workspace")
    with pytest.raises(ValueError):
        CanvasReconciler(document_store, history_limit=0)
