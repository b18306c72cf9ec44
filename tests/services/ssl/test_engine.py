from __future__ import annotations

import asyncio
import logging

import pytest

from hostcert.services.ssl import (
    AuthorityError,
    CertificateRecord,
    CertificateStore,
    HostnameRecord,
    NotFound,
    PollExhausted,
    ReconciliationEngine,
    StatusPoller,
    ValidationError,
)
from tests.fakes import FakeAuthority, no_sleep


@pytest.fixture()
def authority():
    return FakeAuthority()


@pytest.fixture()
def store(tmp_path):
    store = CertificateStore(tmp_path / "ssl_records.db")
    yield store
    store.close()


@pytest.fixture()
def engine(authority, store):
    poller = StatusPoller(authority, delay=0, sleep=no_sleep)
    return ReconciliationEngine(authority, store, poller, poll_attempts=3)


@pytest.mark.anyio
async def test_create_returns_pending_then_background_reconciles(engine, authority, store):
    authority.gate = asyncio.Event()

    created = await engine.create("example.com")

    assert isinstance(created, HostnameRecord)
    assert created.status == "pending"
    assert created.as_dict()["hostname"] == "example.com"
    assert engine.pending_tasks == 1

    # the authority is still busy: reads see the cached pending row
    cached = await engine.read("example.com")
    assert isinstance(cached, CertificateRecord)
    assert cached.status == "pending"

    authority.statuses[created.id] = "active"
    authority.gate.set()
    await engine.wait_idle()

    assert engine.pending_tasks == 0
    refreshed = await engine.read("example.com")
    assert refreshed.status == "active"
    assert refreshed.id == created.id
    assert (await store.get_by_id(created.id)).created_at == cached.created_at


@pytest.mark.anyio
async def test_create_end_to_end_scenario(engine, authority, store):
    async def create(hostname: str) -> HostnameRecord:
        authority.calls.append(f"create:{hostname}")
        authority.add("abc", hostname, status="initializing")
        return HostnameRecord.from_payload({"id": "abc", "hostname": hostname})

    authority.create = create
    authority.statuses["abc"] = "active"

    created = await engine.create("example.com")
    assert created.as_dict() == {"id": "abc", "hostname": "example.com", "status": "pending"}
    row = await store.get_by_id("abc")
    assert row is not None and row.status == "pending"

    await engine.wait_idle()
    assert (await engine.read("example.com")).status == "active"


@pytest.mark.anyio
async def test_create_falls_back_to_requested_hostname(engine, authority, store):
    async def create(hostname: str) -> HostnameRecord:
        authority.calls.append(f"create:{hostname}")
        authority.add("abc", hostname, status="initializing")
        return HostnameRecord.from_payload({"id": "abc"})

    authority.create = create
    authority.gate = asyncio.Event()

    created = await engine.create("example.com")

    assert created.hostname == "example.com"
    assert created.as_dict()["hostname"] == "example.com"
    row = await store.get_by_hostname("example.com")
    assert row is not None and row.id == "abc" and row.status == "pending"
    assert isinstance(await engine.read("example.com"), CertificateRecord)
    assert authority.calls[0] == "create:example.com"

    authority.gate.set()
    await engine.wait_idle()
    assert (await store.get_by_hostname("example.com")).status == "initializing"


@pytest.mark.anyio
@pytest.mark.parametrize("hostname", [None, "", "   "])
async def test_create_requires_hostname(engine, authority, hostname):
    with pytest.raises(ValidationError):
        await engine.create(hostname)
    assert authority.calls == []


@pytest.mark.anyio
async def test_repeated_create_keeps_one_row_per_hostname(engine, authority, store):
    for _ in range(3):
        await engine.create("example.com")
    await engine.wait_idle()

    assert [c for c in authority.calls if c.startswith("create:")] == ["create:example.com"] * 3
    rows = await store.list()
    assert len(rows) == 1
    assert rows[0].hostname == "example.com"


@pytest.mark.anyio
async def test_background_exhaustion_is_logged_not_raised(engine, authority, store, caplog):
    authority.get_failures = 3

    with caplog.at_level(logging.WARNING, logger="hostcert.ssl"):
        created = await engine.create("example.com")
        await engine.wait_idle()

    row = await store.get_by_id(created.id)
    assert row.status == "pending"
    assert any("gave up" in rec.getMessage() for rec in caplog.records)


@pytest.mark.anyio
async def test_read_miss_falls_back_without_writing(engine, authority, store):
    authority.add("remote-1", "remote.example.com", status="active")

    record = await engine.read("remote.example.com")

    assert isinstance(record, HostnameRecord)
    assert record.status == "active"
    assert await store.list() == []


@pytest.mark.anyio
async def test_read_unknown_hostname_is_not_found(engine):
    with pytest.raises(NotFound):
        await engine.read("nowhere.example.com")


@pytest.mark.anyio
async def test_recheck_polls_and_stores(engine, authority, store):
    authority.add("abc", "example.com")
    await store.upsert(CertificateRecord(id="abc", hostname="example.com", status="pending"))
    authority.statuses["abc"] = "active"
    authority.get_failures = 2

    updated = await engine.recheck("example.com")

    assert updated.status == "active"
    assert authority.calls.count("get:abc") == 3
    assert (await store.get_by_hostname("example.com")).status == "active"


@pytest.mark.anyio
async def test_recheck_surfaces_exhaustion(engine, authority, store):
    authority.add("abc", "example.com")
    await store.upsert(CertificateRecord(id="abc", hostname="example.com", status="pending"))
    authority.get_failures = 3

    with pytest.raises(PollExhausted):
        await engine.recheck("example.com")
    assert (await store.get_by_id("abc")).status == "pending"


@pytest.mark.anyio
async def test_recheck_requires_local_record(engine, authority):
    authority.add("abc", "example.com")
    with pytest.raises(NotFound):
        await engine.recheck("example.com")
    assert authority.calls == []


@pytest.mark.anyio
async def test_update_settings_refreshes_known_rows_only(engine, authority, store):
    authority.add("abc", "example.com", status="active")
    authority.add("ghost", "ghost.example.com", status="active")
    await store.upsert(CertificateRecord(id="abc", hostname="example.com", status="pending"))

    updated = await engine.update_settings("abc", {"http2": "off"})
    assert updated.as_dict()["ssl"] == {"settings": {"http2": "off"}}
    assert (await store.get_by_id("abc")).status == "active"

    await engine.update_settings("ghost", {"http2": "off"})
    assert await store.get_by_id("ghost") is None


@pytest.mark.anyio
async def test_update_settings_unknown_id_propagates_authority_error(engine, authority, store):
    with pytest.raises(AuthorityError) as excinfo:
        await engine.update_settings("ghost", {"http2": "off"})

    assert excinfo.value.status_code == 404
    assert excinfo.value.body["errors"] == [{"code": 1436}]
    assert await store.get_by_id("ghost") is None


@pytest.mark.anyio
async def test_delete_removes_local_row(engine, authority, store):
    async def delete(record_id: str) -> dict:
        authority.calls.append(f"delete:{record_id}")
        return {"id": record_id, "status": "pending_deletion"}

    authority.delete = delete
    await store.upsert(CertificateRecord(id="abc", hostname="example.com", status="active"))

    result = await engine.delete("abc")

    assert result["status"] == "pending_deletion"
    assert await store.get_by_id("abc") is None


@pytest.mark.anyio
async def test_delete_authority_failure_keeps_local_row(engine, authority, store):
    async def delete(record_id: str) -> dict:
        authority.calls.append(f"delete:{record_id}")
        raise AuthorityError("boom", status_code=500, body={"success": False, "errors": [{"code": 1000, "message": "boom"}]})

    authority.delete = delete
    await store.upsert(CertificateRecord(id="abc", hostname="example.com", status="active"))

    with pytest.raises(AuthorityError) as excinfo:
        await engine.delete("abc")

    assert excinfo.value.status_code == 500
    row = await store.get_by_id("abc")
    assert row is not None and row.status == "active"


@pytest.mark.anyio
async def test_list_never_touches_authority(engine, authority, store):
    await store.upsert(CertificateRecord(id="a", hostname="a.example.com", status="active"))
    await store.upsert(CertificateRecord(id="b", hostname="b.example.com", status="pending"))

    rows = await engine.list()

    assert [r.id for r in rows] == ["b", "a"]
    assert authority.calls == []


@pytest.mark.anyio
async def test_aclose_cancels_stuck_reconciliations(engine, authority):
    authority.gate = asyncio.Event()
    await engine.create("example.com")

    await engine.aclose(timeout=0.01)

    assert engine.pending_tasks == 0
