from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from databaxe import DataBaxe, Engine, TransportResponse


class _CountingTransport:
    def __init__(self, data: Any = None) -> None:
        self.data = data
        self.calls = 0

    async def __call__(self, url: str, options: Mapping[str, Any]) -> TransportResponse:
        self.calls += 1
        return TransportResponse(data=self.data)


def _owned(db: DataBaxe, data_source_id: str) -> int:
    endpoint = db.engine.registry.get(db.data_sources[data_source_id].fingerprint)
    assert endpoint is not None
    return len(endpoint.owned_by(db.id))


@pytest.mark.asyncio
async def test_autorun_reruns_when_dispatch_updates_its_data() -> None:
    transport = _CountingTransport({"v": 1})
    db = DataBaxe(engine=Engine(), transport=transport)
    db.register({"id": "a", "url": "/x"})
    await db.get("a")
    seen: list[Any] = []

    async def view() -> None:
        seen.append(await db.get("a"))

    await db.autorun(view)
    await db.dispatch("a", {"v": 2})

    assert seen == [{"v": 1}, {"v": 2}]
    assert transport.calls == 1


@pytest.mark.asyncio
async def test_first_fetch_inside_autorun_notifies_the_new_dependency() -> None:
    transport = _CountingTransport({"v": 1})
    db = DataBaxe(engine=Engine(), transport=transport)
    db.register({"id": "a", "url": "/x"})
    seen: list[Any] = []

    async def view() -> None:
        seen.append(await db.get("a"))

    await db.autorun(view)

    # The re-run triggered by the fetch is served from the cache.
    assert seen == [{"v": 1}, {"v": 1}]
    assert transport.calls == 1
    assert _owned(db, "a") == 1


@pytest.mark.asyncio
async def test_repeated_reads_register_one_dependency() -> None:
    db = DataBaxe(engine=Engine(), transport=_CountingTransport({"v": 1}))
    db.register({"id": "a", "url": "/x"})
    await db.get("a")
    runs = 0

    async def view() -> None:
        nonlocal runs
        runs += 1
        await db.get("a")
        await db.get("a")

    await db.autorun(view)
    assert _owned(db, "a") == 1

    await db.dispatch("a", {"v": 2})
    await db.dispatch("a", {"v": 3})

    assert runs == 3
    assert _owned(db, "a") == 1
    assert len(db._deps) == 1


@pytest.mark.asyncio
async def test_structurally_equal_params_match_the_dependency() -> None:
    db = DataBaxe(engine=Engine(), transport=_CountingTransport({}))
    db.register({"id": "user", "url": "/users/{id}"})
    await db.get("user", {"id": 1}, {"headers": {"Accept": "json"}})
    runs = 0

    async def view() -> None:
        nonlocal runs
        runs += 1
        await db.get("user", {"id": 1}, {"headers": {"Accept": "json"}})

    await db.autorun(view)
    await db.dispatch("user", {"id": 1}, dict(id=1), {"headers": dict(Accept="json")})

    assert runs == 2


@pytest.mark.asyncio
async def test_updates_for_other_params_do_not_rerun() -> None:
    db = DataBaxe(engine=Engine(), transport=_CountingTransport({}))
    db.register({"id": "user", "url": "/users/{id}"})
    await db.get("user", {"id": 1})
    runs = 0

    async def view() -> None:
        nonlocal runs
        runs += 1
        await db.get("user", {"id": 1})

    await db.autorun(view)
    await db.dispatch("user", {"id": 2}, {"id": 2})

    assert runs == 1


@pytest.mark.asyncio
async def test_autofree_stops_reruns_and_keeps_other_subscribers() -> None:
    db = DataBaxe(engine=Engine(), transport=_CountingTransport({}))
    db.register({"id": "a", "url": "/x"})
    notified: list[Any] = []
    db.subscribe("a", lambda entry, params, options: notified.append(entry.payload))
    await db.get("a")
    runs = 0

    async def view() -> None:
        nonlocal runs
        runs += 1
        await db.get("a")

    await db.autorun(view)
    db.autofree(view)
    await db.dispatch("a", {"v": 2})

    assert runs == 1
    assert notified == [{}, {"v": 2}]
    assert db._deps == []
    assert _owned(db, "a") == 1


@pytest.mark.asyncio
async def test_autorun_accepts_a_list_and_tracks_each_function() -> None:
    db = DataBaxe(engine=Engine(), transport=_CountingTransport({}))
    db.register([{"id": "a", "url": "/a"}, {"id": "b", "url": "/b"}])
    await db.get("a")
    await db.get("b")
    runs: list[str] = []

    async def view_a() -> None:
        runs.append("a")
        await db.get("a")

    async def view_b() -> None:
        runs.append("b")
        await db.get("b")

    await db.autorun([view_a, view_b])
    await db.dispatch("b", {"v": 1})

    assert runs == ["a", "b", "b"]


@pytest.mark.asyncio
async def test_reads_outside_autorun_are_not_tracked() -> None:
    db = DataBaxe(engine=Engine(), transport=_CountingTransport({}))
    db.register({"id": "a", "url": "/x"})

    async def view() -> None:
        await db.get("a")

    await db.autorun(view)
    await db.get("a", {"page": 2})

    assert len(db._deps) == 1
    assert db._deps[0].params == {}


@pytest.mark.asyncio
async def test_tasks_spawned_by_a_tracked_function_are_tracked() -> None:
    db = DataBaxe(engine=Engine(), transport=_CountingTransport({}))
    db.register([{"id": "a", "url": "/a"}, {"id": "b", "url": "/b"}])
    await db.get("a")
    await db.get("b")
    runs = 0

    async def view() -> None:
        nonlocal runs
        runs += 1
        await asyncio.gather(db.get("a"), db.get("b"))

    await db.autorun(view)
    await db.dispatch("b", {"v": 1})

    assert runs == 2
    assert {d.data_source_id for d in db._deps} == {"a", "b"}


@pytest.mark.asyncio
async def test_write_from_another_instance_reruns_the_function() -> None:
    engine = Engine()
    transport = _CountingTransport({"v": 1})
    reader = DataBaxe(engine=engine, transport=transport)
    writer = DataBaxe(engine=engine, transport=transport)
    reader.register({"id": "mine", "url": "/shared"})
    writer.register({"id": "theirs", "url": "/shared"})
    await reader.get("mine")
    seen: list[Any] = []

    async def view() -> None:
        seen.append(await reader.get("mine"))

    await reader.autorun(view)
    await writer.dispatch("theirs", {"v": 2})

    assert seen == [{"v": 1}, {"v": 2}]


@pytest.mark.asyncio
async def test_synchronous_functions_can_be_autorun() -> None:
    db = DataBaxe(engine=Engine(), transport=_CountingTransport({}))
    runs: list[int] = []

    await db.autorun(lambda: runs.append(1))

    assert runs == [1]
    assert db._deps == []


@pytest.mark.asyncio
async def test_autorun_rejects_non_callables_in_a_list() -> None:
    db = DataBaxe(engine=Engine(), transport=_CountingTransport({}))

    with pytest.raises(TypeError):
        await db.autorun([lambda: None, "not a function"])


@pytest.mark.asyncio
async def test_destroy_releases_subscriptions_but_keeps_endpoints() -> None:
    engine = Engine()
    db = DataBaxe(engine=engine, transport=_CountingTransport({}))
    db.register({"id": "a", "url": "/x"})

    async def view() -> None:
        await db.get("a")

    await db.autorun(view)
    endpoint = engine.registry.get(db.data_sources["a"].fingerprint)
    db.destroy()

    assert endpoint is not None
    assert endpoint.subscribers == []
    assert len(engine.registry) == 1
    assert db.data_sources == {}
    assert db._deps == []


@pytest.mark.asyncio
async def test_rerun_finishes_before_lower_priority_subscribers_run() -> None:
    db = DataBaxe(engine=Engine(), transport=_CountingTransport({"v": 1}))
    db.register({"id": "a", "url": "/x"})
    await db.get("a")
    order: list[str] = []
    db.subscribe("a", lambda *_args: order.append("low"), priority=1)
    runs = 0

    async def view() -> None:
        nonlocal runs
        runs += 1
        await db.get("a")
        if runs > 1:
            await asyncio.sleep(0)
            order.append("rerun")

    await db.autorun(view)
    await db.dispatch("a", {"v": 2})

    assert order == ["rerun", "low"]
