from __future__ import annotations

import asyncio
import json

import pytest

from dashboard_worker.apps import city_sales
from dashboard_worker.channel import create_channel
from dashboard_worker.config import WorkerConfig
from dashboard_worker.runtime.worker import RuntimeWorker


async def _until(predicate, timeout: float = 5.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


async def _receive_until_render(port) -> list[dict]:
    messages = []
    while True:
        message = await asyncio.wait_for(port.receive(), 5)
        messages.append(message)
        if message["type"] == "render":
            return messages


@pytest.mark.asyncio
async def test_patches_start_only_after_rendered(worker_config: WorkerConfig, installer_factory) -> None:
    host_port, runtime_port = create_channel()
    worker = RuntimeWorker(runtime_port, worker_config, installer=installer_factory(), entry=city_sales.build)
    task = asyncio.create_task(worker.run())

    before_render = await _receive_until_render(host_port)
    assert all(m["type"] == "status" for m in before_render[:-1])

    doc = worker.session.document
    cities = doc.select_one({"name": "cities"})
    sort_by = doc.select_one({"name": "sort_by"})
    source = doc.select_one({"name": "sales"})

    # Not linked yet: nothing is sent.
    cities.value = ["Dublin", "Lorain"]
    await asyncio.sleep(0.05)
    assert host_port.drain() == []

    host_port.post_message({"type": "rendered"})
    await _until(lambda: worker.session.linked)

    sort_by.value = "Sales"
    await asyncio.sleep(0.05)
    messages = host_port.drain()
    assert [m["type"] for m in messages] == ["patch"]
    changed = {(e["model"]["id"], e["attr"]) for e in json.loads(messages[0]["patch"])["events"]}
    assert {(sort_by.id, "value"), (source.id, "data")} <= changed

    host_port.close()
    await asyncio.wait_for(task, 5)
    assert worker.session.linked is False


@pytest.mark.asyncio
async def test_events_queued_during_bootstrap_are_handled_in_order(worker_config: WorkerConfig) -> None:
    gate = asyncio.Event()

    class SlowInstaller:
        async def install(self, reference: str) -> None:
            await gate.wait()

    config = worker_config.model_copy(update={"dependencies": ["pandas"]})
    host_port, runtime_port = create_channel()
    worker = RuntimeWorker(runtime_port, config, installer=SlowInstaller(), entry=city_sales.build)
    task = asyncio.create_task(worker.run())

    host_port.post_message({"type": "rendered"})
    host_port.post_message({"type": "location", "location": json.dumps({"search": "?sort=Sales"})})
    host_port.post_message({"type": "patch", "patch": json.dumps({"events": [{"kind": "TitleChanged", "title": "Ohio"}]})})
    await asyncio.sleep(0.05)
    assert worker.session.ready is False

    gate.set()
    await _receive_until_render(host_port)
    await _until(lambda: worker.session.document.title == "Ohio")
    await asyncio.sleep(0.05)

    messages = host_port.drain()
    # rendered -> linked; location -> app switches sort (patch); patch -> idle
    assert [m["type"] for m in messages] == ["patch", "idle"]

    host_port.close()
    await asyncio.wait_for(task, 5)


@pytest.mark.asyncio
async def test_fatal_bootstrap_closes_the_channel(worker_config: WorkerConfig, installer_factory) -> None:
    def broken(doc, location):
        raise ZeroDivisionError("division by zero")

    host_port, runtime_port = create_channel()
    worker = RuntimeWorker(runtime_port, worker_config, installer=installer_factory(), entry=broken)

    with pytest.raises(ZeroDivisionError):
        await worker.run()

    messages = []
    async for message in host_port:
        messages.append(message)
    assert messages[-1] == {"type": "status", "msg": "ZeroDivisionError: division by zero"}
    assert not any(m["type"] == "render" for m in messages)
