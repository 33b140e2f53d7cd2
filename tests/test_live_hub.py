import asyncio

from branchboard.services.live_hub import LiveUpdateHub


class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


def test_broadcast_reaches_every_client_and_drops_dead_ones():
    hub = LiveUpdateHub()
    good, dead = FakeSocket(), FakeSocket(fail=True)

    async def scenario():
        await hub.connect(good)
        await hub.connect(dead)
        await hub.broadcast("todos")

    asyncio.run(scenario())
    assert good.sent == [{"type": "update", "resource": "todos"}]
    assert hub.connection_count == 1


def test_notify_on_loop_schedules_broadcast():
    hub = LiveUpdateHub()
    ws = FakeSocket()

    async def scenario():
        await hub.connect(ws)
        hub.notify("flow-tasks")
        for _ in range(3):
            await asyncio.sleep(0)

    asyncio.run(scenario())
    assert ws.sent == [{"type": "update", "resource": "flow-tasks"}]


def test_notify_without_loop_is_dropped():
    hub = LiveUpdateHub()
    hub.notify("vehicles")
    assert hub.connection_count == 0
