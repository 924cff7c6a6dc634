import asyncio

from taskflow.api.live import LiveChannel


class RecordingSocket:
    def __init__(self, fail=False, frames=()):
        self.fail = fail
        self.sent = []
        self.frames = list(frames)

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)

    async def receive_text(self):
        return self.frames.pop(0)


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


def test_exit_stops_idle_sender():
    async def scenario():
        socket = RecordingSocket()
        async with LiveChannel(socket) as channel:
            channel.push({"type": "snapshot"})
            await _settle()
        return socket, channel._sender

    socket, sender = asyncio.run(scenario())
    assert socket.sent == [{"type": "snapshot"}]
    assert sender.cancelled()


def test_exit_collects_failed_sender():
    async def scenario():
        async with LiveChannel(RecordingSocket(fail=True)) as channel:
            channel.push({"type": "snapshot"})
            await _settle()
            assert channel._sender.done()
        return channel._sender

    sender = asyncio.run(scenario())
    assert isinstance(sender.exception(), RuntimeError)


def test_malformed_frames_are_answered_not_raised():
    async def scenario():
        socket = RecordingSocket(frames=["{not json", '["drag_end"]', '{"type": "drag_end"}'])
        async with LiveChannel(socket) as channel:
            received = [await channel.receive() for _ in range(3)]
            await _settle()
        return socket, received

    socket, received = asyncio.run(scenario())
    assert received == [None, None, {"type": "drag_end"}]
    assert [m["error"] for m in socket.sent] == ["ValidationFailed", "ValidationFailed"]
