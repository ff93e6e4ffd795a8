import anyio
import pytest
from app.client.errors import SessionExpired, TransportError
from app.client.ott import OneTimeToken, OttIssuerClient

pytestmark = pytest.mark.anyio


class FakeGateway:
    """Hands out t1, t2, ... and can be told to fail particular calls."""

    def __init__(self, fail_on=()):
        self.calls = 0
        self.fail_on = set(fail_on)
        self.issuer = None
        self.current_at_call = []

    async def get_json(self, path, params=None):
        assert path == "/attendance/generate-qr"
        self.calls += 1
        if self.issuer is not None:
            current = self.issuer.current
            self.current_at_call.append(current.value if current else None)
        if self.calls in self.fail_on:
            raise TransportError("Could not reach server: ConnectError")
        return {"token": f"t{self.calls}", "ttlSeconds": 15}


async def wait_until(predicate, timeout=2.0):
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.005)


async def test_three_intervals_yield_three_distinct_tokens():
    gateway = FakeGateway()
    shown = []
    issuer = OttIssuerClient(gateway, on_token=shown.append)

    issuer.start(0.01)
    await wait_until(lambda: len(shown) >= 3)
    issuer.stop()

    values = [t.value for t in shown[:3]]
    assert len(set(values)) == 3
    assert all(isinstance(t, OneTimeToken) and t.ttl_seconds == 15 for t in shown)


async def test_stop_prevents_further_issuance():
    gateway = FakeGateway()
    issuer = OttIssuerClient(gateway)

    issuer.start(0.01)
    await wait_until(lambda: gateway.calls >= 1)
    issuer.stop()
    calls_at_stop = gateway.calls

    await anyio.sleep(0.05)
    assert gateway.calls == calls_at_stop
    assert issuer.running is False


async def test_stop_before_first_issuance_fires_nothing():
    gateway = FakeGateway()
    issuer = OttIssuerClient(gateway)

    issuer.start(0.01)
    issuer.stop()
    await anyio.sleep(0.03)

    assert gateway.calls == 0


async def test_stop_is_idempotent_and_start_twice_is_noop():
    gateway = FakeGateway()
    issuer = OttIssuerClient(gateway)

    issuer.start(0.05)
    issuer.start(0.05)
    await wait_until(lambda: gateway.calls >= 1)
    issuer.stop()
    issuer.stop()

    # A second cycle would have doubled the first issuance
    assert gateway.calls == 1


async def test_stop_from_display_callback():
    gateway = FakeGateway()
    issuer = None

    def show(token):
        issuer.stop()

    issuer = OttIssuerClient(gateway, on_token=show)
    issuer.start(0.01)
    await anyio.sleep(0.05)

    assert gateway.calls == 1


async def test_failed_issuance_keeps_previous_token():
    gateway = FakeGateway(fail_on={2})
    shown = []
    issuer = OttIssuerClient(gateway, on_token=shown.append)
    gateway.issuer = issuer

    issuer.start(0.01)
    await wait_until(lambda: len(shown) >= 2)
    issuer.stop()

    # t2 never existed on screen; t1 stayed up until t3 replaced it
    assert [t.value for t in shown[:2]] == ["t1", "t3"]
    assert gateway.current_at_call[:3] == [None, "t1", "t1"]


async def test_countdown_resets_each_cycle():
    gateway = FakeGateway()
    ticks = []
    issuer = OttIssuerClient(gateway, on_tick=ticks.append, tick_seconds=0.005)

    issuer.start(3)
    await wait_until(lambda: 0 in ticks)
    issuer.stop()

    assert ticks[:4] == [3, 2, 1, 0]
    assert gateway.calls == 1


async def test_stop_cancels_countdown_too():
    gateway = FakeGateway()
    ticks = []
    issuer = OttIssuerClient(gateway, on_tick=ticks.append, tick_seconds=0.01)

    issuer.start(60)
    await wait_until(lambda: len(ticks) >= 2)
    issuer.stop()
    seen = len(ticks)

    await anyio.sleep(0.05)
    assert len(ticks) == seen


async def test_rejects_non_positive_interval():
    issuer = OttIssuerClient(FakeGateway())
    with pytest.raises(ValueError):
        issuer.start(0)
    assert issuer.running is False


async def test_expired_session_ends_rotation():
    class ExpiredGateway(FakeGateway):
        async def get_json(self, path, params=None):
            self.calls += 1
            raise SessionExpired()

    gateway = ExpiredGateway()
    issuer = OttIssuerClient(gateway)

    issuer.start(0.01)
    await anyio.sleep(0.05)

    assert gateway.calls == 1
    assert issuer.running is False


async def test_malformed_issuance_body_keeps_rotation_alive():
    class MalformedGateway(FakeGateway):
        async def get_json(self, path, params=None):
            body = await super().get_json(path, params)
            if self.calls == 2:
                return {"unexpected": True}
            return body

    gateway = MalformedGateway()
    shown = []
    issuer = OttIssuerClient(gateway, on_token=shown.append)

    issuer.start(0.01)
    await wait_until(lambda: len(shown) >= 2)
    assert issuer.running is True
    issuer.stop()

    assert [t.value for t in shown[:2]] == ["t1", "t3"]


async def test_failing_display_callback_does_not_end_rotation():
    gateway = FakeGateway()

    def show(token):
        raise RuntimeError("screen gone")

    issuer = OttIssuerClient(gateway, on_token=show)
    issuer.start(0.01)
    await wait_until(lambda: gateway.calls >= 3)
    issuer.stop()

    assert issuer.current.value.startswith("t")


async def test_rotation_can_restart_after_unexpected_end():
    class BrokenGateway(FakeGateway):
        async def get_json(self, path, params=None):
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("boom")
            return {"token": f"t{self.calls}", "ttlSeconds": 15}

    gateway = BrokenGateway()
    issuer = OttIssuerClient(gateway)

    issuer.start(0.01)
    await wait_until(lambda: not issuer.running)

    issuer.start(0.01)
    await wait_until(lambda: issuer.current is not None)
    issuer.stop()

    assert issuer.current.value == "t2"
