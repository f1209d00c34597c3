import asyncio

from common.test_utils import (
    AUTH_TOKEN,
    SESSION_ID,
    USER_ID,
    WALLET_ADDRESS,
    WORKER,
    FakeBackendClient,
    FakeClock,
    FakeConnectivity,
    FakeLauncher,
    FakeRealtimeChannel,
    RecordingSink,
)
from nexa_miner.relay.orchestrator import MinerStatus, RelayState, SessionOrchestrator
from nexa_miner.relay.stats import TelemetrySample, TelemetryTracker


def _orchestrator(
    *,
    api=None,
    realtime=None,
    launcher=None,
    connectivity=None,
    sink=None,
    clock=None,
    launch_miner=True,
):
    return SessionOrchestrator(
        api_client=api or FakeBackendClient(),
        realtime=realtime or FakeRealtimeChannel(),
        launcher=launcher or FakeLauncher(),
        connectivity=connectivity or FakeConnectivity(),
        tracker=TelemetryTracker(),
        wallet=WALLET_ADDRESS,
        worker=WORKER,
        username="tester",
        diagnostic_sink=sink or RecordingSink(),
        clock=clock or FakeClock(),
        launch_miner=launch_miner,
    )


def _messages(orchestrator):
    return [line.split(" - ", 1)[1] for line in orchestrator.tracker.log_lines()]


def test_authenticate_creates_single_identity_and_connects_realtime():
    api = FakeBackendClient(balance=7.25)
    realtime = FakeRealtimeChannel()
    orchestrator = _orchestrator(api=api, realtime=realtime)

    assert orchestrator.state is RelayState.IDLE
    assert asyncio.run(orchestrator.authenticate()) is True
    assert asyncio.run(orchestrator.authenticate()) is True

    assert orchestrator.user.id == USER_ID
    assert api.token == AUTH_TOKEN
    assert api.call_names().count("authenticate") == 1
    assert realtime.connect_calls == 1
    assert orchestrator.balance == 7.25
    assert orchestrator.state is RelayState.AUTHENTICATED
    assert "Current balance: 7.25 BMT" in _messages(orchestrator)


def test_unreachable_backend_blocks_authentication():
    api = FakeBackendClient()
    orchestrator = _orchestrator(api=api, connectivity=FakeConnectivity(reachable=False))

    assert asyncio.run(orchestrator.authenticate()) is False
    assert orchestrator.user is None
    assert api.calls == []
    assert "❌ Backend server not running!" in _messages(orchestrator)


def test_start_without_identity_authenticates_first():
    api = FakeBackendClient()
    launcher = FakeLauncher()
    orchestrator = _orchestrator(api=api, launcher=launcher)

    assert asyncio.run(orchestrator.start_mining()) is True
    assert api.call_names()[:3] == ["authenticate", "get_wallet_balance", "start_mining_session"]
    assert api.calls[2] == ("start_mining_session", USER_ID, "NEXA", "medium", f"GPU: {WORKER}")
    assert launcher.started == [(WALLET_ADDRESS, WORKER)]
    assert orchestrator.session.session_id == SESSION_ID
    assert orchestrator.status is MinerStatus.RUNNING
    assert orchestrator.state is RelayState.SESSION_ACTIVE


def test_failed_authentication_prevents_session_start():
    api = FakeBackendClient()
    api.fail_auth = True
    launcher = FakeLauncher()
    orchestrator = _orchestrator(api=api, launcher=launcher)

    assert asyncio.run(orchestrator.start_mining()) is False
    assert "start_mining_session" not in api.call_names()
    assert orchestrator.session is None
    assert launcher.started == []
    assert "Cannot start mining without authentication" in _messages(orchestrator)


def test_failed_session_start_stops_launched_miner():
    api = FakeBackendClient()
    api.fail_start = True
    launcher = FakeLauncher()
    orchestrator = _orchestrator(api=api, launcher=launcher)

    assert asyncio.run(orchestrator.start_mining()) is False
    assert orchestrator.session is None
    assert orchestrator.status is MinerStatus.ERROR
    assert launcher.stop_calls == 1
    assert any(m.startswith("Error starting miner: API Error: 500") for m in _messages(orchestrator))


def test_monitor_only_does_not_launch():
    launcher = FakeLauncher()
    orchestrator = _orchestrator(launcher=launcher, launch_miner=False)

    assert asyncio.run(orchestrator.start_mining()) is True
    asyncio.run(orchestrator.stop_mining())
    assert launcher.started == []
    assert launcher.stop_calls == 0


def test_stop_without_session_makes_no_backend_calls():
    api = FakeBackendClient()
    orchestrator = _orchestrator(api=api)

    asyncio.run(orchestrator.stop_mining())
    asyncio.run(orchestrator.stop_mining())
    assert api.calls == []
    assert orchestrator.status is MinerStatus.STOPPED


def test_stop_refreshes_balance_and_clears_session():
    api = FakeBackendClient(balance=1.0)
    orchestrator = _orchestrator(api=api)

    async def scenario():
        await orchestrator.start_mining()
        api.balance = 9.5
        api.calls.clear()
        await orchestrator.stop_mining()

    asyncio.run(scenario())
    assert api.call_names() == ["stop_mining_session", "get_wallet_balance"]
    assert orchestrator.session is None
    assert orchestrator.balance == 9.5
    assert orchestrator.state is RelayState.AUTHENTICATED
    assert "Final balance: 9.50 BMT" in _messages(orchestrator)


def test_failed_backend_stop_still_clears_session():
    api = FakeBackendClient()
    orchestrator = _orchestrator(api=api)

    async def scenario():
        await orchestrator.start_mining()
        api.fail_stop = True
        await orchestrator.stop_mining()

    asyncio.run(scenario())
    assert orchestrator.session is None
    assert api.call_names()[-1] == "get_wallet_balance"


def test_failed_launcher_stop_keeps_session():
    launcher = FakeLauncher()
    api = FakeBackendClient()
    orchestrator = _orchestrator(api=api, launcher=launcher)

    async def scenario():
        await orchestrator.start_mining()
        launcher.fail_stop = True
        await orchestrator.stop_mining()

    asyncio.run(scenario())
    assert orchestrator.session is not None
    assert orchestrator.status is MinerStatus.ERROR
    assert "stop_mining_session" not in api.call_names()


def test_sample_during_session_updates_with_whole_second_duration():
    api = FakeBackendClient()
    realtime = FakeRealtimeChannel()
    clock = FakeClock(now=5_000.0)
    orchestrator = _orchestrator(api=api, realtime=realtime, clock=clock)

    async def scenario():
        await orchestrator.start_mining()
        clock.advance(12.0)
        await orchestrator.handle_sample(TelemetrySample.from_raw(150_000_000, 65))
        clock.advance(0.9)
        await orchestrator.handle_sample(TelemetrySample.from_raw(140_000_000, 66))

    asyncio.run(scenario())
    assert api.updates == [(SESSION_ID, 150_000_000, 12), (SESSION_ID, 140_000_000, 12)]
    assert [s.hash_rate for s in realtime.sent] == [150_000_000, 140_000_000]
    assert realtime.sent[0].user_id == USER_ID
    assert realtime.sent[0].power == 0.0
    assert "Miner: 150.00 MH/s, Temp: 65°C" in _messages(orchestrator)


def test_sample_without_session_is_only_recorded():
    api = FakeBackendClient()
    realtime = FakeRealtimeChannel()
    orchestrator = _orchestrator(api=api, realtime=realtime)

    asyncio.run(orchestrator.handle_sample(TelemetrySample.from_raw(1_000_000, 50)))
    assert api.calls == []
    assert realtime.sent == []
    assert orchestrator.tracker.latest.hashrate == 1.0


def test_update_failure_goes_to_diagnostic_sink_only():
    api = FakeBackendClient()
    sink = RecordingSink()
    realtime = FakeRealtimeChannel()
    orchestrator = _orchestrator(api=api, realtime=realtime, sink=sink)

    async def scenario():
        await orchestrator.start_mining()
        api.fail_update = True
        before = _messages(orchestrator)
        await orchestrator.handle_sample(TelemetrySample.from_raw(150_000_000, 65))
        return before

    before = asyncio.run(scenario())
    after = _messages(orchestrator)
    assert len(sink.events) == 1
    assert sink.events[0][0] == "Failed to update mining session"
    assert after[len(before):] == ["Miner: 150.00 MH/s, Temp: 65°C"]
    assert orchestrator.session is not None
    assert len(realtime.sent) == 1
    assert realtime.sent[0].hash_rate == 150_000_000


def test_closed_realtime_channel_does_not_block_update():
    api = FakeBackendClient()
    realtime = FakeRealtimeChannel(is_open=False)
    orchestrator = _orchestrator(api=api, realtime=realtime)

    async def scenario():
        await orchestrator.start_mining()
        await orchestrator.handle_sample(TelemetrySample.from_raw(150_000_000, 65))

    asyncio.run(scenario())
    assert realtime.sent == []
    assert len(api.updates) == 1
