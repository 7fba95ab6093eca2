from app.automation.engine import AutomationEngine
from app.providers.mock import MockPayoutProvider
from services import metrics
from tests.conftest import percentage_policy, transfer_request


def test_retry_succeeds_after_delay(engine, provider, clock):
    provider.outcomes = [False, True]

    record = engine.process_automation(transfer_request("NH-B"))
    assert record.queued_for_retry is True
    assert engine.get_stats().pending_retry_count == 1

    clock.advance(2000)
    summary = engine.process_retry_queue()

    assert summary.checked == 1
    assert summary.succeeded == 1
    assert engine.get_stats().pending_retry_count == 0
    assert engine.is_processed("NH-B")
    assert provider.calls[1]["reference"] == f"RETRY-{record.automation_id}-2"
    assert metrics.get_counter("retry_outcomes_total", {"outcome": "succeeded"}) == 1


def test_sweep_respects_retry_delay(engine, provider, clock):
    provider.outcomes = [False]
    engine.process_automation(transfer_request("NH-D"))
    before = engine.get_stats().retry_entries[0]

    clock.advance(1999)
    summary = engine.process_retry_queue()

    assert summary.deferred == 1
    assert len(provider.calls) == 1
    after = engine.get_stats().retry_entries[0]
    assert after["attempt"] == before["attempt"] == 1
    assert after["last_attempt"] == before["last_attempt"]
    assert after["last_error"] == before["last_error"]


def test_retries_are_bounded_by_max_attempts(engine, provider, clock):
    provider.succeed = False
    engine.process_automation(transfer_request("NH-E"))

    outcomes = []
    for _ in range(3):
        clock.advance(2000)
        outcomes.append(engine.process_retry_queue())

    assert [s.failed for s in outcomes] == [1, 1, 0]
    assert outcomes[-1].exhausted == 1
    assert engine.get_stats().pending_retry_count == 0
    assert not engine.is_processed("NH-E")
    # initial attempt plus two retries
    assert len(provider.calls) == 3

    clock.advance(2000)
    assert engine.process_retry_queue().checked == 0
    assert len(provider.calls) == 3


def test_failed_retry_updates_entry(engine, provider, clock):
    provider.succeed = False
    provider.error = "Insufficient balance"
    engine.process_automation(transfer_request("NH-U"))

    clock.advance(2500)
    engine.process_retry_queue()

    entry = engine.get_stats().retry_entries[0]
    assert entry["attempt"] == 2
    assert entry["last_error"] == "Insufficient balance"
    assert entry["last_attempt"] == clock.now.isoformat()


def test_provider_exception_during_sweep_counts_as_failed_attempt(engine, provider, clock):
    provider.succeed = False
    engine.process_automation(transfer_request("NH-Z"))

    provider.raise_on_send = RuntimeError("socket closed")
    clock.advance(2000)
    summary = engine.process_retry_queue()

    assert summary.failed == 1
    entry = engine.get_stats().retry_entries[0]
    assert entry["attempt"] == 2
    assert entry["last_error"] == "socket closed"


def test_empty_queue_sweep_is_a_noop(engine, provider):
    summary = engine.process_retry_queue()
    assert summary.as_dict() == {"checked": 0, "succeeded": 0, "failed": 0, "exhausted": 0, "deferred": 0}
    assert provider.calls == []


def test_single_attempt_configuration_drops_on_first_sweep(clock):
    provider = MockPayoutProvider(succeed=False)
    engine = AutomationEngine(provider, percentage_policy(), max_attempts=1, clock=clock)
    engine.process_automation(transfer_request("NH-1A"))

    summary = engine.process_retry_queue()
    assert summary.exhausted == 1
    assert len(provider.calls) == 1


def test_clearing_processed_leaves_retry_queue(engine, provider, clock):
    engine.process_automation(transfer_request("NH-OK"))
    provider.succeed = False
    engine.process_automation(transfer_request("NH-Q"))

    assert engine.clear_processed_transactions() == 1

    stats = engine.get_stats()
    assert stats.processed_count == 0
    assert stats.pending_retry_count == 1


def test_duplicate_of_queued_transaction_is_not_cross_checked(engine, provider):
    provider.succeed = False
    engine.process_automation(transfer_request("NH-DUP"))

    provider.succeed = True
    record = engine.process_automation(transfer_request("NH-DUP"))

    assert record.status == "success"
    assert engine.get_stats().pending_retry_count == 1
