import argparse

import pytest

from fakes import (
    FakeCredentials,
    FakePlacesClient,
    FakeRecordStore,
    FakeScheduler,
    FakeStateStore,
    make_config,
    make_place,
)
from golfscout.core.errors import MissingCredentialError, NoActiveRunError
from golfscout.jobs import run_collection
from golfscout.models import CollectionState, Phase, Record
from golfscout.vendors.google_places import GooglePlacesError


def _pages():
    return {
        ("k1", 1.0, None): {"places": [make_place("p1"), make_place("p2")]},
        ("k2", 1.0, None): {"places": [make_place("p3")]},
        ("k1", 2.0, None): {"places": [make_place("p2"), make_place("p4")]},
    }


def _runner(state=None, store=None, client=None, credentials=None, **config):
    config.setdefault("batch_size_search", 2)
    config.setdefault("batch_size_details", 2)
    client = client or FakePlacesClient(_pages(), details={pid: {"nationalPhoneNumber": "0"} for pid in ("p1", "p2", "p3", "p4")})
    runner = run_collection.CollectionRunner(
        config=make_config(**config),
        state_store=FakeStateStore(state),
        record_store=store or FakeRecordStore(),
        scheduler=FakeScheduler(),
        credentials=credentials or FakeCredentials(),
        client_factory=lambda api_key: client,
        sleep=lambda _: None,
    )
    return runner, client


def test_start_resets_state_and_runs_one_search_batch():
    runner, _ = _runner(state=CollectionState(phase=Phase.DONE, center_index=5))
    runner.scheduler.pending = [10]

    state = runner.start_collection()

    assert state.phase is Phase.SEARCH
    assert runner.record_store.ids() == ["p1", "p2"]
    assert runner.state_store.state.center_index == 0
    assert runner.state_store.state.last_run_at is not None
    assert runner.scheduler.pending == [60]


def test_continue_without_state_reports_no_active_run():
    runner, _ = _runner()
    with pytest.raises(NoActiveRunError):
        runner.continue_collection()
    assert runner.scheduler.scheduled == 0


def test_missing_credential_blocks_provider_calls():
    runner, client = _runner(state=CollectionState(), credentials=FakeCredentials(value=None))
    with pytest.raises(MissingCredentialError):
        runner.continue_collection()
    assert client.search_calls == []


def test_full_run_progresses_search_details_done():
    runner, client = _runner()
    runner.start_collection()
    phases = [runner.state_store.state.phase]

    for _ in range(20):
        if runner.tick() == 0:
            break
        phases.append(runner.state_store.state.phase)

    assert runner.state_store.state.phase is Phase.DONE
    assert runner.scheduler.pending == []
    assert runner.record_store.ids() == ["p1", "p2", "p3", "p4"]
    assert all(row.details_status == "done" for row in runner.record_store.rows)
    # phases never regress
    order = [Phase.SEARCH, Phase.DETAILS, Phase.DONE]
    assert [order.index(p) for p in phases] == sorted(order.index(p) for p in phases)
    # details never ran before search finished
    assert client.details_calls == ["p1", "p2", "p3", "p4"]


def test_search_completion_advances_phase_and_schedules():
    state = CollectionState(center_index=2)
    runner, _ = _runner(state=state)

    result = runner.continue_collection()

    assert result.phase is Phase.DETAILS
    assert (result.center_index, result.keyword_index, result.continuation_cursor) == (0, 0, None)
    assert runner.scheduler.pending == [60]


def test_details_phase_with_quota_two_needs_two_invocations():
    store = FakeRecordStore([Record(id="p1"), Record(id="p2"), Record(id="p3")])
    runner, client = _runner(state=CollectionState(phase=Phase.DETAILS), store=store)

    assert runner.continue_collection().phase is Phase.DETAILS
    assert len(client.details_calls) == 2
    assert runner.scheduler.pending == [60]

    assert runner.continue_collection().phase is Phase.DONE
    assert len(client.details_calls) == 3
    assert runner.scheduler.pending == []


def test_done_phase_takes_no_action():
    runner, client = _runner(state=CollectionState(phase=Phase.DONE))

    state = runner.continue_collection()

    assert state.phase is Phase.DONE
    assert client.search_calls == [] and client.details_calls == []
    assert runner.scheduler.scheduled == 0


def test_stage_error_cancels_continuations_and_reraises():
    def handler(**_):
        raise GooglePlacesError("API not enabled", status_code=400)

    runner, _ = _runner(state=CollectionState(), client=FakePlacesClient(handler=handler))
    runner.scheduler.pending = [60]

    with pytest.raises(GooglePlacesError):
        runner.continue_collection()

    assert runner.scheduler.pending == []
    assert runner.scheduler.cancelled == 1


def test_invalid_key_during_details_stops_run_in_details_phase():
    store = FakeRecordStore([Record(id="p1"), Record(id="p2")])
    client = FakePlacesClient(details={"p1": GooglePlacesError("API key not valid", status_code=400)})
    runner, _ = _runner(state=CollectionState(phase=Phase.DETAILS), store=store, client=client)
    runner.scheduler.pending = [60]

    with pytest.raises(GooglePlacesError):
        runner.continue_collection()

    assert runner.state_store.state.phase is Phase.DETAILS
    assert [r.details_status for r in store.rows] == ["pending", "pending"]
    assert runner.scheduler.pending == []
    assert runner.scheduler.cancelled == 1


def test_at_most_one_pending_continuation():
    runner, _ = _runner(state=CollectionState())
    runner.continue_collection()
    runner.continue_collection()
    assert len(runner.scheduler.pending) == 1


def test_tick_drops_trigger_without_active_run(caplog):
    runner, _ = _runner()
    runner.scheduler.pending = [60]

    with caplog.at_level("WARNING"):
        assert runner.tick() == 1

    assert "no active collection run" in " ".join(caplog.messages)


def test_clear_progress_keeps_credentials_and_records():
    store = FakeRecordStore([Record(id="p1")])
    credentials = FakeCredentials("secret")
    runner, _ = _runner(state=CollectionState(), store=store, credentials=credentials)
    runner.scheduler.pending = [60]

    runner.clear_progress()

    assert runner.state_store.state is None
    assert credentials.get() == "secret"
    assert store.ids() == ["p1"]
    assert runner.scheduler.pending == [60]

    runner.clear_all()
    assert runner.scheduler.pending == []
    assert credentials.get() == "secret"


def test_status_reports_progress():
    store = FakeRecordStore([Record(id="p1"), Record(id="p2", details_status="done")])
    runner, _ = _runner(state=CollectionState(phase=Phase.DETAILS, batch_processed_count=2), store=store)

    status = runner.status()

    assert status["phase"] == "details"
    assert status["records"] == 2
    assert status["pending_details"] == 1
    assert status["active"] is True


def test_run_command_prompts_for_missing_key(monkeypatch):
    credentials = FakeCredentials(value=None)
    runner, _ = _runner(credentials=credentials)
    monkeypatch.setattr(run_collection, "_is_interactive", lambda: True)
    monkeypatch.setattr(run_collection.getpass, "getpass", lambda prompt: "typed-key")

    run_collection.run_command(runner, argparse.Namespace(command="start"))

    assert credentials.get() == "typed-key"
    assert runner.record_store.ids() == ["p1", "p2"]


def test_run_command_export(monkeypatch, tmp_path, capsys):
    runner, _ = _runner(store=FakeRecordStore([Record(id="p1")]))

    run_collection.run_command(runner, argparse.Namespace(command="export", export_dir=str(tmp_path)))

    written = capsys.readouterr().out.strip()
    assert written.startswith(str(tmp_path))
    assert written.endswith(".csv")


def test_build_parser_commands():
    parser = run_collection.build_parser()
    assert parser.parse_args(["continue"]).command == "continue"
    assert parser.parse_args(["export", "--dir", "/tmp/x"]).export_dir == "/tmp/x"
    assert parser.parse_args(["set-key", "abc"]).key == "abc"
    with pytest.raises(SystemExit):
        parser.parse_args([])
