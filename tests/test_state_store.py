import json

from state_store import JsonStateStore
from strategy.pair_state import SignalState


def test_missing_file_is_first_run(tmp_path):
    state = JsonStateStore(tmp_path / "state.json").load()
    assert state.pairs == {}
    assert state.meta.last_any_sent_at is None


def test_corrupt_file_is_first_run(tmp_path, caplog):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    state = JsonStateStore(path).load()
    assert state.pairs == {}
    assert "Corrupt state" in caplog.text


def test_wrong_shape_is_first_run(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"pairs": {"a:B": {"samples": [[1, 2, 3]]}}}), encoding="utf-8")
    assert JsonStateStore(path).load().pairs == {}


def test_save_then_load(tmp_path):
    path = tmp_path / "nested" / "state.json"
    store = JsonStateStore(path)
    state = SignalState()
    pair = state.pair("polygon:LINK")
    pair.record_sample(10.0, 1.4)
    pair.mark_sent(10.0, 1.4)
    state.meta.last_any_sent_at = 10.0
    store.save(state)

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk["pairs"]["polygon:LINK"]["lastSentProfit"] == 1.4
    assert on_disk["meta"]["lastAnySentAt"] == 10.0
    assert store.load().to_dict() == state.to_dict()
    assert [p.name for p in path.parent.iterdir()] == ["state.json"]


def test_reads_legacy_blob(tmp_path):
    path = tmp_path / "state.json"
    legacy = {
        "pairs": {"polygon:LINK": {"lastSentAt": 5, "lastSentProfit": 1.1}},
        "meta": {"lastAnySentAt": 5},
    }
    path.write_text(json.dumps(legacy), encoding="utf-8")
    state = JsonStateStore(path).load()
    assert state.pairs["polygon:LINK"].last_sent_profit == 1.1
    assert state.meta.last_any_sent_at == 5.0
