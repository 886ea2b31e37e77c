import json
from datetime import datetime, timezone

import pytest

from core.exceptions import InvalidInputError, PersistenceError
from core.prediction_store import InMemoryBackend, JSONFileBackend, PredictionStore
from core.signal_engine import evaluate_snapshot
from models.analysis import AnalysisResult
from models.strategy import LONG_TERM, SHORT_TERM


def make_prediction(n: int) -> dict:
    return {"id": f"SPY-{n}", "ticker": "SPY", "signal": "Buy", "weightedScore": 0.2 + n / 100}


def test_append_and_list_preserve_order(tmp_path):
    store = PredictionStore(JSONFileBackend(tmp_path / "predictions.json"))
    items = [make_prediction(n) for n in range(5)]

    for item in items:
        store.append(SHORT_TERM, item)

    assert store.list(SHORT_TERM) == items
    assert store.list(LONG_TERM) == []


def test_lists_survive_new_store_instance(tmp_path):
    path = tmp_path / "predictions.json"
    PredictionStore(JSONFileBackend(path)).append(LONG_TERM, make_prediction(1))

    reopened = PredictionStore(JSONFileBackend(path))

    assert reopened.list(LONG_TERM) == [make_prediction(1)]
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert set(saved) == {"longTermPredictions"}


def test_append_analysis_result(short_profile, bullish_snapshot):
    store = PredictionStore()
    result = evaluate_snapshot(
        "SPY", 100.0, short_profile, bullish_snapshot, now=datetime(2024, 4, 1, tzinfo=timezone.utc),
    )

    store.append(SHORT_TERM, result)

    [stored] = store.list(SHORT_TERM)
    assert AnalysisResult.from_dict(stored) == result


def test_delete(tmp_path):
    store = PredictionStore(JSONFileBackend(tmp_path / "predictions.json"))
    for n in range(3):
        store.append(SHORT_TERM, make_prediction(n))

    assert store.delete(SHORT_TERM, "SPY-1") is True
    assert [p["id"] for p in store.list(SHORT_TERM)] == ["SPY-0", "SPY-2"]
    assert store.delete(SHORT_TERM, "SPY-1") is False


def test_unknown_strategy_type_rejected():
    store = PredictionStore(InMemoryBackend())

    with pytest.raises(InvalidInputError):
        store.append("mid-term", make_prediction(1))
    with pytest.raises(InvalidInputError):
        store.list("mid-term")


def test_prediction_without_id_rejected():
    with pytest.raises(InvalidInputError):
        PredictionStore().append(SHORT_TERM, {"ticker": "SPY"})


def test_corrupt_file_raises_persistence_error(tmp_path):
    path = tmp_path / "predictions.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError):
        PredictionStore(JSONFileBackend(path)).list(SHORT_TERM)


def test_unwritable_location_raises_persistence_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = PredictionStore(JSONFileBackend(blocker / "predictions.json"))

    with pytest.raises(PersistenceError):
        store.append(SHORT_TERM, make_prediction(1))
