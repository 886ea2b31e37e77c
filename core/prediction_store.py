"""
保存済み予測ストア - PredictionStore
戦略タイプごとのリスト（shortTermPredictions / longTermPredictions）に
AnalysisResult を追加・一覧・削除する。バックエンドは差し替え可能。
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Union

from core.exceptions import InvalidInputError, PersistenceError
from models.analysis import AnalysisResult
from models.strategy import PREDICTION_LIST_KEYS
from utils.logger import get_logger

logger = get_logger("PredictionStore")


class InMemoryBackend:
    """プロセス内のみ保持するバックエンド（テスト・一時利用）"""

    def __init__(self):
        self._data: Dict[str, list] = {}

    def load(self) -> Dict[str, list]:
        return {k: list(v) for k, v in self._data.items()}

    def save(self, data: Dict[str, list]) -> None:
        self._data = {k: list(v) for k, v in data.items()}


class JSONFileBackend:
    """
    JSONファイル1つに全リストを保存するバックエンド。
    書き込みは一時ファイル経由の置き換えで、同時書き込みは後勝ち。
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Dict[str, list]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"failed to read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"unexpected store format in {self.path}")
        return data

    def save(self, data: Dict[str, list]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"failed to write {self.path}: {e}") from e


class PredictionStore:
    """保存済み予測リストのリポジトリ"""

    def __init__(self, backend=None):
        self.backend = backend or InMemoryBackend()

    @staticmethod
    def _list_key(strategy_type: str) -> str:
        try:
            return PREDICTION_LIST_KEYS[strategy_type]
        except KeyError:
            raise InvalidInputError(f"unknown strategy type: {strategy_type!r}") from None

    def append(self, strategy_type: str, prediction: Union[AnalysisResult, dict]) -> dict:
        """
        予測を末尾に追加する（挿入順を保持）。

        Returns:
            保存した辞書
        Raises:
            InvalidInputError: 戦略タイプ不正・id なし
            PersistenceError: バックエンドの読み書き失敗
        """
        key = self._list_key(strategy_type)
        item = prediction.to_dict() if isinstance(prediction, AnalysisResult) else dict(prediction)
        if not item.get("id"):
            raise InvalidInputError("prediction must have an id")

        data = self.backend.load()
        data.setdefault(key, []).append(item)
        self.backend.save(data)
        logger.info("予測を保存: %s %s (%d件)", key, item["id"], len(data[key]))
        return item

    def list(self, strategy_type: str) -> List[dict]:
        key = self._list_key(strategy_type)
        return list(self.backend.load().get(key, []))

    def delete(self, strategy_type: str, prediction_id: str) -> bool:
        """指定IDの予測を削除する。存在しなければ False"""
        key = self._list_key(strategy_type)
        data = self.backend.load()
        items = data.get(key, [])
        remaining = [p for p in items if p.get("id") != prediction_id]
        if len(remaining) == len(items):
            return False
        data[key] = remaining
        self.backend.save(data)
        logger.info("予測を削除: %s %s", key, prediction_id)
        return True
