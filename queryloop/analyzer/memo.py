"""関数単位の走査状態と判定結果のメモ化ストア。"""

from enum import Enum
from typing import Dict
import logging
import threading

from ..models.declaration import DeclarationId

logger = logging.getLogger(__name__)


class VisitState(Enum):
    """関数宣言の走査状態。"""
    UNVISITED = "unvisited"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class TraversalMemo:
    """訪問ガードと判定メモを1つの解析実行内で保持する。

    UNVISITED -> IN_PROGRESS は begin_visit、IN_PROGRESS -> RESOLVED は
    record_verdict で遷移する。複数ワーカーから同じコールグラフを
    走査するため、全操作を単一のロックで排他制御する。
    """

    def __init__(self):
        self._states: Dict[DeclarationId, VisitState] = {}
        self._verdicts: Dict[DeclarationId, bool] = {}
        self._lock = threading.Lock()

    def begin_visit(self, decl_id: DeclarationId) -> bool:
        """走査開始をマークする。

        Args:
            decl_id: 関数宣言の識別子

        Returns:
            この実行で初回の呼び出しならTrue、既に開始済みならFalse
        """
        with self._lock:
            if decl_id in self._states:
                return False
            self._states[decl_id] = VisitState.IN_PROGRESS

        logger.debug(f"Begin traversal: {decl_id}")
        return True

    def record_verdict(self, decl_id: DeclarationId, verdict: bool) -> None:
        """最終判定を記録する（後勝ち）。

        Args:
            decl_id: 関数宣言の識別子
            verdict: クエリ呼び出しに到達するかどうか
        """
        with self._lock:
            self._verdicts[decl_id] = verdict
            self._states[decl_id] = VisitState.RESOLVED

    def has_verdict(self, decl_id: DeclarationId) -> bool:
        with self._lock:
            return decl_id in self._verdicts

    def verdict_of(self, decl_id: DeclarationId) -> bool:
        """記録済みの判定を返す。

        判定が未記録の場合は「クエリ到達なし」としてFalseを返す。
        区別が必要な呼び出し側は先に has_verdict を確認すること。
        """
        with self._lock:
            return self._verdicts.get(decl_id, False)

    def state_of(self, decl_id: DeclarationId) -> VisitState:
        with self._lock:
            return self._states.get(decl_id, VisitState.UNVISITED)

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
