"""走査状態メモ化ストアのテスト。"""

import threading

from queryloop.analyzer.memo import TraversalMemo, VisitState
from queryloop.models.declaration import DeclarationId


FETCH = DeclarationId("/src/repo.cpp", 120)
STORE = DeclarationId("/src/repo.cpp", 480)


class TestTraversalMemo:
    """TraversalMemoのテスト。"""

    def test_initial_state(self):
        """未訪問の宣言の初期状態のテスト。"""
        memo = TraversalMemo()

        assert memo.state_of(FETCH) == VisitState.UNVISITED
        assert not memo.has_verdict(FETCH)
        assert memo.verdict_of(FETCH) is False
        assert len(memo) == 0

    def test_begin_visit_only_once(self):
        """begin_visitは最初の1回だけTrueを返すテスト。"""
        memo = TraversalMemo()

        assert memo.begin_visit(FETCH) is True
        assert memo.begin_visit(FETCH) is False
        assert memo.state_of(FETCH) == VisitState.IN_PROGRESS
        assert memo.begin_visit(STORE) is True
        assert len(memo) == 2

    def test_record_verdict_resolves(self):
        """判定の記録でRESOLVEDに遷移するテスト。"""
        memo = TraversalMemo()
        memo.begin_visit(FETCH)

        memo.record_verdict(FETCH, True)

        assert memo.state_of(FETCH) == VisitState.RESOLVED
        assert memo.has_verdict(FETCH)
        assert memo.verdict_of(FETCH) is True
        assert memo.begin_visit(FETCH) is False

    def test_record_verdict_last_write_wins(self):
        """同じ宣言への再記録は後勝ちになるテスト。"""
        memo = TraversalMemo()
        memo.begin_visit(FETCH)

        memo.record_verdict(FETCH, True)
        memo.record_verdict(FETCH, False)

        assert memo.verdict_of(FETCH) is False

    def test_same_position_is_same_declaration(self):
        """同じファイル・オフセットは同じ宣言として扱われるテスト。"""
        memo = TraversalMemo()
        memo.begin_visit(DeclarationId("/src/repo.cpp", 120))

        assert memo.begin_visit(DeclarationId("/src/repo.cpp", 120)) is False
        assert memo.begin_visit(DeclarationId("/src/main.cpp", 120)) is True

    def test_concurrent_begin_visit(self):
        """複数スレッドから同時にbegin_visitしても1つだけが成功するテスト。"""
        memo = TraversalMemo()
        results = []
        results_lock = threading.Lock()
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            started = memo.begin_visit(FETCH)
            with results_lock:
                results.append(started)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1
        assert results.count(False) == 7

    def test_in_progress_has_no_verdict(self):
        """走査中の宣言は判定未記録で、既定値Falseが返るテスト。"""
        memo = TraversalMemo()
        memo.begin_visit(FETCH)

        assert memo.state_of(FETCH) == VisitState.IN_PROGRESS
        assert not memo.has_verdict(FETCH)
        assert memo.verdict_of(FETCH) is False
