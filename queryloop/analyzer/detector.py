"""ループ内でのクエリ呼び出し（N+1クエリ）を検出するコアアルゴリズム。"""

from typing import Callable, List, Optional
import logging
import os

from ..models.declaration import DeclarationId
from ..models.finding import QUERY_IN_LOOP_MESSAGE, Report
from .memo import TraversalMemo
from .query_types import QueryTypeRegistry

logger = logging.getLogger(__name__)


class QueryLoopDetector:
    """ループ本体から、直接または関数呼び出しの連鎖を経由して
    クエリ型の値に到達するかどうかを判定し、違反を報告する。

    走査対象（ループ本体または関数本体）ごとの状態は
    UNVISITED -> IN_PROGRESS -> RESOLVED と遷移し、TraversalMemoに
    記録される。走査中の関数へ再入した場合（再帰・相互再帰）は
    何も報告せずに打ち切る。
    """

    def __init__(
        self,
        registry: QueryTypeRegistry,
        memo: TraversalMemo,
        resolver,
        emit: Callable[[Report], None],
        on_walk: Optional[Callable[[object], None]] = None,
        message: str = QUERY_IN_LOOP_MESSAGE
    ):
        """検出器を初期化する。

        Args:
            registry: クエリ型レジストリ（freeze済み）
            memo: 走査状態と判定のメモ化ストア
            resolver: ファイル横断リゾルバ（resolve(callee) を持つ）
            emit: 報告を受け取るコールバック
            on_walk: 走査対象の本体を走査するたびに呼ばれるフック（計測用）
            message: 報告メッセージ
        """
        self.registry = registry
        self.memo = memo
        self.resolver = resolver
        self.emit = emit
        self.on_walk = on_walk
        self.message = message

        from clang.cindex import CursorKind
        self._identifier_kinds = {CursorKind.DECL_REF_EXPR, CursorKind.MEMBER_REF_EXPR}
        self._decl_ref_kind = CursorKind.DECL_REF_EXPR
        self._call_kind = CursorKind.CALL_EXPR
        self._wrapper_kinds = {CursorKind.UNEXPOSED_EXPR, CursorKind.PAREN_EXPR}
        self._callable_kinds = {
            CursorKind.FUNCTION_DECL,
            CursorKind.CXX_METHOD,
            CursorKind.FUNCTION_TEMPLATE,
        }

    def check_loop(self, loop) -> bool:
        """ループ文を1つ解析する。

        ループ自体はメモ化しない。本体で直接クエリ型が使われた場合は
        ループ文の位置に報告する。

        Args:
            loop: ループ文のカーソル

        Returns:
            このループからクエリに到達した場合True
        """
        current_file = self._file_of(loop)
        if current_file is None:
            logger.warning(f"Loop without file location skipped: {loop.kind}")
            return False

        return self._walk(loop, target=loop, current_file=current_file)

    def check_function(self, definition, call=None) -> bool:
        """関数定義を走査対象として解析する（メモ化あり）。

        既に走査を開始済みなら再走査せず、記録済みの判定が真であれば
        呼び出し位置に報告する。

        Args:
            definition: 関数定義のカーソル
            call: 報告位置とする呼び出し式（任意）

        Returns:
            この関数からクエリに到達する場合True
        """
        decl_id = DeclarationId.of(definition)

        if not self.memo.begin_visit(decl_id):
            verdict = self.memo.verdict_of(decl_id)
            if verdict:
                self._report(call, None)
            return verdict

        verdict = self._walk(
            definition,
            target=call,
            current_file=decl_id.file_path,
            decl_id=decl_id
        )
        self.memo.record_verdict(decl_id, verdict)
        return verdict

    def _walk(
        self,
        root,
        target,
        current_file: str,
        decl_id: Optional[DeclarationId] = None
    ) -> bool:
        """走査対象の本体を深さ優先（先行順）で走査する。"""
        if self.on_walk is not None:
            self.on_walk(root)

        found = False
        stack = [root]

        while stack:
            node = stack.pop()

            # 識別子ルール: 登録済みクエリ型の値を直接使用
            if node.kind in self._identifier_kinds and self._is_query_use(node):
                self._report(target, node)
                found = True
                if decl_id is not None:
                    # 関数は1件の確定で十分
                    self.memo.record_verdict(decl_id, True)
                    return True
                continue

            # 呼び出しルール: 単純名の呼び出し先を展開
            if node.kind == self._call_kind:
                if self._expand_call(node, current_file):
                    found = True

            children: List = list(node.get_children())
            stack.extend(reversed(children))

        return found

    def _expand_call(self, call, current_file: str) -> bool:
        callee = self._simple_callee(call)
        if callee is None:
            return False

        definition = callee.get_definition()
        if definition is not None and self._file_of(definition) == current_file:
            return self.check_function(definition, call)

        # 現在のファイルに定義がない: 定義ファイルの全関数を順に解析
        definitions = self.resolver.resolve(callee)
        if definitions is None:
            return False

        found = False
        for other in definitions:
            if self.check_function(other, call):
                found = True
        return found

    def _simple_callee(self, call):
        """呼び出し式の呼び出し先が単純名の場合、その関数宣言を返す。"""
        callee = call.referenced
        if callee is None or callee.kind not in self._callable_kinds:
            return None

        children = list(call.get_children())
        if not children:
            return None

        expr = children[0]
        while expr.kind in self._wrapper_kinds:
            inner = list(expr.get_children())
            if len(inner) != 1:
                return None
            expr = inner[0]

        if expr.kind != self._decl_ref_kind:
            return None
        return callee

    def _is_query_use(self, node) -> bool:
        return self.registry.matches(node.type)

    def _report(self, target, node) -> None:
        report_node = target if target is not None else node
        report = Report.from_cursor(report_node, self.message)
        if report is None:
            # フロントエンドの契約違反。この報告のみ破棄する
            logger.warning("Report target has no source location; report skipped")
            return
        self.emit(report)

    @staticmethod
    def _file_of(cursor) -> Optional[str]:
        if cursor.location.file is None:
            return None
        return os.path.normpath(cursor.location.file.name)
