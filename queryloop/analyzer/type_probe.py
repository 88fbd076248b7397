"""解析対象プログラムの翻訳単位から型の同一性を解決するプローブ。"""

from typing import Dict, List, Optional
import logging
import os
import threading

from .query_types import QueryType

logger = logging.getLogger(__name__)


def type_identity(clang_type) -> Optional[QueryType]:
    """libclangの型から型の同一性を求める。

    正規型に変換し、参照を外し、ポインタの段数を数えた上で、
    宣言のUSRを同一性として用いる。名前や構造ではなく宣言で
    比較するため、同名の独自型とドライバ型は区別される。

    Args:
        clang_type: clang.cindex.Type

    Returns:
        QueryType、宣言を持たない型（組み込み型など）の場合はNone
    """
    from clang.cindex import CursorKind, TypeKind

    if clang_type is None or clang_type.kind == TypeKind.INVALID:
        return None

    current = clang_type.get_canonical()
    while current.kind in (TypeKind.LVALUEREFERENCE, TypeKind.RVALUEREFERENCE):
        current = current.get_pointee().get_canonical()

    depth = 0
    while current.kind == TypeKind.POINTER:
        depth += 1
        current = current.get_pointee().get_canonical()

    decl = current.get_declaration()
    if decl is None or decl.kind == CursorKind.NO_DECL_FOUND:
        return None

    usr = decl.get_usr()
    if not usr:
        return None

    return QueryType(usr=usr, pointer_depth=depth, name=current.spelling)


class TypeProbe:
    """ライブラリパスと型名から、その型の同一性を解決する。

    ライブラリは、いずれかの翻訳単位のインクルードグラフに
    そのパスで終わるヘッダーが含まれている場合に「インポート済み」とみなす。
    """

    # 名前空間として辿るカーソル種別
    SCOPE_KINDS = (
        "NAMESPACE",
        "LINKAGE_SPEC",
        "UNEXPOSED_DECL",
    )

    # 型宣言として扱うカーソル種別
    TYPE_KINDS = (
        "STRUCT_DECL",
        "CLASS_DECL",
        "UNION_DECL",
        "TYPEDEF_DECL",
        "TYPE_ALIAS_DECL",
    )

    def __init__(self, translation_units: List):
        """型プローブを初期化する。

        Args:
            translation_units: 解析対象の翻訳単位リスト
        """
        from clang.cindex import CursorKind

        self.translation_units = list(translation_units)
        self._scope_kinds = {
            getattr(CursorKind, k) for k in self.SCOPE_KINDS if hasattr(CursorKind, k)
        }
        self._type_kinds = {getattr(CursorKind, k) for k in self.TYPE_KINDS}
        self._record_kinds = {
            CursorKind.STRUCT_DECL, CursorKind.CLASS_DECL, CursorKind.UNION_DECL
        }

        self._includes: Dict[int, List[str]] = {}
        self._type_tables: Dict[int, Dict[str, object]] = {}
        self._lock = threading.Lock()

    def lookup(self, library: str, type_name: str) -> Optional[QueryType]:
        """型の同一性を解決する。

        Args:
            library: ライブラリのヘッダーパス（例: "sqlite3.h", "pqxx/pqxx"）
            type_name: 修飾型名。ポインタ段数分の"*"を先頭に付ける（例: "*sqlite3"）

        Returns:
            QueryType、ライブラリ未使用または型が見つからない場合はNone
        """
        depth = len(type_name) - len(type_name.lstrip("*"))
        qualified_name = type_name.lstrip("*").strip()

        for tu in self.translation_units:
            if not self._includes_library(tu, library):
                continue

            decl = self._type_table(tu).get(qualified_name)
            if decl is None:
                continue

            identity = type_identity(decl.type)
            if identity is None:
                continue

            logger.debug(f"Resolved {type_name} from {library}: {identity.usr}")
            return QueryType(
                usr=identity.usr,
                pointer_depth=identity.pointer_depth + depth,
                name=type_name
            )

        return None

    def _includes_library(self, tu, library: str) -> bool:
        suffix = "/" + library.replace("\\", "/").lstrip("/")
        for included in self._included_files(tu):
            if included.endswith(suffix) or included == suffix[1:]:
                return True
        return False

    def _included_files(self, tu) -> List[str]:
        key = id(tu)
        with self._lock:
            if key in self._includes:
                return self._includes[key]

        files = []
        for inclusion in tu.get_includes():
            if inclusion.include is not None:
                files.append(os.path.normpath(inclusion.include.name).replace("\\", "/"))

        with self._lock:
            self._includes[key] = files
        return files

    def _type_table(self, tu) -> Dict[str, object]:
        """翻訳単位の修飾名→型宣言テーブルを構築する（キャッシュあり）。"""
        key = id(tu)
        with self._lock:
            if key in self._type_tables:
                return self._type_tables[key]

        table: Dict[str, object] = {}

        def collect(cursor, prefix: str):
            for child in cursor.get_children():
                if child.kind in self._scope_kinds:
                    scope = prefix
                    if child.spelling and child.kind.name == "NAMESPACE":
                        scope = f"{prefix}{child.spelling}::"
                    collect(child, scope)
                elif child.kind in self._type_kinds and child.spelling:
                    name = f"{prefix}{child.spelling}"
                    table.setdefault(name, child)
                    # 入れ子の型（Outer::Inner）
                    if child.kind in self._record_kinds:
                        collect(child, f"{name}::")

        collect(tu.cursor, "")

        with self._lock:
            self._type_tables[key] = table
        return table
