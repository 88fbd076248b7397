"""クエリを発行する型（データベースハンドル型）のレジストリ。"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Set, Tuple
import logging

logger = logging.getLogger(__name__)


# (ライブラリのヘッダーパス, 修飾型名) の固定リスト
# 型名の先頭の"*"はポインタ段数を表す
DEFAULT_QUERY_TYPES: List[Tuple[str, str]] = [
    # SQLite C API
    ("sqlite3.h", "*sqlite3"),
    # PostgreSQL libpq
    ("libpq-fe.h", "*PGconn"),
    # MySQL C API
    ("mysql.h", "*MYSQL"),
    # libpqxx
    ("pqxx/pqxx", "pqxx::connection"),
    ("pqxx/pqxx", "*pqxx::connection"),
    ("pqxx/pqxx", "pqxx::work"),
    ("pqxx/pqxx", "*pqxx::work"),
    ("pqxx/pqxx", "pqxx::nontransaction"),
    # SQLiteCpp
    ("SQLiteCpp/Database.h", "SQLite::Database"),
    ("SQLiteCpp/Database.h", "*SQLite::Database"),
    # SOCI
    ("soci/soci.h", "soci::session"),
    ("soci/soci.h", "*soci::session"),
    # MySQL Connector/C++ X DevAPI
    ("mysqlx/xdevapi.h", "mysqlx::Session"),
    ("mysqlx/xdevapi.h", "*mysqlx::Session"),
    # Qt SQL
    ("QtSql/QSqlQuery", "QSqlQuery"),
    ("QtSql/QSqlDatabase", "QSqlDatabase"),
    # ODB
    ("odb/database.hxx", "odb::database"),
    ("odb/database.hxx", "*odb::database"),
]


@dataclass(frozen=True)
class QueryType:
    """不透明で比較可能な型の同一性。

    同一性は宣言のUSRとポインタ段数で決まる。nameは表示用。
    """
    usr: str
    pointer_depth: int = 0
    name: str = field(default="", compare=False)

    def __str__(self) -> str:
        return self.name or f"{'*' * self.pointer_depth}{self.usr}"


class QueryTypeRegistry:
    """クエリを発行する型の閉じた集合。

    解析実行ごとに一度構築し、freeze後は不変となる。
    freeze後の読み取りはロック不要。
    """

    def __init__(self, probe):
        """レジストリを初期化する。

        Args:
            probe: lookup(library, type_name) を持つ型プローブ
        """
        self._probe = probe
        self._types: Set[QueryType] = set()
        self._frozen = False

    @classmethod
    def build(
        cls,
        probe,
        pairs: Iterable[Tuple[str, str]] = DEFAULT_QUERY_TYPES,
        extra: Iterable[Tuple[str, str]] = ()
    ) -> "QueryTypeRegistry":
        """既定の型リストと追加設定から不変のレジストリを構築する。

        Args:
            probe: 型プローブ
            pairs: (ライブラリ, 型名) の組
            extra: 設定ファイルで追加された組

        Returns:
            freeze済みのQueryTypeRegistry
        """
        registry = cls(probe)
        for library, type_name in list(pairs) + list(extra):
            registry.register(library, type_name)
        registry.freeze()

        logger.info(f"Query type registry built with {len(registry)} types")
        return registry

    def register(self, library: str, type_name: str) -> Optional[QueryType]:
        """ライブラリから型を解決し、見つかればレジストリに追加する。

        ライブラリが使われていない場合はエラーにせず、何も追加しない。

        Args:
            library: ライブラリのヘッダーパス
            type_name: 修飾型名

        Returns:
            追加されたQueryType、解決できなかった場合はNone

        Raises:
            RuntimeError: freeze後に呼び出された場合
        """
        if self._frozen:
            raise RuntimeError("QueryTypeRegistry is frozen")

        query_type = self._probe.lookup(library, type_name)
        if query_type is None:
            return None

        self._types.add(query_type)
        logger.debug(f"Registered query type {query_type} ({library})")
        return query_type

    def freeze(self) -> None:
        self._types = frozenset(self._types)
        self._frozen = True

    def contains(self, candidate: Optional[QueryType]) -> bool:
        """候補の型が登録済みの型と同一かどうかを判定する。"""
        if candidate is None:
            return False
        return candidate in self._types

    def matches(self, clang_type) -> bool:
        """libclangの型が登録済みのクエリ型かどうかを判定する。"""
        from .type_probe import type_identity

        return self.contains(type_identity(clang_type))

    @property
    def is_empty(self) -> bool:
        return not self._types

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[QueryType]:
        return iter(self._types)
