"""クエリ型レジストリと型プローブのテスト。"""

import pytest

from queryloop.analyzer.clang_analyzer import ClangAnalyzer
from queryloop.analyzer.query_types import (
    DEFAULT_QUERY_TYPES,
    QueryType,
    QueryTypeRegistry,
)
from queryloop.analyzer.type_probe import TypeProbe


class FakeProbe:
    """(ライブラリ, 型名) → QueryType の固定表を返すプローブ。"""

    def __init__(self, table):
        self.table = table
        self.calls = []

    def lookup(self, library, type_name):
        self.calls.append((library, type_name))
        return self.table.get((library, type_name))


SQLITE_HANDLE = QueryType(usr="c:@S@sqlite3", pointer_depth=1, name="*sqlite3")


class TestQueryType:
    """QueryTypeのテスト。"""

    def test_identity_ignores_name(self):
        """同一性はUSRとポインタ段数のみで決まるテスト。"""
        assert QueryType("c:@S@sqlite3", 1, "*sqlite3") == QueryType("c:@S@sqlite3", 1, "sqlite3 *")
        assert QueryType("c:@S@sqlite3", 1) != QueryType("c:@S@sqlite3", 0)
        assert QueryType("c:@S@sqlite3", 1) != QueryType("c:@N@app@S@sqlite3", 1)

    def test_str(self):
        """文字列表現のテスト。"""
        assert str(SQLITE_HANDLE) == "*sqlite3"
        assert str(QueryType("c:@S@sqlite3", 2)) == "**c:@S@sqlite3"


class TestQueryTypeRegistry:
    """QueryTypeRegistryのテスト。"""

    def test_build_registers_resolved_types(self):
        """解決できた型だけが登録されるテスト。"""
        probe = FakeProbe({("sqlite3.h", "*sqlite3"): SQLITE_HANDLE})

        registry = QueryTypeRegistry.build(probe)

        assert len(registry) == 1
        assert registry.contains(SQLITE_HANDLE)
        assert not registry.is_empty
        assert list(registry) == [SQLITE_HANDLE]
        assert probe.calls == list(DEFAULT_QUERY_TYPES)

    def test_build_with_no_library_is_empty(self):
        """ライブラリ未使用ならエラーにならず空になるテスト。"""
        registry = QueryTypeRegistry.build(FakeProbe({}))

        assert registry.is_empty
        assert not registry.contains(SQLITE_HANDLE)

    def test_build_with_extra_types(self):
        """設定で追加した型も登録されるテスト。"""
        custom = QueryType(usr="c:@N@db@S@Client", pointer_depth=0, name="db::Client")
        probe = FakeProbe({("db/client.h", "db::Client"): custom})

        registry = QueryTypeRegistry.build(probe, extra=[("db/client.h", "db::Client")])

        assert registry.contains(custom)
        assert probe.calls[-1] == ("db/client.h", "db::Client")

    def test_contains_requires_exact_identity(self):
        """ポインタ段数が異なる型は一致しないテスト。"""
        registry = QueryTypeRegistry.build(
            FakeProbe({("sqlite3.h", "*sqlite3"): SQLITE_HANDLE})
        )

        assert not registry.contains(QueryType("c:@S@sqlite3", 0))
        assert not registry.contains(QueryType("c:@S@sqlite3", 2))
        assert not registry.contains(None)

    def test_register_after_freeze_raises(self):
        """freeze後の登録はエラーになるテスト。"""
        registry = QueryTypeRegistry.build(FakeProbe({}))

        with pytest.raises(RuntimeError):
            registry.register("sqlite3.h", "*sqlite3")

    def test_register_returns_none_for_unknown(self):
        """解決できない型の登録はNoneを返すテスト。"""
        registry = QueryTypeRegistry(FakeProbe({}))

        assert registry.register("mysql.h", "*MYSQL") is None
        assert len(registry) == 0


class TestTypeProbe:
    """libclangを用いたTypeProbeのテスト。"""

    def _parse(self, project, name, code):
        path = project.write(name, code)
        analyzer = ClangAnalyzer(include_paths=[str(project.include_dir)])
        return analyzer.get_translation_unit(str(path))

    def test_lookup_pointer_type(self, project):
        """ポインタ型の解決テスト。"""
        tu = self._parse(project, "main.cpp", """\
            #include "sqlite3.h"
            """)

        query_type = TypeProbe([tu]).lookup("sqlite3.h", "*sqlite3")

        assert query_type is not None
        assert query_type.pointer_depth == 1
        assert query_type.name == "*sqlite3"
        assert "sqlite3" in query_type.usr

    def test_lookup_namespaced_class(self, project):
        """名前空間付きクラス型の解決テスト。"""
        tu = self._parse(project, "main.cpp", """\
            #include <pqxx/pqxx>
            """)
        probe = TypeProbe([tu])

        work = probe.lookup("pqxx/pqxx", "pqxx::work")
        connection = probe.lookup("pqxx/pqxx", "pqxx::connection")

        assert work is not None and connection is not None
        assert work.pointer_depth == 0
        assert work != connection

    def test_lookup_library_not_included(self, project):
        """インクルードされていないライブラリはNoneになるテスト。"""
        tu = self._parse(project, "main.cpp", """\
            #include "sqlite3.h"
            """)
        probe = TypeProbe([tu])

        assert probe.lookup("pqxx/pqxx", "pqxx::work") is None
        assert probe.lookup("libpq-fe.h", "*PGconn") is None

    def test_lookup_unknown_type_in_included_library(self, project):
        """インクルード済みライブラリに存在しない型はNoneになるテスト。"""
        tu = self._parse(project, "main.cpp", """\
            #include "sqlite3.h"
            """)

        assert TypeProbe([tu]).lookup("sqlite3.h", "*sqlite3_stmt") is None

    def test_identity_shared_across_translation_units(self, project):
        """別々の翻訳単位から解決した型が同一になるテスト。"""
        first = self._parse(project, "a.cpp", """\
            #include "sqlite3.h"
            """)
        second = self._parse(project, "b.cpp", """\
            #include "sqlite3.h"
            int touch(sqlite3 *db) { return sqlite3_exec(db, "SELECT 1"); }
            """)

        assert (
            TypeProbe([first]).lookup("sqlite3.h", "*sqlite3")
            == TypeProbe([second]).lookup("sqlite3.h", "*sqlite3")
        )
