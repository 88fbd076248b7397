"""テスト共通のフィクスチャ。"""

import logging
import textwrap
from pathlib import Path

import pytest

from queryloop.config import Config
from queryloop.main import QueryLoopAnalyzer


SQLITE3_H = """\
#ifndef SQLITE3_H
#define SQLITE3_H
#ifdef __cplusplus
extern "C" {
#endif
typedef struct sqlite3 sqlite3;
int sqlite3_open(const char *filename, sqlite3 **db);
int sqlite3_exec(sqlite3 *db, const char *sql);
#ifdef __cplusplus
}
#endif
#endif
"""

PQXX_H = """\
#pragma once
namespace pqxx {
class connection {
public:
    connection();
};
class work {
public:
    explicit work(connection &c);
    void exec(const char *sql);
    void commit();
};
}
"""


class SampleProject:
    """スタブのドライバヘッダーを持つ一時的なC++プロジェクト。"""

    def __init__(self, root: Path):
        self.root = root
        self.include_dir = root / "include"
        self.src_dir = root / "src"
        self.include_dir.mkdir()
        self.src_dir.mkdir()

        (self.include_dir / "sqlite3.h").write_text(SQLITE3_H)
        (self.include_dir / "pqxx").mkdir()
        (self.include_dir / "pqxx" / "pqxx").write_text(PQXX_H)

    def write(self, name: str, code: str) -> Path:
        path = self.src_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(code))
        return path

    def config(self, **overrides) -> Config:
        config = Config(include_paths=[str(self.include_dir)])
        for key, value in overrides.items():
            setattr(config, key, value)
        return config

    def analyze(self, *names: str, on_walk=None, **overrides):
        analyzer = QueryLoopAnalyzer(self.config(**overrides))
        files = [str(self.src_dir / name) for name in names]
        return analyzer.analyze(files, on_walk=on_walk)


def line_of(path: Path, marker: str) -> int:
    """マーカー文字列を含む最初の行番号（1始まり）を返す。"""
    for number, line in enumerate(path.read_text().splitlines(), 1):
        if marker in line:
            return number
    raise AssertionError(f"{marker!r} not found in {path}")


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_loggingによるルートロガーの変更をテストごとに戻す。"""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def project(tmp_path):
    return SampleProject(tmp_path)
