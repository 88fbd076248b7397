"""設定管理のテスト。"""

from pathlib import Path
from tempfile import TemporaryDirectory

import yaml

from queryloop.config import Config


class TestConfigLoading:
    """設定の読み込みテスト。"""

    def test_default_values(self):
        """デフォルト値のテスト。"""
        config = Config()
        assert config.include_paths == []
        assert config.cxx_standard == "c++17"
        assert config.jobs == 1
        assert config.suppression_marker == "queryloop:ignore"
        assert config.excel_output is None
        assert config.log_level == "INFO"

    def test_from_yaml(self, monkeypatch):
        """YAMLファイルからの読み込みテスト。"""
        monkeypatch.delenv("QUERYLOOP_LOG_LEVEL", raising=False)
        with TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "queryloop.yaml"
            config_path.write_text(
                "include_paths:\n"
                "  - /usr/include/postgresql\n"
                "cxx_standard: c++20\n"
                "jobs: 4\n"
                "query_types:\n"
                "  - library: db/client.h\n"
                "    type: db::Client\n"
                "log_level: DEBUG\n"
            )

            config = Config.from_yaml(str(config_path))

            assert config.include_paths == ["/usr/include/postgresql"]
            assert config.cxx_standard == "c++20"
            assert config.jobs == 4
            assert config.extra_query_types() == [("db/client.h", "db::Client")]
            assert config.log_level == "DEBUG"

    def test_from_yaml_empty_file(self):
        """空のYAMLファイルではデフォルト値になるテスト。"""
        with TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "queryloop.yaml"
            config_path.write_text("")

            config = Config.from_yaml(str(config_path))

            assert config.jobs == 1
            assert config.source_directories == []

    def test_log_level_env_override(self, monkeypatch):
        """環境変数によるログレベル上書きのテスト。"""
        monkeypatch.setenv("QUERYLOOP_LOG_LEVEL", "WARNING")
        with TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "queryloop.yaml"
            config_path.write_text("log_level: DEBUG\n")

            config = Config.from_yaml(str(config_path))

            assert config.log_level == "WARNING"

    def test_from_dict_ignores_unknown_keys(self):
        """未知のキーは無視されるテスト。"""
        config = Config.from_dict({"jobs": 2, "unknown_option": True})

        assert config.jobs == 2
        assert not hasattr(config, "unknown_option")

    def test_save_and_reload(self):
        """保存した設定を再読み込みできるテスト。"""
        with TemporaryDirectory() as tmpdir:
            config = Config(
                include_paths=["/opt/include"],
                compiler_args=["-DUSE_SQLITE"],
                jobs=3
            )
            config_path = Path(tmpdir) / "out" / "queryloop.yaml"

            config.save_yaml(str(config_path))
            data = yaml.safe_load(config_path.read_text())
            reloaded = Config.from_yaml(str(config_path))

            assert "excel_output" not in data
            assert "log_file" not in data
            assert reloaded.include_paths == ["/opt/include"]
            assert reloaded.compiler_args == ["-DUSE_SQLITE"]
            assert reloaded.jobs == 3


class TestConfigValidation:
    """設定の検証テスト。"""

    def test_valid_config(self):
        """有効な設定ではエラーがないテスト。"""
        assert Config().validate() == []

    def test_invalid_jobs(self):
        """jobsが1未満の場合のテスト。"""
        errors = Config(jobs=0).validate()

        assert len(errors) == 1
        assert "jobs" in errors[0]

    def test_invalid_query_types(self):
        """query_typesの要素にtypeがない場合のテスト。"""
        errors = Config(query_types=[{"library": "db/client.h"}]).validate()

        assert len(errors) == 1
        assert "query_types" in errors[0]

    def test_missing_source_paths(self):
        """存在しないソースパスの検証テスト。"""
        config = Config(
            source_directories=["/nonexistent/src"],
            source_files=["/nonexistent/main.cpp"]
        )

        assert len(config.validate()) == 2

    def test_missing_include_path_is_warning_only(self):
        """存在しないインクルードパスは警告のみでエラーにならないテスト。"""
        assert Config(include_paths=["/nonexistent/include"]).validate() == []


class TestSourceFiles:
    """ソースファイル収集のテスト。"""

    def test_get_source_files(self):
        """ソースディレクトリと個別ファイルから収集されるテスト。"""
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir).resolve()
            src = root / "src"
            (src / "db").mkdir(parents=True)
            (src / "main.cpp").write_text("")
            (src / "db" / "repo.cc").write_text("")
            (src / "repo.h").write_text("")
            (root / "tool.c").write_text("")

            config = Config(
                source_directories=[str(src)],
                source_files=[str(root / "tool.c"), str(src / "main.cpp")]
            )

            assert config.get_source_files() == sorted([
                str(src / "main.cpp"),
                str(src / "db" / "repo.cc"),
                str(root / "tool.c"),
            ])
            assert config.get_project_roots() == sorted([str(src), str(root)])

    def test_from_cmake_project(self):
        """CMakeプロジェクトからの設定生成テスト。"""
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir).resolve()
            (root / "include").mkdir()
            (root / "src").mkdir()
            (root / "CMakeLists.txt").write_text(
                "project(OrderService)\n"
                "set(CMAKE_CXX_STANDARD 14)\n"
                "include_directories(include)\n"
                "add_subdirectory(src)\n"
            )
            output = root / "queryloop.yaml"

            config = Config.from_cmake_project(str(root), output_path=str(output))

            assert config.cxx_standard == "c++14"
            assert config.include_paths == [str(root / "include")]
            assert config.source_directories == [str(root / "src")]
            assert output.exists()
