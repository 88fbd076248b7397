"""設定管理モジュール。"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Tuple
from pathlib import Path
import os
import logging

import yaml

logger = logging.getLogger(__name__)


# 解析対象とするソースファイルの拡張子
SOURCE_EXTENSIONS = (".cpp", ".cc", ".cxx", ".c")


def find_source_files(directory: str) -> List[str]:
    """ディレクトリ配下のソースファイルを再帰的に探す。

    Args:
        directory: 探索するディレクトリ

    Returns:
        ソースファイルの絶対パスのリスト（存在しない場合は空）
    """
    path = Path(directory)
    if not path.is_dir():
        return []

    found = []
    for ext in SOURCE_EXTENSIONS:
        found.extend(str(f.resolve()) for f in path.rglob(f"*{ext}"))
    return sorted(set(found))


@dataclass
class Config:
    """アプリケーション設定。"""

    # C++パース用インクルードパス
    include_paths: List[str] = field(default_factory=list)

    # 解析・ファイル横断解決の対象となるソースディレクトリ
    source_directories: List[str] = field(default_factory=list)

    # 個別に指定されたソースファイル
    source_files: List[str] = field(default_factory=list)

    # 追加のコンパイラ引数
    compiler_args: List[str] = field(default_factory=list)
    cxx_standard: str = "c++17"

    # 既定リストに追加するクエリ型（{library, type} のリスト）
    query_types: List[Dict[str, str]] = field(default_factory=list)

    # 処理設定
    jobs: int = 1  # 並列ワーカー数
    suppression_marker: str = "queryloop:ignore"  # この文字列を含む行の報告は抑制

    # 出力設定
    excel_output: Optional[str] = None

    # ロギング設定
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_yaml(cls, file_path: str) -> "Config":
        """YAMLファイルから設定を読み込む。

        Args:
            file_path: YAML設定ファイルのパス

        Returns:
            Configインスタンス
        """
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        config = cls.from_dict(data)

        # 環境変数が優先
        config.log_level = os.getenv("QUERYLOOP_LOG_LEVEL", config.log_level)

        logger.info(f"Configuration loaded from {file_path}")
        return config

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """辞書から設定を作成する。

        Args:
            data: 設定辞書

        Returns:
            Configインスタンス
        """
        config = cls()

        for key, value in data.items():
            if hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning(f"Unknown configuration key ignored: {key}")

        return config

    def validate(self) -> List[str]:
        """設定を検証する。

        Returns:
            検証エラーのリスト（有効な場合は空）
        """
        errors = []

        if not isinstance(self.jobs, int) or self.jobs < 1:
            errors.append(f"jobsは1以上の整数である必要があります: {self.jobs}")

        for entry in self.query_types:
            if not isinstance(entry, dict) or not entry.get("library") or not entry.get("type"):
                errors.append(f"query_typesの各要素にはlibraryとtypeが必要です: {entry}")

        # パスの存在を検証
        for path in self.include_paths:
            if not Path(path).exists():
                logger.warning(f"Include path does not exist: {path}")

        for path in self.source_directories:
            if not Path(path).exists():
                errors.append(f"ソースディレクトリが存在しません: {path}")

        for path in self.source_files:
            if not Path(path).exists():
                errors.append(f"ソースファイルが存在しません: {path}")

        return errors

    def extra_query_types(self) -> List[Tuple[str, str]]:
        """追加のクエリ型を (ライブラリ, 型名) の組で返す。"""
        return [(entry["library"], entry["type"]) for entry in self.query_types]

    def to_dict(self) -> dict:
        """設定を辞書に変換する。

        Returns:
            辞書形式の設定
        """
        return {
            "include_paths": self.include_paths,
            "source_directories": self.source_directories,
            "source_files": self.source_files,
            "compiler_args": self.compiler_args,
            "cxx_standard": self.cxx_standard,
            "query_types": self.query_types,
            "jobs": self.jobs,
            "suppression_marker": self.suppression_marker,
            "excel_output": self.excel_output,
            "log_level": self.log_level,
            "log_file": self.log_file,
        }

    def get_source_files(self) -> List[str]:
        """ソースディレクトリと個別指定から全ソースファイルを取得する。

        Returns:
            重複を除いたソースファイルパスのリスト（ソート済み）
        """
        source_files = [str(Path(f).resolve()) for f in self.source_files]

        for source_dir in self.source_directories:
            source_files.extend(find_source_files(source_dir))

        source_files = sorted(set(source_files))
        logger.debug(f"Found {len(source_files)} source files")
        return source_files

    def get_project_roots(self) -> List[str]:
        """ファイル横断解決でプロジェクト内とみなすディレクトリを返す。"""
        roots = [str(Path(d).resolve()) for d in self.source_directories]
        roots.extend(str(Path(f).resolve().parent) for f in self.source_files)
        return sorted(set(roots))

    @classmethod
    def from_cmake_project(
        cls,
        project_root: str,
        output_path: Optional[str] = None
    ) -> "Config":
        """CMakeプロジェクトから設定を自動生成。

        CMakeLists.txt または compile_commands.json を解析して、
        解析に必要な設定（インクルードパス、ソースディレクトリ、
        コンパイラフラグ）を抽出する。

        Args:
            project_root: CMakeプロジェクトのルートディレクトリ
            output_path: 生成した設定を保存するパス（省略時は保存しない）

        Returns:
            Config: 自動生成された設定
        """
        from .io.cmake_parser import CMakeParser

        parser = CMakeParser(project_root)
        cmake_config = parser.parse()

        config = cls()
        config.include_paths = cmake_config.include_paths
        config.source_directories = cmake_config.source_directories
        config.source_files = cmake_config.source_files
        config.compiler_args = cmake_config.compiler_args
        if cmake_config.cxx_standard:
            config.cxx_standard = cmake_config.cxx_standard

        if output_path:
            config.save_yaml(output_path)

        return config

    def save_yaml(self, file_path: str) -> None:
        """設定をYAMLファイルに保存。

        Args:
            file_path: 保存先パス
        """
        output_path = Path(file_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        data: Dict[str, Any] = self.to_dict()
        # 未設定の項目は出力しない
        for key in ("excel_output", "log_file"):
            if data[key] is None:
                del data[key]

        with open(file_path, "w", encoding="utf-8") as f:
            yaml.dump(
                data,
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False
            )

        logger.info(f"Configuration saved to {file_path}")
