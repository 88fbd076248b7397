"""N+1クエリ検出ツールのメインエントリーポイント。"""

import argparse
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional
import logging
import os
import threading

from .config import Config, find_source_files
from .io.excel_writer import ExcelWriter
from .analyzer.clang_analyzer import ClangAnalyzer, ClangParseError
from .analyzer.cross_file import CrossFileResolver
from .analyzer.detector import QueryLoopDetector
from .analyzer.function_extractor import FunctionExtractor
from .analyzer.memo import TraversalMemo
from .analyzer.query_types import QueryTypeRegistry
from .analyzer.type_probe import TypeProbe
from .models.finding import ProcessingStats, Report
from .utils.logger import setup_logging, ProgressLogger

logger = logging.getLogger(__name__)


class QueryLoopAnalyzer:
    """1回の解析実行のコンテキスト。

    レジストリとメモ化ストアは analyze() ごとに新しく作成し、
    実行間で状態を共有しない。
    """

    def __init__(self, config: Config):
        """解析器を初期化する。

        Args:
            config: アプリケーション設定
        """
        self.config = config
        self.stats = ProcessingStats()

        self.clang_analyzer = ClangAnalyzer(
            include_paths=self.config.include_paths,
            additional_args=self.config.compiler_args,
            cxx_standard=self.config.cxx_standard
        )
        self.extractor = FunctionExtractor(self.clang_analyzer)

        self._reports: List[Report] = []
        self._lock = threading.Lock()
        self._line_cache: Dict[str, List[str]] = {}

    def analyze(
        self,
        target_files: Optional[List[str]] = None,
        on_walk: Optional[Callable[[object], None]] = None
    ) -> List[Report]:
        """対象ファイルの全ループを解析する。

        Args:
            target_files: 解析するファイル（省略時は設定の全ソースファイル）
            on_walk: 走査対象の本体を走査するたびに呼ばれるフック

        Returns:
            位置順にソートされた報告のリスト
        """
        self.stats = ProcessingStats()
        self._reports = []

        configured_files = self.config.get_source_files()
        if target_files is None:
            target_files = configured_files
        target_files = sorted({os.path.normpath(os.path.abspath(f)) for f in target_files})
        project_files = self._project_files(configured_files, target_files)

        logger.info(
            f"Analysis started: {len(target_files)} files "
            f"({len(project_files)} project files)"
        )

        # 1. 対象ファイルをパース
        translation_units = {}
        for path in target_files:
            try:
                translation_units[path] = self.clang_analyzer.get_translation_unit(path)
            except ClangParseError as e:
                logger.error(f"Skipping {path}: {e}")
                self.stats.errors += 1
        self.stats.files = len(translation_units)

        # 2. プロジェクト全体の翻訳単位からクエリ型レジストリを構築
        registry = QueryTypeRegistry.build(
            TypeProbe(self._project_units(project_files, translation_units)),
            extra=self.config.extra_query_types()
        )
        if registry.is_empty:
            logger.info("No known database library is used; nothing to analyze")
            return []

        # 3. 実行スコープのメモ化ストアと検出器
        roots = self.config.get_project_roots()
        roots.extend(os.path.dirname(f) for f in target_files)
        resolver = CrossFileResolver(
            self.clang_analyzer,
            source_files=project_files,
            project_roots=sorted(set(roots))
        )
        detector = QueryLoopDetector(
            registry=registry,
            memo=TraversalMemo(),
            resolver=resolver,
            emit=self._emit,
            on_walk=on_walk
        )

        progress = ProgressLogger(len(translation_units), logger)

        def run(path: str) -> None:
            loops = self._analyze_file(detector, path, translation_units[path])
            with self._lock:
                progress.update(path, loops)

        if self.config.jobs > 1:
            with ThreadPoolExecutor(max_workers=self.config.jobs) as executor:
                list(executor.map(run, translation_units))
        else:
            for path in translation_units:
                run(path)

        progress.complete()

        reports = self._apply_suppressions(self._reports)
        reports.sort(key=lambda r: r.location.sort_key())
        self.stats.reports = len(reports)

        self._log_statistics()
        return reports

    def _project_files(
        self,
        configured_files: List[str],
        target_files: List[str]
    ) -> List[str]:
        """ファイル横断解決と型の解決に使うプロジェクトのソースファイルを決める。

        ソースが設定されていない場合は、対象ファイルのディレクトリ配下の
        ソースファイルをプロジェクトとみなす。

        Args:
            configured_files: 設定から得たソースファイル
            target_files: 解析対象のファイル

        Returns:
            重複を除いたソースファイルのリスト（ソート済み）
        """
        files = set(configured_files)
        if not files:
            for directory in sorted({os.path.dirname(f) for f in target_files}):
                files.update(find_source_files(directory))

        files.update(target_files)
        return sorted({os.path.normpath(os.path.abspath(f)) for f in files})

    def _project_units(self, project_files: List[str], translation_units: Dict) -> List:
        """プロジェクトの全翻訳単位を返す（対象ファイル以外もパースする）。"""
        units = list(translation_units.values())
        for path in project_files:
            if path in translation_units:
                continue
            try:
                units.append(self.clang_analyzer.get_translation_unit(path))
            except ClangParseError as e:
                logger.warning(f"Skipping {path} for type lookup: {e}")
        return units

    def _analyze_file(self, detector: QueryLoopDetector, path: str, tu) -> int:
        loops = self.extractor.find_loops(tu, path)
        logger.debug(f"{path}: {len(loops)} loops")

        try:
            for loop in loops:
                detector.check_loop(loop)
        except Exception as e:
            logger.exception(f"Error analyzing {path}: {e}")
            with self._lock:
                self.stats.errors += 1
            return 0

        with self._lock:
            self.stats.loops += len(loops)
        return len(loops)

    def _emit(self, report: Report) -> None:
        logger.debug(f"Report: {report}")
        with self._lock:
            self._reports.append(report)

    def _apply_suppressions(self, reports: List[Report]) -> List[Report]:
        """抑制マーカーを含む行の報告を除外する。"""
        marker = self.config.suppression_marker
        if not marker:
            return list(reports)

        kept = []
        for report in reports:
            line = self._source_line(report.location.file_path, report.location.line)
            if marker in line:
                self.stats.suppressed += 1
                continue
            kept.append(report)
        return kept

    def _source_line(self, file_path: str, line: int) -> str:
        if file_path not in self._line_cache:
            try:
                with open(file_path, "r", encoding="utf-8", errors="replace") as f:
                    self._line_cache[file_path] = f.readlines()
            except OSError as e:
                logger.warning(f"Failed to read {file_path}: {e}")
                self._line_cache[file_path] = []

        lines = self._line_cache[file_path]
        if 0 < line <= len(lines):
            return lines[line - 1]
        return ""

    def _log_statistics(self) -> None:
        """処理統計をログ出力する。"""
        logger.info("=" * 50)
        logger.info("Analysis Statistics:")
        logger.info(f"  Files analyzed: {self.stats.files}")
        logger.info(f"  Loops checked: {self.stats.loops}")
        logger.info(f"  Reports: {self.stats.reports}")
        logger.info(f"  Suppressed: {self.stats.suppressed}")
        logger.info(f"  Errors: {self.stats.errors}")
        logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="queryloop",
        description="ループ内で繰り返し発行されるデータベースクエリ（N+1クエリ）を検出する"
    )
    parser.add_argument(
        "files",
        nargs="*",
        help="解析するソースファイル（省略時は設定のソースディレクトリ全体）"
    )
    parser.add_argument(
        "-c", "--config",
        help="設定ファイルパス"
    )
    parser.add_argument(
        "-I", "--include",
        action="append",
        default=[],
        metavar="DIR",
        help="インクルードディレクトリ（複数指定可）"
    )
    parser.add_argument(
        "--std",
        help="C++標準（例: c++17）"
    )
    parser.add_argument(
        "-j", "--jobs",
        type=int,
        help="並列ワーカー数"
    )
    parser.add_argument(
        "--excel",
        metavar="OUTPUT",
        help="報告をExcelファイルにも出力する"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="詳細ログを有効にする"
    )
    parser.add_argument(
        "--init-config",
        metavar="PROJECT_DIR",
        help="CMakeプロジェクトから設定ファイルを自動生成"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """メインエントリーポイント。

    Returns:
        終了コード（0: 検出なし、1: 検出あり、2: 設定エラーまたは致命的エラー）
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.init_config:
        return _init_config_from_cmake(
            args.init_config,
            args.config or "queryloop.yaml",
            args.verbose
        )

    if args.config:
        if not Path(args.config).exists():
            print(f"Error: 設定ファイルが見つかりません: {args.config}", file=sys.stderr)
            return 2
        config = Config.from_yaml(args.config)
    else:
        config = Config()

    # コマンドライン引数で上書き
    config.include_paths = list(config.include_paths) + args.include
    if args.std:
        config.cxx_standard = args.std
    if args.jobs:
        config.jobs = args.jobs
    if args.excel:
        config.excel_output = args.excel
    if args.verbose:
        config.log_level = "DEBUG"

    setup_logging(level=config.log_level, log_file=config.log_file)

    errors = config.validate()
    for path in args.files:
        if not Path(path).exists():
            errors.append(f"入力ファイルが見つかりません: {path}")
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return 2

    targets = args.files or None
    if targets is None and not config.get_source_files():
        logger.error("解析対象のソースファイルがありません")
        return 2

    try:
        analyzer = QueryLoopAnalyzer(config)
        reports = analyzer.analyze(targets)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 2

    for report in reports:
        print(report)

    if config.excel_output:
        ExcelWriter(config.excel_output).write_reports(reports)

    return 1 if reports else 0


def _init_config_from_cmake(
    project_dir: str,
    output_config: str,
    verbose: bool
) -> int:
    """CMakeプロジェクトから設定ファイルを生成する。

    Args:
        project_dir: CMakeプロジェクトのルートディレクトリ
        output_config: 出力設定ファイルパス
        verbose: 詳細ログを有効にするかどうか

    Returns:
        終了コード
    """
    setup_logging(level="DEBUG" if verbose else "INFO")

    project_path = Path(project_dir)
    if not project_path.is_dir():
        print(f"Error: ディレクトリではありません: {project_dir}", file=sys.stderr)
        return 2

    config = Config.from_cmake_project(str(project_path), output_path=output_config)

    print(f"設定ファイルを生成しました: {output_config}")
    print(f"  ソースファイル: {len(config.source_files)}")
    print(f"  ソースディレクトリ: {len(config.source_directories)}")
    print(f"  インクルードパス: {len(config.include_paths)}")
    print(f"  コンパイラ引数: {len(config.compiler_args)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
