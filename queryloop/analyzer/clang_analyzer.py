"""libclangを使用したC/C++ソースコード解析のラッパー。"""

from typing import List, Optional, Dict
from pathlib import Path
import glob
import os
import logging
import threading

logger = logging.getLogger(__name__)


class ClangParseError(Exception):
    """Clangパース時のエラー。"""
    pass


class ClangAnalyzer:
    """libclangを使用したC/C++解析のフロントエンド。

    TranslationUnitを管理し、同じファイルを何度もパースしないよう
    キャッシュする。ループ検出・ファイル横断解決・型プローブの
    すべてがこのキャッシュを共有する。
    """

    # libclangの探索候補（pipパッケージで見つからない場合）
    LIBRARY_SEARCH_PATTERNS: List[str] = [
        "/usr/lib/llvm-*/lib",
        "/usr/lib64/llvm*/lib64",
        "/usr/local/opt/llvm/lib",
        "/opt/homebrew/opt/llvm/lib",
        r"C:\Program Files\LLVM\bin",
    ]

    def __init__(
        self,
        include_paths: Optional[List[str]] = None,
        additional_args: Optional[List[str]] = None,
        cxx_standard: str = "c++17",
        library_path: Optional[str] = None
    ):
        """Clangアナライザーを初期化する。

        Args:
            include_paths: インクルードディレクトリのリスト
            additional_args: 追加のコンパイラ引数
            cxx_standard: C++標準（-std=に渡す値）
            library_path: libclangライブラリのパス（任意、未指定時は自動検出）
        """
        self._setup_libclang(library_path)

        import clang.cindex as ci
        self._ci = ci

        self.include_paths = include_paths or []
        self.additional_args = additional_args or []
        self.cxx_standard = cxx_standard
        self.index = ci.Index.create()

        # スレッドセーフなTranslationUnitキャッシュ
        self._translation_units: Dict[str, ci.TranslationUnit] = {}
        self._cache_lock = threading.Lock()
        # 同一Indexに対する並行パースを避ける
        self._parse_lock = threading.Lock()

        logger.info(f"ClangAnalyzer initialized with {len(self.include_paths)} include paths")

    def _setup_libclang(self, library_path: Optional[str] = None) -> None:
        """libclangライブラリパスを設定する。

        Args:
            library_path: libclangへの明示的なパス（任意）
        """
        import clang.cindex as ci

        if ci.Config.loaded:
            return

        if library_path:
            ci.Config.set_library_path(library_path)
            return

        # pip install libclangでインストールされたライブラリを使用
        try:
            ci.Index.create()
            logger.debug("libclang loaded successfully from pip package")
            return
        except Exception as e:
            load_error = e

        for pattern in self.LIBRARY_SEARCH_PATTERNS:
            for path in sorted(glob.glob(pattern), reverse=True):
                candidates = list(Path(path).glob("libclang*"))
                if candidates:
                    ci.Config.set_library_path(path)
                    logger.info(f"Using libclang from: {path}")
                    return

        raise ClangParseError(
            f"Failed to load libclang: {load_error}. "
            "Please install libclang with 'pip install libclang' or install LLVM."
        )

    def _build_compiler_args(self, file_path: str) -> List[str]:
        """パース用のコンパイラ引数を構築する。

        Args:
            file_path: ソースファイルのパス

        Returns:
            コンパイラ引数のリスト
        """
        args = [
            "-x", "c++",
            f"-std={self.cxx_standard}",
            "-Wno-pragma-once-outside-header",  # ヘッダー単体パース時の警告を抑制
        ]

        # インクルードパスを追加（ファイル自身のディレクトリを先頭に）
        args.extend(["-I", str(Path(file_path).parent)])
        for inc_path in self.include_paths:
            args.extend(["-I", inc_path])

        args.extend(self.additional_args)

        return args

    def get_translation_unit(
        self,
        file_path: str,
        force_reparse: bool = False
    ):
        """ファイルのTranslationUnitを取得する。

        同じファイルの再パースを避けるためにキャッシュを使用する。
        ループ本体と関数本体を走査するため、常に本体込みでパースする。

        Args:
            file_path: ソースファイルのパス
            force_reparse: キャッシュがあっても強制的に再パース

        Returns:
            clang.cindex.TranslationUnit

        Raises:
            ClangParseError: パースに失敗した場合
        """
        abs_path = os.path.normpath(os.path.abspath(file_path))

        with self._cache_lock:
            if not force_reparse and abs_path in self._translation_units:
                return self._translation_units[abs_path]

        if not os.path.exists(abs_path):
            raise ClangParseError(f"Source file not found: {abs_path}")

        args = self._build_compiler_args(abs_path)
        options = self._ci.TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD

        try:
            with self._parse_lock:
                tu = self.index.parse(abs_path, args=args, options=options)
        except self._ci.TranslationUnitLoadError as e:
            raise ClangParseError(f"Failed to parse {abs_path}: {e}") from e

        if tu is None:
            raise ClangParseError(f"Failed to parse {abs_path}: returned None")

        # 診断情報をログ出力
        for diag in tu.diagnostics:
            if diag.severity >= self._ci.Diagnostic.Error:
                logger.warning(f"Parse error in {abs_path}: {diag.spelling}")

        with self._cache_lock:
            self._translation_units[abs_path] = tu

        logger.debug(f"Parsed {abs_path}")
        return tu

    def parse_string(self, source_code: str, filename: str = "temp.cpp"):
        """文字列からソースコードをパースする（キャッシュしない）。

        Args:
            source_code: C++ソースコード
            filename: ソースの仮想ファイル名

        Returns:
            clang.cindex.TranslationUnit
        """
        args = self._build_compiler_args(filename)

        try:
            with self._parse_lock:
                return self.index.parse(
                    filename,
                    args=args,
                    unsaved_files=[(filename, source_code)],
                    options=self._ci.TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD
                )
        except self._ci.TranslationUnitLoadError as e:
            raise ClangParseError(f"Failed to parse source string: {e}") from e

    @property
    def ci(self):
        """clang.cindexモジュールを取得する。"""
        return self._ci
