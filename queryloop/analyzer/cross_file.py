"""呼び出し先の定義を別ファイルから解決するリゾルバ。"""

from typing import Dict, List, Optional
import logging
import os
import threading

from .clang_analyzer import ClangAnalyzer, ClangParseError
from .function_extractor import FunctionExtractor

logger = logging.getLogger(__name__)


class CrossFileResolver:
    """関数宣言から定義ファイルを特定し、その全関数定義を返す。

    呼び出し元の翻訳単位に定義が見えない関数（別の.cppで定義された
    関数など）について、プロジェクト内ソースファイルの
    USR→定義ファイル索引を引いて定義ファイルを特定する。
    プロジェクト外（ライブラリヘッダーなど）の定義は「見つからない」とする。
    """

    # 索引構築時に辿るスコープ種別
    SCOPE_KINDS = (
        "NAMESPACE",
        "LINKAGE_SPEC",
        "UNEXPOSED_DECL",
        "CLASS_DECL",
        "STRUCT_DECL",
        "CLASS_TEMPLATE",
    )

    def __init__(
        self,
        clang_analyzer: ClangAnalyzer,
        source_files: List[str],
        project_roots: Optional[List[str]] = None
    ):
        """リゾルバを初期化する。

        Args:
            clang_analyzer: ClangAnalyzerインスタンス
            source_files: 索引対象のソースファイルリスト
            project_roots: プロジェクトとみなすディレクトリ（省略時はソースの親ディレクトリ）
        """
        self.analyzer = clang_analyzer
        self.extractor = FunctionExtractor(clang_analyzer)
        self.source_files = [os.path.normpath(os.path.abspath(f)) for f in source_files]

        if project_roots is None:
            project_roots = sorted({os.path.dirname(f) for f in self.source_files})
        self.project_roots = [os.path.normpath(os.path.abspath(r)) for r in project_roots]

        CursorKind = clang_analyzer.ci.CursorKind
        self._scope_kinds = {
            getattr(CursorKind, k) for k in self.SCOPE_KINDS if hasattr(CursorKind, k)
        }

        self._index: Optional[Dict[str, str]] = None
        self._index_lock = threading.Lock()

    def locate(self, callee) -> Optional[str]:
        """関数宣言の定義ファイルを特定する。

        Args:
            callee: 呼び出し先の関数宣言カーソル

        Returns:
            定義ファイルのパス、特定できない場合はNone
        """
        definition = callee.get_definition()
        if definition is not None and definition.location.file is not None:
            path = os.path.normpath(definition.location.file.name)
            if self.in_project(path):
                return path
            logger.debug(f"Definition of {callee.spelling} is outside the project: {path}")
            return None

        usr = callee.get_usr()
        if not usr:
            return None

        return self._definition_index().get(usr)

    def resolve(self, callee) -> Optional[list]:
        """定義ファイルを読み込み、そのファイルの全関数定義を返す。

        Args:
            callee: 呼び出し先の関数宣言カーソル

        Returns:
            関数定義カーソルのリスト、解決できない場合はNone（行き止まり）
        """
        path = self.locate(callee)
        if path is None:
            logger.debug(f"No project definition found for {callee.spelling}")
            return None

        try:
            tu = self.analyzer.get_translation_unit(path)
        except ClangParseError as e:
            logger.warning(f"Failed to load {path} for {callee.spelling}: {e}")
            return None

        return self.extractor.get_function_definitions(tu, path)

    def in_project(self, path: str) -> bool:
        path = os.path.normpath(os.path.abspath(path))
        if path in self.source_files:
            return True
        for root in self.project_roots:
            if path == root or path.startswith(root + os.sep):
                return True
        return False

    def _definition_index(self) -> Dict[str, str]:
        """USR→定義ファイルの索引を取得する（初回のみ構築）。"""
        with self._index_lock:
            if self._index is None:
                self._index = self._build_index()
            return self._index

    def _build_index(self) -> Dict[str, str]:
        index: Dict[str, str] = {}

        for src_file in self.source_files:
            try:
                tu = self.analyzer.get_translation_unit(src_file)
            except ClangParseError as e:
                logger.warning(f"Skipping {src_file} in definition index: {e}")
                continue

            self._index_definitions(tu.cursor, index)

        logger.info(
            f"Definition index built: {len(index)} definitions "
            f"from {len(self.source_files)} files"
        )
        return index

    def _index_definitions(self, cursor, index: Dict[str, str]) -> None:
        for child in cursor.get_children():
            if child.location.file is None:
                continue

            if self.extractor.is_function_definition(child):
                path = os.path.normpath(child.location.file.name)
                usr = child.get_usr()
                if usr and usr not in index and self.in_project(path):
                    index[usr] = path
            elif child.kind in self._scope_kinds:
                self._index_definitions(child, index)
