"""Function and loop extraction from C++ translation units using libclang."""

from typing import List
import logging
import os

from .clang_analyzer import ClangAnalyzer

logger = logging.getLogger(__name__)


class FunctionExtractor:
    """Extract function definitions and loop statements from a file."""

    # Cursor kinds that represent function definitions
    FUNCTION_KINDS = (
        "FUNCTION_DECL",
        "CXX_METHOD",
        "CONSTRUCTOR",
        "DESTRUCTOR",
        "FUNCTION_TEMPLATE",
    )

    # Cursor kinds that represent loop statements
    LOOP_KINDS = (
        "FOR_STMT",
        "CXX_FOR_RANGE_STMT",
        "WHILE_STMT",
        "DO_STMT",
    )

    def __init__(self, clang_analyzer: ClangAnalyzer):
        """Initialize the function extractor.

        Args:
            clang_analyzer: ClangAnalyzer instance for parsing
        """
        self.analyzer = clang_analyzer
        self._ci = clang_analyzer.ci

        CursorKind = self._ci.CursorKind
        self.function_kinds = {getattr(CursorKind, k) for k in self.FUNCTION_KINDS}
        self.loop_kinds = {getattr(CursorKind, k) for k in self.LOOP_KINDS}

    def is_function_definition(self, cursor) -> bool:
        return cursor.kind in self.function_kinds and cursor.is_definition()

    def get_function_definitions(self, tu, file_path: str) -> list:
        """Get all function definitions located in a file.

        Args:
            tu: Translation unit that contains the file
            file_path: Path to the source file

        Returns:
            List of definition cursors in source order
        """
        definitions = []
        target = os.path.normpath(file_path)

        def traverse(node):
            if not self._in_file(node, target):
                return

            if self.is_function_definition(node):
                definitions.append(node)
                return

            for child in node.get_children():
                traverse(child)

        for child in tu.cursor.get_children():
            traverse(child)

        logger.debug(f"Found {len(definitions)} function definitions in {file_path}")
        return definitions

    def find_loops(self, tu, file_path: str) -> list:
        """Get every loop statement located in a file.

        Nested loops are returned as well, outer loops first.

        Args:
            tu: Translation unit that contains the file
            file_path: Path to the source file

        Returns:
            List of loop cursors in source preorder
        """
        loops = []
        target = os.path.normpath(file_path)

        def traverse(node):
            # Skip nodes from other files
            if not self._in_file(node, target):
                return

            if node.kind in self.loop_kinds:
                loops.append(node)

            for child in node.get_children():
                traverse(child)

        for child in tu.cursor.get_children():
            traverse(child)

        return loops

    @staticmethod
    def _in_file(node, target: str) -> bool:
        if node.location.file is None:
            return False
        return os.path.normpath(node.location.file.name) == target
