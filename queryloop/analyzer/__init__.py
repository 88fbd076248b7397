"""libclangを使用したN+1クエリ検出モジュール。"""

from .clang_analyzer import ClangAnalyzer, ClangParseError
from .function_extractor import FunctionExtractor
from .query_types import DEFAULT_QUERY_TYPES, QueryType, QueryTypeRegistry
from .type_probe import TypeProbe, type_identity
from .memo import TraversalMemo, VisitState
from .cross_file import CrossFileResolver
from .detector import QueryLoopDetector

__all__ = [
    "ClangAnalyzer",
    "ClangParseError",
    "FunctionExtractor",
    "DEFAULT_QUERY_TYPES",
    "QueryType",
    "QueryTypeRegistry",
    "TypeProbe",
    "type_identity",
    "TraversalMemo",
    "VisitState",
    "CrossFileResolver",
    "QueryLoopDetector",
]
