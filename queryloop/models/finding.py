"""N+1クエリ検出結果の指摘情報モデル。"""

from dataclasses import dataclass
from typing import Optional
import os


# ループ内クエリ呼び出しの固定メッセージ
QUERY_IN_LOOP_MESSAGE = "this query is called in a loop"


@dataclass(frozen=True)
class SourceLocation:
    """ソースコードの位置情報。"""
    file_path: str
    line: int
    column: Optional[int] = None

    def __post_init__(self):
        # パスを正規化
        object.__setattr__(self, "file_path", os.path.normpath(self.file_path))

    def sort_key(self):
        return (self.file_path, self.line, self.column or 0)

    def __str__(self) -> str:
        if self.column:
            return f"{self.file_path}:{self.line}:{self.column}"
        return f"{self.file_path}:{self.line}"


@dataclass(frozen=True)
class Report:
    """1件の違反報告（位置とメッセージ）。

    同一位置に複数の報告が存在しうるため、重複排除は行わない。
    """
    location: SourceLocation
    message: str = QUERY_IN_LOOP_MESSAGE

    @classmethod
    def from_cursor(
        cls,
        cursor,
        message: str = QUERY_IN_LOOP_MESSAGE
    ) -> Optional["Report"]:
        """libclangカーソルの位置から報告を生成する。

        Args:
            cursor: 報告対象のカーソル
            message: 報告メッセージ

        Returns:
            Report、カーソルがファイル位置を持たない場合はNone
        """
        if cursor is None:
            return None

        location = cursor.location
        if location.file is None:
            return None

        return cls(
            location=SourceLocation(
                file_path=location.file.name,
                line=location.line,
                column=location.column
            ),
            message=message
        )

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"


@dataclass
class ProcessingStats:
    """解析処理の統計情報。"""
    files: int = 0
    loops: int = 0
    reports: int = 0
    suppressed: int = 0
    errors: int = 0
