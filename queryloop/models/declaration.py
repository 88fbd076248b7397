"""関数宣言の一意な識別子モデル。"""

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class DeclarationId:
    """関数定義のソース上の一意な位置。

    各定義はソース上で固有の位置を占めるため、ファイルパスと
    オフセットの組で識別できる。別の翻訳単位から同じファイルを
    パースしても同じ値になる。
    """
    file_path: str
    offset: int

    @classmethod
    def of(cls, cursor) -> "DeclarationId":
        """定義カーソルから識別子を生成する。

        Args:
            cursor: 関数定義のカーソル

        Returns:
            DeclarationIdインスタンス

        Raises:
            ValueError: カーソルがファイル位置を持たない場合
        """
        location = cursor.location
        if location.file is None:
            raise ValueError(f"Declaration '{cursor.spelling}' has no file location")

        return cls(
            file_path=os.path.normpath(location.file.name),
            offset=location.offset
        )

    def __str__(self) -> str:
        return f"{self.file_path}@{self.offset}"
