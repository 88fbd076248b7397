"""設定自動生成と報告出力のモジュール。"""

from .cmake_parser import CMakeConfig, CMakeParser
from .excel_writer import ExcelWriter

__all__ = ["CMakeConfig", "CMakeParser", "ExcelWriter"]
