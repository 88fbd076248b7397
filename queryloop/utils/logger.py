"""ロギング設定モジュール。

標準出力は検出結果専用のため、ログはすべて標準エラー出力
（と任意のログファイル）に書き出す。
"""

import logging
import sys
import time
from pathlib import Path
from typing import List, Optional


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """ルートロガーを設定する。

    Args:
        level: ログレベル名（不正な値はINFO扱い）
        log_file: ログファイルへのパス（省略可）
        format_string: カスタムフォーマット文字列（省略可）

    Returns:
        ルートロガー
    """
    log_level = getattr(logging, str(level).upper(), logging.INFO)
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    return root_logger


class ProgressLogger:
    """解析済みファイル数とループ数の進捗ログ。

    複数ワーカーから呼ばれる場合、呼び出し側で排他制御すること。
    """

    def __init__(
        self,
        total: int,
        logger: Optional[logging.Logger] = None,
        log_interval: int = 10
    ):
        """進捗ロガーを初期化する。

        Args:
            total: 解析するファイルの総数
            logger: 使用するロガー
            log_interval: 何ファイルごとに進捗を出力するか
        """
        self.total = total
        self.files = 0
        self.loops = 0
        self.logger = logger or logging.getLogger(__name__)
        self.log_interval = max(1, log_interval)
        self._started = time.monotonic()

    def update(self, file_path: str, loops: int = 0) -> None:
        """1ファイルの解析完了を記録する。"""
        self.files += 1
        self.loops += loops

        if self.files % self.log_interval and self.files != self.total:
            return

        percent = self.files / self.total * 100 if self.total else 100.0
        self.logger.info(
            f"Progress: {self.files}/{self.total} files ({percent:.1f}%), "
            f"{self.loops} loops - {Path(file_path).name}"
        )

    def complete(self) -> float:
        """完了をログ出力し、経過秒数を返す。"""
        elapsed = time.monotonic() - self._started
        self.logger.info(
            f"Analyzed {self.files} files and {self.loops} loops in {elapsed:.2f}s"
        )
        return elapsed
