"""ループ内で繰り返し発行されるデータベースクエリ（N+1クエリ）の静的検出。"""

__version__ = "0.1.0"
