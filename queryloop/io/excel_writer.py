"""検出結果のExcel出力モジュール。"""

from collections import Counter
from datetime import datetime
from typing import List
from pathlib import Path
import logging

from openpyxl import Workbook
from openpyxl.styles import PatternFill, Font, Alignment, Border, Side

from ..models.finding import Report

logger = logging.getLogger(__name__)


class ExcelWriter:
    """N+1クエリの報告をExcelファイルに書き込む。"""

    REPORT_HEADERS = ["File", "Line", "Column", "Message"]
    COLUMN_WIDTHS = [60, 8, 8, 40]

    HEADER_COLOR = "4472C4"
    REPORT_COLOR = "FFC7CE"  # 赤 - 修正必要

    def __init__(self, output_file: str):
        """Excelライターを初期化する。

        Args:
            output_file: 出力Excelファイルのパス
        """
        self.output_file = Path(output_file)
        self._thin_border = Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin")
        )

    def write_reports(self, reports: List[Report]) -> None:
        """報告一覧シートとサマリーシートを書き込む。

        Args:
            reports: 出力する報告のリスト
        """
        wb = Workbook()
        ws = wb.active
        ws.title = "Reports"

        self._write_headers(ws, self.REPORT_HEADERS)

        for row, report in enumerate(reports, 2):
            values = [
                report.location.file_path,
                report.location.line,
                report.location.column,
                report.message,
            ]
            for col, value in enumerate(values, 1):
                cell = ws.cell(row=row, column=col)
                cell.value = value
                cell.border = self._thin_border
                if col == 4:
                    cell.fill = PatternFill(
                        start_color=self.REPORT_COLOR,
                        end_color=self.REPORT_COLOR,
                        fill_type="solid"
                    )

        for i, width in enumerate(self.COLUMN_WIDTHS, 1):
            col_letter = ws.cell(row=1, column=i).column_letter
            ws.column_dimensions[col_letter].width = width

        self._write_summary(wb, reports)

        self.output_file.parent.mkdir(parents=True, exist_ok=True)
        wb.save(self.output_file)
        logger.info(f"{len(reports)} reports written to {self.output_file}")

    def _write_headers(self, ws, headers: List[str]) -> None:
        for i, header in enumerate(headers, 1):
            cell = ws.cell(row=1, column=i)
            cell.value = header
            cell.font = Font(bold=True, color="FFFFFF")
            cell.alignment = Alignment(horizontal="center", vertical="center")
            cell.fill = PatternFill(
                start_color=self.HEADER_COLOR,
                end_color=self.HEADER_COLOR,
                fill_type="solid"
            )
            cell.border = self._thin_border

    def _write_summary(self, wb: Workbook, reports: List[Report]) -> None:
        """ファイルごとの報告件数を集計したサマリーシートを追加する。"""
        ws = wb.create_sheet("Summary")

        ws["A1"] = "N+1クエリ検出サマリー"
        ws["A1"].font = Font(bold=True, size=14)
        ws.merge_cells("A1:B1")

        ws["A2"] = f"生成日時: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        ws.merge_cells("A2:B2")

        counts = Counter(report.location.file_path for report in reports)

        for i, header in enumerate(["File", "Reports"], 1):
            cell = ws.cell(row=4, column=i)
            cell.value = header
            cell.font = Font(bold=True)
            cell.border = self._thin_border
            cell.alignment = Alignment(horizontal="center")

        row = 5
        for file_path, count in sorted(counts.items()):
            ws.cell(row=row, column=1, value=file_path).border = self._thin_border
            cell_count = ws.cell(row=row, column=2, value=count)
            cell_count.alignment = Alignment(horizontal="right")
            cell_count.border = self._thin_border
            row += 1

        cell_total_label = ws.cell(row=row, column=1, value="合計")
        cell_total_label.font = Font(bold=True)
        cell_total_label.border = self._thin_border
        cell_total = ws.cell(row=row, column=2, value=len(reports))
        cell_total.font = Font(bold=True)
        cell_total.alignment = Alignment(horizontal="right")
        cell_total.border = self._thin_border

        ws.column_dimensions["A"].width = 60
        ws.column_dimensions["B"].width = 10
