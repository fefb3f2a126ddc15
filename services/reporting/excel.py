"""Excel export of process listings with openpyxl."""

from io import BytesIO
from datetime import datetime
from typing import Any, Dict, List

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

COLUMNS = [
    ("pbdoc_number", "PBDOC"),
    ("description", "Descrição"),
    ("modality", "Modalidade"),
    ("source", "Fonte de Recurso"),
    ("responsible", "Responsável"),
    ("department", "Setor Atual"),
    ("priority", "Prioridade"),
    ("status", "Situação"),
    ("estimated_value", "Valor Estimado (R$)"),
    ("created_at", "Criado em"),
    ("deadline", "Prazo"),
]

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="1E40AF", end_color="1E40AF", fill_type="solid")


def build_process_workbook(rows: List[Dict[str, Any]], statistics: Dict[str, int]) -> BytesIO:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Processos"

    sheet.append([label for _, label in COLUMNS])
    for cell in sheet[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
    sheet.freeze_panes = "A2"

    for row in rows:
        sheet.append([row.get(key) for key, _ in COLUMNS])
    sheet.auto_filter.ref = sheet.dimensions

    for column_cells in sheet.columns:
        max_length = 12
        column = column_cells[0].column_letter
        for cell in column_cells:
            if cell.value:
                max_length = max(max_length, len(str(cell.value)))
        sheet.column_dimensions[column].width = min(max_length + 2, 60)

    summary = workbook.create_sheet(title="Resumo")
    summary.append(["Indicador", "Quantidade"])
    for cell in summary[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
    summary.append(["Total", statistics["total"]])
    summary.append(["Rascunho", statistics["draft"]])
    summary.append(["Em Andamento", statistics["in_progress"]])
    summary.append(["Concluídos", statistics["completed"]])
    summary.append(["Cancelados", statistics["canceled"]])
    summary.append(["Atrasados", statistics["overdue"]])
    summary.append([])
    summary.append(["Gerado em", datetime.utcnow().strftime("%d/%m/%Y %H:%M")])
    summary.column_dimensions["A"].width = 24
    summary.column_dimensions["B"].width = 18

    buffer = BytesIO()
    workbook.save(buffer)
    buffer.seek(0)
    return buffer
