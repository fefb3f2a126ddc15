"""PDF rendering of process reports with ReportLab."""

import io
from datetime import datetime
from typing import Any, Dict, List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .labels import format_currency

PRIMARY = colors.HexColor('#1e40af')
MUTED = colors.HexColor('#6b7280')
LIGHT = colors.HexColor('#eff6ff')
BORDER = colors.HexColor('#d1d5db')


def _styles() -> Dict[str, ParagraphStyle]:
    styles = getSampleStyleSheet()
    return {
        'title': ParagraphStyle(
            'ReportTitle',
            parent=styles['Heading1'],
            fontSize=18,
            textColor=PRIMARY,
            spaceAfter=12,
            alignment=TA_CENTER,
            fontName='Helvetica-Bold'
        ),
        'heading': ParagraphStyle(
            'ReportHeading',
            parent=styles['Heading2'],
            fontSize=13,
            textColor=PRIMARY,
            spaceBefore=10,
            spaceAfter=6,
            fontName='Helvetica-Bold'
        ),
        'subtitle': ParagraphStyle(
            'ReportSubtitle',
            parent=styles['Normal'],
            fontSize=9,
            textColor=MUTED,
            alignment=TA_CENTER,
            spaceAfter=6
        ),
        'cell': ParagraphStyle('Cell', parent=styles['Normal'], fontSize=8, leading=10),
        'normal': styles['Normal'],
    }


def _p(text: Any, style: ParagraphStyle) -> Paragraph:
    return Paragraph(escape(str(text if text is not None else "-")), style)


def _details_table(rows: List[List[Any]]) -> Table:
    table = Table(rows, colWidths=[1.8 * inch, 4.9 * inch])
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (0, -1), LIGHT),
        ('TEXTCOLOR', (0, 0), (0, -1), PRIMARY),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('GRID', (0, 0), (-1, -1), 1, BORDER),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('LEFTPADDING', (0, 0), (-1, -1), 8),
        ('RIGHTPADDING', (0, 0), (-1, -1), 8),
        ('TOPPADDING', (0, 0), (-1, -1), 5),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
    ]))
    return table


def _grid_table(header: List[str], rows: List[List[Any]], col_widths: List[float]) -> Table:
    table = Table([header] + rows, colWidths=col_widths, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), PRIMARY),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, BORDER),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f9fafb')]),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ]))
    return table


def _build(elements: List[Any], pagesize=A4) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=pagesize, topMargin=0.6 * inch, bottomMargin=0.6 * inch,
                            leftMargin=0.6 * inch, rightMargin=0.6 * inch)
    doc.build(elements)
    return buffer.getvalue()


def build_process_report_pdf(context: Dict[str, Any]) -> bytes:
    """Full process report: details, checklist progress by phase and routing history."""
    styles = _styles()
    elements: List[Any] = [
        Paragraph(f"Relatório do Processo {escape(context['pbdoc_number'])}", styles['title']),
        Paragraph(f"Gerado em {context['generated_at']}", styles['subtitle']),
        Spacer(1, 0.15 * inch),
    ]

    details = [
        ['Descrição:', _p(context['description'], styles['cell'])],
        ['Modalidade:', context['modality']],
        ['Fonte de Recurso:', context['source']],
        ['Responsável:', f"{context['responsible']} (há {context['responsible_for']})"],
        ['Setor Atual:', context['department']],
        ['Central de Compras:', context['central_de_compras']],
        ['Valor Estimado:', context['estimated_value']],
        ['Prioridade:', context['priority']],
        ['Situação:', context['status']],
        ['Criado em:', f"{context['created_at']} (há {context['age']})"],
        ['Prazo:', context['deadline']],
    ]
    if context.get('return_comments'):
        details.append(['Motivo da Devolução:', _p(context['return_comments'], styles['cell'])])
    elements.append(_details_table(details))

    progress = context['progress']
    elements.append(Paragraph(
        f"Checklist ({progress['completed']}/{progress['total']} etapas, {progress['percentage']}%)",
        styles['heading'],
    ))
    for phase in context['phases']:
        elements.append(Paragraph(
            f"<b>{escape(phase['name'])}</b> - {phase['completed']}/{phase['total']}", styles['normal']
        ))
        rows = [[
            _p(step['name'], styles['cell']),
            _p(step['department'], styles['cell']),
            step['status'],
            step['completed_at'],
            step['due_date'],
        ] for step in phase['steps']]
        elements.append(_grid_table(
            ['Etapa', 'Setor', 'Situação', 'Concluída em', 'Prazo'],
            rows,
            [2.6 * inch, 1.5 * inch, 0.9 * inch, 1.0 * inch, 0.8 * inch],
        ))
        elements.append(Spacer(1, 0.1 * inch))

    elements.append(Paragraph("Histórico de Tramitação", styles['heading']))
    if context['movements']:
        rows = [[
            m['date'], m['kind'], _p(m['from'], styles['cell']), _p(m['to'], styles['cell']),
            _p(m['user'], styles['cell']), _p(m['comment'], styles['cell']),
        ] for m in context['movements']]
        elements.append(_grid_table(
            ['Data', 'Tipo', 'De', 'Para', 'Usuário', 'Comentário'],
            rows,
            [1.0 * inch, 0.8 * inch, 1.2 * inch, 1.2 * inch, 1.1 * inch, 1.5 * inch],
        ))
    else:
        elements.append(Paragraph("Nenhuma movimentação registrada.", styles['normal']))

    return _build(elements)


def build_timeline_pdf(pbdoc_number: str, events: List[Dict[str, Any]]) -> bytes:
    styles = _styles()
    elements: List[Any] = [
        Paragraph(f"Linha do Tempo - {escape(pbdoc_number)}", styles['title']),
        Paragraph(f"Gerado em {datetime.utcnow().strftime('%d/%m/%Y %H:%M')}", styles['subtitle']),
        Spacer(1, 0.15 * inch),
    ]
    rows = [[event['date'], _p(event['title'], styles['cell']), _p(event['detail'], styles['cell'])]
            for event in events]
    elements.append(_grid_table(['Data', 'Evento', 'Detalhes'], rows, [1.2 * inch, 2.3 * inch, 3.3 * inch]))
    return _build(elements)


def build_process_list_pdf(rows: List[Dict[str, Any]], statistics: Dict[str, int], filters: Dict[str, Any]) -> bytes:
    """Landscape listing of processes with a summary block."""
    styles = _styles()
    elements: List[Any] = [
        Paragraph("Relatório de Processos", styles['title']),
        Paragraph(f"Gerado em {datetime.utcnow().strftime('%d/%m/%Y %H:%M')}", styles['subtitle']),
    ]
    applied = ", ".join(f"{key}={value}" for key, value in filters.items() if value not in (None, ""))
    if applied:
        elements.append(Paragraph(f"Filtros: {escape(applied)}", styles['subtitle']))
    elements.append(Spacer(1, 0.1 * inch))

    summary = Table([
        ['Total', 'Em Andamento', 'Concluídos', 'Cancelados', 'Atrasados'],
        [statistics['total'], statistics['in_progress'], statistics['completed'],
         statistics['canceled'], statistics['overdue']],
    ])
    summary.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), LIGHT),
        ('TEXTCOLOR', (0, 0), (-1, 0), PRIMARY),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
        ('GRID', (0, 0), (-1, -1), 1, BORDER),
    ]))
    elements.append(summary)
    elements.append(Spacer(1, 0.2 * inch))

    if rows:
        table_rows = [[
            row['pbdoc_number'],
            _p(row['description'], styles['cell']),
            _p(row['modality'], styles['cell']),
            _p(row['responsible'], styles['cell']),
            _p(row['department'], styles['cell']),
            row['status'],
            format_currency(row['estimated_value']),
            row['deadline'],
        ] for row in rows]
        elements.append(_grid_table(
            ['PBDOC', 'Descrição', 'Modalidade', 'Responsável', 'Setor', 'Situação', 'Valor', 'Prazo'],
            table_rows,
            [1.1 * inch, 2.6 * inch, 1.2 * inch, 1.2 * inch, 1.4 * inch, 0.9 * inch, 1.0 * inch, 0.8 * inch],
        ))
    else:
        elements.append(Paragraph("Nenhum processo encontrado.", styles['normal']))

    return _build(elements, pagesize=landscape(A4))
