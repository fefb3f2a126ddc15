"""Display labels and value formatting shared by the HTML, PDF and Excel reports."""

from datetime import date, datetime
from typing import Optional, Union

STATUS_LABELS = {
    "draft": "Rascunho",
    "in_progress": "Em Andamento",
    "completed": "Concluído",
    "canceled": "Cancelado",
    "overdue": "Atrasado",
}

PRIORITY_LABELS = {
    "low": "Baixa",
    "medium": "Média",
    "high": "Alta",
}

MOVEMENT_LABELS = {
    "transfer": "Tramitação",
    "return": "Devolução",
    "restore": "Restauração",
}

MONTH_ABBR = ["jan", "fev", "mar", "abr", "mai", "jun", "jul", "ago", "set", "out", "nov", "dez"]


def status_label(status: Optional[str], overdue: bool = False) -> str:
    if overdue:
        return STATUS_LABELS["overdue"]
    return STATUS_LABELS.get(status or "", status or "-")


def priority_label(priority: Optional[str]) -> str:
    return PRIORITY_LABELS.get(priority or "", priority or "-")


def format_date(value: Optional[Union[date, datetime]], with_time: bool = False) -> str:
    if not value:
        return "-"
    if with_time and isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M")
    return value.strftime("%d/%m/%Y")


def format_currency(value: Optional[float]) -> str:
    """Brazilian real formatting: R$ 1.234,56"""
    if value is None:
        return "-"
    formatted = f"{value:,.2f}"
    return "R$ " + formatted.replace(",", "_").replace(".", ",").replace("_", ".")


def format_duration(days: Optional[int]) -> str:
    """Human readable duration in days, months or years."""
    if days is None:
        return "-"
    if days < 30:
        return f"{days} dia" if days == 1 else f"{days} dias"
    if days < 365:
        months = days // 30
        return f"{months} mês" if months == 1 else f"{months} meses"
    years = days // 365
    return f"{years} ano" if years == 1 else f"{years} anos"


def days_since(value: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    if not value:
        return None
    now = now or datetime.utcnow()
    return max((now.date() - value.date()).days, 0)
