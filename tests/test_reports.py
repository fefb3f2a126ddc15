from io import BytesIO

from openpyxl import load_workbook

from conftest import DIVISAO
from services.reporting.labels import format_currency, format_duration, status_label


def test_labels():
    assert format_currency(1234.56) == "R$ 1.234,56"
    assert format_currency(None) == "-"
    assert format_duration(1) == "1 dia"
    assert format_duration(12) == "12 dias"
    assert format_duration(45) == "1 mês"
    assert format_duration(400) == "1 ano"
    assert status_label("in_progress") == "Em Andamento"
    assert status_label("draft", overdue=True) == "Atrasado"


def test_html_report(admin_client, create_process):
    process = create_process(estimated_value=1234.56)
    url = f"/api/processes/{process['id']}"
    admin_client.post(f"{url}/transfer", json={"department_id": DIVISAO, "force": True})
    admin_client.post(f"{url}/return", json={"return_comment": "Refazer o termo"})

    response = admin_client.get(f"{url}/report")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    html = response.text
    assert process["pbdoc_number"] in html
    assert "R$ 1.234,56" in html
    assert "Refazer o termo" in html
    assert "Devolução" in html


def test_pdf_reports(admin_client, create_process):
    process = create_process()
    url = f"/api/processes/{process['id']}"

    for path in (f"{url}/report.pdf", f"{url}/timeline.pdf", "/api/reports/processes.pdf"):
        response = admin_client.get(path)
        assert response.status_code == 200, path
        assert response.headers["content-type"] == "application/pdf"
        assert "attachment" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")


def test_excel_export_respects_filters(admin_client, create_process):
    create_process(pbdoc_number="PBDOC-XLS-1", estimated_value=10.0)
    create_process(pbdoc_number="PBDOC-OTHER-2")

    response = admin_client.get("/api/reports/processes.xlsx", params={"pbdoc_number": "XLS"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )

    workbook = load_workbook(BytesIO(response.content))
    assert workbook.sheetnames == ["Processos", "Resumo"]
    rows = list(workbook["Processos"].iter_rows(values_only=True))
    assert rows[0][0] == "PBDOC"
    assert [row[0] for row in rows[1:]] == ["PBDOC-XLS-1"]
    assert workbook["Resumo"]["B2"].value == 1


def test_reports_respect_visibility(create_process, make_user, login):
    process = create_process()
    make_user("ana.costa", department="Coordenação de Licitação")
    ana = login("ana.costa")
    assert ana.get(f"/api/processes/{process['id']}/report.pdf").status_code == 404
    assert ana.get(f"/api/processes/{process['id']}/report").status_code == 404
