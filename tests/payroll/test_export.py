from openpyxl import load_workbook

from opsdesk.payroll.export import to_excel


def test_to_excel_writes_one_sheet_per_table():
    output = to_excel(
        {
            "Details": [{"full_name": "An", "worked_minutes": 480}],
            "Summary_by_employee_for_the_period": [{"full_name": "An", "days": 1}],
        }
    )

    wb = load_workbook(output)
    assert wb.sheetnames == ["Details", "Summary_by_employee_for_the_per"]
    rows = list(wb["Details"].iter_rows(values_only=True))
    assert rows == [("full_name", "worked_minutes"), ("An", 480)]
