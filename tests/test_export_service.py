# tests/test_export_service.py
"""Unit tests for the XLSX request export."""

from datetime import date, timedelta
from io import BytesIO

import pytest
from openpyxl import load_workbook
from app.services.errors import PermissionDenied, ValidationFailed
from app.services.export_service import COLUMNS, export_filename, export_requests
from conftest import make_request, caller_for, NOW, hours


class TestExportRequests:
    def test_workbook_contents(self, db, user, admin, vehicle):
        make_request(db, vehicle, user, NOW, NOW + hours(2), destination="Bandara")
        export = export_requests(db, caller_for(admin))
        ws = load_workbook(BytesIO(export.content)).active

        assert export.row_count == 1
        assert [c.value for c in ws[1]] == [header for header, _ in COLUMNS]
        assert ws[1][0].font.bold
        row = [c.value for c in ws[2]]
        assert row[0] == 1
        assert row[7] == vehicle.plate
        assert row[9] == "Bandara"
        assert row[10] == "06/01/2025"
        assert row[11] == "10:00"
        assert row[15] == "-"

    def test_date_range_is_inclusive_on_local_days(self, db, user, admin, vehicle):
        make_request(db, vehicle, user, NOW, NOW + hours(1))
        make_request(db, vehicle, user, NOW, NOW + hours(1), created_at=NOW - timedelta(days=2))
        export = export_requests(db, caller_for(admin), date(2025, 1, 6), date(2025, 1, 6))
        assert export.row_count == 1

    def test_end_before_start(self, db, admin):
        with pytest.raises(ValidationFailed):
            export_requests(db, caller_for(admin), date(2025, 1, 6), date(2025, 1, 5))

    def test_requires_admin(self, db, user):
        with pytest.raises(PermissionDenied):
            export_requests(db, caller_for(user))


class TestExportFilename:
    def test_range_suffixes(self):
        assert export_filename(date(2025, 1, 1), date(2025, 1, 31)).endswith("_2025-01-01_to_2025-01-31.xlsx")
        assert export_filename(date(2025, 1, 1), None).endswith("_from_2025-01-01.xlsx")
        assert export_filename(None, date(2025, 1, 31)).endswith("_until_2025-01-31.xlsx")
        assert export_filename(None, None).startswith("vehicle_requests_")


class TestExportCellTypes:
    def test_formula_like_text_is_written_as_text(self, db, user, admin, vehicle):
        payload = '=HYPERLINK("http://evil.example","click")'
        make_request(db, vehicle, user, NOW, NOW + hours(2), destination=payload,
                     rejection_reason="+cmd|' /C calc'!A0")
        export = export_requests(db, caller_for(admin))
        ws = load_workbook(BytesIO(export.content)).active

        destination = ws.cell(row=2, column=10)
        assert destination.data_type == "s"
        assert destination.value == payload
        assert ws.cell(row=2, column=18).data_type == "s"

    def test_numbers_stay_numeric(self, db, user, admin, vehicle):
        make_request(db, vehicle, user, NOW, NOW + hours(2))
        ws = load_workbook(BytesIO(export_requests(db, caller_for(admin)).content)).active
        assert ws.cell(row=2, column=1).data_type == "n"
