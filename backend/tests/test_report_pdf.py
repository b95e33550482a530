import io
import time
import unittest
from datetime import date, datetime, timedelta
from pathlib import Path
from unittest import mock

import reportlab
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from hr_reports.models.enums import RecordType
from hr_reports.schemas.report import EmployeeRecord, GoalRecord, ReportDataset, ReportFilters, TaskRecord, TimeEntryRecord
from hr_reports.services.export_errors import ExportError
from hr_reports.services.report_fonts import ASCII_FALLBACK_FONT, UNRESOLVED_FONT, FontState, resolve_document_font
from hr_reports.services.report_pdf import ReportCanvas, build_report_pdf
from hr_reports.services.report_stats import compute_report_stats


GENERATED_AT = datetime(2024, 2, 1, 9, 30, 0)
VERA_TTF = Path(reportlab.__file__).parent / "fonts" / "Vera.ttf"


def _entries(count: int) -> tuple[TimeEntryRecord, ...]:
    start = date(2024, 1, 1)
    return tuple(
        TimeEntryRecord.model_validate(
            {
                "id": idx,
                "employee_id": 7,
                "date": start + timedelta(days=idx % 31),
                "hours": 8,
                "hour_type": "regular",
                "status": "approved",
                "notes": "Hoàn thành “báo cáo” – đúng hạn",
            }
        )
        for idx in range(count)
    )


def _dataset(entry_count: int = 3) -> ReportDataset:
    return ReportDataset(
        time_entries=_entries(entry_count),
        tasks=(TaskRecord.model_validate({"id": 1, "employee_id": 7, "title": "Kế hoạch quý", "status": "completed"}),),
        goals=(GoalRecord.model_validate({"id": 1, "employee_id": 7, "title": "Zertifizierung ß", "status": "pending"}),),
        employees=(EmployeeRecord(id=7, name="Nguyễn Văn Đức"),),
    )


def _filters(**overrides) -> ReportFilters:
    values = {"start_date": date(2024, 1, 1), "end_date": date(2024, 1, 31)}
    values.update(overrides)
    return ReportFilters(**values)


class _TextRecorder:
    """Patches the canvas text calls and keeps what was drawn."""

    def __enter__(self):
        self._patches = [
            mock.patch.object(canvas.Canvas, "drawString", autospec=True, side_effect=canvas.Canvas.drawString),
            mock.patch.object(
                canvas.Canvas, "drawRightString", autospec=True, side_effect=canvas.Canvas.drawRightString
            ),
            mock.patch.object(canvas.Canvas, "setFont", autospec=True, side_effect=canvas.Canvas.setFont),
        ]
        self.draw, self.draw_right, self.set_font = [patch.start() for patch in self._patches]
        return self

    def __exit__(self, *exc):
        for patch in self._patches:
            patch.stop()
        return False

    @property
    def texts(self) -> list[str]:
        return [call.args[3] for call in self.draw.call_args_list + self.draw_right.call_args_list]

    @property
    def fonts(self) -> set[str]:
        return {call.args[1] for call in self.set_font.call_args_list}


def _build(dataset, filters, font) -> bytes:
    return build_report_pdf(dataset, compute_report_stats(dataset), filters, font=font, generated_at=GENERATED_AT)


class TestBuildReportPdf(unittest.TestCase):
    def test_produces_pdf(self) -> None:
        content = _build(_dataset(), _filters(), ASCII_FALLBACK_FONT)
        self.assertTrue(content.startswith(b"%PDF"))

    def test_fallback_document_is_ascii_only(self) -> None:
        with _TextRecorder() as recorder:
            _build(_dataset(), _filters(employee_id="7"), ASCII_FALLBACK_FONT)
        self.assertTrue(recorder.texts)
        for text in recorder.texts:
            self.assertTrue(all(32 <= ord(ch) < 127 for ch in text), text)
        self.assertEqual(recorder.fonts, {"Helvetica", "Helvetica-Bold"})
        joined = "\n".join(recorder.texts)
        self.assertIn("Nguyen Van Duc", joined)
        self.assertIn("Page 1", joined)

    def test_row_cap_when_all_types(self) -> None:
        with _TextRecorder() as recorder:
            _build(_dataset(25), _filters(), ASCII_FALLBACK_FONT)
        joined = "\n".join(recorder.texts)
        self.assertIn("Showing 20 of 25 records", joined)

    def test_row_cap_for_single_type(self) -> None:
        with _TextRecorder() as recorder:
            _build(_dataset(60), _filters(record_type=RecordType.TIME_ENTRIES), ASCII_FALLBACK_FONT)
        joined = "\n".join(recorder.texts)
        self.assertIn("Showing 50 of 60 records", joined)
        self.assertIn("Page 2", joined)
        self.assertNotIn("Tasks (", joined)

    def test_no_truncation_note_under_cap(self) -> None:
        with _TextRecorder() as recorder:
            _build(_dataset(5), _filters(), ASCII_FALLBACK_FONT)
        self.assertFalse(any(text.startswith("Showing") for text in recorder.texts))

    def test_empty_dataset(self) -> None:
        with _TextRecorder() as recorder:
            content = _build(ReportDataset(), _filters(), ASCII_FALLBACK_FONT)
        self.assertTrue(content.startswith(b"%PDF"))
        self.assertIn("No records found for the selected filters.", recorder.texts)

    def test_unresolved_font_is_rejected(self) -> None:
        with self.assertRaises(ExportError):
            _build(_dataset(), _filters(), UNRESOLVED_FONT)


class TestLongText(unittest.TestCase):
    def test_long_notes_render_quickly(self) -> None:
        entries = tuple(
            TimeEntryRecord.model_validate(
                {"id": idx, "employee_id": 7, "date": date(2024, 1, 5), "hours": 1, "notes": "word " * 4000}
            )
            for idx in range(20)
        )
        dataset = ReportDataset(time_entries=entries)
        started = time.perf_counter()
        with _TextRecorder() as recorder:
            content = _build(dataset, _filters(record_type=RecordType.TIME_ENTRIES), ASCII_FALLBACK_FONT)
        self.assertLess(time.perf_counter() - started, 5)
        self.assertTrue(content.startswith(b"%PDF"))
        notes = [text for text in recorder.texts if text.startswith("word")]
        self.assertEqual(len(notes), 20)
        for text in notes:
            self.assertTrue(text.endswith("..."))
            self.assertLess(len(text), 200)

    def test_fit_keeps_the_widest_prefix(self) -> None:
        rc = ReportCanvas(io.BytesIO(), ASCII_FALLBACK_FONT, footer_label="")
        width = 100
        source = "abcdefghij" * 1000
        text = rc.fit(source, width, 8)
        self.assertTrue(text.endswith("..."))
        self.assertLessEqual(pdfmetrics.stringWidth(text, "Helvetica", 8), width)
        longer = source[: len(text) - 2] + "..."
        self.assertGreater(pdfmetrics.stringWidth(longer, "Helvetica", 8), width)

    def test_fit_leaves_short_and_narrow_text(self) -> None:
        rc = ReportCanvas(io.BytesIO(), ASCII_FALLBACK_FONT, footer_label="")
        self.assertEqual(rc.fit("Lan", 100, 8), "Lan")
        narrow = "i" * 50
        self.assertEqual(rc.fit(narrow, 100, 8), narrow)
        self.assertEqual(rc.fit("anything", 1, 8), "")


class TestEmbeddedFontDocument(unittest.IsolatedAsyncioTestCase):
    async def _resolve(self, locale: str):
        data = VERA_TTF.read_bytes()

        async def loader(spec, filename):
            return data

        return await resolve_document_font(locale, loaders=[("self-hosted", loader)])

    async def test_usable_font_is_used_for_all_text(self) -> None:
        font = await self._resolve("en")
        self.assertEqual(font.state, FontState.LOADED_USABLE)
        with _TextRecorder() as recorder:
            _build(_dataset(), _filters(), font)
        self.assertEqual(recorder.fonts, {font.name(), font.name(bold=True)})
        self.assertIn("Nguyễn Văn Đức", "\n".join(recorder.texts))

    async def test_font_without_locale_glyphs_falls_back(self) -> None:
        # the bundled Latin font has no Cyrillic glyphs
        with self.assertLogs("hr_reports.services.report_fonts", level="WARNING"):
            font = await self._resolve("ru")
        self.assertEqual(font.state, FontState.FALLBACK_ASCII)
        with _TextRecorder() as recorder:
            _build(_dataset(), _filters(locale="ru"), font)
        self.assertEqual(recorder.fonts, {"Helvetica", "Helvetica-Bold"})


if __name__ == "__main__":
    unittest.main()
