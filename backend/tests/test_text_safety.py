import unittest

from hr_reports.services.text_safety import (
    neutralize_formula,
    safe_filename_part,
    transliterate_ascii,
)


class TestNeutralizeFormula(unittest.TestCase):
    def test_formula_prefixes_are_guarded(self) -> None:
        for value in ("=SUM(A1:A2)", "+1", "-2", "@cmd"):
            guarded = neutralize_formula(value)
            self.assertFalse(guarded.startswith(("=", "+", "-", "@")))
            self.assertTrue(guarded.endswith(value))

    def test_plain_values_pass_through(self) -> None:
        self.assertEqual(neutralize_formula("Budget"), "Budget")
        self.assertEqual(neutralize_formula(-3), -3)
        self.assertIsNone(neutralize_formula(None))


class TestSafeFilenamePart(unittest.TestCase):
    def test_strips_path_characters(self) -> None:
        self.assertEqual(safe_filename_part(" Nguyễn / Văn A "), "Nguyễn_Văn_A")

    def test_formula_and_empty(self) -> None:
        self.assertEqual(safe_filename_part("=evil"), "'=evil")
        self.assertEqual(safe_filename_part("///"), "export")


class TestTransliterateAscii(unittest.TestCase):
    def test_vietnamese(self) -> None:
        self.assertEqual(transliterate_ascii("Nguyễn Văn Đức"), "Nguyen Van Duc")
        self.assertEqual(transliterate_ascii("Hoàn thành mục tiêu quý"), "Hoan thanh muc tieu quy")

    def test_european(self) -> None:
        self.assertEqual(transliterate_ascii("Straße Müller"), "Strasse Muller")
        self.assertEqual(transliterate_ascii("Œuvre cœur"), "OEuvre coeur")
        self.assertEqual(transliterate_ascii("Łódź Ørsted"), "Lodz Orsted")
        self.assertEqual(transliterate_ascii("Þór"), "Thor")

    def test_punctuation_and_unsupported_scripts(self) -> None:
        self.assertEqual(transliterate_ascii("“Quoted” – done…"), '"Quoted" - done...')
        self.assertEqual(transliterate_ascii("日本 report"), "report")

    def test_output_is_printable_ascii(self) -> None:
        text = transliterate_ascii("Ünïcödé\tñ Ж ★ ok")
        self.assertTrue(all(32 <= ord(ch) < 127 for ch in text))
        self.assertEqual(transliterate_ascii(None), "")


if __name__ == "__main__":
    unittest.main()
