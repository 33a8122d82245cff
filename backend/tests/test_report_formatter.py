import unittest

import fitz  # PyMuPDF
from reportlab.pdfbase.pdfmetrics import stringWidth

from creditassist.services.report_formatter import (
    BODY_FONT,
    BODY_SIZE,
    BODY_START_Y,
    BULLET_INDENT,
    CONTENT_WIDTH,
    CONTINUATION_TOP_Y,
    FOOTER_RESERVE,
    VALUE_WIDTH,
    LineKind,
    classify_line,
    plan_report,
    render_report,
    report_filename,
)

SAMPLE_ANALYSIS = """# Current Status
Credit Score: 580 (Poor)
Overall Risk Level: high
Your profile shows a pattern of late payments that is recoverable within a year.

**Top Priority Issues** (Address First)
1. Collection account from Midland Credit - Impact: about 60 points
2. High utilization on two cards - Impact: about 35 points
- Dispute the duplicate Capital One tradeline"""


class TestLineClassification(unittest.TestCase):

    def test_headings(self):
        self.assertEqual(classify_line("# Current Status").kind, LineKind.HEADING)
        self.assertEqual(classify_line("## Payment History").text, "Payment History")
        line = classify_line("**Top Priority Issues** (Address First)")
        self.assertEqual(line.kind, LineKind.HEADING)
        self.assertEqual(line.text, "Top Priority Issues (Address First)")

    def test_bullets(self):
        for raw in ("- Pay down the Visa balance", "• Pay down the Visa balance", "2. Pay down the Visa balance"):
            line = classify_line(raw)
            self.assertEqual(line.kind, LineKind.BULLET, raw)
            self.assertEqual(line.text, "Pay down the Visa balance")

    def test_label_value(self):
        line = classify_line("**Credit Score:** 580 (Poor)")
        self.assertEqual(line.kind, LineKind.LABEL_VALUE)
        self.assertEqual(line.label, "Credit Score")
        self.assertEqual(line.value, "580 (Poor)")

    def test_multiple_colons_is_paragraph(self):
        self.assertEqual(classify_line("Call us at 10:30 or 11:45 today").kind, LineKind.PARAGRAPH)

    def test_noise(self):
        for raw in ("---", "**CREDIT ANALYSIS SUMMARY**", "Great news!", "========"):
            self.assertEqual(classify_line(raw).kind, LineKind.NOISE, raw)

    def test_blank(self):
        self.assertEqual(classify_line("   ").kind, LineKind.BLANK)


class TestReportPlan(unittest.TestCase):

    def test_four_styles_present(self):
        kinds = set(plan_report(SAMPLE_ANALYSIS).kinds())
        self.assertTrue({LineKind.HEADING, LineKind.BULLET, LineKind.LABEL_VALUE, LineKind.PARAGRAPH} <= kinds)

    def test_plan_is_deterministic(self):
        self.assertEqual(plan_report(SAMPLE_ANALYSIS), plan_report(SAMPLE_ANALYSIS))

    def test_long_lines_wrap_within_columns(self):
        text = "\n".join([
            "x" * 4000,
            "- " + "word " * 500,
            "Key Concern: " + "y" * 2000,
        ])
        plan = plan_report(text)
        widths = {
            LineKind.PARAGRAPH: CONTENT_WIDTH,
            LineKind.BULLET: CONTENT_WIDTH - BULLET_INDENT,
            LineKind.LABEL_VALUE: VALUE_WIDTH,
        }
        for page in plan.pages:
            for placement in page:
                for line in placement.lines:
                    self.assertLessEqual(stringWidth(line, BODY_FONT, BODY_SIZE), widths[placement.kind])

    def test_pagination_keeps_footer_band_clear(self):
        text = "\n".join(
            f"# Section {i}\nBalance: ${i * 100}\n- Item {i}\nParagraph text for section {i}."
            for i in range(60)
        )
        plan = plan_report(text)
        self.assertGreater(plan.page_count, 1)
        for index, page in enumerate(plan.pages):
            self.assertTrue(page, f"page {index + 1} is empty")
            top_limit = BODY_START_Y if index == 0 else CONTINUATION_TOP_Y
            for placement in page:
                self.assertLessEqual(placement.top, top_limit)
                self.assertGreaterEqual(placement.bottom, FOOTER_RESERVE)

    def test_single_huge_paragraph_splits_across_pages(self):
        plan = plan_report(" ".join(["lorem ipsum dolor"] * 3000))
        self.assertGreater(plan.page_count, 1)
        self.assertEqual(set(plan.kinds()), {LineKind.PARAGRAPH})

    def test_empty_analysis_has_one_empty_page(self):
        plan = plan_report(None)
        self.assertEqual(plan.page_count, 1)
        self.assertEqual(plan.kinds(), [])


class TestRenderReport(unittest.TestCase):

    def test_renders_pdf_with_planned_page_count(self):
        text = SAMPLE_ANALYSIS + "\n" + "\n".join(f"- Follow-up item {i}" for i in range(120))
        pdf_bytes = render_report("Jordan Smith", "10-18-2026", text)
        self.assertTrue(pdf_bytes.startswith(b"%PDF"))

        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        try:
            self.assertEqual(len(doc), plan_report(text).page_count)
            first_page = doc.load_page(0).get_text()
            self.assertIn("TN CREDIT SOLUTIONS", first_page)
            self.assertIn("Jordan Smith", first_page)
            self.assertIn("Page 1 of", first_page)
        finally:
            doc.close()

    def test_renders_without_analysis(self):
        self.assertTrue(render_report("Jordan Smith", "10-18-2026", None).startswith(b"%PDF"))

    def test_report_filename(self):
        self.assertEqual(report_filename("10-18-2026"), "TN-Credit-Analysis-10-18-2026.pdf")
        self.assertEqual(report_filename(None), "TN-Credit-Analysis.pdf")


if __name__ == "__main__":
    unittest.main()
