import io
import unittest

from PIL import Image

from creditassist.services.rasterizer import MAX_IMAGE_EDGE, RasterizationError, prepare_image, rasterize_pdf_page
from creditassist.services.report_formatter import render_report


class TestRasterizer(unittest.TestCase):

    def test_first_pdf_page_to_png(self):
        pdf = render_report("Jordan Smith", "10-18-2026", "# Current Status\nCredit Score: 700 (Good)")
        png = rasterize_pdf_page(pdf)
        self.assertTrue(png.startswith(b"\x89PNG"))

    def test_missing_page(self):
        pdf = render_report("Jordan Smith", "10-18-2026", None)
        with self.assertRaises(RasterizationError):
            rasterize_pdf_page(pdf, page_index=3)

    def test_corrupt_pdf(self):
        with self.assertRaises(RasterizationError):
            rasterize_pdf_page(b"%PDF-1.4 truncated")

    def test_prepare_image_downscales_and_converts(self):
        buffer = io.BytesIO()
        Image.new("RGBA", (MAX_IMAGE_EDGE * 2, 400), color=(10, 20, 30, 255)).save(buffer, format="PNG")

        prepared = Image.open(io.BytesIO(prepare_image(buffer.getvalue())))
        self.assertEqual(prepared.format, "JPEG")
        self.assertLessEqual(max(prepared.size), MAX_IMAGE_EDGE)

    def test_prepare_image_rejects_garbage(self):
        with self.assertRaises(RasterizationError):
            prepare_image(b"not an image")


if __name__ == "__main__":
    unittest.main()
