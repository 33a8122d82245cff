import io
import fitz  # PyMuPDF
import structlog
from PIL import Image

logger = structlog.get_logger()

# Longest edge sent to the vision model; larger scans are downscaled
MAX_IMAGE_EDGE = 1600


class RasterizationError(Exception):
    pass


def rasterize_pdf_page(pdf_bytes: bytes, page_index: int = 0, zoom: float = 2.0) -> bytes:
    """
    Render one page of a PDF to PNG bytes. Only the first page is ever sent
    to the model; the rest of the document is not read.
    """
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as e:
        raise RasterizationError(f"Could not open PDF: {e}") from e

    try:
        if page_index >= len(doc):
            raise RasterizationError(f"PDF has {len(doc)} pages, page {page_index} requested")
        page = doc.load_page(page_index)
        pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom))
        png_bytes = pix.tobytes("png")
    except RasterizationError:
        raise
    except Exception as e:
        raise RasterizationError(f"Could not render page {page_index}: {e}") from e
    finally:
        doc.close()

    logger.info("pdf_page_rasterized", page=page_index, width=pix.width, height=pix.height)
    return png_bytes


def prepare_image(image_bytes: bytes) -> bytes:
    """
    Re-encode an image as JPEG for the vision model: drops EXIF metadata and
    downscales anything larger than MAX_IMAGE_EDGE.
    """
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except Exception as e:
        raise RasterizationError(f"Could not decode image: {e}") from e

    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    img.thumbnail((MAX_IMAGE_EDGE, MAX_IMAGE_EDGE))

    out_buffer = io.BytesIO()
    img.save(out_buffer, format="JPEG", quality=90)
    return out_buffer.getvalue()
