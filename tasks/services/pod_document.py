import io
import logging
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from tasks.services.checklist import COMMENT

logger = logging.getLogger(__name__)

MARGIN = 40
FONT = 'Helvetica'
HEADING_FONT = 'Helvetica-Bold'


class PodDocumentRenderer:
    """
    Renders the proof-of-delivery PDF: POD image, invoice image and the
    driver's checklist, one page each.
    """

    def __init__(self, page_size=A4, margin: int = MARGIN):
        self.page_size = page_size
        self.margin = margin

    def render(self, pod_image: Optional[bytes], invoice_image: Optional[bytes], checklist=None) -> bytes:
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=self.page_size)

        self._image_page(pdf, pod_image, "POD")
        pdf.showPage()
        self._image_page(pdf, invoice_image, "Invoice")
        pdf.showPage()
        self._checklist_page(pdf, checklist)
        pdf.showPage()

        pdf.save()
        return buffer.getvalue()

    def _image_page(self, pdf, image_bytes: Optional[bytes], label: str):
        width, height = self.page_size
        if not image_bytes:
            self._notice(pdf, f"No {label} image provided", size=12)
            return

        try:
            reader = ImageReader(io.BytesIO(image_bytes))
            image_width, image_height = reader.getSize()
            box_width = width - 2 * self.margin
            box_height = height - 2 * self.margin
            scale = min(box_width / image_width, box_height / image_height, 1.0)
            draw_width, draw_height = image_width * scale, image_height * scale
            x = (width - draw_width) / 2
            y = height - self.margin - draw_height
            pdf.drawImage(reader, x, y, width=draw_width, height=draw_height)
        except Exception as e:
            # PIL raises several unrelated types for corrupt or unsupported images
            logger.warning(f"{label} image could not be embedded: {e}")
            self._notice(pdf, f"{label} image could not be embedded", size=10)

    def _notice(self, pdf, text: str, size: int):
        _, height = self.page_size
        pdf.setFont(FONT, size)
        pdf.drawString(self.margin, height - self.margin - size, text)

    def _checklist_page(self, pdf, checklist):
        width, height = self.page_size
        max_width = width - 2 * self.margin
        y = height - self.margin - 12

        pdf.setFont(HEADING_FONT, 12)
        pdf.drawString(self.margin, y, "Checklist / Comments:")
        y -= 24

        lines = checklist.render_lines() if checklist is not None else [("No checklist provided", None)]
        for text, style in lines:
            size = 10 if style == COMMENT else 11
            pdf.setFont(FONT, size)
            pdf.setFillColor(colors.gray if style == COMMENT else colors.black)
            for wrapped in simpleSplit(text, FONT, size, max_width) or [""]:
                if y < self.margin:
                    pdf.showPage()
                    pdf.setFont(FONT, size)
                    pdf.setFillColor(colors.gray if style == COMMENT else colors.black)
                    y = height - self.margin - size
                pdf.drawString(self.margin, y, wrapped)
                y -= size + 4
            if style == COMMENT:
                y -= 4
        pdf.setFillColor(colors.black)
