from __future__ import annotations

from typing import Any
import unicodedata

PAGE_WIDTH = 595
PAGE_HEIGHT = 842
TOP_Y = 800
BOTTOM_MARGIN = 40
LEFT_X = 50


def _ascii_text(value: Any) -> str:
    text = str(value if value is not None else "")
    normalized = unicodedata.normalize("NFKD", text)
    return normalized.encode("ascii", "ignore").decode("ascii")


def _escape_pdf_text(value: str) -> str:
    return value.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


class PdfLine:
    __slots__ = ("text", "size", "indent", "gap_after")

    def __init__(self, text: str, *, size: int = 10, indent: int = 0, gap_after: int = 0):
        self.text = text
        self.size = size
        self.indent = indent
        self.gap_after = gap_after

    @property
    def height(self) -> int:
        return self.size + 4


def paginate(lines: list[PdfLine]) -> list[list[tuple[PdfLine, int]]]:
    """Assign each line a y position, opening a new page when the running
    offset would cross the bottom margin."""
    pages: list[list[tuple[PdfLine, int]]] = [[]]
    y = TOP_Y
    for line in lines:
        if y - line.height < BOTTOM_MARGIN and pages[-1]:
            pages.append([])
            y = TOP_Y
        pages[-1].append((line, y))
        y -= line.height + line.gap_after
    return pages


def _build_content_stream(placed: list[tuple[PdfLine, int]]) -> bytes:
    parts = ["BT"]
    for line, y in placed:
        safe = _escape_pdf_text(_ascii_text(line.text))
        parts.append(f"/F1 {line.size} Tf")
        parts.append(f"1 0 0 1 {LEFT_X + line.indent} {y} Tm")
        parts.append(f"({safe}) Tj")
    parts.append("ET")
    return "\n".join(parts).encode("latin-1", errors="ignore")


def build_pdf_bytes(lines: list[PdfLine]) -> bytes:
    pages = paginate(lines or [PdfLine("FLEX-FORM Data Export")])
    page_count = len(pages)
    # 1 catalog, 2 pages, 3 font, then (page, content) pairs
    page_ids = [4 + 2 * i for i in range(page_count)]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)

    objects: list[bytes] = [
        b"1 0 obj << /Type /Catalog /Pages 2 0 R >> endobj\n",
        f"2 0 obj << /Type /Pages /Kids [{kids}] /Count {page_count} >> endobj\n".encode("latin-1"),
        b"3 0 obj << /Type /Font /Subtype /Type1 /BaseFont /Helvetica >> endobj\n",
    ]
    for pid, placed in zip(page_ids, pages):
        stream = _build_content_stream(placed)
        objects.append(
            f"{pid} 0 obj << /Type /Page /Parent 2 0 R /MediaBox [0 0 {PAGE_WIDTH} {PAGE_HEIGHT}] "
            f"/Resources << /Font << /F1 3 0 R >> >> /Contents {pid + 1} 0 R >> endobj\n".encode("latin-1")
        )
        objects.append(
            f"{pid + 1} 0 obj << /Length {len(stream)} >> stream\n".encode("latin-1") + stream + b"\nendstream endobj\n"
        )

    body = b"%PDF-1.4\n"
    offsets = [0]
    for obj in objects:
        offsets.append(len(body))
        body += obj
    xref_offset = len(body)
    body += f"xref\n0 {len(objects)+1}\n".encode("latin-1")
    body += b"0000000000 65535 f \n"
    for offset in offsets[1:]:
        body += f"{offset:010d} 00000 n \n".encode("latin-1")
    body += f"trailer << /Size {len(objects)+1} /Root 1 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode("latin-1")
    return body
