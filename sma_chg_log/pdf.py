"""PDF report of charging sessions."""

from __future__ import annotations

import io
import math
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import BinaryIO, TextIO

from .models import TIME_MAX, TIME_ZERO, ChargingSession, Options

LINE_SPACING = 1.15
HEADER_HEIGHT = 16.0
ROW_HEIGHT = 16.0
BODY_FONT_SIZE = 10.0
COLUMN_WIDTHS = (25.0, 30.0, 45.0, 45.0, 45.0)
COLUMN_HEADERS = ("Record Date", "Consumption (kWh)", "Charger", "Authentication", "Started at\nEnded at")

_K = 72 / 25.4  # points per millimetre
_PAGE_WIDTH_PT = 595.28
_PAGE_HEIGHT_PT = 841.89
_MARGIN = 28.35 / _K

# Helvetica glyph widths for the printable ASCII range, regular and bold.
_REGULAR_WIDTHS = (
    "278 278 355 556 556 889 667 191 333 333 389 584 278 333 278 278 "
    "556 556 556 556 556 556 556 556 556 556 278 278 584 584 584 556 "
    "1015 667 667 722 722 667 611 778 722 278 500 667 556 833 722 778 "
    "667 778 722 667 611 722 667 944 667 667 611 278 278 278 469 556 "
    "333 556 556 500 556 556 278 556 556 222 222 500 222 833 556 556 "
    "556 556 333 500 278 556 500 722 500 500 500 334 260 334 584"
)
_BOLD_WIDTHS = (
    "278 333 474 556 556 889 722 238 333 333 389 584 278 333 278 278 "
    "556 556 556 556 556 556 556 556 556 556 333 333 584 584 584 611 "
    "975 722 722 722 722 667 611 778 722 278 556 722 611 833 722 778 "
    "667 778 722 667 611 722 667 944 667 667 611 333 278 333 584 556 "
    "333 556 611 556 611 556 333 611 611 278 278 556 278 889 611 611 "
    "611 611 389 556 333 611 556 778 556 556 500 389 280 389 584"
)


def _width_table(spec: str) -> dict[str, int]:
    return {chr(code): int(width) for code, width in zip(range(32, 127), spec.split())}


_FONTS = {
    "": ("F1", "Helvetica", _width_table(_REGULAR_WIDTHS)),
    "B": ("F2", "Helvetica-Bold", _width_table(_BOLD_WIDTHS)),
}


def _to_winansi(text: str) -> str:
    return text.encode("cp1252", errors="replace").decode("latin-1")


def _format_date(value: datetime) -> str:
    return value.strftime("%d.%m.") + f"{value.year:04d}"


def _format_datetime(value: datetime) -> str:
    return f"{_format_date(value)} {value:%H:%M:%S}"


class _Document:
    """A small A4 portrait PDF writer with core Helvetica fonts, measured in mm."""

    def __init__(self) -> None:
        self.width = _PAGE_WIDTH_PT / _K
        self.height = _PAGE_HEIGHT_PT / _K
        self.c_margin = _MARGIN / 10
        self.x = self.y = _MARGIN
        self.style = ""
        self.size_pt = 12.0
        self.footer: Callable[[], None] | None = None
        self.pages: list[list[str]] = []

    @property
    def font_size(self) -> float:
        return self.size_pt / _K

    def add_page(self) -> None:
        if self.pages and self.footer is not None:
            style, size = self.style, self.size_pt
            self.footer()
            self.style, self.size_pt = style, size
        self.pages.append(["0.57 w"])
        self.x = self.y = _MARGIN

    def set_font(self, style: str, size_pt: float) -> None:
        self.style, self.size_pt = style, size_pt

    def set_y(self, y: float) -> None:
        self.x = _MARGIN
        self.y = y if y >= 0 else self.height + y

    def set_xy(self, x: float, y: float) -> None:
        self.set_y(y)
        self.x = x

    def ln(self, h: float) -> None:
        self.x = _MARGIN
        self.y += h

    def _char_width(self, char: str) -> int:
        mapped = _to_winansi(char)
        return _FONTS[self.style][2].get(mapped, 278 if mapped < " " else 556)

    def string_width(self, text: str) -> float:
        return sum(map(self._char_width, text)) * self.font_size / 1000

    def rect(self, x: float, y: float, w: float, h: float) -> None:
        self.pages[-1].append(f"{x * _K:.2f} {(self.height - y) * _K:.2f} {w * _K:.2f} {-h * _K:.2f} re S")

    def cell(self, w: float, h: float, text: str = "", ln: int = 0, align: str = "") -> None:
        """Write one line of text; ln=0 moves right, ln=2 moves below."""
        if w == 0:
            w = self.width - _MARGIN - self.x
        if text:
            text_width = self.string_width(text)
            dx = {"R": w - self.c_margin - text_width, "C": (w - text_width) / 2}.get(align, self.c_margin)
            tx = (self.x + dx) * _K
            ty = (self.height - (self.y + 0.5 * h + 0.3 * self.font_size)) * _K
            escaped = _to_winansi(text).replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
            self.pages[-1].append(
                f"BT /{_FONTS[self.style][0]} {self.size_pt:.2f} Tf {tx:.2f} {ty:.2f} Td ({escaped}) Tj ET"
            )
        if ln:
            self.y += h
        else:
            self.x += w

    def _wrap(self, text: str, max_width: float) -> list[str]:
        lines = []
        for para in text.split("\n"):
            while True:
                width, sep, cut = 0, -1, None
                for i, char in enumerate(para):
                    if char == " ":
                        sep = i
                    width += self._char_width(char)
                    if width > max_width:
                        cut = i
                        break
                if cut is None:
                    lines.append(para)
                    break
                if sep == -1:
                    cut = max(cut, 1)
                    lines.append(para[:cut])
                    para = para[cut:]
                else:
                    lines.append(para[:sep])
                    para = para[sep + 1:]
        return lines

    def multi_cell(self, w: float, h: float, text: str, border: bool = False, align: str = "") -> None:
        text = text.replace("\r", "")
        if text.endswith("\n"):
            text = text[:-1]
        lines = self._wrap(text, (w - 2 * self.c_margin) * 1000 / self.font_size)
        if border:
            self.rect(self.x, self.y, w, h * len(lines))
        for line in lines:
            self.cell(w, h, line, 2, align)
        self.x = _MARGIN

    def output(self) -> bytes:
        if self.footer is not None:
            self.footer()
        count = len(self.pages)
        kids = " ".join(f"{4 + 2 * i} 0 R" for i in range(count))
        objects = [
            f"<< /Type /Pages /Kids [{kids}] /Count {count} "
            f"/MediaBox [0 0 {_PAGE_WIDTH_PT:.2f} {_PAGE_HEIGHT_PT:.2f}] >>".encode()
        ]
        for _, base_font, _ in _FONTS.values():
            objects.append(
                f"<< /Type /Font /Subtype /Type1 /BaseFont /{base_font} /Encoding /WinAnsiEncoding >>".encode()
            )
        for index, operations in enumerate(self.pages):
            objects.append(
                f"<< /Type /Page /Parent 1 0 R /Resources << /Font << "
                f"/F1 2 0 R /F2 3 0 R >> >> /Contents {5 + 2 * index} 0 R >>".encode()
            )
            content = "\n".join(operations).replace("{nb}", str(count)).encode("latin-1")
            objects.append(f"<< /Length {len(content)} >>\nstream\n".encode() + content + b"\nendstream")
        objects.append(b"<< /Type /Catalog /Pages 1 0 R >>")

        out = bytearray(b"%PDF-1.3\n%\xe2\xe3\xcf\xd3\n")
        offsets = []
        for number, body in enumerate(objects, start=1):
            offsets.append(len(out))
            out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"
        xref_start = len(out)
        out += f"xref\n0 {len(objects) + 1}\n0000000000 65535 f \n".encode()
        out += "".join(f"{offset:010d} 00000 n \n" for offset in offsets).encode()
        out += (
            f"trailer\n<< /Size {len(objects) + 1} /Root {len(objects)} 0 R >>\n"
            f"startxref\n{xref_start}\n%%EOF\n"
        ).encode()
        return bytes(out)


def _binary_target(stream: BinaryIO | TextIO) -> BinaryIO:
    if isinstance(stream, io.TextIOBase):
        buffer = getattr(stream, "buffer", None)
        if buffer is None:
            raise TypeError("PDF output needs a binary stream")
        stream.flush()
        return buffer
    return stream  # type: ignore[return-value]


class PdfFormatter:
    """Collects charging sessions and writes them as a PDF report on flush."""

    def __init__(self, stream: BinaryIO | TextIO, options: Options | None = None) -> None:
        self.stream = stream
        self.options = options if options is not None else Options()
        self.sessions: list[ChargingSession] = []
        self._target: BinaryIO | None = None

    def write_header(self) -> None:
        """Resolve the binary output stream; the report header itself is rendered on flush."""
        self._target = _binary_target(self.stream)

    def write_session(self, session: ChargingSession) -> None:
        self.sessions.append(session)

    def total_consumption(self) -> float:
        return sum(session.consumption for session in self.sessions)

    def flush(self) -> None:
        """Render the report and write it to the stream."""
        pdf = _Document()

        def footer() -> None:
            pdf.set_y(-15)
            pdf.set_font("", BODY_FONT_SIZE)
            pdf.cell(0, 10, f"Page {len(pdf.pages)} of {{nb}}", 0, "R")

        pdf.footer = footer
        pdf.add_page()
        pdf.set_font("B", 20)
        pdf.cell(0, 10 * LINE_SPACING, "CHARGING HISTORY OVERVIEW")
        pdf.ln(20)
        self._write_summary(pdf)
        self._write_table(pdf)

        target = self._target or _binary_target(self.stream)
        target.write(pdf.output())
        target.flush()

    def _write_summary(self, pdf: _Document) -> None:
        line_height = 6 * LINE_SPACING
        pdf.set_font("", BODY_FONT_SIZE)

        start = self.options.start or TIME_ZERO
        until = self.options.until or TIME_ZERO
        if start != TIME_ZERO and until != TIME_MAX:
            until -= timedelta(days=1)

        rows = [
            ("Created On:", _format_date(datetime.now()), line_height * 2),
            ("Overview Period:", f"{_format_date(start)} - {_format_date(until)}", line_height * 2),
            ("Total Charging Records:", str(len(self.sessions)), line_height),
            ("Total Consumption:", f"{self.total_consumption():.2f} kWh", line_height * 2),
        ]
        rows[0] = rows[0][:2] + (line_height,)
        for label, value, advance in rows:
            pdf.style = "B"
            pdf.cell(47, line_height, label)
            pdf.style = ""
            pdf.cell(0, line_height, value)
            pdf.ln(advance)

    @staticmethod
    def _write_table_header(pdf: _Document) -> None:
        pdf.style = "B"
        x, y = pdf.x, pdf.y
        for index, (header, width) in enumerate(zip(COLUMN_HEADERS, COLUMN_WIDTHS)):
            pdf.rect(x, y, width, HEADER_HEIGHT)
            lines = 2 if index in (1, 4) else 1
            line_height = HEADER_HEIGHT / (lines + 1)
            pdf.set_xy(x, y + (HEADER_HEIGHT - line_height * lines) / 2)
            if lines == 1:
                pdf.cell(width, line_height, header, 0, "C")
            else:
                pdf.multi_cell(width, line_height, header, False, "C")
            x += width
        pdf.set_y(y + HEADER_HEIGHT)
        pdf.style = ""

    def _write_table(self, pdf: _Document) -> None:
        pdf.set_font("", BODY_FONT_SIZE)
        pdf.c_margin = 2
        self._write_table_header(pdf)

        for session in self.sessions:
            if pdf.y + ROW_HEIGHT > 280:
                pdf.add_page()
                self._write_table_header(pdf)

            start = _format_datetime(session.start) if session.start is not None else ""
            texts = (
                (_format_date(session.end), "C"),
                (f"{session.consumption:.2f}", "R"),
                (session.charger_name, "L"),
                (session.authentication, "L"),
                (f"{start}\n{_format_datetime(session.end)}", "L"),
            )
            x, y = pdf.x, pdf.y
            offset = 0.0
            for width, (text, align) in zip(COLUMN_WIDTHS, texts):
                line_count = max(text.count("\n") + 1, math.ceil(pdf.string_width(text) / width))
                pdf.set_xy(x + offset, y)
                pdf.multi_cell(width, 12.0 / line_count, text, True, align)
                offset += width