from typing import TextIO

from rich.color import ColorSystem
from rich.style import Style

from helmdiff.records import DiffRecord, LineTag

HEADER_STYLE = Style.parse("yellow")
LINE_STYLES = {
    LineTag.ADDED: Style.parse("green"),
    LineTag.REMOVED: Style.parse("red"),
    LineTag.ELISION: Style.parse("dim"),
}


class ReportWriter:
    """
    Writes #DiffRecord blocks to a text stream, optionally with ANSI colors. Lines are written verbatim, tabs and
    other whitespace in the resource content are preserved.
    """

    def __init__(self, output: TextIO, color: bool = False) -> None:
        self.output = output
        self.color = color

    def _line(self, text: str, style: Style | None = None) -> None:
        if self.color and style is not None:
            text = style.render(text, color_system=ColorSystem.STANDARD)
        self.output.write(text + "\n")

    def write(self, record: DiffRecord) -> None:
        self._line(record.header, HEADER_STYLE)
        for line in record.lines:
            self._line(line.render(), LINE_STYLES.get(line.tag))
        self._line("")
