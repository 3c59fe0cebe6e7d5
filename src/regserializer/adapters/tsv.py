"""Tab-separated input: a header row of field names, then one record per row.

Quoting is lenient. A cell that starts with `"` is quoted: the cell ends at
the first `"` followed by a tab or the end of the line, `""` inside it reads
as one `"`, and any other `"` is kept as a literal character. A quoted cell
may span lines. Quotes in an unquoted cell are always literal.
"""

from typing import Iterator, List, Optional, TextIO, Tuple

from regserializer.errors import TsvFormatError
from regserializer.kernel.canonical import RawRecord

DELIMITER = "\t"
QUOTE = '"'


class _Lines:
    """Line source that normalizes CRLF and counts lines read."""

    def __init__(self, stream: TextIO):
        self._lines = iter(stream)
        self.line_num = 0

    def next(self) -> Optional[str]:
        line = next(self._lines, None)
        if line is None:
            return None
        self.line_num += 1
        if line.endswith("\r\n"):
            line = line[:-2] + "\n"
        return line


def _is_line_end(rest: str) -> bool:
    return rest == "" or rest == "\n"


def _quoted_cell(line: str, lines: _Lines) -> Tuple[str, Optional[str]]:
    # `line` starts just after the opening quote. Returns the cell and the
    # rest of the row after its tab, or None when the row ends with this cell.
    parts = []
    while True:
        i = line.find(QUOTE)
        if i >= 0:
            parts.append(line[:i])
            line = line[i + 1:]
            if line.startswith(QUOTE):
                parts.append(QUOTE)
                line = line[1:]
            elif line.startswith(DELIMITER):
                return "".join(parts), line[1:]
            elif _is_line_end(line):
                return "".join(parts), None
            else:
                parts.append(QUOTE)
        elif line:
            parts.append(line)
            line = lines.next()
            if line is None:
                return "".join(parts), None
        else:
            return "".join(parts), None


def _split_row(line: str, lines: _Lines) -> List[str]:
    cells = []
    rest: Optional[str] = line
    while rest is not None:
        if rest.startswith(QUOTE):
            cell, rest = _quoted_cell(rest[1:], lines)
            cells.append(cell)
            continue
        end = rest.find(DELIMITER)
        if end < 0:
            cells.append(rest[:-1] if rest.endswith("\n") else rest)
            rest = None
        else:
            cells.append(rest[:end])
            rest = rest[end + 1:]
    return cells


def iter_rows(stream: TextIO) -> Iterator[Tuple[int, List[str]]]:
    """Yield `(line_number, cells)` per row, skipping blank lines.

    The line number is where the row starts, counted from 1.
    """
    lines = _Lines(stream)
    while True:
        line = lines.next()
        if line is None:
            return
        if _is_line_end(line):
            continue
        start = lines.line_num
        yield start, _split_row(line, lines)


def split_tsv(stream: TextIO) -> Tuple[Tuple[str, ...], Iterator[RawRecord]]:
    """Read the header row now and return it with a lazy record iterator.

    Raises:
        TsvFormatError: if the header is missing or names a field twice; the
            record iterator raises it for a row whose cell count differs
    """
    rows = iter_rows(stream)
    first = next(rows, None)
    if first is None:
        raise TsvFormatError("missing header row", line=1)
    line_num, names = first
    if len(set(names)) != len(names):
        raise TsvFormatError(f"duplicate field names in header: {names}", line=line_num)
    return tuple(names), _records(names, rows)


def _records(names: List[str], rows: Iterator[Tuple[int, List[str]]]) -> Iterator[RawRecord]:
    for line_num, cells in rows:
        if len(cells) != len(names):
            raise TsvFormatError(f"expected {len(names)} cells, found {len(cells)}", line=line_num)
        yield RawRecord.from_row(names, cells)


def read_tsv(stream: TextIO) -> Iterator[RawRecord]:
    """Yield one RawRecord per data row, in file order.

    Raises:
        TsvFormatError: if the header is missing or a row's cell count differs from it
    """
    _, records = split_tsv(stream)
    yield from records
