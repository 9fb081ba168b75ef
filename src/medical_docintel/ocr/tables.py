# ============================================================================
# src/medical_docintel/ocr/tables.py
# ============================================================================
"""
Table linearization helpers.

Pure functions, no I/O:
- cells_to_grid: sparse row/column-indexed cells -> padded 2D grid
- grid_to_markdown: grid -> markdown table (first row is the header)
- table_to_markdown: OcrTable -> markdown
- parse_markdown_tables: markdown text -> OcrTables (Mistral OCR output)
"""

import re
from typing import List, Optional, Sequence

from .types import OcrTable, OcrTableCell

# Header row, separator row, then one or more body rows
_MARKDOWN_TABLE_RE = re.compile(
    r"^\|[^\n]*\|[ \t]*\n"
    r"\|[-:| \t]+\|[ \t]*\n"
    r"(?:\|[^\n]*\|[ \t]*(?:\n|$))+",
    re.MULTILINE,
)
_SEPARATOR_ROW_RE = re.compile(r"^\|[-:\s|]+\|$")


def cells_to_grid(
    cells: Sequence[OcrTableCell],
    row_count: Optional[int] = None,
    column_count: Optional[int] = None,
) -> List[List[str]]:
    """
    Place cells into a rectangular grid.

    The grid is large enough for both the declared dimensions and the
    highest indices actually present. Positions with no cell are "".
    When two cells claim the same position the later one wins.
    """
    n_rows = max([row_count or 0] + [c.row_index + 1 for c in cells])
    n_cols = max([column_count or 0] + [c.column_index + 1 for c in cells])

    grid = [["" for _ in range(n_cols)] for _ in range(n_rows)]
    for cell in cells:
        grid[cell.row_index][cell.column_index] = cell.text
    return grid


def grid_to_markdown(grid: Sequence[Sequence[str]]) -> str:
    """Render a grid as markdown, with a --- separator after the first row."""
    lines: List[str] = []
    for i, row in enumerate(grid):
        lines.append("| " + " | ".join(row) + " |")
        if i == 0:
            lines.append("| " + " | ".join("---" for _ in row) + " |")
    return "\n".join(lines)


def table_to_markdown(table: OcrTable) -> str:
    return grid_to_markdown(cells_to_grid(table.cells, table.row_count, table.column_count))


def _split_row(row: str) -> List[str]:
    return [c.strip() for c in row.strip().split("|")[1:-1]]


def parse_markdown_tables(
    markdown: str,
    page_number: int,
    confidence: float,
    id_prefix: str = "table",
) -> List[OcrTable]:
    """
    Find markdown tables in text and convert them to OcrTables.

    Separator rows are dropped; the first remaining row is the header.
    """
    tables: List[OcrTable] = []

    for table_idx, match in enumerate(_MARKDOWN_TABLE_RE.finditer(markdown)):
        rows = [
            row.strip() for row in match.group(0).strip().split("\n")
            if row.strip() and not _SEPARATOR_ROW_RE.match(row.strip())
        ]

        cells: List[OcrTableCell] = []
        max_cols = 0
        for row_idx, row in enumerate(rows):
            texts = _split_row(row)
            max_cols = max(max_cols, len(texts))
            for col_idx, text in enumerate(texts):
                cells.append(OcrTableCell(
                    row_index=row_idx,
                    column_index=col_idx,
                    text=text,
                    is_header=row_idx == 0,
                    confidence=confidence,
                ))

        tables.append(OcrTable(
            id=f"{id_prefix}-{page_number}-{table_idx}",
            page_number=page_number,
            row_count=len(rows),
            column_count=max_cols,
            cells=tuple(cells),
            confidence=confidence,
        ))

    return tables
