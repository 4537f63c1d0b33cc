"""
Layout Reconstructor - rows, tables and the image-based page heuristic.

Turns the unordered fragments of one page into a ParsedPage:

1. Reading order: fragments within same_line_tolerance of each other
   vertically are ordered left to right, otherwise top to bottom.
2. Rows: consecutive fragments are grouped while the row's total vertical
   span stays within row_tolerance. Each row is ordered by x.
3. Table-like rows: two or more fragments whose inter-fragment gaps have
   a population variance below gap_variance_threshold (aligned columns).
4. Table regions: runs of at least min_table_rows consecutive table-like
   rows. The first row becomes the headers, the rest the data rows.
5. Image-based pages: too few characters overall, or many fragments with
   very few characters each (garbled text layer).

All thresholds come from LayoutConfig; they are empirical.
"""

from __future__ import annotations

import functools
import logging
from typing import Optional, Sequence

from .models import (
    BoundingBox,
    LayoutConfig,
    ParsedPage,
    ParsedTable,
    PositionedFragment,
)

logger = logging.getLogger(__name__)

Row = list[PositionedFragment]


class LayoutReconstructor:
    """
    Rebuilds page text and tables from positioned fragments.

    Usage:
        layout = LayoutReconstructor()
        page = layout.reconstruct(fragments, page_number=1)
        print(page.text, len(page.tables))
    """

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()

    def reconstruct(
        self,
        fragments: Sequence[PositionedFragment],
        page_number: int,
        preserve_formatting: bool = True,
        extract_tables: bool = True,
    ) -> ParsedPage:
        ordered = self.sort_reading_order(fragments)
        separator = " " if preserve_formatting else "\n"
        text = separator.join(f.text for f in ordered)

        tables: list[ParsedTable] = []
        if extract_tables and ordered:
            tables = self.detect_tables(ordered, page_number)

        return ParsedPage(
            page_number=page_number,
            text=text,
            structured_text=ordered,
            tables=tables,
            is_image_based=self.is_image_based(ordered),
        )

    # -------------------------------------------------------------------------
    # Ordering and rows
    # -------------------------------------------------------------------------

    def sort_reading_order(
        self,
        fragments: Sequence[PositionedFragment],
    ) -> list[PositionedFragment]:
        tolerance = self.config.same_line_tolerance

        def compare(a: PositionedFragment, b: PositionedFragment) -> int:
            if abs(a.y - b.y) < tolerance:
                return _sign(a.x - b.x)
            return _sign(a.y - b.y)

        return sorted(fragments, key=functools.cmp_to_key(compare))

    def group_rows(self, ordered: Sequence[PositionedFragment]) -> list[Row]:
        """
        Group reading-ordered fragments into rows.

        A fragment joins the current row only if the row's y-span including
        it stays within row_tolerance, so every pair in a row is within
        tolerance of each other.
        """
        tolerance = self.config.row_tolerance
        rows: list[Row] = []
        current: Row = []
        top = bottom = 0.0

        for fragment in ordered:
            if current and max(bottom, fragment.y) - min(top, fragment.y) <= tolerance:
                current.append(fragment)
                top = min(top, fragment.y)
                bottom = max(bottom, fragment.y)
                continue
            if current:
                rows.append(sorted(current, key=lambda f: f.x))
            current = [fragment]
            top = bottom = fragment.y

        if current:
            rows.append(sorted(current, key=lambda f: f.x))
        return rows

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def is_table_row(self, row: Row) -> bool:
        if len(row) < 2:
            return False
        gaps = [row[i].x - row[i - 1].right for i in range(1, len(row))]
        mean = sum(gaps) / len(gaps)
        variance = sum((gap - mean) ** 2 for gap in gaps) / len(gaps)
        return variance < self.config.gap_variance_threshold

    def find_table_regions(self, rows: Sequence[Row]) -> list[list[Row]]:
        regions: list[list[Row]] = []
        current: list[Row] = []

        for row in rows:
            if self.is_table_row(row):
                current.append(row)
                continue
            if len(current) >= self.config.min_table_rows:
                regions.append(current)
            current = []

        if len(current) >= self.config.min_table_rows:
            regions.append(current)
        return regions

    def build_table(self, region: list[Row], page_number: int) -> Optional[ParsedTable]:
        members = [f for row in region for f in row]
        min_x = min(f.x for f in members)
        max_x = max(f.right for f in members)
        min_y = min(f.y for f in members)
        max_y = max(f.bottom for f in members)

        cells = [[f.text.strip() for f in row if f.text.strip()] for row in region]
        headers = cells[0] or None
        data_rows = [row for row in cells[1:] if row]

        if len(data_rows) < self.config.min_data_rows:
            logger.debug(
                f"Page {page_number}: discarded table region with "
                f"{len(data_rows)} data row(s)"
            )
            return None

        return ParsedTable(
            page=page_number,
            headers=headers,
            rows=data_rows,
            bounding_box=BoundingBox(
                x=min_x,
                y=min_y,
                width=max_x - min_x,
                height=max_y - min_y,
            ),
        )

    def detect_tables(
        self,
        ordered: Sequence[PositionedFragment],
        page_number: int,
    ) -> list[ParsedTable]:
        rows = self.group_rows(ordered)
        tables = []
        for region in self.find_table_regions(rows):
            table = self.build_table(region, page_number)
            if table is not None:
                tables.append(table)
        if tables:
            logger.debug(f"Page {page_number}: {len(tables)} table(s) detected")
        return tables

    # -------------------------------------------------------------------------
    # Image-based pages
    # -------------------------------------------------------------------------

    def is_image_based(self, fragments: Sequence[PositionedFragment]) -> bool:
        total_chars = sum(len(f.text) for f in fragments)
        if total_chars < self.config.image_min_chars:
            return True
        count = len(fragments)
        average = total_chars / count if count else 0.0
        return (
            count > self.config.image_min_fragments
            and average < self.config.image_min_avg_chars
        )


def _sign(value: float) -> int:
    if value < 0:
        return -1
    if value > 0:
        return 1
    return 0
