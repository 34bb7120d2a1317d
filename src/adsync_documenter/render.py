"""HTML rendering of classified tables, section headers and the TOC.

The renderer accumulates two fragment streams: the report body and the table
of contents. Every section header it writes adds a TOC entry, so both
streams stay in document order.
"""

from dataclasses import dataclass, field
from enum import Enum

from .diffing import ChangeKind, DiffRow, DiffSet, DiffTable, Visibility
from .ids import bookmark_code
from .models import PLACEHOLDER_TEXT
from .print_plan import HeaderCell, PrintPlan, PrintPlanEntry
from .visibility import css_visibility_class, resolve


class TableSize(str, Enum):
    """Width class of a rendered table."""

    STANDARD = "Standard"
    LARGE = "Large"
    HUGE = "Huge"


def escape_html(text) -> str:
    """Escape HTML special characters."""
    if text is None:
        return ""
    return (
        str(text)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )


def bookmark_anchor(text: str, bookmark: str, section_guid: str | None, css_class: str) -> str:
    """``<a name=..>`` defining the anchor for ``bookmark``."""
    code = bookmark_code(bookmark, section_guid)
    return f'<a class="{css_class}" name="{code}">{escape_html(text)}</a>'


def jump_link(text: str, bookmark: str, section_guid: str | None, css_class: str) -> str:
    """``<a href=#..>`` pointing at the anchor for ``bookmark``."""
    code = bookmark_code(bookmark, section_guid)
    return f'<a class="{css_class}" href="#{code}">{escape_html(text)}</a>'


def _text(value) -> str:
    return "" if value is None else str(value)


@dataclass
class _Line:
    """One ``<tr>`` of a table body.

    Attributes:
        row: Outermost row starting on this line; sets the ``<tr>`` class
        pad_class: Class of the innermost row, used for "-" padding cells
        cells: Rendered cells by visible column position
        covered: Positions filled by a row-spanning cell of an earlier line
    """

    row: DiffRow
    pad_class: str
    cells: dict[int, str] = field(default_factory=dict)
    covered: set[int] = field(default_factory=set)


class TableRenderer:
    """Writes report HTML and TOC fragments.

    Attributes:
        anchor_class: CSS class of section anchors and TOC links; ``toc``,
            ``toc-Added`` for pilot-only or ``toc-Deleted`` for
            production-only objects
    """

    def __init__(self, anchor_class: str = "toc"):
        self.anchor_class = anchor_class
        self.html: list[str] = []
        self.toc: list[str] = []

    def fragments(self) -> tuple[str, str]:
        """Return the accumulated (html, toc) fragments."""
        return "".join(self.html), "".join(self.toc)

    def child(self, anchor_class: str | None = None) -> "TableRenderer":
        """New empty renderer for a nested section."""
        return TableRenderer(self.anchor_class if anchor_class is None else anchor_class)

    def extend(self, other: "TableRenderer") -> None:
        """Append another renderer's fragments to this one."""
        self.html.extend(other.html)
        self.toc.extend(other.toc)

    def write(self, html: str) -> None:
        self.html.append(html)

    def write_paragraph(self, content: str, css_class: str = "") -> None:
        """Write a ``<p>``; ``content`` is trusted markup."""
        self.html.append(f'\n<p class="{css_class}">\n{content}\n</p>')

    def write_toc_entry(
        self, text: str, level: int, bookmark: str, section_guid: str | None, css_class: str = ""
    ) -> None:
        link = jump_link(text, bookmark, section_guid, self.anchor_class)
        self.toc.append(
            f'<span class="toc{level} {css_class}">{link}</span><br class="{css_class}"/>\n'
        )

    def write_section_header(
        self,
        title: str,
        level: int,
        bookmark: str | None = None,
        section_guid: str | None = None,
        css_class: str = "",
    ) -> None:
        """Write ``<hN>`` with its bookmark anchor and the matching TOC entry.

        Args:
            title: Header text
            level: Header level (1-6)
            bookmark: Anchor text, defaults to the title
            section_guid: Identifier making the anchor unique
            css_class: Visibility class (``CanHide`` or empty)
        """
        bookmark = title if bookmark is None else bookmark
        self.write_toc_entry(title, level, bookmark, section_guid, css_class)
        anchor = bookmark_anchor(title, bookmark, section_guid, self.anchor_class)
        self.html.append(f'<h{level} class="{css_class}">{anchor}</h{level}>\n')

    def write_table(
        self,
        diffsets: DiffSet | list[DiffSet],
        plan: PrintPlan,
        header: list[HeaderCell] | None = None,
        size: TableSize = TableSize.STANDARD,
        css_class: str | None = None,
    ) -> None:
        """Write one ``<table>`` holding the rows of one or more diff sets.

        Raises:
            PrintPlanMismatchError: If the plan does not fit a diff set
        """
        if isinstance(diffsets, DiffSet):
            diffsets = [diffsets]
        for diffset in diffsets:
            plan.validate(diffset)
            if not diffset.resolved:
                resolve(diffset)
        if css_class is None:
            css_class = css_visibility_class(diffsets)

        self.html.append(f'<table class="{TableSize(size).value} {css_class}">')
        self.write_table_header(header if header is not None else default_header(diffsets, plan))
        for diffset in diffsets:
            self.write_rows(diffset, plan)
        self.html.append("</table>\n")

    def write_table_header(self, header: list[HeaderCell]) -> None:
        if not header:
            return
        cells = sorted(header, key=lambda h: (h.row_index, h.column_index))

        self.html.append("<colgroup>")
        for cell in cells:
            if cell.width:
                self.html.append(f'<col style="width:{cell.width}%;"/>')
        self.html.append("</colgroup>")

        self.html.append("<thead>")
        current_row = None
        for cell in cells:
            if cell.row_index != current_row:
                if current_row is not None:
                    self.html.append("</tr>\n")
                current_row = cell.row_index
                self.html.append("<tr>")
            self.html.append(
                f'<th class="column-th" rowspan="{cell.row_span}" colspan="{cell.col_span}">'
                f"{escape_html(cell.text)}</th>"
            )
        self.html.append("</tr>\n</thead>")

    def write_rows(self, diffset: DiffSet, plan: PrintPlan) -> None:
        """Write the body rows of a diff set.

        Root tables are written in table order. A row spans the lines of its
        child rows; children of several relations follow one another as
        sibling groups, and columns a line does not reach are padded with "-".
        """
        total = plan.visible_count()
        for table in diffset.root_tables():
            for row in table.rows:
                for line in self._row_lines(diffset, plan, table, row):
                    self._write_line(line, total)

    def _row_lines(
        self, diffset: DiffSet, plan: PrintPlan, table: DiffTable, row: DiffRow
    ) -> list[_Line]:
        lines: list[_Line] = []
        for relation in diffset.child_relations(table.name):
            child_table = diffset.tables[relation.child]
            for child in diffset.children(relation, row):
                lines.extend(self._row_lines(diffset, plan, child_table, child))
        if not lines:
            lines.append(_Line(row, pad_class=row.kind.value))

        table_index = diffset.table_index(table.name)
        first = lines[0]
        first.row = row
        position = plan.visible_before(table_index)
        for column in plan.visible_columns(table_index):
            entry = plan.entry(table_index, column)
            first.cells[position] = self._cell(table, row, column, len(lines), entry)
            for line in lines[1:]:
                line.covered.add(position)
            position += 1
        return lines

    def _write_line(self, line: _Line, total: int) -> None:
        row_class = line.row.kind.value
        if line.row.visibility is Visibility.CAN_HIDE:
            self.html.append(f'<tr class="{row_class} {Visibility.CAN_HIDE.value}">')
        else:
            self.html.append(f'<tr class="{row_class}">')
        for position in range(total):
            if position in line.cells:
                self.html.append(line.cells[position])
            elif position not in line.covered:
                self.html.append(f'<td class="{line.pad_class}" rowspan="1">-</td>')
        self.html.append("</tr>\n")

    def _cell(
        self,
        table: DiffTable,
        row: DiffRow,
        column: int,
        row_span: int,
        entry: PrintPlanEntry | None,
    ) -> str:
        cell_class = row.kind.value
        parts = [f'<td class="{cell_class}" rowspan="{row_span}">']

        if row.placeholder:
            parts.append(PLACEHOLDER_TEXT)
        elif column in table.key_indices:
            parts.append(self._cell_text(_text(row.values[column]), entry, row, cell_class))
        elif row.kind is ChangeKind.MODIFIED:
            old = _text(row.old_values[column])
            new = _text(row.values[column])
            if old != new:
                cell_class = ChangeKind.DELETED.value
                text = self._cell_text(old, entry, row, cell_class)
                parts.append(f'<span class="{cell_class}">{text}</span>')
            text = self._cell_text(new, entry, row, cell_class)
            parts.append(f'<span class="{ChangeKind.MODIFIED.value}">{text}</span>')
        elif row.kind is ChangeKind.DELETED:
            text = _text(row.old_values[column] if row.old_values else row.values[column])
            parts.append(self._cell_text(text, entry, row, ChangeKind.DELETED.value))
        else:
            parts.append(self._cell_text(_text(row.values[column]), entry, row, cell_class))

        parts.append("</td>")
        return "".join(parts)

    def _cell_text(
        self, text: str, entry: PrintPlanEntry | None, row: DiffRow, cell_class: str
    ) -> str:
        if entry is not None and entry.bookmark_index != -1:
            guid = _text(row.values[entry.bookmark_index])
            return bookmark_anchor(text, text, guid, cell_class)
        if entry is not None and entry.jump_to_bookmark_index != -1:
            guid = _text(row.values[entry.jump_to_bookmark_index])
            if guid:
                return jump_link(text, text, guid, cell_class)
        return escape_html(text)


def default_header(diffsets: list[DiffSet], plan: PrintPlan) -> list[HeaderCell]:
    """Single header row naming every visible column, equal widths."""
    if not diffsets or not diffsets[0].tables:
        return []
    diffset = diffsets[0]
    names = []
    for t, table in enumerate(diffset.tables.values()):
        names += [table.columns[c].name for c in plan.visible_columns(t)]
    width = 100 // len(names) if names else 0
    return [HeaderCell(0, i, name, width=width) for i, name in enumerate(names)]


def render(
    diffset: DiffSet,
    plan: PrintPlan,
    section_title: str,
    header: list[HeaderCell] | None = None,
    level: int = 3,
    section_guid: str | None = None,
    size: TableSize = TableSize.STANDARD,
) -> tuple[str, str]:
    """Render one diff set as a titled section.

    Args:
        diffset: Classified rows
        plan: Print plan matching the diff set
        section_title: Header text, also the TOC entry
        header: Table header cells; defaults to the visible column names
        level: Header level
        section_guid: Identifier making the section anchor unique
        size: Table width class

    Returns:
        (html fragment, toc fragment)

    Raises:
        PrintPlanMismatchError: If the plan does not fit the diff set
    """
    plan.validate(diffset)
    section = resolve(diffset)
    renderer = TableRenderer()
    renderer.write_section_header(
        section_title, level, section_guid=section_guid, css_class=section.css_class
    )
    renderer.write_table(diffset, plan, header, size, section.css_class)
    return renderer.fragments()
