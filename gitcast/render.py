"""Turn composed lines into styled rich text."""

from collections.abc import Mapping

from rich.text import Text

from gitcast.models import ComposedView, Highlight, ViewModel
from gitcast.sections import ANNOTATION_STYLE, HEADER_STYLE


def _apply(text: Text, highlight: Highlight | None, styles: dict[str, str]) -> None:
    if not highlight:
        return
    if isinstance(highlight, str):
        text.stylize(styles.get(highlight, ""), 0, len(text))
        return
    for item in highlight:
        style = styles.get(item.style)
        if style:
            text.stylize(style, item.start, item.end)


def styled(
    content: str,
    highlight: Highlight | None,
    styles: dict[str, str],
    annotation: str | None = None,
    annotation_style: str = ANNOTATION_STYLE,
) -> Text:
    text = Text(content)
    _apply(text, highlight, styles)
    if annotation:
        text.append(f"  {annotation}", style=styles.get(annotation_style, "dim"))
    return text


def line_text(
    view: ComposedView,
    line: int,
    styles: dict[str, str],
    annotation_styles: Mapping[str, str] | None = None,
) -> Text:
    """Styled text for one dashboard line (1-based)."""
    content = view.lines[line - 1]
    info = view.line_info(line)
    if info is None or info.is_spacing:
        return Text(content)
    if info.is_header:
        return styled(content, HEADER_STYLE, styles)
    slot = view.sections[info.section]
    local = info.local_line or 0
    annotation_style = (annotation_styles or {}).get(info.section, ANNOTATION_STYLE)
    return styled(
        content,
        slot.view.highlights.get(local),
        styles,
        slot.view.annotations.get(local),
        annotation_style,
    )


def view_text(view: ViewModel, line: int, styles: dict[str, str]) -> Text:
    """Styled text for a line of a detail view (1-based)."""
    return styled(
        view.lines[line - 1], view.highlights.get(line), styles, view.annotations.get(line)
    )


def plain_lines(view: ComposedView) -> list[str]:
    """Dashboard lines with annotations appended, for non-interactive output."""
    out: list[str] = []
    for number, content in enumerate(view.lines, start=1):
        info = view.line_info(number)
        annotation = None
        if info is not None and info.local_line is not None:
            annotation = view.sections[info.section].view.annotations.get(info.local_line)
        out.append(f"{content}  {annotation}" if annotation else content)
    return out
