"""Render an attributed diff, with rich styles when writing to a terminal."""

from rich.console import Console
from rich.text import Text

from common.logger import console as default_console

from .hunks import AnnotatedLine, LineType, annotate_diff
from .models import Attribution, DiffLineKey

LINE_STYLES = {
    LineType.DIFF_HEADER: "bold",
    LineType.HUNK_HEADER: "cyan",
    LineType.ADDITION: "green",
    LineType.DELETION: "red",
}
ANNOTATION_STYLE = "dim"


def annotation_for(line: AnnotatedLine, attributions: dict[DiffLineKey, Attribution]) -> str:
    """Annotation text for a changed line, or "" when it has none."""
    if line.key is None:
        return ""
    attribution = attributions.get(line.key)
    return attribution.format() if attribution is not None else ""


def format_plain_lines(diff_text: str, attributions: dict[DiffLineKey, Attribution]) -> list[str]:
    """Diff lines with annotations appended two spaces after changed lines."""
    lines = []
    for line in annotate_diff(diff_text):
        annotation = annotation_for(line, attributions)
        lines.append(f"{line.text}  {annotation}" if annotation else line.text)
    return lines


def styled_line(line: AnnotatedLine, annotation: str) -> Text:
    text = Text(line.text, style=LINE_STYLES.get(line.line_type, ""))
    if annotation:
        text.append("  ")
        text.append(annotation, style=ANNOTATION_STYLE)
    return text


def print_annotated_diff(
    diff_text: str,
    attributions: dict[DiffLineKey, Attribution],
    console: Console | None = None,
) -> None:
    """Print the diff; styles are applied only if the console is a terminal."""
    console = console or default_console

    if not console.is_terminal:
        for line in format_plain_lines(diff_text, attributions):
            console.out(line, highlight=False)
        return

    for line in annotate_diff(diff_text):
        console.print(styled_line(line, annotation_for(line, attributions)), highlight=False, soft_wrap=True)
