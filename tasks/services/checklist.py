"""
Driver checklist submitted with a completed delivery.

The mobile client sends one of four shapes; each is parsed into its own
class with its own rendering rule:

- free text                         -> TextChecklist
- list of strings                   -> PointsChecklist
- list of {point|title, comment}    -> AnnotatedChecklist
- mapping of label -> answer        -> FieldChecklist
"""
import json
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

PLAIN = 'plain'
COMMENT = 'comment'

# (text, style) pairs consumed by the POD renderer
RenderLine = Tuple[str, str]


@dataclass
class TextChecklist:
    text: str

    def render_lines(self) -> List[RenderLine]:
        return [(line, PLAIN) for line in self.text.splitlines() or [self.text]]


@dataclass
class PointsChecklist:
    points: List[str] = field(default_factory=list)

    def render_lines(self) -> List[RenderLine]:
        return [(f"{idx}. {point}", PLAIN) for idx, point in enumerate(self.points, start=1)]


@dataclass
class ChecklistItem:
    point: str
    comment: Optional[str] = None


@dataclass
class AnnotatedChecklist:
    items: List[ChecklistItem] = field(default_factory=list)

    def render_lines(self) -> List[RenderLine]:
        lines = []
        for idx, item in enumerate(self.items, start=1):
            lines.append((f"{idx}. {item.point}".strip(), PLAIN))
            if item.comment:
                lines.append((f"   comment: {item.comment}", COMMENT))
        return lines


@dataclass
class FieldChecklist:
    fields: List[Tuple[str, str]] = field(default_factory=list)

    def render_lines(self) -> List[RenderLine]:
        return [(f"{label}: {answer}", PLAIN) for label, answer in self.fields]


def _item_from_entry(entry: Any) -> ChecklistItem:
    if isinstance(entry, dict):
        point = entry.get('point') or entry.get('title') or ''
        comment = entry.get('comment')
        return ChecklistItem(point=str(point), comment=str(comment) if comment else None)
    return ChecklistItem(point=str(entry))


def parse_checklist(raw: Any):
    """
    Build the checklist variant for a request value. JSON strings are
    decoded first; anything that is not JSON is kept as free text.
    Returns None when nothing usable was sent.
    """
    if raw is None:
        return None

    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode('utf-8', errors='replace')

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            decoded = json.loads(text)
        except ValueError:
            return TextChecklist(text)
        if not isinstance(decoded, (list, dict)):
            return TextChecklist(text)
        raw = decoded

    if isinstance(raw, dict):
        return FieldChecklist([(str(k), "" if v is None else str(v)) for k, v in raw.items()])

    if isinstance(raw, (list, tuple)):
        if all(isinstance(entry, str) for entry in raw):
            return PointsChecklist(list(raw))
        return AnnotatedChecklist([_item_from_entry(entry) for entry in raw])

    return TextChecklist(str(raw))
