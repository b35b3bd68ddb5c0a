"""Read-only queries over a ``ParsedMessage`` and its MIME tree arena."""

from __future__ import annotations

from ingestkit_mime.models import AttachmentInfo, MIMENode, ParsedMessage, PartRole


def children_of(message: ParsedMessage, index: int) -> list[MIMENode]:
    return [n for n in message.structure if n.parent == index]


def count_parts(message: ParsedMessage) -> int:
    """Number of nodes in the tree, containers included."""
    return len(message.structure)


def find_part_by_content_id(message: ParsedMessage, content_id: str) -> AttachmentInfo | None:
    """Look up an attachment by ``Content-Id``; angle brackets are optional."""
    wanted = content_id.strip().strip("<>")
    if not wanted:
        return None
    for info in message.inline_attachments + message.attachments:
        if info.content_id == wanted:
            return info
    return None


def find_parts_by_type(message: ParsedMessage, media_type: str) -> list[MIMENode]:
    """Nodes whose media type matches; ``image/*`` style wildcards allowed."""
    wanted = media_type.strip().lower()
    if wanted.endswith("/*"):
        prefix = wanted[:-1]
        return [n for n in message.structure if n.content_type.startswith(prefix)]
    return [n for n in message.structure if n.content_type == wanted]


def describe_structure(message: ParsedMessage) -> str:
    """Render the tree as an indented outline, one node per line.

    Example::

        - multipart/mixed boundary=b1
          - 1 text/plain {text_body}
          - 2 application/pdf [attachment] (report.pdf)
    """
    lines: list[str] = []
    for node in message.structure:
        line = "  " * node.depth + "- "
        if node.part_id:
            line += f"{node.part_id} "
        line += node.content_type or "(invalid)"
        if node.disposition:
            line += f" [{node.disposition}]"
        if node.filename:
            line += f" ({node.filename})"
        if node.boundary:
            line += f" boundary={node.boundary}"
        if node.role not in (PartRole.CONTAINER, PartRole.ATTACHMENT, PartRole.INLINE):
            line += f" {{{node.role.value}}}"
        lines.append(line)
    return "\n".join(lines)


def validate_structure(message: ParsedMessage) -> list[str]:
    """Return human-readable warnings about the parsed structure."""
    warnings: list[str] = []
    if not (message.text_body or message.html_body or message.attachments):
        warnings.append("message has no content")
    if not message.structure:
        warnings.append("message has no parts")
    for node in message.structure:
        where = node.part_id or "root"
        if not node.content_type:
            warnings.append(f"{where}: media type is missing or invalid")
        elif node.is_multipart and not node.boundary:
            warnings.append(f"{where}: multipart missing boundary")
    return warnings


def content_summary(message: ParsedMessage) -> dict[str, object]:
    summary: dict[str, object] = {
        "text_length": len(message.text_body),
        "html_length": len(message.html_body),
        "attachment_count": len(message.attachments),
        "inline_attachment_count": len(message.inline_attachments),
        "part_count": count_parts(message),
        "error_count": len(message.errors),
        "strategy": message.strategy.value,
    }
    if message.structure:
        summary["root_type"] = message.structure[0].content_type
    return summary
