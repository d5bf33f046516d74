"""Section aligned splitting of long source text."""

SECTION_MARKER = "\n\n## "
SECTION_PREFIX = "## "
CHUNK_SEPARATOR = "\n\n"


def split_sections(text: str) -> list[str]:
    """Split text at second level headings.

    The preamble before the first heading is kept whole as the first item.
    Every later item starts with ``"## "``.

    Args:
        text: Source text

    Returns:
        Ordered list of sections
    """
    parts = text.split(SECTION_MARKER)
    return [parts[0], *(SECTION_PREFIX + part for part in parts[1:])]


def build_chunks(text: str, max_chunk_length: int = 30000) -> list[str]:
    """Group sections into chunks of at most ``max_chunk_length`` characters.

    Sections are never cut. A chunk is flushed only when appending the next
    section would push it over the limit and it already holds something, so a
    single oversized section becomes a chunk of its own. Joining the result
    with a blank line reproduces ``text`` exactly.

    Args:
        text: Source text
        max_chunk_length: Size above which chunking kicks in

    Returns:
        Ordered list of chunks
    """
    if len(text) <= max_chunk_length:
        return [text]

    sections = split_sections(text)
    chunks: list[str] = []
    current = sections[0]

    for section in sections[1:]:
        candidate = current + CHUNK_SEPARATOR + section
        if len(candidate) > max_chunk_length and current:
            chunks.append(current)
            current = section
        else:
            current = candidate

    if current:
        chunks.append(current)

    return chunks
