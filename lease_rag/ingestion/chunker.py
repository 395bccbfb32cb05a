from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from langchain_text_splitters import RecursiveCharacterTextSplitter

from lease_rag.core.config import settings
from lease_rag.core.exception import CustomException, ValidationError
from lease_rag.core.logger import logger
from lease_rag.ingestion.schemas import Chunk, PageText

PageInput = Union[PageText, Tuple[int, str], Dict[str, Any]]

# Paragraph, line, sentence, clause, word, character
SEPARATORS = ["\n\n", "\n", ". ", "? ", "! ", "; ", " ", ""]


def _to_page(page: PageInput, position: int) -> PageText:
    if isinstance(page, PageText):
        page_number, text = page.page_number, page.text
    elif isinstance(page, dict):
        if "page_number" not in page or "text" not in page:
            raise ValidationError(f"Page {position} must have 'page_number' and 'text'")
        page_number, text = page["page_number"], page["text"]
    elif isinstance(page, (tuple, list)) and len(page) == 2:
        page_number, text = page
    else:
        raise ValidationError(f"Page {position} is not a (page_number, text) pair")

    if isinstance(page_number, bool) or not isinstance(page_number, int) or page_number < 1:
        raise ValidationError(f"Page {position}: page number must be a positive integer, got {page_number!r}")
    if not isinstance(text, str):
        raise ValidationError(f"Page {page_number}: text must be a string, got {type(text).__name__}")

    return PageText(page_number=page_number, text=text)


def normalize_pages(pages: Iterable[PageInput]) -> List[PageText]:
    """
    Validate every page up front so malformed input fails before any work.
    """
    if pages is None:
        raise ValidationError("pages must not be None")
    return [_to_page(page, i) for i, page in enumerate(pages)]


def _split_page(
    splitter: RecursiveCharacterTextSplitter,
    page_text: str,
    chunk_overlap: int,
    min_chunk_size: int,
) -> List[Tuple[int, int]]:
    """
    Split one page and locate every piece in it.
    Returns (start, end) offsets into page_text.
    """
    spans: List[Tuple[int, int]] = []
    index = 0
    previous_len = 0

    for piece in splitter.split_text(page_text):
        offset = max(0, index + previous_len - chunk_overlap)
        start = page_text.find(piece, offset)
        if start == -1:
            start = page_text.find(piece)
        if start == -1:
            raise CustomException("Splitter produced text that is not part of the page")

        index, previous_len = start, len(piece)
        spans.append((start, start + len(piece)))

    if len(spans) > 1 and spans[-1][1] - spans[-1][0] < min_chunk_size:
        # Fold a short trailing fragment into the chunk before it
        last_start, last_end = spans.pop()
        prev_start, prev_end = spans[-1]
        spans[-1] = (prev_start, max(prev_end, last_end))

    return spans


def chunk_pages(
    pages: Iterable[PageInput],
    chunk_size: Optional[int] = None,
    chunk_overlap: Optional[int] = None,
    min_chunk_size: Optional[int] = None,
) -> List[Chunk]:
    """
    Convert page text into page-scoped chunks with position metadata.

    Chunks never cross a page boundary, and each chunk's text is exactly
    page_text[start_index:end_index]. chunk_index runs across the whole
    document. The result carries no embeddings.
    """
    chunk_size = settings.CHUNK_SIZE if chunk_size is None else chunk_size
    chunk_overlap = settings.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap
    min_chunk_size = settings.MIN_CHUNK_SIZE if min_chunk_size is None else min_chunk_size

    if chunk_size <= 0:
        raise ValidationError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise ValidationError(
            f"chunk_overlap must be in [0, chunk_size), got {chunk_overlap} for size {chunk_size}"
        )
    if min_chunk_size < 0:
        raise ValidationError(f"min_chunk_size must not be negative, got {min_chunk_size}")

    normalized = normalize_pages(pages)

    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        length_function=len,
        separators=SEPARATORS,
        keep_separator="end",
        strip_whitespace=True,
    )

    located: List[Tuple[int, str, int, int]] = []
    for page in normalized:
        if not page.text.strip():
            continue
        for start, end in _split_page(splitter, page.text, chunk_overlap, min_chunk_size):
            located.append((page.page_number, page.text[start:end], start, end))

    chunks = [
        Chunk(
            text=text,
            page_number=page_number,
            chunk_index=i,
            start_index=start,
            end_index=end,
        )
        for i, (page_number, text, start, end) in enumerate(located)
    ]

    logger.info(f"Created {len(chunks)} chunks from {len(normalized)} pages")
    return chunks
