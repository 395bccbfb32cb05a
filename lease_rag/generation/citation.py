"""
Source attribution for generated answers.
Links each claim in an answer back to the chunk (and page) it came from.
"""

import html
import re
from typing import List, Optional
from dataclasses import dataclass, field
from lease_rag.core.logger import logger
from lease_rag.retrieval.retriever import Retriever


@dataclass
class Citation:
    """Represents a citation reference."""
    reference_id: str
    claim: str
    page_number: int
    chunk_index: int
    text_snippet: str
    score: float


@dataclass
class CitationResult:
    """Result of attributing an answer."""
    citations: List[Citation]
    uncited_claims: List[str] = field(default_factory=list)


class SourceAttributor:
    """
    Attributes claims to source chunks through Retriever.find_source.
    Claims whose best match falls below the retriever's threshold stay uncited.
    """

    def __init__(self, retriever: Retriever, snippet_length: int = 200):
        self.retriever = retriever
        self.snippet_length = snippet_length

    def attribute(self, claim: str, context: str = "", reference_id: str = "1") -> Optional[Citation]:
        """
        Find the source of a single claim.

        Args:
            claim: Statement to attribute, e.g. an extracted field value
            context: Extra words that describe the claim (field name, label)
            reference_id: Identifier for the returned citation

        Returns:
            Citation, or None when no chunk is similar enough
        """
        match = self.retriever.find_source(claim, context)
        if match is None:
            return None

        return Citation(
            reference_id=reference_id,
            claim=claim,
            page_number=match.page_number,
            chunk_index=match.chunk_index,
            text_snippet=match.text[:self.snippet_length],
            score=match.score,
        )

    def attribute_answer(self, answer: str) -> CitationResult:
        """
        Split an answer into sentences and attribute each one.

        Args:
            answer: Generated answer text

        Returns:
            CitationResult with one citation per attributed sentence
        """
        sentences = [s.strip() for s in re.split(r'(?<=[.!?])\s+', answer) if s.strip()]

        citations = []
        uncited = []
        for sentence in sentences:
            citation = self.attribute(sentence, reference_id=str(len(citations) + 1))
            if citation is None:
                uncited.append(sentence)
            else:
                citations.append(citation)

        logger.info(f"Attributed {len(citations)} of {len(sentences)} claims")

        return CitationResult(citations=citations, uncited_claims=uncited)


def format_citations_for_display(
    citations: List[Citation],
    format_type: str = "markdown",
) -> str:
    """
    Format citations for display in different formats.

    Args:
        citations: List of Citation objects
        format_type: "markdown", "html", or "plain"

    Returns:
        Formatted citation string
    """
    if not citations:
        return ""

    if format_type == "markdown":
        lines = ["### Sources"]
        for cit in citations:
            lines.append(f"- [{cit.reference_id}] **Page {cit.page_number}**: _{cit.text_snippet}_")
        return "\n".join(lines)

    elif format_type == "html":
        lines = ["<div class='citations'><h4>Sources</h4><ul>"]
        for cit in citations:
            lines.append(
                f"<li>[{cit.reference_id}] <strong>Page {cit.page_number}</strong>: "
                f"<em>{html.escape(cit.text_snippet)}</em></li>"
            )
        lines.append("</ul></div>")
        return "\n".join(lines)

    else:  # plain
        lines = ["Sources:"]
        for cit in citations:
            lines.append(f"[{cit.reference_id}] Page {cit.page_number}: {cit.text_snippet}")
        return "\n".join(lines)
