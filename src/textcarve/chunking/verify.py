"""
Chunk verification: offsets, coverage and token budget checks.
"""

import statistics
from typing import Dict, List, Optional, Sequence, Tuple

from ..tokenizer import Tokenizer
from ..types import Chunk


def calculate_coverage(
    chunks: Sequence[Chunk], original_text_length: int
) -> Tuple[float, List[Tuple[int, int]]]:
    """
    Calculate text coverage from chunks and identify gaps.

    Args:
        chunks: Chunks with start_index/end_index
        original_text_length: Length of the original document text

    Returns:
        Tuple of (coverage_percentage, list_of_gaps)
        where gaps are (start, end) tuples of uncovered ranges
    """
    if original_text_length == 0:
        return 100.0, []

    covered_ranges = sorted(
        (chunk.start_index, chunk.end_index)
        for chunk in chunks
        if chunk.start_index < chunk.end_index
    )
    if not covered_ranges:
        return 0.0, [(0, original_text_length)]

    # Merge overlapping or adjacent ranges
    merged_ranges = []
    current_start, current_end = covered_ranges[0]
    for start, end in covered_ranges[1:]:
        if start <= current_end:
            current_end = max(current_end, end)
        else:
            merged_ranges.append((current_start, current_end))
            current_start, current_end = start, end
    merged_ranges.append((current_start, current_end))

    covered_chars = sum(
        min(end, original_text_length) - start
        for start, end in merged_ranges
        if start < original_text_length
    )
    coverage_pct = (covered_chars / original_text_length) * 100

    gaps = []
    cursor = 0
    for start, end in merged_ranges:
        if start > cursor:
            gaps.append((cursor, min(start, original_text_length)))
        cursor = max(cursor, end)
    if cursor < original_text_length:
        gaps.append((cursor, original_text_length))

    return coverage_pct, gaps


def _token_stats(token_counts: List[int]) -> Dict[str, int]:
    return {
        "min": min(token_counts) if token_counts else 0,
        "median": int(statistics.median(token_counts)) if token_counts else 0,
        "p95": (
            int(statistics.quantiles(token_counts, n=20)[18])
            if len(token_counts) > 20
            else (max(token_counts) if token_counts else 0)
        ),
        "max": max(token_counts) if token_counts else 0,
        "total": sum(token_counts),
    }


def verify_chunks(
    text: str,
    chunks: Sequence[Chunk],
    chunk_size: Optional[int] = None,
    tokenizer: Optional[Tokenizer] = None,
) -> Dict:
    """
    Verify chunks produced for ``text``.

    Args:
        text: The source text the chunks were cut from
        chunks: Chunks in output order
        chunk_size: Token budget to check against, if any
        tokenizer: Recount chunk text with this tokenizer instead of trusting token_count

    Returns:
        Report dictionary; ``report["ok"]`` is False when any offset problem
        or budget breach was found
    """
    offset_issues: List[Dict] = []
    breaches: List[Dict] = []
    token_counts: List[int] = []

    previous_start = -1
    for i, chunk in enumerate(chunks):
        if chunk.start_index >= chunk.end_index:
            offset_issues.append({"index": i, "issue": "empty_span"})
        if chunk.start_index < previous_start:
            offset_issues.append({"index": i, "issue": "start_moved_backwards"})
        if chunk.end_index > len(text):
            offset_issues.append({"index": i, "issue": "end_past_text"})
        elif text[chunk.start_index : chunk.end_index] != chunk.text:
            offset_issues.append({"index": i, "issue": "text_mismatch"})
        previous_start = chunk.start_index

        actual_tokens = (
            tokenizer.count_tokens(chunk.text) if tokenizer is not None else chunk.token_count
        )
        token_counts.append(actual_tokens)

        if chunk_size is not None and actual_tokens > chunk_size:
            sentences = getattr(chunk, "sentences", None)
            breaches.append(
                {
                    "index": i,
                    "token_count": actual_tokens,
                    "reported_token_count": chunk.token_count,
                    "start_index": chunk.start_index,
                    # A lone oversized sentence is allowed to exceed the budget
                    "single_sentence": sentences is not None and len(sentences) == 1,
                }
            )

    coverage_pct, gaps = calculate_coverage(chunks, len(text))
    hard_breaches = [b for b in breaches if not b["single_sentence"]]

    return {
        "chunkCount": len(chunks),
        "textLength": len(text),
        "tokenStats": _token_stats(token_counts),
        "coverage": {
            "pct": round(coverage_pct, 2),
            "gaps": gaps[:10],
            "gapsCount": len(gaps),
        },
        "offsetIssues": offset_issues,
        "breaches": {
            "chunkSize": chunk_size,
            "count": len(hard_breaches),
            "allowed": len(breaches) - len(hard_breaches),
            "examples": hard_breaches[:5],
        },
        "ok": not offset_issues and not hard_breaches,
    }
