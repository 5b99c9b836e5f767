"""
Boundary detection and the low-level split/merge primitives for chunking.
"""

from __future__ import annotations

from bisect import bisect_right
from itertools import accumulate
from typing import List, Optional, Sequence, Tuple

from ..types import IncludeDelim

# Marks cut points while splitting; must not occur in the source text.
SENTINEL = "✄"


def _mark_delimiters(text: str, delimiters: Sequence[str], include_delim: IncludeDelim) -> str:
    """Insert the sentinel around every delimiter according to the inclusion policy."""
    marked = text
    for d in delimiters:
        if include_delim == "prev":
            marked = marked.replace(d, d + SENTINEL)
        elif include_delim == "next":
            marked = marked.replace(d, SENTINEL + d)
        else:
            marked = marked.replace(d, SENTINEL)
    return marked


def _fold_short(pieces: Sequence[str], min_characters: int) -> List[Tuple[int, int]]:
    """Group consecutive pieces until each group reaches ``min_characters``.

    Returns ``(first, last_exclusive)`` piece index ranges. A trailing group is
    kept even when short; groups made only of empty pieces are dropped.
    """
    groups: List[Tuple[int, int]] = []
    first = 0
    length = 0
    for i, piece in enumerate(pieces):
        if length == 0:
            first = i
        length += len(piece)
        if length and length >= min_characters:
            groups.append((first, i + 1))
            length = 0
    if length:
        groups.append((first, len(pieces)))
    return groups


def _mark_with_origins(
    text: str, delimiters: Sequence[str], include_delim: IncludeDelim
) -> Tuple[str, List[int]]:
    """Mark delimiters like ``_mark_delimiters`` and map each marked character to its source index.

    Sentinels map to -1. Delimiter matches are found left to right without
    overlap, the same way ``str.replace`` finds them.
    """
    marked = text
    origins = list(range(len(text)))
    for d in delimiters:
        parts: List[str] = []
        new_origins: List[int] = []
        cursor = 0
        hit = marked.find(d)
        while hit != -1:
            parts.append(marked[cursor:hit])
            new_origins.extend(origins[cursor:hit])
            matched = origins[hit : hit + len(d)]
            if include_delim == "prev":
                parts.append(d + SENTINEL)
                new_origins.extend(matched + [-1])
            elif include_delim == "next":
                parts.append(SENTINEL + d)
                new_origins.extend([-1] + matched)
            else:
                parts.append(SENTINEL)
                new_origins.append(-1)
            cursor = hit + len(d)
            hit = marked.find(d, cursor)
        parts.append(marked[cursor:])
        new_origins.extend(origins[cursor:])
        marked = "".join(parts)
        origins = new_origins
    return marked, origins


def _raw_pieces(text: str, delimiters: Sequence[str], include_delim: IncludeDelim) -> List[str]:
    # No filter: empty pieces keep positions aligned and the delimiters stay attached
    return _mark_delimiters(text, delimiters, include_delim).split(SENTINEL)


def split_text(
    text: str,
    delimiters: Sequence[str],
    include_delim: IncludeDelim = "prev",
    min_characters: int = 1,
) -> List[str]:
    """
    Split text at delimiter boundaries, folding short fragments forward.

    With ``include_delim`` set to ``"prev"`` or ``"next"`` the fragments
    concatenate back to ``text`` exactly; with ``None`` the delimiters are
    dropped.

    Args:
        text: Text to split (must not contain ``SENTINEL``)
        delimiters: Literal delimiter strings, applied in order
        include_delim: Attach delimiters to the previous or next fragment, or drop them
        min_characters: Fragments shorter than this absorb the following ones

    Returns:
        Ordered list of non-empty fragments
    """
    if not text:
        return []
    pieces = _raw_pieces(text, delimiters, include_delim)
    return ["".join(pieces[a:b]) for a, b in _fold_short(pieces, min_characters)]


def split_offsets(
    text: str,
    delimiters: Sequence[str],
    include_delim: IncludeDelim = "prev",
    min_characters: int = 1,
) -> List[Tuple[int, int]]:
    """
    Same split as ``split_text`` expressed as half-open ``(start, end)`` ranges.

    For ``"prev"``/``"next"`` ``text[start:end]`` is the fragment. When
    delimiters are dropped a range spans from the first to the last kept
    character of the fragment, so interior delimiters fall inside it.
    """
    if not text:
        return []
    marked, origins = _mark_with_origins(text, delimiters, include_delim)
    pieces = marked.split(SENTINEL)

    # Source range of each raw piece; None for empty pieces
    spans: List[Optional[Tuple[int, int]]] = []
    pos = 0
    for piece in pieces:
        if piece:
            spans.append((origins[pos], origins[pos + len(piece) - 1] + 1))
        else:
            spans.append(None)
        pos += len(piece) + 1

    ranges: List[Tuple[int, int]] = []
    for a, b in _fold_short(pieces, min_characters):
        filled = [span for span in spans[a:b] if span is not None]
        ranges.append((filled[0][0], filled[-1][1]))
    return ranges


def split_whitespace(text: str) -> List[str]:
    """Split on single spaces, keeping empty pieces so ``" ".join`` restores the text."""
    if not text:
        return []
    return text.split(" ")


def merge_splits(
    token_counts: Sequence[int],
    chunk_size: int,
    combine_whitespace: bool = False,
) -> Tuple[List[int], List[int]]:
    """
    Greedily merge consecutive pieces while each group stays within budget.

    Args:
        token_counts: Token count of each piece, in order
        chunk_size: Maximum tokens per merged group
        combine_whitespace: Count one extra token per join (pieces are space-joined)

    Returns:
        Tuple of (end_indices, merged_token_counts); group ``i`` covers pieces
        ``end_indices[i-1]:end_indices[i]``. A piece that alone exceeds the
        budget forms its own group.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be greater than 0")
    if not token_counts:
        return [], []

    join_cost = 1 if combine_whitespace else 0
    # prefix[i] = tokens of pieces[:i] plus one join after each piece when spaced
    prefix = [0] + list(accumulate(count + join_cost for count in token_counts))
    n = len(token_counts)

    indices: List[int] = []
    merged_counts: List[int] = []
    pos = 0
    while pos < n:
        # The join after the last piece of a group is not part of the group
        target = prefix[pos] + chunk_size + join_cost
        end = bisect_right(prefix, target, lo=pos) - 1
        end = max(min(end, n), pos + 1)
        indices.append(end)
        merged_counts.append(prefix[end] - prefix[pos] - join_cost)
        pos = end

    return indices, merged_counts


def merge_pieces(
    pieces: Sequence[str],
    token_counts: Sequence[int],
    chunk_size: int,
    combine_whitespace: bool = False,
) -> Tuple[List[str], List[int]]:
    """Apply ``merge_splits`` to the pieces themselves."""
    if not pieces or not token_counts:
        return [], []
    if len(pieces) != len(token_counts):
        raise ValueError(
            f"Mismatch between pieces ({len(pieces)}) and token counts ({len(token_counts)})"
        )

    # Nothing can merge when every piece is already over budget
    if all(count > chunk_size for count in token_counts):
        return list(pieces), list(token_counts)

    indices, merged_counts = merge_splits(token_counts, chunk_size, combine_whitespace)
    joiner = " " if combine_whitespace else ""
    merged: List[str] = []
    start = 0
    for end in indices:
        merged.append(joiner.join(pieces[start:end]))
        start = end
    return merged, merged_counts
