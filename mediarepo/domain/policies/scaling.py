# mediarepo/domain/policies/scaling.py
from __future__ import annotations

from math import ceil, floor


def _round_div(num: int, den: int) -> int:
    """num / den rounded half away from zero, for non-negative integers."""
    q, r = divmod(num, den)
    if 2 * r >= den:
        q += 1
    return q


def scale_height(src_width: int, src_height: int, dst_width: int) -> int:
    """
    Height of a thumbnail given the source size and the destination width.

    The product is computed exactly before the single division, and halves
    round up: scale_height(3, 2, 10) == 7. A zero source width yields 0.
    """
    src_width, src_height, dst_width = int(src_width), int(src_height), int(dst_width)
    if src_width == 0:
        return 0
    return _round_div(src_height * dst_width, src_width)


def fit_box_width(box_width: int, box_height: int, max_height: int) -> int:
    """
    Largest width for a (box_width x box_height) image whose scaled height does
    not exceed max_height once rounded.
    """
    box_width, box_height, max_height = int(box_width), int(box_height), int(max_height)
    if box_height == 0:
        return 0
    ideal = box_width * max_height / box_height
    rounded_up = ceil(ideal)
    if scale_height(box_width, box_height, rounded_up) > max_height:
        return floor(ideal)
    return rounded_up
