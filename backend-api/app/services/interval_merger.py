"""
시간 구간 병합 유틸리티

모든 구간은 반열림 [start, end) 이다.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List

# "현재 만료 상태"를 나타내는 열린 끝 구간의 상한
MAX_TIME = datetime.max


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


def merge_ranges(ranges: Iterable[TimeRange]) -> List[TimeRange]:
    """겹치거나 맞닿은 구간을 합쳐 정렬된 서로소 구간 목록으로 만든다.

    입력 구간은 end >= start 를 만족해야 한다 (구독 생성 시점에 검증됨).
    """
    ordered = sorted(ranges, key=lambda r: (r.start, r.end))
    if not ordered:
        return []

    merged: List[TimeRange] = []
    current = ordered[0]
    for nxt in ordered[1:]:
        if nxt.start <= current.end:
            if nxt.end > current.end:
                current = TimeRange(current.start, nxt.end)
        else:
            merged.append(current)
            current = nxt
    merged.append(current)
    return merged


def complement_ranges(merged: List[TimeRange], now: datetime, horizon: datetime = MAX_TIME) -> List[TimeRange]:
    """병합된 구간 사이의 빈 구간(gap) 목록.

    마지막 구간이 now 이전에 끝났으면 [last.end, horizon) 을 덧붙인다.
    """
    if not merged:
        return []

    gaps = [
        TimeRange(merged[i].end, merged[i + 1].start)
        for i in range(len(merged) - 1)
    ]
    last = merged[-1]
    if last.end < now:
        gaps.append(TimeRange(last.end, horizon))
    return gaps


def ranges_contain(ranges: Iterable[TimeRange], moment: datetime) -> bool:
    return any(r.contains(moment) for r in ranges)
