"""
시간 구간 병합/여집합 테스트
"""

from datetime import datetime, timedelta

from app.services.interval_merger import MAX_TIME, TimeRange, complement_ranges, merge_ranges, ranges_contain

T = datetime(2025, 1, 1)


def d(days: float) -> datetime:
    return T + timedelta(days=days)


class TestMergeRanges:
    def test_empty(self):
        assert merge_ranges([]) == []

    def test_overlapping_and_touching_ranges_merge(self):
        merged = merge_ranges([
            TimeRange(d(10), d(20)),
            TimeRange(d(0), d(5)),
            TimeRange(d(5), d(8)),     # 맞닿음
            TimeRange(d(15), d(25)),   # 겹침
        ])
        assert merged == [TimeRange(d(0), d(8)), TimeRange(d(10), d(25))]

    def test_contained_range_is_absorbed(self):
        merged = merge_ranges([TimeRange(d(0), d(30)), TimeRange(d(5), d(10))])
        assert merged == [TimeRange(d(0), d(30))]

    def test_result_is_disjoint_ordered_and_idempotent(self):
        ranges = [
            TimeRange(d(40), d(45)),
            TimeRange(d(3), d(9)),
            TimeRange(d(1), d(4)),
            TimeRange(d(20), d(21)),
            TimeRange(d(8), d(12)),
        ]
        merged = merge_ranges(ranges)
        for a, b in zip(merged, merged[1:]):
            assert a.end < b.start
        assert merge_ranges(merged) == merged

        # 합집합 보존: 입력의 모든 경계 시각이 병합 결과에도 포함
        for r in ranges:
            assert ranges_contain(merged, r.start)
            assert ranges_contain(merged, r.end - timedelta(seconds=1))


class TestComplementRanges:
    def test_gaps_between_ranges(self):
        merged = [TimeRange(d(0), d(10)), TimeRange(d(20), d(30))]
        gaps = complement_ranges(merged, now=d(25))
        assert gaps == [TimeRange(d(10), d(20))]

    def test_open_ended_gap_after_last_range_when_already_over(self):
        merged = [TimeRange(d(0), d(10))]
        gaps = complement_ranges(merged, now=d(11))
        assert gaps == [TimeRange(d(10), MAX_TIME)]

    def test_no_ranges_means_no_gaps(self):
        assert complement_ranges([], now=d(5)) == []


def test_ranges_are_half_open():
    r = TimeRange(d(0), d(10))
    assert r.contains(d(0))
    assert not r.contains(d(10))
