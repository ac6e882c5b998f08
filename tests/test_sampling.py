import pytest

from qc_checklist.schemas.exigence import SampleRule
from qc_checklist.services.sampling import required_samples


def test_ceiling_per_pieces():
    rule = SampleRule(pieces_per_sample=30)
    assert required_samples(90, rule) == 3
    assert required_samples(91, rule) == 4


def test_min_samples_floor_applied():
    assert required_samples(10, SampleRule(pieces_per_sample=30, min_samples=2)) == 2


def test_max_samples_cap_applied():
    assert required_samples(1000, SampleRule(pieces_per_sample=30, max_samples=10)) == 10


def test_invalid_pieces_per_sample_falls_back_to_min():
    assert required_samples(5, SampleRule(pieces_per_sample=0, min_samples=3)) == 3
    assert required_samples(500, SampleRule(pieces_per_sample=None, min_samples=3)) == 3
    assert required_samples(500, SampleRule(pieces_per_sample=-4)) == 1


def test_default_rule_for_demo_order():
    rule = SampleRule(pieces_per_sample=30, min_samples=1, max_samples=10)
    assert required_samples(120, rule) == 4


def test_non_positive_bounds_are_ignored():
    # max_samples = 0 không được cắt về 0
    assert required_samples(90, SampleRule(pieces_per_sample=30, max_samples=0)) == 3
    assert required_samples(90, SampleRule(pieces_per_sample=30, min_samples=-2)) == 3


def test_max_below_min_keeps_stored_values():
    # clamp chỉ áp dụng lúc nhập; giá trị đã lưu được dùng nguyên trạng
    assert required_samples(300, SampleRule(pieces_per_sample=30, min_samples=5, max_samples=2)) == 2


@pytest.mark.parametrize("pieces", [1, 2, 29, 30, 31, 999, 10_000])
@pytest.mark.parametrize(
    "rule",
    [
        SampleRule(),
        SampleRule(pieces_per_sample=1),
        SampleRule(pieces_per_sample=50, min_samples=1, max_samples=10),
        SampleRule(pieces_per_sample=0, max_samples=0),
        SampleRule(pieces_per_sample=7, min_samples=0, max_samples=-1),
    ],
)
def test_result_is_always_at_least_one(pieces, rule):
    assert required_samples(pieces, rule) >= 1
