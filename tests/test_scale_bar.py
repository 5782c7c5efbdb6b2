import pytest

from lib.scale_bar import MIN_WIDTH, NICE_LENGTHS, calculate, format_length, microns_per_pixel


def test_tie_goes_to_first_candidate():
    # 500 um -> 100 and 1000 um -> 200 are both 50 from the target
    bar = calculate(5.0, 1.0)
    assert bar.length_microns == 500
    assert bar.width_points == pytest.approx(100)
    assert bar.label == "500 µm"


def test_zoom_shrinks_microns_per_screen_unit():
    bar = calculate(5.0, 4.0)
    # 1.25 um per screen unit: 200 um -> 160 is closest to 150
    assert bar.length_microns == 200
    assert bar.width_points == pytest.approx(160)


def test_calibration_round_trip():
    mpp = microns_per_pixel(254.0, 2540.0)
    assert mpp == pytest.approx(10.0)
    bar = calculate(mpp, 1.0)
    assert bar.length_microns == 1000
    assert bar.width_points == pytest.approx(100)
    # 2x zoom: 5 um per screen unit
    bar = calculate(mpp, 2.0)
    assert bar.length_microns == 500
    assert bar.width_points == pytest.approx(100)
    assert bar.label == "500 µm"


def test_fallback_smallest_wide_enough():
    # Every candidate is wider than the band; the smallest one >= min wins
    bar = calculate(0.01, 1.0)
    assert bar.length_microns == NICE_LENGTHS[0]
    assert bar.width_points >= MIN_WIDTH


def test_extreme_zoom_out_uses_largest_length():
    bar = calculate(1000.0, 0.1)
    assert bar.length_microns == NICE_LENGTHS[-1]
    assert bar.width_points < MIN_WIDTH
    assert bar.label == "5 cm"


@pytest.mark.parametrize("microns, label", [
    (10, "10 µm"),
    (500, "500 µm"),
    (1000, "1 mm"),
    (1500, "1.5 mm"),
    (2540, "2.5 mm"),
    (10000, "1 cm"),
    (25000, "2.5 cm"),
])
def test_format_length(microns, label):
    assert format_length(microns) == label


def test_microns_per_pixel_empty_line():
    assert microns_per_pixel(0.0, 1000.0) == 0.0
    assert microns_per_pixel(-3.0, 1000.0) == 0.0
