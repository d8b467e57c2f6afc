"""Tests for geometry derivation -- offsets, cutout placement, labels, errors."""

from __future__ import annotations

import pytest

from mortise.geometry.derive import (
    EDGE_STOP_THICKNESS,
    LABEL_TEXT_SIZE,
    MAX_BUILD_DIMENSION,
    CutoutOutsidePlateError,
    FootprintTooLargeError,
    GeometryError,
    InvalidOffsetError,
    derive,
)
from mortise.geometry.solid import Cube, Cylinder, Difference, Hull, Text, Translate, Union, walk
from mortise.models import TemplateParameters


def _params(**overrides) -> TemplateParameters:
    return TemplateParameters(**overrides)


# ---------------------------------------------------------------------------
# Reference case: 5/16" bushing, 1/4" bit, 1-3/4 x 3/8 mortise
# ---------------------------------------------------------------------------


class TestReferenceTemplate:
    def test_right_fence_offsets(self, right_params: TemplateParameters) -> None:
        geom, _solid = derive(right_params)
        assert geom.offset_in == pytest.approx(0.03125)
        cutout_l, cutout_w = geom.cutout_size_in
        assert cutout_l == pytest.approx(1.8125)
        assert cutout_w == pytest.approx(0.4375)

    def test_right_fence_footprint_under_limit(self, right_params: TemplateParameters) -> None:
        geom, _solid = derive(right_params)
        assert geom.plate_length == pytest.approx(198.4375)
        assert geom.plate_width == pytest.approx(96.8375)
        assert max(geom.plate_length, geom.plate_width, geom.overall_height) < MAX_BUILD_DIMENSION

    def test_millimetre_values(self, default_params: TemplateParameters) -> None:
        geom, _solid = derive(default_params)
        assert geom.offset == pytest.approx(0.79375)
        assert geom.cutout_length == pytest.approx(46.0375)
        assert geom.cutout_width == pytest.approx(11.1125)
        assert geom.corner_radius == pytest.approx(3.96875)
        assert not geom.corner_radius_clamped
        assert geom.thickness == pytest.approx(6.35)
        assert geom.overall_height == pytest.approx(6.35 + 12.7)

    def test_cutout_centred_lengthwise(self, default_params: TemplateParameters) -> None:
        geom, _solid = derive(default_params)
        assert geom.cutout_x == pytest.approx(76.2)
        assert geom.cutout_x * 2 + geom.cutout_length == pytest.approx(geom.plate_length)


# ---------------------------------------------------------------------------
# Edge position
# ---------------------------------------------------------------------------


class TestEdgePosition:
    def test_left_measured_from_stop_face(self, default_params: TemplateParameters) -> None:
        geom, _solid = derive(default_params)
        assert geom.edge_stop_y == 0.0
        assert geom.cutout_y == pytest.approx(EDGE_STOP_THICKNESS + 6.35)
        assert geom.cutout_y - (geom.edge_stop_y + EDGE_STOP_THICKNESS) == pytest.approx(6.35)

    def test_right_measured_back_from_far_edge(self, right_params: TemplateParameters) -> None:
        geom, _solid = derive(right_params)
        expected = geom.plate_width - 6.35 - geom.cutout_width - EDGE_STOP_THICKNESS
        assert geom.cutout_y == pytest.approx(expected)
        assert geom.cutout_y == pytest.approx(69.85)
        assert geom.edge_stop_y == pytest.approx(geom.plate_width - EDGE_STOP_THICKNESS)
        # Gap between the cutout wall and the stop face equals the edge distance
        assert geom.edge_stop_y - (geom.cutout_y + geom.cutout_width) == pytest.approx(6.35)

    def test_plate_size_independent_of_side(
        self, default_params: TemplateParameters, right_params: TemplateParameters
    ) -> None:
        left, _ = derive(default_params)
        right, _ = derive(right_params)
        assert left.plate_length == pytest.approx(right.plate_length)
        assert left.plate_width == pytest.approx(right.plate_width)

    def test_mortise_edge_distance_includes_offset(self, default_params: TemplateParameters) -> None:
        geom, _solid = derive(default_params)
        assert geom.mortise_edge_distance == pytest.approx(6.35 + 0.79375)


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------


class TestInvariants:
    @pytest.mark.parametrize("edge_position", ["left", "right"])
    @pytest.mark.parametrize(
        "overrides",
        [
            {},
            {"bushing_od_in": 0.25},
            {"bushing_od_in": 0.625, "bit_diameter_in": 0.5, "mortise_width_in": 0.5},
            {"mortise_length_in": 4.0, "extension_length_in": 2.0},
            {"extension_width_in": 0.75, "edge_distance_in": 0.125},
            {"template_thickness_in": 0.5},
            {"unit_system": "metric"},
        ],
    )
    def test_containment(self, overrides: dict, edge_position: str) -> None:
        geom, _solid = derive(_params(edge_position=edge_position, **overrides))
        assert geom.offset >= 0
        assert geom.cutout_length <= geom.plate_length
        assert geom.cutout_width + geom.edge_stop_thickness <= geom.plate_width
        assert 0 < geom.cutout_y
        assert geom.cutout_y + geom.cutout_width < geom.plate_width

    def test_zero_offset_succeeds(self) -> None:
        geom, _solid = derive(_params(bushing_od_in=0.25, bit_diameter_in=0.25))
        assert geom.offset == 0.0
        assert geom.cutout_length == pytest.approx(44.45)

    def test_corner_radius_clamped_to_cutout(self) -> None:
        geom, _solid = derive(
            _params(bushing_od_in=1.0, bit_diameter_in=0.25, mortise_width_in=0.1)
        )
        assert geom.corner_radius_clamped
        assert geom.corner_radius == pytest.approx(min(geom.cutout_length, geom.cutout_width) / 2)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_bushing_smaller_than_bit(self, right_params: TemplateParameters) -> None:
        params = right_params.model_copy(update={"bushing_od_in": 0.2})
        with pytest.raises(InvalidOffsetError) as exc_info:
            derive(params)
        assert exc_info.value.kind == "invalid_offset"
        assert isinstance(exc_info.value, GeometryError)

    def test_footprint_too_large(self) -> None:
        with pytest.raises(FootprintTooLargeError) as exc_info:
            derive(_params(extension_length_in=5.0))
        assert exc_info.value.kind == "footprint_too_large"

    def test_footprint_too_wide(self) -> None:
        with pytest.raises(FootprintTooLargeError):
            derive(_params(extension_width_in=12.0))

    def test_footprint_checked_before_containment(self) -> None:
        with pytest.raises(FootprintTooLargeError):
            derive(_params(extension_length_in=6.0, edge_distance_in=10.0))

    @pytest.mark.parametrize("edge_position", ["left", "right"])
    def test_edge_distance_beyond_extension(self, edge_position: str) -> None:
        with pytest.raises(CutoutOutsidePlateError) as exc_info:
            derive(_params(edge_position=edge_position, edge_distance_in=3.5))
        assert exc_info.value.kind == "cutout_outside_plate"

    def test_errors_are_value_errors(self) -> None:
        with pytest.raises(ValueError):
            derive(_params(bushing_od_in=0.1, bit_diameter_in=0.5))


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


class TestLabels:
    def test_imperial_texts(self, default_params: TemplateParameters) -> None:
        geom, _solid = derive(default_params)
        texts = [row.text for row in geom.labels]
        assert texts == [
            'Bushing OD: 5/16"',
            'Bit Dia: 1/4"',
            'Length: 1-3/4"',
            'Width: 3/8"',
            'Edge Dist: 1/4"',
            'Offset: 0.031"',
        ]
        assert geom.labels_dropped == 0

    def test_metric_texts(self, metric_params: TemplateParameters) -> None:
        geom, _solid = derive(metric_params)
        texts = [row.text for row in geom.labels]
        assert texts[0] == "Bushing OD: 7.9mm"
        assert texts[2].startswith("Length: ") and texts[2].endswith("mm")
        assert texts[-1] == "Offset: 0.8mm"

    @pytest.mark.parametrize("edge_position", ["left", "right"])
    def test_labels_never_overlap_cutout_or_stop(self, edge_position: str) -> None:
        geom, _solid = derive(_params(edge_position=edge_position))
        assert geom.labels
        stop_low = geom.edge_stop_y
        stop_high = geom.edge_stop_y + geom.edge_stop_thickness
        cut_low = geom.cutout_y
        cut_high = geom.cutout_y + geom.cutout_width
        for row in geom.labels:
            low, high = row.y, row.y + LABEL_TEXT_SIZE
            assert high <= cut_low or low >= cut_high
            assert high <= stop_low or low >= stop_high
            assert 0 <= low and high <= geom.plate_width

    @pytest.mark.parametrize("edge_position", ["left", "right"])
    def test_label_rows_do_not_overlap_each_other(self, edge_position: str) -> None:
        geom, _solid = derive(_params(edge_position=edge_position))
        ys = sorted(row.y for row in geom.labels)
        for a, b in zip(ys, ys[1:]):
            assert b - a >= LABEL_TEXT_SIZE

    def test_labels_dropped_when_band_too_narrow(self) -> None:
        geom, solid = derive(_params(extension_width_in=0.5))
        assert geom.labels == ()
        assert geom.labels_dropped == 6
        assert not any(isinstance(node, Text) for node in walk(solid))


# ---------------------------------------------------------------------------
# Solid tree
# ---------------------------------------------------------------------------


class TestSolidTree:
    def test_operation_order(self, default_params: TemplateParameters) -> None:
        _geom, solid = derive(default_params)
        assert isinstance(solid, Difference)
        assert isinstance(solid.base, Union)
        plate, stop = solid.base.children
        assert isinstance(plate, Cube)
        assert isinstance(stop, Translate) and isinstance(stop.child, Cube)
        assert len(solid.subtract) == 2

    def test_cutout_is_hull_of_four_cylinders(self, default_params: TemplateParameters) -> None:
        geom, solid = derive(default_params)
        cutout = solid.subtract[0]
        assert isinstance(cutout, Translate)
        assert isinstance(cutout.child, Hull)
        cylinders = [n for n in walk(cutout) if isinstance(n, Cylinder)]
        assert len(cylinders) == 4
        assert all(c.radius == pytest.approx(geom.corner_radius) for c in cylinders)
        # Cutout passes through the full plate thickness
        assert cutout.offset[2] < 0
        assert cylinders[0].height > geom.thickness

    def test_every_label_engraved(self, default_params: TemplateParameters) -> None:
        geom, solid = derive(default_params)
        engraved = [n.text for n in walk(solid) if isinstance(n, Text)]
        assert engraved == [row.text for row in geom.labels]
