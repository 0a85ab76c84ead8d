"""Pure renderers: summary statistics in, ordered draw primitives out.

Nothing here touches a drawing surface. The pygame shell (or a test) consumes the
primitive list in order; later primitives are drawn over earlier ones. Coordinates
are surface units with the origin at the top-left; the consumer applies any
device-pixel-ratio scaling.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import StrEnum

from .metrics import SummaryStats, error_vectors
from .precision_core import Point, TrialRecord, round_half_up

Rgba = tuple[int, int, int, int]

ZOOM_CAP = 3.0
FILL_RATIO = 0.4  # max-error ring radius as a fraction of the surface size
BIAS_MIN_MAGNITUDE = 2.0
BIAS_ARROW_GAIN = 3.0
BIAS_HEAD_LEN = 14.0
CROSSHAIR_ARM = 10.0
POINT_RADIUS = 5.0
HEAT_RADIUS = 30.0  # error units, scaled with the plot

QUARTILE_COLOR: Rgba = (147, 51, 234, 102)
QUARTILE_LABEL_COLOR: Rgba = (147, 51, 234, 204)
HEAT_COLOR: Rgba = (239, 68, 68, 77)
HEAT_EDGE: Rgba = (239, 68, 68, 0)
CROSSHAIR_COLOR: Rgba = (229, 229, 229, 255)
MAX_RING_COLOR: Rgba = (239, 68, 68, 153)
AVG_RING_COLOR: Rgba = (59, 130, 246, 204)
POINT_COLOR: Rgba = (59, 130, 246, 153)
BIAS_COLOR: Rgba = (220, 38, 38, 255)
VALUE_TEXT_COLOR: Rgba = (51, 51, 51, 255)
LABEL_TEXT_COLOR: Rgba = (102, 102, 102, 255)
AXIS_TEXT_COLOR: Rgba = (153, 153, 153, 255)
SPACED_COLOR: Rgba = (34, 197, 94, 255)
TIGHT_COLOR: Rgba = (239, 68, 68, 255)
SIZE_COLORS: dict[str, Rgba] = {
    "small": (239, 68, 68, 255),
    "medium": (245, 158, 11, 255),
    "large": (34, 197, 94, 255),
}


class Align(StrEnum):
    LEFT = "left"
    CENTER = "center"


@dataclass(frozen=True, slots=True)
class CirclePrim:
    center: Point
    radius: float
    stroke: Rgba | None = None
    fill: Rgba | None = None
    line_width: float = 1.0
    dash: tuple[float, float] | None = None


@dataclass(frozen=True, slots=True)
class LinePrim:
    start: Point
    end: Point
    color: Rgba
    width: float = 1.0
    round_cap: bool = False


@dataclass(frozen=True, slots=True)
class PolygonPrim:
    points: tuple[Point, ...]
    fill: Rgba


@dataclass(frozen=True, slots=True)
class GradientPrim:
    """Radial gradient filling the square ``center +/- radius``."""

    center: Point
    radius: float
    stops: tuple[tuple[float, Rgba], ...]


@dataclass(frozen=True, slots=True)
class RectPrim:
    x: float
    y: float
    w: float
    h: float
    fill: Rgba


@dataclass(frozen=True, slots=True)
class TextPrim:
    position: Point
    text: str
    color: Rgba
    size: int = 11
    bold: bool = False
    align: Align = Align.LEFT
    rotation_deg: float = 0.0


Primitive = CirclePrim | LinePrim | PolygonPrim | GradientPrim | RectPrim | TextPrim


@dataclass(frozen=True, slots=True)
class Toggles:
    heatmap: bool = False
    bias: bool = False
    quartiles: bool = False

    def toggled(self, name: str) -> Toggles:
        if name not in ("heatmap", "bias", "quartiles"):
            raise ValueError(f"unknown toggle: {name!r}")
        return replace(self, **{name: not getattr(self, name)})


def error_plot_scale(max_error: float, surface_size: float, zoom_cap: float = ZOOM_CAP) -> float:
    if max_error <= 0.0:
        return zoom_cap
    return min((surface_size * FILL_RATIO) / max_error, zoom_cap)


def render_error_plot(
    stats: SummaryStats,
    records: Sequence[TrialRecord],
    toggles: Toggles,
    surface_size: float,
    *,
    zoom_cap: float = ZOOM_CAP,
) -> tuple[Primitive, ...]:
    """Scatter of tap offsets around the target centre with summary rings."""

    err = stats.error
    if err is None:
        raise ValueError("error plot needs records with error vectors")

    center = surface_size / 2.0
    scale = error_plot_scale(err.max_error, surface_size, zoom_cap)
    vectors = error_vectors(records)
    origin = Point(center, center)

    def s(distance: float) -> float:
        return distance * scale

    out: list[Primitive] = []

    if toggles.quartiles:
        q90 = err.quartiles.q90
        out.append(CirclePrim(origin, s(q90), stroke=QUARTILE_COLOR, line_width=2.0, dash=(3.0, 3.0)))
        out.append(
            TextPrim(
                Point(center + s(q90) + 6.0, center - 4.0),
                f"90%: {round_half_up(q90)}px",
                QUARTILE_LABEL_COLOR,
            )
        )

    if toggles.heatmap:
        heat = s(HEAT_RADIUS)
        for v in vectors:
            out.append(
                GradientPrim(
                    Point(center + s(v.dx), center + s(v.dy)),
                    heat,
                    ((0.0, HEAT_COLOR), (1.0, HEAT_EDGE)),
                )
            )

    out.append(
        LinePrim(Point(center - CROSSHAIR_ARM, center), Point(center + CROSSHAIR_ARM, center), CROSSHAIR_COLOR)
    )
    out.append(
        LinePrim(Point(center, center - CROSSHAIR_ARM), Point(center, center + CROSSHAIR_ARM), CROSSHAIR_COLOR)
    )
    out.append(CirclePrim(origin, s(err.max_error), stroke=MAX_RING_COLOR, line_width=2.0, dash=(5.0, 5.0)))
    out.append(CirclePrim(origin, s(err.avg_error), stroke=AVG_RING_COLOR, line_width=2.0))

    for v in vectors:
        out.append(CirclePrim(Point(center + s(v.dx), center + s(v.dy)), POINT_RADIUS, fill=POINT_COLOR))

    if toggles.bias and err.bias_magnitude >= BIAS_MIN_MAGNITUDE:
        out.extend(_bias_arrow(err.bias_x, err.bias_y, err.bias_magnitude, center, scale * BIAS_ARROW_GAIN))

    return tuple(out)


def _bias_arrow(bx: float, by: float, magnitude: float, center: float, gain: float) -> list[Primitive]:
    end = Point(center + bx * gain, center + by * gain)
    angle = math.atan2(by, bx)
    left = Point(
        end.x - BIAS_HEAD_LEN * math.cos(angle - math.pi / 6.0),
        end.y - BIAS_HEAD_LEN * math.sin(angle - math.pi / 6.0),
    )
    right = Point(
        end.x - BIAS_HEAD_LEN * math.cos(angle + math.pi / 6.0),
        end.y - BIAS_HEAD_LEN * math.sin(angle + math.pi / 6.0),
    )
    return [
        LinePrim(Point(center, center), end, BIAS_COLOR, width=4.0, round_cap=True),
        PolygonPrim((end, left, right), BIAS_COLOR),
        TextPrim(Point(end.x + 8.0, end.y + 4.0), f"Bias: {magnitude:.1f}px", BIAS_COLOR, bold=True),
    ]


# ---------------------------------------------------------------------------
# Bar charts


@dataclass(frozen=True, slots=True)
class Bar:
    label: str
    value: int
    color: Rgba


@dataclass(frozen=True, slots=True)
class BarGroup:
    label: str
    bars: tuple[Bar, ...]


@dataclass(frozen=True, slots=True)
class LegendEntry:
    label: str
    color: Rgba


@dataclass(frozen=True, slots=True)
class BarChartStyle:
    bar_width: float
    bar_gap: float  # between bars of one group
    group_gap: float | None  # None spreads groups evenly across the width
    baseline_margin: float  # bar bottom sits this far above the surface bottom
    vertical_reserve: float  # height minus this is the tallest bar
    value_offset: float  # value label baseline above the bar top
    label_margin: float  # category label baseline above the surface bottom
    value_size: int
    label_size: int


SPACING_CHART_STYLE = BarChartStyle(
    bar_width=40.0,
    bar_gap=4.0,
    group_gap=30.0,
    baseline_margin=25.0,
    vertical_reserve=50.0,
    value_offset=5.0,
    label_margin=6.0,
    value_size=12,
    label_size=11,
)

SIZE_CHART_STYLE = BarChartStyle(
    bar_width=50.0,
    bar_gap=0.0,
    group_gap=None,
    baseline_margin=20.0,
    vertical_reserve=40.0,
    value_offset=6.0,
    label_margin=4.0,
    value_size=14,
    label_size=12,
)


def render_bar_chart(
    groups: Sequence[BarGroup],
    width: float,
    height: float,
    style: BarChartStyle,
    *,
    legend: Sequence[LegendEntry] = (),
    axis_title: str | None = None,
) -> tuple[Primitive, ...]:
    """Grouped bars with heights normalised to the largest value (at least 1)."""

    if not groups:
        return ()

    max_bars = max(len(g.bars) for g in groups)
    group_w = style.bar_width * max_bars + style.bar_gap * (max_bars - 1)
    n = len(groups)
    if style.group_gap is None:
        gap = (width - group_w * n) / (n + 1)
        start_x = gap
    else:
        gap = style.group_gap
        start_x = (width - (group_w * n + gap * (n - 1))) / 2.0

    max_value = max([b.value for g in groups for b in g.bars] + [1])
    usable = height - style.vertical_reserve
    baseline = height - style.baseline_margin

    out: list[Primitive] = []
    for gi, group in enumerate(groups):
        gx = start_x + gi * (group_w + gap)
        for bi, bar in enumerate(group.bars):
            bx = gx + bi * (style.bar_width + style.bar_gap)
            bh = (bar.value / max_value) * usable
            out.append(RectPrim(bx, baseline - bh, style.bar_width, bh, bar.color))
            out.append(
                TextPrim(
                    Point(bx + style.bar_width / 2.0, baseline - style.value_offset - bh),
                    str(bar.value),
                    VALUE_TEXT_COLOR,
                    size=style.value_size,
                    bold=True,
                    align=Align.CENTER,
                )
            )
        out.append(
            TextPrim(
                Point(gx + group_w / 2.0, height - style.label_margin),
                group.label,
                LABEL_TEXT_COLOR,
                size=style.label_size,
                align=Align.CENTER,
            )
        )

    for i, entry in enumerate(legend):
        lx = 10.0 + i * 60.0
        out.append(RectPrim(lx, 8.0, 12.0, 12.0, entry.color))
        out.append(TextPrim(Point(lx + 16.0, 17.0), entry.label, LABEL_TEXT_COLOR, size=10))

    if axis_title is not None:
        out.append(
            TextPrim(
                Point(12.0, height / 2.0),
                axis_title,
                AXIS_TEXT_COLOR,
                align=Align.CENTER,
                rotation_deg=-90.0,
            )
        )

    return tuple(out)
