"""
Frequency snapshot chart layout.

Pure geometry: turns a FrequencySnapshot and the EQ adjustment points into
bars, axis ticks and an optional placeholder message, in plot coordinates
(origin at the top-left of the plot area, inside the margins). The chart
widget paints whatever layout() returns and nothing else.
"""

import math
from typing import NamedTuple, Optional, Sequence

from eqcreator.audio.capture import FrequencySnapshot

FREQ_MIN_HZ = 20.0
FREQ_MAX_HZ = 20000.0
AMPLITUDE_MAX = 255
MATCH_TOLERANCE = 0.1       # log10 units, roughly a quarter octave
X_TICK_COUNT = 5
Y_TICK_COUNT = 5
MIN_BAR_WIDTH = 1.0

NO_DATA_MESSAGE = "No audio data to display."
X_TITLE = "Frequency (Hz)"
Y_TITLE = "Amplitude"

# Bar tones
BOOST = "boost"
CUT = "cut"
NEUTRAL = "neutral"


class Margins(NamedTuple):
    top: int
    right: int
    bottom: int
    left: int


DEFAULT_MARGINS = Margins(top=20, right=20, bottom=40, left=50)


class BinDatum(NamedTuple):
    frequency: float
    amplitude: int


class Bar(NamedTuple):
    x: float
    y: float
    width: float
    height: float
    frequency: float
    amplitude: int
    tone: str


class Tick(NamedTuple):
    value: float
    position: float
    label: str


class ChartLayout(NamedTuple):
    plot_width: float
    plot_height: float
    margins: Margins
    x_ticks: tuple[Tick, ...]
    y_ticks: tuple[Tick, ...]
    bars: tuple[Bar, ...]
    message: Optional[str]
    x_title: str = X_TITLE
    y_title: str = Y_TITLE


# ── Scales ───────────────────────────────────────────────────────────

class LogScale:
    """Base-10 log mapping from a positive domain onto a pixel range."""

    def __init__(self, domain: tuple[float, float], range_: tuple[float, float]):
        self.domain = domain
        self.range = range_
        self._log0 = math.log10(domain[0])
        self._log1 = math.log10(domain[1])

    def __call__(self, value: float) -> float:
        t = (math.log10(value) - self._log0) / (self._log1 - self._log0)
        return self.range[0] + t * (self.range[1] - self.range[0])

    def ticks(self) -> list[float]:
        """Every 1..9 x 10^k inside the domain."""
        lo, hi = self.domain
        values = []
        for exp in range(math.floor(self._log0), math.ceil(self._log1) + 1):
            for k in range(1, 10):
                v = float(k * 10 ** exp) if exp >= 0 else k / 10 ** -exp
                if lo <= v <= hi:
                    values.append(v)
        return values

    def tick_labels(self, count: int) -> list[str]:
        """
        SI labels for ticks(), blanking the in-between ticks so that
        roughly ``count`` labels remain (decades always keep theirs).
        """
        values = self.ticks()
        if not values:
            return []
        keep = max(1.0, 10 * count / len(values))
        labels = []
        for v in values:
            mantissa = v / 10 ** round(math.log10(v))
            if mantissa * 10 < 9.5:
                mantissa *= 10
            labels.append(format_si(v) if mantissa <= keep else "")
        return labels


class LinearScale:
    def __init__(self, domain: tuple[float, float], range_: tuple[float, float]):
        self.domain = domain
        self.range = range_

    def __call__(self, value: float) -> float:
        d0, d1 = self.domain
        t = (value - d0) / (d1 - d0)
        return self.range[0] + t * (self.range[1] - self.range[0])

    def ticks(self, count: int) -> list[float]:
        """Round-number ticks, about ``count`` of them, inside the domain."""
        d0, d1 = self.domain
        step = _nice_step(d0, d1, count)
        if step <= 0:
            return [float(d0)]
        first = math.ceil(d0 / step)
        last = math.floor(d1 / step)
        return [i * step for i in range(first, last + 1)]


def _nice_step(start: float, stop: float, count: int) -> float:
    raw = (stop - start) / max(1, count)
    if raw <= 0:
        return 0.0
    power = math.floor(math.log10(raw))
    error = raw / 10 ** power
    if error >= math.sqrt(50):
        factor = 10
    elif error >= math.sqrt(10):
        factor = 5
    elif error >= math.sqrt(2):
        factor = 2
    else:
        factor = 1
    return factor * 10 ** power


def format_si(value: float) -> str:
    """One significant digit with an SI suffix: 100 -> '100', 2000 -> '2k'."""
    if value == 0:
        return "0"
    exponent = math.floor(math.log10(abs(value)))
    rounded = round(value, -exponent)
    for threshold, suffix in ((1e9, "G"), (1e6, "M"), (1e3, "k")):
        if abs(rounded) >= threshold:
            return f"{rounded / threshold:g}{suffix}"
    return f"{rounded:g}"


# ── Bins and colours ─────────────────────────────────────────────────

def bin_frequency(index: int, sample_rate: float, total_bins: int) -> float:
    """Center frequency of bin ``index`` out of ``total_bins``."""
    return index * sample_rate / (2 * total_bins)


def bin_data(snapshot: FrequencySnapshot) -> list[BinDatum]:
    """Frequency/amplitude pairs for every bin inside 20 Hz – 20 kHz."""
    total = len(snapshot.magnitudes)
    if total == 0 or snapshot.sample_rate <= 0:
        return []
    data = []
    for i, amplitude in enumerate(snapshot.magnitudes):
        freq = bin_frequency(i, snapshot.sample_rate, total)
        if FREQ_MIN_HZ <= freq <= FREQ_MAX_HZ:
            data.append(BinDatum(freq, int(amplitude)))
    return data


def match_adjustment(frequency: float, adjustments: Sequence):
    """
    First adjustment point within MATCH_TOLERANCE of ``frequency`` in
    log10 space, or None. Input order decides ties, not distance.
    """
    if frequency <= 0:
        return None
    log_f = math.log10(frequency)
    for point in adjustments:
        if point.frequency <= 0:
            continue
        if abs(math.log10(point.frequency) - log_f) < MATCH_TOLERANCE:
            return point
    return None


def bar_tone(frequency: float, adjustments: Sequence) -> str:
    point = match_adjustment(frequency, adjustments)
    if point is None:
        return NEUTRAL
    return BOOST if point.gain > 0 else CUT


# ── Layout ───────────────────────────────────────────────────────────

def layout(snapshot: FrequencySnapshot, adjustments: Sequence,
           width: float, height: float,
           margins: Margins = DEFAULT_MARGINS) -> Optional[ChartLayout]:
    """
    Lay out the snapshot chart for a canvas of ``width`` x ``height``.

    Returns None when the plot area has no room (e.g. the widget is not
    laid out yet). A snapshot without usable data yields axes plus a
    placeholder ``message`` and no bars.
    """
    plot_w = width - margins.left - margins.right
    plot_h = height - margins.top - margins.bottom
    if plot_w <= 0 or plot_h <= 0:
        return None

    x = LogScale((FREQ_MIN_HZ, FREQ_MAX_HZ), (0.0, plot_w))
    y = LinearScale((0.0, float(AMPLITUDE_MAX)), (plot_h, 0.0))

    x_ticks = tuple(
        Tick(v, x(v), label)
        for v, label in zip(x.ticks(), x.tick_labels(X_TICK_COUNT))
    )
    y_ticks = tuple(Tick(v, y(v), f"{v:g}") for v in y.ticks(Y_TICK_COUNT))

    data = bin_data(snapshot)
    if not data:
        return ChartLayout(
            plot_w, plot_h, margins, x_ticks, y_ticks, (),
            snapshot.message or NO_DATA_MESSAGE,
        )

    bar_width = max(plot_w / len(data), MIN_BAR_WIDTH)
    adjustments = tuple(adjustments)
    bars = []
    for d in data:
        top = y(d.amplitude)
        bars.append(Bar(
            x=x(d.frequency),
            y=top,
            width=bar_width,
            height=plot_h - top,
            frequency=d.frequency,
            amplitude=d.amplitude,
            tone=bar_tone(d.frequency, adjustments),
        ))
    return ChartLayout(plot_w, plot_h, margins, x_ticks, y_ticks, tuple(bars), None)
