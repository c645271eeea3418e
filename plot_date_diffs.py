#!/usr/bin/env python3
"""
plot_date_diffs.py  –  Line chart of the gaps between consecutive timestamps.

Usage
-----
$ python plot_date_diffs.py

The script reads *dates.txt* from the working directory.  Every non-blank
line holds one timestamp without a year, e.g. ``Jan 01 13:45:00``.  The
timestamps are sorted, the gap between each adjacent pair is computed, and
the gaps are plotted against the time elapsed since the first timestamp.
The chart is written to *output.png*.

All lines are assumed to fall within one year (``PlotConfig.year``); a
December-to-January sequence is not recognised as a rollover.
"""

import math
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from matplotlib.font_manager import FontProperties
from matplotlib.ticker import FixedLocator, FuncFormatter, MaxNLocator


DATE_FORMAT = "%Y %b %d %H:%M:%S"
SECONDS_PER_DAY = 86400
EPOCH = pd.Timestamp("1970-01-01")
ONE_SECOND = pd.Timedelta(seconds=1)
DPI = 128
LABEL_GAP_PX = 12


class DiffPlotError(Exception):
    """Base class for every failure that aborts a run."""


class IoError(DiffPlotError):
    """The input could not be read or the output could not be written."""


class ParseError(DiffPlotError, ValueError):
    def __init__(self, lineno: int, text: str):
        super().__init__(
            f"line {lineno}: cannot parse {text!r} "
            f"(expected '<month> <day> HH:MM:SS', e.g. 'Jan 01 13:45:00')"
        )
        self.lineno = lineno
        self.text = text


class InsufficientDataError(DiffPlotError, ValueError):
    pass


class RenderError(DiffPlotError):
    pass


class GapUnit(Enum):
    """Unit the gaps are expressed in, along with its presentation."""

    SECONDS = (1, 1, "seconds", "s")
    MINUTES = (60, 0.1, "minutes", "min")

    def __init__(self, seconds_per_unit, padding, label, short):
        self.seconds_per_unit = seconds_per_unit
        self.padding = padding
        self.label = label
        self.short = short

    def convert(self, seconds: pd.Series) -> pd.Series:
        if self.seconds_per_unit == 1:
            return seconds.astype("int64")
        return seconds / float(self.seconds_per_unit)

    @property
    def caption(self) -> str:
        return f"Date Differences in {self.label.title()}"

    @property
    def legend(self) -> str:
        return f"Diff ({self.short})"


class Granularity(Enum):
    """Spacing of the major x ticks and the label style that goes with it."""

    HOURLY = (3600, "%H:%M:%S")
    DAILY = (SECONDS_PER_DAY, "%b %d - %H:%M:%S")

    def __init__(self, interval, pattern):
        self.interval = interval
        self.pattern = pattern

    @classmethod
    def for_span(cls, span_seconds) -> "Granularity":
        return cls.HOURLY if span_seconds < SECONDS_PER_DAY else cls.DAILY

    def format_label(self, first: pd.Timestamp, x) -> str:
        # fractional seconds are truncated
        return (first + pd.Timedelta(seconds=int(x))).strftime(self.pattern)


@dataclass(frozen=True)
class PlotConfig:
    gap_unit: GapUnit
    canvas: tuple[int, int]
    input_path: Path = Path("dates.txt")
    output_path: Path = Path("output.png")
    year: int = 2025


SECONDS_CONFIG = PlotConfig(gap_unit=GapUnit.SECONDS, canvas=(640, 480))
MINUTES_CONFIG = PlotConfig(gap_unit=GapUnit.MINUTES, canvas=(2048, 1024))
DEFAULT_CONFIG = MINUTES_CONFIG


@dataclass(frozen=True)
class AxisPlan:
    x_min: int
    x_max: int
    y_min: float
    y_max: float
    granularity: Granularity
    first: pd.Timestamp
    ticks: tuple[int, ...]

    @property
    def tick_interval(self) -> int:
        return self.granularity.interval

    def format_tick(self, x) -> str:
        return self.granularity.format_label(self.first, x)


# ---- pipeline stages ------------------------------------------------------

def load_text(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise IoError(f"input file {str(path)!r} not found") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise IoError(f"cannot read {str(path)!r}: {exc}") from exc


def parse_timestamps(text: str, year: int) -> pd.Series:
    """Parse every non-blank line, in file order; the first bad line aborts."""
    numbered = [(n, line.strip()) for n, line in enumerate(text.splitlines(), 1)]
    numbered = [(n, line) for n, line in numbered if line]

    raw = pd.Series([f"{year} {line}" for _, line in numbered], dtype=object)
    parsed = pd.to_datetime(raw, format=DATE_FORMAT, errors="coerce")

    bad = np.flatnonzero(parsed.isna().to_numpy())
    if bad.size:
        lineno, line = numbered[bad[0]]
        raise ParseError(lineno, line)
    return parsed.reset_index(drop=True)


def validate(series: pd.Series) -> None:
    if len(series) < 2:
        raise InsufficientDataError(
            f"need at least two dates to compute differences, got {len(series)}"
        )


def sort_timestamps(series: pd.Series) -> pd.Series:
    return series.sort_values(kind="mergesort", ignore_index=True)


def compute_diffs(series: pd.Series, unit: GapUnit) -> pd.DataFrame:
    """One row per adjacent pair: seconds since the first date, and the gap."""
    first = series.iloc[0]
    later = series.iloc[1:]
    x_offset = ((later - first) // ONE_SECOND).astype("int64")
    gap_seconds = (series.diff().iloc[1:] // ONE_SECOND).astype("int64")
    return pd.DataFrame({
        "x_offset": x_offset.to_numpy(),
        "gap": unit.convert(gap_seconds).to_numpy(),
    })


def epoch_seconds(moment: pd.Timestamp) -> int:
    return int((moment - EPOCH) // ONE_SECOND)


def plan_axes(series: pd.Series, diffs: pd.DataFrame, unit: GapUnit) -> AxisPlan:
    first = series.iloc[0]
    x_max = int(diffs["x_offset"].iloc[-1])
    granularity = Granularity.for_span(x_max)
    interval = granularity.interval

    # first tick lands on the next hour/day boundary at or after the first date
    first_epoch = epoch_seconds(first)
    first_tick = -(-first_epoch // interval) * interval - first_epoch
    ticks = tuple(int(t) for t in np.arange(first_tick, x_max + 1, interval))

    return AxisPlan(
        x_min=0,
        x_max=x_max,
        y_min=float(diffs["gap"].min()) - unit.padding,
        y_max=float(diffs["gap"].max()) + unit.padding,
        granularity=granularity,
        first=first,
        ticks=ticks,
    )


def x_locator(fig: Figure, ax, plan: AxisPlan):
    """Pick x ticks whose labels fit side by side in the axes width."""
    renderer = fig.canvas.get_renderer()
    font = FontProperties(size=matplotlib.rcParams["xtick.labelsize"])
    samples = [plan.format_tick(t) for t in plan.ticks] or [plan.format_tick(0)]
    label_width = max(
        renderer.get_text_width_height_descent(s, font, ismath=False)[0]
        for s in samples
    )
    slot = label_width + LABEL_GAP_PX
    axes_width = ax.get_window_extent(renderer).width

    if not plan.ticks:
        # span never reaches an hour boundary: let matplotlib place the ticks
        return MaxNLocator(nbins=max(1, int(axes_width // slot)), integer=True)

    px_per_second = axes_width / max(plan.x_max - plan.x_min, 1)
    step = max(1, math.ceil(slot / (plan.tick_interval * px_per_second)))
    return FixedLocator(plan.ticks[::step])


def draw_chart(diffs: pd.DataFrame, plan: AxisPlan, config: PlotConfig) -> Figure:
    unit = config.gap_unit
    width, height = config.canvas

    fig, ax = plt.subplots(figsize=(width / DPI, height / DPI), dpi=DPI)
    try:
        ax.plot(diffs["x_offset"], diffs["gap"], color="red", label=unit.legend)
        ax.set_xlim(plan.x_min, plan.x_max)
        ax.set_ylim(plan.y_min, plan.y_max)

        ax.xaxis.set_major_locator(x_locator(fig, ax, plan))
        ax.xaxis.set_major_formatter(FuncFormatter(lambda x, _pos: plan.format_tick(x)))
        ax.grid(True)

        ax.set_xlabel("Time (since first date)")
        ax.set_ylabel(f"Difference ({unit.label})")
        ax.set_title(unit.caption, fontsize=20)
        ax.legend(edgecolor="black")
    except Exception:
        plt.close(fig)
        raise
    return fig


def render(diffs: pd.DataFrame, plan: AxisPlan, config: PlotConfig) -> Path:
    output = Path(config.output_path)
    # the image only appears under its real name once it is complete
    partial = output.with_name(output.name + ".part")

    fig = None
    try:
        fig = draw_chart(diffs, plan, config)
        fig.savefig(partial, dpi=DPI, format="png")
        partial.replace(output)
    except OSError as exc:
        raise IoError(f"cannot write {str(output)!r}: {exc}") from exc
    except Exception as exc:
        raise RenderError(f"failed to draw chart: {exc}") from exc
    finally:
        if fig is not None:
            plt.close(fig)
        partial.unlink(missing_ok=True)
    return output


def run(config: PlotConfig = DEFAULT_CONFIG) -> Path:
    text = load_text(config.input_path)
    series = parse_timestamps(text, config.year)
    validate(series)
    series = sort_timestamps(series)

    diffs = compute_diffs(series, config.gap_unit)
    plan = plan_axes(series, diffs, config.gap_unit)
    output = render(diffs, plan, config)

    print(f"Plot saved to {output}")
    return output


def main() -> None:
    try:
        run()
    except DiffPlotError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
