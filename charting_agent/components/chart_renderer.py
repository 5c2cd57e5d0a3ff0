# charting_agent/components/chart_renderer.py
from __future__ import annotations

import base64
import io
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.font_manager as fm
import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.figure import Figure
from matplotlib.patches import Patch
from starlette.concurrency import run_in_threadpool

from charting_agent.components.csv_loader import Dataset, Value
from charting_agent.core.errors import ChartRenderError
from charting_agent.core.schemas import ChartRequest
from charting_agent.core.settings import get_settings

__all__ = [
    "PNG_DATA_URI_PREFIX",
    "build_chart_config",
    "render_chart",
    "render_chart_async",
    "setup_drawing_engine",
]

logger = logging.getLogger(__name__)

PNG_DATA_URI_PREFIX = "data:image/png;base64,"

_ROTATE_AFTER = 6        # tilt x labels when there are more categories than this
_LONG_LABEL = 10


# ---------- one-time engine setup ----------
@lru_cache(maxsize=1)
def setup_drawing_engine() -> Optional[str]:
    """
    Apply the seaborn theme and register the optional font, once per process.
    Returns the registered font family, or None when the default font is used.
    """
    settings = get_settings()
    sns.set_theme(style=settings.CHART_STYLE)

    font_path = settings.CHART_FONT_PATH
    if not font_path:
        return None
    logger.info("Registering chart font at %s", font_path)
    try:
        fm.fontManager.addfont(font_path)
        family = fm.FontProperties(fname=font_path).get_name() or settings.CHART_FONT_FAMILY
    except (OSError, RuntimeError, ValueError) as e:
        # keep rendering with the theme's default font
        logger.warning("Failed to register font %s: %s", font_path, e)
        return None
    matplotlib.rcParams["font.family"] = family
    logger.info("Font %s registered.", family)
    return family


# ---------- declarative config ----------
def _label_text(v: Value) -> str:
    if v is None:
        return ""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)

def build_chart_config(dataset: Dataset, request: ChartRequest) -> Dict[str, Any]:
    """
    Chart description in the {type, data: {labels, datasets}, options} shape.
    Labels come from the label column, one dataset per data column, all in row order.
    """
    if not dataset.records:
        raise ChartRenderError("No data provided for chart generation.")
    if request.label_column not in dataset.headers:
        raise ChartRenderError(f"Label column '{request.label_column}' not found in data headers.")
    for col in request.data_columns:
        if col not in dataset.headers:
            raise ChartRenderError(f"Data column '{col}' not found in data headers.")

    title = (request.title or "").strip()
    return {
        "type": request.chart_type,
        "data": {
            "labels": [_label_text(v) for v in dataset.column(request.label_column)],
            "datasets": [{"label": col, "data": dataset.column(col)} for col in request.data_columns],
        },
        "options": {
            "responsive": False,
            "animation": False,
            "plugins": {"title": {"display": bool(title), "text": title}},
        },
    }


# ---------- drawing ----------
def _to_numbers(values: List[Value]) -> pd.Series:
    """Numeric view of a dataset; anything non-numeric becomes NaN (a gap)."""
    prepared = [int(v) if isinstance(v, bool) else v for v in values]
    return pd.to_numeric(pd.Series(prepared, dtype=object), errors="coerce").astype(float)

def _style_category_axis(ax, labels: List[str], x: np.ndarray, axis_title: str) -> None:
    ax.set_xticks(x)
    tilt = len(labels) > _ROTATE_AFTER or any(len(s) > _LONG_LABEL for s in labels)
    ax.set_xticklabels(labels, rotation=45 if tilt else 0, ha="right" if tilt else "center")
    ax.set_xlabel(axis_title)

def _draw_bar(ax, labels: List[str], series: List[pd.Series], names: List[str], colors, axis_title: str) -> None:
    x = np.arange(len(labels))
    width = 0.8 / len(series)
    for i, (s, name) in enumerate(zip(series, names)):
        offset = (i - (len(series) - 1) / 2) * width
        ax.bar(x + offset, s.to_numpy(), width, label=name, color=colors[i % len(colors)])
    _style_category_axis(ax, labels, x, axis_title)
    ax.legend()

def _draw_line(ax, labels: List[str], series: List[pd.Series], names: List[str], colors, axis_title: str) -> None:
    x = np.arange(len(labels))
    for i, (s, name) in enumerate(zip(series, names)):
        ax.plot(x, s.to_numpy(), marker="o", label=name, color=colors[i % len(colors)])
    _style_category_axis(ax, labels, x, axis_title)
    ax.legend()

def _pie_sizes(s: pd.Series) -> np.ndarray:
    """Wedge sizes are magnitudes; gaps and non-finite values take no space."""
    sizes = s.abs()
    return sizes.where(np.isfinite(sizes), 0.0).to_numpy()

def _draw_pie(ax, labels: List[str], series: List[pd.Series], colors) -> None:
    # one ring per dataset, first dataset outermost
    rings = len(series)
    ring_width = 1.0 if rings == 1 else 0.7 / rings
    for i, s in enumerate(series):
        sizes = _pie_sizes(s)
        if not sizes.sum() > 0:
            # nothing to split: the ring stays empty
            continue
        props: Dict[str, Any] = {"edgecolor": "white"}
        if rings > 1:
            props["width"] = ring_width
        ax.pie(
            sizes,
            radius=1.0 - i * ring_width,
            colors=colors,
            startangle=90,
            counterclock=False,
            wedgeprops=props,
        )
    handles = [Patch(facecolor=colors[j % len(colors)], label=label) for j, label in enumerate(labels)]
    ax.legend(handles=handles, loc="center left", bbox_to_anchor=(1.0, 0.5), frameon=False)
    ax.set_aspect("equal")
    ax.set_axis_off()

def _draw(config: Dict[str, Any], label_column: str) -> bytes:
    settings = get_settings()
    dpi = settings.CHART_DPI
    labels: List[str] = config["data"]["labels"]
    datasets = config["data"]["datasets"]
    names = [d["label"] for d in datasets]
    series = [_to_numbers(d["data"]) for d in datasets]

    fig = Figure(figsize=(settings.CHART_WIDTH / dpi, settings.CHART_HEIGHT / dpi), dpi=dpi, layout="constrained")
    ax = fig.add_subplot()

    kind = config["type"]
    if kind == "bar":
        _draw_bar(ax, labels, series, names, sns.color_palette(n_colors=len(series)), label_column)
    elif kind == "line":
        _draw_line(ax, labels, series, names, sns.color_palette(n_colors=len(series)), label_column)
    elif kind == "pie":
        _draw_pie(ax, labels, series, sns.color_palette(n_colors=max(len(labels), 1)))
    else:
        raise ValueError(f"Unsupported chart type: {kind}")

    title = config["options"]["plugins"]["title"]
    if title["display"]:
        ax.set_title(title["text"])

    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=dpi)
    return buf.getvalue()


def render_chart(dataset: Dataset, request: ChartRequest) -> str:
    """
    Render the requested chart and return it as a PNG data URI.

    Raises:
        ChartRenderError: a precondition failed or the drawing engine raised;
            the engine's own message is kept.
    """
    setup_drawing_engine()
    config = build_chart_config(dataset, request)
    try:
        png = _draw(config, request.label_column)
    except Exception as e:
        logger.exception("Chart drawing failed (%s)", request.chart_type)
        raise ChartRenderError(str(e) or type(e).__name__) from e
    logger.info(
        "Rendered %s chart: %d labels, %d datasets, %d bytes",
        request.chart_type, len(config["data"]["labels"]), len(request.data_columns), len(png),
    )
    return PNG_DATA_URI_PREFIX + base64.b64encode(png).decode("utf-8")


async def render_chart_async(dataset: Dataset, request: ChartRequest) -> str:
    """render_chart() off the event loop."""
    return await run_in_threadpool(render_chart, dataset, request)
