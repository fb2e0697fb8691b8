"""
Static route map surface using Pillow.

Draws an assembled MapView (markers + route line) or a schematic FallbackView
to PNG. Rendering failures never propagate: callers get empty paths back and
switch to the schematic fallback.
"""
import math
import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont

from domain.models import LatLng
from services.fallback_renderer import FallbackView
from services.route_assembler import MapView

BASE_DIR = Path(__file__).resolve().parents[1]
UPSCALE_FACTOR = 2

# Directories
DATA_DIR = BASE_DIR / "data"
MAP_OUTPUT_DIR = DATA_DIR / "maps"

MAP_WIDTH = 1200
MAP_HEIGHT = 800
SCHEMATIC_WIDTH = 1200
SCHEMATIC_HEIGHT = 400
MAP_MARGIN_PX = 70
BG_COLOR = "#f1f5f9"
GRID_COLOR = (148, 163, 184, 60)
GRID_SPACING = 100
FRAME_COLOR = "#cbd5e1"
MARKER_OUTLINE = (255, 255, 255, 255)
LABEL_COLOR = "#334155"
LEGEND_MARGIN_PX = 16


def _rgba(color: str, alpha: int = 255) -> Tuple[int, int, int, int]:
    r, g, b = ImageColor.getrgb(color)[:3]
    return (r, g, b, alpha)


def _load_font(size: int) -> ImageFont.ImageFont:
    try:
        return ImageFont.truetype("DejaVuSans.ttf", size)
    except Exception:
        return ImageFont.load_default()


def _measure_text(font: ImageFont.ImageFont, text: str) -> Tuple[int, int]:
    """Safely measure text size across Pillow versions using getbbox."""
    bbox = font.getbbox(text)
    return bbox[2] - bbox[0], bbox[3] - bbox[1]


def _compute_bbox(points: Sequence[Tuple[float, float]], padding_ratio: float = 0.1, min_span_deg: float = 0.01) -> dict:
    """Compute a padded bbox; tiny spans are widened so single points stay centered."""
    lats = [lat for lat, _ in points]
    lons = [lon for _, lon in points]
    min_lat, max_lat = min(lats), max(lats)
    min_lon, max_lon = min(lons), max(lons)

    span_lat = max(max_lat - min_lat, min_span_deg)
    span_lon = max(max_lon - min_lon, min_span_deg)
    center_lat = (min_lat + max_lat) / 2.0
    center_lon = (min_lon + max_lon) / 2.0
    lat_half = span_lat * (0.5 + padding_ratio)
    lon_half = span_lon * (0.5 + padding_ratio)

    return {
        "min_lat": center_lat - lat_half,
        "max_lat": center_lat + lat_half,
        "min_lon": center_lon - lon_half,
        "max_lon": center_lon + lon_half,
        "span_lat": span_lat,
        "span_lon": span_lon,
    }


def _map_points_to_canvas(
    points: Sequence[Tuple[float, float]],
    width: int,
    height: int,
    bbox: dict,
    margin_px: int = MAP_MARGIN_PX,
) -> List[Tuple[float, float]]:
    """Project lat/lon to canvas using a local equirectangular projection."""
    if not points:
        return []
    lat_center = (bbox["min_lat"] + bbox["max_lat"]) / 2.0
    lon_center = (bbox["min_lon"] + bbox["max_lon"]) / 2.0
    cos_lat = math.cos(math.radians(lat_center))

    data_width = max((bbox["max_lon"] - bbox["min_lon"]) * cos_lat, 1e-9)
    data_height = max(bbox["max_lat"] - bbox["min_lat"], 1e-9)
    inner_width = max(width - 2 * margin_px, 1)
    inner_height = max(height - 2 * margin_px, 1)
    scale = min(inner_width / data_width, inner_height / data_height)

    cx_canvas = width / 2.0
    cy_canvas = height / 2.0
    mapped: List[Tuple[float, float]] = []
    for lat, lon in points:
        dx = (lon - lon_center) * cos_lat
        dy = lat - lat_center
        mapped.append((cx_canvas + dx * scale, cy_canvas - dy * scale))
    return mapped


def _draw_grid(draw: ImageDraw.ImageDraw, width: int, height: int) -> None:
    step = GRID_SPACING * UPSCALE_FACTOR
    for x in range(0, width + 1, step):
        draw.line([(x, 0), (x, height)], fill=GRID_COLOR, width=1)
    for y in range(0, height + 1, step):
        draw.line([(0, y), (width, y)], fill=GRID_COLOR, width=1)


def _draw_marker(draw: ImageDraw.ImageDraw, center: Tuple[float, float], radius: int, fill, outline) -> None:
    """Draw a circular marker."""
    x, y = center
    bbox = (x - radius, y - radius, x + radius, y + radius)
    stroke_width = max(1, int(2 * UPSCALE_FACTOR))
    draw.ellipse(bbox, fill=fill, outline=outline, width=stroke_width)


def _interpolate_color(
    start: Tuple[int, int, int, int], end: Tuple[int, int, int, int], t: float
) -> Tuple[int, int, int, int]:
    t = max(0.0, min(1.0, t))
    return tuple(int(s + (e - s) * t) for s, e in zip(start, end))


def _draw_gradient_polyline(
    draw: ImageDraw.ImageDraw,
    coords: List[Tuple[float, float]],
    start_color: Tuple[int, int, int, int],
    end_color: Tuple[int, int, int, int],
    width: int,
) -> None:
    """Draw a polyline with a start->end color gradient."""
    if len(coords) < 2:
        return

    lengths = [0.0]
    total = 0.0
    for i in range(1, len(coords)):
        x1, y1 = coords[i - 1]
        x2, y2 = coords[i]
        total += math.hypot(x2 - x1, y2 - y1)
        lengths.append(total)

    if total <= 0:
        return

    for i in range(1, len(coords)):
        color_t = (lengths[i - 1] + lengths[i]) / (2 * total)
        color = _interpolate_color(start_color, end_color, color_t)
        draw.line([coords[i - 1], coords[i]], fill=color, width=width, joint="curve")


def _draw_legend(draw: ImageDraw.ImageDraw, width: int, start_color, end_color) -> None:
    """Draw a small Start/End legend in the top-right corner."""
    scale = UPSCALE_FACTOR
    padding = int(LEGEND_MARGIN_PX * scale)
    radius = int(6 * scale)
    line_gap = int(22 * scale)
    font = _load_font(int(13 * scale))
    text_w = max(_measure_text(font, "Start")[0], _measure_text(font, "End")[0])
    x0 = max(padding, width - padding - text_w - 3 * radius)
    for offset, (text, color) in enumerate((("Start", start_color), ("End", end_color))):
        y = padding + offset * line_gap
        _draw_marker(draw, (x0, y), radius, fill=color, outline=MARKER_OUTLINE)
        draw.text((x0 + 2 * radius, y - radius), text, fill=LABEL_COLOR, font=font)


def _save(img: Image.Image, view_id: str, prefix: str, width: int, height: int) -> Tuple[str, str]:
    MAP_OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    safe_id = re.sub(r"[^A-Za-z0-9_-]", "_", view_id) or "view"
    output_path = MAP_OUTPUT_DIR / f"{prefix}_{safe_id}.png"
    final_img = img.resize((width, height), resample=Image.LANCZOS)
    final_img.save(output_path, format="PNG")
    rel_path = str(output_path.relative_to(DATA_DIR))
    abs_path = str(output_path.resolve())
    print(f"[MAP] Rendered {prefix} for {view_id} to {rel_path}")
    return rel_path, abs_path


def render_route_map(
    view_id: str,
    view: MapView,
    width: int = MAP_WIDTH,
    height: int = MAP_HEIGHT,
) -> Tuple[str, str]:
    """
    Render a static PNG for an assembled map view.

    Returns:
        (relative_path, absolute_path). Empty strings if rendering fails or
        there is nothing to draw. relative_path is relative to data/.
    """
    if not view.markers:
        return "", ""
    try:
        line_points: List[LatLng] = list(view.polyline.points) if view.polyline else []
        marker_points = [m.position for m in view.markers]
        all_points = [p.as_tuple() for p in line_points + marker_points]
        bbox = _compute_bbox(all_points)

        draw_width, draw_height = width * UPSCALE_FACTOR, height * UPSCALE_FACTOR
        margin = MAP_MARGIN_PX * UPSCALE_FACTOR
        img = Image.new("RGBA", (draw_width, draw_height), color=BG_COLOR)
        draw = ImageDraw.Draw(img, "RGBA")
        _draw_grid(draw, draw_width, draw_height)

        start_color = _rgba(view.markers[0].color)
        end_color = _rgba(view.markers[-1].color)
        if view.polyline and len(line_points) >= 2:
            coords = _map_points_to_canvas([p.as_tuple() for p in line_points], draw_width, draw_height, bbox, margin)
            line_width = int(view.polyline.weight * UPSCALE_FACTOR)
            draw.line(coords, fill=(255, 255, 255, 220), width=line_width + 4 * UPSCALE_FACTOR, joint="curve")
            _draw_gradient_polyline(draw, coords, start_color, end_color, width=line_width)

        marker_coords = _map_points_to_canvas(
            [p.as_tuple() for p in marker_points], draw_width, draw_height, bbox, margin
        )
        # Endpoints last so they sit on top of intermediates.
        for marker, xy in sorted(zip(view.markers, marker_coords), key=lambda mc: mc[0].z_index):
            radius = int(marker.size / 2 * UPSCALE_FACTOR)
            _draw_marker(draw, xy, radius, fill=_rgba(marker.color), outline=MARKER_OUTLINE)

        if len(view.markers) >= 2:
            _draw_legend(draw, draw_width, start_color, end_color)
        frame = int(6 * UPSCALE_FACTOR)
        draw.rounded_rectangle(
            (frame, frame, draw_width - frame, draw_height - frame),
            radius=int(12 * UPSCALE_FACTOR),
            outline=FRAME_COLOR,
            width=int(3 * UPSCALE_FACTOR),
        )
        return _save(img, view_id, "route", width, height)
    except Exception as e:
        print(f"[map_route_renderer] Failed to render route map for {view_id}: {e}")
        return "", ""


def render_schematic_map(
    view_id: str,
    view: FallbackView,
    width: int = SCHEMATIC_WIDTH,
    height: int = SCHEMATIC_HEIGHT,
) -> Tuple[str, str]:
    """
    Render the non-geographic preview: evenly spaced stops on a horizontal line,
    or a single centered pin. Returns (relative_path, absolute_path) or empty
    strings.
    """
    if not view.nodes:
        return "", ""
    try:
        draw_width, draw_height = width * UPSCALE_FACTOR, height * UPSCALE_FACTOR
        img = Image.new("RGBA", (draw_width, draw_height), color=BG_COLOR)
        draw = ImageDraw.Draw(img, "RGBA")
        font = _load_font(int(14 * UPSCALE_FACTOR))
        small_font = _load_font(int(11 * UPSCALE_FACTOR))
        cy = draw_height / 2.0

        if len(view.nodes) == 1:
            node = view.nodes[0]
            radius = int(32 * UPSCALE_FACTOR)
            _draw_marker(draw, (draw_width / 2.0, cy - radius), radius, fill=_rgba(node.color), outline=MARKER_OUTLINE)
            text_w, _ = _measure_text(font, node.display_label)
            draw.text(((draw_width - text_w) / 2.0, cy + radius / 2), node.display_label, fill=LABEL_COLOR, font=font)
            return _save(img, view_id, "schematic", width, height)

        margin = MAP_MARGIN_PX * UPSCALE_FACTOR * 1.5
        step = (draw_width - 2 * margin) / (len(view.nodes) - 1)
        xs = [margin + i * step for i in range(len(view.nodes))]
        _draw_gradient_polyline(
            draw,
            [(xs[0], cy), (xs[-1], cy)],
            _rgba(view.nodes[0].color),
            _rgba(view.nodes[-1].color),
            width=int(4 * UPSCALE_FACTOR),
        )
        radius = int(8 * UPSCALE_FACTOR)
        for x, node in zip(xs, view.nodes):
            _draw_marker(draw, (x, cy), radius, fill=_rgba(node.color), outline=MARKER_OUTLINE)
            text_w, text_h = _measure_text(font, node.display_label)
            draw.text((x - text_w / 2.0, cy + 2 * radius), node.display_label, fill=LABEL_COLOR, font=font)
            tag: Optional[str] = "Start" if node.is_start else "End" if node.is_end else None
            if tag:
                tag_w, _ = _measure_text(small_font, tag)
                draw.text(
                    (x - tag_w / 2.0, cy + 2 * radius + text_h + 6 * UPSCALE_FACTOR),
                    tag,
                    fill=_rgba(node.color),
                    font=small_font,
                )
        return _save(img, view_id, "schematic", width, height)
    except Exception as e:
        print(f"[map_route_renderer] Failed to render schematic for {view_id}: {e}")
        return "", ""
