from PIL import Image

from domain.models import Bounds, LatLng, ResolutionTier, ResolvedStop, RouteResult, StopRole
from services import map_route_renderer as mrr
from services.fallback_renderer import build_fallback_view
from services.route_assembler import assemble_map_view


def _redirect_output(monkeypatch, tmp_path):
    data_dir = tmp_path / "data"
    monkeypatch.setattr(mrr, "DATA_DIR", data_dir)
    monkeypatch.setattr(mrr, "MAP_OUTPUT_DIR", data_dir / "maps")
    return data_dir


def _route_view():
    sf, mont, la = LatLng(37.77, -122.42), LatLng(36.60, -121.89), LatLng(34.05, -118.24)
    result = RouteResult(
        tier=ResolutionTier.GEOCODED_POINTS,
        stops=(
            ResolvedStop(role=StopRole.ORIGIN, label="San Francisco", location=sf),
            ResolvedStop(role=StopRole.INTERMEDIATE, label="Monterey", location=mont),
            ResolvedStop(role=StopRole.DESTINATION, label="Los Angeles", location=la),
        ),
        path=(sf, mont, la),
        bounds=Bounds.around([sf, mont, la]),
    )
    return assemble_map_view(result)


def test_compute_bbox_widens_single_point():
    bbox = mrr._compute_bbox([(36.6, -121.9)])
    assert bbox["min_lat"] < 36.6 < bbox["max_lat"]
    assert bbox["span_lat"] == 0.01


def test_map_points_to_canvas_keeps_points_inside_margins():
    points = [(37.77, -122.42), (34.05, -118.24)]
    bbox = mrr._compute_bbox(points)
    coords = mrr._map_points_to_canvas(points, 1000, 600, bbox, margin_px=50)
    for x, y in coords:
        assert 50 <= x <= 950
        assert 50 <= y <= 550
    # north is up
    assert coords[0][1] < coords[1][1]


def test_render_route_map_writes_png(monkeypatch, tmp_path):
    data_dir = _redirect_output(monkeypatch, tmp_path)

    rel_path, abs_path = mrr.render_route_map("msg-1", _route_view(), width=300, height=200)

    assert rel_path == "maps/route_msg-1.png"
    assert (data_dir / rel_path).exists()
    with Image.open(abs_path) as img:
        assert img.size == (300, 200)


def test_render_route_map_sanitizes_view_id(monkeypatch, tmp_path):
    data_dir = _redirect_output(monkeypatch, tmp_path)

    rel_path, _ = mrr.render_route_map("../../etc/passwd", _route_view(), width=200, height=100)

    assert "/" not in rel_path[len("maps/"):]
    assert (data_dir / rel_path).parent == data_dir / "maps"


def test_render_route_map_failure_returns_empty(monkeypatch, tmp_path):
    _redirect_output(monkeypatch, tmp_path)

    def broken_save(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(mrr, "_save", broken_save)
    assert mrr.render_route_map("msg-2", _route_view()) == ("", "")


def test_render_schematic_map(monkeypatch, tmp_path):
    data_dir = _redirect_output(monkeypatch, tmp_path)

    many = build_fallback_view(["San Francisco", "Carmel-by-the-Sea", "Los Angeles"])
    single = build_fallback_view(["Santa Barbara"])
    rel_many, _ = mrr.render_schematic_map("many", many, width=400, height=150)
    rel_single, _ = mrr.render_schematic_map("single", single, width=400, height=150)

    assert (data_dir / rel_many).exists()
    assert (data_dir / rel_single).exists()


def test_nothing_to_draw_returns_empty(monkeypatch, tmp_path):
    _redirect_output(monkeypatch, tmp_path)
    assert mrr.render_schematic_map("none", build_fallback_view([])) == ("", "")
