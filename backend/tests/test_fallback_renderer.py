from domain.models import PlaceReference, StopRole
from services.fallback_renderer import (
    GOOGLE_MAPS_DIR_URL,
    GOOGLE_MAPS_SEARCH_URL,
    KIND_LINK_ONLY,
    KIND_SCHEMATIC,
    KIND_SINGLE,
    build_fallback_view,
    build_route_deep_link,
    encode_uri_component,
    truncate_label,
)
from services.route_assembler import DESTINATION_COLOR, INTERMEDIATE_COLOR, ORIGIN_COLOR


def test_truncate_label():
    assert truncate_label("Monterey") == "Monterey"
    assert truncate_label("Carmel-by-the-Sea") == "Carmel-by-the-S..."
    assert truncate_label("x" * 15) == "x" * 15


def test_encode_uri_component_matches_browser_rules():
    assert encode_uri_component("Big Sur, CA") == "Big%20Sur%2C%20CA"
    assert encode_uri_component("Fisherman's Wharf (SF)") == "Fisherman's%20Wharf%20(SF)"
    assert encode_uri_component("a/b&c") == "a%2Fb%26c"


def test_deep_link_for_route():
    link = build_route_deep_link(["San Francisco", "Big Sur", "Los Angeles"])
    assert link == GOOGLE_MAPS_DIR_URL + "San%20Francisco/Big%20Sur/Los%20Angeles"


def test_deep_link_for_single_place():
    assert build_route_deep_link(["Monterey"]) == GOOGLE_MAPS_SEARCH_URL + "Monterey"


def test_deep_link_falls_back_to_reference_uri():
    refs = [
        PlaceReference(provider_id="1", title="No link"),
        PlaceReference(provider_id="2", title="Aquarium", uri="https://maps.google.com/?cid=42"),
    ]
    assert build_route_deep_link([], refs) == "https://maps.google.com/?cid=42"
    assert build_route_deep_link([], []) is None


def test_schematic_nodes_have_roles_colors_and_truncated_labels():
    view = build_fallback_view(["San Francisco", "Carmel-by-the-Sea", "Los Angeles"])

    assert view.kind == KIND_SCHEMATIC
    assert [n.role for n in view.nodes] == [StopRole.ORIGIN, StopRole.INTERMEDIATE, StopRole.DESTINATION]
    assert [n.color for n in view.nodes] == [ORIGIN_COLOR, INTERMEDIATE_COLOR, DESTINATION_COLOR]
    assert view.nodes[1].label == "Carmel-by-the-Sea"
    assert view.nodes[1].display_label == "Carmel-by-the-S..."
    assert view.nodes[0].is_start and not view.nodes[0].is_end
    assert view.nodes[-1].is_end and not view.nodes[-1].is_start
    assert view.deep_link.startswith(GOOGLE_MAPS_DIR_URL)


def test_single_place_fallback():
    view = build_fallback_view(["Santa Barbara"])
    assert view.kind == KIND_SINGLE
    assert len(view.nodes) == 1
    assert view.nodes[0].color == INTERMEDIATE_COLOR
    assert view.deep_link == GOOGLE_MAPS_SEARCH_URL + "Santa%20Barbara"


def test_no_places_gives_link_only_view():
    refs = [PlaceReference(provider_id="9", title="Somewhere", uri="https://maps.google.com/?cid=9")]
    view = build_fallback_view([], refs)
    assert view.kind == KIND_LINK_ONLY
    assert view.nodes == []
    assert view.deep_link == "https://maps.google.com/?cid=9"
