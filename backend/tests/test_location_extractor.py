import pytest

from services.location_extractor import (
    RULE_EMPHASIS_COLON,
    RULE_ENUMERATED,
    STOP_WORDS,
    clean_locations,
    extract_locations,
    find_candidates,
    is_valid_place_name,
    normalize_place_key,
)

ROAD_TRIP_ANSWER = """Here's a scenic drive down the coast!

**Route:** Highway 1 south

1. **San Francisco:** Start at the Golden Gate Bridge.
2. **Monterey** - Visit the aquarium.
3. **Big Sur;** Stop at McWay Falls.
4. **Los Angeles**

**Scenic Stops:** Bixby Bridge, Pfeiffer Beach
**Santa Barbara:** Great for lunch.
"""


def test_extracts_enumerated_and_emphasis_items_in_text_order():
    places = extract_locations(ROAD_TRIP_ANSWER)
    assert places == ["San Francisco", "Monterey", "Big Sur", "Los Angeles", "Santa Barbara"]


def test_trailing_colon_and_semicolon_are_trimmed():
    candidates = find_candidates("1. **Carmel:** nice\n2. **Cambria;** also nice")
    assert [c.text for c in candidates if c.rule == RULE_ENUMERATED] == ["Carmel", "Cambria"]


def test_both_rules_fire_on_the_same_item_but_only_one_entry_survives():
    text = "1. **Monterey:** aquarium"
    rules = {c.rule for c in find_candidates(text)}
    assert rules == {RULE_ENUMERATED, RULE_EMPHASIS_COLON}
    assert extract_locations(text) == ["Monterey"]


def test_duplicates_are_case_insensitive_and_first_occurrence_wins():
    text = (
        "1. **Santa Cruz**\n"
        "2. **Monterey**\n"
        "**SANTA CRUZ:** boardwalk again\n"
        "3. **monterey**\n"
    )
    assert extract_locations(text) == ["Santa Cruz", "Monterey"]


@pytest.mark.parametrize("word", STOP_WORDS)
def test_every_stop_word_is_rejected_exactly(word):
    assert not is_valid_place_name(word)
    assert not is_valid_place_name(word.title())


@pytest.mark.parametrize(
    "candidate",
    ["Route 66", "Scenic Stops Along the Way", "Final Destination", "Starting Point Start", "Map of the area"],
)
def test_stop_words_as_standalone_tokens_are_rejected(candidate):
    assert not is_valid_place_name(candidate)


@pytest.mark.parametrize("candidate", ["Mapleton", "Endicott", "Stopsley", "Placerville"])
def test_stop_words_inside_longer_words_are_kept(candidate):
    assert is_valid_place_name(candidate)


@pytest.mark.parametrize("candidate", ["37.7749, -122.4194", "-33.86,151.2", "10,20"])
def test_coordinate_pairs_are_rejected(candidate):
    assert not is_valid_place_name(candidate)


def test_short_candidates_are_rejected():
    assert not is_valid_place_name("A")
    assert not is_valid_place_name("  ")
    assert is_valid_place_name("LA")


def test_clean_locations_filters_and_dedupes_supplied_list():
    cleaned = clean_locations(["Monterey", "route", " monterey ", "Big  Sur", "1.5, 2.5", ""])
    assert cleaned == ["Monterey", "Big Sur"]


def test_output_never_contains_normalized_duplicates():
    text = "\n".join(f"{i}. **{name}**" for i, name in enumerate(["Napa", "NAPA", "napa ", "Sonoma"], 1))
    places = extract_locations(text)
    keys = [normalize_place_key(p) for p in places]
    assert len(keys) == len(set(keys))
    assert places == ["Napa", "Sonoma"]


def test_plain_text_without_emphasis_yields_nothing():
    assert extract_locations("Drive from San Francisco to Los Angeles via Monterey.") == []
    assert extract_locations("") == []
