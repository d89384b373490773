"""
Tests for travel-point reconciliation.
"""
from unittest.mock import MagicMock

import pytest

from domain.models import RemoteResource, TravelPoint
from services.geocode_cache import GeocodeCache
from services.travel_points import (
    RefreshPolicy,
    find_city_conflicts,
    prune_points,
    reconcile,
    sort_points,
)

COORDS = {
    ("Paris", "FR"): (48.8566, 2.3522),
    ("Paris", "DE"): (50.0, 10.0),
    ("Lisbon", "PT"): (38.7223, -9.1393),
    ("Lisboa", "PT"): (38.7223, -9.1393),
    ("Porto", "PT"): (41.1579, -8.6291),
    ("Berlin", "DE"): (52.52, 13.405),
}


def _res(identifier, **metadata):
    return RemoteResource(identifier=identifier, folder_path="postcards/Countries", metadata=metadata)


@pytest.fixture
def cache(tmp_path):
    return GeocodeCache(str(tmp_path / "geocode-cache.json"))


@pytest.fixture
def geocoder():
    return MagicMock(side_effect=lambda city, cc: COORDS.get((city, cc)))


def _point(pid, city, cc, lat=1.0, lng=2.0, **kwargs):
    return TravelPoint(id=pid, city=city, country_code=cc, lat=lat, lng=lng, **kwargs)


def test_no_geocode_and_no_registry_skips_resource(cache):
    result = reconcile([_res("FR_Paris_ynppct")], [], cache, "Countries", no_geocode=True)

    assert result.points == []
    assert result.stats.skipped == 1
    assert result.stats.added == 0


def test_geocoded_resource_becomes_point(cache, geocoder):
    result = reconcile([_res("FR_Paris_ynppct")], [], cache, "Countries", geocoder=geocoder)

    assert len(result.points) == 1
    p = result.points[0]
    assert (p.id, p.city, p.country_code) == ("fr-paris", "Paris", "FR")
    assert (p.lat, p.lng) == (48.8566, 2.3522)
    assert p.postcard_id == "FR_Paris_ynppct"
    assert p.source_folder == "Countries"
    assert p.country_name == "France"
    assert result.stats.added == 1
    assert result.stats.geocoded == 1
    assert cache.get("FR", "Paris") == (48.8566, 2.3522)


def test_same_city_twice_in_batch_is_one_point(cache, geocoder):
    result = reconcile(
        [_res("FR_Paris_aaa"), _res("FR_Paris_bbb")], [], cache, "Countries", geocoder=geocoder
    )

    assert len(result.points) == 1
    assert result.points[0].postcard_id == "FR_Paris_bbb"
    assert result.stats.added == 1
    assert result.stats.updated == 1
    assert geocoder.call_count == 1


def test_conflicting_country_codes_warn_and_keep_both(cache, geocoder):
    result = reconcile(
        [_res("FR_Paris_aaa"), _res("DE_Paris_bbb")], [], cache, "Countries", geocoder=geocoder
    )

    assert sorted(p.id for p in result.points) == ["de-paris", "fr-paris"]
    conflicts = [w for w in result.warnings if w.startswith("Conflicting country codes")]
    assert len(conflicts) == 1
    assert "FR:FR_Paris_aaa" in conflicts[0]
    assert "DE:DE_Paris_bbb" in conflicts[0]


def test_reconcile_is_idempotent(cache, geocoder):
    resources = [_res("FR_Paris_aaa"), _res("PT_Lisboa_x1"), _res("DE_Berlin_q")]
    first = reconcile(resources, [], cache, "Countries", geocoder=geocoder)

    second = reconcile(resources, first.points, cache, "Countries")

    assert [p.to_dict() for p in second.points] == [p.to_dict() for p in first.points]
    assert second.stats.added == 0
    assert second.stats.updated == len(first.points)
    assert second.stats.geocoded == 0


def test_unparseable_identifier_is_warned_and_skipped(cache, geocoder):
    result = reconcile([_res("FR_x"), _res("no-underscores")], [], cache, "Countries", geocoder=geocoder)

    assert result.stats.skipped == 2
    assert "Skip (cannot parse place): FR_x" in result.warnings
    assert geocoder.call_count == 0


def test_geocode_miss_is_warned(cache, geocoder):
    result = reconcile([_res("IS_Atlantis_z")], [], cache, "Countries", geocoder=geocoder)

    assert result.points == []
    assert result.stats.skipped == 1
    assert any(w.startswith("Geocode failed: IS Atlantis") for w in result.warnings)


def test_existing_coordinates_win_over_geocoder(cache, geocoder):
    existing = [_point("fr-paris", "Paris", "FR", lat=1.5, lng=2.5, postcard_id="FR_Paris_aaa")]

    result = reconcile([_res("FR_Paris_aaa")], existing, cache, "Countries", geocoder=geocoder)

    assert (result.points[0].lat, result.points[0].lng) == (1.5, 2.5)
    assert geocoder.call_count == 0


def test_manual_point_from_other_batch_keeps_fields(cache):
    manual = _point(
        "paris-custom",
        "Paris (Île-de-France)",
        "FR",
        country_name="La France",
        postcard_id="FR_Paris_manual",
        description="hand written",
        source_folder="Europe",
        extra={"zoom": 6},
    )

    result = reconcile(
        [_res("FR_Paris_new", desc="from meta", placeId="paris-custom")], [manual], cache, "Countries"
    )

    p = result.points[0]
    assert p.id == "paris-custom"
    assert p.city == "Paris (Île-de-France)"
    assert p.country_name == "La France"
    assert p.postcard_id == "FR_Paris_manual"
    assert p.description == "hand written"
    assert p.source_folder == "Countries"
    assert p.to_dict()["zoom"] == 6
    assert result.stats.updated == 1


def test_same_batch_point_is_refreshed(cache):
    auto = _point("pt-lisboa", "Lisboa", "ES", postcard_id="ES_Lisboa_x1", source_folder="Countries")

    result = reconcile([_res("PT_Lisboa_x1")], [auto], cache, "Countries")

    p = result.points[0]
    assert p.id == "pt-lisboa"
    assert p.country_code == "PT"
    assert p.country_name == "Portugal"
    assert result.stats.added == 0


def test_batch_city_fallback_corrects_country_code(cache):
    auto = _point("es-porto", "Porto", "ES", postcard_id="ES_Porto_old", source_folder="countries")

    result = reconcile([_res("PT_Porto_new")], [auto], cache, "Countries")

    assert len(result.points) == 1
    p = result.points[0]
    assert (p.id, p.country_code, p.postcard_id) == ("es-porto", "PT", "PT_Porto_new")


def test_ambiguous_city_fallback_is_disqualified_with_warning(cache):
    existing = [
        _point("es-porto", "Porto", "ES", postcard_id="ES_Porto_a", source_folder="Countries"),
        _point("it-porto", "Porto", "IT", postcard_id="IT_Porto_b", source_folder="Countries"),
    ]

    result = reconcile([_res("PT_Porto_c")], existing, cache, "Countries", no_geocode=True)

    assert result.stats.skipped == 1
    assert {p.id for p in result.points} == {"es-porto", "it-porto"}
    assert any(w.startswith("Ambiguous city-only match for 'porto'") for w in result.warnings)


def test_place_id_metadata_selects_point(cache):
    existing = [_point("my-place", "Somewhere", "FR", source_folder="Manual")]

    result = reconcile([_res("FR_Paris_zz", placeId="my-place")], existing, cache, "Countries")

    assert [p.id for p in result.points] == ["my-place"]
    assert result.points[0].postcard_id == "FR_Paris_zz"
    assert result.stats.updated == 1


def test_place_id_for_unknown_point_names_new_point(cache, geocoder):
    result = reconcile([_res("FR_Paris_zz", placeId="paris-main")], [], cache, "Countries", geocoder=geocoder)

    assert [p.id for p in result.points] == ["paris-main"]


def test_new_point_does_not_replace_unrelated_point_with_same_id(cache):
    existing = [_point("pt-porto", "Oporto", "PT", description="hand written", source_folder="Manual")]
    cache.put("PT", "Porto", 41.1579, -8.6291)

    result = reconcile([_res("PT_Porto_x")], existing, cache, "Countries")

    by_id = {p.id: p for p in result.points}
    assert set(by_id) == {"pt-porto", "pt-porto-2"}
    assert by_id["pt-porto"].city == "Oporto"
    assert by_id["pt-porto"].description == "hand written"
    assert by_id["pt-porto-2"].postcard_id == "PT_Porto_x"
    assert result.stats.added == 1
    assert any("pt-porto-2" in w for w in result.warnings)

    again = reconcile([_res("PT_Porto_x")], result.points, cache, "Countries")
    assert sorted(p.id for p in again.points) == ["pt-porto", "pt-porto-2"]
    assert again.stats.added == 0


def test_alias_spelling_matches_existing_point(cache):
    existing = [_point("pt-lisbon", "Lisbon", "PT", source_folder="Manual")]

    result = reconcile([_res("PT_Lisboa_a1")], existing, cache, "Countries")

    assert [p.id for p in result.points] == ["pt-lisbon"]
    assert result.points[0].city == "Lisbon"


def test_prune_removes_point_whose_postcard_left_the_batch(cache, geocoder):
    stale = _point("fr-paris", "Paris", "FR", postcard_id="FR_Paris_old", source_folder="Countries")
    other = _point("de-berlin", "Berlin", "DE", postcard_id="DE_Berlin_x", source_folder="Germany")
    manual = _point("manual", "Oslo", "NO", source_folder="Countries")

    result = reconcile([_res("PT_Porto_new")], [stale, other, manual], cache, "Countries", geocoder=geocoder, prune=True)

    ids = {p.id for p in result.points}
    assert "fr-paris" not in ids
    assert {"de-berlin", "manual", "pt-porto"} <= ids
    assert result.stats.pruned == 1


def test_without_prune_stale_points_are_kept(cache, geocoder):
    stale = _point("fr-paris", "Paris", "FR", postcard_id="FR_Paris_old", source_folder="Countries")

    result = reconcile([_res("PT_Porto_new")], [stale], cache, "Countries", geocoder=geocoder)

    assert "fr-paris" in {p.id for p in result.points}


def test_prune_drops_superseded_legacy_point():
    legacy = _point("xx-porto", "Porto", "ES", postcard_id="ES_Porto_legacy")
    replacement = _point("pt-porto", "Porto", "PT", postcard_id="PT_Porto_new", source_folder="Countries")
    untouched = _point("xx-oslo", "Oslo", "NO", postcard_id="NO_Oslo_legacy")

    kept = prune_points([legacy, replacement, untouched], "Countries", {"PT_Porto_new"})

    assert [p.id for p in kept] == ["pt-porto", "xx-oslo"]


def test_points_without_coordinates_are_dropped(cache):
    broken = TravelPoint(id="nowhere", city="Nowhere", country_code="ZZ", lat=None, lng=None)

    result = reconcile([], [broken], cache, "Countries")

    assert result.points == []
    assert "Dropped point without coordinates: nowhere" in result.warnings


def test_limit_caps_processed_resources(cache, geocoder):
    resources = [_res("FR_Paris_a"), _res("DE_Berlin_b"), _res("PT_Porto_c")]

    result = reconcile(resources, [], cache, "Countries", geocoder=geocoder, limit=2)

    assert result.stats.processed == 2
    assert {p.id for p in result.points} == {"fr-paris", "de-berlin"}


def test_output_sorted_by_country_then_city(cache):
    points = [
        _point("b", "zagreb", "HR"),
        _point("a", "Évora", "PT"),
        _point("c", "Berlin", "DE"),
        _point("d", "braga", "PT"),
    ]
    assert [p.id for p in sort_points(points)] == ["c", "b", "d", "a"]


def test_custom_refresh_policy_can_freeze_points(cache):
    class NeverRefresh(RefreshPolicy):
        def allows_refresh(self, point, batch_label):
            return False

    auto = _point("es-lisboa", "Lisboa", "ES", postcard_id="ES_Lisboa_x1", source_folder="Countries")

    result = reconcile([_res("PT_Lisboa_x1")], [auto], cache, "Countries", policy=NeverRefresh())

    assert result.points[0].country_code == "ES"
    assert result.points[0].postcard_id == "ES_Lisboa_x1"


def test_default_policy_compares_folders_case_insensitively():
    policy = RefreshPolicy()
    assert policy.allows_refresh(_point("a", "A", "FR", source_folder=" countries "), "Countries")
    assert not policy.allows_refresh(_point("a", "A", "FR", source_folder=None), "Countries")
    assert not policy.allows_refresh(_point("a", "A", "FR", source_folder="Europe"), "Countries")


def test_find_city_conflicts_caps_samples():
    pairings = {"paris": [(f"id{i}", "FR" if i % 2 else "DE") for i in range(10)], "rome": [("r", "IT")]}

    warnings = find_city_conflicts(pairings)

    assert len(warnings) == 1
    assert warnings[0].count(":id") == 6
