from __future__ import annotations

from gourmet_log.favorites.models import (
    Restaurant,
    SidebarFilter,
    SortField,
    SortKey,
    SortOrder,
    ViewMode,
)
from gourmet_log.favorites.pipeline import (
    all_genres,
    city_collation_key,
    derive_list,
    group_by_area,
    prefecture_index,
    set_sort_order,
    to_katakana,
    toggle_sort,
)


def _r(rid: str, prefecture: str = "東京都", city: str = "渋谷区", **kw) -> Restaurant:
    data = {
        "id": rid,
        "user_id": "u1",
        "created_at": "2024-01-01T00:00:00+00:00",
        "name": f"Shop {rid}",
        "prefecture": prefecture,
        "city": city,
    }
    data.update(kw)
    return Restaurant(**data)


PREF_ASC = [SortKey(by=SortField.prefecture, order=SortOrder.asc)]


def _ids(restaurants):
    return [r.id for r in restaurants]


# ── Filters ──────────────────────────────────────────────────────────────


def test_sidebar_filters_are_a_union():
    items = [_r("a", "東京都", "渋谷区"), _r("b", "大阪府", "北区"), _r("c", "京都府", "左京区")]
    filters = [
        SidebarFilter(type="prefecture", value="東京都"),
        SidebarFilter(type="city", value="北区"),
    ]
    result = derive_list(items, filters, [], PREF_ASC)
    assert set(_ids(result)) == {"a", "b"}


def test_genre_filter_matches_any_shared_tag():
    items = [
        _r("a", genres=["ラーメン", "中華"]),
        _r("b", genres=["カフェ"]),
        _r("c", genres=[]),
    ]
    result = derive_list(items, [], ["中華", "焼肉"], PREF_ASC)
    assert _ids(result) == ["a"]


def test_sidebar_and_genre_filters_combine():
    items = [
        _r("a", "東京都", genres=["カフェ"]),
        _r("b", "東京都", genres=["寿司"]),
        _r("c", "大阪府", city="北区", genres=["カフェ"]),
    ]
    result = derive_list(items, [SidebarFilter(type="prefecture", value="東京都")], ["カフェ"], PREF_ASC)
    assert _ids(result) == ["a"]


def test_map_view_drops_closed_restaurants():
    items = [_r("a"), _r("b", is_closed=True)]
    assert _ids(derive_list(items, [], [], PREF_ASC, ViewMode.map)) == ["a"]
    assert _ids(derive_list(items, [], [], PREF_ASC, ViewMode.favorites)) == ["a", "b"]


def test_no_filters_keeps_everything():
    items = [_r("a"), _r("b")]
    assert len(derive_list(items, [], [], [])) == 2


# ── Sorting ──────────────────────────────────────────────────────────────


def test_prefecture_sort_uses_north_to_south_order():
    items = [_r("a", "沖縄県"), _r("b", "北海道"), _r("c", "東京都")]
    assert _ids(derive_list(items, [], [], PREF_ASC)) == ["b", "c", "a"]


def test_unknown_prefecture_sorts_first_ascending():
    items = [_r("a", "東京都"), _r("b", "PARSE_ERROR")]
    assert _ids(derive_list(items, [], [], PREF_ASC)) == ["b", "a"]


def test_visit_count_descending():
    items = [_r("a", visit_count=1), _r("b", visit_count=5), _r("c", visit_count=3)]
    keys = [SortKey(by=SortField.visit_count, order=SortOrder.desc)]
    assert _ids(derive_list(items, [], [], keys)) == ["b", "c", "a"]


def test_created_at_sort_handles_z_suffix():
    items = [
        _r("old", created_at="2023-05-01T00:00:00Z"),
        _r("new", created_at="2024-05-01T00:00:00+00:00"),
    ]
    keys = [SortKey(by=SortField.created_at, order=SortOrder.desc)]
    assert _ids(derive_list(items, [], [], keys)) == ["new", "old"]


def test_multi_key_sort_falls_through_on_ties():
    items = [
        _r("a", "大阪府", visit_count=1),
        _r("b", "東京都", visit_count=2),
        _r("c", "東京都", visit_count=9),
    ]
    keys = [
        SortKey(by=SortField.prefecture, order=SortOrder.asc),
        SortKey(by=SortField.visit_count, order=SortOrder.desc),
    ]
    assert _ids(derive_list(items, [], [], keys)) == ["c", "b", "a"]


def test_sort_is_stable_for_equal_keys():
    items = [_r(str(i), visit_count=1) for i in range(5)]
    keys = [SortKey(by=SortField.visit_count, order=SortOrder.desc)]
    assert _ids(derive_list(items, [], [], keys)) == ["0", "1", "2", "3", "4"]


def test_city_sort_folds_hiragana_onto_katakana():
    items = [_r("a", city="ひたちなか市"), _r("b", city="アキル市")]
    keys = [SortKey(by=SortField.city, order=SortOrder.asc)]
    assert _ids(derive_list(items, [], [], keys)) == ["b", "a"]


def test_derive_does_not_mutate_input():
    items = [_r("a", "沖縄県"), _r("b", "北海道")]
    before = list(items)
    derive_list(items, [], [], PREF_ASC)
    assert items == before


# ── Helpers ──────────────────────────────────────────────────────────────


def test_to_katakana_and_collation_key():
    assert to_katakana("さくら") == "サクラ"
    assert city_collation_key("ｻｸﾗ市") == "サクラ市"


def test_prefecture_index_unknown():
    assert prefecture_index("北海道") == 0
    assert prefecture_index("沖縄県") == 46
    assert prefecture_index("Atlantis") == -1


def test_toggle_sort_adds_with_default_order_and_removes():
    keys = toggle_sort([], SortField.visit_count)
    assert keys == [SortKey(by=SortField.visit_count, order=SortOrder.desc)]
    keys = toggle_sort(keys, SortField.city)
    assert keys[-1] == SortKey(by=SortField.city, order=SortOrder.asc)
    assert toggle_sort(keys, SortField.visit_count) == [SortKey(by=SortField.city, order=SortOrder.asc)]


def test_set_sort_order_only_touches_named_field():
    keys = [SortKey(by=SortField.city), SortKey(by=SortField.visit_count, order=SortOrder.desc)]
    updated = set_sort_order(keys, SortField.city, SortOrder.desc)
    assert updated[0].order == SortOrder.desc
    assert updated[1] == keys[1]


def test_all_genres_is_deduplicated():
    items = [_r("a", genres=["カフェ", "寿司"]), _r("b", genres=["寿司"])]
    assert sorted(all_genres(items)) == ["カフェ", "寿司"]


def test_group_by_area_counts_and_orders():
    items = [
        _r("a", "大阪府", "北区"),
        _r("b", "東京都", "渋谷区"),
        _r("c", "東京都", "新宿区"),
        _r("d", "PARSE_ERROR", "不明"),
    ]
    areas = group_by_area(items)
    assert [a["prefecture"] for a in areas] == ["東京都", "大阪府", "PARSE_ERROR"]
    assert areas[0]["count"] == 2
    assert {c["city"] for c in areas[0]["cities"]} == {"渋谷区", "新宿区"}


def test_group_by_area_query_matches_restaurant_name():
    items = [_r("a", "大阪府", "北区", name="Takoyaki Ya"), _r("b", "東京都", "渋谷区")]
    areas = group_by_area(items, "takoyaki")
    assert [a["prefecture"] for a in areas] == ["大阪府"]
