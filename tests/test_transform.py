import dataclasses

import pytest

from golfscout.core.config import INDOOR_TAGS, OUTDOOR_TAGS
from golfscout.etl import transform
from golfscout.models import Center, Record


@pytest.mark.parametrize(
    "types, expected",
    [
        (["golf_course", "gym"], "mixed"),
        (["golf_course"], "outdoor"),
        (["gym"], "indoor"),
        (["store"], "other"),
        ([], "other"),
        (["golf_driving_range", "point_of_interest"], "outdoor"),
    ],
)
def test_classify_category(types, expected):
    assert transform.classify_category(types, OUTDOOR_TAGS, INDOOR_TAGS) == expected


def test_to_record_maps_search_candidate():
    place = {
        "id": "ChIJ123",
        "displayName": {"text": " 新宿ゴルフ練習場 ", "languageCode": "ja"},
        "formattedAddress": "東京都新宿区1-2-3",
        "location": {"latitude": 35.69, "longitude": 139.70},
        "rating": "4.1",
        "userRatingCount": 120,
        "types": ["golf_course", "point_of_interest"],
        "businessStatus": "OPERATIONAL",
        "googleMapsUri": "https://maps.google.com/?cid=1",
    }

    record = transform.to_record(
        place,
        center=Center("東京都", 35.6895, 139.6917),
        keyword="ゴルフ練習場",
        outdoor_tags=OUTDOOR_TAGS,
        indoor_tags=INDOOR_TAGS,
    )

    assert record.id == "ChIJ123"
    assert record.name == "新宿ゴルフ練習場"
    assert record.rating == 4.1
    assert record.review_count == 120
    assert record.latitude == 35.69
    assert record.category == "outdoor"
    assert record.source_region == "東京都"
    assert record.source_keyword == "ゴルフ練習場"
    assert record.details_status == "pending"
    assert record.phone == ""


def test_to_record_tolerates_malformed_fields():
    place = {"id": "x", "rating": "n/a", "userRatingCount": "many", "location": None, "displayName": None}

    record = transform.to_record(
        place, center=Center("c", 0, 0), keyword="k", outdoor_tags=OUTDOOR_TAGS, indoor_tags=INDOOR_TAGS
    )

    assert record.rating is None
    assert record.review_count is None
    assert record.latitude is None
    assert record.name == ""


def test_to_record_without_id_returns_none():
    assert transform.to_record({}, center=Center("c", 0, 0), keyword="k", outdoor_tags=OUTDOOR_TAGS, indoor_tags=INDOOR_TAGS) is None


def test_merge_details_keeps_existing_when_provider_value_empty():
    record = Record(id="a", name="Old", phone="111", website="")
    fields = {"name": "", "phone": None, "website": "https://new.example", "rating": 3.9, "types": []}

    changes = transform.merge_details(record, fields)

    assert changes == {"website": "https://new.example", "rating": 3.9}


def test_merge_details_is_idempotent():
    record = Record(id="a", name="Old", phone="111")
    fields = transform.details_fields(
        {"displayName": {"text": "New"}, "nationalPhoneNumber": "", "types": ["gym"], "rating": 4.0},
        OUTDOOR_TAGS,
        INDOOR_TAGS,
    )

    once = dataclasses.replace(record, **transform.merge_details(record, fields))
    twice = dataclasses.replace(once, **transform.merge_details(once, fields))

    assert once == twice
    assert once.name == "Old"
    assert once.phone == "111"
    assert once.category == "indoor"
    assert transform.merge_details(once, fields) == {}


def test_details_without_types_do_not_reset_category():
    record = Record(id="a", category="outdoor")
    fields = transform.details_fields({"displayName": {"text": "x"}}, OUTDOOR_TAGS, INDOOR_TAGS)

    assert "category" not in transform.merge_details(record, fields)


def test_region_allowed():
    record = Record(id="a", source_region="東京都")
    assert transform.region_allowed(record, frozenset()) is True
    assert transform.region_allowed(record, frozenset({"東京都"})) is True
    assert transform.region_allowed(record, frozenset({"千葉県"})) is False


def test_merge_details_keeps_search_name():
    record = Record(id="a", name="ゴルフ練習場 A")
    fields = transform.details_fields({"id": "a", "displayName": {"text": "Renamed Golf"}}, OUTDOOR_TAGS, INDOOR_TAGS)

    assert fields["name"] == "Renamed Golf"
    assert "name" not in transform.merge_details(record, fields)
