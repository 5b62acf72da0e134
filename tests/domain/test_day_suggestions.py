# tests/domain/test_day_suggestions.py

from trip_planning.domain.day_suggestions import generate_suggested_clusters
from trip_planning.domain.entities import LatLng


def test_one_placeholder_per_night():
    city = {"id": "paris", "name": "Paris", "nights": 3, "coordinates": {"lat": 48.8566, "lng": 2.3522}}
    days = generate_suggested_clusters(city)

    assert [d.name for d in days] == ["Day 1", "Day 2", "Day 3"]
    assert [d.day_number for d in days] == [1, 2, 3]
    assert [d.description for d in days] == [
        "Your first day exploring Paris",
        "Day 2 in Paris",
        "Final day in Paris",
    ]
    assert days[0].id == "day-1-paris"
    assert all(d.center == LatLng(48.8566, 2.3522) for d in days)


def test_nights_fallbacks():
    assert len(generate_suggested_clusters({"name": "Lyon", "suggestedNights": 4})) == 4
    assert len(generate_suggested_clusters({"name": "Lyon"})) == 2
    assert len(generate_suggested_clusters({"name": "Lyon"}, default_nights=5)) == 5


def test_single_night_is_a_first_day():
    days = generate_suggested_clusters({"id": "nice", "name": "Nice", "nights": 1})
    assert len(days) == 1
    assert days[0].description == "Your first day exploring Nice"


def test_ids_are_stable_across_reads():
    city = {"id": "paris", "name": "Paris", "nights": 2}
    first = [d.to_dict() for d in generate_suggested_clusters(city)]
    second = [d.to_dict() for d in generate_suggested_clusters(city)]

    assert first == second
    assert first[1]["dayNumber"] == 2


def test_missing_coordinates_center_is_unknown():
    days = generate_suggested_clusters({"name": "Somewhere", "nights": 1})
    assert days[0].center.is_unknown
