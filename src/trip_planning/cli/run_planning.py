# src/trip_planning/cli/run_planning.py

import argparse
import json
import sys

from dotenv import load_dotenv
from loguru import logger

from trip_planning.config.settings import ClusteringConfig, get_log_level
from trip_planning.domain.day_suggestions import generate_suggested_clusters
from trip_planning.domain.errors import PlanningError
from trip_planning.domain.validators import parse_point


def _configure_logging():
    logger.remove()
    logger.add(
        sys.stdout,
        level=get_log_level(),
        colorize=True,
        format="<green>{time:HH:mm:ss}</green> | <level>{message}</level>",
    )


def _cmd_init_db(args):
    from trip_planning.application.planning_use_case import PlanningUseCase

    PlanningUseCase.from_env().setup()
    logger.success("✅ Plan store ready")


def _cmd_check_db(args):
    from database.db_connection import check_db_connection

    return 0 if check_db_connection() else 1


def _cmd_distance(args):
    from trip_planning.domain.entities import LatLng
    from trip_planning.domain.haversine_utils import travel_times

    origin = parse_point(args.origin, "from")
    destination = parse_point(args.destination, "to")
    result = travel_times(LatLng(*origin), LatLng(*destination), ClusteringConfig.from_env())
    logger.info(
        f"🚶 {result['walkingMinutes']} min | 🚇 {result['transitMinutes']} min | 🚗 {result['drivingMinutes']} min"
    )


def _cmd_suggest_days(args):
    city = {"id": args.city_id or args.city, "name": args.city, "nights": args.nights}
    if args.center:
        lat, lng = parse_point(args.center, "center")
        city["coordinates"] = {"lat": lat, "lng": lng}

    for day in generate_suggested_clusters(city, ClusteringConfig.from_env().default_suggested_nights):
        logger.info(f"📅 {day.name:<8} | {day.description}")


def _cmd_show(args):
    from trip_planning.application.planning_use_case import PlanningUseCase

    plan = PlanningUseCase.from_env().get_plan(args.route_id)
    print(json.dumps(plan, indent=2, ensure_ascii=False))


def main(argv=None):
    load_dotenv()
    _configure_logging()

    parser = argparse.ArgumentParser(description="Trip planning utilities (schema, distances, day suggestions)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Creates the planning tables")
    sub.add_parser("check-db", help="Checks that PostgreSQL answers")

    p_dist = sub.add_parser("distance", help="Walking / transit / driving estimate between two points")
    p_dist.add_argument("--from", dest="origin", required=True, help="lat,lng (ex: 48.8606,2.3376)")
    p_dist.add_argument("--to", dest="destination", required=True, help="lat,lng")

    p_days = sub.add_parser("suggest-days", help="Day N placeholders for a city")
    p_days.add_argument("--city", required=True, help="City name (ex: Paris)")
    p_days.add_argument("--city-id", default=None)
    p_days.add_argument("--nights", type=int, default=None)
    p_days.add_argument("--center", default=None, help="lat,lng of the city center")

    p_show = sub.add_parser("show", help="Prints a trip plan as JSON")
    p_show.add_argument("--route-id", required=True)

    args = parser.parse_args(argv)
    handlers = {
        "init-db": _cmd_init_db,
        "check-db": _cmd_check_db,
        "distance": _cmd_distance,
        "suggest-days": _cmd_suggest_days,
        "show": _cmd_show,
    }

    try:
        return handlers[args.command](args) or 0
    except PlanningError as e:
        logger.error(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
