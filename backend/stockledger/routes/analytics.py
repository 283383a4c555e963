# Overview: Flask API routes for analytics; parses input and returns JSON responses.

"""
Analytics Routes

Period statistics, product performance, alerts, time series and the
dashboard summary. Each request loads one snapshot of the tenant's catalog
and ledger, then runs pure computations over it.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; normalized to UTC-naive.
- Period filtering is inclusive on both ends.
"""

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_tenant, require_user
from ..services import analytics_service
from stockledger.time_utils import parse_iso_datetime, to_utc_z, utcnow

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


def _snapshot():
    return analytics_service.load_snapshot(g.org_id)


@analytics_bp.errorhandler(SQLAlchemyError)
def _snapshot_failed(exc):
    current_app.logger.exception("Failed to load analytics snapshot")
    return jsonify({"error": "Could not load analytics data"}), 503


@analytics_bp.get("/date-ranges")
@require_user
@require_tenant
def date_ranges_route():
    ranges = analytics_service.build_date_ranges(utcnow())
    return jsonify({"items": [r.to_dict() for r in ranges]}), 200


@analytics_bp.get("/period-stats")
@require_user
@require_tenant
def period_stats_route():
    """
    Query params:
    - range: named range key (today, yesterday, this_week, last_week,
      this_month, last_month, this_year), default this_month
    - start, end: ISO-8601 datetimes; both override range
    """
    now = utcnow()
    start_raw = request.args.get("start")
    end_raw = request.args.get("end")

    if start_raw or end_raw:
        try:
            start = parse_iso_datetime(start_raw)
            end = parse_iso_datetime(end_raw)
        except ValueError:
            return jsonify({"error": "start and end must be ISO-8601 datetimes"}), 400
        if start is None or end is None:
            return jsonify({"error": "start and end are both required"}), 400
        if start > end:
            return jsonify({"error": "start must be before end"}), 400
        label = "Custom"
    else:
        key = request.args.get("range", "this_month")
        date_range = analytics_service.find_date_range(key, now)
        if date_range is None:
            return jsonify({"error": f"Unknown range: {key}"}), 400
        start, end, label = date_range.start, date_range.end, date_range.label

    _, entries = _snapshot()
    stats = analytics_service.period_stats(entries, start, end)
    return jsonify({
        "label": label,
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "stats": stats.to_dict(),
    }), 200


@analytics_bp.get("/products")
@require_user
@require_tenant
def product_performance_route():
    products, entries = _snapshot()
    rows = analytics_service.product_performance(products, entries)
    return jsonify({"items": [r.to_dict() for r in rows]}), 200


@analytics_bp.get("/alerts")
@require_user
@require_tenant
def alerts_route():
    products, entries = _snapshot()
    alerts = analytics_service.generate_alerts(products, entries, utcnow())
    return jsonify({"items": [a.to_dict() for a in alerts], "count": len(alerts)}), 200


@analytics_bp.get("/time-series")
@require_user
@require_tenant
def time_series_route():
    _, entries = _snapshot()
    return jsonify(analytics_service.time_series(entries, utcnow())), 200


@analytics_bp.get("/summary")
@require_user
@require_tenant
def summary_route():
    products, entries = _snapshot()
    return jsonify(analytics_service.dashboard_summary(products, entries, utcnow())), 200
