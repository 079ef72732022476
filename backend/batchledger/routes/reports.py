# Overview: Flask API routes for profit reporting.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_context
from ..services import profit_service
from ..validation import to_int
from .errors import error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/profit")
@require_context
def profit_report_route():
    """
    Profit by item or category.

    Query params:
    - start, end: epoch seconds or ISO-8601 (inclusive, optional)
    - group_by: item (default) | category
    """
    try:
        report = profit_service.profit_report(
            g.business_id,
            start=request.args.get("start") or None,
            end=request.args.get("end") or None,
            group_by=request.args.get("group_by", "item"),
        )
        return jsonify(report)
    except Exception as e:
        return error_response(e, "build profit report")


@reports_bp.get("/profit/daily")
@require_context
def daily_profit_route():
    """
    Profit calendar.

    Query params:
    - months: how many months back (default DAILY_PROFIT_DEFAULT_MONTHS)
    - tz: browser timezone offset in minutes (e.g. -180 for UTC+3)
    """
    try:
        months = request.args.get("months")
        tz = request.args.get("tz")
        report = profit_service.daily_profit(
            g.business_id,
            months_back=to_int(months, "months") if months else current_app.config["DAILY_PROFIT_DEFAULT_MONTHS"],
            tz_offset_minutes=to_int(tz, "tz") if tz else 0,
        )
        return jsonify(report)
    except Exception as e:
        return error_response(e, "build daily profit")
