# Overview: Flask API routes for cashier shifts and cash reconciliation.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_context
from ..services import shift_service
from ..validation import to_int
from .errors import error_response, json_body


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.post("")
@require_context
def open_shift_route():
    """
    Open a shift for the calling user.

    Request body: {"opening_cash": number}

    Returns:
        201: shift opened
        409: user already has an open shift
    """
    try:
        data = json_body()
        shift = shift_service.open_shift(
            business_id=g.business_id,
            user_id=g.user_id,
            opening_cash=data.get("opening_cash"),
        )
        return jsonify({"shift": shift.to_dict()}), 201
    except Exception as e:
        return error_response(e, "open shift")


@shifts_bp.get("")
@require_context
def list_shifts_route():
    try:
        user_id = request.args.get("user_id")
        shifts = shift_service.list_shifts(
            g.business_id,
            status=request.args.get("status") or None,
            user_id=to_int(user_id, "user_id") if user_id else None,
        )
        return jsonify({"shifts": [s.to_dict() for s in shifts]})
    except Exception as e:
        return error_response(e, "list shifts")


@shifts_bp.get("/current")
@require_context
def current_shift_route():
    """The calling user's open shift, or null."""
    try:
        shift = shift_service.get_current_shift(g.business_id, g.user_id)
        return jsonify({"shift": shift.to_dict() if shift else None})
    except Exception as e:
        return error_response(e, "get current shift")


@shifts_bp.post("/<int:shift_id>/close")
@require_context
def close_shift_route(shift_id: int):
    """
    Close a shift.

    Request body: {"actual_closing_cash": number}

    Returns:
        200: closed, body carries cash_difference
        404: shift not found
        409: shift already closed
    """
    try:
        data = json_body()
        shift = shift_service.close_shift(
            business_id=g.business_id,
            shift_id=shift_id,
            actual_closing_cash=data.get("actual_closing_cash"),
        )
        return jsonify({"shift": shift.to_dict()})
    except Exception as e:
        return error_response(e, "close shift")


@shifts_bp.post("/<int:shift_id>/cash-inflow")
@require_context
def cash_inflow_route(shift_id: int):
    """Record cash received into an open shift. Body: {"amount": number}"""
    try:
        data = json_body()
        shift = shift_service.record_cash_inflow(g.business_id, shift_id, data.get("amount"))
        return jsonify({"shift": shift.to_dict()})
    except Exception as e:
        return error_response(e, "record cash inflow")


@shifts_bp.get("/<int:shift_id>/summary")
@require_context
def shift_summary_route(shift_id: int):
    try:
        return jsonify(shift_service.get_shift_summary(g.business_id, shift_id))
    except Exception as e:
        return error_response(e, "get shift summary")
