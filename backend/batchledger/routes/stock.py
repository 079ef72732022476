# Overview: Flask API routes for batches, FIFO preview and stock adjustments.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_context
from ..services import adjustment_service, batch_service
from ..validation import ValidationError, to_int
from .errors import error_response, json_body


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _item_id_arg(required: bool = True) -> int | None:
    raw = request.args.get("item_id")
    if raw is None or raw == "":
        if required:
            raise ValidationError("item_id is required")
        return None
    return to_int(raw, "item_id")


@stock_bp.get("/batches")
@require_context
def list_batches_route():
    """Batches for an item, oldest first. ?include_depleted=true keeps empty ones."""
    try:
        include_depleted = request.args.get("include_depleted", "false").lower() in ("1", "true", "yes")
        batches = batch_service.list_batches(
            g.business_id,
            _item_id_arg(),
            include_depleted=include_depleted,
        )
        return jsonify({"batches": [b.to_dict() for b in batches]})
    except Exception as e:
        return error_response(e, "list batches")


@stock_bp.get("/fifo-preview")
@require_context
def fifo_preview_route():
    """
    Which batches a sale of ?quantity= would consume. Nothing is depleted.

    A shortfall is reported in the body, never as an error.
    """
    try:
        item_id = _item_id_arg()
        selection = batch_service.select_batches_for_sale(
            g.business_id, item_id, request.args.get("quantity")
        )
        return jsonify(selection.to_dict())
    except Exception as e:
        return error_response(e, "preview FIFO selection")


@stock_bp.post("/adjust")
@require_context
def adjust_stock_route():
    """
    Delta adjustment.

    Request body:
    {
        "item_id": int,
        "adjustment_type": "increase" | "decrease",
        "quantity": number (> 0),
        "reason": str,
        "notes": str (optional)
    }
    """
    try:
        data = json_body()
        if data.get("item_id") is None:
            raise ValidationError("item_id is required")
        result = adjustment_service.adjust_stock(
            business_id=g.business_id,
            user_id=g.user_id,
            item_id=to_int(data["item_id"], "item_id"),
            adjustment_type=data.get("adjustment_type"),
            quantity=data.get("quantity"),
            reason=data.get("reason"),
            notes=data.get("notes"),
        )
        return jsonify(result), 201
    except Exception as e:
        return error_response(e, "adjust stock")


@stock_bp.post("/take")
@require_context
def stock_take_route():
    """
    Stock take.

    Request body:
    {"items": [{"item_id", "actual_stock", "reason", "notes"?}]}

    Invalid rows are skipped and reported in "results"; the rest still apply.
    """
    try:
        data = json_body()
        result = adjustment_service.stock_take(
            business_id=g.business_id,
            user_id=g.user_id,
            entries=data.get("items"),
        )
        return jsonify(result)
    except Exception as e:
        return error_response(e, "process stock take")


@stock_bp.get("/adjustments")
@require_context
def list_adjustments_route():
    try:
        adjustments = adjustment_service.list_adjustments(g.business_id, item_id=_item_id_arg(required=False))
        return jsonify({"adjustments": [a.to_dict() for a in adjustments]})
    except Exception as e:
        return error_response(e, "list adjustments")


@stock_bp.get("/low")
@require_context
def low_stock_route():
    try:
        items = adjustment_service.list_low_stock_items(g.business_id)
        return jsonify({"items": [i.to_dict() for i in items]})
    except Exception as e:
        return error_response(e, "list low stock items")
