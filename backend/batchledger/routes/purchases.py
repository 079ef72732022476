# Overview: Flask API routes for supplier purchases and their breakdown into stock.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_context
from ..services import purchase_service, breakdown_service
from ..validation import to_int
from .errors import error_response, json_body


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_context
def create_purchase_route():
    """
    Record a supplier purchase.

    Request body:
    {
        "supplier_name": str (optional),
        "purchase_date": int | ISO str (optional),
        "total_amount": number (optional, defaults to sum of lines),
        "extra_costs": number (optional),
        "notes": str (optional),
        "items": [{"item_name", "quantity_note"?, "amount"?, "item_id"?, "notes"?}]
    }
    """
    try:
        data = json_body()
        purchase = purchase_service.create_purchase(
            business_id=g.business_id,
            user_id=g.user_id,
            items=data.get("items"),
            supplier_name=data.get("supplier_name"),
            purchase_date=data.get("purchase_date"),
            total_amount=data.get("total_amount"),
            extra_costs=data.get("extra_costs"),
            notes=data.get("notes"),
        )
        return jsonify({"purchase": purchase_service.get_purchase(g.business_id, purchase.id)}), 201
    except Exception as e:
        return error_response(e, "create purchase")


@purchases_bp.get("")
@require_context
def list_purchases_route():
    try:
        purchases = purchase_service.list_purchases(g.business_id, status=request.args.get("status"))
        return jsonify({"purchases": [p.to_dict() for p in purchases]})
    except Exception as e:
        return error_response(e, "list purchases")


@purchases_bp.get("/<int:purchase_id>")
@require_context
def get_purchase_route(purchase_id: int):
    try:
        return jsonify({"purchase": purchase_service.get_purchase(g.business_id, purchase_id)})
    except Exception as e:
        return error_response(e, "get purchase")


@purchases_bp.post("/<int:purchase_id>/breakdown")
@require_context
def breakdown_route(purchase_id: int):
    """
    Break one purchase line down into a priced batch.

    Request body:
    {
        "purchase_item_id": int,
        "item_id": int,
        "usable_quantity": number (> 0),
        "wastage_quantity": number (>= 0, optional),
        "buy_price_per_unit": number (> 0),
        "notes": str (optional)
    }

    Returns:
        201: breakdown recorded
        400: invalid input
        404: purchase item or item not found
        409: purchase item already broken down
    """
    try:
        data = json_body()
        purchase_item_id = data.get("purchase_item_id")
        item_id = data.get("item_id")
        result = breakdown_service.breakdown(
            business_id=g.business_id,
            user_id=g.user_id,
            purchase_id=purchase_id,
            purchase_item_id=to_int(purchase_item_id, "purchase_item_id") if purchase_item_id is not None else None,
            item_id=to_int(item_id, "item_id") if item_id is not None else None,
            usable_quantity=data.get("usable_quantity"),
            wastage_quantity=data.get("wastage_quantity"),
            buy_price_per_unit=data.get("buy_price_per_unit"),
            notes=data.get("notes"),
        )
        return jsonify(result), 201
    except Exception as e:
        return error_response(e, "break down purchase item")
