# Overview: Flask API routes for POS sales.

from flask import Blueprint, jsonify, g

from ..decorators import require_context
from ..services import sales_service
from .errors import error_response, json_body


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_context
def create_sale_route():
    """
    Record a completed sale.

    Request body:
    {
        "items": [{"item_id": int, "quantity": number, "price": number (optional)}],
        "payment_method": "cash" | "mpesa" | "credit" | "split",
        "customer_name": str (required for credit),
        "customer_phone": str (optional)
    }
    """
    try:
        data = json_body()
        sale = sales_service.record_sale(
            business_id=g.business_id,
            user_id=g.user_id,
            items=data.get("items"),
            payment_method=data.get("payment_method"),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            sale_date=data.get("sale_date"),
        )
        return jsonify({"sale": sales_service.get_sale(g.business_id, sale.id)}), 201
    except Exception as e:
        return error_response(e, "record sale")


@sales_bp.get("/<int:sale_id>")
@require_context
def get_sale_route(sale_id: int):
    try:
        return jsonify({"sale": sales_service.get_sale(g.business_id, sale_id)})
    except Exception as e:
        return error_response(e, "get sale")


@sales_bp.post("/<int:sale_id>/void")
@require_context
def void_sale_route(sale_id: int):
    try:
        data = json_body()
        sale = sales_service.void_sale(
            business_id=g.business_id,
            sale_id=sale_id,
            user_id=g.user_id,
            reason=data.get("reason"),
        )
        return jsonify({"sale": sale.to_dict()})
    except Exception as e:
        return error_response(e, "void sale")
