# Overview: Flask API routes for customer credit accounts.

from flask import Blueprint, jsonify, g

from ..decorators import require_context
from ..services import credit_service
from .errors import error_response, json_body


credits_bp = Blueprint("credits", __name__, url_prefix="/api/credits")


@credits_bp.post("/<int:account_id>/payment")
@require_context
def record_payment_route(account_id: int):
    """
    Record a payment against a customer's tab.

    Request body:
    {
        "amount": number (> 0, <= balance),
        "payment_method": "cash" | "mpesa",
        "notes": str (optional)
    }

    Cash payments are added to the calling user's open shift.
    """
    try:
        data = json_body()
        result = credit_service.record_payment(
            business_id=g.business_id,
            user_id=g.user_id,
            account_id=account_id,
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
        )
        return jsonify(result), 201
    except Exception as e:
        return error_response(e, "record credit payment")


@credits_bp.get("/<int:account_id>/transactions")
@require_context
def list_transactions_route(account_id: int):
    try:
        account = credit_service.require_account(g.business_id, account_id)
        transactions = credit_service.list_transactions(g.business_id, account_id)
        return jsonify({
            "account": account.to_dict(),
            "transactions": [t.to_dict() for t in transactions],
        })
    except Exception as e:
        return error_response(e, "list credit transactions")
