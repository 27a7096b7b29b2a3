# blackbird/catalog_router.py
import logging
from flask import Blueprint, jsonify, request

from .auth import require_admin, require_auth
from .catalog import create_product, list_products, update_product, update_product_status
from .db import get_session
from .utils import as_bool

bp = Blueprint("catalog_bp", __name__)
log = logging.getLogger(__name__)


@bp.route("", methods=["POST"])
@require_admin
def create_product_route():
    with get_session() as s:
        product = create_product(s, request.get_json(silent=True) or {})
        return jsonify({"ok": True, "product": product.to_dict()}), 201


@bp.route("", methods=["GET"])
@require_auth
def list_products_route():
    is_active = as_bool(request.args.get("is_active"))
    with get_session() as s:
        products = [p.to_dict() for p in list_products(s, is_active=is_active)]
    return jsonify({"ok": True, "products": products, "count": len(products)})


@bp.route("/<int:product_id>", methods=["PUT"])
@require_admin
def update_product_route(product_id: int):
    with get_session() as s:
        product = update_product(s, product_id, request.get_json(silent=True) or {})
        return jsonify({"ok": True, "product": product.to_dict()})


@bp.route("/<int:product_id>/status", methods=["PATCH"])
@require_admin
def update_status_route(product_id: int):
    data = request.get_json(silent=True) or {}
    with get_session() as s:
        product = update_product_status(s, product_id, data.get("is_active"))
        return jsonify({"ok": True, "product": product.to_dict()})
