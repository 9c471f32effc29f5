"""
Plant catalog API for automation, authenticated by the shared ADMIN_API_KEY.

    GET    /api/v1/admin/plants         list (search, category, page, limit)
    POST   /api/v1/admin/plants         create
    PATCH  /api/v1/admin/plants         bulk {"operation": "upsert" | "delete", "plants": [...]}
    GET    /api/v1/admin/plants/<id>    read
    PUT    /api/v1/admin/plants/<id>    update
    PATCH  /api/v1/admin/plants/<id>    update only the given fields
    DELETE /api/v1/admin/plants/<id>    delete

Every mutation is recorded in the admin audit log as admin "api". A bulk call
writes a single entry with target id "bulk".
"""
from flask import Blueprint, jsonify, request
from sqlalchemy import or_
from models import db
from models.plant import Plant
from security.api_key import require_api_key
from utils.audit import record_admin_action

plants_api_bp = Blueprint("plants_api", __name__, url_prefix="/api/v1/admin/plants")

API_ADMIN_ID = "api"
API_ADMIN_EMAIL = "api@system"
BULK_TARGET_ID = "bulk"

_FIELDS = {
    "name": "name",
    "scientificName": "scientific_name",
    "category": "category",
    "daysToMaturity": "days_to_maturity",
    "description": "description",
    "isApproved": "is_approved",
}


def _invalid(body: dict, required=()):
    """Returns an error message for a bad plant body, None when it is usable."""
    for key in required:
        if not body.get(key):
            return f"{key} is required"

    for key in ("name", "category"):
        if key in body and (not isinstance(body[key], str) or not body[key].strip()):
            return f"{key} cannot be empty"
    for key in ("scientificName", "description"):
        if body.get(key) is not None and not isinstance(body[key], str):
            return f"{key} must be a string"

    days = body.get("daysToMaturity")
    if days is not None and (isinstance(days, bool) or not isinstance(days, int)):
        return "daysToMaturity must be an integer"
    if "isApproved" in body and not isinstance(body["isApproved"], bool):
        return "isApproved must be true or false"
    return None


def _apply(plant: Plant, body: dict):
    for key, attr in _FIELDS.items():
        if key in body:
            setattr(plant, attr, body[key])


def _audit(action: str, plant_id, details: dict):
    record_admin_action(API_ADMIN_ID, API_ADMIN_EMAIL, action, "plant", plant_id, details=details)


def _name_taken(name: str, plant_id: int) -> bool:
    return Plant.query.filter(Plant.name == name, Plant.id != plant_id).first() is not None


def _lookup(plant_id):
    if isinstance(plant_id, bool):
        return None
    try:
        return db.session.get(Plant, int(plant_id))
    except (TypeError, ValueError):
        return None


@plants_api_bp.get("")
@require_api_key
def list_plants():
    search = (request.args.get("search") or "").strip()
    category = (request.args.get("category") or "").strip()
    page = max(request.args.get("page", type=int) or 1, 1)
    limit = max(1, min(request.args.get("limit", type=int) or 50, 500))
    include_unapproved = request.args.get("include_unapproved") == "true"

    q = Plant.query
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Plant.name.ilike(pattern), Plant.scientific_name.ilike(pattern), Plant.category.ilike(pattern)))
    if category:
        q = q.filter(Plant.category == category)
    if not include_unapproved:
        q = q.filter(Plant.is_approved.is_(True))

    total = q.count()
    rows = q.order_by(Plant.name.asc()).offset((page - 1) * limit).limit(limit).all()
    categories = [c for (c,) in db.session.query(Plant.category).distinct().order_by(Plant.category) if c]

    return jsonify(
        success=True,
        data=[p.to_dict() for p in rows],
        meta={
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": (total + limit - 1) // limit,
            "categories": categories,
        },
    ), 200


@plants_api_bp.post("")
@require_api_key
def create_plant():
    body = request.get_json(silent=True) or {}
    error = _invalid(body, required=("name", "category"))
    if error:
        return jsonify(success=False, error=error), 400

    existing = Plant.query.filter_by(name=body["name"]).first()
    if existing:
        return jsonify(success=False, error="A plant with this name already exists", existingId=existing.id), 409

    plant = Plant()
    _apply(plant, body)
    db.session.add(plant)
    db.session.flush()

    _audit("create_plant_via_api", plant.id, {"name": plant.name, "category": plant.category})
    return jsonify(success=True, data=plant.to_dict()), 201


def _bulk_upsert(items: list, results: dict):
    for item in items:
        if not isinstance(item, dict):
            results["failed"].append({"name": "unknown", "error": "name and category are required"})
            continue
        name = item.get("name") if isinstance(item.get("name"), str) else None
        error = _invalid(item, required=("name", "category"))
        if error:
            results["failed"].append({"name": name or "unknown", "error": error})
            continue

        plant = Plant.query.filter_by(name=name).first()
        if plant:
            _apply(plant, item)
            results["success"].append(f"Updated: {name}")
        else:
            plant = Plant()
            _apply(plant, item)
            db.session.add(plant)
            results["success"].append(f"Created: {name}")
        db.session.flush()


def _bulk_delete(items: list, results: dict):
    for item in items:
        plant_id = item.get("id") if isinstance(item, dict) else item
        if plant_id is None or plant_id == "":
            results["failed"].append({"name": "unknown", "error": "id is required for delete"})
            continue

        plant = _lookup(plant_id)
        if plant is None:
            results["failed"].append({"name": str(plant_id), "error": "Plant not found"})
            continue
        db.session.delete(plant)
        db.session.flush()
        results["success"].append(f"Deleted: {plant_id}")


_BULK_OPERATIONS = {
    "upsert": (_bulk_upsert, "bulk_upsert_plants_via_api"),
    "delete": (_bulk_delete, "bulk_delete_plants_via_api"),
}


@plants_api_bp.patch("")
@require_api_key
def bulk_plants():
    body = request.get_json(silent=True) or {}
    operation = body.get("operation")
    items = body.get("plants")
    if not operation or not isinstance(items, list):
        return jsonify(success=False, error="operation and plants array are required"), 400
    if operation not in _BULK_OPERATIONS:
        return jsonify(success=False, error=f"Unknown operation: {operation}. Supported: upsert, delete"), 400

    handler, action = _BULK_OPERATIONS[operation]
    results = {"success": [], "failed": []}
    handler(items, results)

    # one entry for the whole batch; its commit also writes the batch
    _audit(action, BULK_TARGET_ID, {
        "successCount": len(results["success"]),
        "failedCount": len(results["failed"]),
    })
    return jsonify(success=True, data=results), 200


@plants_api_bp.get("/<int:plant_id>")
@require_api_key
def get_plant(plant_id: int):
    plant = db.session.get(Plant, plant_id)
    if not plant:
        return jsonify(success=False, error="Plant not found"), 404
    return jsonify(success=True, data=plant.to_dict()), 200


@plants_api_bp.put("/<int:plant_id>")
@require_api_key
def update_plant(plant_id: int):
    plant = db.session.get(Plant, plant_id)
    if not plant:
        return jsonify(success=False, error="Plant not found"), 404

    body = request.get_json(silent=True) or {}
    error = _invalid(body)
    if error:
        return jsonify(success=False, error=error), 400
    if "name" in body and body["name"] != plant.name and _name_taken(body["name"], plant.id):
        return jsonify(success=False, error="A plant with this name already exists"), 409

    previous = plant.to_dict()
    _apply(plant, body)
    db.session.flush()

    record_admin_action(
        API_ADMIN_ID,
        API_ADMIN_EMAIL,
        "update_plant_via_api",
        "plant",
        plant.id,
        details={"name": plant.name, "category": plant.category},
        previous_state=previous,
        new_state=plant.to_dict(),
    )
    return jsonify(success=True, data=plant.to_dict()), 200


@plants_api_bp.patch("/<int:plant_id>")
@require_api_key
def patch_plant(plant_id: int):
    plant = db.session.get(Plant, plant_id)
    if not plant:
        return jsonify(success=False, error="Plant not found"), 404

    body = request.get_json(silent=True) or {}
    error = _invalid(body)
    if error:
        return jsonify(success=False, error=error), 400
    if "name" in body and body["name"] != plant.name and _name_taken(body["name"], plant.id):
        return jsonify(success=False, error="A plant with this name already exists"), 409

    updated = [key for key in _FIELDS if key in body]
    _apply(plant, body)
    db.session.flush()

    _audit("patch_plant_via_api", plant.id, {"updatedFields": updated})
    return jsonify(success=True, data=plant.to_dict()), 200


@plants_api_bp.delete("/<int:plant_id>")
@require_api_key
def delete_plant(plant_id: int):
    plant = db.session.get(Plant, plant_id)
    if not plant:
        return jsonify(success=False, error="Plant not found"), 404

    details = {"name": plant.name, "category": plant.category}
    db.session.delete(plant)
    _audit("delete_plant_via_api", plant_id, details)
    return jsonify(success=True, message="Plant deleted successfully"), 200
