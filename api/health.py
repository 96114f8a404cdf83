from flask import Blueprint

from models import storage

bp = Blueprint("health", __name__)

@bp.get("/health")
def health():
    """
    Health check (includes a database round-trip)
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
    """
    storage.ping()
    return {"status": "ok", "version": "1.0.0"}, 200
