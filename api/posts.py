from flask import Blueprint, request, jsonify, g

from models import storage
from models.post import Post
from models.schemas.post import PostCreateSchema, PostOutSchema
from utils.decorators import jwt_required

bp = Blueprint("posts", __name__)

post_create_schema = PostCreateSchema()
post_out_schema = PostOutSchema()


@bp.post("/post")
@jwt_required()
def create_post():
    """
    Create a post owned by the caller
    ---
    tags:
      - Posts
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             text: { type: string }
    responses:
      200:
        description: Created
      401:
        description: No credential supplied
      403:
        description: Credential not honoured
    """
    data = post_create_schema.load(request.get_json(silent=True) or {})
    post = Post(text=data["text"], owner_id=g.user_id)
    storage.new(post)
    storage.save()
    return jsonify({"data": post_out_schema.dump(post)}), 200
