from marshmallow import Schema, fields


class PostCreateSchema(Schema):
    text = fields.String(required=True, validate=lambda s: 0 < len(s.strip()) <= 5000)


class PostOutSchema(Schema):
    id = fields.String()
    text = fields.String()
    owner_id = fields.String(data_key="owner")
    created_at = fields.DateTime(data_key="createdAt")
