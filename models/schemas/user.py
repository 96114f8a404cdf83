from marshmallow import Schema, fields, pre_load, validates, ValidationError, validate

USERNAME_RULE = validate.Regexp(r"^[A-Za-z0-9_.-]{3,64}$", error="Username must be 3-64 letters, digits, '.', '_' or '-'.")


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class UserCreateSchema(Schema):
    username = fields.String(required=True, validate=USERNAME_RULE)
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = _norm_email(data["email"])
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")


class UserLoginSchema(Schema):
    # username or email
    identifier = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    username = fields.String()
    email = fields.String()
    password_version = fields.Integer(data_key="passwordVersion")
    created_at = fields.DateTime(data_key="createdAt")
