from marshmallow import Schema, fields, pre_load, validates, ValidationError

from models.schemas.user import USERNAME_RULE, _norm_email


class TokenPairSchema(Schema):
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
    user_id = fields.String(data_key="userId")


class ChangePasswordSchema(Schema):
    old_password = fields.String(required=True, data_key="oldPassword", load_only=True)
    new_password = fields.String(required=True, data_key="newPassword", load_only=True)

    @validates("new_password")
    def validate_password(self, value, **kwargs):
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")


class ChangeEmailSchema(Schema):
    email = fields.Email(required=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = _norm_email(data["email"])
        return data


class ChangeUsernameSchema(Schema):
    username = fields.String(required=True, validate=USERNAME_RULE)
