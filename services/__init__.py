"""
Token lifecycle services. The application factory builds one TokenService
and one CredentialChangeCoordinator and keeps them in app.extensions.
"""
from flask import current_app


def get_token_service():
    return current_app.extensions["token_service"]


def get_credential_coordinator():
    return current_app.extensions["credential_coordinator"]
