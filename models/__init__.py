"""
Models package: exposes the process-wide DBStorage instance as `storage`.
The application factory configures and reloads it before serving requests.
"""
from models.db_storage import DBStorage

storage = DBStorage()
