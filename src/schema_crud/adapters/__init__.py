"""Store backends. The SQLAlchemy backend requires the ``sqlalchemy`` extra."""
