"""Utility functions for Alembic migrations."""
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from alembic import op


def get_uuid_type():
    """Get the appropriate UUID column type for the current database dialect.

    Returns:
        Column type compatible with the current database dialect:
        - PostgreSQL: native UUID type (with as_uuid=True for Python UUID objects)
        - SQLite/other: String(36) for hex-formatted UUID strings

    Must match ``partycards.models.base.AdaptiveUUID`` so the ORM and the
    migrated schema agree.
    """
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        return UUID(as_uuid=True)
    return sa.String(length=36)


def get_timestamp_default():
    """Get the appropriate server default for timestamp columns.

    Returns:
        Server default compatible with the current database dialect:
        - PostgreSQL: NOW() function
        - SQLite: CURRENT_TIMESTAMP
    """
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        return sa.text('NOW()')
    return sa.text('CURRENT_TIMESTAMP')
