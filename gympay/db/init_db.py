"""Table registration and creation from the ORM metadata."""
from sqlalchemy.engine import Engine

from gympay.db.base import Base


def import_models() -> None:
    """Import every model module so its table is registered on Base.metadata."""
    from gympay.models import audit_log, bank_transfer, bank_transfer_settings, membership, payment, refund_request, user  # noqa: F401


def create_tables(engine: Engine) -> None:
    import_models()
    Base.metadata.create_all(bind=engine)


def drop_tables(engine: Engine) -> None:
    import_models()
    Base.metadata.drop_all(bind=engine)
