"""
Database schema and connection management for the reference contact store.

Uses SQLite with SQLAlchemy. The layout follows the CRM's own tables closely
enough that resolvers behave the same against it as against the live system.
"""

from pathlib import Path
from sqlalchemy import create_engine, Column, Integer, String, Boolean, ForeignKey
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class Contact(Base):
    """Contact model. Only scalar attributes live here; details are separate tables."""

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True)
    contact_type = Column(String, nullable=False, default="Individual")
    is_deleted = Column(Boolean, nullable=False, default=False)
    display_name = Column(String)
    first_name = Column(String)
    last_name = Column(String)
    organization_name = Column(String)
    external_identifier = Column(String)
    preferred_language = Column(String)
    birth_date = Column(String)  # YYYY-MM-DD


class LocationType(Base):
    """Location type (Home, Work, ...) referenced by detail records."""

    __tablename__ = "location_types"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    display_name = Column(String)


class Email(Base):
    __tablename__ = "emails"

    id = Column(Integer, primary_key=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=False, index=True)
    email = Column(String, nullable=False)
    location_type_id = Column(Integer, ForeignKey("location_types.id"))
    is_primary = Column(Boolean, nullable=False, default=False)


class Phone(Base):
    __tablename__ = "phones"

    id = Column(Integer, primary_key=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=False, index=True)
    phone = Column(String, nullable=False)
    phone_type_id = Column(Integer)
    location_type_id = Column(Integer, ForeignKey("location_types.id"))
    is_primary = Column(Boolean, nullable=False, default=False)


class Im(Base):
    """Instant messenger handle."""

    __tablename__ = "ims"

    id = Column(Integer, primary_key=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    provider_id = Column(Integer)
    location_type_id = Column(Integer, ForeignKey("location_types.id"))
    is_primary = Column(Boolean, nullable=False, default=False)


# CRM entity name -> detail model
DETAIL_MODELS = {
    "Email": Email,
    "Phone": Phone,
    "Im": Im,
}

DEFAULT_LOCATION_TYPES = [
    (1, "Home", "Home"),
    (2, "Work", "Work"),
    (3, "Main", "Main"),
    (4, "Other", "Other"),
    (5, "Billing", "Billing"),
]


def init_database(db_path: Path, seed_location_types: bool = True) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
        seed_location_types: Insert the default location types if the table is empty
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)

    if seed_location_types:
        session = sessionmaker(bind=engine)()
        try:
            if session.query(LocationType).count() == 0:
                for type_id, name, display_name in DEFAULT_LOCATION_TYPES:
                    session.add(LocationType(id=type_id, name=name, display_name=display_name))
                session.commit()
        finally:
            session.close()
    engine.dispose()


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = create_engine(f"sqlite:///{db_path}")
    Session = sessionmaker(bind=engine)
    return Session()
