"""
Database schema and connection management for the local entity store.

Uses SQLite with SQLAlchemy. Column names mirror the managed backend's
entity fields so exported records load without translation; rows imported
from the legacy shape keep their payload in the ``data`` JSON column.
"""

from datetime import datetime
from pathlib import Path
from sqlalchemy import create_engine, Column, String, DateTime, Float, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Athlete(Base):
    """Athlete model. Read-only reference for most jobs."""

    __tablename__ = "athletes"

    id = Column(String, primary_key=True)
    organization_id = Column(String, nullable=True, index=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    team_ids = Column(JSON, nullable=True)
    data = Column(JSON, nullable=True)
    created_date = Column(DateTime, nullable=False, default=datetime.now)


class Metric(Base):
    """Metric definition model."""

    __tablename__ = "metrics"

    id = Column(String, primary_key=True)
    organization_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=True)
    data = Column(JSON, nullable=True)
    created_date = Column(DateTime, nullable=False, default=datetime.now)


class MetricRecord(Base):
    """A single performance measurement for one athlete and metric."""

    __tablename__ = "metric_records"

    id = Column(String, primary_key=True)
    athlete_id = Column(String, nullable=True, index=True)
    metric_id = Column(String, nullable=True)
    organization_id = Column(String, nullable=True, index=True)
    recorded_date = Column(String, nullable=True)
    value = Column(Float, nullable=True)
    data = Column(JSON, nullable=True)
    created_date = Column(DateTime, nullable=False, default=datetime.now)


class Team(Base):
    """Team model. Reference data, carried in backups."""

    __tablename__ = "teams"

    id = Column(String, primary_key=True)
    organization_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=True)
    sport = Column(String, nullable=True)
    season = Column(String, nullable=True)
    data = Column(JSON, nullable=True)
    created_date = Column(DateTime, nullable=False, default=datetime.now)


class MetricCategory(Base):
    __tablename__ = "metric_categories"

    id = Column(String, primary_key=True)
    organization_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=True)
    data = Column(JSON, nullable=True)
    created_date = Column(DateTime, nullable=False, default=datetime.now)


class ClassPeriod(Base):
    __tablename__ = "class_periods"

    id = Column(String, primary_key=True)
    organization_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=True)
    data = Column(JSON, nullable=True)
    created_date = Column(DateTime, nullable=False, default=datetime.now)


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    data = Column(JSON, nullable=True)
    created_date = Column(DateTime, nullable=False, default=datetime.now)


# Entity names as the managed backend spells them
ENTITY_MODELS = {
    "Athlete": Athlete,
    "Metric": Metric,
    "MetricRecord": MetricRecord,
    "Team": Team,
    "MetricCategory": MetricCategory,
    "ClassPeriod": ClassPeriod,
    "Organization": Organization,
}


def get_engine(db_path: Path):
    return create_engine(f"sqlite:///{db_path}")


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(db_path)
    Base.metadata.create_all(engine)

