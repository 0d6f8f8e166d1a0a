#!/usr/bin/env python3
"""Setup script for the travel back-office API."""

import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from backoffice.core.database import async_session_factory, close_db
from backoffice.models import Agent, IssuedPartner
from backoffice.schemas.entity import CreateEntityRequest
from backoffice.schemas.ledger import EntityType
from backoffice.services.entity_service import EntityService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_AGENTS = [("Colombo Travel Desk", Decimal("0")), ("Kandy Holidays", Decimal("150.00"))]
SAMPLE_PARTNERS = [("Lanka Air Consolidators", Decimal("5000.00")), ("Global Ticketing GmbH", Decimal("2500.00"))]


def setup_database():
    """Run Alembic migrations up to head."""
    logger.info("Running database migrations...")

    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))
    command.upgrade(alembic_cfg, "head")

    logger.info("Database migrations completed")


async def create_sample_data():
    """Create a few agents and issuing partners with opening balances."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        agent_count = (await db.execute(select(func.count()).select_from(Agent))).scalar_one()
        partner_count = (await db.execute(select(func.count()).select_from(IssuedPartner))).scalar_one()
        if agent_count or partner_count:
            logger.info("Sample data already exists, skipping...")
            return

        entity_service = EntityService(db)
        for name, opening_balance in SAMPLE_AGENTS:
            await entity_service.create_entity(
                CreateEntityRequest(entity_type=EntityType.AGENT, name=name, opening_balance=opening_balance)
            )
        for name, opening_balance in SAMPLE_PARTNERS:
            await entity_service.create_entity(
                CreateEntityRequest(entity_type=EntityType.PARTNER, name=name, opening_balance=opening_balance)
            )

    await close_db()
    logger.info("Sample data created successfully!")


def main():
    """Main setup function."""
    logger.info("Starting travel back-office setup...")

    setup_database()
    asyncio.run(create_sample_data())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn backoffice.main:app --reload")


if __name__ == "__main__":
    main()
