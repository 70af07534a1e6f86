"""Sample data for demo deployments."""

import logging
from datetime import timedelta

from app.models.entities import utcnow
from app.services.store import SyncStore

logger = logging.getLogger(__name__)


async def seed_sample_data(store: SyncStore) -> None:
    """Insert two sample databases and a change for each. Skipped if any database exists."""
    if await store.list_databases():
        logger.info("Store already has databases, skipping sample data")
        return

    now = utcnow()

    customers = await store.create_database({
        "external_id": "db_abc123def456",
        "name": "Customer Database",
        "record_count": 847,
        "sync_direction": "bidirectional",
        "status": "connected",
    })
    projects = await store.create_database({
        "external_id": "db_xyz789uvw012",
        "name": "Project Tracker",
        "record_count": 156,
        "sync_direction": "pull",
        "status": "syncing",
    })
    await store.update_database(customers.id, {"last_sync": now - timedelta(minutes=2)})
    await store.update_database(projects.id, {"last_sync": now})

    await store.create_change({
        "database_id": customers.id,
        "record_name": "John Smith",
        "action": "created",
        "timestamp": now - timedelta(minutes=2),
        "status": "synced",
        "record_data": {"email": "john@example.com", "type": "customer"},
    })
    await store.create_change({
        "database_id": projects.id,
        "record_name": "Website Redesign",
        "action": "updated",
        "timestamp": now - timedelta(minutes=5),
        "status": "pending",
        "record_data": {"status": "in-progress", "priority": "high"},
    })

    logger.info("Seeded sample databases and changes")
