"""
Maintenance job definitions.

Jobs run from the application lifespan and the CLI:
1. Seed bartenders, rooms and menu (first start only)
2. Create the starting item catalogue (first start only)
3. Flag every user offline (no socket survives a restart)

Each job reports a result dict instead of raising.
"""
from pixel_tavern.db.seed import seed_items, seed_tavern
from pixel_tavern.deps import get_session_context
from pixel_tavern.services.accounts import reset_online_status


# === Seeding Jobs ===

def job_seed_database() -> dict[str, any]:
    """
    Insert default bartenders, rooms and menu items.

    Skipped when a bartender already exists.

    Returns:
        Job result dict
    """
    try:
        with get_session_context() as session:
            counts = seed_tavern(session)

        if not any(counts.values()):
            return {
                "status": "skipped",
                "message": "Tavern already seeded",
            }

        return {
            "status": "success",
            **counts,
        }
    except Exception as e:
        return {
            "status": "error",
            "error": str(e),
        }


def job_create_initial_items() -> dict[str, any]:
    """
    Insert the starting item catalogue when no item exists.

    Returns:
        Job result dict
    """
    try:
        with get_session_context() as session:
            created = seed_items(session)

        if not created:
            return {
                "status": "skipped",
                "message": "Items already exist",
            }

        return {
            "status": "success",
            "items": created,
        }
    except Exception as e:
        return {
            "status": "error",
            "error": str(e),
        }


# === Presence Job ===

def job_reset_online_status() -> dict[str, any]:
    """Mark all users offline."""
    try:
        return {
            "status": "success",
            "users_reset": reset_online_status(),
        }
    except Exception as e:
        return {
            "status": "error",
            "error": str(e),
        }


def run_startup_jobs() -> dict[str, dict[str, any]]:
    """
    Run every startup job in order and print a line per job.

    Returns:
        Results keyed by job name
    """
    results = {}
    for name, job in (
        ("seed_database", job_seed_database),
        ("create_initial_items", job_create_initial_items),
        ("reset_online_status", job_reset_online_status),
    ):
        result = job()
        results[name] = result

        status = result.get("status")
        if status == "success":
            print(f"✓ {name}: {_summarize(result)}")
        elif status == "skipped":
            print(f"✓ {name}: {result.get('message', 'skipped')}")
        else:
            print(f"⚠️  {name} failed: {result.get('error')}")

    return results


def _summarize(result: dict[str, any]) -> str:
    parts = [f"{key}={value}" for key, value in result.items() if key != "status"]
    return ", ".join(parts) or "done"
