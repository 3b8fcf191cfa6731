#!/usr/bin/env python3
"""
Pixel Tavern CLI - Command-line interface for common operations.

Usage:
    python cli.py init-db              # Initialize database
    python cli.py reset-db             # Reset database (DESTRUCTIVE!)
    python cli.py seed                 # Seed bartenders, rooms, menu and items
    python cli.py health               # Check system health
    python cli.py stats                # Show database stats
    python cli.py reply Ruby "hello"   # Ask a bartender for a reply
    python cli.py serve                # Run the API and WebSocket server
"""
import sys
import asyncio

import uvicorn

# Add project root to path
sys.path.insert(0, ".")

from pixel_tavern.config import get_settings
from pixel_tavern.db.sqlite import init_db, check_db_health
from pixel_tavern.services.dialogue import generate_reply
from pixel_tavern.tasks.jobs import (
    job_seed_database,
    job_create_initial_items,
    job_reset_online_status,
)


def print_header(text: str):
    """Print formatted header."""
    print(f"\n{'=' * 60}")
    print(f"  {text}")
    print(f"{'=' * 60}\n")


def print_status(key: str, value: any, indent: int = 0):
    """Print formatted status line."""
    spaces = "  " * indent
    print(f"{spaces}{key:30s}: {value}")


def print_job_result(name: str, result: dict[str, any]):
    if result["status"] == "success":
        print(f"✓ {name}")
        for key, value in result.items():
            if key != "status":
                print_status(key, value, 1)
    elif result["status"] == "skipped":
        print(f"⚠️  {name} skipped: {result['message']}")
    else:
        print(f"✗ {name} failed: {result.get('error')}")


async def cmd_init_db(reset: bool = False):
    """Initialize or reset database."""
    print_header("Database Initialization")

    if reset:
        print("⚠️  WARNING: This will delete all data!")
        confirm = input("Type 'yes' to confirm: ")
        if confirm.lower() != "yes":
            print("Aborted.")
            return

    init_db(drop_all=reset)
    print("✓ Database initialized successfully")


async def cmd_seed():
    """Seed tavern data and clear stale presence."""
    print_header("Seeding Tavern")

    init_db()
    print_job_result("Bartenders, rooms & menu", job_seed_database())
    print_job_result("Item catalogue", job_create_initial_items())
    print_job_result("Online status reset", job_reset_online_status())
    print()


async def cmd_health():
    """Check system health."""
    print_header("System Health Check")

    settings = get_settings()

    # Configuration status
    print("Configuration:")
    print_status("OpenRouter API Key", "✓ Set" if settings.OPENROUTER_API_KEY else "✗ Not set", 1)
    print_status("Model", settings.OPENROUTER_MODEL, 1)
    print_status("Database URL", settings.DATABASE_URL, 1)

    # Database health
    print("\nDatabase:")
    db_health = check_db_health()

    if db_health.get("status") == "healthy":
        print_status("Status", "✓ Healthy", 1)
        counts = db_health.get("counts", {})
        print_status("Users", counts.get("users", 0), 1)
        print_status("Rooms", counts.get("rooms", 0), 1)
        print_status("Bartenders", counts.get("bartenders", 0), 1)
        print_status("Items", counts.get("items", 0), 1)
    else:
        print_status("Status", f"✗ Unhealthy: {db_health.get('error')}", 1)

    print()


async def cmd_stats():
    """Show database statistics."""
    print_header("Database Statistics")

    db_health = check_db_health()

    if db_health.get("status") == "healthy":
        counts = db_health.get("counts", {})

        print("Patrons:")
        print_status("Total Users", counts.get("users", 0), 1)
        print_status("Online Users", counts.get("users_online", 0), 1)

        print("\nTavern:")
        print_status("Rooms", counts.get("rooms", 0), 1)
        print_status("Messages", counts.get("messages", 0), 1)
        print_status("Bartenders", counts.get("bartenders", 0), 1)
        print_status("Menu Items", counts.get("menu_items", 0), 1)

        print("\nRelationships:")
        print_status("Mood Records", counts.get("moods", 0), 1)
        print_status("Memory Records", counts.get("memories", 0), 1)

        print("\nItems:")
        print_status("Catalogue", counts.get("items", 0), 1)
        print_status("Inventory Stacks", counts.get("inventory_entries", 0), 1)

        # Calculate rates
        users = counts.get("users", 0)
        messages = counts.get("messages", 0)
        if users > 0:
            print("\nRatios:")
            print_status("Messages per User", f"{messages/users:.2f}", 1)
    else:
        print(f"✗ Database error: {db_health.get('error')}")

    print()


async def cmd_reply(bartender: str, message: str):
    """Generate one bartender reply (OpenRouter if configured, canned otherwise)."""
    print_header(f"Asking {bartender}")

    reply = await generate_reply(bartender, message, "Traveler")
    print(reply)
    print()


async def cmd_serve():
    """Run the tavern server with uvicorn."""
    settings = get_settings()
    print_header(f"Pixel Tavern on http://{settings.HOST}:{settings.PORT}")

    config = uvicorn.Config("pixel_tavern.main:app", host=settings.HOST, port=settings.PORT)
    await uvicorn.Server(config).serve()


def print_help():
    """Print help message."""
    print("""
Pixel Tavern CLI

Usage:
    python cli.py <command> [options]

Commands:
    init-db                      Initialize database
    reset-db                     Reset database (DESTRUCTIVE!)
    seed                         Seed bartenders, rooms, menu and items
    health                       Check system health
    stats                        Show database statistics
    reply <bartender> <message>  Ask a bartender for a reply
    serve                        Run the API and WebSocket server
    help                         Show this help message

Examples:
    python cli.py init-db
    python cli.py seed
    python cli.py health
    python cli.py reply Amethyst "What do you recommend?"
    python cli.py stats
""")


async def main():
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print_help()
        return

    command = sys.argv[1].lower()

    try:
        if command == "init-db":
            await cmd_init_db(reset=False)
        elif command == "reset-db":
            await cmd_init_db(reset=True)
        elif command == "seed":
            await cmd_seed()
        elif command == "health":
            await cmd_health()
        elif command == "stats":
            await cmd_stats()
        elif command == "reply":
            if len(sys.argv) < 4:
                print("Usage: python cli.py reply <bartender> <message>")
                sys.exit(1)
            await cmd_reply(sys.argv[2], " ".join(sys.argv[3:]))
        elif command == "serve":
            await cmd_serve()
        elif command == "help":
            print_help()
        else:
            print(f"Unknown command: {command}")
            print_help()
            sys.exit(1)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        print(f"\n✗ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
