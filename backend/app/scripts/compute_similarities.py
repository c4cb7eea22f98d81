"""
Batch job for refreshing lifestyle similarities.

Run periodically (e.g., nightly) so the transition recommender reads
similarities that reflect users' latest stuff, routines and journeys.

Run with: python -m app.scripts.compute_similarities
"""

import sys
import time
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from app.core.database import SessionLocal
from app.core.logging import setup_logging
from app.services.similarity import calculate_all_similarities


def progress_callback(current: int, total: int):
    """Print progress updates."""
    percent = int(current / total * 100)
    bar_length = 40
    filled = int(bar_length * current / total)
    bar = "█" * filled + "░" * (bar_length - filled)
    print(f"\r  [{bar}] {percent}% ({current}/{total})", end="", flush=True)


def main():
    """Run batch similarity computation."""
    setup_logging()
    print("Starting lifestyle similarity refresh...\n")
    start_time = time.time()

    db = SessionLocal()

    try:
        stats = calculate_all_similarities(db, progress_callback=progress_callback)
        print()

        elapsed = time.time() - start_time

        print("\n=== Refresh Complete ===")
        print(f"Time elapsed: {elapsed:.1f} seconds")
        print(f"Users processed: {stats['users_processed']}")
        print(f"Users failed: {stats['users_failed']}")
        print(f"Similarities saved: {stats['similarities_computed']}")

    except Exception as e:
        print(f"\n✗ Error during computation: {e}")
        raise

    finally:
        db.close()


if __name__ == "__main__":
    main()
