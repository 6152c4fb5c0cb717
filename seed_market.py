"""Script to create or reset the market document."""
import argparse
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from sqlalchemy.exc import SQLAlchemyError

from urlcoin.core.database import init_db
from urlcoin.services.coin_catalog import INITIAL_COINS, reset_market, seed_market
from urlcoin.services.document_store import get_document_store


def main():
    """Seed the market, or reset it to listing prices with --reset."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--reset", action="store_true", help="overwrite the market with listing prices")
    args = parser.parse_args()

    print("Preparing market document...")
    try:
        init_db()
        store = get_document_store()
        if args.reset:
            reset_market(store)
            print(f"🔄 Market reset: {len(INITIAL_COINS)} coins at listing prices")
        elif seed_market(store):
            print(f"✅ Market seeded with {len(INITIAL_COINS)} coins")
        else:
            print("Market already exists (use --reset to overwrite)")
    except SQLAlchemyError as e:
        print(f"\n❌ Error while preparing the market: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
