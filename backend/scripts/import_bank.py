"""CLI script to import a JSON question bank into the backend DB.
Usage: python scripts/import_bank.py BANK.json [--no-dedupe] [--dry-run]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `assessment` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from assessment.database import engine, create_db_and_tables
from assessment import services


def main(path: pathlib.Path, deduplicate: bool = True, dry_run: bool = False):
    """Import every topic and question found in `path`.

    Results are printed to stdout for a quick CLI feedback loop.
    """
    if not path.exists():
        print(f'Bank file not found at {path}')
        return 1
    create_db_and_tables()
    with Session(engine) as session:
        svc = services.ImportService(session)
        try:
            result = svc.import_bank(path.read_bytes(), path.name, deduplicate=deduplicate, dry_run=dry_run)
        except ValueError as e:
            print(f'Error importing {path}: {e}')
            return 1
    for err in result['errors']:
        print(f"  item {err['index']}: {err['error']}")
    print(f"Imported {path}: created {result['created']}, skipped {result['skipped']}, errors {len(result['errors'])}")
    for name, topic_id in result['topics'].items():
        print(f'  topic {topic_id}: {name}')
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('bank', type=pathlib.Path, help='JSON question bank file')
    parser.add_argument('--no-dedupe', action='store_true', help='Import questions even if the same text exists in the topic')
    parser.add_argument('--dry-run', action='store_true', help='Validate without writing to the database')
    args = parser.parse_args()
    sys.exit(main(args.bank, deduplicate=not args.no_dedupe, dry_run=args.dry_run))
