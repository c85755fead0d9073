"""
Recompute student stats from the command line.

    python sync_stats.py --tenant <tenantId>                 # every student
    python sync_stats.py --tenant <tenantId> --student <id>  # one student
    python sync_stats.py --tenant <tenantId> --reset         # clear stats first

Uses the same aggregator as the API, so a run is safe to repeat.
"""
import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

backend_dir = Path(__file__).parent
for env_path in (backend_dir / '.env', backend_dir.parent / '.env'):
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)

from api.responses import sanitize_for_json
from core import config
from core.auth import init_firebase_admin
from core.errors import StudioError
from core.logger import logger
from firestore.client import get_firestore_client
from firestore.studio_data import firestore_repository_factory
from stats.aggregator import StatsAggregator


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Recompute denormalized student stats")
    parser.add_argument('--tenant', required=True, help="Business (tenant) id")
    parser.add_argument('--student', action='append', default=[],
                        help="Student id; repeat to sync several. Defaults to every student")
    parser.add_argument('--chunk-size', type=int, default=None,
                        help=f"Students recomputed concurrently "
                             f"({config.MIN_SYNC_CHUNK_SIZE}-{config.MAX_SYNC_CHUNK_SIZE})")
    parser.add_argument('--policy', choices=config.ATTENDANCE_POLICIES, default=None,
                        help="Which attendance statuses count towards first attendance")
    parser.add_argument('--reset', action='store_true',
                        help="Remove existing stats before recomputing")
    return parser.parse_args(argv)


def run(args, repositories) -> int:
    aggregator = StatsAggregator(repositories, policy=args.policy, chunk_size=args.chunk_size)
    student_ids = args.student or repositories(args.tenant).list_student_ids()

    if args.reset:
        repositories(args.tenant).clear_stats(student_ids)

    result = aggregator.recompute_batch(args.tenant, student_ids)
    print(json.dumps(sanitize_for_json(result.to_dict()), indent=2))
    return 0 if result.errors == 0 else 1


def main(argv=None) -> int:
    args = parse_args(argv)
    init_firebase_admin()
    client = get_firestore_client()
    if client is None:
        print("Firestore is not available; check Firebase Admin credentials.", file=sys.stderr)
        return 2
    try:
        return run(args, firestore_repository_factory(client))
    except StudioError as e:
        logger.error(f"Stats sync failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
