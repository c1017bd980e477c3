# scripts/seed_database.py
"""
Database seeding script.
Populates sponsors and leaders, then replays generated captures through the
reconciliation orchestrator so variants, assignments and incidents come out
exactly as they would in production.
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from faker import Faker  # noqa: E402

from app import app  # noqa: E402
from canvass_app.models import Leader, Sponsor, db  # noqa: E402
from canvass_app.reconciliation import ReconciliationError, ReconciliationOrchestrator  # noqa: E402

fake = Faker("es_CO")

SEED_ACTOR = "seed-script"

# Statistics tracking
stats = {
    "sponsors": 0,
    "leaders": 0,
    "captures": 0,
    "duplicates": 0,
    "incidents": 0,
    "errors": [],
}


def clear_database():
    """Drop and recreate every table"""
    print("Clearing existing data...")
    db.drop_all()
    db.create_all()
    print("  Database cleared")


def _identifier():
    return str(fake.unique.random_number(digits=10, fix_len=True))


def create_sponsors(count):
    sponsors = []
    for _ in range(count):
        sponsor = Sponsor(
            identifier=_identifier(),
            first_name=fake.first_name().upper(),
            last_name=fake.last_name().upper(),
            phone=fake.msisdn()[:12],
            email=fake.email().upper(),
        )
        db.session.add(sponsor)
        sponsors.append(sponsor)
    db.session.commit()
    stats["sponsors"] += len(sponsors)
    return sponsors


def create_leaders(sponsors, per_sponsor):
    leaders = []
    for sponsor in sponsors:
        for _ in range(per_sponsor):
            leader = Leader(
                identifier=_identifier(),
                sponsor_identifier=sponsor.identifier,
                first_name=fake.first_name().upper(),
                last_name=fake.last_name().upper(),
                phone=fake.msisdn()[:12],
                objective=str(fake.random_int(50, 400)),
            )
            db.session.add(leader)
            leaders.append(leader)
    db.session.commit()
    stats["leaders"] += len(leaders)
    return leaders


def _voter_fields():
    return {
        "nombres": fake.first_name(),
        "apellidos": fake.last_name(),
        "direccion": fake.street_address(),
        "celular": fake.msisdn()[:10],
    }


def _submit(orchestrator, leader_id, voter_id, fields):
    try:
        outcome = orchestrator.submit_capture(leader_id, voter_id, fields, SEED_ACTOR, source="seed")
    except ReconciliationError as exc:
        if exc.code == "ExactDuplicate":
            stats["duplicates"] += 1
        else:
            stats["errors"].append(f"{leader_id}/{voter_id}: {exc.message}")
        return
    stats["captures"] += 1
    stats["incidents"] += len(outcome.incidents)


def create_captures(leaders, voters_per_leader, overlap_ratio):
    """
    Each leader reports its own voters; a share of them is also reported by a
    second leader, and a few are resubmitted with altered data.
    """
    orchestrator = ReconciliationOrchestrator()
    reported = []
    for leader in leaders:
        for _ in range(voters_per_leader):
            voter_id = _identifier()
            fields = _voter_fields()
            _submit(orchestrator, leader.identifier, voter_id, fields)
            reported.append((leader.identifier, voter_id, fields))

    for leader_id, voter_id, fields in reported:
        roll = fake.random.random()
        if roll < overlap_ratio and len(leaders) > 1:
            other = fake.random.choice([leader for leader in leaders if leader.identifier != leader_id])
            _submit(orchestrator, other.identifier, voter_id, fields)
        elif roll < overlap_ratio * 1.5:
            changed = dict(fields, celular=fake.msisdn()[:10])
            _submit(orchestrator, leader_id, voter_id, changed)
        elif roll < overlap_ratio * 1.7:
            _submit(orchestrator, leader_id, voter_id, fields)


def seed_database(*, clear=False, sponsors=3, leaders_per_sponsor=4, voters_per_leader=25, overlap=0.1, dry_run=False):
    """Seed the database with sample data"""
    if dry_run:
        total_leaders = sponsors * leaders_per_sponsor
        print("Dry run - nothing will be written:")
        print(f"  sponsors : {sponsors}")
        print(f"  leaders  : {total_leaders}")
        print(f"  captures : ~{int(total_leaders * voters_per_leader * (1 + overlap * 1.7))}")
        return

    with app.app_context():
        if clear:
            clear_database()
        else:
            db.create_all()

        print("Creating sponsors...")
        sponsor_rows = create_sponsors(sponsors)
        print("Creating leaders...")
        leader_rows = create_leaders(sponsor_rows, leaders_per_sponsor)
        print("Replaying captures...")
        create_captures(leader_rows, voters_per_leader, overlap)

    print("\nSeeding complete:")
    for key in ("sponsors", "leaders", "captures", "duplicates", "incidents"):
        print(f"  {key:<10}: {stats[key]}")
    if stats["errors"]:
        print(f"  errors    : {len(stats['errors'])}")
        for error in stats["errors"][:10]:
            print(f"    - {error}")


def main():
    """Command-line interface"""
    parser = argparse.ArgumentParser(description="Seed the database with sample canvass data")
    parser.add_argument("--clear", action="store_true", help="Drop and recreate tables before seeding")
    parser.add_argument("--sponsors", type=int, default=3, help="Number of sponsors (default: 3)")
    parser.add_argument("--leaders-per-sponsor", type=int, default=4, help="Leaders per sponsor (default: 4)")
    parser.add_argument("--voters-per-leader", type=int, default=25, help="Voters per leader (default: 25)")
    parser.add_argument(
        "--overlap",
        type=float,
        default=0.1,
        help="Share of voters re-reported by a second leader (default: 0.1)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Show what would be created")
    parser.add_argument("--seed", type=int, help="Faker seed for reproducible data")

    args = parser.parse_args()
    if args.seed is not None:
        Faker.seed(args.seed)

    seed_database(
        clear=args.clear,
        sponsors=args.sponsors,
        leaders_per_sponsor=args.leaders_per_sponsor,
        voters_per_leader=args.voters_per_leader,
        overlap=args.overlap,
        dry_run=args.dry_run,
    )


if __name__ == "__main__":
    main()
