"""Seed a demo saga and run one suggestion batch.

Usage (from repository root):
    python backend/scripts/seed_demo.py

Usage (from backend directory):
    python scripts/seed_demo.py
    # or
    python -m scripts.seed_demo
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import delete, select

# Make `saga_suggestions` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from saga_suggestions.db.session import SessionLocal
from saga_suggestions.models.content_fragment import ContentFragment, EntityMention
from saga_suggestions.models.entity import Entity
from saga_suggestions.models.entity_relationship import EntityRelationship
from saga_suggestions.models.relationship_suggestion import SuggestionRecord
from saga_suggestions.models.timeline_event import TimelineEvent
from saga_suggestions.services.background_jobs import build_suggestion_processor
from saga_suggestions.suggestions.rate_limit import CallBudget

DEFAULT_SAGA_ID = 1

DEMO_ENTITIES: list[tuple[str, str, int, str]] = [
    ("Luke Skywalker", "character", 95, "Farm boy from Tatooine who becomes a Jedi Knight."),
    ("Leia Organa", "character", 92, "Princess of Alderaan and leader in the Rebel Alliance."),
    ("Han Solo", "character", 88, "Smuggler and captain of the Millennium Falcon."),
    ("Obi-Wan Kenobi", "character", 85, "Jedi Master living in exile on Tatooine."),
    ("Darth Vader", "character", 90, "Sith Lord serving the Galactic Empire."),
    ("Tatooine", "location", 60, "Desert planet in the Outer Rim."),
    ("Rebel Alliance", "faction", 70, "Coalition fighting the Galactic Empire."),
    ("Galactic Empire", "faction", 70, "Authoritarian regime ruling the galaxy."),
]

DEMO_RELATIONSHIPS: list[tuple[str, str, str]] = [
    ("Luke Skywalker", "Rebel Alliance", "member_of"),
    ("Leia Organa", "Rebel Alliance", "member_of"),
    ("Han Solo", "Rebel Alliance", "member_of"),
    ("Darth Vader", "Galactic Empire", "member_of"),
    ("Luke Skywalker", "Tatooine", "lives_in"),
    ("Obi-Wan Kenobi", "Tatooine", "lives_in"),
]

DEMO_FRAGMENTS: list[tuple[str, list[str]]] = [
    ("Luke and Leia escape the Death Star with Han.", ["Luke Skywalker", "Leia Organa", "Han Solo"]),
    ("Obi-Wan tells Luke about his father.", ["Obi-Wan Kenobi", "Luke Skywalker"]),
    ("Vader duels Obi-Wan aboard the battle station.", ["Darth Vader", "Obi-Wan Kenobi"]),
    ("Leia briefs Luke before the attack on the Death Star.", ["Leia Organa", "Luke Skywalker"]),
    ("Han returns to help Luke destroy the Death Star.", ["Han Solo", "Luke Skywalker"]),
]

DEMO_EVENTS: list[tuple[str, float, list[str]]] = [
    ("Rescue of the princess", 0.0, ["Luke Skywalker", "Leia Organa", "Han Solo", "Obi-Wan Kenobi"]),
    ("Duel on the Death Star", 0.5, ["Darth Vader", "Obi-Wan Kenobi"]),
    ("Battle of Yavin", 2.0, ["Luke Skywalker", "Han Solo", "Leia Organa", "Darth Vader"]),
]


def reset_saga(db, saga_id: int) -> None:
    """Remove existing records for the demo saga."""

    db.execute(delete(SuggestionRecord).where(SuggestionRecord.saga_id == saga_id))
    db.execute(delete(TimelineEvent).where(TimelineEvent.saga_id == saga_id))
    fragment_ids = select(ContentFragment.id).where(ContentFragment.saga_id == saga_id)
    db.execute(delete(EntityMention).where(EntityMention.fragment_id.in_(fragment_ids)))
    db.execute(delete(ContentFragment).where(ContentFragment.saga_id == saga_id))
    db.execute(delete(EntityRelationship).where(EntityRelationship.saga_id == saga_id))
    db.execute(delete(Entity).where(Entity.saga_id == saga_id))
    db.commit()


def seed_saga(db, saga_id: int) -> dict[str, int]:
    """Insert demo entities, relationships, fragments and events; return name -> id."""

    ids: dict[str, int] = {}
    for name, entity_type, importance, description in DEMO_ENTITIES:
        entity = Entity(
            saga_id=saga_id,
            canonical_name=name,
            entity_type=entity_type,
            importance_score=importance,
            description=description,
            attributes_json={},
        )
        db.add(entity)
        db.flush()
        ids[name] = entity.id

    for source, target, relationship_type in DEMO_RELATIONSHIPS:
        db.add(
            EntityRelationship(
                saga_id=saga_id,
                source_entity_id=ids[source],
                target_entity_id=ids[target],
                relationship_type=relationship_type,
            )
        )

    for text, names in DEMO_FRAGMENTS:
        fragment = ContentFragment(saga_id=saga_id, fragment_text=text)
        db.add(fragment)
        db.flush()
        for name in names:
            db.add(EntityMention(fragment_id=fragment.id, entity_id=ids[name]))

    for title, timestamp, names in DEMO_EVENTS:
        db.add(
            TimelineEvent(
                saga_id=saga_id,
                title=title,
                normalized_timestamp=timestamp,
                participants_json=[ids[name] for name in names],
            )
        )
    db.commit()
    return ids


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Seed a demo saga and run one suggestion batch.")
    parser.add_argument(
        "--saga-id",
        type=int,
        default=DEFAULT_SAGA_ID,
        help=f"Saga ID to seed (default: {DEFAULT_SAGA_ID})",
    )
    parser.add_argument(
        "--no-reset",
        action="store_true",
        help="Do not delete existing records for the saga before seeding.",
    )
    return parser.parse_args()


def main() -> None:
    """Seed demo data and print a short summary."""

    args = parse_args()
    saga_id: int = args.saga_id

    with SessionLocal() as db:
        if not args.no_reset:
            reset_saga(db, saga_id)
        ids = seed_saga(db, saga_id)
        result = build_suggestion_processor(db, budget=CallBudget()).run_batch(saga_id)

    print("Seed complete")
    print(f"saga_id={saga_id}")
    print(f"entities_created={len(ids)}")
    print(f"candidate_pairs={result.candidates}")
    print(f"suggestions_generated={result.generated}")
    print(f"below_threshold={result.below_threshold}")
    print(f"skipped={result.skipped}")
    print()
    print("Inspect:")
    print(f"  GET /sagas/{saga_id}/suggestions")
    print(f"  GET /sagas/{saga_id}/suggestions/metrics")


if __name__ == "__main__":
    main()
