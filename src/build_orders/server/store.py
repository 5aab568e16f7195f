import logging
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from build_orders.shared.schemas import BuildOrderCreate, BuildOrderUpdate, StepIn
from build_orders.server.models import BuildOrder, Step, User

logger = logging.getLogger("build_orders.server.store")

# --- Sample Data ---

SEED_USER = {"name": "Test User", "steam_id": None, "image": None}
SEED_BUILD_ORDER = {
    "title": "22 Pop Scouts",
    "description": "Fast scouts rush build order for Arabia",
    "civilization": "Mongols",
    "mapType": ["Arabia"],
    "isPublic": True,
    "steps": [
        {
            "order": 0, "timeMinutes": 0, "timeSeconds": 0, "villagerCount": 3,
            "action": "Initial setup",
            "description": "3 villagers to sheep, build 2 houses",
            "resources": {"wood": 200, "food": 0, "gold": 0, "stone": 0},
        },
        {
            "order": 1, "timeMinutes": 1, "timeSeconds": 30, "villagerCount": 6,
            "action": "Build Barracks",
            "description": "Send 3 villagers to wood, build barracks",
            "resources": {"wood": 175, "food": 150, "gold": 0, "stone": 0},
        },
    ],
}


def _with_relations(stmt):
    return stmt.options(selectinload(BuildOrder.author), selectinload(BuildOrder.steps))


def _make_steps(steps: List[StepIn]) -> List[Step]:
    return [
        Step(
            order=s.order, time_minutes=s.time_minutes, time_seconds=s.time_seconds,
            villager_count=s.villager_count, action=s.action, description=s.description,
            resources=s.resources.model_dump(),
        )
        for s in steps
    ]


# --- Build Orders ---

def list_build_orders(db: Session, public_only: bool = False, author_id: Optional[str] = None) -> List[BuildOrder]:
    stmt = _with_relations(select(BuildOrder))
    if public_only:
        stmt = stmt.where(BuildOrder.is_public.is_(True))
    if author_id:
        stmt = stmt.where(BuildOrder.author_id == author_id)
    stmt = stmt.order_by(BuildOrder.created_at.desc())
    return list(db.scalars(stmt).all())


def get_build_order(db: Session, build_order_id: str) -> Optional[BuildOrder]:
    return db.scalars(_with_relations(select(BuildOrder)).where(BuildOrder.id == build_order_id)).first()


def increment_views(db: Session, build_order: BuildOrder) -> BuildOrder:
    """Read-modify-write display counter; concurrent readers may under-count."""
    build_order.views = (build_order.views or 0) + 1
    db.commit()
    db.refresh(build_order)
    return build_order


def create_build_order(db: Session, author: User, payload: BuildOrderCreate) -> BuildOrder:
    build_order = BuildOrder(
        title=payload.title,
        description=payload.description,
        civilization=payload.civilization,
        map_type=list(payload.map_type),
        is_public=payload.is_public,
        author_id=author.id,
        steps=_make_steps(payload.steps),
    )
    db.add(build_order)
    db.commit()
    logger.info(f"Build order {build_order.id} created by {author.id} ({len(payload.steps)} steps)")
    db.expire(build_order)
    return get_build_order(db, build_order.id)


def update_build_order(db: Session, build_order: BuildOrder, payload: BuildOrderUpdate) -> BuildOrder:
    changes = payload.changes()
    new_steps = changes.pop("steps", None)

    for field, value in changes.items():
        setattr(build_order, field, value)

    if new_steps is not None:
        # Delete-all-then-recreate; steps are never patched individually
        build_order.steps.clear()
        db.flush()
        build_order.steps.extend(_make_steps(payload.steps))

    db.commit()
    logger.info(f"Build order {build_order.id} updated (fields: {sorted(payload.model_fields_set)})")
    db.expire(build_order)
    return get_build_order(db, build_order.id)


def delete_build_order(db: Session, build_order: BuildOrder):
    build_order_id = build_order.id
    db.delete(build_order)
    db.commit()
    logger.info(f"Build order {build_order_id} deleted")


# --- Users ---

def upsert_user(db: Session, steam_id: str, name: Optional[str], image: Optional[str]) -> User:
    """Creates the user on first sign-in, refreshes name and avatar afterwards."""
    user = db.scalars(select(User).where(User.steam_id == steam_id)).first()
    if user is None:
        user = User(steam_id=steam_id, name=name, image=image)
        db.add(user)
        logger.info(f"New user for steam id {steam_id}")
    else:
        user.name = name
        user.image = image
    db.commit()
    db.refresh(user)
    return user


def seed_database(db: Session) -> bool:
    """Inserts a sample user and build order into an empty database."""
    if db.scalars(select(BuildOrder).limit(1)).first() is not None:
        return False
    user = User(**SEED_USER)
    db.add(user)
    db.flush()
    create_build_order(db, user, BuildOrderCreate.model_validate(SEED_BUILD_ORDER))
    logger.info("Database seeded successfully")
    return True
