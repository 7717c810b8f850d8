import uuid
from sqlalchemy.orm import Session

from bizchat.models.business import (
    Business,
    BusinessHours,
    BusinessService,
    BusinessFAQ,
    KnowledgeItem,
    CustomInstructions,
)
from bizchat.models.cached_response import CachedResponse
from bizchat.models.conversation import ChatConversation, ChatMessage
from bizchat.models.plan import Plan, UserPlan
from bizchat.models.usage import UsageTracking

# Monthly message limit per business and businesses per owner
DEFAULT_PLANS = [
    {"name": "free", "message_limit": 100, "max_businesses": 1},
    {"name": "pro", "message_limit": 2000, "max_businesses": 3},
    {"name": "business", "message_limit": 10000, "max_businesses": 10},
]

DEMO_OWNER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
PRO_OWNER_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")


def seed_plans(db: Session) -> None:
    """Insert the default plans that are missing; existing rows are left alone."""
    existing = {name for (name,) in db.query(Plan.name).all()}
    for plan in DEFAULT_PLANS:
        if plan["name"] not in existing:
            db.add(Plan(id=uuid.uuid4(), **plan))
    db.commit()


def seed_db(db: Session) -> None:
    """Seed the database with plans and two demo businesses."""

    # Clear existing data (optional - comment out if you want to preserve data)
    db.query(ChatMessage).delete()
    db.query(ChatConversation).delete()
    db.query(CachedResponse).delete()
    db.query(UsageTracking).delete()
    db.query(CustomInstructions).delete()
    db.query(KnowledgeItem).delete()
    db.query(BusinessFAQ).delete()
    db.query(BusinessService).delete()
    db.query(BusinessHours).delete()
    db.query(Business).delete()
    db.query(UserPlan).delete()
    db.commit()

    seed_plans(db)

    # Owner plans: the demo owner has no row (free), the second owner is on pro
    db.add(UserPlan(id=uuid.uuid4(), user_id=PRO_OWNER_ID, plan="pro"))
    db.commit()

    acme = Business(
        id=uuid.uuid4(),
        user_id=DEMO_OWNER_ID,
        name="Acme",
        description="Neighborhood bakery and cafe",
        contact_phone="555-0100",
        contact_email="hello@acme.example",
        address="12 Market St",
        website="https://acme.example",
    )
    salon = Business(
        id=uuid.uuid4(),
        user_id=PRO_OWNER_ID,
        name="Elite Hair Salon",
        description="Cuts, color and styling",
        address="456 Broadway, New York, NY 10013",
    )
    db.add(acme)
    db.add(salon)
    db.commit()
    db.refresh(acme)
    db.refresh(salon)

    # Acme: open Monday, closed Sunday
    db.add(BusinessHours(business_id=acme.id, day_of_week=0, is_closed=True))
    db.add(BusinessHours(business_id=acme.id, day_of_week=1, open_time="09:00", close_time="17:00", is_closed=False))
    db.add(BusinessFAQ(business_id=acme.id, question="Do you deliver?", answer="Yes, within 10 miles"))
    db.add(BusinessService(business_id=acme.id, name="Sourdough loaf", price="$8"))
    db.add(
        KnowledgeItem(
            business_id=acme.id,
            type="text",
            title="Allergens",
            content="All breads are baked in a kitchen that also handles nuts.",
        )
    )

    for day in range(1, 6):
        db.add(BusinessHours(business_id=salon.id, day_of_week=day, open_time="10:00", close_time="19:00"))
    db.add(BusinessService(business_id=salon.id, name="Haircut", description="Wash, cut and style", price="$45"))
    db.add(BusinessService(business_id=salon.id, name="Color", price="from $90"))
    db.add(
        CustomInstructions(
            business_id=salon.id,
            instructions="Always suggest booking online at least two days ahead.",
        )
    )
    db.commit()

    print(f"Seeded {len(DEFAULT_PLANS)} plans and businesses:")
    print(f"  {acme.name}: {acme.id} (free)")
    print(f"  {salon.name}: {salon.id} (pro)")
