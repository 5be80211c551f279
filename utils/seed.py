from models import db
from models.service import Service
from models.user import User

DEFAULT_SERVICES = [
    {"name": "Recording Studio", "price_per_hour": 1500, "duration": 60, "max_participants": 6},
    {"name": "Podcast Room", "price_per_hour": 1000, "duration": 60, "max_participants": 4},
    {"name": "Photo Shoot", "price_per_hour": 2000, "duration": 120, "max_participants": 10},
]

def seed_demo(admin_email="admin@studioslot.local"):
    """Create the demo services and an admin user if they are missing. Safe to re-run."""
    existing = {s.name for s in Service.query.all()}
    for fields in DEFAULT_SERVICES:
        if fields["name"] not in existing:
            db.session.add(Service(**fields))

    if not User.query.filter_by(email=admin_email).first():
        db.session.add(User(email=admin_email, full_name="Studio Admin"))
    db.session.commit()
