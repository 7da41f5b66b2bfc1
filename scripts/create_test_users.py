"""
Seed one user per role plus a truck for local testing
"""
from app.config.database import SessionLocal, engine
from app.core.auth.service import AuthService
from app.shared.database.models import Base, Truck, User, UserRole

TEST_USERS = [
    {"email": "admin@example.com", "password": "admin123", "name": "Avery Admin", "role": UserRole.ADMIN},
    {"email": "merchant@example.com", "password": "merchant123", "name": "Morgan Merchant",
     "role": UserRole.MERCHANT, "company_name": "Acme Imports"},
    {"email": "owner@example.com", "password": "owner123", "name": "Olli Owner",
     "role": UserRole.TRUCK_OWNER, "company_name": "Northbound Haulage"},
    {"email": "driver@example.com", "password": "driver123", "name": "Dana Driver",
     "role": UserRole.DRIVER, "license_number": "CDL-48213"},
]

def create_test_users():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        existing_users = db.query(User).count()
        if existing_users > 0:
            print(f"✅ {existing_users} users already exist, nothing to do")
            return

        created = {}
        for user_data in TEST_USERS:
            data = dict(user_data)
            password = data.pop("password")
            user = User(password_hash=AuthService.get_password_hash(password), is_active=True, **data)
            db.add(user)
            created[user.role] = user
        db.flush()

        owner = created[UserRole.TRUCK_OWNER]
        created[UserRole.DRIVER].owner_id = owner.id
        db.add(Truck(owner_id=owner.id, plate_number="TRK-1001", model="Volvo FH16", capacity=24000, year=2021))

        db.commit()
        print(f"\n🎉 {len(TEST_USERS)} test users and 1 truck created")
        print("\n📋 Test credentials:")
        for user_data in TEST_USERS:
            print(f"   👤 {user_data['role'].value}: {user_data['email']} / {user_data['password']}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_test_users()
