"""Create a local admin and a regular user, each with a company"""
import logging
from sitebuilder.db.session import SessionLocal
from sitebuilder.crud import crud_company, crud_user
from sitebuilder.models.user import UserRole

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TEST_USERS = [
    {"email": "admin@example.com", "username": "admin", "password": "Admin12345", "role": UserRole.ADMIN.value,
     "company": "Example Admin Co"},
    {"email": "owner@example.com", "username": "owner", "password": "Owner12345", "role": UserRole.USER.value,
     "company": "Example Owner Co"},
]


def create_test_users():
    db = SessionLocal()
    try:
        for entry in TEST_USERS:
            user = crud_user.get_by_email(db, entry["email"])
            if user:
                logger.info("User %s already exists", entry["email"])
                continue
            logger.info("Creating %s user %s", entry["role"], entry["email"])
            user = crud_user.create(
                db,
                email=entry["email"],
                username=entry["username"],
                password=entry["password"],
                role=entry["role"],
                meta={"first_name": entry["username"].title(), "last_name": "Test"},
            )
            crud_company.create(db, name=entry["company"], user_id=user.id, email=entry["email"])
            db.commit()

        logger.info("Test users created successfully!")
        logger.info("=" * 50)
        for entry in TEST_USERS:
            logger.info("%-8s %s / %s", entry["role"], entry["email"], entry["password"])
        logger.info("=" * 50)
    finally:
        db.close()


if __name__ == "__main__":
    create_test_users()
