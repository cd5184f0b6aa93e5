# storefront/utils/activity_helpers.py
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.models.activity_models import UserActivity

async def log_user_activity(db: AsyncSession, user=None, message: str = "", commit: bool = False):
    """
    Adds a user activity log to the session. The caller is responsible for the commit.
    """
    activity = UserActivity(
        user_id=getattr(user, "id", None),
        username=getattr(user, "username", None),
        message=message,
    )
    db.add(activity)
    if commit:
        await db.commit()
