import sys
import os
import asyncio

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from app.core.database import session_manager
from app.services.AssessmentStore import assessment_store_scope
from app.services.DownloadTokenService import cleanup_expired_tokens


async def run_cleanup() -> int:
    """Deactivate expired PDF download tokens and return how many changed."""
    await session_manager.init()
    if not session_manager.is_configured:
        raise RuntimeError("DATABASE_URL is not configured")
    try:
        async with assessment_store_scope() as store:
            return await cleanup_expired_tokens(store)
    finally:
        await session_manager.close()


if __name__ == "__main__":
    print("\n🧹 Cleaning up expired PDF download tokens...\n")

    try:
        count = asyncio.run(run_cleanup())
        print(f"✅ Deactivated {count} expired tokens\n")
        sys.exit(0)

    except KeyboardInterrupt:
        print("\n\n⚠️ Process interrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\n❌ Unexpected error: {str(e)}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
