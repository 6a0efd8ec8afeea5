"""
Results Lifecycle CLI Commands

status, open, compute, publish
"""
import asyncio

from results_pipeline.database import AsyncSessionLocal, close_db
from results_pipeline.errors import APIError
from results_pipeline.rbac import AdminCapability
from results_pipeline.services.lifecycle_service import LifecycleService


class LifecycleCommand:
    """
    Lifecycle CLI command handler.

    An operator with database access acts as administrator.
    """

    def execute(self, args) -> int:
        actions = {
            "status": self._status,
            "open": self._open,
            "compute": self._compute,
            "publish": self._publish,
        }
        action = actions.get(args.lifecycle_action)
        if action is None:
            print("Error: Unknown lifecycle action")
            return 1

        try:
            asyncio.run(self._run(action, args))
            return 0
        except APIError as e:
            print(f"Error [{e.code}]: {e.message}")
            return 1

    async def _run(self, action, args) -> None:
        try:
            async with AsyncSessionLocal() as db:
                await action(db, args)
        finally:
            await close_db()

    @staticmethod
    def _capability(args) -> AdminCapability:
        return AdminCapability(actor_id=f"cli:{args.admin_id}")

    async def _status(self, db, args) -> None:
        status = await LifecycleService.get_status(db, args.event)
        print(f"=== Event {status['id']}: {status['title']} ===")
        print(f"State:              {status['results_status']}")
        print(f"Public vote weight: {status['public_vote_weight']}%")
        print(f"Computed results:   {status['computed_results']}")
        print(f"Credentials issued: {status['issued_credentials']}")
        print(f"Published at:       {status['results_published_at'] or '-'}")
        print(f"Allowed operations: {', '.join(status['allowed_operations']) or '-'}")

    async def _open(self, db, args) -> None:
        event = await LifecycleService.open_scoring(db, args.event, self._capability(args))
        print(f"✓ Event {event.id} is now {event.results_status}")

    async def _compute(self, db, args) -> None:
        count = await LifecycleService.lock_and_compute(db, args.event, self._capability(args))
        print(f"✓ Computed {count} results for event {args.event}")

    async def _publish(self, db, args) -> None:
        count = await LifecycleService.publish(db, args.event, self._capability(args))
        print(f"✓ Published event {args.event}, issued {count} credentials")
