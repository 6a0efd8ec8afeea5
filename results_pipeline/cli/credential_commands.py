"""
Credential CLI Commands

verify, show
"""
import asyncio
import json

from results_pipeline.database import AsyncSessionLocal, close_db
from results_pipeline.errors import APIError
from results_pipeline.services.credential_verifier import CredentialVerifier, get_credential


class CredentialCommand:
    """Credential CLI command handler."""

    def execute(self, args) -> int:
        if args.credential_action == "verify":
            coro = self._verify(args.id)
        elif args.credential_action == "show":
            coro = self._show(args.id)
        else:
            print("Error: Unknown credential action")
            return 1

        try:
            return asyncio.run(coro)
        except APIError as e:
            print(f"Error [{e.code}]: {e.message}")
            return 1

    async def _verify(self, credential_id: str) -> int:
        verifier = CredentialVerifier.from_settings()
        try:
            async with AsyncSessionLocal() as db:
                result = await verifier.verify(db, credential_id)
        finally:
            await close_db()

        if not result["found"]:
            print(f"✗ Credential {credential_id} not found")
            return 2
        if not result["valid"]:
            print(f"✗ Credential {credential_id} FAILED verification")
            return 3

        print(f"✓ Credential {credential_id} is authentic")
        print(f"  {result['student_name']} ({result['school_name']})")
        print(f"  {result['event_name']}: rank {result['rank']}, {result['tier']}, {result['weighted_score']}")
        return 0

    async def _show(self, credential_id: str) -> int:
        try:
            async with AsyncSessionLocal() as db:
                credential = await get_credential(db, credential_id)
        finally:
            await close_db()

        print(json.dumps(credential.to_dict(), indent=2))
        return 0
