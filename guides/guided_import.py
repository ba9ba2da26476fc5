"""Walk through the import stage against an in-process backend."""

import asyncio

import httpx

from debtflow import (
    AnalyticsClient,
    CandidateFile,
    ImportSession,
    NotificationBridge,
    WorkflowOrchestrator,
)
from debtflow.config import UploadSettings
from debtflow.persistence import InMemoryStateStore


def fake_backend(request: httpx.Request) -> httpx.Response:
    """Answer like the analytics API would."""
    if request.url.path.endswith("/analytics/last-upload-date"):
        return httpx.Response(200, json={"success": True, "data": {"usage": None}})
    return httpx.Response(200, json={"success": True, "data": {"inserted": 42, "errors": []}})


async def main():
    """Upload both files, then follow the "Next Step" action."""
    orchestrator = await WorkflowOrchestrator.open(InMemoryStateStore())
    notifications = NotificationBridge()
    notifications.subscribe(lambda n: print(f"🔔 {n.title}: {n.message}"))

    http_client = httpx.AsyncClient(
        base_url="http://localhost:3001/api", transport=httpx.MockTransport(fake_backend)
    )
    async with AnalyticsClient(http_client=http_client) as client:
        # Shorter timings than the defaults keep the walkthrough quick
        settings = UploadSettings(progress_interval=0.05, validation_delay=0.2)
        session = ImportSession(orchestrator, client, notifications, settings)

        tickets = session.pipeline("tickets")
        tickets.select_file(CandidateFile.from_bytes("tickets.csv", b"ID,Subject\n1,Login\n"))
        await tickets.start_upload()

        usage = session.pipeline("usage")
        usage.select_file(CandidateFile.from_bytes("usage.csv", b"Capability\nLogs\n"))
        await usage.start_upload("Acme")
        await http_client.aclose()

    print(f"📊 Workflow progress: {orchestrator.get_progress()}%")
    if await session.advance_if_ready():
        print(f"✅ Now on: {orchestrator.current_step.title}")


if __name__ == "__main__":
    asyncio.run(main())
