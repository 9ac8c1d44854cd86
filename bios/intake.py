"""
Kickstart intake endpoint

Small HTTP API a waiting delegate or follower exposes so bundles can be
delivered by a script instead of pasted into the terminal.

    POST /kickstart  {"bundle": "<armored text>"}  -> 202, or 400 if unreadable
    GET  /status                                   -> {"role", "pending"}
"""

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from bios.errors import KickstartError
from bios.kickstart import unarmor
from bios.sources import QueueSource


class BundleIn(BaseModel):
    bundle: str


def create_intake_app(source: QueueSource, role: str = "") -> FastAPI:
    app = FastAPI(title="BIOS Kickstart Intake", version="1.0.0")

    @app.post("/kickstart", status_code=202)
    async def submit_bundle(body: BundleIn):
        try:
            unarmor(body.bundle)
        except KickstartError as e:
            raise HTTPException(status_code=400, detail=str(e))
        source.put(body.bundle)
        print(f"📥 Intake: bundle received ({len(body.bundle)} chars)")
        return {"status": "queued"}

    @app.get("/status")
    async def status():
        return {"role": role, "pending": source.queue.qsize()}

    return app


def create_intake_server(app: FastAPI, host: str, port: int) -> uvicorn.Server:
    """uvicorn server to run alongside the boot run: `asyncio.create_task(server.serve())`."""
    return uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="warning"))
