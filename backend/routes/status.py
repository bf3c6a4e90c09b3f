"""Live product status over a websocket.

WS /ws/products/{product_id}/status
  → JSON StatusEvent messages: one "connected" event, then change-only
    "status_update" events until the product completes or fails.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, status
from fastapi.websockets import WebSocketState

from productkit.services import Services

logger = logging.getLogger(__name__)
router = APIRouter()


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


async def _pump(websocket: WebSocket, services: Services, product_id: str) -> None:
    async for event in services.publisher.stream(product_id):
        await websocket.send_text(event.model_dump_json())


@router.websocket("/ws/products/{product_id}/status")
async def product_status(websocket: WebSocket, product_id: str):
    services: Services = websocket.app.state.services
    await websocket.accept()
    logger.info("Status subscriber connected for product %s", product_id)

    pump = asyncio.create_task(_pump(websocket, services, product_id))
    disconnect = asyncio.create_task(_wait_for_disconnect(websocket))
    done, pending = await asyncio.wait({pump, disconnect}, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)

    if pump in done:
        if pump.exception() is not None:
            logger.error("Status stream for %s failed: %s", product_id, pump.exception())
            if websocket.client_state == WebSocketState.CONNECTED:
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        else:
            await websocket.close()
    logger.info("Status subscriber disconnected for product %s", product_id)
