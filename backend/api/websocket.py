"""
WebSocket Handler

Real-time pose estimation via WebSocket connection.
Allows frontend to stream video frames and receive keypoints and joint
angles instantly. Each connection tracks its own crop region.
"""

import json
import time
import logging
from typing import Optional
from fastapi import Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from .deps import EngineFactory, get_angle_estimator, get_engine_factory
from .schemas import (
    FrameMessage,
    PersonSchema,
    PoseResultMessage,
    WebSocketMessageType,
)
from core.domain.calibration import Movement
from core.services import InferenceError, JointAngleEstimator, PoseEstimator

# Configure logging
logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ConnectionManager:
    """
    Manages WebSocket connections.

    Every connection gets a dedicated PoseEstimator, because the tracked
    crop region belongs to exactly one frame stream.
    """

    def __init__(self):
        self.active_connections: list[WebSocket] = []
        self.estimators: dict[WebSocket, PoseEstimator] = {}

    async def connect(self, websocket: WebSocket, estimator: PoseEstimator) -> None:
        """Register an accepted connection with its estimator."""
        self.active_connections.append(websocket)
        self.estimators[websocket] = estimator

        logger.info(f"New WebSocket connection. Total: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket) -> None:
        """Handle WebSocket disconnection."""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

        # Clean up estimator
        estimator = self.estimators.pop(websocket, None)
        if estimator is not None:
            estimator.close()

        logger.info(f"WebSocket disconnected. Remaining: {len(self.active_connections)}")

    def get_estimator(self, websocket: WebSocket) -> Optional[PoseEstimator]:
        """Get pose estimator for a connection."""
        return self.estimators.get(websocket)

    async def send_json(self, websocket: WebSocket, data: dict) -> None:
        """Send JSON data to a specific connection."""
        try:
            await websocket.send_json(data)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.error(f"Failed to send WebSocket message: {e}")

    async def send_message(
        self,
        websocket: WebSocket,
        msg_type: WebSocketMessageType,
        data: dict,
    ) -> None:
        """Send a typed message envelope."""
        await self.send_json(websocket, {
            "type": msg_type.value,
            "data": data,
            "timestamp": _now_ms()
        })


# Global connection manager
manager = ConnectionManager()


async def websocket_endpoint(
    websocket: WebSocket,
    engine_factory: EngineFactory = Depends(get_engine_factory),
    angle_estimator: JointAngleEstimator = Depends(get_angle_estimator),
) -> None:
    """
    WebSocket endpoint for real-time pose estimation.

    Protocol:
    1. Client connects
    2. Client sends frames as base64 images, one at a time
    3. Server responds with keypoints and joint angles
    4. Client sends "reset" when the subject changes, "end_session" when done

    Message format (client -> server):
    {
        "type": "frame",
        "data": {
            "image_base64": "...",
            "frame_number": 0,
            "movement": "elbow_flexion"
        },
        "timestamp": 1704067200000
    }

    Message format (server -> client):
    {
        "type": "pose_result",
        "data": {
            "frame_number": 0,
            "person": { ... },
            "movement_angles": {"leftElbow": 91.2, "rightElbow": 88.7},
            "inference_time_ms": 12.1,
            "processing_time_ms": 25.5
        },
        "timestamp": 1704067200025
    }
    """
    await websocket.accept()

    try:
        estimator = PoseEstimator(engine_factory(), angle_estimator)
    except (InferenceError, ValueError) as e:
        logger.error(f"Could not start pose session: {e}")
        await manager.send_message(websocket, WebSocketMessageType.ERROR, {"error": str(e)})
        await websocket.close()
        return

    await manager.connect(websocket, estimator)

    try:
        await manager.send_message(
            websocket,
            WebSocketMessageType.SESSION_STARTED,
            {"message": "Connected to PhysioTrack pose estimation"},
        )

        # Main message loop: frames are processed strictly one at a time
        while True:
            try:
                data = await websocket.receive_json()
            except json.JSONDecodeError:
                await manager.send_message(
                    websocket, WebSocketMessageType.ERROR, {"error": "Invalid JSON"}
                )
                continue

            msg_type = data.get("type") if isinstance(data, dict) else None

            if msg_type == WebSocketMessageType.FRAME.value:
                await handle_frame(websocket, data)

            elif msg_type == WebSocketMessageType.RESET.value:
                estimator.reset()

            elif msg_type == WebSocketMessageType.END_SESSION.value:
                await manager.send_message(
                    websocket, WebSocketMessageType.SESSION_ENDED, {"message": "Session ended"}
                )
                break

            else:
                await manager.send_message(
                    websocket,
                    WebSocketMessageType.ERROR,
                    {"error": f"Unknown message type: {msg_type}"},
                )

    except WebSocketDisconnect:
        logger.info("Client disconnected")
    finally:
        manager.disconnect(websocket)


async def handle_frame(websocket: WebSocket, message: dict) -> None:
    """
    Estimate the pose in a video frame and send the result.

    A failed frame produces an error message; the connection and its tracked
    crop region stay as they were.
    """
    start_time = time.time()

    try:
        frame = FrameMessage(**message.get("data", {}))
    except (ValidationError, TypeError) as e:
        await manager.send_message(
            websocket, WebSocketMessageType.ERROR, {"error": f"Invalid frame: {e}"}
        )
        return

    estimator = manager.get_estimator(websocket)
    if estimator is None:
        await manager.send_message(
            websocket, WebSocketMessageType.ERROR, {"error": "Estimator not initialized"}
        )
        return

    try:
        person = await run_in_threadpool(estimator.estimate_from_base64, frame.image_base64)
    except (InferenceError, ValueError) as e:
        logger.error(f"Frame {frame.frame_number} processing error: {e}")
        await manager.send_message(
            websocket,
            WebSocketMessageType.ERROR,
            {"error": str(e), "frame_number": frame.frame_number},
        )
        return

    if person is None:
        await manager.send_message(
            websocket,
            WebSocketMessageType.ERROR,
            {"error": "Could not decode image", "frame_number": frame.frame_number},
        )
        return

    movement_angles = {}
    if frame.movement is not None:
        movement_angles = estimator.movement_angles(person, Movement(frame.movement.value))

    result = PoseResultMessage(
        frame_number=frame.frame_number,
        person=PersonSchema.from_domain(person),
        movement_angles=movement_angles,
        inference_time_ms=estimator.last_inference_time_ns / 1e6,
        processing_time_ms=(time.time() - start_time) * 1000,
    )

    await manager.send_message(websocket, WebSocketMessageType.POSE_RESULT, result.model_dump(mode="json"))
