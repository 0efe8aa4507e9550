from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from contextlib import asynccontextmanager
from routers.rooms import rooms_router
from routers.uploads import uploads_router
from schemas.rooms import ClientEvent, HealthResponse
from backend import SessionState
from hub import ConnectionHub
from coordinator import SessionCoordinator
from blobstore import LocalBlobStore, PUBLIC_PREFIX
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, SEED_ROOMS, UPLOAD_DIR
from logging_config import get_logger, setup_logging
import asyncio
import uuid

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One SessionState per process; everything that touches rooms or usernames goes through it
    state = SessionState(seed_rooms=SEED_ROOMS)
    hub = ConnectionHub(state.rooms)
    blob_store = LocalBlobStore()
    blob_store.ensure_dir()

    app.state.session = state
    app.state.hub = hub
    app.state.coordinator = SessionCoordinator(state, hub)
    app.state.blob_store = blob_store
    logger.info(f"Relay started with public rooms: {state.rooms.public_names()}")

    yield

    hub.close_all()
    state.close()
    logger.info("Relay stopped")


app = FastAPI(title="Room Relay", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)
app.include_router(uploads_router)
app.mount(PUBLIC_PREFIX, StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")

logger.info("FastAPI application initialized")


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", connections=len(app.state.hub))


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint carrying the relay's named events.

    Every frame is a JSON object: {"event": name, "data": payload, "id": optional ack id}.
    Frames that fail to parse are logged and dropped; they never close the connection.
    """
    coordinator: SessionCoordinator = websocket.app.state.coordinator
    hub: ConnectionHub = websocket.app.state.hub

    await websocket.accept()
    connection_id = uuid.uuid4().hex
    logger.info(f"WebSocket connection accepted: {connection_id}")

    hub.open(connection_id)
    writer = asyncio.create_task(hub.pump(connection_id, websocket))

    try:
        await coordinator.connect(connection_id)

        message_count = 0
        while True:
            try:
                data = await websocket.receive_text()
            except WebSocketDisconnect:
                logger.info(f"WebSocket disconnected normally for connection {connection_id}")
                break
            except Exception as e:
                logger.error(f"Error receiving from connection {connection_id}: {e}", exc_info=True)
                break

            message_count += 1
            try:
                message = ClientEvent.model_validate_json(data)
            except ValidationError:
                logger.warning(f"Dropping malformed frame #{message_count} from connection {connection_id}")
                continue

            logger.debug(f"Received '{message.event}' (#{message_count}) from connection {connection_id}")
            try:
                await coordinator.dispatch(connection_id, message)
            except Exception as e:
                logger.error(f"Error handling '{message.event}' from connection {connection_id}: {e}", exc_info=True)
    finally:
        await coordinator.disconnect(connection_id)
        hub.close(connection_id)
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
