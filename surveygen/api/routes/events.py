from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from surveygen.api.deps import BackendState, get_backend_state

router = APIRouter()


@router.get("")
async def stream_events(backend: BackendState = Depends(get_backend_state)) -> StreamingResponse:  # noqa: B008
  """Stream job updates as server-sent events."""
  return StreamingResponse(backend.broadcaster.stream(), media_type="text/event-stream", headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"})
