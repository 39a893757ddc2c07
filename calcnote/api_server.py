"""
CalcNote API Server - FastAPI backend exposing a notebook to an editor frontend.
Provides REST and WebSocket endpoints for edits, markers and results.
"""

import asyncio
import json
from typing import List, Optional
from datetime import datetime

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError

from . import constants
from .document_store import DocumentStore
from .line_segmenter import Change
from .notebook import Notebook


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class ChangeModel(BaseModel):
    from_a: int
    to_a: int
    from_b: int
    to_b: int
    inserted: str = ""

    def to_change(self) -> Change:
        return Change(self.from_a, self.to_a, self.from_b, self.to_b, self.inserted)


class EditRequest(BaseModel):
    changes: List[ChangeModel]


class EditMessage(BaseModel):
    changes: List[ChangeModel] = []


class SetTextMessage(BaseModel):
    text: str


class DocumentRequest(BaseModel):
    text: str


class DocumentResponse(BaseModel):
    text: str


class MarkerModel(BaseModel):
    offset: int
    text: str
    is_error: bool = False
    line_index: Optional[int] = None


class MarkersResponse(BaseModel):
    provisional: bool
    markers: List[MarkerModel]
    changed: List[int] = []


class ResultModel(BaseModel):
    line_index: int
    end_offset: int
    text: str
    value: str = ""
    error: Optional[str] = None
    reused: bool = False


class ResultsResponse(BaseModel):
    results: List[ResultModel]
    reused: int
    evaluated: int


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================

def marker_models(notebook: Notebook) -> List[MarkerModel]:
    models = []
    for marker in notebook.markers():
        result = marker.payload.result
        models.append(MarkerModel(
            offset=marker.offset,
            text=marker.payload.text,
            is_error=marker.payload.is_error,
            line_index=result.line.index if result is not None else None,
        ))
    return models


def result_models(notebook: Notebook, results) -> List[ResultModel]:
    return [
        ResultModel(
            line_index=result.line.index,
            end_offset=result.line.end_offset,
            text=result.line.text,
            value=notebook.format_value(result.value) if result.failure is None else "",
            error=str(result.failure) if result.failure is not None else None,
            reused=result.reused,
        )
        for result in results
    ]


def markers_message(notebook: Notebook, provisional: bool, changed=None) -> dict:
    response = MarkersResponse(
        provisional=provisional,
        markers=marker_models(notebook),
        changed=list(changed or []),
    )
    return {"type": "results" if not provisional else "markers", **response.model_dump()}


# =============================================================================
# WEBSOCKET CONNECTION MANAGER
# =============================================================================

class ConnectionManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def send_personal_message(self, message: str, websocket: WebSocket):
        await websocket.send_text(message)

    async def broadcast(self, message: str):
        for connection in list(self.active_connections):
            try:
                await connection.send_text(message)
            except (WebSocketDisconnect, RuntimeError):
                # Remove dead connections
                self.disconnect(connection)


# =============================================================================
# FASTAPI APPLICATION SETUP
# =============================================================================

def create_app(notebook: Optional[Notebook] = None) -> FastAPI:
    """
    Build the API application around a notebook.

    Args:
        notebook (Notebook): Notebook to serve; by default one persisted to
            constants.STORAGE_FILE

    Returns:
        FastAPI: Configured application
    """
    if notebook is None:
        notebook = Notebook(store=DocumentStore())

    app = FastAPI(
        title="CalcNote API",
        description="Backend API for the CalcNote live calculator notebook",
        version=constants.APP_VERSION
    )

    # Enable CORS for the editor frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    manager = ConnectionManager()
    app.state.notebook = notebook
    app.state.manager = manager
    broadcasts = set()

    def push_results(results, changed):
        """Send finished results to every connected editor"""
        if not manager.active_connections:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # No event loop yet, nobody can be connected
        message = json.dumps(markers_message(notebook, provisional=False, changed=changed))
        task = loop.create_task(manager.broadcast(message))
        broadcasts.add(task)
        task.add_done_callback(broadcasts.discard)

    notebook.add_listener(push_results)
    notebook.recompute()

    # =========================================================================
    # API ENDPOINTS
    # =========================================================================

    @app.get("/")
    @app.head("/")
    async def root():
        """Health check endpoint"""
        return {
            "message": "CalcNote API Server",
            "version": constants.APP_VERSION,
            "status": "running",
            "timestamp": datetime.now().isoformat()
        }

    @app.get("/api/document", response_model=DocumentResponse)
    async def get_document():
        return DocumentResponse(text=notebook.text)

    @app.put("/api/document", response_model=ResultsResponse)
    async def set_document(request: DocumentRequest):
        """
        Replace the whole document and recompute immediately.
        """
        results = notebook.set_text(request.text)
        stats = notebook.evaluator.last_stats
        return ResultsResponse(results=result_models(notebook, results),
                               reused=stats.reused, evaluated=stats.evaluated)

    @app.post("/api/edits", response_model=MarkersResponse)
    async def apply_edits(request: EditRequest):
        """
        Apply an edit transaction. Markers are shifted right away and a
        recompute pass is scheduled after the quiescence window.
        """
        try:
            notebook.apply_transaction(change.to_change() for change in request.changes)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return MarkersResponse(provisional=notebook.scheduler.pending, markers=marker_models(notebook))

    @app.post("/api/recompute", response_model=ResultsResponse)
    async def recompute():
        """
        Run the pending recompute pass now instead of waiting for the timer.
        """
        results = notebook.recompute()
        stats = notebook.evaluator.last_stats
        return ResultsResponse(results=result_models(notebook, results),
                               reused=stats.reused, evaluated=stats.evaluated)

    @app.get("/api/markers", response_model=MarkersResponse)
    async def get_markers():
        return MarkersResponse(provisional=notebook.scheduler.pending, markers=marker_models(notebook))

    @app.get("/api/results", response_model=ResultsResponse)
    async def get_results():
        stats = notebook.evaluator.last_stats
        return ResultsResponse(results=result_models(notebook, notebook.results),
                               reused=stats.reused, evaluated=stats.evaluated)

    # =========================================================================
    # WEBSOCKET ENDPOINTS
    # =========================================================================

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for live editing.
        """
        await manager.connect(websocket)

        async def send_error(message: str):
            await manager.send_personal_message(
                json.dumps({"type": "error", "message": message}), websocket
            )

        try:
            await manager.send_personal_message(
                json.dumps({"type": "document", "text": notebook.text}), websocket
            )
            await manager.send_personal_message(
                json.dumps(markers_message(notebook, provisional=False)), websocket
            )

            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                    message_type = message["type"]
                except (ValueError, KeyError, TypeError):
                    await send_error("Malformed message")
                    continue

                if message_type == "edit":
                    try:
                        edit = EditMessage.model_validate(message)
                        notebook.apply_transaction(change.to_change() for change in edit.changes)
                    except ValueError as e:
                        await send_error(str(e))
                        continue

                    await manager.send_personal_message(
                        json.dumps(markers_message(notebook, provisional=True)), websocket
                    )

                elif message_type == "set_text":
                    try:
                        request = SetTextMessage.model_validate(message)
                    except ValidationError as e:
                        await send_error(str(e))
                        continue
                    notebook.set_text(request.text)

                elif message_type == "recompute":
                    notebook.recompute()

                else:
                    await send_error(f"Unknown message type: {message_type}")

        except WebSocketDisconnect:
            pass
        finally:
            manager.disconnect(websocket)

    return app


# =============================================================================
# SERVER STARTUP
# =============================================================================

def main():
    import uvicorn

    print("Starting CalcNote API Server...")
    print(f"Server will be available at: http://{constants.SERVER_HOST}:{constants.SERVER_PORT}")
    print(f"API documentation at: http://{constants.SERVER_HOST}:{constants.SERVER_PORT}/docs")

    uvicorn.run(
        "calcnote.api_server:create_app",
        factory=True,
        host=constants.SERVER_HOST,
        port=constants.SERVER_PORT,
        log_level="debug" if constants.DEBUG else "info"
    )


if __name__ == "__main__":
    main()
