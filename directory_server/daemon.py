"""
directory_server.daemon
-----------------------
REST API over an in-memory term store, using FastAPI.

It exposes vocabularies, terms, media types and their fields, the directory
settings, and the directory widget itself: rendering the tree for a media
item and processing submitted directory values. A submission is processed
once per phase ("validate" then "submit"); both phases share one
SubmissionContext, discarded when the submit phase ends.
"""
import json
import logging
import socket
import sys
from pathlib import Path
from typing import Literal

import typer
import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from common.app_setup import setup_logging
from connectors.memory_term_store import InMemoryTermStore
from media_directory.chain import SubmissionContext
from media_directory.errors import (
    BrokenChain,
    DirectoryError,
    InvalidSubmission,
    MalformedTreeListing,
    MisconfiguredVocabulary,
    TermCreationError,
    TermStoreError,
)
from media_directory.models import (
    FieldDefinition,
    FlatTreeEntry,
    FormDisplayComponent,
    MediaType,
    Term,
    Vocabulary,
)
from media_directory.registry import WidgetRegistry
from media_directory.settings import (
    DirectorySettings,
    SettingsMessage,
    apply_vocabulary_mapping,
    config_path,
    eligible_vocabularies,
    load_settings,
    save_settings,
)
from media_directory.widget import DirectoryWidget

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidSubmission: 422,
    TermCreationError: 422,
    TermStoreError: 422,
    MisconfiguredVocabulary: 409,
    BrokenChain: 500,
    MalformedTreeListing: 500,
}


# Request/response models
class VocabularyCreate(Vocabulary):
    with_root: bool = True


class TermCreate(BaseModel):
    name: str = Field(..., min_length=1)
    parent: int | None = None
    vid: str


class SettingsUpdate(BaseModel):
    choices: dict[str, str | None]


class SettingsView(BaseModel):
    vocabulary_mapping: list[str]
    eligible_vocabularies: list[Vocabulary] = Field(default_factory=list)
    messages: list[SettingsMessage] = Field(default_factory=list)


class SubmissionRequest(BaseModel):
    value: str
    phase: Literal["validate", "submit"] = "submit"


class SubmissionResult(BaseModel):
    submission_id: str
    phase: str
    chain: list[int]


app = FastAPI(title="media directory server")


def configure(store: InMemoryTermStore | None = None, settings: DirectorySettings | None = None, settings_path: Path | None = None) -> FastAPI:
    """(Re)initialize the daemon state. Called at startup and by tests."""
    app.state.store = store or InMemoryTermStore()
    app.state.settings = settings or DirectorySettings()
    app.state.settings_path = settings_path
    app.state.registry = WidgetRegistry.from_settings(app.state.settings)
    app.state.submissions = {}
    return app


configure()


def get_store(request: Request) -> InMemoryTermStore:
    return request.app.state.store


def get_server():
    # Helper to get the running server instance
    return getattr(app.state, "uvicorn_server", None)


@app.exception_handler(DirectoryError)
def directory_error_handler(request: Request, exc: DirectoryError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), 500)
    logger.warning(f"{request.method} {request.url.path} failed with {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "error": type(exc).__name__})


@app.post("/shutdown")
def shutdown():
    """Shutdown the server gracefully."""
    logger.info("Shutdown requested via /shutdown endpoint.")
    server = get_server()
    if server:
        server.should_exit = True
    return {"message": "Server shutting down"}


@app.get("/status")
def status(request: Request):
    """Health/status endpoint for the directory daemon."""
    server = get_server()
    state = "shutting_down" if server and server.should_exit else "ok"
    return {"status": state, **get_store(request).info.to_dict()}


# ------------------------------------------------------------------ vocabularies

@app.get("/vocabularies", response_model=list[Vocabulary])
def list_vocabularies(request: Request) -> list[Vocabulary]:
    return get_store(request).list_vocabularies()


@app.post("/vocabularies", response_model=Vocabulary, status_code=201)
def create_vocabulary(request: Request, vocab: VocabularyCreate) -> Vocabulary:
    store = get_store(request)
    if store.get_vocabulary(vocab.vid) is not None:
        logger.warning(f"Duplicate vocabulary: {vocab.vid!r}")
        raise HTTPException(status_code=409, detail="Vocabulary already exists")
    return store.add_vocabulary(vocab.vid, vocab.label, with_root=vocab.with_root)


@app.get("/vocabularies/{vid}", response_model=Vocabulary)
def get_vocabulary(request: Request, vid: str) -> Vocabulary:
    vocab = get_store(request).get_vocabulary(vid)
    if vocab is None:
        raise HTTPException(status_code=404, detail="Vocabulary not found")
    return vocab


@app.get("/vocabularies/{vid}/terms", response_model=list[Term])
def list_vocabulary_terms(request: Request, vid: str, name: str | None = None) -> list[Term]:
    """Terms of a vocabulary, optionally only those called ``name``."""
    store = get_store(request)
    get_vocabulary(request, vid)
    return [t for t in store.terms.values() if t.vid == vid and (name is None or t.name == name)]


@app.get("/vocabularies/{vid}/tree", response_model=list[FlatTreeEntry])
def vocabulary_tree(request: Request, vid: str) -> list[FlatTreeEntry]:
    get_vocabulary(request, vid)
    return get_store(request).tree_listing(vid)


# ------------------------------------------------------------------------- terms

def parse_tids(raw: str) -> list[int]:
    try:
        return [int(tid) for tid in raw.split(",") if tid.strip()]
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid term id list: {raw!r}")


@app.get("/terms", response_model=list[Term])
def load_terms(request: Request, tids: str = Query(..., description="Comma separated term ids")) -> list[Term]:
    return list(get_store(request).load_terms(parse_tids(tids)).values())


@app.post("/terms", response_model=Term, status_code=201)
def create_term(request: Request, term: TermCreate) -> Term:
    return get_store(request).create_term(term.name, term.parent, term.vid)


# ------------------------------------------------------------------- media types

@app.get("/media-types", response_model=list[MediaType])
def list_media_types(request: Request) -> list[MediaType]:
    return get_store(request).list_media_types()


@app.post("/media-types", response_model=MediaType, status_code=201)
def create_media_type(request: Request, media_type: MediaType) -> MediaType:
    return get_store(request).add_media_type(media_type.id, media_type.label)


@app.get("/media-types/{type_id}", response_model=MediaType)
def get_media_type(request: Request, type_id: str) -> MediaType:
    media_type = get_store(request).get_media_type(type_id)
    if media_type is None:
        raise HTTPException(status_code=404, detail="Media type not found")
    return media_type


@app.get("/media-types/{type_id}/fields/{field_name}", response_model=FieldDefinition)
def get_field(request: Request, type_id: str, field_name: str) -> FieldDefinition:
    field = get_store(request).get_field(type_id, field_name)
    if field is None:
        raise HTTPException(status_code=404, detail="Field not found")
    return field


@app.put("/media-types/{type_id}/fields/{field_name}", response_model=FieldDefinition)
def save_field(request: Request, type_id: str, field_name: str, field: FieldDefinition) -> FieldDefinition:
    if field.bundle != type_id or field.field_name != field_name:
        raise HTTPException(status_code=422, detail="Field bundle and name must match the URL")
    return get_store(request).save_field(field)


@app.get("/media-types/{type_id}/form-display", response_model=dict[str, FormDisplayComponent])
def get_form_display(request: Request, type_id: str) -> dict[str, FormDisplayComponent]:
    get_media_type(request, type_id)
    return get_store(request).get_form_display(type_id)


@app.put("/media-types/{type_id}/form-display/{field_name}", status_code=204)
def set_form_display(request: Request, type_id: str, field_name: str, component: FormDisplayComponent):
    get_media_type(request, type_id)
    get_store(request).set_form_display(type_id, field_name, component.type, component.weight)


# ---------------------------------------------------------------------- settings

@app.get("/settings", response_model=SettingsView)
def get_settings(request: Request) -> SettingsView:
    return SettingsView(
        vocabulary_mapping=request.app.state.settings.vocabulary_mapping,
        eligible_vocabularies=eligible_vocabularies(get_store(request)),
    )


@app.put("/settings", response_model=SettingsView)
def update_settings(request: Request, update: SettingsUpdate) -> SettingsView:
    """Apply a media type -> vocabulary mapping, configuring the directory fields."""
    store = get_store(request)
    eligible = {vocab.vid for vocab in eligible_vocabularies(store)}
    for type_name, vid in update.choices.items():
        if vid and vid not in eligible:
            raise HTTPException(status_code=422, detail=f"Vocabulary {vid!r} for {type_name!r} has no root term")
    settings, messages = apply_vocabulary_mapping(store, request.app.state.settings, update.choices)
    request.app.state.settings = settings
    request.app.state.registry = WidgetRegistry.from_settings(settings)
    if request.app.state.settings_path is not None:
        save_settings(settings, request.app.state.settings_path)
    return SettingsView(
        vocabulary_mapping=settings.vocabulary_mapping,
        eligible_vocabularies=[store.get_vocabulary(vid) for vid in sorted(eligible)],
        messages=messages,
    )


# ------------------------------------------------------------------------ widget

def get_widget(request: Request, type_id: str) -> DirectoryWidget:
    get_media_type(request, type_id)
    return DirectoryWidget(get_store(request), request.app.state.registry, type_id)


@app.get("/media/{type_id}/widget")
def render_widget(request: Request, type_id: str, tids: str = "") -> dict:
    """Form element for a media item of ``type_id`` currently filed under ``tids``."""
    widget = get_widget(request, type_id)
    return widget.form_element(parse_tids(tids)).to_dict()


@app.post("/media/{type_id}/submissions/{submission_id}", response_model=SubmissionResult)
def process_submission(request: Request, type_id: str, submission_id: str, submission: SubmissionRequest) -> SubmissionResult:
    widget = get_widget(request, type_id)
    submissions: dict[str, SubmissionContext] = request.app.state.submissions
    context = submissions.setdefault(submission_id, SubmissionContext(submission_id))
    try:
        chain = widget.massage_form_values(submission.value, context)
    except DirectoryError:
        # a rejected value ends the cycle in either phase
        submissions.pop(submission_id, None)
        context.close()
        raise
    if submission.phase == "submit":
        submissions.pop(submission_id, None)
        context.close()
    logger.info(f"Submission {submission_id} ({submission.phase}) for {type_id}: {submission.value!r} -> {chain}")
    return SubmissionResult(submission_id=submission_id, phase=submission.phase, chain=chain)


app_cli = typer.Typer()


@app_cli.command()
def run(
    port: int = typer.Option(None, help="Port to run the server on (auto if not set)"),
    fixture: Path = typer.Option(None, help="YAML/JSON file used to seed the term store"),
    settings_file: Path = typer.Option(None, "--settings", help="YAML settings file (read and written)"),
):
    """Run the FastAPI app using Uvicorn on localhost, reporting the actual port used."""
    setup_logging(daemon=True)
    store = InMemoryTermStore.from_fixture(fixture) if fixture else InMemoryTermStore()
    settings_file = settings_file or config_path()
    configure(store, load_settings(settings_file), settings_file)
    if port is None or port == 0:
        # Bind to port 0 to get a free port, then close and reuse
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(('127.0.0.1', 0))
            port = s.getsockname()[1]
        logger.info(f"Selected port: {port}")
        print(json.dumps({"event": "port_selected", "port": port}), flush=True)
    else:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind(('127.0.0.1', port))
            except OSError:
                logger.error(f"Port {port} is already in use.")
                sys.exit(98)  # 98 = EADDRINUSE
        logger.info(f"Using port: {port}")
        print(json.dumps({"event": "port_used", "port": port}), flush=True)
    config = uvicorn.Config(app, host="127.0.0.1", port=port, log_level="info")
    server = uvicorn.Server(config)
    app.state.uvicorn_server = server  # Store server instance for shutdown
    logger.info(f"Starting Uvicorn server on port {port}")
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt in main thread")
    logger.info("Server stopped, exiting process")


if __name__ == "__main__":
    app_cli()
