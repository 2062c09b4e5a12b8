# ubispec/api_server.py
import uvicorn
import logging
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List, Optional
from dataclasses import asdict

from ubispec.config import ValidationConfig
from ubispec.derivation import (
    command_catalog,
    decision_table,
    decision_tables,
    dependency_manifest,
    forward_trace,
    impact_analysis,
    process_topology,
    scenario_matrix,
    system_topology,
    validation_checklist,
)
from ubispec.errors import DocumentLoadError, NotValidatedError, UbiSpecError
from ubispec.loader import SourceDocument, parse_text
from ubispec.model_types import StaticFieldLookup
from ubispec.schema.document import parse_document
from ubispec.schema.lifecycle import LifecycleSpec
from ubispec.schema.versions import spec_index
from ubispec.validation.report import SpecSet, validate_documents

# Configure Logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="UbiSpec API")

# --- API Models ---
class DocumentsRequest(BaseModel):
    """A set of spec documents, keyed by file name, with optional settings."""
    documents: Dict[str, str] = Field(..., description="File name -> YAML or JSON text.")
    config: ValidationConfig = Field(default_factory=ValidationConfig, description="Validation settings.")
    event_fields: Optional[Dict[str, List[str]]] = Field(
        None,
        alias="eventFields",
        description="Event name -> payload field names. Enables the payload checks.",
    )

    model_config = ConfigDict(populate_by_name=True)

class DeriveRequest(DocumentsRequest):
    document: Optional[str] = Field(None, description="Document to derive from, for single-document artifacts.")
    command: Optional[str] = Field(None, description="Restrict the decision table to one command.")
    include_all_fail: Optional[bool] = Field(None, alias="includeAllFail", description="Overrides config.include_all_fail_row.")
    impact: Optional[str] = Field(None, description="Name to run impact analysis for (trace only).")
    system: bool = Field(False, description="Topology of the system spec instead of the process graph.")

SINGLE_DOCUMENT_ARTIFACTS = ("decision-table", "scenarios", "checklist", "manifest")
SET_ARTIFACTS = ("trace", "topology", "catalog")

def _suffix(name: str) -> str:
    return ".json" if name.lower().endswith(".json") else ".yaml"

def _sources(request: DocumentsRequest) -> List[SourceDocument]:
    try:
        return [parse_text(text, name=name, suffix=_suffix(name)) for name, text in request.documents.items()]
    except DocumentLoadError as e:
        raise HTTPException(status_code=400, detail=str(e))

def _spec_set(request: DocumentsRequest) -> SpecSet:
    lookup = StaticFieldLookup(request.event_fields) if request.event_fields is not None else None
    return validate_documents(_sources(request), request.config, lookup)

def _single(request: DeriveRequest):
    sources = _sources(request)
    if request.document:
        matches = [s for s in sources if s.name == request.document]
        if not matches:
            raise HTTPException(status_code=404, detail=f"Document '{request.document}' not found.")
        source = matches[0]
    elif len(sources) == 1:
        source = sources[0]
    else:
        raise HTTPException(status_code=400, detail="Name the document to derive from.")
    result = parse_document(source.data, source.name, check_coverage=request.config.check_outcome_coverage)
    if not result.ok:
        raise HTTPException(
            status_code=422,
            detail={"error": "NOT_VALIDATED", "issues": [i.model_dump(mode="json") for i in result.errors]},
        )
    return source, result.spec

def _derive_single(artifact: str, request: DeriveRequest) -> Any:
    source, spec = _single(request)
    if artifact == "manifest":
        return dependency_manifest(spec, source.shell_hints, source.hint_locations).to_dict()
    if not isinstance(spec, LifecycleSpec):
        raise HTTPException(status_code=400, detail=f"'{artifact}' needs a lifecycle spec.")
    include_all_fail = request.config.include_all_fail_row if request.include_all_fail is None else request.include_all_fail
    if artifact == "decision-table":
        if request.command:
            return [decision_table(spec, request.command, include_all_fail).to_dict()]
        return [t.to_dict() for t in decision_tables(spec, include_all_fail)]
    if artifact == "scenarios":
        return {command: [asdict(s) for s in items] for command, items in scenario_matrix(spec, include_all_fail).items()}
    return [asdict(s) for s in validation_checklist(spec)]

def _derive_set(artifact: str, request: DeriveRequest) -> Any:
    spec_set = _spec_set(request)
    if artifact == "trace":
        if request.impact:
            return {"name": request.impact, "hits": [asdict(h) for h in impact_analysis(spec_set, request.impact)]}
        return [asdict(r) for r in forward_trace(spec_set)]
    if artifact == "topology":
        if request.system:
            spec_set.require_consistent()
            if spec_set.system is None:
                raise HTTPException(status_code=400, detail="No system spec among the documents.")
            return system_topology(spec_set.system).to_dict()
        return process_topology(spec_set).to_dict()
    return [asdict(r) for r in command_catalog(spec_set)]

# --- Endpoints ---

@app.get("/formats", tags=["Schema"])
def get_formats():
    """Index of supported spec kinds and versions."""
    return spec_index()

@app.post("/validate", tags=["Validation"])
def validate_endpoint(request: DocumentsRequest):
    """Validates every document and the set as a whole. Always 200; see `ok`."""
    logger.info(f"Validating {len(request.documents)} document(s)")
    spec_set = _spec_set(request)
    return spec_set.report.to_dict()

@app.post("/derive/{artifact}", tags=["Derivation"])
def derive_endpoint(artifact: str, request: DeriveRequest):
    """Derives one artifact. 404 for unknown artifacts, 409/422 when the input is not validated."""
    logger.info(f"Deriving {artifact} from {len(request.documents)} document(s)")
    try:
        if artifact in SINGLE_DOCUMENT_ARTIFACTS:
            return _derive_single(artifact, request)
        if artifact in SET_ARTIFACTS:
            return _derive_set(artifact, request)
    except NotValidatedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UbiSpecError as e:
        raise HTTPException(status_code=400, detail=str(e))
    raise HTTPException(status_code=404, detail=f"Unknown artifact: '{artifact}'")

def run(host: str = "127.0.0.1", port: int = 8000):
    logger.info("Starting UbiSpec API Server...")
    uvicorn.run("ubispec.api_server:app", host=host, port=port)

if __name__ == "__main__":
    run()
