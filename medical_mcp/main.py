from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError

from medical_mcp.aggregation import MedicalSearchService
from medical_mcp.config import settings
from medical_mcp.exceptions import CallerContractViolation, UnknownToolError
from medical_mcp.logging_config import configure_logging
from medical_mcp.tools import TOOLS, call_tool


class HealthResponse(BaseModel):
    """Health check response"""
    status: str


class ToolInfo(BaseModel):
    name: str
    description: str
    parameters: Dict[str, Any]


class ToolResponse(BaseModel):
    """Text rendered by one tool call"""
    tool: str
    text: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the search service on startup, release its HTTP clients on shutdown"""
    configure_logging()
    app.state.service = MedicalSearchService(settings)
    yield
    await app.state.service.close()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Medical information tools over HTTP: drug labels, literature, diagnostics and lab references",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse)
def health_check():
    """
    Health check endpoint - returns {"status": "ok"}
    """
    return {"status": "ok"}


@app.get("/tools", response_model=List[ToolInfo])
def list_tools():
    """
    List every tool with its description and JSON schema of arguments.
    """
    return [
        ToolInfo(name=tool.name, description=tool.description, parameters=tool.arguments.model_json_schema())
        for tool in TOOLS.values()
    ]


@app.post("/tools/{name}", response_model=ToolResponse)
async def run_tool(name: str, request: Request, arguments: Optional[Dict[str, Any]] = Body(None)):
    """
    Run one tool with a JSON object of arguments.

    Returns:
    - The tool's rendered text
    - 404 error if the tool doesn't exist
    - 422 error if the arguments are invalid
    """
    try:
        text = await call_tool(request.app.state.service, name, arguments)
    except UnknownToolError:
        raise HTTPException(status_code=404, detail=f"Tool not found: {name}")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    except CallerContractViolation as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"tool": name, "text": text}


def serve():
    """Run the HTTP app with uvicorn."""
    uvicorn.run(app, host=settings.http_host, port=settings.http_port, log_level=settings.log_level.lower())
