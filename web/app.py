"""FastAPI web adapter for the CHIP-8 interpreter."""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field
from typing import Optional
from pathlib import Path
import logging
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chip8 import run_program, RunOptions
from chip8.font import FONTSET
from chip8.memory import MAX_IMAGE_SIZE


# Constants
MAX_ROM_SIZE = MAX_IMAGE_SIZE
STATIC_DIR = Path(__file__).parent.parent / "static"

logger = logging.getLogger(__name__)


# Request/Response models
class RunOptionsModel(BaseModel):
    max_cycles: int = Field(default=1000, ge=1, le=1000000)
    seed: Optional[int] = None
    trace: bool = True
    trace_limit: int = Field(default=1000, ge=0, le=100000)
    trace_watch: list[int] = Field(default_factory=list)
    pressed_keys: list[int] = Field(default_factory=list)
    halt_on_idle: bool = True
    fail_on_limit: bool = False


class RunRequest(BaseModel):
    rom: str = Field(description="Program image as a hex string")
    options: Optional[RunOptionsModel] = None


class ErrorResponse(BaseModel):
    type: str
    message: str
    step: int
    addr: Optional[int] = None
    opcode: Optional[int] = None


class RunResponse(BaseModel):
    status: str
    cycles_executed: int
    beeps: int
    idle: bool
    final_state: dict
    framebuffer: list[str]
    trace: list[dict]
    error: Optional[ErrorResponse] = None


# Create FastAPI app
app = FastAPI(
    title="CHIP-8 Interpreter",
    description="Web API for running CHIP-8 program images headlessly",
    version="0.1.0",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def decode_rom(text: str) -> bytes:
    """Parse a hex string, ignoring whitespace, into program bytes."""
    cleaned = "".join(text.split())
    try:
        return bytes.fromhex(cleaned)
    except ValueError:
        raise HTTPException(status_code=400, detail="ROM must be a hex string")


@app.post("/api/run", response_model=RunResponse)
async def run_rom(request: RunRequest):
    """Execute a CHIP-8 program image.

    Args:
        request: Hex-encoded program image and execution options

    Returns:
        Execution result with screen contents, trace, and final state
    """
    image = decode_rom(request.rom)

    # Validate program size
    if len(image) > MAX_ROM_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"ROM size exceeds limit of {MAX_ROM_SIZE} bytes",
        )

    # Build options
    opts = request.options or RunOptionsModel()
    for key in opts.pressed_keys:
        if not 0 <= key <= 0xF:
            raise HTTPException(status_code=400, detail=f"Invalid key index: {key}")

    run_opts = RunOptions(
        max_cycles=opts.max_cycles,
        seed=opts.seed,
        trace=opts.trace,
        trace_limit=opts.trace_limit,
        trace_watch=opts.trace_watch,
        pressed_keys=opts.pressed_keys,
        halt_on_idle=opts.halt_on_idle,
        fail_on_limit=opts.fail_on_limit,
    )

    logger.info("Running %d-byte ROM", len(image))
    result = run_program(image, options=run_opts)

    return result.to_dict()


@app.get("/api/font")
async def get_font():
    """Return the built-in hexadecimal glyph table."""
    return {"font": list(FONTSET)}


# Mount static files AFTER API routes to prevent shadowing
if STATIC_DIR.exists():
    app.mount("/", StaticFiles(directory=str(STATIC_DIR), html=True), name="static")


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=8080)
