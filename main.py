# /main.py
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from logging_config import LOGGING_CONFIG
from routers import calldata, circuit_inputs, icao, proofs, verify
from routers.errors import to_http_exception
from tools.errors import EnvironmentSetupError

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Passport ZK API",
    description="ePassport trust-chain verification and ZK circuit input services.",
    version="1.0.0",
)

# --- Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# Dependencies (trust store, Master List, circuits) raise before a handler runs.
@app.exception_handler(EnvironmentSetupError)
async def environment_error_handler(request: Request, exc: EnvironmentSetupError):
    http_exc = to_http_exception(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


# --- API Routers ---
app.include_router(verify.router, tags=["Verification"])
app.include_router(icao.router, tags=["ICAO"])
app.include_router(circuit_inputs.router, tags=["Circuit Inputs"])
app.include_router(proofs.router, tags=["Proofs"])
app.include_router(calldata.router, tags=["Calldata"])


@app.get("/", tags=["Health Check"])
async def read_root():
    return {"message": "Passport ZK API is running"}


# --- Run Server ---
if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=config.API_PORT,
        log_config=LOGGING_CONFIG,
    )
