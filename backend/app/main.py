"""
CiviLens Accountability Engine - FastAPI Application

Main entry point for the CiviLens backend.

Architecture:
- Complaint intake → PriorityScorer → SLAPolicy → Complaint (+ history)
- SLAScheduler sweep → BREACHED flag → citizen breach bonus
- Ledger (append-only) → BadgeEngine → Leaderboard
- Ledger debit → RedemptionService → coupon code
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import (
    complaints_router,
    gamification_router,
    dashboard_router,
    scheduler_router,
    classify_router,
)
from .database import init_db

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="CiviLens Accountability Engine",
    description="""
    CiviLens Accountability Engine - Complaint Prioritization, SLA Enforcement
    and Accountability Ledger

    Citizens file civic complaints, authorities resolve them under deadlines,
    and citizens are rewarded for holding authorities accountable.

    ## Pipeline
    1. **Prioritization**: severity + critical zones + density + duplicates → 0-100 score
    2. **SLA Policy**: (category, severity, department) → deadline
    3. **SLA Sweep**: overdue complaints flagged BREACHED automatically
    4. **Ledger**: append-only coin transactions, badges, leaderboard, redemptions

    ## Key Principles
    - Priority scores are computed once and never recomputed
    - sla_breached only moves false → true
    - wallet balance always equals the sum of its transactions
    - Coin awards never fail the operation that triggered them
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(complaints_router)
app.include_router(gamification_router)
app.include_router(dashboard_router)
app.include_router(scheduler_router)
app.include_router(classify_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "CiviLens Accountability Engine",
        "version": "1.0.0",
        "description": "Complaint Prioritization, SLA Enforcement and Accountability Ledger",
        "docs": "/docs",
        "components": {
            "prioritization": "PriorityScorer - 0-100 urgency score with breakdown",
            "sla": "SLAPolicy + SLAScheduler - deadlines and breach sweep",
            "ledger": "Ledger - append-only coin wallet",
            "badges": "BadgeEngine - one-time awards",
            "redemption": "RedemptionService - coins for partner coupons",
            "leaderboard": "LeaderboardService - ranking by lifetime coins",
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
