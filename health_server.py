#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
🏥 HEALTH CHECK SERVER
======================
Servidor HTTP ligero para healthchecks y estado de los sweeps.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
import uvicorn

from trigger_engine import SweepScheduler

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════
# ESTADO GLOBAL DEL BOT
# ═══════════════════════════════════════════════════════════════

bot_status: Dict[str, Any] = {
    "started_at": None,
    "scheduler": None,
}

# ═══════════════════════════════════════════════════════════════
# FASTAPI APP
# ═══════════════════════════════════════════════════════════════

app = FastAPI(
    title="Solana Deferred Orders Bot",
    version="1.0",
    docs_url=None,
    redoc_url=None,
)


def register_scheduler(scheduler: Optional[SweepScheduler]) -> None:
    bot_status["scheduler"] = scheduler
    if scheduler is not None and bot_status["started_at"] is None:
        bot_status["started_at"] = datetime.now()


def _uptime_seconds() -> int:
    if bot_status["started_at"]:
        return int((datetime.now() - bot_status["started_at"]).total_seconds())
    return 0


def _sweep_status(name: str) -> Dict[str, Any]:
    scheduler: Optional[SweepScheduler] = bot_status["scheduler"]
    if scheduler is None:
        return {"ticks": 0, "errors": 0, "last_tick_at": None, "last_report": None}

    stats = scheduler.stats[name]
    report = stats.last_report
    return {
        "period_sec": scheduler.periods[name],
        "ticks": stats.ticks,
        "errors": stats.errors,
        "last_tick_at": (
            datetime.fromtimestamp(stats.last_tick_at).isoformat()
            if stats.last_tick_at else None
        ),
        "last_report": None if report is None else {
            "users": report.users,
            "evaluated": report.evaluated,
            "triggered": report.triggered,
            "failed_users": len(report.failed_users),
        },
    }


@app.get("/")
async def root():
    """Endpoint raíz"""
    scheduler = bot_status["scheduler"]
    running = scheduler is not None and scheduler.is_running()
    return {
        "message": "🚀 Solana Deferred Orders Bot",
        "status": "healthy" if running else "starting",
        "endpoints": {"health": "/health", "status": "/status", "ping": "/ping"},
    }


@app.get("/health")
async def health_check():
    """
    Healthcheck. Retorna 200 SIEMPRE: un sweep con errores no debe provocar
    reinicios del contenedor.
    """
    scheduler = bot_status["scheduler"]
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "sweeps_running": scheduler is not None and scheduler.is_running(),
            "uptime_seconds": _uptime_seconds(),
            "timestamp": datetime.now().isoformat(),
        },
    )


@app.get("/status")
async def get_status():
    """Estado detallado de cada sweep"""
    return JSONResponse({
        "uptime_seconds": _uptime_seconds(),
        "sweeps": {
            "limit": _sweep_status("limit"),
            "dca": _sweep_status("dca"),
        },
    })


@app.get("/ping")
async def ping():
    return {"ping": "pong", "timestamp": datetime.now().isoformat()}

# ═══════════════════════════════════════════════════════════════
# SERVIDOR
# ═══════════════════════════════════════════════════════════════

async def start_health_server(port: int = 8080):
    """
    Iniciar servidor HTTP para healthchecks
    """
    config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        log_level="warning",
        access_log=False,
        timeout_keep_alive=60,
    )
    server = uvicorn.Server(config)

    logger.info(f"✅ Health server iniciado en puerto {port}")
    logger.info(f"🏥 Healthcheck disponible en: http://0.0.0.0:{port}/health")

    try:
        await server.serve()
    except Exception as e:
        logger.error(f"❌ Error iniciando health server: {e}")
        raise
