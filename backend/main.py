"""
Conveyor Inspection Sequencer - Main Entry Point

Serve the API:     python main.py serve --port 8000
Headless run:      python main.py run --bus sim
(or uvicorn main:app --reload --port 8000)

Exit codes of a headless run: 0 completed, 1 a call was rejected,
2 timed out, 130 cancelled.
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

# Add backend to path for imports
backend_path = Path(__file__).parent
sys.path.insert(0, str(backend_path))

import uvicorn
from fastapi import FastAPI

from api.app import create_app
from api.dependencies import get_app_state
from controller import InspectionStation
from core.logger import log_critical, log_info, log_warn
from core.serial_transport import SerialTransport
from core.settings_store import SettingsStore
from core.transport import SimulatedBus
from perception.feed import SerialFrameSource, SimulatedCamera


# Create app instance
app: FastAPI = create_app()


# === Startup/Shutdown Events ===

@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    print("=" * 50)
    print("  Conveyor Inspection Sequencer v1.0")
    print("=" * 50)
    print()

    settings = get_app_state().settings.get()
    print("Loaded Settings:")
    print(f"  Tolerance: ±{settings.tolerance}")
    print(f"  Hold: {settings.hold_duration:.1f}s  Arrival wait: {settings.arrival_wait:.1f}s")
    print(f"  Detection timeout: {settings.detection_timeout or 'none'}")
    print(f"  Shipment: {settings.shipment_id}")
    print()
    print("Docs at http://localhost:8000/docs")
    print()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    state = get_app_state()
    if state.station:
        print("[SHUTDOWN] Disconnecting from bus...")
        state.disconnect()


# === Health Check ===

@app.get("/health")
def health_check():
    """Health check endpoint"""
    state = get_app_state()
    station = state.station
    return {
        "status": "ok",
        "version": "1.0.0",
        "connected": state.is_connected,
        "running": station.is_running if station else False,
    }


# === Headless run ===

def run_headless(bus: str, feed_port: Optional[str], settings_path: Optional[Path],
                 shipment: Optional[str]) -> int:
    """Run one sequence without the API and return the process exit code."""
    store = SettingsStore(settings_path) if settings_path else SettingsStore()
    settings = store.get()
    if shipment:
        try:
            settings = replace(settings, shipment_id=shipment)
        except ValueError as e:
            log_critical(str(e))
            return 1

    if bus == "sim":
        transport = SimulatedBus()
        source = SimulatedCamera(transport)
    else:
        if not feed_port:
            log_critical("--feed-port is required with a serial bus")
            return 1
        transport = SerialTransport()
        try:
            transport.connect(bus)
            source = SerialFrameSource(feed_port)
        except ConnectionError as e:
            log_critical(str(e))
            transport.disconnect()
            return 1

    station = InspectionStation(transport, source, settings)
    try:
        result = station.run_sequence()
    except KeyboardInterrupt:
        log_warn("Interrupted")
        station.shutdown()
        return 130
    finally:
        station.feed.stop()
        if hasattr(transport, "disconnect"):
            transport.disconnect()

    log_info(f"Run finished in {result.state.name}", result.to_dict())
    return result.exit_code


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Conveyor inspection sequencer")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the REST API")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address.")
    serve.add_argument("--port", type=int, default=8000, help="Port to expose.")
    serve.add_argument("--reload", action="store_true", help="Auto-reload (development only).")

    run = sub.add_parser("run", help="Run one inspection sequence and exit")
    run.add_argument("--bus", default="sim", help="'sim' or the serial port of the service bus.")
    run.add_argument("--feed-port", help="Serial port carrying the JSON sensor feed.")
    run.add_argument("--settings", type=Path, help="Settings JSON file.")
    run.add_argument("--shipment", help="Shipment id to dispatch.")

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.command == "serve":
        uvicorn.run("main:app", host=args.host, port=args.port, reload=args.reload)
        return 0
    return run_headless(args.bus, args.feed_port, args.settings, args.shipment)


if __name__ == "__main__":
    sys.exit(main())
