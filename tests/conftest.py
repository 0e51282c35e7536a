"""Shared fixtures: a local aiohttp server acting as the load test target."""

import asyncio
import os
from types import SimpleNamespace

import aiohttp
import pytest_asyncio
from aiohttp import web

# charts are rendered to files only
os.environ.setdefault("MPLBACKEND", "Agg")


def create_target_app() -> web.Application:
    app = web.Application()
    app["requests"] = []

    async def delay(request):
        ms = float(request.query.get("ms", "0"))
        await asyncio.sleep(ms / 1000)
        return web.Response(text="ok")

    async def status(request):
        return web.Response(status=int(request.match_info["code"]), text="status")

    async def record(request):
        body = await request.read()
        request.app["requests"].append({
            "method": request.method,
            "path": request.path,
            "headers": dict(request.headers),
            "body": body,
        })
        return web.Response(text="recorded")

    async def echo_websocket(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        close_after_first = "close" in request.query
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                await ws.send_str(msg.data)
            elif msg.type == aiohttp.WSMsgType.BINARY:
                await ws.send_bytes(msg.data)
            if close_after_first:
                await ws.close()
                break
        return ws

    app.router.add_get("/delay", delay)
    app.router.add_route("*", "/status/{code}", status)
    app.router.add_route("*", "/record/{tail:.*}", record)
    app.router.add_get("/ws", echo_websocket)
    return app


@pytest_asyncio.fixture
async def target():
    """Run the target app on an ephemeral port."""
    app = create_target_app()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = site._server.sockets[0].getsockname()[1]
    try:
        yield SimpleNamespace(
            app=app,
            url=f"http://127.0.0.1:{port}",
            ws_url=f"ws://127.0.0.1:{port}",
        )
    finally:
        await runner.cleanup()
