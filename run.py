import argparse
import asyncio
import logging
import socket
import uvicorn
from app.client.portal import PortalClient
from app.core.config import settings
from app.services.qr_service import QRService

def get_lan_ip():
    try:
        # Connect to a public DNS server to determine the route
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except OSError:
        return "127.0.0.1"

def serve(port: int):
    lan_ip = get_lan_ip()

    print("\n" + "="*60)
    print(f"🚀 PORTAL BACKEND STARTING")
    print(f"📡 LAN URL:  http://{lan_ip}:{port}")
    print(f"🏠 Local:    http://127.0.0.1:{port}")
    print("="*60 + "\n")

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=port,
        reload=True
    )

async def kiosk(base_url: str, email: str, password: str, interval: float):
    """
    Gate attendance kiosk: shows a fresh one-time QR every interval until Ctrl+C.
    """
    async with PortalClient(base_url=base_url) as portal:
        await portal.login(email, password)
        portal.store.subscribe(lambda: print("✗ Session expired. Please log in again."))

        def show(token):
            print("\033[2J\033[H", end="")
            print(QRService.render_ascii(token.value))
            print(f"Scan this to mark In/Out (valid {token.ttl_seconds}s)")

        def tick(seconds_left):
            print(f"\rRefreshing in {seconds_left}s...", end="", flush=True)

        issuer = portal.ott_issuer(on_token=show, on_tick=tick)
        issuer.start(interval)
        try:
            await asyncio.Event().wait()
        finally:
            issuer.stop()
            await portal.logout()

def main():
    parser = argparse.ArgumentParser(description="Resident portal backend and gate kiosk")
    sub = parser.add_subparsers(dest="command")

    serve_cmd = sub.add_parser("serve", help="run the reference backend")
    serve_cmd.add_argument("--port", type=int, default=8000)

    kiosk_cmd = sub.add_parser("kiosk", help="show the rotating attendance QR in this terminal")
    kiosk_cmd.add_argument("--base-url", default=settings.API_BASE_URL)
    kiosk_cmd.add_argument("--email", required=True)
    kiosk_cmd.add_argument("--password", required=True)
    kiosk_cmd.add_argument("--interval", type=float, default=settings.OTT_REFRESH_INTERVAL_SECONDS)

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)

    if args.command == "kiosk":
        try:
            asyncio.run(kiosk(args.base_url, args.email, args.password, args.interval))
        except KeyboardInterrupt:
            pass
    else:
        serve(getattr(args, "port", 8000))

if __name__ == "__main__":
    main()
