import argparse
import logging
import os
import socket
import subprocess
import sys
import time
import webbrowser

HERE = os.path.dirname(os.path.abspath(__file__))
APP = os.path.join(HERE, "app.py")
DEFAULT_PORT = 8501

logger = logging.getLogger(__name__)


def find_free_port(start=DEFAULT_PORT, limit=20):
    for p in range(start, start + limit):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind(("127.0.0.1", p))
                return p
            except OSError:
                continue
    return start


def wait_for_port(port, timeout=10):
    t0 = time.time()
    while time.time() - t0 < timeout:
        try:
            with socket.create_connection(("127.0.0.1", port), 0.25):
                return True
        except OSError:
            time.sleep(0.25)
    return False


def streamlit_command(port):
    return [sys.executable, "-m", "streamlit", "run", APP,
            "--server.headless=true",
            "--browser.gatherUsageStats=false",
            f"--server.port={port}",
            "--server.address=127.0.0.1"]


def main(argv=None):
    ap = argparse.ArgumentParser(description="Start the Smart Split web app and open it in a browser.")
    ap.add_argument("--port", type=int, default=DEFAULT_PORT, help="First port to try")
    ap.add_argument("--no-browser", action="store_true", help="Don't open a browser window")
    args = ap.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    port = find_free_port(args.port)
    proc = subprocess.Popen(streamlit_command(port))
    if wait_for_port(port, 20):
        logger.info("Smart Split running at http://127.0.0.1:%d", port)
        if not args.no_browser:
            webbrowser.open(f"http://127.0.0.1:{port}", new=1)
    else:
        logger.warning("Streamlit did not open port %d within 20 s", port)
    return proc.wait()


if __name__ == "__main__":
    sys.exit(main())
