#!/usr/bin/env python3
"""
Startup script for container deployment.
Runs the uvicorn API server. Batch jobs run as background tasks inside
the same process, so no separate worker is started.
"""
import os
import sys
import subprocess
import signal

process = None

def check_credentials():
    """Warn about missing Gemini keys before the first request fails"""
    keys = [os.environ.get(f'GEMINI_KEY_{i}', '') for i in range(1, 4)]
    configured = sum(1 for key in keys if key.strip())
    if configured == 0:
        print("WARNING: no GEMINI_KEY_* configured. Generation endpoints will return 503.")
    else:
        print(f"{configured} Gemini key(s) configured")

def start_uvicorn():
    """Start uvicorn server"""
    port = os.environ.get('PORT', '8000')
    print(f"Starting uvicorn on port {port}")

    proc = subprocess.Popen(
        [
            'uvicorn', 'direito_edge.main:app',
            '--host', '0.0.0.0',
            '--port', port
        ],
        cwd=os.path.dirname(os.path.abspath(__file__))
    )
    print(f"Uvicorn started with PID {proc.pid}")
    return proc

def signal_handler(signum, frame):
    """Handle shutdown signals"""
    print(f"Received signal {signum}, shutting down...")
    if process and process.poll() is None:
        process.terminate()
        try:
            process.wait(timeout=10)
        except subprocess.TimeoutExpired:
            process.kill()

    sys.exit(0)

def main():
    global process

    check_credentials()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    process = start_uvicorn()

    try:
        process.wait()
    except KeyboardInterrupt:
        pass
    finally:
        signal_handler(signal.SIGTERM, None)

if __name__ == '__main__':
    main()
