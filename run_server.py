# run_server.py
import os, sys, traceback, faulthandler
from pathlib import Path

# write crash logs next to the exe
BASE_DIR = Path(sys.executable).resolve().parent if getattr(sys, "frozen", False) else Path(__file__).resolve().parent
LOG_FILE = BASE_DIR / "backend_crash.log"


def log(msg: str):
    with open(LOG_FILE, "a", encoding="utf-8") as f:
        f.write(msg + "\n")


def main():
    # dump fatal crashes too
    crash_log = open(LOG_FILE, "a", encoding="utf-8")
    faulthandler.enable(crash_log)

    try:
        log(f"\n--- START ---")
        log(f"exe={sys.executable}")
        log(f"cwd={os.getcwd()}")

        import uvicorn

        # IMPORTANT: import app after logging is ready
        from app.core import config
        from main import app

        uvicorn.run(app, host=config.API_HOST, port=config.API_PORT, reload=False, log_level="info")

    except Exception:
        err = traceback.format_exc()
        log(err)
        print(err)
        sys.exit(1)


if __name__ == "__main__":
    main()
