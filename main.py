"""RPG Chronicle — launcher. Serves the API, or prints derived state for one chat."""

import argparse
import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13015")


def main():
    parser = argparse.ArgumentParser(description="RPG Chronicle launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--project", metavar="CHAT_ID",
                        help="Print the chat's current snapshot as JSON and exit")
    parser.add_argument("--chapters", metavar="CHAT_ID",
                        help="Print the chat's chapters as JSON and exit")
    parser.add_argument("--up-to-message", type=int, default=None,
                        help="With --project: stop at this message id")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    args = parser.parse_args()

    from rpg_chronicle.storage import Storage

    data_dir = args.data_dir or Path(os.getenv("DATA_DIR", str(ROOT / "data")))
    storage = Storage(data_dir)
    debug = args.debug or storage.get_config()["debug_logging"]
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.project or args.chapters:
        from rpg_chronicle.chapters import compute_chapters
        from rpg_chronicle.projection import project_store

        chat_id = args.project or args.chapters
        store = storage.load_events(chat_id)
        swipes = storage.load_swipes(chat_id)
        if args.project:
            snapshot = project_store(store, up_to_message=args.up_to_message, swipe_context=swipes)
            print(snapshot.model_dump_json(indent=2))
        else:
            events = store.get_active_events(up_to_message=args.up_to_message, swipe_context=swipes)
            print(json.dumps([c.model_dump(mode="json") for c in compute_chapters(events)], indent=2))
        return

    import uvicorn

    os.environ["DATA_DIR"] = str(data_dir.resolve())
    print(f"Starting API on http://localhost:{PORT} ...")
    uvicorn.run("rpg_chronicle.app:create_app", factory=True, host=HOST, port=int(PORT))


if __name__ == "__main__":
    main()
