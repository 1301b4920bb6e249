"""Command-line entrypoint."""

from __future__ import annotations

import argparse
import dataclasses
import sys
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from ai_backend import DashscopeAIBackend
from config import JsonConfigStore, is_backend_configured
from csv_codec import read_csv, validate_header, write_csv
from errors import AIBackendError
from field_extractor import extract
from log_setup import setup_logging
from models import ACTIVE_STATES, InventoryItem, SessionSnapshot, SessionState, category_display_name
from recognizer import DashscopeSpeechRecognizer
from session_controller import SessionController

TERMINAL_STATES = (SessionState.IDLE, SessionState.COMPLETED, SessionState.FAILED)


class App:
    def __init__(self, config_store: JsonConfigStore, inventory_path: Optional[Path] = None) -> None:
        self.config_store = config_store
        self.inventory_path = inventory_path or _configured_path(config_store)
        self.inventory: List[InventoryItem] = self._load_inventory()
        self._done = threading.Event()

        api_key = config_store.get_api_key()
        self.backend = (
            DashscopeAIBackend(api_key=api_key, model=config_store.get_chat_model())
            if is_backend_configured(api_key)
            else None
        )
        self.controller = SessionController(
            recognizer=DashscopeSpeechRecognizer(api_key=api_key, model=config_store.get_asr_model()),
            ai_backend=self.backend,
            inventory_provider=lambda: tuple(self.inventory),
            on_state_change=self._on_state_change,
            on_partial=self._on_partial,
        )

    def _load_inventory(self) -> List[InventoryItem]:
        if self.inventory_path is None or not self.inventory_path.exists():
            return []
        items, errors = read_csv(self.inventory_path)
        if errors:
            print(f"Skipped {errors} malformed inventory rows", file=sys.stderr)
        return items

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads)
    # ------------------------------------------------------------------

    def _on_state_change(self, old: SessionSnapshot, new: SessionSnapshot) -> None:
        if old.state == new.state:
            return
        if new.state == SessionState.LISTENING:
            print("Listening... speak your inventory command", file=sys.stderr)
        elif new.state == SessionState.PROCESSING:
            print(f"> {new.transcript}", file=sys.stderr)
        if new.state in TERMINAL_STATES and old.state in ACTIVE_STATES:
            self._done.set()

    def _on_partial(self, text: str) -> None:
        print(f"  ... {text}", file=sys.stderr)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def run_turn(self, text: Optional[str] = None, timeout_s: float = 60.0) -> int:
        self._done.clear()
        started = (
            self.controller.submit_transcript(text)
            if text is not None
            else self.controller.start_session()
        )
        if started and self.controller.state in ACTIVE_STATES:
            try:
                if not self._done.wait(timeout=timeout_s):
                    print("Timed out waiting for a response", file=sys.stderr)
            except KeyboardInterrupt:
                pass
            finally:
                if self.controller.state in ACTIVE_STATES:
                    self.controller.stop_session()
        return self._report(self.controller.snapshot)

    def _report(self, snapshot: SessionSnapshot) -> int:
        if snapshot.state == SessionState.FAILED:
            print(f"Error: {snapshot.error_message}", file=sys.stderr)
            return 1
        response = snapshot.response
        if response is None:
            print("No command recognised", file=sys.stderr)
            return 0
        print(f"[{response.intent.value}] {response.response_text}")
        for item in response.relevant_items:
            line = f"  - {item.name} ({item.part_number}): {item.quantity} at {item.location}"
            if item.category:
                line += f" [{category_display_name(item.category)}]"
            print(line)
        if response.suggested_action is not None:
            params = ", ".join(f"{k}={v}" for k, v in response.suggested_action.parameters.items())
            print(f"Suggested {response.suggested_action.type}: {params}")
        return 0

    def insights(self) -> int:
        if self.backend is None:
            print("Error: AI service not configured", file=sys.stderr)
            return 1
        try:
            for chunk in self.backend.stream_insights(self.inventory):
                print(chunk, end="", flush=True)
        except AIBackendError as exc:
            print(f"\nError: {exc.message}", file=sys.stderr)
            return 1
        print()
        return 0


def _configured_path(config_store: JsonConfigStore) -> Optional[Path]:
    value = config_store.get_inventory_csv()
    return Path(value).expanduser() if value else None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Voice commands for a motor-parts inventory")
    parser.add_argument("--config", type=Path, help="path to config.json")
    parser.add_argument("--inventory", type=Path, help="inventory CSV snapshot")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("listen", help="run one spoken command")
    ask = sub.add_parser("ask", help="run one typed command")
    ask.add_argument("text")
    ext = sub.add_parser("extract", help="extract item fields from text")
    ext.add_argument("text")
    sub.add_parser("insights", help="stream inventory insights")
    imp = sub.add_parser("import", help="import a CSV file into the inventory snapshot")
    imp.add_argument("source", type=Path)
    exp = sub.add_parser("export", help="export the inventory snapshot to CSV")
    exp.add_argument("target", type=Path)
    key = sub.add_parser("set-key", help="store the DashScope API key")
    key.add_argument("key")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    store = JsonConfigStore(path=args.config)

    if args.command == "set-key":
        store.set_api_key(args.key)
        print("API key saved.")
        return 0
    if args.command == "extract":
        fields = extract(args.text)
        for name, value in dataclasses.asdict(fields).items():
            print(f"{name}: {value}")
        return 0
    if args.command == "import":
        text = args.source.read_text(encoding="utf-8")
        if not validate_header(text):
            print("Error: CSV header is missing required columns", file=sys.stderr)
            return 1
        items, errors = read_csv(args.source)
        target = args.inventory or _configured_path(store)
        if target is None:
            print("Error: no inventory path; pass --inventory", file=sys.stderr)
            return 1
        write_csv(target, items)
        store.set_inventory_csv(str(target))
        print(f"Imported {len(items)} items ({errors} rows skipped)")
        return 0

    app = App(store, inventory_path=args.inventory)
    if args.command == "export":
        write_csv(args.target, app.inventory)
        print(f"Exported {len(app.inventory)} items to {args.target}")
        return 0
    if args.command == "insights":
        return app.insights()
    if args.command == "ask":
        return app.run_turn(args.text)
    return app.run_turn()


if __name__ == "__main__":
    raise SystemExit(main())
